"""Core layer: backing store, connection pool and service infrastructure.

Sits between ``waitroom.models`` (which it depends on) and
``waitroom.services`` (which depends on it).

Attributes:
    Pool: Async PostgreSQL connection pool with retry/backoff and dedicated
        listener connections. See [Pool][waitroom.core.pool.Pool].
    QueueStore: Queue backing store (fetch, insert, update, delete and a
        ``LISTEN``/``NOTIFY`` change stream).
        See [QueueStore][waitroom.core.store.QueueStore].
    QueueBackend: Protocol satisfied by ``QueueStore`` and by test fakes.
    BaseService: Abstract generic service with lifecycle management,
        interval cycling, factories and metrics.
    Logger: Structured key=value / JSON logger.
    MetricsServer: Prometheus ``/metrics`` endpoint.
    load_yaml: Safe YAML loading.

Examples:
    ```python
    from waitroom.core import QueueStore

    store = QueueStore.from_yaml("config/store.yaml")
    async with store:
        entries = await store.fetch_all()
    ```
"""

from .base_service import BaseService, BaseServiceConfig, ConfigT
from .exceptions import (
    AuthenticationError,
    ConfigurationError,
    ConnectionPoolError,
    QueryError,
    StoreError,
    SubscriptionError,
    WaitroomError,
)
from .logger import Logger, StructuredFormatter, format_kv_pairs
from .metrics import (
    CYCLE_DURATION_SECONDS,
    SERVICE_COUNTER,
    SERVICE_GAUGE,
    SERVICE_INFO,
    MetricsConfig,
    MetricsServer,
    start_metrics_server,
)
from .pool import (
    DatabaseConfig,
    Pool,
    PoolConfig,
    PoolLimitsConfig,
    PoolRetryConfig,
    PoolTimeoutsConfig,
    ServerSettingsConfig,
)
from .store import (
    QueueBackend,
    QueueStore,
    StoreConfig,
    StoreTimeoutsConfig,
    Subscription,
    channel_for,
)
from .yaml import load_yaml


__all__ = [
    "CYCLE_DURATION_SECONDS",
    "SERVICE_COUNTER",
    "SERVICE_GAUGE",
    "SERVICE_INFO",
    "AuthenticationError",
    "BaseService",
    "BaseServiceConfig",
    "ConfigT",
    "ConfigurationError",
    "ConnectionPoolError",
    "DatabaseConfig",
    "Logger",
    "MetricsConfig",
    "MetricsServer",
    "Pool",
    "PoolConfig",
    "PoolLimitsConfig",
    "PoolRetryConfig",
    "PoolTimeoutsConfig",
    "QueryError",
    "QueueBackend",
    "QueueStore",
    "ServerSettingsConfig",
    "StoreConfig",
    "StoreError",
    "StoreTimeoutsConfig",
    "StructuredFormatter",
    "Subscription",
    "SubscriptionError",
    "WaitroomError",
    "channel_for",
    "format_kv_pairs",
    "load_yaml",
    "start_metrics_server",
]
