"""
Prometheus metrics and their HTTP exposition.

Module-level metric objects are shared by every service.
[BaseService.run_forever()][waitroom.core.base_service.BaseService.run_forever]
records cycle counts and durations automatically; services add their own
values through ``set_gauge()`` and ``inc_counter()``.

Architecture:
    SERVICE_INFO:            Static metadata set once at startup.
    SERVICE_GAUGE:           Point-in-time values (queue sizes, failure streaks).
    SERVICE_COUNTER:         Cumulative totals (loads, notifications, failures).
    CYCLE_DURATION_SECONDS:  Histogram of cycle latency.

The ``MetricsServer`` serves ``/metrics`` over aiohttp when enabled in
``MetricsConfig``.
"""

from __future__ import annotations

from aiohttp import web
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)
from pydantic import BaseModel, Field


class MetricsConfig(BaseModel):
    """Configuration for the Prometheus metrics endpoint.

    Use ``host: 0.0.0.0`` in containers so the endpoint can be scraped from
    outside. Nothing is recorded or served unless ``enabled`` is true.
    """

    enabled: bool = Field(default=False, description="Enable metrics collection")
    port: int = Field(default=8000, ge=1024, le=65535, description="Metrics HTTP port")
    host: str = Field(default="127.0.0.1", description="Metrics HTTP bind address")
    path: str = Field(default="/metrics", description="Metrics endpoint path")


SERVICE_INFO = Info(
    "waitroom_service",
    "Service information and metadata",
)

# Reconciliation cycles are short; buckets concentrate below the 10 s interval
CYCLE_DURATION_SECONDS = Histogram(
    "waitroom_cycle_duration_seconds",
    "Duration of service cycle in seconds",
    ["service"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30),
)

# Labels used by the synchronizer:
#   gauge:   entries_waiting, entries_seen, consecutive_failures, last_cycle_timestamp
#   counter: loads_success, loads_failed, notifications_applied,
#            notifications_ignored, mutations_failed, cycles_success, cycles_failed
SERVICE_GAUGE = Gauge(
    "waitroom_service_gauge",
    "Service gauge values (point-in-time state)",
    ["service", "name"],
)

SERVICE_COUNTER = Counter(
    "waitroom_service_counter",
    "Service counter values (cumulative totals)",
    ["service", "name"],
)


class MetricsServer:
    """Async HTTP server exposing the Prometheus registry.

    Example:
        server = MetricsServer(MetricsConfig(enabled=True, port=8001))
        await server.start()
        # ... service runs ...
        await server.stop()
    """

    def __init__(self, config: MetricsConfig) -> None:
        self._config = config
        self._runner: web.AppRunner | None = None

    @property
    def is_running(self) -> bool:
        return self._runner is not None

    async def start(self) -> None:
        """Bind the endpoint; no-op when metrics are disabled.

        Raises:
            OSError: If the port is already in use or binding fails.
        """
        if not self._config.enabled:
            return

        app = web.Application()
        app.router.add_get(self._config.path, self._handle_metrics)

        self._runner = web.AppRunner(app, access_log=None)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._config.host, self._config.port)
        await site.start()

    async def stop(self) -> None:
        """Stop the server. Idempotent."""
        if self._runner is not None:
            runner, self._runner = self._runner, None
            await runner.cleanup()

    @staticmethod
    async def _handle_metrics(_request: web.Request) -> web.Response:
        return web.Response(
            body=generate_latest(),
            headers={"Content-Type": CONTENT_TYPE_LATEST},
        )


async def start_metrics_server(config: MetricsConfig | None = None) -> MetricsServer:
    """Create and start a [MetricsServer][waitroom.core.metrics.MetricsServer].

    The caller owns the returned server and should ``stop()`` it on shutdown.
    """
    server = MetricsServer(config or MetricsConfig())
    await server.start()
    return server
