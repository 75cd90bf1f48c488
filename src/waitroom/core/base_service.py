"""
Abstract base class for long-running waitroom services.

``BaseService[ConfigT]`` provides the lifecycle shared by every service:
structured logging via [Logger][waitroom.core.logger.Logger], graceful
shutdown via ``asyncio.Event``, interval-based cycling with
[run_forever()][waitroom.core.base_service.BaseService.run_forever],
consecutive failure limits, and Prometheus metrics via
[MetricsServer][waitroom.core.metrics.MetricsServer].

Services receive their backing store explicitly through the constructor;
there is no process-wide connection.

See Also:
    [QueueStore][waitroom.core.store.QueueStore]: Production backing store.
    [BaseServiceConfig][waitroom.core.base_service.BaseServiceConfig]: Base
        configuration model for all services.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from types import TracebackType
from typing import Any, ClassVar, Generic, Self, TypeVar, cast

from pydantic import BaseModel, Field

from waitroom.models.constants import ServiceName

from .logger import Logger
from .metrics import (
    CYCLE_DURATION_SECONDS,
    SERVICE_COUNTER,
    SERVICE_GAUGE,
    SERVICE_INFO,
    MetricsConfig,
)
from .store import QueueBackend
from .yaml import load_yaml


# ---------------------------------------------------------------------------
# Base Configuration
# ---------------------------------------------------------------------------


class BaseServiceConfig(BaseModel):
    """Base configuration shared by all services that run in a loop.

    Subclass this to add service-specific fields.
    """

    interval: float = Field(
        default=10.0,
        gt=0.0,
        description="Seconds between run cycles",
    )
    max_consecutive_failures: int = Field(
        default=0,
        ge=0,
        description="Stop after this many consecutive errors (0 = unlimited)",
    )
    metrics: MetricsConfig = Field(
        default_factory=MetricsConfig,
        description="Prometheus metrics configuration",
    )


ConfigT = TypeVar("ConfigT", bound=BaseServiceConfig)


class BaseService(ABC, Generic[ConfigT]):
    """Abstract base class for all waitroom services.

    Subclasses set ``SERVICE_NAME`` and ``CONFIG_CLASS`` and implement
    [run()][waitroom.core.base_service.BaseService.run] with one cycle of
    work.

    Attributes:
        SERVICE_NAME: Identifier used in logging and metrics labels.
        CONFIG_CLASS: Pydantic model used by the ``from_*`` factories.
        _store: Backing store every operation goes through.
        _config: Typed service configuration.
        _logger: [Logger][waitroom.core.logger.Logger] named after the service.
        _shutdown_event: Clear while running, set once shutdown is requested.

    Note:
        The lifecycle is ``async with store:`` then ``async with service:``
        then [run_forever()][waitroom.core.base_service.BaseService.run_forever]
        (or a single [run()][waitroom.core.base_service.BaseService.run]).
        Entering the context clears the shutdown event; leaving it sets it.
    """

    SERVICE_NAME: ClassVar[ServiceName | str]
    CONFIG_CLASS: ClassVar[type[BaseModel]]

    def __init__(self, store: QueueBackend, config: ConfigT | None = None) -> None:
        self._store = store
        self._config: ConfigT = (
            config if config is not None else cast("ConfigT", self.CONFIG_CLASS())
        )
        self._logger = Logger(str(self.SERVICE_NAME))
        self._shutdown_event = asyncio.Event()

    @property
    def config(self) -> ConfigT:
        """The typed service configuration (read-only)."""
        return self._config

    @property
    def store(self) -> QueueBackend:
        return self._store

    @abstractmethod
    async def run(self) -> None:
        """Execute one cycle of the service's main logic."""
        ...

    def request_shutdown(self) -> None:
        """Request a graceful shutdown.

        Safe to call from signal handlers: setting an ``asyncio.Event`` is
        atomic. A pending [wait()][waitroom.core.base_service.BaseService.wait]
        returns immediately.
        """
        self._shutdown_event.set()

    @property
    def is_running(self) -> bool:
        """Whether the service is still active (shutdown not yet requested)."""
        return not self._shutdown_event.is_set()

    async def wait(self, timeout: float) -> bool:  # noqa: ASYNC109
        """Wait for a shutdown request or *timeout* seconds.

        Returns ``True`` if shutdown was requested during the wait and
        ``False`` if the timeout expired. Use instead of ``asyncio.sleep()``
        so shutdown interrupts the wait.
        """
        try:
            await asyncio.wait_for(self._shutdown_event.wait(), timeout=timeout)
            return True
        except TimeoutError:
            return False

    async def wait_for_shutdown(self) -> None:
        """Block until [request_shutdown()][waitroom.core.base_service.BaseService.request_shutdown] is called."""
        await self._shutdown_event.wait()

    async def run_forever(self) -> None:
        """Call [run()][waitroom.core.base_service.BaseService.run] every ``config.interval`` seconds.

        The first cycle fires one interval after the loop starts: services
        perform their initial work when they are entered, and the loop only
        repeats it. The loop exits when shutdown is requested or when
        ``config.max_consecutive_failures`` cycles in a row fail (``0``
        disables the limit).

        Metrics tracked automatically: ``cycles_success``, ``cycles_failed``
        and ``errors_{ExceptionType}`` counters, ``consecutive_failures`` and
        ``last_cycle_timestamp`` gauges, and the cycle duration histogram.

        ``CancelledError``, ``KeyboardInterrupt`` and ``SystemExit`` always
        propagate without being counted as failures.
        """
        interval = self._config.interval
        max_consecutive_failures = self._config.max_consecutive_failures
        metrics_enabled = self._config.metrics.enabled

        if metrics_enabled:
            SERVICE_INFO.info({"service": str(self.SERVICE_NAME)})

        self._logger.info(
            "run_forever_started",
            interval=interval,
            max_consecutive_failures=max_consecutive_failures,
        )

        consecutive_failures = 0

        while self.is_running:
            if await self.wait(interval):
                break

            cycle_start = time.monotonic()
            try:
                await self.run()

                if metrics_enabled:
                    CYCLE_DURATION_SECONDS.labels(service=str(self.SERVICE_NAME)).observe(
                        time.monotonic() - cycle_start
                    )
                self.inc_counter("cycles_success")
                self.set_gauge("last_cycle_timestamp", time.time())
                self.set_gauge("consecutive_failures", 0)
                consecutive_failures = 0
                self._logger.debug("cycle_completed", next_cycle_s=interval)

            except (asyncio.CancelledError, KeyboardInterrupt, SystemExit):
                raise

            except Exception as e:  # Intentionally broad: top-level error boundary for run_forever
                consecutive_failures += 1
                self.inc_counter("cycles_failed")
                self.set_gauge("consecutive_failures", consecutive_failures)
                self.inc_counter(f"errors_{type(e).__name__}")
                self._logger.error(
                    "run_cycle_error",
                    error=str(e),
                    consecutive_failures=consecutive_failures,
                )

                if 0 < max_consecutive_failures <= consecutive_failures:
                    self._logger.critical(
                        "max_consecutive_failures_reached",
                        failures=consecutive_failures,
                        limit=max_consecutive_failures,
                    )
                    break

        self._logger.info("run_forever_stopped")

    # -------------------------------------------------------------------------
    # Factory Methods
    # -------------------------------------------------------------------------

    @classmethod
    def from_yaml(cls, config_path: str, store: QueueBackend, **kwargs: Any) -> Self:
        """Create a service from a YAML configuration file."""
        return cls.from_dict(load_yaml(config_path), store=store, **kwargs)

    @classmethod
    def from_dict(cls, data: dict[str, Any], store: QueueBackend, **kwargs: Any) -> Self:
        """Create a service from a dictionary parsed into ``CONFIG_CLASS``."""
        config = cast("ConfigT", cls.CONFIG_CLASS(**data))
        return cls(store=store, config=config, **kwargs)

    # -------------------------------------------------------------------------
    # Context Manager
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> Self:
        self._shutdown_event.clear()
        self._logger.info("service_started")
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        self._shutdown_event.set()
        self._logger.info("service_stopped")

    # -------------------------------------------------------------------------
    # Custom Metrics
    # -------------------------------------------------------------------------

    def set_gauge(self, name: str, value: float) -> None:
        """Set a named gauge for this service. No-op when metrics are disabled."""
        if not self._config.metrics.enabled:
            return
        SERVICE_GAUGE.labels(service=str(self.SERVICE_NAME), name=name).set(value)

    def inc_counter(self, name: str, value: float = 1) -> None:
        """Increment a named counter for this service. No-op when metrics are disabled."""
        if not self._config.metrics.enabled:
            return
        SERVICE_COUNTER.labels(service=str(self.SERVICE_NAME), name=name).inc(value)
