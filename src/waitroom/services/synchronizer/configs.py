"""Synchronizer service configuration models.

See Also:
    [QueueSynchronizer][waitroom.services.synchronizer.QueueSynchronizer]: The
        service class that consumes this configuration.
    [BaseServiceConfig][waitroom.core.base_service.BaseServiceConfig]:
        Base class providing ``interval`` and ``metrics`` fields.
"""

from __future__ import annotations

from pydantic import Field

from waitroom.core.base_service import BaseServiceConfig


RECONCILE_INTERVAL_SECONDS = 10.0


class SynchronizerConfig(BaseServiceConfig):
    """Configuration for the queue synchronizer.

    ``interval`` is the reconciliation period: every ``interval`` seconds
    the full collection is fetched and replaces local state wholesale,
    regardless of stream health.

    Examples:
        ```yaml
        interval: 10.0
        resync_on_mutation_failure: true
        require_session: true
        metrics:
          enabled: true
          port: 8001
        ```
    """

    interval: float = Field(
        default=RECONCILE_INTERVAL_SECONDS,
        gt=0.0,
        description="Seconds between full reconciliation loads",
    )
    resync_on_mutation_failure: bool = Field(
        default=True,
        description="Schedule an immediate reload when an optimistic write is rejected",
    )
    require_session: bool = Field(
        default=False,
        description="Refuse to activate without an auth gate holding a session",
    )
