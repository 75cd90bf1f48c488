"""The queue synchronizer service plus shared request actions.

Services are the top layer, depending on [waitroom.core][waitroom.core] and
[waitroom.models][waitroom.models]. Each service extends
[BaseService][waitroom.core.base_service.BaseService] and implements
``async def run()`` for one cycle of work.

Attributes:
    QueueSynchronizer: Keeps a local ordered view of the help-request queue
        consistent with the backing store through change notifications and
        periodic full reloads.
    common: Request actions (submit, mark seen, delete) and the tutor auth
        gate.

Examples:
    ```python
    from waitroom.core import QueueStore
    from waitroom.services import QueueSynchronizer

    store = QueueStore.from_yaml("config/store.yaml")
    async with store:
        async with QueueSynchronizer(store=store) as sync:
            print(len(sync.entries))
    ```
"""

from .common import (
    ActionResult,
    AuthGate,
    StaticAuthGate,
    create_request,
    delete_request,
    mark_seen,
)
from .synchronizer import (
    QueueSynchronizer,
    SynchronizerConfig,
)


__all__ = [
    "ActionResult",
    "AuthGate",
    "QueueSynchronizer",
    "StaticAuthGate",
    "SynchronizerConfig",
    "create_request",
    "delete_request",
    "mark_seen",
]
