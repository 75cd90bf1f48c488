"""Queue synchronizer service for waitroom.

Keeps a local, ordered copy of the ``queue_requests`` collection
consistent with the backing store while a tutor dashboard is open.

The synchronization workflow proceeds as follows:

1. On activation, check the tutor session (when an auth gate is supplied),
   open one change subscription and perform the initial full load.
2. Apply every change notification defensively: inserts upsert, updates
   replace known entries, deletes remove by id, and anything malformed is
   ignored. An insert that cannot be described triggers a full reload.
3. Every ``config.interval`` seconds reload the full collection and replace
   local state wholesale, whatever the health of the change stream.
4. Tutor actions (``mark_seen``, ``remove``) patch local state
   immediately and then issue the write. A rejected write is surfaced as
   ``mutation_error`` and, by default, schedules a reload.
5. On deactivation, stop the reconciliation loop, unsubscribe and release
   the subscription. Cleanup errors are logged, never raised.

Note:
    All state lives in one immutable
    [QueueState][waitroom.models.queue_state.QueueState] snapshot that is
    replaced as a whole. Every replacement goes through ``_commit``, which
    refuses writes once the synchronizer is deactivated. Loads additionally
    carry the activation epoch they started in, so a fetch that completes
    after teardown (or after a re-activation) is discarded.

See Also:
    [SynchronizerConfig][waitroom.services.synchronizer.SynchronizerConfig]:
        Configuration model for this service.
    [QueueStore][waitroom.core.store.QueueStore]: Production backing store.
    [parse_notification][waitroom.models.notification.parse_notification]:
        Normalizes raw change notifications.

Examples:
    ```python
    from waitroom.core import QueueStore
    from waitroom.services import QueueSynchronizer

    store = QueueStore.from_yaml("config/store.yaml")
    sync = QueueSynchronizer.from_yaml("config/services/synchronizer.yaml", store=store)

    async with store:
        async with sync:
            print(sync.entries)
            await sync.wait_for_shutdown()
    ```
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Coroutine
from types import TracebackType
from typing import TYPE_CHECKING, Any, ClassVar, Self

from waitroom.core.base_service import BaseService
from waitroom.core.exceptions import ConfigurationError, SubscriptionError
from waitroom.models import (
    DeleteNotification,
    InsertNotification,
    QueueState,
    ReloadNotification,
    UpdateNotification,
    parse_notification,
)
from waitroom.models.constants import ServiceName
from waitroom.services.common import actions
from waitroom.services.common.auth import require_session

from .configs import SynchronizerConfig
from .utils import (
    SyncCounters,
    apply_change,
    entries_from_snapshot,
    mark_entry_seen,
    remove_entry,
)


if TYPE_CHECKING:
    from waitroom.core.store import QueueBackend
    from waitroom.models import QueueEntry
    from waitroom.services.common.actions import ActionResult
    from waitroom.services.common.auth import AuthGate


_NOTIFICATION_TYPES = (
    InsertNotification,
    UpdateNotification,
    DeleteNotification,
    ReloadNotification,
)


class QueueSynchronizer(BaseService[SynchronizerConfig]):
    """Live view of the waiting-room queue.

    Read ``state`` (or the ``entries`` / ``loading`` / ``last_error``
    shortcuts) at any time; it is always sorted by ``(created_at, id)`` with
    unique ids.

    Args:
        store: Backing store satisfying
            [QueueBackend][waitroom.core.store.QueueBackend].
        config: Service configuration.
        auth: Optional gate; when given, activation requires a session.

    Note:
        ``run()`` performs one reconciliation load. Entering the context
        activates the synchronizer and starts a background task that calls
        [run_forever()][waitroom.core.base_service.BaseService.run_forever],
        so callers only need ``async with sync:``.
    """

    SERVICE_NAME: ClassVar[ServiceName] = ServiceName.SYNCHRONIZER
    CONFIG_CLASS: ClassVar[type[SynchronizerConfig]] = SynchronizerConfig

    def __init__(
        self,
        store: QueueBackend,
        config: SynchronizerConfig | None = None,
        auth: AuthGate | None = None,
    ) -> None:
        super().__init__(store=store, config=config or SynchronizerConfig())
        self._config: SynchronizerConfig
        self._auth = auth
        self._state = QueueState()
        self._counters = SyncCounters()
        self._active = False
        self._epoch = 0
        self._loads_in_flight = 0
        self._subscription: Any = None
        self._reconciler: asyncio.Task[None] | None = None
        self._background: set[asyncio.Task[Any]] = set()

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def state(self) -> QueueState:
        return self._state

    @property
    def entries(self) -> tuple[QueueEntry, ...]:
        return self._state.entries

    @property
    def loading(self) -> bool:
        return self._state.loading

    @property
    def last_error(self) -> str | None:
        return self._state.last_error

    @property
    def mutation_error(self) -> str | None:
        return self._state.mutation_error

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def counters(self) -> SyncCounters:
        return self._counters

    def _commit(self, state: QueueState, epoch: int | None = None) -> bool:
        """Replace the state snapshot unless deactivated or from a stale epoch."""
        if not self._active or (epoch is not None and epoch != self._epoch):
            return False
        self._state = state
        self.set_gauge("entries_waiting", len(state.waiting))
        self.set_gauge("entries_seen", len(state.seen))
        return True

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def load(self) -> bool:
        """Fetch the full collection and replace local entries wholesale.

        Sets ``loading`` while the fetch is in flight. On success the error
        is cleared; on failure ``last_error`` carries the message and the
        existing entries are kept. Never raises for store failures.

        Returns:
            ``True`` if fetched entries were committed, ``False`` on failure
            or when the result was discarded because the synchronizer was
            deactivated meanwhile.
        """
        if not self._active:
            return False
        epoch = self._epoch

        self._loads_in_flight += 1
        self._commit(self._state.replace(loading=True), epoch)
        try:
            fetched = await self._store.fetch_all()
        except Exception as e:  # Intentionally broad: load failures become visible state
            message = str(e) or type(e).__name__
            self._counters.load_failures += 1
            self.inc_counter("loads_failed")
            self._logger.error("load_failed", error=message, error_type=type(e).__name__)
            self._finish_load(epoch, last_error=message)
            return False

        entries = entries_from_snapshot(fetched)
        if not self._finish_load(epoch, entries=entries, last_error=None):
            self._logger.debug("load_discarded", entries=len(entries))
            return False

        self._counters.loads += 1
        self.inc_counter("loads_success")
        self._logger.info(
            "load_completed",
            entries=len(entries),
            waiting=len(self._state.waiting),
            seen=len(self._state.seen),
        )
        return True

    def _finish_load(self, epoch: int, **changes: Any) -> bool:
        if epoch != self._epoch:
            return False
        self._loads_in_flight = max(0, self._loads_in_flight - 1)
        return self._commit(
            self._state.replace(loading=self._loads_in_flight > 0, **changes), epoch
        )

    async def run(self) -> None:
        """One reconciliation cycle: a full reload.

        The load runs as a tracked background task. Cancelling the
        reconciliation loop on deactivation therefore leaves an in-flight
        fetch running; its result is discarded by the epoch check.
        """
        await asyncio.shield(self._spawn(self.load()))

    # -------------------------------------------------------------------------
    # Change Stream
    # -------------------------------------------------------------------------

    def apply_notification(self, payload: Any) -> None:
        """Apply one change notification to local state.

        Accepts a raw payload (mapping or JSON text) or an already normalized
        notification. Malformed notifications are ignored; an insert without
        a usable record schedules a full reload. Notifications arriving while
        deactivated are dropped.
        """
        if not self._active:
            return

        change = payload if isinstance(payload, _NOTIFICATION_TYPES) else parse_notification(payload)

        if change is None:
            self._counters.ignored += 1
            self.inc_counter("notifications_ignored")
            self._logger.debug("notification_ignored")
            return

        if isinstance(change, ReloadNotification):
            self._counters.reloads_requested += 1
            self._logger.info("notification_reload", reason=change.reason)
            self._spawn(self.load())
            return

        entries = apply_change(self._state.entries, change)
        if entries is not self._state.entries:
            self._commit(self._state.replace(entries=entries))
        self._counters.applied += 1
        self.inc_counter("notifications_applied")
        self._logger.debug(
            "notification_applied",
            kind=change.kind,
            entry_id=change.entry_id if isinstance(change, DeleteNotification) else change.entry.id,
        )

    # -------------------------------------------------------------------------
    # Tutor Actions
    # -------------------------------------------------------------------------

    async def mark_seen(self, entry_id: str) -> ActionResult:
        """Mark *entry_id* seen locally, then in the backing store."""
        entry = self._state.get(entry_id)
        if entry is not None and entry.is_waiting:
            self._commit(self._state.replace(entries=mark_entry_seen(self._state.entries, entry_id)))
        result = await actions.mark_seen(self._store, entry_id)
        self._record_mutation("mark_seen", entry_id, result)
        return result

    async def remove(self, entry_id: str) -> ActionResult:
        """Remove *entry_id* locally, then from the backing store."""
        entries = remove_entry(self._state.entries, entry_id)
        if entries is not self._state.entries:
            self._commit(self._state.replace(entries=entries))
        result = await actions.delete_request(self._store, entry_id)
        self._record_mutation("remove", entry_id, result)
        return result

    def _record_mutation(self, operation: str, entry_id: str, result: ActionResult) -> None:
        if result.ok:
            if self._state.mutation_error is not None:
                self._commit(self._state.replace(mutation_error=None))
            return

        self._counters.mutation_failures += 1
        self.inc_counter("mutations_failed")
        self._commit(self._state.replace(mutation_error=result.error))
        if self._config.resync_on_mutation_failure and self._active:
            self._logger.warning("mutation_resync_scheduled", operation=operation, entry_id=entry_id)
            self._spawn(self.load())

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def _check_session(self) -> None:
        if self._auth is None:
            if self._config.require_session:
                raise ConfigurationError("require_session is set but no auth gate was provided")
            return
        session = require_session(self._auth)
        self._logger.info("session_verified", user=session.user)

    async def activate(self) -> None:
        """Subscribe, load and start periodic reconciliation.

        Raises:
            AuthenticationError: If an auth gate is configured without a session.
            ConfigurationError: If a session is required but no gate was given.
        """
        if self._active:
            return
        self._check_session()

        self._shutdown_event.clear()
        self._epoch += 1
        self._active = True
        self._counters.reset()
        self._loads_in_flight = 0
        self._state = QueueState()

        try:
            self._subscription = await self._store.subscribe(self.apply_notification)
        except (SubscriptionError, ConnectionError) as e:
            # Reconciliation still converges without the stream
            self._subscription = None
            self._logger.warning("subscribe_failed", error=str(e))
        except Exception:
            self._active = False
            self._epoch += 1
            raise

        await self.load()
        self._reconciler = asyncio.create_task(self.run_forever())
        self._logger.info("synchronizer_activated", epoch=self._epoch)

    async def deactivate(self) -> None:
        """Stop reconciliation and tear down the subscription.

        Errors raised while unsubscribing or releasing are logged and
        swallowed. In-flight fetches are not cancelled, but no state is
        written after this returns.
        """
        if not self._active:
            return
        self._active = False
        self._epoch += 1
        self._shutdown_event.set()

        reconciler, self._reconciler = self._reconciler, None
        if reconciler is not None:
            reconciler.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reconciler

        handle, self._subscription = self._subscription, None
        if handle is not None:
            await self._close_subscription(handle)

        self._logger.info(
            "synchronizer_deactivated",
            loads=self._counters.loads,
            applied=self._counters.applied,
            ignored=self._counters.ignored,
        )

    async def _close_subscription(self, handle: Any) -> None:
        try:
            await self._store.unsubscribe(handle)
        except Exception as e:  # Intentionally broad: teardown must not raise
            self._logger.warning("unsubscribe_failed", error=str(e), error_type=type(e).__name__)
        try:
            await self._store.release(handle)
        except Exception as e:  # Intentionally broad: teardown must not raise
            self._logger.warning("release_failed", error=str(e), error_type=type(e).__name__)

    async def __aenter__(self) -> Self:
        await super().__aenter__()
        await self.activate()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.deactivate()
        await super().__aexit__(exc_type, exc_val, exc_tb)
