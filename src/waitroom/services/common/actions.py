"""Request actions: the three writes a user can make against the queue.

Each action wraps one backing-store call and reports the outcome as an
[ActionResult][waitroom.services.common.actions.ActionResult] instead of
raising, so callers (the synchronizer, the CLI) decide how to surface a
failure. Failures are always logged here.

* [create_request()][waitroom.services.common.actions.create_request]:
  a student joins the queue.
* [mark_seen()][waitroom.services.common.actions.mark_seen]: a tutor
  acknowledges a request.
* [delete_request()][waitroom.services.common.actions.delete_request]:
  a tutor completes or removes a request.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

from waitroom.core.exceptions import StoreError
from waitroom.core.logger import Logger
from waitroom.models import EntryStatus


if TYPE_CHECKING:
    from waitroom.core.store import QueueBackend
    from waitroom.models import QueueEntry


STUDENT_NAME_REQUIRED = "Student name is required."

_logger = Logger("actions")

# Errors a backing store may raise for a failed write; anything else is a bug
_STORE_FAILURES = (StoreError, ConnectionError, TimeoutError, RuntimeError)


class ActionResult(NamedTuple):
    """Outcome of a request action.

    Attributes:
        ok: Whether the backing store accepted the write.
        error: Failure message when ``ok`` is false.
        entry: The created entry, for successful ``create_request`` calls.
    """

    ok: bool
    error: str | None = None
    entry: QueueEntry | None = None

    @classmethod
    def success(cls, entry: QueueEntry | None = None) -> ActionResult:
        return cls(ok=True, entry=entry)

    @classmethod
    def failure(cls, error: str) -> ActionResult:
        return cls(ok=False, error=error)


def _message(e: BaseException) -> str:
    return str(e) or type(e).__name__


async def create_request(
    store: QueueBackend,
    student_name: str,
    topic_area: str | None = None,
) -> ActionResult:
    """Submit a help request.

    ``student_name`` is trimmed and must not be empty. ``topic_area`` is
    optional; blank text is stored as absent.
    """
    name = (student_name or "").strip()
    if not name:
        return ActionResult.failure(STUDENT_NAME_REQUIRED)
    topic = (topic_area or "").strip() or None

    try:
        entry = await store.insert(name, topic)
    except _STORE_FAILURES as e:
        _logger.error("create_request_failed", error=_message(e))
        return ActionResult.failure(_message(e))

    _logger.info("request_created", entry_id=entry.id)
    return ActionResult.success(entry)


async def mark_seen(store: QueueBackend, entry_id: str) -> ActionResult:
    """Set an entry's status to ``seen``."""
    try:
        await store.update_status(entry_id, EntryStatus.SEEN)
    except _STORE_FAILURES as e:
        _logger.error("mark_seen_failed", entry_id=entry_id, error=_message(e))
        return ActionResult.failure(_message(e))

    _logger.info("request_marked_seen", entry_id=entry_id)
    return ActionResult.success()


async def delete_request(store: QueueBackend, entry_id: str) -> ActionResult:
    """Remove an entry from the queue. Deleting an absent id succeeds."""
    try:
        await store.delete(entry_id)
    except _STORE_FAILURES as e:
        _logger.error("delete_request_failed", entry_id=entry_id, error=_message(e))
        return ActionResult.failure(_message(e))

    _logger.info("request_deleted", entry_id=entry_id)
    return ActionResult.success()
