"""Queue entry model: one student's pending or resolved help request.

Pure data container mirroring a row of the ``queue_requests`` table. All
validation happens in ``__post_init__`` so invalid instances never escape
the constructor, and ``from_record`` accepts both database rows and the
JSON rows embedded in change notifications.

See Also:
    [QueueState][waitroom.models.queue_state.QueueState]: Ordered snapshot
        of entries held by the synchronizer.
    [QueueStore][waitroom.core.store.QueueStore]: Backing service that
        produces these records.
"""

from __future__ import annotations

import dataclasses
import datetime  # noqa: TC003
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ._validation import (
    normalize_optional_text,
    parse_timestamp,
    validate_mapping,
    validate_str_not_empty,
)
from .constants import EntryStatus


if TYPE_CHECKING:
    from collections.abc import Mapping


@dataclass(frozen=True, slots=True)
class QueueEntry:
    """A single help request in the waiting-room queue.

    Attributes:
        id: Opaque unique identifier assigned by the backing store.
        created_at: Submission time (timezone-aware). Defines queue order.
        student_name: Name of the requesting student, never blank.
        topic_area: Optional free-text topic; blank values become ``None``.
        status: [EntryStatus][waitroom.models.constants.EntryStatus] value.

    Examples:
        ```python
        entry = QueueEntry.from_record({
            "id": "3f1c...",
            "created_at": "2024-03-01T10:00:00Z",
            "student_name": "Alice",
            "topic_area": "recursion",
            "status": "waiting",
        })
        entry.with_status(EntryStatus.SEEN).status  # EntryStatus.SEEN
        ```

    Note:
        Uses ``object.__setattr__`` in ``__post_init__`` to store normalized
        values on the frozen instance before it is exposed to callers.
    """

    id: str
    created_at: datetime.datetime
    student_name: str
    topic_area: str | None = None
    status: EntryStatus = EntryStatus.WAITING

    def __post_init__(self) -> None:
        validate_str_not_empty(self.id, "id")
        validate_str_not_empty(self.student_name, "student_name")
        object.__setattr__(self, "created_at", parse_timestamp(self.created_at, "created_at"))
        object.__setattr__(self, "student_name", self.student_name.strip())
        object.__setattr__(
            self, "topic_area", normalize_optional_text(self.topic_area, "topic_area")
        )
        object.__setattr__(self, "status", EntryStatus(self.status))

    @property
    def is_waiting(self) -> bool:
        """Whether the entry still waits for a tutor."""
        return self.status is EntryStatus.WAITING

    def with_status(self, status: EntryStatus | str) -> QueueEntry:
        """Return a copy of this entry carrying *status*.

        Raises:
            ValueError: If the change would reverse an acknowledgement.
        """
        target = EntryStatus(status)
        if not EntryStatus.can_transition(self.status, target):
            raise ValueError(f"invalid status transition {self.status} -> {target}")
        if target is self.status:
            return self
        return dataclasses.replace(self, status=target)

    def sort_key(self) -> tuple[datetime.datetime, str]:
        """Ordering key: creation time, ties broken by id for determinism."""
        return (self.created_at, self.id)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> QueueEntry:
        """Build an entry from a database row or a notification row.

        Args:
            record: Mapping with ``id``, ``created_at``, ``student_name`` and
                optionally ``topic_area`` and ``status`` keys. ``id`` values
                that are not strings (``uuid.UUID`` from asyncpg) are
                converted with ``str()``.

        Raises:
            KeyError: If a required key is missing.
            TypeError: If a field has the wrong type.
            ValueError: If a field fails validation.
        """
        validate_mapping(record, "record")
        raw_id = record["id"]
        if raw_id is None:
            raise ValueError("id must not be null")
        return cls(
            id=raw_id if isinstance(raw_id, str) else str(raw_id),
            created_at=record["created_at"],
            student_name=record["student_name"],
            topic_area=record.get("topic_area"),
            status=EntryStatus(record.get("status") or EntryStatus.WAITING),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-compatible representation of the entry."""
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "student_name": self.student_name,
            "topic_area": self.topic_area,
            "status": str(self.status),
        }
