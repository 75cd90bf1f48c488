"""Immutable snapshot of the synchronizer's view of the queue.

Every change to the client-side queue produces a new ``QueueState``
instead of mutating the previous one, so any reader holding a reference
always observes a consistent collection.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .constants import EntryStatus
from .queue_entry import QueueEntry


if TYPE_CHECKING:
    from collections.abc import Iterable


def sort_entries(entries: Iterable[QueueEntry]) -> tuple[QueueEntry, ...]:
    """Return *entries* ordered by ascending ``created_at``."""
    return tuple(sorted(entries, key=QueueEntry.sort_key))


@dataclass(frozen=True, slots=True)
class QueueState:
    """Ordered queue entries plus load/mutation status.

    Attributes:
        entries: Entries sorted by ascending ``created_at``. Ids are unique.
        loading: Whether a full load is in flight.
        last_error: Message of the most recent failed load, cleared by the
            next successful one.
        mutation_error: Message of the most recent failed tutor action,
            cleared by the next successful action.
    """

    entries: tuple[QueueEntry, ...] = field(default=())
    loading: bool = False
    last_error: str | None = None
    mutation_error: str | None = None

    def __post_init__(self) -> None:
        entries = sort_entries(self.entries)
        ids = [entry.id for entry in entries]
        if len(ids) != len(set(ids)):
            raise ValueError("entries contain duplicate ids")
        object.__setattr__(self, "entries", entries)

    @property
    def ids(self) -> tuple[str, ...]:
        return tuple(entry.id for entry in self.entries)

    @property
    def waiting(self) -> tuple[QueueEntry, ...]:
        return tuple(e for e in self.entries if e.status is EntryStatus.WAITING)

    @property
    def seen(self) -> tuple[QueueEntry, ...]:
        return tuple(e for e in self.entries if e.status is EntryStatus.SEEN)

    def get(self, entry_id: str) -> QueueEntry | None:
        """Return the entry with *entry_id*, or ``None`` if absent."""
        for entry in self.entries:
            if entry.id == entry_id:
                return entry
        return None

    def replace(self, **changes: object) -> QueueState:
        """Return a copy with *changes* applied (entries are re-sorted)."""
        return dataclasses.replace(self, **changes)  # type: ignore[arg-type]

    def __len__(self) -> int:
        return len(self.entries)
