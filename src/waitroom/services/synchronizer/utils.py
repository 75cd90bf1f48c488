"""Synchronizer utility functions.

Pure patch functions over the ordered entry tuple held by
[QueueState][waitroom.models.queue_state.QueueState]. Each function takes
the current entries and returns a new tuple, sorted by ``(created_at, id)``
and free of duplicate ids; the input is never modified.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from waitroom.models import (
    DeleteNotification,
    EntryStatus,
    InsertNotification,
    UpdateNotification,
    sort_entries,
)


if TYPE_CHECKING:
    from collections.abc import Iterable

    from waitroom.models import QueueEntry


Entries = tuple["QueueEntry", ...]


@dataclass(slots=True)
class SyncCounters:
    """Running totals since the synchronizer was activated."""

    loads: int = 0
    load_failures: int = 0
    applied: int = 0
    ignored: int = 0
    reloads_requested: int = 0
    mutation_failures: int = 0

    def reset(self) -> None:
        self.loads = 0
        self.load_failures = 0
        self.applied = 0
        self.ignored = 0
        self.reloads_requested = 0
        self.mutation_failures = 0


def entries_from_snapshot(entries: Iterable[QueueEntry]) -> Entries:
    """Build an entry tuple from a full fetch, keeping the last row per id."""
    by_id: dict[str, QueueEntry] = {}
    for entry in entries:
        by_id[entry.id] = entry
    return sort_entries(by_id.values())


def upsert_entry(entries: Entries, entry: QueueEntry) -> Entries:
    """Insert *entry*, replacing any entry with the same id.

    A re-delivered insert therefore leaves exactly one entry for its id.
    """
    return sort_entries((*(e for e in entries if e.id != entry.id), entry))


def replace_entry(entries: Entries, entry: QueueEntry) -> Entries:
    """Replace the entry with *entry*'s id. An unknown id leaves *entries* as is."""
    if not any(e.id == entry.id for e in entries):
        return entries
    return sort_entries(entry if e.id == entry.id else e for e in entries)


def remove_entry(entries: Entries, entry_id: str) -> Entries:
    """Drop the entry with *entry_id*. Removing an absent id is a no-op."""
    if not any(e.id == entry_id for e in entries):
        return entries
    return tuple(e for e in entries if e.id != entry_id)


def mark_entry_seen(entries: Entries, entry_id: str) -> Entries:
    """Set the status of *entry_id* to ``seen``. Absent ids are ignored."""
    return tuple(
        e.with_status(EntryStatus.SEEN) if e.id == entry_id else e for e in entries
    )


def apply_change(
    entries: Entries,
    change: InsertNotification | UpdateNotification | DeleteNotification,
) -> Entries:
    """Apply one normalized change notification to *entries*."""
    if isinstance(change, InsertNotification):
        return upsert_entry(entries, change.entry)
    if isinstance(change, UpdateNotification):
        return replace_entry(entries, change.entry)
    return remove_entry(entries, change.entry_id)
