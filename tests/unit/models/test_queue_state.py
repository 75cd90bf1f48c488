"""Unit tests for QueueState and sort_entries."""

import datetime

import pytest

from waitroom.models import EntryStatus, QueueEntry, QueueState, sort_entries


T0 = datetime.datetime(2024, 3, 1, 10, 0, tzinfo=datetime.UTC)


def _entry(entry_id, minutes=0, status=EntryStatus.WAITING):
    return QueueEntry(
        id=entry_id,
        created_at=T0 + datetime.timedelta(minutes=minutes),
        student_name=f"student-{entry_id}",
        status=status,
    )


class TestSortEntries:
    def test_orders_by_created_at(self):
        entries = sort_entries([_entry("c", 2), _entry("a", 0), _entry("b", 1)])
        assert [e.id for e in entries] == ["a", "b", "c"]

    def test_ties_broken_by_id(self):
        entries = sort_entries([_entry("z", 0), _entry("m", 0)])
        assert [e.id for e in entries] == ["m", "z"]


class TestQueueState:
    def test_defaults(self):
        state = QueueState()
        assert state.entries == ()
        assert state.loading is False
        assert state.last_error is None
        assert state.mutation_error is None
        assert len(state) == 0

    def test_entries_sorted_on_construction(self):
        state = QueueState(entries=(_entry("b", 5), _entry("a", 1)))
        assert state.ids == ("a", "b")

    def test_duplicate_ids_rejected(self):
        with pytest.raises(ValueError, match="duplicate ids"):
            QueueState(entries=(_entry("a", 0), _entry("a", 1)))

    def test_waiting_and_seen_partitions(self):
        state = QueueState(
            entries=(_entry("a", 0), _entry("b", 1, EntryStatus.SEEN), _entry("c", 2))
        )
        assert [e.id for e in state.waiting] == ["a", "c"]
        assert [e.id for e in state.seen] == ["b"]

    def test_get(self):
        state = QueueState(entries=(_entry("a"),))
        assert state.get("a") is not None
        assert state.get("missing") is None

    def test_replace_resorts(self):
        state = QueueState(entries=(_entry("a", 1),))
        updated = state.replace(entries=(_entry("b", 3), _entry("c", 0)), loading=True)
        assert updated.ids == ("c", "b")
        assert updated.loading is True
        assert state.ids == ("a",)
