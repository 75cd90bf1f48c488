"""Unit tests for waitroom.models.constants."""

from enum import StrEnum

import pytest

from waitroom.models.constants import (
    ALL_CHANGE_KINDS,
    QUEUE_TABLE,
    ChangeKind,
    EntryStatus,
    ServiceName,
)


class TestEntryStatus:
    def test_values(self):
        assert EntryStatus.WAITING == "waiting"
        assert EntryStatus.SEEN == "seen"

    def test_is_str_enum(self):
        assert issubclass(EntryStatus, StrEnum)

    @pytest.mark.parametrize(
        ("current", "target", "allowed"),
        [
            (EntryStatus.WAITING, EntryStatus.SEEN, True),
            (EntryStatus.WAITING, EntryStatus.WAITING, True),
            (EntryStatus.SEEN, EntryStatus.SEEN, True),
            (EntryStatus.SEEN, EntryStatus.WAITING, False),
        ],
    )
    def test_can_transition(self, current, target, allowed):
        assert EntryStatus.can_transition(current, target) is allowed


class TestChangeKind:
    def test_values(self):
        assert {str(k) for k in ChangeKind} == {"INSERT", "UPDATE", "DELETE"}

    def test_all_change_kinds(self):
        assert frozenset(ChangeKind) == ALL_CHANGE_KINDS


class TestNames:
    def test_table_name(self):
        assert QUEUE_TABLE == "queue_requests"

    def test_service_name(self):
        assert ServiceName.SYNCHRONIZER == "synchronizer"
