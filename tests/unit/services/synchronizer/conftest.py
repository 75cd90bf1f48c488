"""Shared fixtures and helpers for services.synchronizer test package."""

import asyncio
import datetime
from dataclasses import dataclass, field
from typing import Any

import pytest

from waitroom.core.exceptions import QueryError
from waitroom.models import ALL_CHANGE_KINDS, EntryStatus, QueueEntry
from waitroom.services.synchronizer import QueueSynchronizer, SynchronizerConfig


T0 = datetime.datetime(2024, 3, 1, 10, 0, tzinfo=datetime.UTC)


def _make_entry(entry_id: str, minutes: int = 0, status: str = "waiting", name: str = "") -> QueueEntry:
    return QueueEntry(
        id=entry_id,
        created_at=T0 + datetime.timedelta(minutes=minutes),
        student_name=name or f"student-{entry_id}",
        status=EntryStatus(status),
    )


def _make_row(entry_id: str, minutes: int = 0, status: str = "waiting") -> dict[str, Any]:
    """JSON row image as carried by a change notification."""
    return _make_entry(entry_id, minutes, status).to_dict()


@dataclass
class FakeSubscription:
    callback: Any
    listening: bool = True
    released: bool = False


@dataclass
class FakeQueueBackend:
    """In-memory backing store with hooks for failures and in-flight calls.

    ``fetch_gate`` / ``write_gate`` hold the next fetch or write until set.
    """

    rows: dict[str, QueueEntry] = field(default_factory=dict)
    fetch_error: Exception | None = None
    write_error: Exception | None = None
    subscribe_error: Exception | None = None
    unsubscribe_error: Exception | None = None
    release_error: Exception | None = None
    fetch_gate: asyncio.Event | None = None
    write_gate: asyncio.Event | None = None
    fetch_calls: int = 0
    subscriptions: list[FakeSubscription] = field(default_factory=list)
    unsubscribed: list[FakeSubscription] = field(default_factory=list)
    released: list[FakeSubscription] = field(default_factory=list)

    def seed(self, *entries: QueueEntry) -> None:
        for entry in entries:
            self.rows[entry.id] = entry

    def emit(self, payload: Any) -> None:
        """Deliver a notification to every listening subscriber."""
        for handle in self.subscriptions:
            if handle.listening:
                handle.callback(payload)

    async def _write(self) -> None:
        if self.write_gate is not None:
            await self.write_gate.wait()
        if self.write_error is not None:
            raise self.write_error

    async def fetch_all(self) -> list[QueueEntry]:
        self.fetch_calls += 1
        if self.fetch_gate is not None:
            await self.fetch_gate.wait()
        if self.fetch_error is not None:
            raise self.fetch_error
        return sorted(self.rows.values(), key=QueueEntry.sort_key)

    async def insert(self, student_name: str, topic_area: str | None = None) -> QueueEntry:
        await self._write()
        name = (student_name or "").strip()
        if not name:
            raise QueryError("Student name is required.")
        entry = QueueEntry(
            id=f"new-{len(self.rows) + 1}",
            created_at=T0 + datetime.timedelta(hours=1, minutes=len(self.rows)),
            student_name=name,
            topic_area=topic_area,
        )
        self.rows[entry.id] = entry
        return entry

    async def update_status(self, entry_id: str, status: EntryStatus | str) -> int:
        await self._write()
        entry = self.rows.get(entry_id)
        target = EntryStatus(status)
        if entry is None or not EntryStatus.can_transition(entry.status, target):
            return 0
        self.rows[entry_id] = entry.with_status(target)
        return 1

    async def delete(self, entry_id: str) -> int:
        await self._write()
        return 1 if self.rows.pop(entry_id, None) is not None else 0

    async def subscribe(self, callback, collection=None, event_kinds=ALL_CHANGE_KINDS):
        if self.subscribe_error is not None:
            raise self.subscribe_error
        handle = FakeSubscription(callback)
        self.subscriptions.append(handle)
        return handle

    async def unsubscribe(self, handle: FakeSubscription) -> None:
        self.unsubscribed.append(handle)
        if self.unsubscribe_error is not None:
            raise self.unsubscribe_error
        handle.listening = False

    async def release(self, handle: FakeSubscription) -> None:
        self.released.append(handle)
        if self.release_error is not None:
            raise self.release_error
        handle.released = True
        handle.listening = False


async def _drain(sync: QueueSynchronizer) -> None:
    """Wait for background reloads scheduled by the synchronizer."""
    for _ in range(20):
        pending = list(sync._background)
        if not pending:
            return
        await asyncio.gather(*pending)
        await asyncio.sleep(0)


@pytest.fixture
def backend() -> FakeQueueBackend:
    return FakeQueueBackend()


@pytest.fixture
def sync_config() -> SynchronizerConfig:
    return SynchronizerConfig()


@pytest.fixture
def sync(backend: FakeQueueBackend, sync_config: SynchronizerConfig) -> QueueSynchronizer:
    return QueueSynchronizer(store=backend, config=sync_config)


@pytest.fixture
def make_entry():  # type: ignore[no-untyped-def]
    return _make_entry


@pytest.fixture
def make_row():  # type: ignore[no-untyped-def]
    return _make_row


@pytest.fixture
def drain():  # type: ignore[no-untyped-def]
    return _drain
