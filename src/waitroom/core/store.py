"""
Queue backing store built on PostgreSQL.

[QueueStore][waitroom.core.store.QueueStore] is the source of truth for the
waiting-room queue. It exposes the operations every client relies on:

* ``fetch_all()``: full collection ordered by ``created_at`` ascending.
* ``insert()`` / ``update_status()`` / ``delete()``: row mutations.
* ``subscribe()`` / ``unsubscribe()`` / ``release()``: a change stream fed
  by a row trigger calling ``pg_notify`` (see
  ``deployments/postgres/init/01_queue_requests.sql``).

Notifications are delivered at most once and in no guaranteed order. The
payload is handed to the subscriber untouched apart from JSON decoding.
Normalization belongs to
[parse_notification()][waitroom.models.notification.parse_notification].

Uses composition with [Pool][waitroom.core.pool.Pool] and implements an async
context manager for pool lifecycle handling.

Examples:
    ```python
    store = QueueStore.from_yaml("config/store.yaml")

    async with store:
        entry = await store.insert("Alice", "recursion")
        handle = await store.subscribe(print)
        ...
        await store.unsubscribe(handle)
        await store.release(handle)
    ```
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any, Protocol

import asyncpg
from pydantic import BaseModel, Field, field_validator

from waitroom.models import ALL_CHANGE_KINDS, QUEUE_TABLE, ChangeKind, EntryStatus, QueueEntry
from waitroom.models.notification import decode_payload, extract_kind

from .exceptions import ConnectionPoolError, QueryError, StoreError, SubscriptionError
from .logger import Logger
from .pool import Pool, PoolConfig
from .yaml import load_yaml


_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_]{0,62}$")
_MIN_TIMEOUT_SECONDS = 0.1

NotificationCallback = Callable[[Any], None]
"""Receives one decoded notification payload (or the raw text if undecodable)."""


def channel_for(collection: str) -> str:
    """Return the ``NOTIFY`` channel carrying changes of *collection*."""
    return f"{collection}_changes"


class QueueBackend(Protocol):
    """Operations a client needs from the queue's source of truth.

    [QueueStore][waitroom.core.store.QueueStore] is the production
    implementation; tests substitute in-memory fakes. Subscription handles
    are opaque to callers and only passed back to ``unsubscribe`` and
    ``release``.
    """

    async def fetch_all(self) -> list[QueueEntry]: ...

    async def insert(self, student_name: str, topic_area: str | None = None) -> QueueEntry: ...

    async def update_status(self, entry_id: str, status: EntryStatus | str) -> int: ...

    async def delete(self, entry_id: str) -> int: ...

    async def subscribe(
        self,
        callback: NotificationCallback,
        collection: str | None = None,
        event_kinds: frozenset[ChangeKind] = ALL_CHANGE_KINDS,
    ) -> Any: ...

    async def unsubscribe(self, handle: Any) -> None: ...

    async def release(self, handle: Any) -> None: ...


# ---------------------------------------------------------------------------
# Configuration Models
# ---------------------------------------------------------------------------


class StoreTimeoutsConfig(BaseModel):
    """Timeout settings for store operations (seconds, ``None`` = no limit)."""

    query: float | None = Field(default=10.0, description="Query timeout (seconds)")

    @field_validator("query", mode="after")
    @classmethod
    def validate_timeout(cls, v: float | None) -> float | None:
        if v is not None and v < _MIN_TIMEOUT_SECONDS:
            raise ValueError(
                f"Timeout must be None (infinite) or >= {_MIN_TIMEOUT_SECONDS} seconds"
            )
        return v


class StoreConfig(BaseModel):
    """Aggregate configuration for the queue store."""

    table: str = Field(default=QUEUE_TABLE, description="Table holding queue entries")
    timeouts: StoreTimeoutsConfig = Field(default_factory=StoreTimeoutsConfig)

    @field_validator("table")
    @classmethod
    def validate_table(cls, v: str) -> str:
        """Only plain lowercase identifiers are interpolated into SQL."""
        if not _IDENTIFIER.match(v):
            raise ValueError(f"invalid table name: {v!r}")
        return v


# ---------------------------------------------------------------------------
# Subscription Handle
# ---------------------------------------------------------------------------


class Subscription:
    """Handle for one open change stream.

    Owns a dedicated pooled connection holding a ``LISTEN`` on the
    collection's channel. The handle goes through two teardown steps:
    [QueueStore.unsubscribe()][waitroom.core.store.QueueStore.unsubscribe]
    stops delivery, [QueueStore.release()][waitroom.core.store.QueueStore.release]
    returns the connection to the pool. Both are idempotent.
    """

    def __init__(
        self,
        connection: asyncpg.Connection[asyncpg.Record],
        collection: str,
        event_kinds: frozenset[ChangeKind],
        callback: NotificationCallback,
    ) -> None:
        self.connection = connection
        self.collection = collection
        self.channel = channel_for(collection)
        self.event_kinds = event_kinds
        self._callback = callback
        self._listening = False
        self._released = False
        self._logger = Logger("subscription")

    @property
    def is_listening(self) -> bool:
        return self._listening

    @property
    def is_released(self) -> bool:
        return self._released

    def _wants(self, payload: Mapping[str, Any]) -> bool:
        table = payload.get("table")
        if table is not None and table != self.collection:
            return False
        if self.event_kinds == ALL_CHANGE_KINDS:
            return True
        kind = extract_kind(payload)
        return kind is not None and kind in self.event_kinds

    def _on_notify(
        self,
        _connection: object,
        _pid: int,
        _channel: str,
        payload: str,
    ) -> None:
        """asyncpg listener: filter, then hand the payload to the subscriber."""
        if not self._listening:
            return

        decoded = decode_payload(payload)
        if decoded is not None and not self._wants(decoded):
            return

        try:
            self._callback(decoded if decoded is not None else payload)
        except Exception as e:  # Intentionally broad: one bad callback must not drop the LISTEN
            self._logger.error("notification_callback_failed", channel=self.channel, error=str(e))

    def __repr__(self) -> str:
        return (
            f"Subscription(channel={self.channel}, listening={self._listening}, "
            f"released={self._released})"
        )


# ---------------------------------------------------------------------------
# QueueStore
# ---------------------------------------------------------------------------


class QueueStore:
    """PostgreSQL-backed queue collection with a change stream.

    All query methods raise [QueryError][waitroom.core.exceptions.QueryError]
    for rejected statements and
    [ConnectionPoolError][waitroom.core.exceptions.ConnectionPoolError] when
    the database is unreachable or a query times out.
    """

    def __init__(self, pool: Pool | None = None, config: StoreConfig | None = None) -> None:
        self._pool = pool or Pool()
        self._config = config or StoreConfig()
        self._logger = Logger("store")

    @property
    def config(self) -> StoreConfig:
        return self._config

    @property
    def pool(self) -> Pool:
        return self._pool

    @property
    def table(self) -> str:
        return self._config.table

    @classmethod
    def from_yaml(cls, config_path: str) -> QueueStore:
        """Create a store from a YAML file with an optional ``pool`` section."""
        return cls.from_dict(load_yaml(config_path))

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> QueueStore:
        """Create a store from a dictionary.

        The ``pool`` key builds the [Pool][waitroom.core.pool.Pool]; the
        remaining keys are [StoreConfig][waitroom.core.store.StoreConfig]
        fields.
        """
        pool = Pool.from_dict(config_dict["pool"]) if "pool" in config_dict else None
        store_dict = {k: v for k, v in config_dict.items() if k != "pool"}
        config = StoreConfig(**store_dict) if store_dict else None
        return cls(pool=pool, config=config)

    @contextmanager
    def _query_errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except StoreError:
            raise
        except asyncpg.PostgresError as e:
            self._logger.error("query_error", operation=operation, error=str(e))
            raise QueryError(f"{operation} failed: {e}") from e
        except (TimeoutError, asyncpg.InterfaceError, OSError) as e:
            message = str(e) or type(e).__name__
            self._logger.error("query_unavailable", operation=operation, error=message)
            raise ConnectionPoolError(f"{operation} failed: {message}") from e

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def fetch_all(self) -> list[QueueEntry]:
        """Return every entry ordered by ``created_at`` ascending."""
        query = (
            f"SELECT id, created_at, student_name, topic_area, status "  # noqa: S608
            f"FROM {self.table} ORDER BY created_at ASC, id ASC"
        )
        with self._query_errors("fetch_all"):
            rows = await self._pool.fetch(query, timeout=self._config.timeouts.query)
        return [QueueEntry.from_record(dict(row)) for row in rows]

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def insert(self, student_name: str, topic_area: str | None = None) -> QueueEntry:
        """Insert a new ``waiting`` entry and return it.

        ``student_name`` is trimmed and must not be empty; a blank
        ``topic_area`` is stored as ``NULL``.

        Raises:
            QueryError: If validation fails or the database rejects the row.
        """
        name = (student_name or "").strip()
        if not name:
            raise QueryError("Student name is required.")
        topic = (topic_area or "").strip() or None

        query = (
            f"INSERT INTO {self.table} (student_name, topic_area, status) "  # noqa: S608
            f"VALUES ($1, $2, $3) "
            f"RETURNING id, created_at, student_name, topic_area, status"
        )
        with self._query_errors("insert"):
            row = await self._pool.fetchrow(
                query, name, topic, str(EntryStatus.WAITING), timeout=self._config.timeouts.query
            )
        if row is None:
            raise QueryError("insert returned no row")
        return QueueEntry.from_record(dict(row))

    async def update_status(self, entry_id: str, status: EntryStatus | str) -> int:
        """Set the status of an entry; return the number of rows changed.

        Only forward transitions are applied (see
        [EntryStatus.can_transition][waitroom.models.constants.EntryStatus.can_transition]).
        An unknown id or a disallowed transition changes nothing and
        returns ``0``.

        Raises:
            QueryError: If *status* is not a valid status or the update fails.
        """
        try:
            target = EntryStatus(status)
        except ValueError as e:
            raise QueryError(f"invalid status: {status!r}") from e
        allowed = [str(s) for s in EntryStatus if EntryStatus.can_transition(s, target)]

        query = (
            f"UPDATE {self.table} SET status = $2 "  # noqa: S608
            f"WHERE id = $1 AND status = ANY($3::text[])"
        )
        with self._query_errors("update_status"):
            result = await self._pool.execute(
                query, entry_id, str(target), allowed, timeout=self._config.timeouts.query
            )
        return _affected_rows(result)

    async def delete(self, entry_id: str) -> int:
        """Delete an entry; return the number of rows removed (0 if absent)."""
        query = f"DELETE FROM {self.table} WHERE id = $1"  # noqa: S608
        with self._query_errors("delete"):
            result = await self._pool.execute(query, entry_id, timeout=self._config.timeouts.query)
        return _affected_rows(result)

    # -------------------------------------------------------------------------
    # Change Stream
    # -------------------------------------------------------------------------

    async def subscribe(
        self,
        callback: NotificationCallback,
        collection: str | None = None,
        event_kinds: frozenset[ChangeKind] = ALL_CHANGE_KINDS,
    ) -> Subscription:
        """Open a change stream for *collection* (default: the queue table).

        Args:
            callback: Called on the event loop with each notification payload.
            collection: Collection whose changes are wanted.
            event_kinds: Change kinds to deliver; all kinds by default.

        Raises:
            SubscriptionError: If the ``LISTEN`` could not be established.
        """
        collection = collection or self.table
        try:
            conn = await self._pool.acquire_dedicated()
        except (ConnectionError, RuntimeError) as e:
            raise SubscriptionError(f"cannot open change stream: {e}") from e

        handle = Subscription(conn, collection, frozenset(event_kinds), callback)
        try:
            await conn.add_listener(handle.channel, handle._on_notify)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            await self._pool.release_dedicated(conn)
            raise SubscriptionError(f"LISTEN {handle.channel} failed: {e}") from e

        handle._listening = True
        self._logger.info(
            "subscription_opened",
            channel=handle.channel,
            event_kinds=",".join(sorted(handle.event_kinds)),
        )
        return handle

    async def unsubscribe(self, handle: Subscription) -> None:
        """Stop delivering notifications to *handle*. Idempotent."""
        if not handle._listening:
            return
        handle._listening = False
        await handle.connection.remove_listener(handle.channel, handle._on_notify)
        self._logger.info("subscription_closed", channel=handle.channel)

    async def release(self, handle: Subscription) -> None:
        """Return the handle's dedicated connection to the pool. Idempotent."""
        if handle._released:
            return
        handle._released = True
        handle._listening = False
        await self._pool.release_dedicated(handle.connection)
        self._logger.debug("subscription_released", channel=handle.channel)

    # -------------------------------------------------------------------------
    # Context Manager
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> QueueStore:
        await self._pool.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any | None,
    ) -> None:
        await self._pool.close()

    def __repr__(self) -> str:
        return f"QueueStore(table={self.table}, pool={self._pool!r})"


def _affected_rows(status: str) -> int:
    """Extract the row count from a command tag such as ``"UPDATE 1"``."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError, IndexError):
        return 0
