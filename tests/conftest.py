"""
Pytest configuration and shared fixtures for waitroom tests.

Provides:
- Mock fixtures for asyncpg, Pool and QueueStore
- Sample queue entry factories and notification payloads
- Custom pytest markers for test categorization
"""

import datetime
import logging
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from waitroom.core.pool import DatabaseConfig, Pool, PoolConfig
from waitroom.core.store import QueueStore
from waitroom.models import EntryStatus, QueueEntry


BASE_TIME = datetime.datetime(2024, 3, 1, 10, 0, tzinfo=datetime.UTC)


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


@pytest.fixture(autouse=True)
def db_password_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Every test sees a database password, as a deployment would."""
    monkeypatch.setenv("WAITROOM_DB_PASSWORD", "test_password")


# ============================================================================
# Mock Fixtures
# ============================================================================


@pytest.fixture
def mock_connection() -> MagicMock:
    """Create a mock asyncpg connection."""
    conn = MagicMock()
    conn.fetch = AsyncMock(return_value=[])
    conn.fetchrow = AsyncMock(return_value=None)
    conn.execute = AsyncMock(return_value="UPDATE 0")
    conn.add_listener = AsyncMock()
    conn.remove_listener = AsyncMock()
    return conn


@pytest.fixture
def mock_asyncpg_pool(mock_connection: MagicMock) -> MagicMock:
    """Create a mock asyncpg pool.

    ``acquire()`` works both as an async context manager (query path) and
    as an awaitable (dedicated listener connections).
    """
    pool = MagicMock()
    pool.close = AsyncMock()
    pool.release = AsyncMock()

    class _Acquire:
        def __init__(self, *args: Any, **kwargs: Any) -> None:
            pass

        async def __aenter__(self) -> MagicMock:
            return mock_connection

        async def __aexit__(self, *args: Any) -> None:
            return None

        def __await__(self):  # type: ignore[no-untyped-def]
            async def _conn() -> MagicMock:
                return mock_connection

            return _conn().__await__()

    pool.acquire = MagicMock(side_effect=_Acquire)

    return pool


@pytest.fixture
def mock_pool(mock_asyncpg_pool: MagicMock, mock_connection: MagicMock) -> Pool:
    """Create a connected Pool with mocked internals."""
    config = PoolConfig(
        database=DatabaseConfig(
            host="localhost",
            port=5432,
            database="test_db",
            user="test_user",
        )
    )
    pool = Pool(config=config)
    pool._pool = mock_asyncpg_pool
    pool._is_connected = True

    # Store mock connection for easy access in tests
    pool._mock_connection = mock_connection  # type: ignore[attr-defined]

    return pool


@pytest.fixture
def mock_store(mock_pool: Pool) -> QueueStore:
    """Create a QueueStore backed by the mocked pool."""
    return QueueStore(pool=mock_pool)


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def pool_config_dict() -> dict[str, Any]:
    """Sample pool configuration dictionary."""
    return {
        "database": {
            "host": "localhost",
            "port": 5432,
            "database": "test_db",
            "user": "test_user",
        },
        "limits": {
            "min_size": 2,
            "max_size": 10,
            "max_inactive_connection_lifetime": 60.0,
        },
        "timeouts": {
            "acquisition": 5.0,
        },
        "retry": {
            "max_attempts": 2,
            "initial_delay": 0.5,
            "max_delay": 2.0,
            "exponential_backoff": True,
        },
        "server_settings": {
            "application_name": "test_app",
            "timezone": "UTC",
        },
    }


@pytest.fixture
def store_config_dict(pool_config_dict: dict[str, Any]) -> dict[str, Any]:
    """Sample QueueStore configuration dictionary."""
    return {
        "pool": pool_config_dict,
        "table": "queue_requests",
        "timeouts": {"query": 5.0},
    }


# ============================================================================
# Sample Data Fixtures
# ============================================================================


def make_entry(
    entry_id: str = "a",
    minutes: int = 0,
    student_name: str = "Alice",
    topic_area: str | None = None,
    status: EntryStatus | str = EntryStatus.WAITING,
) -> QueueEntry:
    """Build an entry created ``minutes`` after ``BASE_TIME``."""
    return QueueEntry(
        id=entry_id,
        created_at=BASE_TIME + datetime.timedelta(minutes=minutes),
        student_name=student_name,
        topic_area=topic_area,
        status=status,
    )


def make_record(
    entry_id: str = "a",
    minutes: int = 0,
    student_name: str = "Alice",
    topic_area: str | None = None,
    status: str = "waiting",
) -> dict[str, Any]:
    """Build a JSON-style row image, as carried by change notifications."""
    return {
        "id": entry_id,
        "created_at": (BASE_TIME + datetime.timedelta(minutes=minutes)).isoformat(),
        "student_name": student_name,
        "topic_area": topic_area,
        "status": status,
    }


@pytest.fixture
def entry_factory():  # type: ignore[no-untyped-def]
    return make_entry


@pytest.fixture
def record_factory():  # type: ignore[no-untyped-def]
    return make_record


# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: marks tests as unit tests (no external dependencies)")
    config.addinivalue_line("markers", "slow: marks tests as slow running")


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
