"""
Unit tests for core.pool module.

Tests:
- Configuration models (DatabaseConfig, limits, timeouts, retry)
- Factory methods (from_yaml, from_dict)
- Connection lifecycle (connect, close) with retry
- Query methods with retry on connection-level errors
- Dedicated connections for listeners
"""

from unittest.mock import AsyncMock, MagicMock, patch

import asyncpg
import pytest
from pydantic import ValidationError

from waitroom.core.exceptions import ConnectionPoolError
from waitroom.core.pool import (
    DatabaseConfig,
    Pool,
    PoolConfig,
    PoolLimitsConfig,
    PoolRetryConfig,
    ServerSettingsConfig,
)


# ============================================================================
# Configuration
# ============================================================================


class TestDatabaseConfig:
    def test_defaults(self):
        config = DatabaseConfig()
        assert config.host == "localhost"
        assert config.port == 5432
        assert config.database == "waitroom"
        assert config.user == "waitroom"
        assert config.password.get_secret_value() == "test_password"

    def test_explicit_password(self):
        config = DatabaseConfig(password="explicit")
        assert config.password.get_secret_value() == "explicit"

    def test_custom_password_env(self, monkeypatch):
        monkeypatch.setenv("OTHER_PASSWORD", "other")
        config = DatabaseConfig(password_env="OTHER_PASSWORD")
        assert config.password.get_secret_value() == "other"

    def test_password_missing_raises(self, monkeypatch):
        monkeypatch.delenv("WAITROOM_DB_PASSWORD", raising=False)
        with pytest.raises(ValidationError, match="WAITROOM_DB_PASSWORD"):
            DatabaseConfig()

    def test_password_not_in_repr(self):
        assert "test_password" not in repr(DatabaseConfig())


class TestLimitsAndRetry:
    def test_limits_defaults(self):
        limits = PoolLimitsConfig()
        assert (limits.min_size, limits.max_size) == (1, 5)

    def test_max_below_min_rejected(self):
        with pytest.raises(ValidationError, match="max_size"):
            PoolLimitsConfig(min_size=5, max_size=2)

    def test_retry_max_delay_below_initial_rejected(self):
        with pytest.raises(ValidationError, match="max_delay"):
            PoolRetryConfig(initial_delay=2.0, max_delay=1.0)

    def test_server_settings_defaults(self):
        settings = ServerSettingsConfig()
        assert settings.application_name == "waitroom"
        assert settings.timezone == "UTC"


class TestFactories:
    def test_from_dict(self, pool_config_dict):
        pool = Pool.from_dict(pool_config_dict)
        assert pool.config.database.database == "test_db"
        assert pool.config.limits.max_size == 10
        assert pool.config.retry.max_attempts == 2
        assert pool.is_connected is False

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "pool.yaml"
        path.write_text("database:\n  host: db\nlimits:\n  max_size: 3\n")
        pool = Pool.from_yaml(str(path))
        assert pool.config.database.host == "db"
        assert pool.config.limits.max_size == 3


class TestRetryDelay:
    def test_exponential(self):
        pool = Pool(PoolConfig(retry=PoolRetryConfig(initial_delay=0.5, max_delay=3.0)))
        assert [pool._retry_delay(i) for i in range(4)] == [0.5, 1.0, 2.0, 3.0]

    def test_linear(self):
        pool = Pool(
            PoolConfig(
                retry=PoolRetryConfig(initial_delay=0.5, max_delay=10.0, exponential_backoff=False)
            )
        )
        assert [pool._retry_delay(i) for i in range(3)] == [0.5, 1.0, 1.5]


# ============================================================================
# Lifecycle
# ============================================================================


class TestConnect:
    @pytest.mark.asyncio
    async def test_connect_success(self):
        pool = Pool()
        created = MagicMock()
        with patch("waitroom.core.pool.asyncpg.create_pool", AsyncMock(return_value=created)) as cp:
            await pool.connect()
            await pool.connect()
        assert pool.is_connected is True
        assert pool._pool is created
        cp.assert_awaited_once()
        kwargs = cp.call_args.kwargs
        assert kwargs["password"] == "test_password"
        assert kwargs["server_settings"]["application_name"] == "waitroom"

    @pytest.mark.asyncio
    async def test_connect_retries_then_succeeds(self):
        pool = Pool()
        created = MagicMock()
        create_pool = AsyncMock(side_effect=[OSError("refused"), created])
        with (
            patch("waitroom.core.pool.asyncpg.create_pool", create_pool),
            patch("waitroom.core.pool.asyncio.sleep", AsyncMock()) as sleep,
        ):
            await pool.connect()
        assert pool.is_connected is True
        sleep.assert_awaited_once_with(0.5)

    @pytest.mark.asyncio
    async def test_connect_exhausts_retries(self):
        pool = Pool()
        with (
            patch(
                "waitroom.core.pool.asyncpg.create_pool",
                AsyncMock(side_effect=OSError("refused")),
            ),
            patch("waitroom.core.pool.asyncio.sleep", AsyncMock()),
            pytest.raises(ConnectionPoolError, match="after 3 attempts"),
        ):
            await pool.connect()
        assert pool.is_connected is False

    @pytest.mark.asyncio
    async def test_close(self, mock_pool, mock_asyncpg_pool):
        await mock_pool.close()
        await mock_pool.close()
        mock_asyncpg_pool.close.assert_awaited_once()
        assert mock_pool.is_connected is False

    @pytest.mark.asyncio
    async def test_context_manager(self):
        pool = Pool()
        created = MagicMock()
        created.close = AsyncMock()
        with patch("waitroom.core.pool.asyncpg.create_pool", AsyncMock(return_value=created)):
            async with pool:
                assert pool.is_connected
        assert not pool.is_connected


# ============================================================================
# Queries
# ============================================================================


class TestQueries:
    @pytest.mark.asyncio
    async def test_not_connected_raises(self):
        with pytest.raises(RuntimeError, match="not connected"):
            await Pool().fetch("SELECT 1")

    @pytest.mark.asyncio
    async def test_fetch(self, mock_pool, mock_connection):
        mock_connection.fetch = AsyncMock(return_value=[{"id": "a"}])
        rows = await mock_pool.fetch("SELECT $1", 1, timeout=2.0)
        assert rows == [{"id": "a"}]
        mock_connection.fetch.assert_awaited_once_with("SELECT $1", 1, timeout=2.0)

    @pytest.mark.asyncio
    async def test_execute_returns_status(self, mock_pool, mock_connection):
        mock_connection.execute = AsyncMock(return_value="DELETE 1")
        assert await mock_pool.execute("DELETE ...") == "DELETE 1"

    @pytest.mark.asyncio
    async def test_retry_on_interface_error(self, mock_pool, mock_connection):
        mock_connection.fetchrow = AsyncMock(
            side_effect=[asyncpg.InterfaceError("closed"), {"id": "a"}]
        )
        with patch("waitroom.core.pool.asyncio.sleep", AsyncMock()):
            row = await mock_pool.fetchrow("SELECT 1")
        assert row == {"id": "a"}
        assert mock_connection.fetchrow.await_count == 2

    @pytest.mark.asyncio
    async def test_retry_exhausted(self, mock_pool, mock_connection):
        mock_connection.fetch = AsyncMock(side_effect=asyncpg.InterfaceError("closed"))
        with (
            patch("waitroom.core.pool.asyncio.sleep", AsyncMock()),
            pytest.raises(ConnectionPoolError, match="fetch failed after 3 attempts"),
        ):
            await mock_pool.fetch("SELECT 1")

    @pytest.mark.asyncio
    async def test_query_errors_not_retried(self, mock_pool, mock_connection):
        mock_connection.execute = AsyncMock(side_effect=asyncpg.PostgresError("syntax"))
        with pytest.raises(asyncpg.PostgresError):
            await mock_pool.execute("BAD")
        assert mock_connection.execute.await_count == 1


class TestDedicatedConnections:
    @pytest.mark.asyncio
    async def test_acquire_and_release(self, mock_pool, mock_asyncpg_pool, mock_connection):
        conn = await mock_pool.acquire_dedicated()
        assert conn is mock_connection
        mock_asyncpg_pool.acquire.assert_called_with(timeout=10.0)

        await mock_pool.release_dedicated(conn)
        mock_asyncpg_pool.release.assert_awaited_once_with(mock_connection)

    @pytest.mark.asyncio
    async def test_acquire_timeout_wrapped(self, mock_pool, mock_asyncpg_pool):
        mock_asyncpg_pool.acquire = MagicMock(side_effect=TimeoutError())
        with pytest.raises(ConnectionPoolError, match="dedicated connection"):
            await mock_pool.acquire_dedicated()

    @pytest.mark.asyncio
    async def test_release_after_close_is_noop(self, mock_pool, mock_asyncpg_pool):
        conn = await mock_pool.acquire_dedicated()
        await mock_pool.close()
        await mock_pool.release_dedicated(conn)
        mock_asyncpg_pool.release.assert_not_awaited()
