from dataclasses import dataclass
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from common.config.database import PostgresConfig
from user_storage.models import Column, FieldType
from user_storage.postgres.column_metadata import columns_from_asyncpg_attributes
from user_storage.postgres.executor import (
    PostgresCatalogConnection,
    PostgresQueryExecutor,
    affected_rows,
)
from user_storage.query_executor import CatalogColumn


@dataclass
class FakeType:
    """Test double for asyncpg type metadata."""

    name: str
    oid: int


@dataclass
class FakeAttr:
    """Test double for asyncpg attribute metadata."""

    name: str
    type: FakeType


def _config():
    return PostgresConfig(
        host="localhost", port=5432, db_name="user_storage", user="svc", password="pw"
    )


def _pool_with(conn):
    pool = MagicMock()
    pool.acquire.return_value.__aenter__ = AsyncMock(return_value=conn)
    pool.acquire.return_value.__aexit__ = AsyncMock(return_value=False)
    pool.close = AsyncMock()
    return pool


@pytest.mark.parametrize(
    "status,expected",
    [("UPDATE 3", 3), ("INSERT 0 1", 1), ("UPDATE 0", 0), ("CREATE TABLE", 0), (None, 0)],
)
def test_affected_rows(status, expected):
    """Row counts are parsed from command status tags."""
    assert affected_rows(status) == expected


def test_columns_from_asyncpg_attributes():
    """Result columns are built from attribute OIDs, keeping unmapped ones as strings."""
    attrs = [
        FakeAttr(name="id", type=FakeType(name="int8", oid=20)),
        FakeAttr(name="signup", type=FakeType(name="timestamptz", oid=1184)),
        FakeAttr(name="payload", type=FakeType(name="jsonb", oid=3802)),
    ]

    assert columns_from_asyncpg_attributes(attrs) == [
        Column(name="id", type=FieldType.LONG),
        Column(name="signup", type=FieldType.TIMESTAMP),
        Column(name="payload", type=FieldType.STRING),
    ]


class TestPostgresCatalogConnection:
    """Tests for the asyncpg-backed catalog connection."""

    @pytest.mark.asyncio
    async def test_get_columns(self):
        """Catalog rows become CatalogColumns in order."""
        conn = AsyncMock()
        conn.fetch = AsyncMock(
            return_value=[
                {"column_name": "id", "type_oid": 20},
                {"column_name": "email", "type_oid": 25},
            ]
        )

        columns = await PostgresCatalogConnection(conn).get_columns("acme", "users")

        assert columns == [CatalogColumn("id", 20), CatalogColumn("email", 25)]
        assert conn.fetch.await_args.args[1:] == ("acme", "users")

    @pytest.mark.asyncio
    async def test_get_unique_index_columns(self):
        """Unique index membership is reported as a set of names."""
        conn = AsyncMock()
        conn.fetch = AsyncMock(return_value=[{"column_name": "id"}, {"column_name": "email"}])

        unique = await PostgresCatalogConnection(conn).get_unique_index_columns("acme", "users")

        assert unique == {"id", "email"}

    @pytest.mark.asyncio
    async def test_execute_update_returns_row_count(self):
        """Parameterized updates report affected rows."""
        conn = AsyncMock()
        conn.execute = AsyncMock(return_value="UPDATE 1")

        count = await PostgresCatalogConnection(conn).execute_update("UPDATE x", "Ada", 7)

        assert count == 1
        conn.execute.assert_awaited_once_with("UPDATE x", "Ada", 7)

    @pytest.mark.asyncio
    async def test_fetch_result(self):
        """Prepared statements yield positional rows plus column metadata."""
        statement = MagicMock()
        statement.fetch = AsyncMock(return_value=[{"id": 7, "name": "Ada"}])
        statement.get_attributes = MagicMock(
            return_value=[
                FakeAttr(name="id", type=FakeType(name="int8", oid=20)),
                FakeAttr(name="name", type=FakeType(name="text", oid=25)),
            ]
        )
        conn = AsyncMock()
        conn.prepare = AsyncMock(return_value=statement)

        result = await PostgresCatalogConnection(conn).fetch_result("SELECT 1")

        assert result.rows == [[7, "Ada"]]
        assert [column.name for column in result.columns] == ["id", "name"]
        assert not result.is_failed


class TestPostgresQueryExecutor:
    """Tests for pool lifecycle and query dispatch."""

    @pytest.mark.asyncio
    async def test_init_creates_pool_once(self):
        """init() creates the pool from config and is idempotent."""
        pool = _pool_with(AsyncMock())
        create_pool = AsyncMock(return_value=pool)
        executor = PostgresQueryExecutor(_config())

        with patch("user_storage.postgres.executor.asyncpg.create_pool", create_pool):
            await executor.init()
            await executor.init()

        assert executor.is_initialized
        create_pool.assert_awaited_once()
        assert create_pool.await_args.args[0] == "postgresql://svc:pw@localhost:5432/user_storage"
        assert create_pool.await_args.kwargs["max_size"] == 10

        await executor.close()
        pool.close.assert_awaited_once()
        assert not executor.is_initialized

    @pytest.mark.asyncio
    async def test_init_failure_raises_connection_error(self):
        """Pool creation failures surface as ConnectionError."""
        create_pool = AsyncMock(side_effect=OSError("connection refused"))
        executor = PostgresQueryExecutor(_config())

        with patch("user_storage.postgres.executor.asyncpg.create_pool", create_pool):
            with pytest.raises(ConnectionError, match="Failed to initialize"):
                await executor.init()

        assert not executor.is_initialized

    @pytest.mark.asyncio
    async def test_get_connection_requires_init(self):
        """Connections cannot be acquired before init()."""
        with pytest.raises(RuntimeError, match="not initialized"):
            async with PostgresQueryExecutor(_config()).get_connection():
                pass

    @pytest.mark.asyncio
    async def test_execute_raw_query_returns_result(self):
        """Dispatched queries resolve to their result."""
        statement = MagicMock()
        statement.fetch = AsyncMock(return_value=[{"count": 3}])
        statement.get_attributes = MagicMock(
            return_value=[FakeAttr(name="count", type=FakeType(name="int8", oid=20))]
        )
        conn = AsyncMock()
        conn.prepare = AsyncMock(return_value=statement)
        executor = PostgresQueryExecutor(_config())

        with patch(
            "user_storage.postgres.executor.asyncpg.create_pool",
            AsyncMock(return_value=_pool_with(conn)),
        ):
            await executor.init()

        execution = executor.execute_raw_query("SELECT COUNT(*) FROM x")
        result = await execution.result

        assert execution.query == "SELECT COUNT(*) FROM x"
        assert result.rows == [[3]]
        assert result.columns == [Column(name="count", type=FieldType.LONG)]

    @pytest.mark.asyncio
    async def test_execute_raw_query_reports_failures_in_result(self):
        """Backend failures complete the result instead of raising."""
        executor = PostgresQueryExecutor(_config())

        result = await executor.execute_raw_query("SELECT 1").result

        assert result.is_failed
        assert "not initialized" in result.error.message
