"""asyncpg-backed query executor for the user-storage engine."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, List, Optional, Set

import asyncpg

from common.config.database import PostgresConfig
from user_storage.error_classification import query_error_from_exception
from user_storage.postgres.column_metadata import columns_from_asyncpg_attributes
from user_storage.query_executor import CatalogColumn, QueryExecution
from user_storage.query_result import QueryResult

logger = logging.getLogger(__name__)

_COLUMNS_SQL = """
    SELECT a.attname AS column_name, a.atttypid AS type_oid
    FROM pg_attribute a
    JOIN pg_class c ON c.oid = a.attrelid
    JOIN pg_namespace n ON n.oid = c.relnamespace
    WHERE n.nspname = $1
      AND c.relname = $2
      AND a.attnum > 0
      AND NOT a.attisdropped
    ORDER BY a.attnum
"""

_UNIQUE_INDEX_COLUMNS_SQL = """
    SELECT DISTINCT a.attname AS column_name
    FROM pg_index i
    JOIN pg_class c ON c.oid = i.indrelid
    JOIN pg_namespace n ON n.oid = c.relnamespace
    JOIN pg_attribute a ON a.attrelid = c.oid AND a.attnum = ANY(i.indkey)
    WHERE n.nspname = $1
      AND c.relname = $2
      AND i.indisunique
"""


def affected_rows(status: Optional[str]) -> int:
    """Parse the row count from a command status tag such as 'UPDATE 3'."""
    if not status:
        return 0
    tail = status.rsplit(" ", 1)[-1]
    return int(tail) if tail.isdigit() else 0


class PostgresCatalogConnection:
    """CatalogConnection over a pooled asyncpg connection."""

    def __init__(self, conn: Any) -> None:
        """Wrap an acquired asyncpg connection."""
        self._conn = conn

    async def get_columns(self, schema: str, table: str) -> List[CatalogColumn]:
        """Return the table's columns in attribute order."""
        rows = await self._conn.fetch(_COLUMNS_SQL, schema, table)
        return [CatalogColumn(row["column_name"], int(row["type_oid"])) for row in rows]

    async def get_unique_index_columns(self, schema: str, table: str) -> Set[str]:
        """Return names of columns that take part in a unique index."""
        rows = await self._conn.fetch(_UNIQUE_INDEX_COLUMNS_SQL, schema, table)
        return {row["column_name"] for row in rows}

    async def execute(self, sql: str) -> str:
        """Execute a statement without parameters."""
        return await self._conn.execute(sql)

    async def execute_update(self, sql: str, *params: Any) -> int:
        """Execute a parameterized DML statement and return the affected row count."""
        return affected_rows(await self._conn.execute(sql, *params))

    async def fetch_result(self, sql: str) -> QueryResult:
        """Run a query and return positional rows with their column metadata."""
        statement = await self._conn.prepare(sql)
        records = await statement.fetch()
        columns = columns_from_asyncpg_attributes(statement.get_attributes())
        return QueryResult(columns=columns, rows=[list(record.values()) for record in records])


class PostgresQueryExecutor:
    """Manages the asyncpg pool and dispatches user-storage queries."""

    def __init__(self, config: Optional[PostgresConfig] = None) -> None:
        """Initialize with explicit config or the environment's."""
        self._config = config
        self._pool: Optional[asyncpg.Pool] = None

    @property
    def is_initialized(self) -> bool:
        """Return True once the pool has been created."""
        return self._pool is not None

    async def init(self) -> None:
        """Create the connection pool."""
        if self._pool is not None:
            return
        config = self._config or PostgresConfig.from_env()
        self._config = config
        try:
            self._pool = await asyncpg.create_pool(
                config.dsn,
                min_size=config.pool_min_size,
                max_size=config.pool_max_size,
                command_timeout=config.command_timeout_seconds,
                server_settings={"application_name": "user_storage"},
            )
        except Exception as e:
            raise ConnectionError(f"Failed to initialize user storage database: {e}") from e
        logger.info(
            "user_storage_pool_established user=%s host=%s db=%s",
            config.user,
            config.host,
            config.db_name,
        )

    async def close(self) -> None:
        """Close the connection pool."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("user_storage_pool_closed")

    @asynccontextmanager
    async def get_connection(self) -> AsyncIterator[PostgresCatalogConnection]:
        """Yield a pooled connection, released when the block exits."""
        if self._pool is None:
            raise RuntimeError("User storage pool not initialized. Call init() first.")
        async with self._pool.acquire() as conn:
            yield PostgresCatalogConnection(conn)

    def execute_raw_query(self, sql: str) -> QueryExecution:
        """Dispatch `sql` on its own pooled connection without waiting for it."""
        return QueryExecution(query=sql, result=asyncio.create_task(self._run(sql)))

    async def _run(self, sql: str) -> QueryResult:
        try:
            async with self.get_connection() as conn:
                return await conn.fetch_result(sql)
        except Exception as exc:
            return QueryResult.error_result(query_error_from_exception(exc))
