"""Backend execution contracts consumed by the user-storage engine."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, AsyncContextManager, List, NamedTuple, Protocol, Set, runtime_checkable

from user_storage.query_result import QueryResult


class CatalogColumn(NamedTuple):
    """A column as reported by the backend catalog, in attribute order."""

    name: str
    type_oid: int


@dataclass
class QueryExecution:
    """Handle for a dispatched query; `result` completes independently of the caller."""

    query: str
    result: "asyncio.Future[QueryResult]"


@runtime_checkable
class CatalogConnection(Protocol):
    """Scoped backend connection exposing catalog introspection and raw statements."""

    async def get_columns(self, schema: str, table: str) -> List[CatalogColumn]:
        """Return the table's columns in catalog order."""
        ...

    async def get_unique_index_columns(self, schema: str, table: str) -> Set[str]:
        """Return names of columns taking part in any unique index of the table."""
        ...

    async def execute(self, sql: str) -> str:
        """Execute a statement without parameters and return its status tag."""
        ...

    async def execute_update(self, sql: str, *params: Any) -> int:
        """Execute a parameterized DML statement and return the affected row count."""
        ...


@runtime_checkable
class QueryExecutor(Protocol):
    """Protocol for asynchronous query dispatch plus scoped connection access."""

    def execute_raw_query(self, sql: str) -> QueryExecution:
        """Dispatch `sql` and return immediately with a handle to its result."""
        ...

    def get_connection(self) -> AsyncContextManager[CatalogConnection]:
        """Acquire a connection released when the context exits."""
        ...
