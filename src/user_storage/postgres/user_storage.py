import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlglot import exp

from common.errors import StorageAccessError, UserStorageError
from common.interfaces.user_storage import UserStorage
from common.sql.identifiers import check_project, qualified_table, quote_identifier
from user_storage.constants import PRIMARY_KEY, USER_TABLE
from user_storage.error_classification import classify_error, sql_state_of
from user_storage.expressions import ExpressionFormatter
from user_storage.filter_compiler import FilterCompiler
from user_storage.metadata import MetadataResolver
from user_storage.models import Column, EventFilter, Sorting, User
from user_storage.orchestrator import UserFilterOrchestrator
from user_storage.property_mutator import PropertyMutator
from user_storage.query_executor import QueryExecutor
from user_storage.query_result import QueryResult
from user_storage.schema_cache import PropertySchemaBackend, PropertySchemaCache
from user_storage.user_ids import coerce_user_id

logger = logging.getLogger(__name__)


class PostgresUserStorage(UserStorage):
    """PostgreSQL implementation of per-tenant user storage."""

    def __init__(
        self,
        executor: QueryExecutor,
        formatter: Optional[ExpressionFormatter] = None,
        cache_backend: Optional[PropertySchemaBackend] = None,
        float_storage_type: Optional[str] = None,
    ) -> None:
        """Wire the resolver, cache, compiler, orchestrator and mutator around `executor`."""
        self._executor = executor
        self._resolver = MetadataResolver(executor)
        self._cache = PropertySchemaCache(self._resolver, backend=cache_backend)
        self._orchestrator = UserFilterOrchestrator(
            executor, self._resolver, FilterCompiler(formatter)
        )
        self._mutator = PropertyMutator(executor, self._cache, float_storage_type)

    @property
    def schema_cache(self) -> PropertySchemaCache:
        """Return the property schema cache used for writes."""
        return self._cache

    async def create(self, project: str, properties: Dict[str, Any]) -> None:
        """Bulk user creation is not supported by this backend."""
        raise NotImplementedError("Creating users is not supported by the Postgres user storage.")

    async def filter(
        self,
        project: str,
        filter_expression: Optional[exp.Expression] = None,
        event_filters: Optional[Sequence[EventFilter]] = None,
        sorting: Optional[Sorting] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> QueryResult:
        """Return a page of users matching the property and behavioral filters."""
        return await self._orchestrator.filter(
            project,
            filter_expression=filter_expression,
            event_filters=event_filters,
            sorting=sorting,
            limit=limit,
            offset=offset,
        )

    async def get_metadata(self, project: str) -> List[Column]:
        """Return the tenant's user columns in catalog order."""
        return await self._resolver.resolve_columns(project)

    async def get_user(self, project: str, user_id: Any) -> Optional[User]:
        """Fetch a single user, or None if no row has this id."""
        check_project(project)
        resolved_id = coerce_user_id(user_id)
        sql = (
            f"SELECT * FROM {qualified_table(project, USER_TABLE)} "
            f"WHERE {quote_identifier(PRIMARY_KEY)} = {resolved_id}"
        )
        result = await self._executor.execute_raw_query(sql).result
        if result.is_failed:
            raise StorageAccessError(
                result.error.message,
                category=result.error.category,
                sql_state=result.error.sql_state,
            )
        if not result.rows:
            return None

        row = result.rows[0]
        properties = {
            column.name: value
            for column, value in zip(result.columns, row)
            if column.name != PRIMARY_KEY
        }
        return User(project=project, id=resolved_id, properties=properties)

    async def set_user_property(
        self, project: str, user_id: Any, property_name: str, value: Any
    ) -> None:
        """Set one property on one user, creating the column if needed."""
        await self._mutator.set_user_property(project, user_id, property_name, value)

    async def create_project(self, project: str) -> None:
        """Ensure `<project>.users` exists with its bigint primary key.

        Safe to call repeatedly; an existing table is left untouched.
        """
        check_project(project)
        pk = quote_identifier(PRIMARY_KEY)
        statements = [
            f"CREATE SCHEMA IF NOT EXISTS {quote_identifier(project)}",
            f"CREATE TABLE IF NOT EXISTS {qualified_table(project, USER_TABLE)} ("
            f"{pk} BIGINT NOT NULL, PRIMARY KEY ({pk}))",
        ]
        try:
            async with self._executor.get_connection() as conn:
                for statement in statements:
                    await conn.execute(statement)
        except UserStorageError:
            raise
        except Exception as exc:
            raise StorageAccessError(
                f"Failed to create user table for project '{project}': {exc}",
                category=classify_error(exc),
                sql_state=sql_state_of(exc),
            ) from exc

        self._cache.invalidate(project)
        logger.info("user_project_ensured project=%s", project)
