import logging
from typing import List, Protocol, runtime_checkable

from opentelemetry import trace

from common.errors import StorageAccessError, UserStorageError
from common.sql.identifiers import check_project
from user_storage.constants import USER_TABLE
from user_storage.error_classification import classify_error, sql_state_of
from user_storage.models import Column
from user_storage.query_executor import QueryExecutor
from user_storage.type_mapping import field_type_for_oid

logger = logging.getLogger(__name__)


@runtime_checkable
class ColumnResolver(Protocol):
    """Protocol for anything that can list a tenant's user columns."""

    async def resolve_columns(self, project: str) -> List[Column]:
        """Return the tenant's user columns in catalog order."""
        ...


class MetadataResolver:
    """Resolves the authoritative column list of a tenant's user table from the catalog."""

    def __init__(self, executor: QueryExecutor) -> None:
        """Initialize with the executor that provides scoped connections."""
        self._executor = executor
        self._tracer = trace.get_tracer(__name__)

    async def resolve_columns(self, project: str) -> List[Column]:
        """Return columns of `<project>.users` whose native type maps to a FieldType.

        Columns with unmappable types are left out rather than failing the tenant.

        Raises:
            InvalidArgumentError: If `project` is not a valid identifier.
            StorageAccessError: If the catalog cannot be read.
        """
        check_project(project)
        with self._tracer.start_as_current_span("user_storage.metadata.resolve") as span:
            span.set_attribute("user_storage.project", project)
            try:
                async with self._executor.get_connection() as conn:
                    unique_columns = await conn.get_unique_index_columns(project, USER_TABLE)
                    catalog_columns = await conn.get_columns(project, USER_TABLE)
            except UserStorageError:
                raise
            except Exception as exc:
                raise StorageAccessError(
                    "couldn't get metadata from user storage",
                    category=classify_error(exc),
                    sql_state=sql_state_of(exc),
                ) from exc

            columns: List[Column] = []
            for catalog_column in catalog_columns:
                field_type = field_type_for_oid(catalog_column.type_oid)
                if field_type is None:
                    logger.debug(
                        "user_metadata_skip_column project=%s column=%s type_oid=%s",
                        project,
                        catalog_column.name,
                        catalog_column.type_oid,
                    )
                    continue
                columns.append(
                    Column(
                        name=catalog_column.name,
                        type=field_type,
                        unique=catalog_column.name in unique_columns,
                    )
                )
            span.set_attribute("user_storage.column_count", len(columns))
            return columns
