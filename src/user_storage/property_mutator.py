import logging
from typing import Any, Optional, Tuple

from common.errors import StorageAccessError, UserStorageError
from common.sql.identifiers import (
    check_project,
    check_table_column,
    qualified_table,
    quote_identifier,
)
from user_storage.constants import PRIMARY_KEY, USER_TABLE
from user_storage.error_classification import classify_error, sql_state_of
from user_storage.query_executor import CatalogConnection, QueryExecutor
from user_storage.schema_cache import PropertyLookup, PropertySchema, PropertySchemaCache
from user_storage.type_mapping import field_type_for_storage_type, storage_type_for_value
from user_storage.user_ids import coerce_user_id

logger = logging.getLogger(__name__)

DUPLICATE_COLUMN_SQLSTATE = "42701"


class PropertyMutator:
    """Writes single user properties, adding the destination column when it is new."""

    def __init__(
        self,
        executor: QueryExecutor,
        cache: PropertySchemaCache,
        float_storage_type: Optional[str] = None,
    ) -> None:
        """Initialize with the executor, the property schema cache and an optional float type.

        `float_storage_type` overrides USER_STORAGE_FLOAT_COLUMN_TYPE for new float columns.
        """
        self._executor = executor
        self._cache = cache
        self._float_storage_type = float_storage_type

    async def set_user_property(
        self, project: str, user_id: Any, property_name: str, value: Any
    ) -> None:
        """Set `property_name` to `value` on the user row identified by `user_id`.

        A property unknown even after a cache refresh becomes a new column whose
        type is inferred from `value`. Failing to add that column is not an error:
        another writer may have created it first.

        Raises:
            InvalidArgumentError: On invalid identifiers, user id or value type.
            StorageAccessError: If the catalog or the row update fails.
        """
        check_project(project)
        check_table_column(property_name, "user property")
        resolved_id = coerce_user_id(user_id)

        schema, lookup = await self._lookup(project, property_name)
        storage_type = None
        if not lookup.is_known:
            storage_type = storage_type_for_value(value, self._float_storage_type)

        table = qualified_table(project, USER_TABLE)
        sql = (
            f"UPDATE {table} SET {quote_identifier(property_name)} = $1 "
            f"WHERE {quote_identifier(PRIMARY_KEY)} = $2"
        )
        try:
            async with self._executor.get_connection() as conn:
                if storage_type is not None and await self._add_column(
                    conn, table, property_name, storage_type
                ):
                    field_type = field_type_for_storage_type(storage_type)
                    if field_type is not None:
                        self._cache.put(schema.with_property(property_name, field_type))
                updated = await conn.execute_update(sql, value, resolved_id)
        except UserStorageError:
            raise
        except Exception as exc:
            raise StorageAccessError(
                f"Failed to update user property '{property_name}': {exc}",
                category=classify_error(exc),
                sql_state=sql_state_of(exc),
            ) from exc

        if not updated:
            logger.info(
                "user_property_update_no_rows project=%s property=%s", project, property_name
            )

    async def _lookup(
        self, project: str, property_name: str
    ) -> Tuple[PropertySchema, PropertyLookup]:
        schema = self._cache.get(project)
        if schema is not None:
            lookup = schema.lookup(property_name)
            if lookup.is_known:
                return schema, lookup
        schema = await self._cache.refresh(project)
        return schema, schema.lookup(property_name)

    async def _add_column(
        self, conn: CatalogConnection, table: str, property_name: str, storage_type: str
    ) -> bool:
        sql = f"ALTER TABLE {table} ADD COLUMN {quote_identifier(property_name)} {storage_type}"
        try:
            await conn.execute(sql)
        except Exception as exc:
            if sql_state_of(exc) == DUPLICATE_COLUMN_SQLSTATE:
                logger.info(
                    "user_property_column_exists table=%s property=%s", table, property_name
                )
            else:
                logger.warning(
                    "user_property_add_column_failed table=%s property=%s error=%s",
                    table,
                    property_name,
                    exc,
                )
            return False
        logger.info(
            "user_property_column_added table=%s property=%s type=%s",
            table,
            property_name,
            storage_type,
        )
        return True
