"""Per-tenant user storage: filter compilation, schema resolution and query orchestration."""

from user_storage.filter_compiler import FilterCompiler
from user_storage.metadata import MetadataResolver
from user_storage.models import (
    Aggregation,
    AggregationType,
    Column,
    EventFilter,
    FieldType,
    Sorting,
    SortOrder,
    User,
)
from user_storage.orchestrator import UserFilterOrchestrator
from user_storage.property_mutator import PropertyMutator
from user_storage.query_result import TOTAL_RESULT, QueryError, QueryResult
from user_storage.schema_cache import PropertySchema, PropertySchemaCache

__all__ = [
    "Aggregation",
    "AggregationType",
    "Column",
    "EventFilter",
    "FieldType",
    "FilterCompiler",
    "MetadataResolver",
    "PropertyMutator",
    "PropertySchema",
    "PropertySchemaCache",
    "QueryError",
    "QueryResult",
    "Sorting",
    "SortOrder",
    "TOTAL_RESULT",
    "User",
    "UserFilterOrchestrator",
]
