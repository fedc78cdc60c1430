"""Process-wide cache of per-tenant property types.

Entries never expire. A refresh always re-reads the catalog and overwrites the
entry; concurrent refreshes for one tenant race and the last one to finish wins.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Optional, Protocol, runtime_checkable

from opentelemetry import trace

from user_storage.metadata import ColumnResolver
from user_storage.models import Column, FieldType


@dataclass(frozen=True)
class PropertyLookup:
    """Result of looking up a property; unknown properties carry no type."""

    name: str
    field_type: Optional[FieldType] = None

    @property
    def is_known(self) -> bool:
        """Return True when the property exists in the schema."""
        return self.field_type is not None


@dataclass(frozen=True)
class PropertySchema:
    """Versioned name -> type mapping of one tenant's user table."""

    project: str
    version: int
    types: Mapping[str, FieldType] = field(default_factory=dict)

    @classmethod
    def from_columns(
        cls, project: str, columns: Iterable[Column], version: int
    ) -> "PropertySchema":
        """Build a schema from resolved columns."""
        return cls(project=project, version=version, types={c.name: c.type for c in columns})

    def lookup(self, name: str) -> PropertyLookup:
        """Look up a property by name."""
        return PropertyLookup(name=name, field_type=self.types.get(name))

    def with_property(self, name: str, field_type: FieldType) -> "PropertySchema":
        """Return the next schema version with `name` added, or self if already present."""
        if name in self.types:
            return self
        types: Dict[str, FieldType] = dict(self.types)
        types[name] = field_type
        return PropertySchema(project=self.project, version=self.version + 1, types=types)


@runtime_checkable
class PropertySchemaBackend(Protocol):
    """Protocol for property schema cache storage backends."""

    def get(self, project: str) -> Optional[PropertySchema]:
        """Fetch the cached schema for a tenant."""
        ...

    def set(self, schema: PropertySchema) -> None:
        """Store a schema, replacing any previous entry for its tenant."""
        ...

    def clear(self, project: Optional[str] = None) -> int:
        """Drop one tenant's entry, or all entries, and return how many were removed."""
        ...


class InMemoryPropertySchemaBackend:
    """Default in-memory PropertySchemaBackend without expiry or eviction."""

    def __init__(self) -> None:
        """Initialize an empty store."""
        self._entries: Dict[str, PropertySchema] = {}

    def get(self, project: str) -> Optional[PropertySchema]:
        """Get entry from in-memory dict."""
        return self._entries.get(project)

    def set(self, schema: PropertySchema) -> None:
        """Set entry in in-memory dict."""
        self._entries[schema.project] = schema

    def clear(self, project: Optional[str] = None) -> int:
        """Clear one tenant or everything and return count."""
        if project is None:
            count = len(self._entries)
            self._entries.clear()
            return count
        return 1 if self._entries.pop(project, None) is not None else 0

    def __len__(self) -> int:
        """Return number of entries."""
        return len(self._entries)


SHARED_PROPERTY_SCHEMA_BACKEND = InMemoryPropertySchemaBackend()


class PropertySchemaCache:
    """Read-mostly cache of property types, refreshed from a ColumnResolver."""

    def __init__(
        self,
        resolver: ColumnResolver,
        backend: Optional[PropertySchemaBackend] = None,
    ) -> None:
        """Initialize with a resolver and an optional backend (shared in-memory by default)."""
        self._resolver = resolver
        self._backend = backend if backend is not None else SHARED_PROPERTY_SCHEMA_BACKEND
        self._logger = logging.getLogger(__name__)
        self._tracer = trace.get_tracer(__name__)

    def get(self, project: str) -> Optional[PropertySchema]:
        """Return the cached schema for `project`, or None if never resolved."""
        schema = self._backend.get(project)
        if schema is not None:
            self._logger.debug(
                "property_schema_cache_hit project=%s version=%s", project, schema.version
            )
        return schema

    def put(self, schema: PropertySchema) -> None:
        """Store a schema produced locally, e.g. after a column was added."""
        self._backend.set(schema)

    async def refresh(self, project: str) -> PropertySchema:
        """Re-resolve the tenant's columns and overwrite the cache entry."""
        with self._tracer.start_as_current_span("user_storage.schema_cache.refresh") as span:
            span.set_attribute("user_storage.project", project)
            previous = self._backend.get(project)
            columns = await self._resolver.resolve_columns(project)
            version = previous.version + 1 if previous is not None else 1
            schema = PropertySchema.from_columns(project, columns, version)
            self._backend.set(schema)
            span.set_attribute("user_storage.schema_version", version)
            self._logger.info(
                "property_schema_cache_refresh project=%s version=%s properties=%s",
                project,
                version,
                len(schema.types),
            )
            return schema

    def invalidate(self, project: Optional[str] = None) -> None:
        """Drop the entry for `project`, or every entry when no project is given."""
        scope = "project" if project else "global"
        with self._tracer.start_as_current_span("user_storage.schema_cache.invalidate") as span:
            span.set_attribute("user_storage.schema_cache.scope", scope)
            if project:
                span.set_attribute("user_storage.project", project)
            count = self._backend.clear(project)
            span.set_attribute("user_storage.schema_cache.entries_cleared", count)
            self._logger.info(
                "property_schema_cache_invalidate scope=%s project=%s cleared=%s",
                scope,
                project,
                count,
            )
