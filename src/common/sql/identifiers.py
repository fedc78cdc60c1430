"""Identifier validation for tenant, collection and column names.

Every name that ends up in generated SQL text passes through one of these
checks first. Quoting happens later, when the statement is rendered.
"""

import re

from common.errors import InvalidArgumentError

_PROJECT_PATTERN = re.compile(r"[a-z_][a-z0-9_]{0,62}")
_COLUMN_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_]{0,62}")


def check_project(project: str) -> str:
    """Validate a tenant identifier and return it unchanged."""
    if not isinstance(project, str) or not _PROJECT_PATTERN.fullmatch(project):
        raise InvalidArgumentError(f"Project name is not valid: {project!r}")
    return project


def check_collection(collection: str) -> str:
    """Validate an event collection name and return it unchanged."""
    if not isinstance(collection, str) or not _PROJECT_PATTERN.fullmatch(collection):
        raise InvalidArgumentError(f"Collection name is not valid: {collection!r}")
    return collection


def check_table_column(column: str, kind: str = "column") -> str:
    """Validate a column name; `kind` names the caller's concept in the error."""
    if not isinstance(column, str) or not _COLUMN_PATTERN.fullmatch(column):
        raise InvalidArgumentError(f"{kind.capitalize()} name is not valid: {column!r}")
    return column


def quote_identifier(identifier: str) -> str:
    """Return a safely quoted Postgres identifier."""
    return '"' + identifier.replace('"', '""') + '"'


def qualified_table(schema: str, table: str) -> str:
    """Return a quoted `schema.table` reference."""
    return f"{quote_identifier(schema)}.{quote_identifier(table)}"
