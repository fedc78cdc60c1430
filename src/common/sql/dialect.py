"""Shared utilities for SQL dialect handling."""

from typing import Optional

from common.config.env import get_env_str

_DIALECT_ALIASES = {
    "postgresql": "postgres",
    "pg": "postgres",
    "cockroachdb": "postgres",
    "redshift": "redshift",
}


def normalize_sqlglot_dialect(dialect: Optional[str]) -> str:
    """Normalize a dialect name for use with sqlglot.

    Args:
        dialect: The dialect name to normalize (e.g., 'PostgreSQL', 'pg').

    Returns:
        A normalized lowercase string compatible with sqlglot.
    """
    if not dialect:
        return "postgres"
    normalized = dialect.lower().strip()
    return _DIALECT_ALIASES.get(normalized, normalized)


def configured_dialect() -> str:
    """Return the sqlglot dialect configured through SQL_DIALECT."""
    return normalize_sqlglot_dialect(get_env_str("SQL_DIALECT"))
