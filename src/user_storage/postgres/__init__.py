"""PostgreSQL user-storage implementations."""

from .executor import PostgresCatalogConnection, PostgresQueryExecutor
from .user_storage import PostgresUserStorage

__all__ = [
    "PostgresCatalogConnection",
    "PostgresQueryExecutor",
    "PostgresUserStorage",
]
