"""User storage factory with environment-driven provider selection.

Environment Variables:
    USER_STORAGE_PROVIDER: Provider for UserStorage (default: "postgres")

Example:
    >>> storage = await get_user_storage()
    >>> await storage.create_project("acme")
"""

import logging
from typing import Awaitable, Callable, Optional

from common.config.providers import get_provider_env
from common.interfaces import UserStorage

logger = logging.getLogger(__name__)

USER_STORAGE_PROVIDERS: "dict[str, Callable[[], Awaitable[UserStorage]]]" = {}

_user_storage: Optional[UserStorage] = None
_close_hooks: "list[Callable[[], Awaitable[None]]]" = []


async def _build_postgres_user_storage() -> UserStorage:
    from user_storage.postgres import PostgresQueryExecutor, PostgresUserStorage

    executor = PostgresQueryExecutor()
    await executor.init()
    _close_hooks.append(executor.close)
    return PostgresUserStorage(executor)


async def get_user_storage() -> UserStorage:
    """Get or create the singleton UserStorage instance.

    Provider is selected via USER_STORAGE_PROVIDER env var.
    Default: "postgres" (PostgresUserStorage over an asyncpg pool)

    Raises:
        ValueError: If USER_STORAGE_PROVIDER is set to an invalid value.
    """
    global _user_storage
    if _user_storage is None:
        if "postgres" not in USER_STORAGE_PROVIDERS:
            USER_STORAGE_PROVIDERS["postgres"] = _build_postgres_user_storage

        provider = get_provider_env(
            "USER_STORAGE_PROVIDER",
            default="postgres",
            allowed=set(USER_STORAGE_PROVIDERS.keys()),
        )
        _user_storage = await USER_STORAGE_PROVIDERS[provider]()
        logger.info("Initialized UserStorage with provider: %s", provider)
    return _user_storage


async def close_user_storage() -> None:
    """Release resources held by the singleton and forget it."""
    global _user_storage
    while _close_hooks:
        hook = _close_hooks.pop()
        await hook()
    _user_storage = None


def reset_singletons() -> None:
    """Forget the singleton without closing it. Intended for tests."""
    global _user_storage
    _user_storage = None
    _close_hooks.clear()
