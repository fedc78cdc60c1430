"""Storage interfaces exposed to transport and wiring layers."""

from .user_storage import UserStorage

__all__ = [
    "UserStorage",
]
