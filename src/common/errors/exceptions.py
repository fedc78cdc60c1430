"""Exception types raised by user-storage operations."""

from __future__ import annotations

from typing import Optional

from common.errors.error_codes import ErrorCategory, ErrorCode, canonical_error_code_for_category


class UserStorageError(Exception):
    """Base class for user-storage failures carrying a canonical error code."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, *, code: Optional[ErrorCode] = None) -> None:
        """Attach a canonical error code to the failure."""
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class InvalidArgumentError(UserStorageError, ValueError):
    """Raised when a request fails validation before reaching the backend."""

    code = ErrorCode.VALIDATION_ERROR


class StorageAccessError(UserStorageError, RuntimeError):
    """Raised when the backend catalog or a statement cannot be executed."""

    code = ErrorCode.DB_CONNECTION_ERROR

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | str | None = None,
        sql_state: Optional[str] = None,
    ) -> None:
        """Derive the error code from the classified backend category."""
        code = canonical_error_code_for_category(category, fallback=StorageAccessError.code)
        super().__init__(message, code=code)
        self.category = category
        self.sql_state = sql_state
