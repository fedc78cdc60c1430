"""Canonical error-code taxonomy for user-storage flows."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class ErrorCategory(str, Enum):
    """Provider-agnostic error categories for backend failures."""

    INVALID_REQUEST = "invalid_request"
    AUTH = "auth"
    TIMEOUT = "timeout"
    CONNECTIVITY = "connectivity"
    SYNTAX = "syntax"
    SCHEMA_DRIFT = "schema_drift"
    DEADLOCK = "deadlock"
    SERIALIZATION = "serialization"
    RESOURCE_EXHAUSTED = "resource_exhausted"
    UNSUPPORTED = "unsupported"
    UNKNOWN = "unknown"


class ErrorCode(str, Enum):
    """Bounded canonical error codes for external contracts and observability."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_IMPLEMENTED = "NOT_IMPLEMENTED"
    DB_CONNECTION_ERROR = "DB_CONNECTION_ERROR"
    DB_TIMEOUT = "DB_TIMEOUT"
    DB_SYNTAX_ERROR = "DB_SYNTAX_ERROR"
    DB_PERMISSION_ERROR = "DB_PERMISSION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


_CATEGORY_TO_CODE: dict[ErrorCategory, ErrorCode] = {
    ErrorCategory.INVALID_REQUEST: ErrorCode.VALIDATION_ERROR,
    ErrorCategory.AUTH: ErrorCode.DB_PERMISSION_ERROR,
    ErrorCategory.TIMEOUT: ErrorCode.DB_TIMEOUT,
    ErrorCategory.CONNECTIVITY: ErrorCode.DB_CONNECTION_ERROR,
    ErrorCategory.SYNTAX: ErrorCode.DB_SYNTAX_ERROR,
    ErrorCategory.SCHEMA_DRIFT: ErrorCode.DB_SYNTAX_ERROR,
    ErrorCategory.DEADLOCK: ErrorCode.DB_TIMEOUT,
    ErrorCategory.SERIALIZATION: ErrorCode.DB_TIMEOUT,
    ErrorCategory.RESOURCE_EXHAUSTED: ErrorCode.DB_TIMEOUT,
    ErrorCategory.UNSUPPORTED: ErrorCode.NOT_IMPLEMENTED,
    ErrorCategory.UNKNOWN: ErrorCode.INTERNAL_ERROR,
}


def _as_category(category: str | ErrorCategory | None) -> Optional[ErrorCategory]:
    if category is None or isinstance(category, ErrorCategory):
        return category
    try:
        return ErrorCategory(str(category).strip().lower())
    except ValueError:
        return None


def canonical_error_code_for_category(
    category: str | ErrorCategory | None,
    *,
    fallback: ErrorCode = ErrorCode.INTERNAL_ERROR,
) -> ErrorCode:
    """Resolve the canonical error code for a category or its string value."""
    resolved = _as_category(category)
    if resolved is None:
        return fallback
    return _CATEGORY_TO_CODE.get(resolved, fallback)


def parse_error_code(value: Any, *, fallback: ErrorCode = ErrorCode.INTERNAL_ERROR) -> ErrorCode:
    """Parse an error code name, returning `fallback` for anything unknown."""
    if isinstance(value, ErrorCode) or value is None:
        return value or fallback
    try:
        return ErrorCode(str(value).strip().upper())
    except ValueError:
        return fallback
