from __future__ import annotations

import logging
from typing import Optional

from opentelemetry import trace

from common.errors import ErrorCategory
from user_storage.query_result import QueryError

logger = logging.getLogger(__name__)

# Exact SQLSTATE codes take precedence over their two-character class.
_SQLSTATE_CATEGORIES: dict[str, ErrorCategory] = {
    "42601": ErrorCategory.SYNTAX,
    "42501": ErrorCategory.AUTH,
    "42P01": ErrorCategory.SCHEMA_DRIFT,
    "42703": ErrorCategory.SCHEMA_DRIFT,
    "42701": ErrorCategory.SCHEMA_DRIFT,
    "3F000": ErrorCategory.SCHEMA_DRIFT,
    "57014": ErrorCategory.TIMEOUT,
    "40P01": ErrorCategory.DEADLOCK,
    "40001": ErrorCategory.SERIALIZATION,
    "0A000": ErrorCategory.UNSUPPORTED,
}

_SQLSTATE_CLASS_CATEGORIES: dict[str, ErrorCategory] = {
    "08": ErrorCategory.CONNECTIVITY,
    "22": ErrorCategory.INVALID_REQUEST,
    "28": ErrorCategory.AUTH,
    "42": ErrorCategory.SYNTAX,
    "53": ErrorCategory.RESOURCE_EXHAUSTED,
}


def sql_state_of(exc: BaseException) -> Optional[str]:
    """Return the SQLSTATE code carried by a backend exception, if any."""
    state = getattr(exc, "sqlstate", None)
    return state if isinstance(state, str) and state else None


def classify_error(exc: BaseException) -> ErrorCategory:
    """Classify a backend exception into a provider-agnostic category."""
    state = sql_state_of(exc)
    if state:
        if state in _SQLSTATE_CATEGORIES:
            return _SQLSTATE_CATEGORIES[state]
        if state[:2] in _SQLSTATE_CLASS_CATEGORIES:
            return _SQLSTATE_CLASS_CATEGORIES[state[:2]]

    if isinstance(exc, TimeoutError):
        return ErrorCategory.TIMEOUT
    if isinstance(exc, (ConnectionError, OSError)):
        return ErrorCategory.CONNECTIVITY

    message = str(exc).lower()
    if any(token in message for token in ("timeout", "timed out")):
        return ErrorCategory.TIMEOUT
    if any(
        token in message
        for token in ("connection refused", "connection reset", "could not connect")
    ):
        return ErrorCategory.CONNECTIVITY
    if "permission denied" in message:
        return ErrorCategory.AUTH
    if "syntax error" in message:
        return ErrorCategory.SYNTAX
    return ErrorCategory.UNKNOWN


def query_error_from_exception(exc: BaseException, operation: str = "query") -> QueryError:
    """Convert a backend exception into a classified QueryError and record it on the span."""
    category = classify_error(exc)
    sql_state = sql_state_of(exc)
    span = trace.get_current_span()
    if span is not None and span.is_recording():
        span.set_attribute("error.classification.category", category.value)
        span.set_attribute("error.classification.operation", operation)
        if sql_state:
            span.set_attribute("db.sql_state", sql_state)
    logger.warning(
        "user_storage_query_failed operation=%s category=%s sql_state=%s error=%s",
        operation,
        category.value,
        sql_state,
        exc.__class__.__name__,
    )
    return QueryError(
        message=str(exc) or exc.__class__.__name__, sql_state=sql_state, category=category
    )
