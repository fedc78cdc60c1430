"""Common error taxonomy helpers."""

from common.errors.error_codes import (
    ErrorCategory,
    ErrorCode,
    canonical_error_code_for_category,
    parse_error_code,
)
from common.errors.exceptions import InvalidArgumentError, StorageAccessError, UserStorageError

__all__ = [
    "ErrorCategory",
    "ErrorCode",
    "InvalidArgumentError",
    "StorageAccessError",
    "UserStorageError",
    "canonical_error_code_for_category",
    "parse_error_code",
]
