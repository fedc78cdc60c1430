import numbers
import re
from decimal import Decimal
from typing import Any

from common.errors import InvalidArgumentError

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_DECIMAL_INT = re.compile(r"[+-]?[0-9]+")


def coerce_user_id(user_id: Any) -> int:
    """Coerce a user id to a 64-bit integer.

    Strings are parsed as base-10 integers and other numbers are truncated to
    an integer; anything else is rejected.

    Raises:
        InvalidArgumentError: If the id cannot be coerced or is out of range.
    """
    if isinstance(user_id, bool):
        raise InvalidArgumentError("User id must be a number or a numeric string, got bool.")
    if isinstance(user_id, str):
        text = user_id.strip()
        if not _DECIMAL_INT.fullmatch(text):
            raise InvalidArgumentError(f"User id is not a base-10 integer: {user_id!r}")
        value = int(text, 10)
    elif isinstance(user_id, (numbers.Real, Decimal)):
        value = int(user_id)
    else:
        raise InvalidArgumentError(
            f"User id must be a number or a numeric string, got {type(user_id).__name__}."
        )
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise InvalidArgumentError(f"User id is out of the 64-bit range: {user_id!r}")
    return value
