"""Mappings between Postgres storage types, catalog OIDs and property types."""

from __future__ import annotations

import numbers
from decimal import Decimal
from typing import Any, Optional

from common.config.env import get_env_str
from common.errors import InvalidArgumentError
from user_storage.models import FieldType

_OID_FIELD_TYPES: dict[int, FieldType] = {
    18: FieldType.STRING,  # char
    19: FieldType.STRING,  # name
    25: FieldType.STRING,  # text
    1042: FieldType.STRING,  # bpchar
    1043: FieldType.STRING,  # varchar
    20: FieldType.LONG,  # int8
    21: FieldType.LONG,  # int2
    23: FieldType.LONG,  # int4
    700: FieldType.DOUBLE,  # float4
    701: FieldType.DOUBLE,  # float8
    1700: FieldType.DOUBLE,  # numeric
    16: FieldType.BOOLEAN,
    1082: FieldType.DATE,
    1114: FieldType.TIMESTAMP,
    1184: FieldType.TIMESTAMP,
    1009: FieldType.ARRAY_STRING,
    1015: FieldType.ARRAY_STRING,
    1005: FieldType.ARRAY_LONG,
    1007: FieldType.ARRAY_LONG,
    1016: FieldType.ARRAY_LONG,
    1021: FieldType.ARRAY_DOUBLE,
    1022: FieldType.ARRAY_DOUBLE,
    1231: FieldType.ARRAY_DOUBLE,
    1000: FieldType.ARRAY_BOOLEAN,
}

_STORAGE_FIELD_TYPES: dict[str, FieldType] = {
    "text": FieldType.STRING,
    "bigint": FieldType.LONG,
    "bool": FieldType.BOOLEAN,
    "double precision": FieldType.DOUBLE,
    "real": FieldType.DOUBLE,
    "numeric": FieldType.DOUBLE,
}

FLOAT_STORAGE_TYPES = frozenset({"bool", "double precision", "real", "numeric"})
DEFAULT_FLOAT_STORAGE_TYPE = "bool"


def field_type_for_oid(oid: Optional[int]) -> Optional[FieldType]:
    """Map a Postgres type OID to a FieldType, or None when it has no mapping."""
    if oid is None:
        return None
    return _OID_FIELD_TYPES.get(int(oid))


def field_type_for_storage_type(storage_type: str) -> Optional[FieldType]:
    """Map a storage type produced by `storage_type_for_value` back to a FieldType."""
    normalized = storage_type.strip().lower()
    if normalized.endswith("[]"):
        element = _STORAGE_FIELD_TYPES.get(normalized[:-2])
        if element is None:
            return None
        return FieldType(f"array<{element.value}>")
    return _STORAGE_FIELD_TYPES.get(normalized)


def configured_float_storage_type() -> str:
    """Return the storage type used for float properties during schema evolution.

    Defaults to `bool` to stay compatible with columns created by earlier
    deployments; see USER_STORAGE_FLOAT_COLUMN_TYPE.
    """
    value = get_env_str("USER_STORAGE_FLOAT_COLUMN_TYPE", DEFAULT_FLOAT_STORAGE_TYPE)
    normalized = value.strip().lower()
    if normalized not in FLOAT_STORAGE_TYPES:
        allowed = ", ".join(sorted(FLOAT_STORAGE_TYPES))
        raise ValueError(
            f"Invalid USER_STORAGE_FLOAT_COLUMN_TYPE: '{value}'. Allowed values: {allowed}"
        )
    return normalized


def storage_type_for_value(value: Any, float_storage_type: Optional[str] = None) -> str:
    """Infer the Postgres column type for a property value.

    Raises:
        InvalidArgumentError: If the value's type has no storage mapping.
    """
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, str):
        return "text"
    if isinstance(value, numbers.Integral):
        return "bigint"
    if isinstance(value, (numbers.Real, Decimal)):
        return float_storage_type or configured_float_storage_type()
    if isinstance(value, (list, tuple)):
        element = next((item for item in value if item is not None), None)
        if element is None:
            return "text[]"
        element_type = storage_type_for_value(element, float_storage_type)
        if element_type.endswith("[]"):
            raise InvalidArgumentError("Nested array properties are not supported.")
        return f"{element_type}[]"
    raise InvalidArgumentError(
        f"Property value type is not supported: {type(value).__name__}"
    )
