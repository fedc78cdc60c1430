"""Helpers for building column metadata from asyncpg statements."""

from __future__ import annotations

import logging
from typing import Any, List

from user_storage.models import Column, FieldType
from user_storage.type_mapping import field_type_for_oid

logger = logging.getLogger(__name__)


def columns_from_asyncpg_attributes(attrs: List[Any]) -> List[Column]:
    """Build result columns from asyncpg statement attributes.

    Result columns stay positionally aligned with row values, so a type without
    a mapping is reported as STRING instead of being dropped.
    """
    columns: List[Column] = []
    for attr in attrs or []:
        name = getattr(attr, "name", None) or str(attr)
        attr_type = getattr(attr, "type", None)
        oid = getattr(attr_type, "oid", None) if attr_type is not None else None
        field_type = field_type_for_oid(oid)
        if field_type is None:
            logger.debug("result_column_unmapped_type column=%s oid=%s", name, oid)
            field_type = FieldType.STRING
        columns.append(Column(name=name, type=field_type))
    return columns
