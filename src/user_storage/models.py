"""Request and schema models for per-tenant user storage."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, FiniteFloat, field_validator
from sqlglot import exp

from user_storage.expressions import parse_filter_expression

Number = Union[int, FiniteFloat]


class FieldType(str, Enum):
    """Closed set of property types a user column can hold."""

    STRING = "string"
    LONG = "long"
    DOUBLE = "double"
    BOOLEAN = "boolean"
    DATE = "date"
    TIMESTAMP = "timestamp"
    ARRAY_STRING = "array<string>"
    ARRAY_LONG = "array<long>"
    ARRAY_DOUBLE = "array<double>"
    ARRAY_BOOLEAN = "array<boolean>"


class Column(BaseModel):
    """A resolved column of a tenant's user table."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: FieldType
    unique: bool = False


class AggregationType(str, Enum):
    """Aggregate functions usable in behavioral filters."""

    COUNT = "COUNT"
    COUNT_UNIQUE = "COUNT_UNIQUE"
    SUM = "SUM"
    MINIMUM = "MINIMUM"
    MAXIMUM = "MAXIMUM"
    AVERAGE = "AVERAGE"


class Aggregation(BaseModel):
    """Threshold over a per-user aggregate of an event collection."""

    type: AggregationType
    field: Optional[str] = None
    minimum: Optional[Number] = None
    maximum: Optional[Number] = None


class EventFilter(BaseModel):
    """Behavioral filter over a named event collection."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    collection: str
    filter_expression: Optional[exp.Expression] = None
    aggregation: Optional[Aggregation] = None

    @field_validator("filter_expression", mode="before")
    @classmethod
    def _parse_text_expression(cls, value: Any) -> Any:
        if isinstance(value, str):
            return parse_filter_expression(value)
        return value


class SortOrder(str, Enum):
    """Sort direction."""

    ASC = "ASC"
    DESC = "DESC"


class Sorting(BaseModel):
    """Ordering applied to the paginated user query."""

    column: str
    order: SortOrder = Field(default=SortOrder.ASC)


@dataclass
class User:
    """A single user row; `properties` excludes the primary key."""

    project: str
    id: Any
    properties: Dict[str, Any] = field(default_factory=dict)
