from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from common.errors import ErrorCategory
from user_storage.models import Column

TOTAL_RESULT = "totalResult"


class QueryError(BaseModel):
    """Failure reported by the backend for a dispatched query."""

    message: str = Field(..., description="Backend error message")
    sql_state: Optional[str] = Field(None, description="SQLSTATE code when available")
    category: ErrorCategory = Field(ErrorCategory.UNKNOWN, description="Classified category")


@dataclass
class QueryResult:
    """Container for positional rows, their columns and auxiliary scalars."""

    columns: List[Column] = field(default_factory=list)
    rows: List[List[Any]] = field(default_factory=list)
    properties: Dict[str, Any] = field(default_factory=dict)
    error: Optional[QueryError] = None

    @property
    def is_failed(self) -> bool:
        """Return True when the backend reported an error for this query."""
        return self.error is not None

    @property
    def total_result(self) -> Optional[Any]:
        """Return the total-count scalar attached by the filter merge, if any."""
        return self.properties.get(TOTAL_RESULT)

    @classmethod
    def error_result(cls, error: QueryError) -> "QueryResult":
        """Build a failed result carrying `error`."""
        return cls(error=error)
