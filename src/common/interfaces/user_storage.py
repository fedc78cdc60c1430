from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from sqlglot import exp

from user_storage.models import Column, EventFilter, Sorting, User
from user_storage.query_result import QueryResult


@runtime_checkable
class UserStorage(Protocol):
    """Protocol for per-tenant user storage backends."""

    async def create(self, project: str, properties: Dict[str, Any]) -> None:
        """Create a user from a property map."""
        ...

    async def filter(
        self,
        project: str,
        filter_expression: Optional[exp.Expression] = None,
        event_filters: Optional[Sequence[EventFilter]] = None,
        sorting: Optional[Sorting] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> QueryResult:
        """Return a page of users matching the property and behavioral filters."""
        ...

    async def get_metadata(self, project: str) -> List[Column]:
        """Return the tenant's user columns in catalog order."""
        ...

    async def get_user(self, project: str, user_id: Any) -> Optional[User]:
        """Fetch a single user, or None if the id is unknown."""
        ...

    async def set_user_property(
        self, project: str, user_id: Any, property_name: str, value: Any
    ) -> None:
        """Set one property on one user, creating the column if needed."""
        ...

    async def create_project(self, project: str) -> None:
        """Ensure the tenant's user table exists."""
        ...
