import logging
from typing import Any, List, Optional, Sequence, Union

from opentelemetry import trace
from sqlglot import exp

from common.errors import InvalidArgumentError
from common.sql.identifiers import check_project
from user_storage.async_utils import join_pair
from user_storage.constants import USER_TABLE
from user_storage.error_classification import query_error_from_exception
from user_storage.filter_compiler import FilterCompiler, quoted_column, tenant_table
from user_storage.metadata import ColumnResolver
from user_storage.models import Column, EventFilter, Sorting, SortOrder
from user_storage.query_executor import QueryExecutor
from user_storage.query_result import TOTAL_RESULT, QueryError, QueryResult

logger = logging.getLogger(__name__)

Outcome = Union[QueryResult, BaseException]


def build_data_query(
    project: str,
    columns: Sequence[Column],
    fragments: Sequence[exp.Expression],
    sorting: Optional[Sorting],
    limit: int,
    offset: int,
) -> exp.Select:
    """Build the paginated user query."""
    select = exp.select(*[quoted_column(column.name) for column in columns]).from_(
        tenant_table(project, USER_TABLE)
    )
    if fragments:
        select = select.where(*fragments)
    if sorting is not None:
        desc = sorting.order == SortOrder.DESC
        # Nulls stay where the backend puts them by default for this direction.
        select = select.order_by(
            exp.Ordered(this=quoted_column(sorting.column), desc=desc, nulls_first=desc)
        )
    return select.limit(limit).offset(offset)


def build_count_query(project: str, filter_fragment: Optional[exp.Expression]) -> exp.Select:
    """Build the total-count query restricted by the boolean filter only."""
    select = exp.select(exp.Count(this=exp.Star())).from_(tenant_table(project, USER_TABLE))
    if filter_fragment is not None:
        select = select.where(filter_fragment)
    return select


def _error_of(outcome: Outcome, operation: str) -> Optional[QueryError]:
    if isinstance(outcome, BaseException):
        return query_error_from_exception(outcome, operation=operation)
    if outcome.is_failed:
        return outcome.error
    return None


def merge_with_total(columns: Sequence[Column], data: Outcome, count: Outcome) -> QueryResult:
    """Merge the page and count outcomes into one result.

    Any failure on either side fails the merge; the data query's error is
    reported first when both failed.
    """
    error = _error_of(data, "filter.data") or _error_of(count, "filter.count")
    if error is not None:
        return QueryResult.error_result(error)
    if not count.rows or not count.rows[0]:
        return QueryResult.error_result(QueryError(message="Total count query returned no rows."))
    total: Any = count.rows[0][0]
    return QueryResult(columns=list(columns), rows=data.rows, properties={TOTAL_RESULT: total})


def _check_page(limit: int, offset: int) -> None:
    for name, value in (("limit", limit), ("offset", offset)):
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise InvalidArgumentError(f"{name} must be a non-negative integer, got {value!r}")


class UserFilterOrchestrator:
    """Builds, dispatches and merges the paginated user query and its total count."""

    def __init__(
        self,
        executor: QueryExecutor,
        resolver: ColumnResolver,
        compiler: Optional[FilterCompiler] = None,
    ) -> None:
        """Initialize with the backend executor, column resolver and filter compiler."""
        self._executor = executor
        self._resolver = resolver
        self._compiler = compiler or FilterCompiler()
        self._tracer = trace.get_tracer(__name__)

    async def filter(
        self,
        project: str,
        filter_expression: Optional[exp.Expression] = None,
        event_filters: Optional[Sequence[EventFilter]] = None,
        sorting: Optional[Sorting] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> QueryResult:
        """Return a page of matching users.

        Without event filters the result also carries `totalResult`, counted by a
        second query that runs concurrently with the page query. With event
        filters no count query is issued and the page result is returned as-is.

        Raises:
            InvalidArgumentError: On invalid identifiers, paging values, or an
                unknown sorting column. Raised before any query is dispatched.
            StorageAccessError: If the tenant's columns cannot be resolved.
        """
        check_project(project)
        _check_page(limit, offset)
        event_filters = list(event_filters or [])

        with self._tracer.start_as_current_span("user_storage.filter") as span:
            span.set_attribute("user_storage.project", project)
            span.set_attribute("user_storage.event_filter_count", len(event_filters))

            columns = await self._resolver.resolve_columns(project)
            if not columns:
                raise InvalidArgumentError(f"User table does not exist for project: {project}")
            fragments = self._compiler.compile_fragments(project, filter_expression, event_filters)
            self._check_sorting(columns, sorting)

            data_sql = self._render(
                build_data_query(project, columns, fragments, sorting, limit, offset)
            )
            span.set_attribute("user_storage.count_query", not event_filters)
            if event_filters:
                return await self._executor.execute_raw_query(data_sql).result

            # Both statements are rendered before either is dispatched.
            count_sql = self._render(
                build_count_query(project, fragments[0] if filter_expression is not None else None)
            )
            data = self._executor.execute_raw_query(data_sql)
            try:
                count = self._executor.execute_raw_query(count_sql)
            except Exception:
                data.result.cancel()
                raise
            data_outcome, count_outcome = await join_pair(data.result, count.result)
            result = merge_with_total(columns, data_outcome, count_outcome)
            if result.is_failed:
                logger.warning(
                    "user_filter_failed project=%s category=%s",
                    project,
                    result.error.category.value,
                )
            return result

    def _check_sorting(self, columns: List[Column], sorting: Optional[Sorting]) -> None:
        if sorting is None:
            return
        if not any(column.name == sorting.column for column in columns):
            raise InvalidArgumentError(f"sorting column does not exist: {sorting.column}")

    def _render(self, statement: exp.Expression) -> str:
        return self._compiler.formatter.format(statement)
