import asyncio

import pytest

from common.errors import ErrorCategory, InvalidArgumentError
from tests._support.fakes import FakeQueryExecutor
from user_storage.expressions import SqlglotExpressionFormatter, parse_filter_expression
from user_storage.filter_compiler import FilterCompiler
from user_storage.models import (
    Aggregation,
    AggregationType,
    Column,
    EventFilter,
    FieldType,
    Sorting,
    SortOrder,
)
from user_storage.orchestrator import UserFilterOrchestrator
from user_storage.query_result import TOTAL_RESULT, QueryError, QueryResult

COLUMNS = [
    Column(name="id", type=FieldType.LONG, unique=True),
    Column(name="name", type=FieldType.STRING),
    Column(name="age", type=FieldType.LONG),
]


class _StaticResolver:
    def __init__(self, columns):
        self.columns = columns

    async def resolve_columns(self, project):
        return list(self.columns)


def _respond(data=None, count=None):
    data = data if data is not None else QueryResult(rows=[[1, "Ada", 36]])
    count = count if count is not None else QueryResult(rows=[[42]])

    def respond(sql):
        return count if sql.startswith("SELECT COUNT(*)") else data

    return respond


class _CountFailingFormatter(SqlglotExpressionFormatter):
    def format(self, expression):
        sql = super().format(expression)
        if sql.startswith("SELECT COUNT(*)"):
            raise ValueError("cannot render count query")
        return sql


class _CountRejectingExecutor(FakeQueryExecutor):
    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.executions = []

    def execute_raw_query(self, sql):
        if sql.startswith("SELECT COUNT(*)"):
            raise RuntimeError("dispatch refused")
        execution = super().execute_raw_query(sql)
        self.executions.append(execution)
        return execution


def _orchestrator(executor, columns=COLUMNS):
    return UserFilterOrchestrator(
        executor, _StaticResolver(columns), FilterCompiler(SqlglotExpressionFormatter("postgres"))
    )


class TestUserFilterOrchestrator:
    """Tests for the paginated filter and its total count."""

    @pytest.mark.asyncio
    async def test_filter_returns_page_with_total(self):
        """Without event filters the page carries the total count."""
        executor = FakeQueryExecutor(respond=_respond())

        result = await _orchestrator(executor).filter(
            "acme", parse_filter_expression("age > 30"), limit=10, offset=20
        )

        assert not result.is_failed
        assert result.rows == [[1, "Ada", 36]]
        assert result.columns == COLUMNS
        assert result.properties == {TOTAL_RESULT: 42}
        assert result.total_result == 42
        assert executor.queries == [
            'SELECT "id", "name", "age" FROM "acme"."users" WHERE age > 30 LIMIT 10 OFFSET 20',
            'SELECT COUNT(*) FROM "acme"."users" WHERE age > 30',
        ]

    @pytest.mark.asyncio
    async def test_filter_without_boolean_filter_counts_everything(self):
        """The count query has no WHERE clause when no boolean filter is given."""
        executor = FakeQueryExecutor(respond=_respond())

        await _orchestrator(executor).filter("acme")

        assert executor.queries[1] == 'SELECT COUNT(*) FROM "acme"."users"'

    @pytest.mark.asyncio
    async def test_filter_with_event_filters_skips_count(self):
        """Behavioral filters disable the count query and return the page as-is."""
        page = QueryResult(rows=[[1, "Ada", 36]])
        executor = FakeQueryExecutor(respond=lambda sql: page)
        event_filter = EventFilter(
            collection="purchase",
            aggregation=Aggregation(type=AggregationType.COUNT, minimum=2),
        )

        result = await _orchestrator(executor).filter(
            "acme", parse_filter_expression("age > 30"), [event_filter]
        )

        assert result is page
        assert result.total_result is None
        assert len(executor.queries) == 1
        assert 'WHERE age > 30 AND "id" IN (SELECT "user" FROM "acme"."purchase"' in (
            executor.queries[0]
        )

    @pytest.mark.asyncio
    async def test_filter_sorting(self):
        """Sorting renders an ORDER BY on the requested column."""
        executor = FakeQueryExecutor(respond=_respond())

        await _orchestrator(executor).filter(
            "acme", sorting=Sorting(column="age", order=SortOrder.DESC), limit=5
        )

        assert 'ORDER BY "age" DESC LIMIT 5 OFFSET 0' in executor.queries[0]

    @pytest.mark.asyncio
    async def test_unknown_sort_column_rejected_before_dispatch(self):
        """A sorting column outside the resolved columns fails before any query runs."""
        executor = FakeQueryExecutor(respond=_respond())

        with pytest.raises(InvalidArgumentError, match="sorting column does not exist: plan"):
            await _orchestrator(executor).filter("acme", sorting=Sorting(column="plan"))

        assert executor.queries == []

    @pytest.mark.asyncio
    async def test_missing_user_table_rejected(self):
        """A tenant without user columns is an invalid request."""
        executor = FakeQueryExecutor(respond=_respond())

        with pytest.raises(InvalidArgumentError, match="User table does not exist"):
            await _orchestrator(executor, columns=[]).filter("acme")

        assert executor.queries == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit,offset", [(-1, 0), (10, -5), (True, 0), ("10", 0)])
    async def test_invalid_page_rejected(self, limit, offset):
        """Limit and offset must be non-negative integers."""
        executor = FakeQueryExecutor(respond=_respond())

        with pytest.raises(InvalidArgumentError):
            await _orchestrator(executor).filter("acme", limit=limit, offset=offset)

        assert executor.queries == []

    @pytest.mark.asyncio
    async def test_count_failure_fails_the_merge(self):
        """A failed count query fails the whole filter."""
        count = QueryResult.error_result(
            QueryError(message="canceling statement", category=ErrorCategory.TIMEOUT)
        )
        executor = FakeQueryExecutor(respond=_respond(count=count))

        result = await _orchestrator(executor).filter("acme")

        assert result.is_failed
        assert result.error.category == ErrorCategory.TIMEOUT
        assert result.rows == []

    @pytest.mark.asyncio
    async def test_data_exception_fails_the_merge(self):
        """An exception from the page query is converted into a failed result."""

        def respond(sql):
            if sql.startswith("SELECT COUNT(*)"):
                return QueryResult(rows=[[1]])
            return ConnectionRefusedError("connection refused")

        executor = FakeQueryExecutor(respond=respond)

        result = await _orchestrator(executor).filter("acme")

        assert result.is_failed
        assert result.error.category == ErrorCategory.CONNECTIVITY

    @pytest.mark.asyncio
    async def test_count_render_failure_dispatches_nothing(self):
        """Both statements render before either query is dispatched."""
        executor = FakeQueryExecutor(respond=_respond())
        orchestrator = UserFilterOrchestrator(
            executor,
            _StaticResolver(COLUMNS),
            FilterCompiler(_CountFailingFormatter("postgres")),
        )

        with pytest.raises(ValueError, match="cannot render count query"):
            await orchestrator.filter("acme")

        assert executor.queries == []

    @pytest.mark.asyncio
    async def test_count_dispatch_failure_cancels_data_query(self):
        """A page query left without its count query is cancelled."""
        executor = _CountRejectingExecutor(respond=_respond())

        with pytest.raises(RuntimeError, match="dispatch refused"):
            await _orchestrator(executor).filter("acme")

        (data,) = executor.executions
        with pytest.raises(asyncio.CancelledError):
            await data.result
