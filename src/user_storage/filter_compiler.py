"""Compile user filters and behavioral event filters into predicate fragments.

Fragments are sqlglot expression trees that reference the user table's primary
key (or, for the boolean filter, the user table's own columns). Callers AND
them together and render them with an ExpressionFormatter.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Sequence

from sqlglot import exp

from common.errors import InvalidArgumentError
from common.sql.identifiers import check_collection, check_project, check_table_column
from user_storage.constants import PRIMARY_KEY, USER_COLUMN
from user_storage.expressions import ExpressionFormatter, SqlglotExpressionFormatter
from user_storage.models import Aggregation, AggregationType, EventFilter, Number

logger = logging.getLogger(__name__)

_AGGREGATE_BUILDERS: Dict[AggregationType, Callable[[exp.Expression], exp.Expression]] = {
    AggregationType.COUNT: lambda column: exp.Count(this=column),
    AggregationType.COUNT_UNIQUE: lambda column: exp.Count(
        this=exp.Distinct(expressions=[column])
    ),
    AggregationType.SUM: lambda column: exp.Sum(this=column),
    AggregationType.MINIMUM: lambda column: exp.Min(this=column),
    AggregationType.MAXIMUM: lambda column: exp.Max(this=column),
    AggregationType.AVERAGE: lambda column: exp.Avg(this=column),
}

_FIELDLESS_AGGREGATIONS = {AggregationType.COUNT, AggregationType.COUNT_UNIQUE}


def quoted_column(name: str) -> exp.Column:
    """Return a quoted column reference."""
    return exp.column(name, quoted=True)


def tenant_table(project: str, table: str) -> exp.Table:
    """Return a quoted `<project>.<table>` reference."""
    return exp.table_(table, db=project, quoted=True)


def primary_key_in(subquery: exp.Select) -> exp.In:
    """Return `"id" IN (<subquery>)`."""
    return exp.In(this=quoted_column(PRIMARY_KEY), query=subquery.subquery())


def aggregate_field(aggregation: Aggregation) -> str:
    """Resolve the aggregated field, defaulting to the user column for field-less counts."""
    if aggregation.field is None:
        if aggregation.type in _FIELDLESS_AGGREGATIONS:
            return USER_COLUMN
        raise InvalidArgumentError(
            f"Aggregation {aggregation.type.value} requires a field to aggregate."
        )
    return check_table_column(aggregation.field, "aggregation field")


class FilterCompiler:
    """Builds predicate fragments for the user filter query."""

    def __init__(self, formatter: Optional[ExpressionFormatter] = None) -> None:
        """Initialize with the formatter used when fragments are rendered to text."""
        self._formatter = formatter or SqlglotExpressionFormatter()

    @property
    def formatter(self) -> ExpressionFormatter:
        """Return the formatter used to render fragments."""
        return self._formatter

    def compile_fragments(
        self,
        project: str,
        filter_expression: Optional[exp.Expression],
        event_filters: Optional[Sequence[EventFilter]],
    ) -> List[exp.Expression]:
        """Return fragments in order: boolean filter, then each event filter in input order.

        An aggregation with both bounds yields its minimum fragment before its
        maximum fragment.

        Raises:
            InvalidArgumentError: On an invalid project, collection or aggregation field.
        """
        check_project(project)
        fragments: List[exp.Expression] = []
        if filter_expression is not None:
            fragments.append(filter_expression.copy())

        for event_filter in event_filters or []:
            fragments.extend(self._event_filter_fragments(project, event_filter))
        return fragments

    def compile(
        self,
        project: str,
        filter_expression: Optional[exp.Expression],
        event_filters: Optional[Sequence[EventFilter]],
    ) -> List[str]:
        """Return the fragments of `compile_fragments` rendered as predicate text."""
        return [
            self._formatter.format(fragment)
            for fragment in self.compile_fragments(project, filter_expression, event_filters)
        ]

    def _event_filter_fragments(
        self, project: str, event_filter: EventFilter
    ) -> List[exp.Expression]:
        check_collection(event_filter.collection)
        aggregation = event_filter.aggregation
        if aggregation is None:
            return [primary_key_in(self._collection_users(project, event_filter))]

        field = aggregate_field(aggregation)
        fragments: List[exp.Expression] = []
        if aggregation.minimum is not None:
            subquery = self._aggregate_exceeds(project, event_filter, field, aggregation.minimum)
            fragments.append(primary_key_in(subquery))
        if aggregation.maximum is not None:
            # Users whose aggregate exceeds the maximum are excluded, so the bound is inclusive.
            subquery = self._aggregate_exceeds(project, event_filter, field, aggregation.maximum)
            fragments.append(exp.Not(this=primary_key_in(subquery)))
        if not fragments:
            logger.info(
                "event_filter_aggregation_without_bounds project=%s collection=%s",
                project,
                event_filter.collection,
            )
        return fragments

    def _collection_users(self, project: str, event_filter: EventFilter) -> exp.Select:
        select = exp.select(quoted_column(USER_COLUMN)).from_(
            tenant_table(project, event_filter.collection)
        )
        if event_filter.filter_expression is not None:
            select = select.where(event_filter.filter_expression.copy())
        return select

    def _aggregate_exceeds(
        self, project: str, event_filter: EventFilter, field: str, bound: Number
    ) -> exp.Select:
        aggregate = _AGGREGATE_BUILDERS[event_filter.aggregation.type](quoted_column(field))
        return (
            self._collection_users(project, event_filter)
            .group_by(quoted_column(USER_COLUMN))
            .having(exp.GT(this=aggregate, expression=exp.Literal.number(bound)))
        )
