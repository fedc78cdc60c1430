"""Boolean filter expressions and their rendering to predicate text."""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from sqlglot import exp
from sqlglot.errors import ParseError

from common.errors import InvalidArgumentError
from common.sql.dialect import configured_dialect, normalize_sqlglot_dialect


@runtime_checkable
class ExpressionFormatter(Protocol):
    """Protocol for turning a boolean expression tree into predicate text."""

    def format(self, expression: exp.Expression) -> str:
        """Render the expression as a SQL boolean predicate."""
        ...


class SqlglotExpressionFormatter:
    """ExpressionFormatter backed by sqlglot's SQL generator."""

    def __init__(self, dialect: Optional[str] = None) -> None:
        """Initialize with an explicit dialect or the configured one."""
        self.dialect = normalize_sqlglot_dialect(dialect) if dialect else configured_dialect()

    def format(self, expression: exp.Expression) -> str:
        """Render the expression in the configured dialect."""
        return expression.sql(dialect=self.dialect)


def parse_filter_expression(text: str, dialect: Optional[str] = None) -> exp.Expression:
    """Parse a textual boolean condition into an expression tree.

    Raises:
        InvalidArgumentError: If the text is empty or not a single condition.
    """
    if not text or not text.strip():
        raise InvalidArgumentError("Filter expression is empty.")
    read = normalize_sqlglot_dialect(dialect) if dialect else configured_dialect()
    try:
        parsed = exp.condition(text, dialect=read)
    except ParseError as exc:
        raise InvalidArgumentError(f"Filter expression could not be parsed: {exc}") from exc
    if isinstance(parsed, exp.Query):
        raise InvalidArgumentError("Filter expression must be a boolean condition.")
    return parsed
