import pytest
from sqlglot import exp

from common.errors import InvalidArgumentError
from user_storage.expressions import (
    ExpressionFormatter,
    SqlglotExpressionFormatter,
    parse_filter_expression,
)


def test_parse_and_format_round_trip():
    """A parsed condition renders back as predicate text."""
    expression = parse_filter_expression("age > 30 AND country = 'DE'")
    assert isinstance(expression, exp.And)
    assert SqlglotExpressionFormatter().format(expression) == "age > 30 AND country = 'DE'"


@pytest.mark.parametrize("text", ["", "   "])
def test_parse_rejects_empty_text(text):
    """Empty filters are rejected up front."""
    with pytest.raises(InvalidArgumentError, match="empty"):
        parse_filter_expression(text)


def test_parse_rejects_malformed_text():
    """Parse errors surface as validation errors."""
    with pytest.raises(InvalidArgumentError, match="could not be parsed"):
        parse_filter_expression("(age > 30")


def test_formatter_uses_configured_dialect(monkeypatch):
    """The formatter falls back to SQL_DIALECT."""
    monkeypatch.setenv("SQL_DIALECT", "pg")
    assert SqlglotExpressionFormatter().dialect == "postgres"
    assert SqlglotExpressionFormatter("duckdb").dialect == "duckdb"


def test_formatter_satisfies_protocol():
    """The sqlglot formatter is an ExpressionFormatter."""
    assert isinstance(SqlglotExpressionFormatter(), ExpressionFormatter)
