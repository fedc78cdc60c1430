import pytest

from common.sql.dialect import configured_dialect, normalize_sqlglot_dialect


@pytest.mark.parametrize(
    "raw,expected",
    [(None, "postgres"), ("", "postgres"), ("PostgreSQL", "postgres"), ("pg", "postgres")]
    + [("cockroachdb", "postgres"), ("Redshift", "redshift"), ("duckdb", "duckdb")],
)
def test_normalize_sqlglot_dialect(raw, expected):
    """Dialect names normalize to sqlglot identifiers."""
    assert normalize_sqlglot_dialect(raw) == expected


def test_configured_dialect_defaults_to_postgres():
    """Without SQL_DIALECT the postgres dialect is used."""
    assert configured_dialect() == "postgres"


def test_configured_dialect_reads_env(monkeypatch):
    """SQL_DIALECT is normalized."""
    monkeypatch.setenv("SQL_DIALECT", "PostgreSQL")
    assert configured_dialect() == "postgres"
