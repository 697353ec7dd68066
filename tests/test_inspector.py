"""Tests for catalog lookups."""

from unittest.mock import MagicMock

import pytest

from tableprofile_mcp.dialects import DuckDBDialect
from tableprofile_mcp.errors import ColumnDiscoveryError, TableNotFoundError
from tableprofile_mcp.inspector import count_rows, list_columns, table_exists


def test_table_exists(duck):
    assert table_exists(duck, "main", "T")
    assert not table_exists(duck, "main", "missing")
    assert not table_exists(duck, "other_schema", "T")


def test_views_are_profiled_targets(duck):
    duck.raw.execute("CREATE VIEW recent AS SELECT id, name FROM T WHERE id > 2")
    columns = list_columns(duck, "main", "recent")
    assert [c.name for c in columns] == ["id", "name"]
    assert count_rows(duck, "main", "recent") == 3


def test_list_columns_in_declared_order(duck):
    columns = list_columns(duck, "main", "T")
    assert [(c.ordinal, c.name) for c in columns] == [(1, "id"), (2, "name"), (3, "score")]
    assert columns[0].declared_type == "INTEGER"
    assert columns[2].declared_type.startswith("DECIMAL")


def test_list_columns_missing_table(duck):
    with pytest.raises(TableNotFoundError) as exc_info:
        list_columns(duck, "main", "nope")
    assert (exc_info.value.schema, exc_info.value.table) == ("main", "nope")


def test_count_rows(duck):
    assert count_rows(duck, "main", "T") == 5


def test_catalog_failure_is_column_discovery_error():
    conn = MagicMock()
    conn.dialect = DuckDBDialect()
    conn.execute_query.side_effect = RuntimeError("catalog unavailable")
    with pytest.raises(ColumnDiscoveryError) as exc_info:
        list_columns(conn, "dbo", "Orders")
    assert "dbo.Orders" in str(exc_info.value)


def test_column_read_failure_after_existence_check():
    conn = MagicMock()
    conn.dialect = DuckDBDialect()
    conn.execute_query.side_effect = [(["count"], [(1,)]), RuntimeError("permission denied")]
    with pytest.raises(ColumnDiscoveryError):
        list_columns(conn, "dbo", "Orders")


def test_catalog_queries_bind_parameters():
    conn = MagicMock()
    conn.dialect = DuckDBDialect()
    conn.execute_query.return_value = (["count"], [(0,)])
    table_exists(conn, "dbo", "x'; DROP TABLE y; --")
    sql, params = conn.execute_query.call_args[0]
    assert "DROP" not in sql
    assert params == ["dbo", "x'; DROP TABLE y; --"]
