"""
SQL generation for catalog lookups and per-column aggregation.

Catalog queries bind schema and table names as parameters. Aggregation
queries embed identifiers, so every column name is checked against the
discovered schema and quoted by the dialect before it reaches SQL text.
"""

from typing import Dict, Iterable

from .models import AggregationRequest
from .normalizer import LengthUnit, TypeCategory

NATIVE = "native"
RENDERED = "rendered"


def validate_identifier(name: str, allowed: Iterable[str]) -> str:
    """Return name if it is one of the allowed (discovered) identifiers."""
    if name not in set(allowed):
        raise ValueError(f"Identifier '{name}' is not a discovered column of the target table")
    return name


class Dialect:
    """ANSI SQL; works for Calcite and most INFORMATION_SCHEMA databases."""

    name = "ansi"
    char_length_function = "CHAR_LENGTH"
    byte_length_function = "OCTET_LENGTH"
    count_function = "COUNT"
    # Declared types whose meaning differs from the shared type table
    type_overrides: Dict[str, TypeCategory] = {}

    def quote_identifier(self, name: str) -> str:
        return '"' + name.replace('"', '""') + '"'

    def qualified_table(self, schema: str, table: str) -> str:
        return f"{self.quote_identifier(schema)}.{self.quote_identifier(table)}"

    def text_expression(self, column_sql: str, max_length: int) -> str:
        return f"CAST({column_sql} AS VARCHAR({int(max_length)}))"

    def char_length_expression(self, column_sql: str, max_length: int) -> str:
        return f"{self.char_length_function}({self.text_expression(column_sql, max_length)})"

    def length_expression(self, request: AggregationRequest, column_sql: str) -> str:
        if request.derive_lengths:
            return "CAST(NULL AS INTEGER)"
        if request.length_unit == LengthUnit.BYTES:
            return f"{self.byte_length_function}({column_sql})"
        return self.char_length_expression(column_sql, request.max_value_length)

    def order_expression(self, request: AggregationRequest, column_sql: str) -> str:
        if request.order_mode == RENDERED:
            return self.text_expression(column_sql, request.max_value_length)
        return column_sql

    def distinct_expression(self, request: AggregationRequest, column_sql: str) -> str:
        if request.distinct_mode == RENDERED:
            return self.text_expression(column_sql, request.max_value_length)
        return column_sql

    def first_value_sql(self, expression: str, table_sql: str, column_sql: str) -> str:
        return (
            f"SELECT {expression} FROM {table_sql} "
            f"WHERE {column_sql} IS NOT NULL FETCH FIRST 1 ROWS ONLY"
        )

    def sample_expression(self, request: AggregationRequest, column_sql: str, table_sql: str) -> str:
        expression = self.order_expression(request, column_sql)
        return f"({self.first_value_sql(expression, table_sql, column_sql)})"

    def table_exists_sql(self) -> str:
        return (
            "SELECT COUNT(*) FROM INFORMATION_SCHEMA.TABLES "
            "WHERE TABLE_SCHEMA = ? AND TABLE_NAME = ?"
        )

    def columns_sql(self) -> str:
        return (
            "SELECT COLUMN_NAME, DATA_TYPE, CHARACTER_MAXIMUM_LENGTH, ORDINAL_POSITION "
            "FROM INFORMATION_SCHEMA.COLUMNS "
            "WHERE TABLE_SCHEMA = ? AND TABLE_NAME = ? "
            "ORDER BY ORDINAL_POSITION"
        )

    def row_count_sql(self, schema: str, table: str) -> str:
        return f"SELECT {self.count_function}(*) FROM {self.qualified_table(schema, table)}"

    def null_count_expression(self, column_sql: str) -> str:
        return f"SUM(CASE WHEN {column_sql} IS NULL THEN 1 ELSE 0 END)"

    def aggregation_sql(
        self,
        request: AggregationRequest,
        schema: str,
        table: str,
        allowed_columns: Iterable[str]
    ) -> str:
        """
        Build the single SELECT that computes every statistic of one column.

        Result columns, in order: null_count, distinct_count, min_value,
        max_value, min_length, max_length, sample_value.
        """
        name = validate_identifier(request.column.name, allowed_columns)
        col = self.quote_identifier(name)
        table_sql = self.qualified_table(schema, table)
        order_expr = self.order_expression(request, col)
        length_expr = self.length_expression(request, col)

        select_parts = [
            f"{self.null_count_expression(col)} AS null_count",
            f"{self.count_function}(DISTINCT {self.distinct_expression(request, col)}) AS distinct_count",
            f"MIN({order_expr}) AS min_value",
            f"MAX({order_expr}) AS max_value",
            f"MIN({length_expr}) AS min_length",
            f"MAX({length_expr}) AS max_length",
            f"{self.sample_expression(request, col, table_sql)} AS sample_value",
        ]
        return f"SELECT {', '.join(select_parts)} FROM {table_sql}"


AnsiDialect = Dialect


class DuckDBDialect(Dialect):
    name = "duckdb"
    char_length_function = "length"
    byte_length_function = "octet_length"
    # BIT is a bit string here (e.g. '0101'), not a flag
    type_overrides = {"bit": TypeCategory.TEXT, "bitstring": TypeCategory.TEXT}

    def text_expression(self, column_sql: str, max_length: int) -> str:
        return f"left(CAST({column_sql} AS VARCHAR), {int(max_length)})"

    def first_value_sql(self, expression: str, table_sql: str, column_sql: str) -> str:
        return f"SELECT {expression} FROM {table_sql} WHERE {column_sql} IS NOT NULL LIMIT 1"


class TSqlDialect(Dialect):
    """SQL Server."""

    name = "tsql"
    byte_length_function = "DATALENGTH"
    count_function = "COUNT_BIG"
    max_nvarchar = 4000
    # Types that refuse MIN/MAX/DISTINCT unless cast first
    legacy_lob_types = {"text": "NVARCHAR(MAX)", "ntext": "NVARCHAR(MAX)", "image": "VARBINARY(MAX)"}

    def quote_identifier(self, name: str) -> str:
        return "[" + name.replace("]", "]]") + "]"

    def null_count_expression(self, column_sql: str) -> str:
        return f"SUM(CAST(CASE WHEN {column_sql} IS NULL THEN 1 ELSE 0 END AS BIGINT))"

    def text_expression(self, column_sql: str, max_length: int) -> str:
        max_length = int(max_length)
        if max_length <= self.max_nvarchar:
            return f"CAST({column_sql} AS NVARCHAR({max_length}))"
        return f"LEFT(CAST({column_sql} AS NVARCHAR(MAX)), {max_length})"

    def char_length_expression(self, column_sql: str, max_length: int) -> str:
        # LEN ignores trailing spaces; DATALENGTH of NVARCHAR counts UTF-16 units
        return f"DATALENGTH({self.text_expression(column_sql, max_length)}) / 2"

    def _lob_cast(self, request: AggregationRequest, column_sql: str) -> str:
        target = self.legacy_lob_types.get(request.column.declared_type.lower())
        return f"CAST({column_sql} AS {target})" if target else column_sql

    def order_expression(self, request: AggregationRequest, column_sql: str) -> str:
        if request.order_mode == NATIVE and request.column.declared_type.lower() == "bit":
            return f"CAST({column_sql} AS TINYINT)"
        if request.order_mode == NATIVE:
            return self._lob_cast(request, column_sql)
        return super().order_expression(request, column_sql)

    def distinct_expression(self, request: AggregationRequest, column_sql: str) -> str:
        if request.distinct_mode == NATIVE:
            return self._lob_cast(request, column_sql)
        return super().distinct_expression(request, column_sql)

    def first_value_sql(self, expression: str, table_sql: str, column_sql: str) -> str:
        # Same row on every run regardless of the query plan
        return (
            f"SELECT TOP 1 {expression} FROM {table_sql} WHERE {column_sql} IS NOT NULL "
            f"ORDER BY CHECKSUM({expression}), {expression}"
        )


def dialect_for_url(jdbc_url: str) -> Dialect:
    """Pick a dialect from a JDBC URL."""
    url = (jdbc_url or "").lower()
    if url.startswith("jdbc:sqlserver:") or url.startswith("jdbc:jtds:sqlserver:"):
        return TSqlDialect()
    if url.startswith("jdbc:duckdb:"):
        return DuckDBDialect()
    return AnsiDialect()
