"""End-to-end profiling runs against DuckDB."""

import json
import threading
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from tableprofile_mcp.config import FailurePolicy
from tableprofile_mcp.dialects import DuckDBDialect
from tableprofile_mcp.errors import (
    AggregationExecutionError,
    ColumnDiscoveryError,
    ProfilingCancelledError,
    TableNotFoundError,
)
from tableprofile_mcp.models import RECORD_FIELDS
from tableprofile_mcp.orchestrator import TableProfiler, profile_table


def _by_name(report):
    return {col.name: col for col in report.columns}


class TestScenario:
    """The five-row T(id INT, name TEXT, score DECIMAL) table."""

    def test_report_values(self, duck):
        report = TableProfiler(duck, max_workers=3).profile("main", "T")
        cols = _by_name(report)

        assert report.total_rows == 5
        assert [c.name for c in report.columns] == ["id", "name", "score"]

        id_col = cols["id"]
        assert (id_col.total_rows, id_col.null_count, id_col.distinct_count) == (5, 0, 5)
        assert (id_col.min_value, id_col.max_value) == ("1", "5")
        assert id_col.percent_null == Decimal("0.00")

        name = cols["name"]
        assert name.null_count == 1
        assert name.percent_null == Decimal("20.00")
        assert name.distinct_count == 3
        assert (name.min_value, name.max_value) == ("a", "c")
        assert (name.min_length, name.max_length) == (1, 1)

        score = cols["score"]
        assert score.null_count == 2
        assert score.percent_null == Decimal("40.00")
        assert score.distinct_count == 2
        assert (score.min_value, score.max_value) == ("10.5", "20.0")
        assert (score.min_length, score.max_length) == (4, 4)

    def test_sample_values_occur_in_column(self, duck):
        cols = _by_name(TableProfiler(duck).profile("main", "T"))
        assert cols["id"].sample_value in {"1", "2", "3", "4", "5"}
        assert cols["name"].sample_value in {"a", "b", "c"}
        assert cols["score"].sample_value in {"10.5", "20.0"}

    def test_null_counts_bounded(self, duck):
        report = TableProfiler(duck).profile("main", "T")
        assert sum(c.null_count for c in report.columns) <= report.total_rows * len(report.columns)
        assert all(0 <= c.null_count <= c.total_rows for c in report.columns)
        assert all(0 <= c.distinct_count <= c.total_rows for c in report.columns)

    def test_idempotent(self, duck):
        profiler = TableProfiler(duck, max_workers=2)
        first = json.dumps(profiler.profile("main", "T").to_dict(), sort_keys=True)
        second = json.dumps(profiler.profile("main", "T").to_dict(), sort_keys=True)
        assert first == second

    def test_column_subset_keeps_declared_order(self, duck):
        report = TableProfiler(duck).profile("main", "T", columns=["score", "id"])
        assert [c.ordinal for c in report.columns] == [1, 3]

    def test_unknown_column_subset_rejected(self, duck):
        with pytest.raises(ValueError):
            TableProfiler(duck).profile("main", "T", columns=["nope"])

    def test_records_and_dataframe(self, duck):
        report = profile_table(duck, "main", "T")
        record = report.to_records()[1]
        assert record["columnName"] == "name"
        assert record["percentNull"] == 20.0
        frame = report.to_dataframe()
        assert list(frame.columns) == RECORD_FIELDS
        assert list(frame["columnOrdinal"]) == [1, 2, 3]


class TestEdgeCases:
    def test_missing_table(self, duck):
        with pytest.raises(TableNotFoundError):
            TableProfiler(duck).profile("main", "does_not_exist")

    def test_empty_table(self, duck):
        duck.raw.execute("CREATE TABLE E (a INTEGER, b VARCHAR)")
        report = TableProfiler(duck).profile("main", "E")
        assert report.total_rows == 0
        for col in report.columns:
            assert (col.null_count, col.distinct_count) == (0, 0)
            assert col.percent_null == Decimal("0.00")
            assert col.min_value is None and col.max_value is None and col.sample_value is None
            assert col.error is None

    def test_single_value_column(self, duck):
        duck.raw.execute("CREATE TABLE S AS SELECT 'v' AS val FROM range(7)")
        col = TableProfiler(duck).profile("main", "S").columns[0]
        assert col.distinct_count == 1
        assert col.min_value == col.max_value == col.sample_value == "v"
        assert col.percent_null == Decimal("0.00")

    def test_all_null_column(self, duck):
        duck.raw.execute("CREATE TABLE N (x INTEGER)")
        duck.raw.execute("INSERT INTO N VALUES (NULL), (NULL)")
        col = TableProfiler(duck).profile("main", "N").columns[0]
        assert col.null_count == 2
        assert col.percent_null == Decimal("100.00")
        assert col.min_value is None and col.sample_value is None and col.max_length is None

    def test_numeric_and_temporal_order(self, duck):
        duck.raw.execute("CREATE TABLE O (n INTEGER, d DATE)")
        duck.raw.execute("INSERT INTO O VALUES (9, DATE '2024-10-01'), (10, DATE '2024-09-30')")
        cols = _by_name(TableProfiler(duck).profile("main", "O"))
        assert (cols["n"].min_value, cols["n"].max_value) == ("9", "10")
        assert (cols["d"].min_value, cols["d"].max_value) == ("2024-09-30", "2024-10-01")

    def test_truncation(self, duck):
        duck.raw.execute("CREATE TABLE L (txt VARCHAR)")
        duck.raw.execute("INSERT INTO L VALUES (repeat('x', 5000)), (repeat('é', 50))")
        col = TableProfiler(duck, max_value_length=10).profile("main", "L").columns[0]
        assert col.min_value == "x" * 10
        assert col.max_value == "é" * 10
        assert (col.min_length, col.max_length) == (10, 10)

    def test_boolean_and_binary(self, duck):
        duck.raw.execute("CREATE TABLE BB (flag BOOLEAN, payload BLOB)")
        duck.raw.execute("INSERT INTO BB VALUES (true, ?), (false, ?), (NULL, NULL)", [b"\x01\x02", b"\xff"])
        cols = _by_name(TableProfiler(duck).profile("main", "BB"))
        assert (cols["flag"].min_value, cols["flag"].max_value) == ("false", "true")
        assert (cols["flag"].min_length, cols["flag"].max_length) == (4, 5)
        assert cols["payload"].min_value == "0x0102"
        assert cols["payload"].max_value == "0xFF"
        assert (cols["payload"].min_length, cols["payload"].max_length) == (1, 2)

    def test_duckdb_bit_string_values_are_kept(self, duck):
        duck.raw.execute("CREATE TABLE BS (bits BIT)")
        duck.raw.execute("INSERT INTO BS VALUES ('0101'), ('1111'), ('0101'), (NULL)")
        col = TableProfiler(duck).profile("main", "BS").columns[0]
        assert (col.min_value, col.max_value) == ("0101", "1111")
        assert col.sample_value in ("0101", "1111")
        assert (col.min_length, col.max_length) == (4, 4)
        assert (col.null_count, col.distinct_count) == (1, 2)
        assert not col.type_fallback

    def test_row_count_failure_is_column_discovery_error(self):
        conn = MagicMock()
        conn.dialect = DuckDBDialect()
        conn.execute_query.side_effect = [(["count"], [(1,)]), RuntimeError("lock request time out")]
        with pytest.raises(ColumnDiscoveryError) as exc_info:
            TableProfiler(conn).profile("dbo", "Orders")
        assert (exc_info.value.schema, exc_info.value.table) == ("dbo", "Orders")
        assert "lock request time out" in str(exc_info.value)

    def test_unsupported_type_falls_back(self, duck):
        duck.raw.execute("CREATE TABLE A (xs INTEGER[])")
        duck.raw.execute("INSERT INTO A VALUES ([1, 2]), ([1, 2]), (NULL)")
        col = TableProfiler(duck).profile("main", "A").columns[0]
        assert col.type_fallback
        assert col.error is None
        assert col.min_value == col.sample_value == "[1, 2]"
        assert col.distinct_count == 1


class TestConcurrency:
    def test_report_order_ignores_completion_order(self, scripted):
        # Earlier columns are slower, so they finish last
        conn = scripted(delays={f"c{i}": 0.1 * (7 - i) for i in range(1, 7)})
        report = TableProfiler(conn, max_workers=6).profile("main", "W")
        assert conn.completed[0] != "c1"
        assert [c.ordinal for c in report.columns] == [1, 2, 3, 4, 5, 6]
        assert [c.name for c in report.columns] == [f"c{i}" for i in range(1, 7)]

    def test_mark_and_continue(self, scripted):
        conn = scripted(failing={"c3"})
        report = TableProfiler(conn, failure_policy=FailurePolicy.MARK_AND_CONTINUE).profile("main", "W")
        failed = report.errors
        assert [c.name for c in failed] == ["c3"]
        assert "boom on c3" in failed[0].error
        assert failed[0].null_count is None
        assert all(c.null_count == 0 for c in report.columns if c.name != "c3")

    def test_abort_run(self, scripted):
        conn = scripted(failing={"c2"})
        with pytest.raises(AggregationExecutionError) as exc_info:
            TableProfiler(conn, failure_policy="abort-run").profile("main", "W")
        assert exc_info.value.column == "c2"
        assert exc_info.value.ordinal == 2

    def test_column_timeout_is_a_column_error(self, scripted):
        conn = scripted(blocking={"c4"})
        profiler = TableProfiler(conn, column_timeout_seconds=0.2, failure_policy="mark-and-continue")
        report = profiler.profile("main", "W")
        failed = report.errors
        assert [c.name for c in failed] == ["c4"]
        assert "timed out" in failed[0].error
        assert len(report.columns) == 6

    def test_cancel_before_start(self, duck):
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(ProfilingCancelledError):
            TableProfiler(duck).profile("main", "T", cancel_event=cancel)

    def test_cancel_in_flight(self, scripted):
        conn = scripted(blocking={f"c{i}" for i in range(1, 7)})
        cancel = threading.Event()
        timer = threading.Timer(0.2, cancel.set)
        timer.start()
        try:
            with pytest.raises(ProfilingCancelledError):
                TableProfiler(conn, max_workers=2, column_timeout_seconds=0).profile(
                    "main", "W", cancel_event=cancel
                )
        finally:
            timer.cancel()
        assert conn.interrupted
        assert len(conn.started) <= 2 + 2


def test_invalid_options(duck):
    with pytest.raises(ValueError):
        TableProfiler(duck, max_workers=0)
    with pytest.raises(ValueError):
        TableProfiler(duck, failure_policy="retry")
