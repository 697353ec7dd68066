"""
Profiling run orchestration.

A run validates the table, counts its rows once, discovers its columns and
then profiles every column as an independent task on a bounded thread pool.
Results are merged by column ordinal, so the report order never depends on
which task finished first.
"""

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from typing import Dict, Iterable, List, Optional

from .config import FailurePolicy, settings
from .connection import BaseConnection
from .dialects import Dialect
from .errors import (
    AggregationExecutionError,
    ColumnDiscoveryError,
    ProfilingCancelledError,
    TableNotFoundError,
)
from .inspector import count_rows, list_columns, table_exists
from .models import AggregationRequest, ColumnDescriptor, ColumnStatistics, ProfileReport
from .planner import collect, error_statistics, plan

logger = logging.getLogger(__name__)


class _RunState:
    """Cursors in flight for one run, so they can be interrupted together."""

    def __init__(self, connection: BaseConnection):
        self.connection = connection
        self.stopped = threading.Event()
        self._cursors: Dict[int, object] = {}
        self._lock = threading.Lock()

    def register(self, ordinal: int, cursor) -> None:
        with self._lock:
            self._cursors[ordinal] = cursor

    def unregister(self, ordinal: int) -> None:
        with self._lock:
            self._cursors.pop(ordinal, None)

    def stop(self) -> None:
        self.stopped.set()
        with self._lock:
            cursors = list(self._cursors.items())
        for ordinal, cursor in cursors:
            try:
                self.connection.interrupt(cursor)
            except Exception as e:
                logger.warning(f"Could not interrupt query for column #{ordinal}: {e}")


class TableProfiler:
    """Computes a ProfileReport for one table at a time."""

    def __init__(
        self,
        connection: BaseConnection,
        dialect: Optional[Dialect] = None,
        max_workers: Optional[int] = None,
        column_timeout_seconds: Optional[float] = None,
        max_value_length: Optional[int] = None,
        failure_policy: Optional[FailurePolicy] = None,
        poll_interval_seconds: Optional[float] = None
    ):
        """
        Args:
            connection: Executor handle for the target database
            dialect: SQL dialect; defaults to the connection's
            max_workers: Number of columns profiled concurrently
            column_timeout_seconds: Per-column time limit; 0 disables it
            max_value_length: Truncation limit for min/max/sample values
            failure_policy: "abort-run" or "mark-and-continue"
            poll_interval_seconds: How often cancellation is checked
        """
        self.connection = connection
        self.dialect = dialect or connection.dialect
        self.max_workers = max_workers if max_workers is not None else settings.max_workers
        timeout = column_timeout_seconds if column_timeout_seconds is not None else settings.column_timeout_seconds
        self.column_timeout_seconds = timeout if timeout and timeout > 0 else None
        self.max_value_length = max_value_length if max_value_length is not None else settings.max_value_length
        self.failure_policy = FailurePolicy(failure_policy or settings.failure_policy)
        self.poll_interval_seconds = poll_interval_seconds or settings.poll_interval_seconds

        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")
        if self.max_value_length < 1:
            raise ValueError(f"max_value_length must be >= 1, got {self.max_value_length}")

    def profile(
        self,
        schema: str,
        table: str,
        cancel_event: Optional[threading.Event] = None,
        columns: Optional[Iterable[str]] = None
    ) -> ProfileReport:
        """
        Profile every column of schema.table.

        Args:
            schema: Schema name
            table: Table name
            cancel_event: Set it from another thread to cancel the run
            columns: Restrict the report to these columns (None = all)

        Returns:
            ProfileReport with one ColumnStatistics per column, in declared order

        Raises:
            TableNotFoundError: If the table does not exist
            ColumnDiscoveryError: If the catalog could not be read
            AggregationExecutionError: If a column fails under the abort-run policy
            ProfilingCancelledError: If cancel_event was set before the run finished
        """
        qualified_table = f"{schema}.{table}"
        self._check_cancelled(cancel_event, qualified_table)

        if not table_exists(self.connection, schema, table):
            raise TableNotFoundError(schema, table)

        try:
            total_rows = count_rows(self.connection, schema, table)
        except Exception as e:
            logger.error(f"Error counting rows of '{qualified_table}': {e}")
            raise ColumnDiscoveryError(schema, table, f"row count failed: {e}") from e

        discovered = list_columns(self.connection, schema, table, check_exists=False)
        selected = self._select_columns(discovered, columns)
        self._check_cancelled(cancel_event, qualified_table)

        requests = [
            plan(column, total_rows, self.max_value_length, self.dialect.type_overrides)
            for column in selected
        ]
        allowed = [column.name for column in discovered]
        results = self._run(requests, schema, table, allowed, cancel_event)

        report = ProfileReport(
            schema=schema,
            table=table,
            total_rows=total_rows,
            columns=[results[ordinal] for ordinal in sorted(results)],
        )
        logger.info(
            f"Profiled table '{qualified_table}' with {len(report.columns)} columns "
            f"({total_rows} rows, {len(report.errors)} column errors)"
        )
        return report

    @staticmethod
    def _check_cancelled(cancel_event: Optional[threading.Event], qualified_table: str) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise ProfilingCancelledError(f"Profiling of {qualified_table} was cancelled")

    @staticmethod
    def _select_columns(
        discovered: List[ColumnDescriptor],
        names: Optional[Iterable[str]]
    ) -> List[ColumnDescriptor]:
        if not names:
            return discovered
        wanted = set(names)
        known = {column.name for column in discovered}
        missing = sorted(wanted - known)
        if missing:
            raise ValueError(f"Columns not found in table: {missing}")
        return [column for column in discovered if column.name in wanted]

    def _run(
        self,
        requests: List[AggregationRequest],
        schema: str,
        table: str,
        allowed: List[str],
        cancel_event: Optional[threading.Event]
    ) -> Dict[int, ColumnStatistics]:
        qualified_table = f"{schema}.{table}"
        results: Dict[int, ColumnStatistics] = {}
        run = _RunState(self.connection)

        pool = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="profile")
        try:
            futures = {}
            for request in requests:
                if request.skip_scan:
                    results[request.column.ordinal] = collect(request, None)
                    continue
                sql = self.dialect.aggregation_sql(request, schema, table, allowed)
                futures[pool.submit(self._profile_column, request, sql, run)] = request

            pending = set(futures)
            while pending:
                if cancel_event is not None and cancel_event.is_set():
                    self._stop(run, pending)
                    raise ProfilingCancelledError(f"Profiling of {qualified_table} was cancelled")

                done, pending = wait(pending, timeout=self.poll_interval_seconds, return_when=FIRST_COMPLETED)
                for future in done:
                    request = futures[future]
                    try:
                        results[request.column.ordinal] = future.result()
                    except AggregationExecutionError as e:
                        if self.failure_policy == FailurePolicy.ABORT_RUN:
                            logger.error(f"Aborting profile of '{qualified_table}': {e}")
                            self._stop(run, pending)
                            raise
                        logger.warning(f"Profiling '{qualified_table}': {e}; column marked as failed")
                        results[request.column.ordinal] = error_statistics(request, e.message)
        finally:
            pool.shutdown(wait=True, cancel_futures=True)

        return results

    @staticmethod
    def _stop(run: _RunState, pending) -> None:
        for future in pending:
            future.cancel()
        run.stop()

    def _on_timeout(self, cursor, timed_out: threading.Event) -> None:
        timed_out.set()
        try:
            self.connection.interrupt(cursor)
        except Exception as e:
            logger.warning(f"Could not interrupt timed out query: {e}")

    def _profile_column(self, request: AggregationRequest, sql: str, run: _RunState) -> ColumnStatistics:
        """Execute one column's aggregation on its own cursor."""
        column = request.column
        if run.stopped.is_set():
            raise ProfilingCancelledError(f"Column '{column.name}' skipped: run stopped")

        timed_out = threading.Event()
        timer = None
        cursor = None
        try:
            cursor = self.connection.get_cursor()
            run.register(column.ordinal, cursor)
            if run.stopped.is_set():
                raise ProfilingCancelledError(f"Column '{column.name}' skipped: run stopped")
            if self.column_timeout_seconds:
                timer = threading.Timer(self.column_timeout_seconds, self._on_timeout, args=(cursor, timed_out))
                timer.daemon = True
                timer.start()
            logger.debug(f"Profiling column #{column.ordinal} '{column.name}': {sql}")
            cursor.execute(sql)
            row = cursor.fetchone()
        except Exception as e:
            if timed_out.is_set():
                raise AggregationExecutionError(
                    column.name, f"timed out after {self.column_timeout_seconds}s", column.ordinal
                ) from e
            if run.stopped.is_set():
                raise ProfilingCancelledError(f"Column '{column.name}' interrupted: run stopped") from e
            raise AggregationExecutionError(column.name, str(e), column.ordinal) from e
        finally:
            if timer is not None:
                timer.cancel()
            run.unregister(column.ordinal)
            if cursor is not None:
                cursor.close()

        try:
            return collect(request, row)
        except Exception as e:
            raise AggregationExecutionError(
                column.name, f"could not normalize result: {e}", column.ordinal
            ) from e


def profile_table(connection: BaseConnection, schema: str, table: str, **options) -> ProfileReport:
    """Profile schema.table with a TableProfiler built from options."""
    cancel_event = options.pop("cancel_event", None)
    columns = options.pop("columns", None)
    profiler = TableProfiler(connection, **options)
    return profiler.profile(schema, table, cancel_event=cancel_event, columns=columns)
