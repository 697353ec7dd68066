"""Table profiling tool for column statistics."""

from typing import Dict, Any, List, Optional
from ..connection import get_connection
from ..orchestrator import TableProfiler
import logging

logger = logging.getLogger(__name__)


def profile_table(
    schema: str,
    table: str,
    columns: Optional[List[str]] = None,
    max_workers: Optional[int] = None,
    column_timeout_seconds: Optional[float] = None,
    max_value_length: Optional[int] = None,
    failure_policy: Optional[str] = None
) -> Dict[str, Any]:
    """
    Get statistical profile of a table: row count, null count and percentage,
    distinct count, min/max value, min/max length and a sample value for
    each column.

    Args:
        schema: Schema name
        table: Table name
        columns: List of columns to profile (None = all columns)
        max_workers: Columns profiled concurrently (None = configured default)
        column_timeout_seconds: Per-column time limit (None = configured default)
        max_value_length: Truncation limit for rendered values
        failure_policy: "abort-run" or "mark-and-continue"

    Returns:
        Dictionary with profiling statistics
    """
    conn = get_connection()
    qualified_table = f"{schema}.{table}"

    profiler = TableProfiler(
        conn,
        max_workers=max_workers,
        column_timeout_seconds=column_timeout_seconds,
        max_value_length=max_value_length,
        failure_policy=failure_policy,
    )

    try:
        report = profiler.profile(schema, table, columns=columns)
    except Exception as e:
        logger.error(f"Error profiling table '{qualified_table}': {e}")
        raise

    return report.to_dict()
