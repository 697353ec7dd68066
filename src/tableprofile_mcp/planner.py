"""Per-column aggregation planning and result interpretation."""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Optional, Sequence

from .dialects import NATIVE, RENDERED
from .models import AggregationRequest, ColumnDescriptor, ColumnStatistics
from .normalizer import (
    DEFAULT_MAX_VALUE_LENGTH,
    TypeCategory,
    length_unit_for,
    render_category,
    rendered_length,
    resolve_category,
)

logger = logging.getLogger(__name__)

_TWO_PLACES = Decimal("0.01")


def percent_null(null_count: int, total_rows: int) -> Decimal:
    """Null percentage rounded half-up to two places; 0 for an empty table."""
    if total_rows == 0:
        return Decimal("0.00")
    value = Decimal(null_count) * 100 / Decimal(total_rows)
    return value.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)


def plan(
    column: ColumnDescriptor,
    total_rows: int,
    max_value_length: int = DEFAULT_MAX_VALUE_LENGTH,
    type_overrides: Optional[Dict[str, TypeCategory]] = None
) -> AggregationRequest:
    """
    Build the aggregation request for one column.

    Text and unrecognised types are ordered by their bounded text form.
    Numeric, temporal, boolean and binary columns are ordered natively so that
    e.g. 9 sorts before 10, and are only rendered after MIN/MAX are taken.

    Args:
        column: Column to profile
        total_rows: Row count of the table, fixed for the whole run
        max_value_length: Truncation limit for rendered values
        type_overrides: Dialect-specific type categories, e.g. DuckDB BIT as text

    Returns:
        AggregationRequest describing the statistics to compute
    """
    category, fell_back = resolve_category(column.declared_type, type_overrides)
    by_text = category in (TypeCategory.TEXT, TypeCategory.OTHER)

    return AggregationRequest(
        column=column,
        category=category,
        total_rows=total_rows,
        max_value_length=max_value_length,
        length_unit=length_unit_for(category),
        order_mode=RENDERED if by_text else NATIVE,
        distinct_mode=RENDERED if category == TypeCategory.OTHER else NATIVE,
        derive_lengths=category == TypeCategory.BOOLEAN,
        type_fallback=fell_back,
        skip_scan=total_rows == 0,
    )


def _count(value, request: AggregationRequest, label: str) -> int:
    count = int(value or 0)
    if count > request.total_rows:
        logger.warning(
            f"Column '{request.column.name}': {label} {count} exceeds the row count "
            f"{request.total_rows} taken at the start of the run; clamping"
        )
        count = request.total_rows
    return count


def _as_int(value) -> Optional[int]:
    return int(value) if value is not None else None


def empty_statistics(request: AggregationRequest) -> ColumnStatistics:
    """Statistics of a column in a table without rows."""
    column = request.column
    return ColumnStatistics(
        ordinal=column.ordinal,
        name=column.name,
        declared_type=column.declared_type,
        declared_max_length=column.declared_max_length,
        total_rows=0,
        null_count=0,
        percent_null=percent_null(0, 0),
        distinct_count=0,
        type_fallback=request.type_fallback,
    )


def error_statistics(request: AggregationRequest, message: str) -> ColumnStatistics:
    """Record for a column whose statistics could not be computed."""
    column = request.column
    return ColumnStatistics(
        ordinal=column.ordinal,
        name=column.name,
        declared_type=column.declared_type,
        declared_max_length=column.declared_max_length,
        total_rows=request.total_rows,
        null_count=None,
        percent_null=None,
        distinct_count=None,
        type_fallback=request.type_fallback,
        error=message,
    )


def collect(request: AggregationRequest, row: Sequence) -> ColumnStatistics:
    """
    Turn one aggregation result row into ColumnStatistics.

    The row holds, in order: null count, distinct count, min, max, min
    length, max length and sample value.
    """
    if request.skip_scan:
        return empty_statistics(request)
    if row is None or len(row) != 7:
        raise ValueError(f"Unexpected aggregation result for column '{request.column.name}': {row!r}")

    null_raw, distinct_raw, min_raw, max_raw, min_len, max_len, sample_raw = row
    null_count = _count(null_raw, request, "null count")
    distinct_count = _count(distinct_raw, request, "distinct count")

    limit = request.max_value_length
    min_value = render_category(min_raw, request.category, limit)
    max_value = render_category(max_raw, request.category, limit)
    sample_value = render_category(sample_raw, request.category, limit)

    if request.derive_lengths:
        lengths = [
            rendered_length(v, request.length_unit)
            for v in (min_value, max_value) if v is not None
        ]
        min_length = min(lengths) if lengths else None
        max_length = max(lengths) if lengths else None
    else:
        min_length = _as_int(min_len)
        max_length = _as_int(max_len)

    column = request.column
    return ColumnStatistics(
        ordinal=column.ordinal,
        name=column.name,
        declared_type=column.declared_type,
        declared_max_length=column.declared_max_length,
        total_rows=request.total_rows,
        null_count=null_count,
        percent_null=percent_null(null_count, request.total_rows),
        distinct_count=distinct_count,
        min_value=min_value,
        max_value=max_value,
        min_length=min_length,
        max_length=max_length,
        sample_value=sample_value,
        type_fallback=request.type_fallback,
    )
