"""Data types shared by the inspector, planner and orchestrator."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

import pandas as pd

from .normalizer import LengthUnit, TypeCategory

RECORD_FIELDS = [
    "columnOrdinal",
    "columnName",
    "declaredType",
    "declaredMaxLength",
    "totalRows",
    "nullCount",
    "percentNull",
    "distinctCount",
    "minValue",
    "maxValue",
    "minLength",
    "maxLength",
    "sampleValue",
    "typeFallback",
    "error",
]


@dataclass(frozen=True)
class ColumnDescriptor:
    """A column as declared in the catalog."""

    ordinal: int
    name: str
    declared_type: str
    declared_max_length: Optional[int] = None


@dataclass(frozen=True)
class AggregationRequest:
    """Declarative description of the statistics to compute for one column."""

    column: ColumnDescriptor
    category: TypeCategory
    total_rows: int
    max_value_length: int
    length_unit: LengthUnit = LengthUnit.CHARS
    # "native" aggregates the column itself, "rendered" its bounded text cast
    order_mode: str = "native"
    distinct_mode: str = "native"
    derive_lengths: bool = False
    type_fallback: bool = False
    skip_scan: bool = False


@dataclass(frozen=True)
class ColumnStatistics:
    """Profile of one column; statistics are None when the column errored."""

    ordinal: int
    name: str
    declared_type: str
    declared_max_length: Optional[int]
    total_rows: int
    null_count: Optional[int]
    percent_null: Optional[Decimal]
    distinct_count: Optional[int]
    min_value: Optional[str] = None
    max_value: Optional[str] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    sample_value: Optional[str] = None
    type_fallback: bool = False
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    def to_record(self) -> Dict[str, Any]:
        return {
            "columnOrdinal": self.ordinal,
            "columnName": self.name,
            "declaredType": self.declared_type,
            "declaredMaxLength": self.declared_max_length,
            "totalRows": self.total_rows,
            "nullCount": self.null_count,
            "percentNull": float(self.percent_null) if self.percent_null is not None else None,
            "distinctCount": self.distinct_count,
            "minValue": self.min_value,
            "maxValue": self.max_value,
            "minLength": self.min_length,
            "maxLength": self.max_length,
            "sampleValue": self.sample_value,
            "typeFallback": self.type_fallback,
            "error": self.error,
        }


@dataclass(frozen=True)
class ProfileReport:
    """Ordered column profiles of one table."""

    schema: str
    table: str
    total_rows: int
    columns: List[ColumnStatistics] = field(default_factory=list)

    @property
    def errors(self) -> List[ColumnStatistics]:
        return [col for col in self.columns if col.failed]

    def to_records(self) -> List[Dict[str, Any]]:
        return [col.to_record() for col in self.columns]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema": self.schema,
            "table": self.table,
            "row_count": self.total_rows,
            "columns": self.to_records(),
        }

    def to_dataframe(self) -> pd.DataFrame:
        """Report as a DataFrame with one row per column, in ordinal order."""
        return pd.DataFrame(self.to_records(), columns=RECORD_FIELDS)
