"""
Value normalization rules per declared column type.

Every declared type name maps to a category. The category decides how a raw
value fetched from the database is rendered into bounded text for the report
(min, max and sample values) and how the length of that text is measured.
"""

import logging
import re
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .errors import UnsupportedTypeError

logger = logging.getLogger(__name__)

DEFAULT_MAX_VALUE_LENGTH = 4000
BINARY_PREFIX = "0x"


class TypeCategory(str, Enum):
    """Normalized bucket a native column type maps to."""

    TEXT = "text"
    NUMERIC = "numeric"
    TEMPORAL = "temporal"
    BOOLEAN = "boolean"
    BINARY = "binary"
    OTHER = "other"


class LengthUnit(str, Enum):
    """Unit a rendered length is reported in."""

    CHARS = "chars"
    BYTES = "bytes"


# Covers SQL Server, DuckDB and the ANSI names reported by INFORMATION_SCHEMA.
_TYPE_CATEGORIES = {
    # text
    "char": TypeCategory.TEXT,
    "nchar": TypeCategory.TEXT,
    "varchar": TypeCategory.TEXT,
    "nvarchar": TypeCategory.TEXT,
    "text": TypeCategory.TEXT,
    "ntext": TypeCategory.TEXT,
    "sysname": TypeCategory.TEXT,
    "string": TypeCategory.TEXT,
    "bpchar": TypeCategory.TEXT,
    "character": TypeCategory.TEXT,
    "character varying": TypeCategory.TEXT,
    "national character": TypeCategory.TEXT,
    "national character varying": TypeCategory.TEXT,
    "clob": TypeCategory.TEXT,
    # numeric
    "tinyint": TypeCategory.NUMERIC,
    "smallint": TypeCategory.NUMERIC,
    "int": TypeCategory.NUMERIC,
    "integer": TypeCategory.NUMERIC,
    "bigint": TypeCategory.NUMERIC,
    "hugeint": TypeCategory.NUMERIC,
    "utinyint": TypeCategory.NUMERIC,
    "usmallint": TypeCategory.NUMERIC,
    "uinteger": TypeCategory.NUMERIC,
    "ubigint": TypeCategory.NUMERIC,
    "uhugeint": TypeCategory.NUMERIC,
    "decimal": TypeCategory.NUMERIC,
    "numeric": TypeCategory.NUMERIC,
    "money": TypeCategory.NUMERIC,
    "smallmoney": TypeCategory.NUMERIC,
    "float": TypeCategory.NUMERIC,
    "real": TypeCategory.NUMERIC,
    "double": TypeCategory.NUMERIC,
    "double precision": TypeCategory.NUMERIC,
    # temporal
    "date": TypeCategory.TEMPORAL,
    "time": TypeCategory.TEMPORAL,
    "datetime": TypeCategory.TEMPORAL,
    "datetime2": TypeCategory.TEMPORAL,
    "smalldatetime": TypeCategory.TEMPORAL,
    "datetimeoffset": TypeCategory.TEMPORAL,
    "timestamp": TypeCategory.TEMPORAL,
    "timestamp with time zone": TypeCategory.TEMPORAL,
    "timestamp without time zone": TypeCategory.TEMPORAL,
    "time with time zone": TypeCategory.TEMPORAL,
    "time without time zone": TypeCategory.TEMPORAL,
    "timestamptz": TypeCategory.TEMPORAL,
    "timestamp_s": TypeCategory.TEMPORAL,
    "timestamp_ms": TypeCategory.TEMPORAL,
    "timestamp_ns": TypeCategory.TEMPORAL,
    # boolean
    "bit": TypeCategory.BOOLEAN,
    "boolean": TypeCategory.BOOLEAN,
    "bool": TypeCategory.BOOLEAN,
    # binary
    "binary": TypeCategory.BINARY,
    "varbinary": TypeCategory.BINARY,
    "image": TypeCategory.BINARY,
    "blob": TypeCategory.BINARY,
    "bytea": TypeCategory.BINARY,
    "binary varying": TypeCategory.BINARY,
    # opaque but known; profiled through their text form
    "uniqueidentifier": TypeCategory.OTHER,
    "uuid": TypeCategory.OTHER,
    "xml": TypeCategory.OTHER,
    "json": TypeCategory.OTHER,
    "sql_variant": TypeCategory.OTHER,
    "interval": TypeCategory.OTHER,
    "hierarchyid": TypeCategory.OTHER,
    "rowversion": TypeCategory.OTHER,
}

_TYPE_PARAMS = re.compile(r"\s*\(.*?\)")
_TRUE_WORDS = ("1", "true", "t", "yes", "y")
_FALSE_WORDS = ("0", "false", "f", "no", "n")


def _normalize_type_name(declared_type: str) -> str:
    name = _TYPE_PARAMS.sub("", declared_type or "").strip().lower()
    return " ".join(name.split())


def category_for(
    declared_type: str,
    overrides: Optional[Dict[str, TypeCategory]] = None
) -> TypeCategory:
    """
    Map a declared type name to its category.

    Args:
        declared_type: Type name as reported by the catalog, e.g. "nvarchar",
            "DECIMAL(5,1)" or "TIMESTAMP WITH TIME ZONE"
        overrides: Backend-specific entries consulted before the shared table

    Returns:
        The matching TypeCategory

    Raises:
        UnsupportedTypeError: If no rendering rule exists for the type
    """
    name = _normalize_type_name(declared_type)
    category = (overrides or {}).get(name) or _TYPE_CATEGORIES.get(name)
    if category is None:
        raise UnsupportedTypeError(declared_type)
    return category


def resolve_category(
    declared_type: str,
    overrides: Optional[Dict[str, TypeCategory]] = None
) -> Tuple[TypeCategory, bool]:
    """Return (category, fell_back); unknown types degrade to OTHER."""
    try:
        return category_for(declared_type, overrides), False
    except UnsupportedTypeError as e:
        logger.warning(f"{e}; falling back to generic string rendering")
        return TypeCategory.OTHER, True


def length_unit_for(category: TypeCategory) -> LengthUnit:
    return LengthUnit.BYTES if category == TypeCategory.BINARY else LengthUnit.CHARS


def truncate_text(text: str, max_length: int) -> str:
    """Keep the first max_length code points of text."""
    if max_length < 0:
        raise ValueError(f"max_length must be >= 0, got {max_length}")
    return text[:max_length]


def _render_binary(raw: Any, max_length: int) -> str:
    data = bytes(raw)
    # Only whole bytes fit; never emit half of a hex pair.
    room = max(max_length - len(BINARY_PREFIX), 0) // 2
    return truncate_text(BINARY_PREFIX + data[:room].hex().upper(), max_length)


def _render_boolean(raw: Any) -> str:
    if isinstance(raw, str):
        word = raw.strip().lower()
        if word in _TRUE_WORDS:
            return "true"
        if word in _FALSE_WORDS:
            return "false"
        return raw
    return "true" if raw else "false"


def _render_numeric(raw: Any) -> str:
    if isinstance(raw, bool):
        return str(int(raw))
    if isinstance(raw, Decimal):
        return format(raw, "f")
    return str(raw)


def _render_temporal(raw: Any) -> str:
    if isinstance(raw, datetime):
        return raw.isoformat(sep=" ")
    if isinstance(raw, (date, time)):
        return raw.isoformat()
    return str(raw)


def render(
    raw: Any,
    declared_type: str,
    max_length: int = DEFAULT_MAX_VALUE_LENGTH
) -> Optional[str]:
    """
    Render a raw database value as bounded text.

    Values longer than max_length are truncated, never rejected. Binary
    values are rendered as upper-case hex with a "0x" prefix, cut at a byte
    boundary.

    Args:
        raw: Value as returned by the driver
        declared_type: Declared type name of the column the value came from
        max_length: Maximum number of characters in the rendered text

    Returns:
        Rendered text, or None when raw is None
    """
    if raw is None:
        return None
    category, _ = resolve_category(declared_type)
    return render_category(raw, category, max_length)


def render_category(
    raw: Any,
    category: TypeCategory,
    max_length: int = DEFAULT_MAX_VALUE_LENGTH
) -> Optional[str]:
    """Render a raw value using an already resolved category."""
    if raw is None:
        return None
    if category == TypeCategory.BINARY and isinstance(raw, (bytes, bytearray, memoryview)):
        return _render_binary(raw, max_length)
    if category == TypeCategory.BOOLEAN:
        text = _render_boolean(raw)
    elif category == TypeCategory.NUMERIC:
        text = _render_numeric(raw)
    elif category == TypeCategory.TEMPORAL:
        text = _render_temporal(raw)
    else:
        text = str(raw)
    return truncate_text(text, max_length)


def rendered_length(rendered: Optional[str], unit: LengthUnit = LengthUnit.CHARS) -> Optional[int]:
    """Length of a rendered value in characters, or in bytes for hex-rendered binary."""
    if rendered is None:
        return None
    if unit == LengthUnit.BYTES and rendered.startswith(BINARY_PREFIX):
        return (len(rendered) - len(BINARY_PREFIX)) // 2
    return len(rendered)
