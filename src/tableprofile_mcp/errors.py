"""Exception types raised while profiling a table."""

from typing import Optional


class ProfilerError(Exception):
    """Base class for all profiling failures."""


class TableNotFoundError(ProfilerError):
    """The schema/table pair does not resolve to a table or view in the catalog."""

    def __init__(self, schema: str, table: str):
        self.schema = schema
        self.table = table
        super().__init__(f"Table {schema}.{table} does not exist in this database.")


class ColumnDiscoveryError(ProfilerError):
    """Reading the catalog or the row count of a table failed."""

    def __init__(self, schema: str, table: str, message: str):
        self.schema = schema
        self.table = table
        super().__init__(f"Could not read columns of {schema}.{table}: {message}")


class AggregationExecutionError(ProfilerError):
    """Statistics for a single column could not be computed."""

    def __init__(self, column: str, message: str, ordinal: Optional[int] = None):
        self.column = column
        self.ordinal = ordinal
        self.message = message
        super().__init__(f"Column '{column}': {message}")


class UnsupportedTypeError(ProfilerError):
    """No rendering rule exists for a declared column type."""

    def __init__(self, declared_type: str):
        self.declared_type = declared_type
        super().__init__(f"No rendering rule for declared type '{declared_type}'")


class ProfilingCancelledError(ProfilerError):
    """The profiling run was cancelled before it completed."""
