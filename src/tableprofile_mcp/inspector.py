"""Catalog lookups: table existence, column discovery and the table row count."""

import logging
from typing import List

from .connection import BaseConnection
from .errors import ColumnDiscoveryError, TableNotFoundError
from .models import ColumnDescriptor

logger = logging.getLogger(__name__)


def table_exists(connection: BaseConnection, schema: str, table: str) -> bool:
    """Whether schema.table is a table or view in the catalog."""
    try:
        _, rows = connection.execute_query(connection.dialect.table_exists_sql(), [schema, table])
    except Exception as e:
        logger.error(f"Error checking existence of '{schema}.{table}': {e}")
        raise ColumnDiscoveryError(schema, table, str(e)) from e
    return bool(rows) and int(rows[0][0] or 0) > 0


def list_columns(
    connection: BaseConnection,
    schema: str,
    table: str,
    check_exists: bool = True
) -> List[ColumnDescriptor]:
    """
    Enumerate the columns of a table in declared order.

    Args:
        connection: Executor handle
        schema: Schema name
        table: Table name
        check_exists: Verify the table exists first (skip if the caller already did)

    Returns:
        ColumnDescriptors ordered by ordinal position

    Raises:
        TableNotFoundError: If schema.table does not exist
        ColumnDiscoveryError: If the catalog could not be read
    """
    if check_exists and not table_exists(connection, schema, table):
        raise TableNotFoundError(schema, table)

    try:
        _, rows = connection.execute_query(connection.dialect.columns_sql(), [schema, table])
    except Exception as e:
        logger.error(f"Error describing table '{schema}.{table}': {e}")
        raise ColumnDiscoveryError(schema, table, str(e)) from e

    columns = []
    for name, data_type, max_length, ordinal in rows:
        columns.append(ColumnDescriptor(
            ordinal=int(ordinal),
            name=str(name),
            declared_type=str(data_type),
            declared_max_length=int(max_length) if max_length is not None else None,
        ))
    columns.sort(key=lambda col: col.ordinal)

    logger.info(f"Found {len(columns)} columns in table '{schema}.{table}'")
    return columns


def count_rows(connection: BaseConnection, schema: str, table: str) -> int:
    """Total rows of schema.table; a NULL count is treated as 0."""
    _, rows = connection.execute_query(connection.dialect.row_count_sql(schema, table))
    if not rows or rows[0][0] is None:
        return 0
    return int(rows[0][0])
