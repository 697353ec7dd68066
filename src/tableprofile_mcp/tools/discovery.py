"""Discovery tool for listing a table's columns."""

from typing import Dict, Any
from ..connection import get_connection
from ..inspector import list_columns
import logging

logger = logging.getLogger(__name__)


def describe_table(schema: str, table: str) -> Dict[str, Any]:
    """
    Get the declared columns of a table in ordinal order.

    Args:
        schema: Schema name
        table: Table name

    Returns:
        Dictionary with column details
    """
    conn = get_connection()

    try:
        columns = list_columns(conn, schema, table)
    except Exception as e:
        logger.error(f"Error describing table '{schema}.{table}': {e}")
        raise

    return {
        "schema": schema,
        "table": table,
        "columns": [
            {
                "ordinal": col.ordinal,
                "name": col.name,
                "type": col.declared_type,
                "max_length": col.declared_max_length,
            }
            for col in columns
        ]
    }
