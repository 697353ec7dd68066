"""MCP server exposing the table profiler over the stdio transport."""

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent
import asyncio
import json
import logging
import sys
from typing import Any

from .config import settings
from .connection import initialize_connection, close_connection
from .tools import discovery, profile
from .logging_config import setup_logging

logger = logging.getLogger(__name__)


# MCP Server instance
mcp = Server("table-profiler")


# Register MCP Tools
@mcp.list_tools()
async def list_tools() -> list[Tool]:
    """List all available MCP tools."""
    return [
        Tool(
            name="describe_table",
            description="List the columns of a table with their declared type and maximum length, in declared order",
            inputSchema={
                "type": "object",
                "properties": {
                    "schema": {"type": "string", "description": "Schema name"},
                    "table": {"type": "string", "description": "Table or view name"}
                },
                "required": ["schema", "table"]
            }
        ),
        Tool(
            name="profile_table",
            description="""Profile every column of a table.

For each column returns: total rows, null count, percent null, distinct count,
min/max value, min/max rendered length and one sample value. Min and max use the
column's native ordering for numeric, temporal and binary types. Values longer
than max_value_length are truncated.

The whole table is scanned once per column; columns run concurrently on
max_workers connections. A column that fails or exceeds column_timeout_seconds
either aborts the run (failure_policy="abort-run") or is returned with an
"error" field and no statistics (failure_policy="mark-and-continue").""",
            inputSchema={
                "type": "object",
                "properties": {
                    "schema": {"type": "string", "description": "Schema name"},
                    "table": {"type": "string", "description": "Table or view name"},
                    "columns": {"type": "array", "items": {"type": "string"}, "description": "Columns to profile (empty = all)"},
                    "max_workers": {"type": "integer", "minimum": 1, "description": "Columns profiled concurrently"},
                    "column_timeout_seconds": {"type": "number", "minimum": 0, "description": "Per-column timeout, 0 disables"},
                    "max_value_length": {"type": "integer", "minimum": 1, "description": "Truncation limit for min/max/sample", "default": 4000},
                    "failure_policy": {
                        "type": "string",
                        "enum": ["abort-run", "mark-and-continue"],
                        "description": "What to do when one column fails"
                    }
                },
                "required": ["schema", "table"]
            }
        ),
    ]


def _dispatch(name: str, arguments: dict[str, Any]) -> dict[str, Any]:
    if name == "describe_table":
        return discovery.describe_table(**arguments)
    if name == "profile_table":
        return profile.profile_table(**arguments)
    raise ValueError(f"Unknown tool: {name}")


@mcp.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Execute MCP tool by name."""
    try:
        # Profiling blocks on database I/O; keep the event loop responsive
        result = await asyncio.to_thread(_dispatch, name, arguments or {})
        return [TextContent(type="text", text=json.dumps(result, indent=2, default=str))]

    except Exception as e:
        logger.error(f"Error executing tool '{name}': {e}", exc_info=True)
        return [TextContent(type="text", text=f"Error: {str(e)}")]


async def stdio_main():
    """Run the MCP server in stdio mode."""
    logger.info("Starting Table Profiler MCP Server in stdio mode...")
    logger.info(f"Database backend: {settings.db_backend}")

    try:
        initialize_connection(settings)
        logger.info("Database connection initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database connection: {e}", exc_info=True)
        sys.exit(1)

    try:
        async with stdio_server() as (read_stream, write_stream):
            await mcp.run(
                read_stream,
                write_stream,
                mcp.create_initialization_options()
            )
    finally:
        try:
            close_connection()
            logger.info("Database connection closed")
        except Exception as e:
            logger.warning(f"Error closing database connection: {e}")


def main():
    """Run the MCP server."""
    setup_logging()
    asyncio.run(stdio_main())


if __name__ == "__main__":
    main()
