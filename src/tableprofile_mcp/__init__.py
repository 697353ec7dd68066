"""
Table Profiler MCP Server - column statistics for any relational table.

Profiles every column of a table (null, distinct, min/max, length and sample
statistics) against DuckDB or any JDBC database, and exposes the profiler as
Model Context Protocol tools.
"""

from dotenv import load_dotenv

# Load environment variables from .env file before settings are read
load_dotenv()

__version__ = "0.1.0"
