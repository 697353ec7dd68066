"""Executor handles: DuckDB in-process and JDBC through JPype."""

import logging
import os
import queue
import threading
from typing import Any, Dict, List, Optional, Sequence, Tuple

import duckdb
import jpype
import jpype.dbapi2 as dbapi2

from .dialects import Dialect, DuckDBDialect, dialect_for_url

logger = logging.getLogger(__name__)


class BaseConnection:
    """Read-only query and catalog access shared by all backends."""

    dialect: Dialect = Dialect()

    def get_cursor(self):
        """Get a database cursor; each worker thread must use its own."""
        raise NotImplementedError

    def interrupt(self, cursor) -> None:
        """Abort the statement currently running on cursor, if any."""
        raise NotImplementedError

    def execute_query(self, sql: str, params: Optional[Sequence[Any]] = None) -> Tuple[List[str], List[Tuple]]:
        """
        Execute SQL query and return column names and rows.

        Args:
            sql: SQL query to execute
            params: Positional parameters bound to ? placeholders

        Returns:
            Tuple of (column_names, rows)
        """
        cursor = self.get_cursor()
        try:
            if params:
                cursor.execute(sql, list(params))
            else:
                cursor.execute(sql)
            columns = [desc[0] for desc in cursor.description] if cursor.description else []
            rows = cursor.fetchall()
            return columns, [tuple(row) for row in rows]
        finally:
            cursor.close()

    def execute_metadata_query(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[dict]:
        """Execute metadata query and return results as list of dicts."""
        columns, rows = self.execute_query(sql, params)
        return [dict(zip(columns, row)) for row in rows]

    def close(self) -> None:
        raise NotImplementedError

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class DuckDBConnection(BaseConnection):
    """DuckDB database; worker threads get cursors duplicated from one connection."""

    dialect = DuckDBDialect()

    def __init__(
        self,
        path: str = ":memory:",
        read_only: bool = False,
        connection: Optional[duckdb.DuckDBPyConnection] = None
    ):
        """
        Initialize DuckDB connection.

        Args:
            path: Database file, or ":memory:"
            read_only: Open the database file read-only
            connection: Existing DuckDB connection to wrap instead of opening one
        """
        self.path = path
        if connection is not None:
            self._connection = connection
        else:
            logger.info(f"Opening DuckDB database: {path} (read_only={read_only})")
            self._connection = duckdb.connect(path, read_only=read_only and path != ":memory:")

    @property
    def raw(self) -> duckdb.DuckDBPyConnection:
        return self._connection

    def get_cursor(self):
        if self._connection is None:
            raise RuntimeError("DuckDB connection is closed")
        return self._connection.cursor()

    def interrupt(self, cursor) -> None:
        cursor.interrupt()

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None
            logger.info("DuckDB connection closed")


class _PooledCursor:
    """JDBC cursor whose close() hands its connection back to the pool."""

    def __init__(self, cursor, connection, release):
        self._cursor = cursor
        self._connection = connection
        self._release = release
        self._released = False

    def __getattr__(self, name):
        return getattr(self._cursor, name)

    def close(self) -> None:
        if self._released:
            return
        self._released = True
        try:
            self._cursor.close()
        finally:
            self._release(self._connection)


class JdbcConnection(BaseConnection):
    """JDBC database reached through JPype, with a bounded pool of reusable connections."""

    def __init__(
        self,
        jdbc_url: str,
        driver: str,
        classpath: Optional[str] = None,
        driver_args: Optional[Dict[str, str]] = None,
        dialect: Optional[Dialect] = None,
        pool_size: int = 4
    ):
        """
        Initialize JDBC connection.

        Args:
            jdbc_url: JDBC URL of the target database
            driver: Fully qualified JDBC driver class name
            classpath: os.pathsep-separated driver JARs
            driver_args: Extra connection properties passed to the driver
            dialect: SQL dialect; derived from the URL when omitted
            pool_size: Most JDBC connections held open at once
        """
        if pool_size < 1:
            raise ValueError(f"pool_size must be >= 1, got {pool_size}")
        self.jdbc_url = jdbc_url
        self.driver = driver
        self.classpath = classpath
        self.driver_args = driver_args
        self.dialect = dialect or dialect_for_url(jdbc_url)
        self.pool_size = pool_size
        self._idle = queue.LifoQueue()
        self._connections: List[Any] = []
        self._lock = threading.Lock()
        self._closed = False
        self._initialize_jvm()

    def _initialize_jvm(self) -> None:
        """Start JVM if not already started and load the driver JARs."""
        if jpype.isJVMStarted():
            logger.info("JVM already running")
            return

        classpath_jars = [jar for jar in (self.classpath or "").split(os.pathsep) if jar]
        for jar in classpath_jars:
            if not os.path.exists(jar):
                logger.warning(f"JDBC driver JAR not found at {jar}")

        jvm_args = [
            "-Xmx2g",
            "-XX:+UseG1GC",
            "-Dorg.slf4j.simpleLogger.defaultLogLevel=error",
        ]
        logger.info(f"Starting JVM with classpath: {classpath_jars}")
        jpype.startJVM(*jvm_args, classpath=classpath_jars, convertStrings=False)
        logger.info("JVM started successfully")

    def _checkout(self):
        """Take an idle connection, open one while under pool_size, else wait for one."""
        try:
            return self._idle.get_nowait()
        except queue.Empty:
            pass

        with self._lock:
            if self._closed:
                raise RuntimeError("JDBC connection pool is closed")
            if len(self._connections) < self.pool_size:
                logger.info(
                    f"Connecting to {self.dialect.name} database via JDBC "
                    f"({len(self._connections) + 1}/{self.pool_size})"
                )
                connection = dbapi2.connect(
                    self.jdbc_url, driver=self.driver, driver_args=self.driver_args
                )
                self._connections.append(connection)
                return connection

        return self._idle.get()

    def _release(self, connection) -> None:
        with self._lock:
            if self._closed:
                return
        self._idle.put(connection)

    @property
    def open_connections(self) -> int:
        with self._lock:
            return len(self._connections)

    def connect(self) -> None:
        """Open one pooled connection up front."""
        self._release(self._checkout())

    def get_cursor(self):
        connection = self._checkout()
        try:
            cursor = connection.cursor()
        except Exception:
            self._release(connection)
            raise
        return _PooledCursor(cursor, connection, self._release)

    def interrupt(self, cursor) -> None:
        statement = getattr(cursor, "_statement", None)
        if statement is None:
            logger.debug("No running JDBC statement to cancel")
            return
        statement.cancel()

    def close(self) -> None:
        with self._lock:
            self._closed = True
            connections, self._connections = self._connections, []
        self._idle = queue.LifoQueue()
        for connection in connections:
            connection.close()
        if connections:
            logger.info(f"Closed {len(connections)} JDBC connection(s)")


# Global connection instance (initialized on server startup)
_connection: Optional[BaseConnection] = None


def get_connection() -> BaseConnection:
    """Get the global connection instance."""
    if _connection is None:
        raise RuntimeError("Database connection not initialized. Call initialize_connection() first.")
    return _connection


def initialize_connection(settings) -> BaseConnection:
    """Initialize the global connection from settings."""
    global _connection
    backend = settings.db_backend.lower()
    if backend == "duckdb":
        _connection = DuckDBConnection(settings.duckdb_path, read_only=settings.duckdb_read_only)
    elif backend == "jdbc":
        if not settings.jdbc_url or not settings.jdbc_driver:
            raise ValueError("jdbc_url and jdbc_driver must be set when db_backend is 'jdbc'")
        _connection = JdbcConnection(
            settings.jdbc_url,
            settings.jdbc_driver,
            classpath=settings.jdbc_classpath,
            pool_size=settings.jdbc_pool_size or settings.max_workers,
        )
    else:
        raise ValueError(f"Unknown db_backend: {settings.db_backend}")
    logger.info(f"Global {backend} connection initialized")
    return _connection


def close_connection() -> None:
    """Close and forget the global connection."""
    global _connection
    if _connection is not None:
        _connection.close()
        _connection = None
