"""Shared fixtures: in-memory DuckDB databases and cursor doubles."""

import threading

import pytest

from tableprofile_mcp.connection import DuckDBConnection


@pytest.fixture
def duck():
    """DuckDB database holding the five-row T(id, name, score) table."""
    conn = DuckDBConnection()
    conn.raw.execute("CREATE TABLE T (id INTEGER, name VARCHAR, score DECIMAL(5,1))")
    conn.raw.execute("""
        INSERT INTO T VALUES
            (1, 'a', 10.5),
            (2, 'b', NULL),
            (3, 'a', 10.5),
            (4, NULL, NULL),
            (5, 'c', 20.0)
    """)
    yield conn
    conn.close()


class ScriptedCursor:
    """Wraps a DuckDB cursor; can delay, fail or block statements that mention a column."""

    def __init__(self, cursor, owner):
        self._cursor = cursor
        self._owner = owner
        self._released = threading.Event()

    def _column_of(self, sql):
        for name in self._owner.columns:
            if f'"{name}"' in sql:
                return name
        return None

    def execute(self, sql, *args):
        name = self._column_of(sql)
        if name in self._owner.failing:
            raise RuntimeError(f"boom on {name}")
        if name in self._owner.blocking:
            self._owner.started.append(name)
            self._released.wait(5)
            if self._owner.interrupted:
                raise RuntimeError("interrupted")
        delay = self._owner.delays.get(name)
        if delay:
            self._released.wait(delay)
        self._cursor.execute(sql, *args)
        if name is not None:
            with self._owner.lock:
                self._owner.completed.append(name)
        return self

    def interrupt(self):
        self._owner.interrupted = True
        self._released.set()
        self._cursor.interrupt()

    def __getattr__(self, item):
        return getattr(self._cursor, item)


class ScriptedDuckDB(DuckDBConnection):
    """DuckDBConnection whose cursors follow a per-column script."""

    def __init__(self, columns, delays=None, failing=(), blocking=()):
        super().__init__()
        self.columns = list(columns)
        self.delays = dict(delays or {})
        self.failing = set(failing)
        self.blocking = set(blocking)
        self.completed = []
        self.started = []
        self.interrupted = False
        self.lock = threading.Lock()

    def get_cursor(self):
        return ScriptedCursor(super().get_cursor(), self)

    def interrupt(self, cursor):
        cursor.interrupt()


@pytest.fixture
def scripted():
    """Factory for ScriptedDuckDB connections preloaded with a six-column table W."""
    created = []

    def factory(**script):
        columns = [f"c{i}" for i in range(1, 7)]
        conn = ScriptedDuckDB(columns, **script)
        conn.raw.execute(f"CREATE TABLE W ({', '.join(f'{c} INTEGER' for c in columns)})")
        conn.raw.execute("INSERT INTO W SELECT i, i, i, i, i, i FROM range(1, 11) t(i)")
        created.append(conn)
        return conn

    yield factory
    for conn in created:
        conn.close()
