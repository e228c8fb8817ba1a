"""Connection adapters.

Wrap driver connections so they satisfy the
:class:`~schedspine.core.protocols.Connection` protocol.

A bare ``sqlite3.Connection`` (or any DB-API 2.0 connection) exposes
``cursor()`` but not ``fetchone()`` / ``fetchall()`` at the connection level.
These adapters keep a single cursor so that ``execute`` / ``fetchone`` /
``fetchall`` operate on the same result set, and the cursor returned by
``execute`` carries the ``rowcount`` the lease protocol relies on.

Usage::

    from schedspine.core.adapters import SqliteConnection

    conn = SqliteConnection(":memory:")
    conn.execute("CREATE TABLE t (id INTEGER)")
    cursor = conn.execute("UPDATE t SET id = ? WHERE id = ?", (2, 1))
    cursor.rowcount                # 0
    conn.commit()
    conn.close()
"""

from __future__ import annotations

import sqlite3
from typing import Any


class SqliteConnection:
    """Adapter: ``sqlite3.Connection`` -> ``Connection`` protocol."""

    def __init__(self, path: str = ":memory:", *, timeout: float = 5.0) -> None:
        self._path = path
        # check_same_thread is off: access is serialized by the session guard
        self._conn = sqlite3.connect(path, timeout=timeout, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._cursor = self._conn.cursor()

    # -- Connection protocol -----------------------------------------------

    def execute(self, sql: str, params: tuple = ()) -> Any:
        self._cursor.execute(sql, params)
        return self._cursor

    def executescript(self, script: str) -> None:
        self._conn.executescript(script)

    def fetchone(self) -> Any:
        return self._cursor.fetchone()

    def fetchall(self) -> list:
        return self._cursor.fetchall()

    def commit(self) -> None:
        self._conn.commit()

    def rollback(self) -> None:
        self._conn.rollback()

    def close(self) -> None:
        self._conn.close()

    def __repr__(self) -> str:
        return f"SqliteConnection({self._path!r})"


class DbapiConnection:
    """Adapter: any DB-API 2.0 connection -> ``Connection`` protocol.

    Used for the driver connections handed out by SQLAlchemy's
    ``Engine.raw_connection()`` (psycopg, pymysql, mysqlclient...).
    """

    def __init__(self, raw: Any) -> None:
        self._raw = raw
        self._cursor = raw.cursor()

    def execute(self, sql: str, params: tuple = ()) -> Any:
        self._cursor.execute(sql, params)
        return self._cursor

    def fetchone(self) -> Any:
        return self._cursor.fetchone()

    def fetchall(self) -> list:
        return self._cursor.fetchall()

    def commit(self) -> None:
        self._raw.commit()

    def rollback(self) -> None:
        self._raw.rollback()

    def close(self) -> None:
        try:
            self._cursor.close()
        finally:
            self._raw.close()

    def __repr__(self) -> str:
        return f"DbapiConnection({self._raw!r})"


__all__ = ["SqliteConnection", "DbapiConnection"]
