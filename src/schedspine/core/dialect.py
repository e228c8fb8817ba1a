"""SQL dialect abstraction for the schedule table.

Provides a ``Dialect`` protocol and concrete implementations for the
supported backends. The store builds its statements from dialect fragments
(placeholders, identifier quoting, DDL types) and asks the dialect to
classify driver errors, so no module outside this one knows a driver's
error codes.

Manifesto:
    The lease protocol must behave identically on SQLite, PostgreSQL and
    MySQL. Two things differ per backend besides syntax: *which* driver
    errors mean "restart the transaction" and *which* mean "unique key
    violated". Both are decided here from typed driver attributes (SQLite
    result codes, MySQL error numbers, PostgreSQL SQLSTATE), never from
    message text.

Architecture::

    ┌──────────┐ ┌──────────────┐ ┌──────────────┐
    │ SQLite   │ │ PostgreSQL   │ │ MySQL        │
    │ ?, ?     │ │ %s, %s       │ │ %s, %s       │
    │ "table"  │ │ "table"      │ │ `table`      │
    │ BUSY(5)  │ │ 40001, 40P01 │ │ 1213, 1205   │
    │ LOCKED(6)│ │              │ │              │
    └──────────┘ └──────────────┘ └──────────────┘

Examples:
    >>> from schedspine.core.dialect import get_dialect
    >>> d = get_dialect("sqlite")
    >>> d.placeholders(3)
    '?, ?, ?'
    >>> d.quote("schedules")
    '"schedules"'

Tags:
    dialect, sql, abstraction, portability, database, schedspine
"""

from __future__ import annotations

import sqlite3
from typing import Protocol, runtime_checkable

# SQLite primary result codes (extended codes keep these in the low byte)
_SQLITE_BUSY = 5
_SQLITE_LOCKED = 6
_SQLITE_CONSTRAINT = 19

# MySQL server error numbers
_MYSQL_LOCK_WAIT_TIMEOUT = 1205
_MYSQL_DEADLOCK = 1213
_MYSQL_DUP_ENTRY = 1062

# PostgreSQL SQLSTATE codes
_PG_SERIALIZATION_FAILURE = "40001"
_PG_DEADLOCK_DETECTED = "40P01"
_PG_UNIQUE_VIOLATION = "23505"


@runtime_checkable
class Dialect(Protocol):
    """SQL dialect contract.

    Methods return SQL fragments valid for the target database, or classify
    exceptions raised by that database's driver.
    """

    @property
    def name(self) -> str:
        """Human-readable dialect name (e.g. ``'sqlite'``)."""
        ...

    def placeholders(self, count: int) -> str:
        """Comma-separated placeholder list."""
        ...

    def quote(self, identifier: str) -> str:
        """Quote a table or index name."""
        ...

    def text_key_type(self) -> str:
        """DDL column type for the string primary key."""
        ...

    def payload_type(self) -> str:
        """DDL column type for the serialized payload."""
        ...

    def is_transient_conflict(self, error: BaseException) -> bool:
        """True if *error* means "restart the transaction"."""
        ...

    def is_unique_violation(self, error: BaseException) -> bool:
        """True if *error* is a primary/unique key violation."""
        ...


def _driver_errno(error: BaseException) -> int | None:
    """First positional arg of a MySQL driver error (pymysql / mysqlclient)."""
    args = getattr(error, "args", ())
    if args and isinstance(args[0], int):
        return args[0]
    return None


def _sqlstate(error: BaseException) -> str | None:
    """SQLSTATE of a PostgreSQL driver error (psycopg2 ``pgcode`` / psycopg ``sqlstate``)."""
    return getattr(error, "pgcode", None) or getattr(error, "sqlstate", None)


# =========================================================================
# Concrete Dialect Implementations
# =========================================================================


class SQLiteDialect:
    """SQLite dialect: ``?`` placeholders, result-code classification."""

    @property
    def name(self) -> str:
        return "sqlite"

    def placeholders(self, count: int) -> str:
        return ", ".join("?" for _ in range(count))

    def quote(self, identifier: str) -> str:
        return '"' + identifier.replace('"', '""') + '"'

    def text_key_type(self) -> str:
        return "TEXT"

    def payload_type(self) -> str:
        return "TEXT"

    def is_transient_conflict(self, error: BaseException) -> bool:
        if not isinstance(error, sqlite3.OperationalError):
            return False
        code = getattr(error, "sqlite_errorcode", None)
        return code is not None and (code & 0xFF) in (_SQLITE_BUSY, _SQLITE_LOCKED)

    def is_unique_violation(self, error: BaseException) -> bool:
        if not isinstance(error, sqlite3.IntegrityError):
            return False
        code = getattr(error, "sqlite_errorcode", None)
        return code is None or (code & 0xFF) == _SQLITE_CONSTRAINT


class PostgreSQLDialect:
    """PostgreSQL dialect: ``%s`` placeholders (psycopg), SQLSTATE classification."""

    @property
    def name(self) -> str:
        return "postgresql"

    def placeholders(self, count: int) -> str:
        return ", ".join("%s" for _ in range(count))

    def quote(self, identifier: str) -> str:
        return '"' + identifier.replace('"', '""') + '"'

    def text_key_type(self) -> str:
        return "VARCHAR(255)"

    def payload_type(self) -> str:
        return "TEXT"

    def is_transient_conflict(self, error: BaseException) -> bool:
        return _sqlstate(error) in (_PG_SERIALIZATION_FAILURE, _PG_DEADLOCK_DETECTED)

    def is_unique_violation(self, error: BaseException) -> bool:
        return _sqlstate(error) == _PG_UNIQUE_VIOLATION


class MySQLDialect:
    """MySQL / MariaDB dialect: ``%s`` placeholders, server errno classification."""

    @property
    def name(self) -> str:
        return "mysql"

    def placeholders(self, count: int) -> str:
        return ", ".join("%s" for _ in range(count))

    def quote(self, identifier: str) -> str:
        return "`" + identifier.replace("`", "``") + "`"

    def text_key_type(self) -> str:
        return "VARCHAR(255)"

    def payload_type(self) -> str:
        return "LONGTEXT"

    def is_transient_conflict(self, error: BaseException) -> bool:
        return _driver_errno(error) in (_MYSQL_DEADLOCK, _MYSQL_LOCK_WAIT_TIMEOUT)

    def is_unique_violation(self, error: BaseException) -> bool:
        return _driver_errno(error) == _MYSQL_DUP_ENTRY


# =========================================================================
# Registry
# =========================================================================


_DIALECTS: dict[str, Dialect] = {
    "sqlite": SQLiteDialect(),
    "postgresql": PostgreSQLDialect(),
    "postgres": PostgreSQLDialect(),
    "mysql": MySQLDialect(),
    "mariadb": MySQLDialect(),
}


def get_dialect(db_type: str) -> Dialect:
    """Get a dialect by database type name.

    Args:
        db_type: One of ``'sqlite'``, ``'postgresql'``, ``'postgres'``,
                 ``'mysql'``, ``'mariadb'``.

    Raises:
        ValueError: If ``db_type`` is not recognised.
    """
    key = db_type.lower()
    if key not in _DIALECTS:
        raise ValueError(
            f"Unknown dialect '{db_type}'. "
            f"Supported: {sorted(set(_DIALECTS) - {'postgres', 'mariadb'})}"
        )
    return _DIALECTS[key]


def register_dialect(name: str, dialect: Dialect) -> None:
    """Register a custom dialect implementation (third-party drivers, test doubles)."""
    _DIALECTS[name.lower()] = dialect


__all__ = [
    "Dialect",
    "SQLiteDialect",
    "PostgreSQLDialect",
    "MySQLDialect",
    "get_dialect",
    "register_dialect",
]
