"""
Canonical protocol definitions for schedspine.

Manifesto:
    Protocols define contracts without inheritance. The lease backend only
    ever talks to a database through :class:`Connection`, so the same code
    runs on SQLite in tests and on PostgreSQL or MySQL in production, and a
    test double only has to match the shape.

Architecture:
    ::

        protocols.py
        └── Connection   sync DB protocol (sqlite3 adapter, DB-API adapter)

    Consumers:
        scheduling/session.py, scheduling/store.py, core/connection.py

Guardrails:
    ❌ DON'T: Add implementation logic to protocol classes
    ✅ DO: Keep protocols pure contracts; implementations go in adapters

Tags:
    protocol, connection, database, schedspine, contracts
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Connection(Protocol):
    """
    Minimal SYNCHRONOUS connection interface.

    ``execute`` returns a cursor-like object exposing ``rowcount``,
    ``fetchone()`` and ``fetchall()``. The affected-row count of a
    conditional UPDATE is the only signal the lease protocol uses to decide
    whether this process won a race, so adapters must report *matched* rows.

    Examples:
        >>> cursor = conn.execute("UPDATE t SET v = ? WHERE id = ? AND v = ?", (2, "a", 1))
        >>> won = cursor.rowcount > 0
        >>> conn.commit()
    """

    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Execute SQL statement with optional parameters. SYNC."""
        ...

    def fetchone(self) -> Any:
        """Fetch one row from last query. SYNC."""
        ...

    def fetchall(self) -> list:
        """Fetch all rows from last query. SYNC."""
        ...

    def commit(self) -> None:
        """Commit current transaction. SYNC."""
        ...

    def rollback(self) -> None:
        """Rollback current transaction. SYNC."""
        ...

    def close(self) -> None:
        """Release the underlying driver connection. SYNC."""
        ...


__all__ = ["Connection"]
