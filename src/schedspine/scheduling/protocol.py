"""Schedule store protocol.

The lease components never build SQL themselves. They call a store through
this narrow contract, always passing the connection the session guard
handed them, so the same component runs against :class:`SqlScheduleStore`
in production and a dict-backed fake in tests.

Contract for implementations:
    - ``insert`` raises :class:`~schedspine.core.errors.AlreadyExistsError`
      on a duplicate ``id``.
    - ``update`` / ``delete`` / ``compare_and_swap`` report *matched* rows.
    - Any driver error that means "restart the transaction" surfaces as
      :class:`~schedspine.core.errors.TransientConflictError`; everything
      else propagates unchanged.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from schedspine.core.protocols import Connection
from schedspine.scheduling.models import ScheduleRow

# (timeout, id) of the last row of a page
PageCursor = tuple[int, str]


@runtime_checkable
class ScheduleStore(Protocol):
    """Persistence operations over the schedule table."""

    table: str

    def create_table(self, conn: Connection, *, force: bool = False) -> None:
        """Create the table and its ``timeout`` index; drop them first when *force*."""
        ...

    def fetch(self, conn: Connection, key: str) -> ScheduleRow | None:
        """Point read by ``id``."""
        ...

    def scan_due(self, conn: Connection, now: int, limit: int) -> list[ScheduleRow]:
        """Up to *limit* rows with ``timeout <= now``, oldest ``timeout`` first."""
        ...

    def scan_page(
        self, conn: Connection, after: PageCursor | None, limit: int
    ) -> list[ScheduleRow]:
        """Next page of all rows in ``(timeout, id)`` order, strictly after *after*."""
        ...

    def insert(self, conn: Connection, row: ScheduleRow) -> None:
        ...

    def delete(self, conn: Connection, key: str) -> int:
        """Delete by ``id``; returns affected rows."""
        ...

    def update(self, conn: Connection, key: str, values: dict[str, Any]) -> int:
        """Unconditional column update by ``id``; returns affected rows."""
        ...

    def compare_and_swap(
        self,
        conn: Connection,
        key: str,
        expected: dict[str, Any],
        values: dict[str, Any],
    ) -> bool:
        """Set *values* on row *key* only while every column in *expected* still matches.

        Returns:
            True when exactly this call changed the row.
        """
        ...


__all__ = ["ScheduleStore", "PageCursor"]
