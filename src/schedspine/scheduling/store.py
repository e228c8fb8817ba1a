"""SQL schedule store.

Manifesto:
    Every statement the lease protocol issues lives here, rendered through a
    :class:`~schedspine.core.dialect.Dialect` so the same store runs on
    SQLite, PostgreSQL and MySQL. Driver errors are classified at this
    boundary and nowhere else: the dialect decides from typed driver codes
    whether an error is a transient conflict (wrapped as
    ``TransientConflictError`` for the session guard to retry) or a unique
    key violation (``AlreadyExistsError``).

Architecture:
    ::

        SqlScheduleStore(table, dialect)
        ├── create_table(force)         CREATE TABLE + timeout index
        ├── fetch(key)                  SELECT ... WHERE id = ?
        ├── scan_due(now, limit)        SELECT ... WHERE timeout <= ? ORDER BY timeout
        ├── scan_page(after, limit)     keyset page over (timeout, id)
        ├── insert(row)                 INSERT
        ├── update(key, values)         UPDATE ... WHERE id = ?
        ├── delete(key)                 DELETE ... WHERE id = ?
        └── compare_and_swap(key, expected, values)
                                        UPDATE ... WHERE id = ? AND col = ? ...

    Each statement is committed as soon as its result has been read. A
    claim scan re-reads the table after losing a race, and under MySQL's
    REPEATABLE READ a still-open transaction would keep returning the rows
    other processes already claimed.

Tags:
    schedspine, store, sql, dialect, compare-and-swap, keyset-pagination

Doc-Types:
    api-reference
"""

from __future__ import annotations

from typing import Any

from schedspine.core.dialect import Dialect, SQLiteDialect
from schedspine.core.errors import AlreadyExistsError, TransientConflictError
from schedspine.core.logging import get_logger
from schedspine.core.protocols import Connection
from schedspine.scheduling.models import COLUMNS, ScheduleRow
from schedspine.scheduling.protocol import PageCursor

logger = get_logger(__name__)

_MUTABLE = frozenset(COLUMNS) - {"id"}


class SqlScheduleStore:
    """:class:`~schedspine.scheduling.protocol.ScheduleStore` over a DB-API connection.

    Example:
        >>> store = SqlScheduleStore("schedules", SQLiteDialect())
        >>> store.create_table(conn)
        >>> store.insert(conn, ScheduleRow(id="job1", timeout=100, next_time=100))
        >>> store.compare_and_swap(conn, "job1", {"timeout": 100}, {"timeout": 400})
        True
    """

    def __init__(self, table: str, dialect: Dialect | None = None) -> None:
        self.table = table
        self.dialect: Dialect = dialect or SQLiteDialect()
        self._t = self.dialect.quote(table)
        self._select = "SELECT {} FROM {}".format(
            ", ".join(self._q(c) for c in COLUMNS), self._t
        )

    def __repr__(self) -> str:
        return f"SqlScheduleStore(table={self.table!r}, dialect={self.dialect.name!r})"

    def _q(self, column: str) -> str:
        return self.dialect.quote(column)

    def _ph(self, count: int = 1) -> str:
        return self.dialect.placeholders(count)

    # === Statement execution ===

    def _execute(self, conn: Connection, sql: str, params: tuple = ()) -> Any:
        try:
            return conn.execute(sql, params)
        except Exception as e:
            if self.dialect.is_transient_conflict(e):
                raise TransientConflictError(
                    f"Transient conflict on {self.table}: {e}", cause=e
                ).with_context(table=self.table) from e
            if self.dialect.is_unique_violation(e):
                raise AlreadyExistsError(
                    f"Duplicate key in {self.table}: {e}", cause=e
                ).with_context(table=self.table) from e
            raise

    def _query(self, conn: Connection, sql: str, params: tuple = ()) -> list[ScheduleRow]:
        self._execute(conn, sql, params)
        rows = conn.fetchall()
        conn.commit()
        return [ScheduleRow.from_db(r) for r in rows]

    def _write(self, conn: Connection, sql: str, params: tuple = ()) -> int:
        cursor = self._execute(conn, sql, params)
        count = cursor.rowcount
        conn.commit()
        return count

    def _terms(self, values: dict[str, Any], sep: str) -> tuple[str, tuple]:
        """Render ``col = ?`` terms joined by *sep*, in sorted column order."""
        if not values:
            raise ValueError("At least one column is required")
        unknown = set(values) - _MUTABLE
        if unknown:
            raise ValueError(f"Not an updatable column: {', '.join(sorted(unknown))}")
        columns = sorted(values)
        clause = sep.join(f"{self._q(c)} = {self._ph()}" for c in columns)
        return clause, tuple(values[c] for c in columns)

    # === Schema ===

    def create_table(self, conn: Connection, *, force: bool = False) -> None:
        d = self.dialect
        index = self._q(f"idx_{self.table}_timeout")

        if force:
            self._write(conn, f"DROP TABLE IF EXISTS {self._t}")

        columns = [
            f"{self._q('id')} {d.text_key_type()} NOT NULL PRIMARY KEY",
            f"{self._q('timeout')} BIGINT NOT NULL",
            f"{self._q('next_time')} BIGINT NOT NULL",
            f"{self._q('cron')} VARCHAR(255)",
            f"{self._q('delay')} INTEGER NOT NULL DEFAULT 0",
            f"{self._q('timezone')} VARCHAR(255) NOT NULL DEFAULT 'UTC'",
            f"{self._q('data')} {d.payload_type()}",
        ]
        if d.name == "mysql":
            # MySQL has no CREATE INDEX IF NOT EXISTS
            columns.append(f"INDEX {index} ({self._q('timeout')})")

        self._write(
            conn,
            f"CREATE TABLE IF NOT EXISTS {self._t} (\n    " + ",\n    ".join(columns) + "\n)",
        )
        if d.name != "mysql":
            self._write(
                conn,
                f"CREATE INDEX IF NOT EXISTS {index} ON {self._t} ({self._q('timeout')})",
            )
        logger.info("schedule_table_created", table=self.table, dialect=d.name, force=force)

    # === Reads ===

    def fetch(self, conn: Connection, key: str) -> ScheduleRow | None:
        rows = self._query(
            conn,
            f"{self._select} WHERE {self._q('id')} = {self._ph()}",
            (key,),
        )
        return rows[0] if rows else None

    def scan_due(self, conn: Connection, now: int, limit: int) -> list[ScheduleRow]:
        timeout = self._q("timeout")
        return self._query(
            conn,
            f"{self._select} WHERE {timeout} <= {self._ph()} "
            f"ORDER BY {timeout} ASC LIMIT {self._ph()}",
            (now, limit),
        )

    def scan_page(
        self, conn: Connection, after: PageCursor | None, limit: int
    ) -> list[ScheduleRow]:
        timeout, id_ = self._q("timeout"), self._q("id")
        order = f"ORDER BY {timeout} ASC, {id_} ASC LIMIT {self._ph()}"
        if after is None:
            return self._query(conn, f"{self._select} {order}", (limit,))

        last_timeout, last_id = after
        return self._query(
            conn,
            f"{self._select} WHERE {timeout} > {self._ph()} "
            f"OR ({timeout} = {self._ph()} AND {id_} > {self._ph()}) {order}",
            (last_timeout, last_timeout, last_id, limit),
        )

    # === Writes ===

    def insert(self, conn: Connection, row: ScheduleRow) -> None:
        columns = ", ".join(self._q(c) for c in COLUMNS)
        self._write(
            conn,
            f"INSERT INTO {self._t} ({columns}) VALUES ({self._ph(len(COLUMNS))})",
            (row.id, row.timeout, row.next_time, row.cron, row.delay, row.data, row.timezone),
        )

    def delete(self, conn: Connection, key: str) -> int:
        return self._write(
            conn,
            f"DELETE FROM {self._t} WHERE {self._q('id')} = {self._ph()}",
            (key,),
        )

    def update(self, conn: Connection, key: str, values: dict[str, Any]) -> int:
        clause, params = self._terms(values, ", ")
        return self._write(
            conn,
            f"UPDATE {self._t} SET {clause} WHERE {self._q('id')} = {self._ph()}",
            (*params, key),
        )

    def compare_and_swap(
        self,
        conn: Connection,
        key: str,
        expected: dict[str, Any],
        values: dict[str, Any],
    ) -> bool:
        clause, params = self._terms(values, ", ")
        predicate, expected_params = self._terms(expected, " AND ")
        count = self._write(
            conn,
            f"UPDATE {self._t} SET {clause} "
            f"WHERE {self._q('id')} = {self._ph()} AND {predicate}",
            (*params, key, *expected_params),
        )
        return count > 0


__all__ = ["SqlScheduleStore"]
