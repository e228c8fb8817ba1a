"""Pytest fixtures for scheduling tests."""

from __future__ import annotations

import dataclasses
from typing import Any

import pytest

from schedspine.core.adapters import SqliteConnection
from schedspine.core.dialect import SQLiteDialect
from schedspine.core.errors import AlreadyExistsError, TransientConflictError
from schedspine.scheduling.backend import LeaseBackend
from schedspine.scheduling.models import ScheduleRow
from schedspine.scheduling.session import Session
from schedspine.scheduling.store import SqlScheduleStore

TABLE = "schedules"


@pytest.fixture
def db_conn():
    """In-memory SQLite database with the schedule table."""
    conn = SqliteConnection(":memory:")
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS schedules (
            id TEXT NOT NULL PRIMARY KEY,
            timeout BIGINT NOT NULL,
            next_time BIGINT NOT NULL,
            cron VARCHAR(255),
            delay INTEGER NOT NULL DEFAULT 0,
            timezone VARCHAR(255) NOT NULL DEFAULT 'UTC',
            data TEXT
        );
        CREATE INDEX IF NOT EXISTS idx_schedules_timeout ON schedules (timeout);
    """)
    yield conn
    conn.close()


@pytest.fixture
def sql_store():
    return SqlScheduleStore(TABLE, SQLiteDialect())


@pytest.fixture
def sleeps():
    """Records session retry sleeps instead of sleeping."""
    return []


@pytest.fixture
def session(db_conn, sleeps):
    """Session over the shared in-memory connection."""
    return Session(lambda: db_conn, disconnect_after_use=False, sleep=sleeps.append)


@pytest.fixture
def backend():
    """LeaseBackend on an in-memory database with the table created."""
    b = LeaseBackend("memory", TABLE, sleep=lambda s: None)
    b.init_database()
    yield b
    b.close()


@pytest.fixture
def file_url(tmp_path):
    """URL of a file-backed SQLite database, initialized."""
    url = f"sqlite:///{tmp_path / 'sched.db'}"
    with LeaseBackend(url, TABLE) as b:
        b.init_database()
    return url


# =============================================================================
# Store-free doubles
# =============================================================================


class FakeConnection:
    """Connection double that only counts transaction calls."""

    def __init__(self) -> None:
        self.commits = 0
        self.rollbacks = 0
        self.closed = False

    def execute(self, sql: str, params: tuple = ()) -> Any:
        raise AssertionError("FakeScheduleStore never issues SQL")

    def fetchone(self) -> Any:
        return None

    def fetchall(self) -> list:
        return []

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1

    def close(self) -> None:
        self.closed = True


class FakeScheduleStore:
    """Dict-backed ScheduleStore.

    ``conflicts`` makes the next N store calls raise TransientConflictError;
    ``before_cas`` runs before every compare-and-swap, so a test can play a
    rival process that changes the row first.
    """

    table = TABLE

    def __init__(self) -> None:
        self.rows: dict[str, ScheduleRow] = {}
        self.calls: list[str] = []
        self.conflicts = 0
        self.before_cas = None

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if self.conflicts > 0:
            self.conflicts -= 1
            raise TransientConflictError("deadlock found when trying to get lock")

    def _ordered(self) -> list[ScheduleRow]:
        return sorted(self.rows.values(), key=lambda r: (r.timeout, r.id))

    def create_table(self, conn, *, force=False):
        self._call("create_table")
        if force:
            self.rows.clear()

    def fetch(self, conn, key):
        self._call("fetch")
        return self.rows.get(key)

    def scan_due(self, conn, now, limit):
        self._call("scan_due")
        return [r for r in self._ordered() if r.timeout <= now][:limit]

    def scan_page(self, conn, after, limit):
        self._call("scan_page")
        rows = self._ordered()
        if after is not None:
            rows = [r for r in rows if (r.timeout, r.id) > after]
        return rows[:limit]

    def insert(self, conn, row):
        self._call("insert")
        if row.id in self.rows:
            raise AlreadyExistsError(f"Duplicate key {row.id}")
        self.rows[row.id] = row

    def delete(self, conn, key):
        self._call("delete")
        return 1 if self.rows.pop(key, None) is not None else 0

    def update(self, conn, key, values):
        self._call("update")
        row = self.rows.get(key)
        if row is None:
            return 0
        self.rows[key] = _replace(row, values)
        return 1

    def compare_and_swap(self, conn, key, expected, values):
        self._call("compare_and_swap")
        if self.before_cas is not None:
            self.before_cas(self, key)
        row = self.rows.get(key)
        if row is None or any(getattr(row, c) != v for c, v in expected.items()):
            return False
        self.rows[key] = _replace(row, values)
        return True


def _replace(row: ScheduleRow, values: dict[str, Any]) -> ScheduleRow:
    return dataclasses.replace(row, **values)


@pytest.fixture
def fake_conn():
    return FakeConnection()


@pytest.fixture
def fake_store():
    return FakeScheduleStore()


@pytest.fixture
def fake_session(fake_conn, sleeps):
    return Session(lambda: fake_conn, disconnect_after_use=False, sleep=sleeps.append)
