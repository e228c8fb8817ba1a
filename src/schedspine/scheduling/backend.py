"""Lease backend: the object a scheduler process holds.

Manifesto:
    A scheduler node needs one handle that does everything against the
    schedule table: define schedules, claim due ones, keep leases alive and
    complete them. ``LeaseBackend`` wires the pieces together over a single
    guarded connection and validates its configuration eagerly, so a
    misconfigured node fails at startup rather than at its first poll.

Architecture:
    ::

        LeaseBackend(url, table)
        ├── ConnectionFactory(url)   → Connection, Dialect
        ├── Session(factory)         one lock, transient retry
        ├── SqlScheduleStore(table, dialect)
        ├── ScheduleRepository       get_metadata / list / submit / delete / modify
        ├── LeaseAcquirer            acquire
        └── LeaseLifecycle           heartbeat / finish

Examples:
    >>> with LeaseBackend.from_url("sqlite:///sched.db", "schedules") as backend:
    ...     backend.init_database()
    ...     backend.add("daily-report", "report", "0 8 * * *", timezone="Europe/Berlin")
    ...     task = backend.acquire(alive_time=60)
    ...     if task:
    ...         backend.finish(task.token)

Tags:
    schedspine, scheduling, backend, facade, lease

Doc-Types:
    api-reference, architecture-diagram
"""

from __future__ import annotations

import re
import time
from collections.abc import Callable, Iterator
from datetime import datetime
from typing import Any

from schedspine.core.connection import ConnectionFactory
from schedspine.core.errors import InvalidConfigError, MissingConfigError
from schedspine.core.logging import get_logger
from schedspine.core.settings import BackendSettings
from schedspine.scheduling.acquisition import SCAN_BATCH_SIZE, LeaseAcquirer
from schedspine.scheduling.codec import DEFAULT_TIMEZONE, to_epoch
from schedspine.scheduling.cron import next_occurrence, validate_cron, validate_timezone
from schedspine.scheduling.lifecycle import LeaseLifecycle
from schedspine.scheduling.models import (
    Schedule,
    ScheduleMetadata,
    ScheduleUpdate,
    Task,
    TaskToken,
)
from schedspine.scheduling.repository import ScheduleRepository
from schedspine.scheduling.session import MAX_RETRY, RETRY_DELAY, Session
from schedspine.scheduling.store import SqlScheduleStore

logger = get_logger(__name__)

_TABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

DEFAULT_ALIVE_TIME = 300


class LeaseBackend:
    """Schedule storage with lease-based claiming.

    Args:
        url: Database URL or SQLite path (see :mod:`schedspine.core.connection`)
        table: Schedule table name
        max_retry: Attempts per operation on transient conflicts
        retry_delay: Sleep between attempts, seconds
        scan_batch_size: Due rows read per claim scan
        alive_time: Default lease length, seconds
        disconnect_after_use: Close the connection after every operation
            (ignored for in-memory SQLite)
        sleep: Injected into the session guard for tests

    Raises:
        MissingConfigError: if *url* or *table* is empty.
        InvalidConfigError: if *table* is not a plain identifier or *url*
            names an unsupported database.
    """

    def __init__(
        self,
        url: str | None,
        table: str | None,
        *,
        max_retry: int = MAX_RETRY,
        retry_delay: float = RETRY_DELAY,
        scan_batch_size: int = SCAN_BATCH_SIZE,
        alive_time: int = DEFAULT_ALIVE_TIME,
        disconnect_after_use: bool = True,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not url:
            raise MissingConfigError("url")
        if not table:
            raise MissingConfigError("table")
        if not _TABLE_NAME.match(table):
            raise InvalidConfigError("table", table, f"Invalid table name: {table!r}")

        self.table = table
        self.alive_time = alive_time
        self.factory = ConnectionFactory(url)
        self.info = self.factory.info

        self.session = Session(
            self.factory,
            max_retry=max_retry,
            retry_delay=retry_delay,
            disconnect_after_use=disconnect_after_use and self.info.persistent,
            release=self.factory.release,
            sleep=sleep,
        )
        self.store = SqlScheduleStore(table, self.info.dialect)
        self.repository = ScheduleRepository(self.session, self.store)
        self.acquirer = LeaseAcquirer(self.session, self.store, batch_size=scan_batch_size)
        self.lifecycle = LeaseLifecycle(self.session, self.store)

        logger.debug(
            "lease_backend_created",
            backend=self.info.backend,
            table=table,
            persistent=self.info.persistent,
        )

    @classmethod
    def from_settings(cls, settings: BackendSettings | None = None) -> LeaseBackend:
        """Build from :class:`BackendSettings` (environment / ``.env`` when omitted)."""
        settings = settings or BackendSettings()
        return cls(
            settings.url,
            settings.table,
            max_retry=settings.max_retry,
            retry_delay=settings.retry_delay,
            scan_batch_size=settings.scan_batch_size,
            alive_time=settings.alive_time,
            disconnect_after_use=settings.disconnect_after_use,
        )

    @classmethod
    def from_url(cls, url: str, table: str, **kwargs: Any) -> LeaseBackend:
        return cls(url, table, **kwargs)

    def __repr__(self) -> str:
        return f"LeaseBackend({self.info!r}, table={self.table!r})"

    # === Lifecycle ===

    def close(self) -> None:
        """Release the connection and dispose of the engine."""
        self.session.close()
        self.factory.dispose()

    def __enter__(self) -> LeaseBackend:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # === Schema ===

    def init_database(self, force: bool = False) -> None:
        """Create the schedule table; with *force*, drop an existing one first."""
        self.session.run(
            lambda conn: self.store.create_table(conn, force=force),
            name="init_database",
        )

    # === Definitions ===

    def get_metadata(self, key: str) -> ScheduleMetadata:
        return self.repository.get_metadata(key)

    def list(self) -> Iterator[ScheduleMetadata]:
        return self.repository.list()

    def submit(
        self,
        key: str,
        type: str,
        cron: str | None,
        delay: int | None,
        timezone: str | None,
        data: dict[str, Any] | None,
        next_time: int | datetime,
        next_run_time: int | datetime,
    ) -> Schedule:
        return self.repository.submit(
            key, type, cron, delay, timezone, data, next_time, next_run_time
        )

    def add(
        self,
        key: str,
        type: str,
        cron: str | None = None,
        *,
        delay: int = 0,
        timezone: str = DEFAULT_TIMEZONE,
        data: dict[str, Any] | None = None,
        start: int | datetime | None = None,
    ) -> Schedule:
        """Define a schedule, deriving its first occurrence.

        With a cron expression the first occurrence is the earliest one at
        or after *start*; a one-shot schedule occurs at *start* itself.
        Either way the row first becomes due ``delay`` seconds later.

        Args:
            key: Unique schedule key
            type: Job type
            cron: Cron expression, ``None`` for one-shot
            delay: Seconds between occurrence and run time
            timezone: IANA timezone for cron evaluation
            data: User payload
            start: Earliest occurrence; defaults to now
        """
        validate_cron(cron)
        validate_timezone(timezone)
        start_epoch = int(time.time()) if start is None else to_epoch(start)
        if cron:
            next_time = next_occurrence(cron, start_epoch - 1, timezone)
        else:
            next_time = start_epoch
        return self.repository.submit(
            key, type, cron, delay, timezone, data, next_time, next_time + delay
        )

    def delete(self, key: str) -> None:
        self.repository.delete(key)

    def modify(self, key: str, update: ScheduleUpdate | None = None, **changes: Any) -> None:
        """Partial update; pass a :class:`ScheduleUpdate` or ``cron=``/``delay=``/``timezone=``."""
        if update is None:
            update = ScheduleUpdate(**changes)
        elif changes:
            raise TypeError("Pass either a ScheduleUpdate or keyword changes, not both")
        self.repository.modify(key, update)

    # === Leases ===

    def acquire(
        self,
        alive_time: int | None = None,
        max_acquire: int = 1,
        now: int | datetime | None = None,
    ) -> Task | None:
        return self.acquirer.acquire(
            self.alive_time if alive_time is None else alive_time, max_acquire, now
        )

    def heartbeat(
        self,
        token: TaskToken,
        alive_time: int | None = None,
        now: int | datetime | None = None,
    ) -> None:
        self.lifecycle.heartbeat(
            token, self.alive_time if alive_time is None else alive_time, now
        )

    def finish(self, token: TaskToken, now: int | datetime | None = None) -> None:
        self.lifecycle.finish(token, now)


__all__ = ["LeaseBackend", "DEFAULT_ALIVE_TIME"]
