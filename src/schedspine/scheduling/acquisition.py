"""Lease acquisition: claim one due schedule.

Manifesto:
    Any number of worker processes poll the same table. None of them holds
    a lock: a worker claims a row by moving its ``timeout`` forward with a
    conditional UPDATE that only matches while ``timeout`` still has the
    value the worker read. The affected-row count says who won. Losers just
    try the next candidate.

Architecture:
    ::

        acquire(alive_time, now)
        │  next_timeout = now + alive_time
        └─ loop
            ├── scan_due(now, limit=batch_size)        oldest timeout first
            ├── for row in batch:
            │     CAS timeout: row.timeout → next_timeout
            │     won  → return Task(token = {id, next_time, cron, delay, tz})
            └── batch full  → rescan
                batch short → return None

    At most one task is returned per call. The lease lasts until
    ``next_timeout``; if the holder neither heartbeats nor finishes by then
    the row is due again and another worker may claim the same occurrence.

Tags:
    schedspine, scheduling, lease, acquisition, optimistic-concurrency, CAS

Doc-Types:
    api-reference, architecture-diagram
"""

from __future__ import annotations

import dataclasses
import time
from datetime import datetime

from schedspine.core.logging import get_logger
from schedspine.core.protocols import Connection
from schedspine.scheduling.codec import (
    DEFAULT_DELAY,
    DEFAULT_TIMEZONE,
    decode_attributes,
    to_datetime,
    to_epoch,
)
from schedspine.scheduling.models import ScheduleRow, Task, TaskToken
from schedspine.scheduling.protocol import ScheduleStore
from schedspine.scheduling.session import Session

logger = get_logger(__name__)

SCAN_BATCH_SIZE = 4


class LeaseAcquirer:
    """Claims due schedules for this process.

    Example:
        >>> acquirer = LeaseAcquirer(session, store)
        >>> task = acquirer.acquire(alive_time=300)
        >>> if task is not None:
        ...     print(task.key, task.scheduled_time)
    """

    def __init__(
        self,
        session: Session,
        store: ScheduleStore,
        *,
        batch_size: int = SCAN_BATCH_SIZE,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.session = session
        self.store = store
        self.batch_size = batch_size

    def acquire(
        self,
        alive_time: int,
        max_acquire: int = 1,
        now: int | datetime | None = None,
    ) -> Task | None:
        """Claim the oldest due schedule.

        Args:
            alive_time: Lease length in seconds
            max_acquire: Accepted for interface compatibility; at most one
                task is claimed per call regardless
            now: Current time; defaults to the wall clock

        Returns:
            The claimed task, or None when nothing is due.
        """
        now_epoch = int(time.time()) if now is None else to_epoch(now)
        next_timeout = now_epoch + int(alive_time)
        return self.session.run(
            lambda conn: self._claim(conn, now_epoch, next_timeout),
            name="acquire",
        )

    def _claim(self, conn: Connection, now: int, next_timeout: int) -> Task | None:
        while True:
            rows = self.store.scan_due(conn, now, self.batch_size)
            for row in rows:
                # built before the CAS: a won claim always returns its task
                task = self._task(dataclasses.replace(row, timeout=next_timeout))
                if self.store.compare_and_swap(
                    conn, row.id, {"timeout": row.timeout}, {"timeout": next_timeout}
                ):
                    logger.info(
                        "lease_acquired",
                        key=row.id,
                        scheduled_time=row.next_time,
                        lease_until=next_timeout,
                    )
                    return task
                logger.debug("lease_lost", key=row.id, timeout=row.timeout)

            if len(rows) < self.batch_size:
                return None

    @staticmethod
    def _task(row: ScheduleRow) -> Task:
        token = TaskToken(
            row_id=row.id,
            scheduled_time=row.next_time,
            cron=row.cron,
            delay=DEFAULT_DELAY if row.delay is None else row.delay,
            timezone=row.timezone or DEFAULT_TIMEZONE,
        )
        return Task(
            key=row.id,
            attributes=decode_attributes(row),
            scheduled_time=to_datetime(row.next_time),
            token=token,
        )


__all__ = ["LeaseAcquirer", "SCAN_BATCH_SIZE"]
