"""Schedule repository: keyed CRUD over the schedule table.

Manifesto:
    Definition-side operations (read one, enumerate, create, delete,
    partial update) are plain data access. They never touch the lease
    columns through a conditional update; that is the acquisition and
    lifecycle components' job. Every call runs as one guarded session
    operation.

Architecture:
    ::

        ScheduleRepository(session, store)
        ├── get_metadata(key)  → ScheduleMetadata      NotFoundError
        ├── list()             → Iterator[ScheduleMetadata]
        ├── submit(...)        → Schedule              AlreadyExistsError
        ├── delete(key)                                NotFoundError
        └── modify(key, ScheduleUpdate)                NotFoundError

    ``list()`` walks the table in keyset pages over ``(timeout, id)``. Each
    page is a separate session operation, so the session lock is released
    between pages and a slow consumer never blocks claims by other threads
    of the same process.

Tags:
    schedspine, scheduling, repository, CRUD, keyset-pagination

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime
from typing import Any

from schedspine.core.errors import InvalidScheduleError, NotFoundError
from schedspine.core.logging import get_logger
from schedspine.scheduling.codec import (
    DEFAULT_DELAY,
    DEFAULT_TIMEZONE,
    decode_attributes,
    encode_payload,
    in_datetime_range,
    to_epoch,
)
from schedspine.scheduling.cron import validate_cron, validate_timezone
from schedspine.scheduling.models import (
    Schedule,
    ScheduleMetadata,
    ScheduleRow,
    ScheduleUpdate,
)
from schedspine.scheduling.protocol import PageCursor, ScheduleStore
from schedspine.scheduling.session import Session

logger = get_logger(__name__)

LIST_PAGE_SIZE = 100


def _checked_epoch(field: str, value: int | datetime) -> int:
    epoch = to_epoch(value)
    if not in_datetime_range(epoch):
        raise InvalidScheduleError(
            f"{field} {epoch} is outside the datetime range", field=field, value=epoch
        )
    return epoch


def _metadata(row: ScheduleRow) -> ScheduleMetadata:
    return ScheduleMetadata(key=row.id, attributes=decode_attributes(row))


class ScheduleRepository:
    """Keyed schedule CRUD.

    Example:
        >>> repo = ScheduleRepository(session, store)
        >>> repo.submit("job1", "report", "0 * * * *", 0, "UTC", {"a": 1},
        ...             next_time=1_700_000_000, next_run_time=1_700_000_000)
        Schedule(key='job1')
        >>> repo.modify("job1", ScheduleUpdate(delay=30))
    """

    def __init__(
        self,
        session: Session,
        store: ScheduleStore,
        *,
        page_size: int = LIST_PAGE_SIZE,
    ) -> None:
        self.session = session
        self.store = store
        self.page_size = page_size

    def _not_found(self, key: str, operation: str) -> NotFoundError:
        return NotFoundError(f"Schedule {key!r} does not exist").with_context(
            key=key, table=self.store.table, operation=operation
        )

    # === Reads ===

    def get_metadata(self, key: str) -> ScheduleMetadata:
        """Point lookup by key.

        Raises:
            NotFoundError: if no row has ``id == key``.
        """
        row = self.session.run(lambda conn: self.store.fetch(conn, key), name="get_metadata")
        if row is None:
            raise self._not_found(key, "get_metadata")
        return _metadata(row)

    def list(self) -> Iterator[ScheduleMetadata]:
        """Yield every schedule in ascending ``timeout`` order (ties by key).

        Single pass. Rows changed by other processes while iterating may be
        seen at their new position or not at all.
        """
        after: PageCursor | None = None
        while True:
            cursor = after
            page = self.session.run(
                lambda conn: self.store.scan_page(conn, cursor, self.page_size),
                name="list",
            )
            for row in page:
                yield _metadata(row)
            if len(page) < self.page_size:
                return
            last = page[-1]
            after = (last.timeout, last.id)

    # === Writes ===

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
        """Create a schedule.

        Args:
            key: Unique schedule key
            type: Job type, stored inside the payload
            cron: Cron expression, ``None`` for one-shot
            delay: Seconds between an occurrence and its run time
            timezone: IANA timezone for cron evaluation
            data: User payload
            next_time: Pending occurrence
            next_run_time: When the row first becomes due (stored as ``timeout``)

        Raises:
            AlreadyExistsError: if *key* is taken.
            InvalidScheduleError: on an invalid cron expression or timezone,
                or an epoch that no datetime can represent.
        """
        timezone = timezone or DEFAULT_TIMEZONE
        validate_cron(cron)
        validate_timezone(timezone)
        next_epoch = _checked_epoch("next_time", next_time)
        timeout = _checked_epoch("next_run_time", next_run_time)

        row = ScheduleRow(
            id=key,
            timeout=timeout,
            next_time=next_epoch,
            cron=cron or None,
            delay=DEFAULT_DELAY if delay is None else int(delay),
            data=encode_payload(type, data),
            timezone=timezone,
        )
        self.session.run(lambda conn: self.store.insert(conn, row), name="submit")
        logger.info(
            "schedule_submitted",
            key=key,
            type=type,
            cron=row.cron,
            next_time=row.next_time,
            timeout=row.timeout,
        )
        return Schedule(key=key)

    def delete(self, key: str) -> None:
        """Remove a schedule.

        Raises:
            NotFoundError: if nothing was deleted.
        """
        count = self.session.run(lambda conn: self.store.delete(conn, key), name="delete")
        if count == 0:
            raise self._not_found(key, "delete")
        logger.info("schedule_deleted", key=key)

    def modify(self, key: str, update: ScheduleUpdate) -> None:
        """Apply a partial update of cron, delay and/or timezone.

        An empty update returns without touching the store. The lease
        columns are left alone: a new cron takes effect from the next
        finish.

        Raises:
            NotFoundError: if a non-empty update matched no row.
            InvalidScheduleError: on an invalid cron expression or timezone.
        """
        changes = update.changes()
        if not changes:
            return
        if "cron" in changes:
            validate_cron(changes["cron"])
        if "timezone" in changes:
            validate_timezone(changes["timezone"])
        if "delay" in changes:
            changes["delay"] = int(changes["delay"])

        count = self.session.run(
            lambda conn: self.store.update(conn, key, changes), name="modify"
        )
        if count == 0:
            raise self._not_found(key, "modify")
        logger.info("schedule_modified", key=key, changes=sorted(changes))


__all__ = ["ScheduleRepository", "LIST_PAGE_SIZE"]
