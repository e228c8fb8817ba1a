"""Lease lifecycle: heartbeat and finish through a task token.

Both operations are fenced on the occurrence the token names: the UPDATE
matches only while ``next_time`` still equals ``token.scheduled_time``.
Once any process has finished that occurrence (advancing ``next_time``)
every later heartbeat or finish with the old token matches nothing and
raises :class:`~schedspine.core.errors.AlreadyFinishedError`.

Neither operation re-reads the row: cron, delay and timezone come from the
token captured at claim time.

Tags:
    schedspine, scheduling, lease, heartbeat, finish, fencing
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import datetime

from schedspine.core.errors import AlreadyFinishedError
from schedspine.core.logging import get_logger
from schedspine.scheduling.codec import to_epoch
from schedspine.scheduling.cron import next_occurrence as cron_next_occurrence
from schedspine.scheduling.models import TaskToken
from schedspine.scheduling.protocol import ScheduleStore
from schedspine.scheduling.session import Session

logger = get_logger(__name__)

NextOccurrence = Callable[[str | None, int, str], int]


class LeaseLifecycle:
    """Extends and completes leases claimed by :class:`LeaseAcquirer`."""

    def __init__(
        self,
        session: Session,
        store: ScheduleStore,
        *,
        next_occurrence: NextOccurrence = cron_next_occurrence,
    ) -> None:
        self.session = session
        self.store = store
        self._next_occurrence = next_occurrence

    def _fence(self, token: TaskToken) -> dict[str, int]:
        return {"next_time": token.scheduled_time}

    def _lost(self, token: TaskToken, operation: str) -> AlreadyFinishedError:
        logger.warning(
            "lease_fencing_failed",
            key=token.row_id,
            scheduled_time=token.scheduled_time,
            operation=operation,
        )
        return AlreadyFinishedError(
            f"Task {token.row_id!r} at {token.scheduled_time} is already finished"
        ).with_context(
            key=token.row_id,
            table=self.store.table,
            scheduled_time=token.scheduled_time,
            operation=operation,
        )

    def heartbeat(
        self,
        token: TaskToken,
        alive_time: int,
        now: int | datetime | None = None,
    ) -> None:
        """Extend the lease to ``now + alive_time``.

        Raises:
            AlreadyFinishedError: if the occurrence was finished meanwhile.
        """
        now_epoch = int(time.time()) if now is None else to_epoch(now)
        timeout = now_epoch + int(alive_time)
        won = self.session.run(
            lambda conn: self.store.compare_and_swap(
                conn, token.row_id, self._fence(token), {"timeout": timeout}
            ),
            name="heartbeat",
        )
        if not won:
            raise self._lost(token, "heartbeat")
        logger.debug("lease_extended", key=token.row_id, lease_until=timeout)

    def finish(self, token: TaskToken, now: int | datetime | None = None) -> None:
        """Complete the occurrence and reschedule the row.

        ``next_time`` becomes the next cron occurrence after the finished
        one (:data:`~schedspine.scheduling.cron.NEVER` for one-shot
        schedules) and ``timeout`` becomes ``next_time + delay``.

        Raises:
            AlreadyFinishedError: if the occurrence was finished meanwhile.
            InvalidScheduleError: if the token's cron or timezone is invalid.
        """
        next_time = self._next_occurrence(token.cron, token.scheduled_time, token.timezone)
        next_run_time = next_time + token.delay
        won = self.session.run(
            lambda conn: self.store.compare_and_swap(
                conn,
                token.row_id,
                self._fence(token),
                {"timeout": next_run_time, "next_time": next_time},
            ),
            name="finish",
        )
        if not won:
            raise self._lost(token, "finish")
        logger.info(
            "lease_finished",
            key=token.row_id,
            scheduled_time=token.scheduled_time,
            next_time=next_time,
            finished_at=None if now is None else to_epoch(now),
        )


__all__ = ["LeaseLifecycle"]
