"""Schedule table models.

Manifesto:
    The lease protocol passes a handful of small values around: the raw row
    as the store returns it, its decoded attribute set, the token a claim
    produces, and the partial-update request. Each is a plain dataclass;
    none of them has behavior beyond read-only convenience properties.

Tags:
    schedspine, models, scheduling, dataclasses, lease, token
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

# Column order used by every SELECT against the schedule table
COLUMNS: tuple[str, ...] = ("id", "timeout", "next_time", "cron", "delay", "data", "timezone")


# ---------------------------------------------------------------------------
# Persisted row
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScheduleRow:
    """One row of the schedule table, exactly as stored.

    ``timeout`` is the claim deadline: the row is due once ``timeout <= now``,
    and while a task is claimed it is the lease expiry. ``next_time`` is the
    occurrence currently pending execution.
    """

    id: str
    timeout: int
    next_time: int
    cron: str | None = None
    delay: int | None = 0
    data: str | None = None
    timezone: str | None = "UTC"

    @classmethod
    def from_db(cls, row: Any) -> ScheduleRow:
        """Build from a driver row selected in :data:`COLUMNS` order."""
        values = dict(zip(COLUMNS, tuple(row), strict=True))
        return cls(
            id=values["id"],
            timeout=int(values["timeout"]),
            next_time=int(values["next_time"]),
            cron=values["cron"],
            delay=None if values["delay"] is None else int(values["delay"]),
            data=values["data"],
            timezone=values["timezone"],
        )


# ---------------------------------------------------------------------------
# Decoded attribute set
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScheduleAttributes:
    """Read-side projection of a row.

    ``data`` is the user payload with the ``type`` tag removed; ``type`` is
    exposed on its own. ``message`` and ``node`` are reserved for backends
    that track the executing node and are always ``None`` here.
    """

    type: str
    cron: str | None
    delay: int
    timezone: str
    data: dict[str, Any]
    next_time: datetime
    next_run_time: datetime
    message: str | None = None
    node: str | None = None


# ---------------------------------------------------------------------------
# Schedule handles
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Schedule:
    """Handle on a schedule by key."""

    key: str


@dataclass(frozen=True)
class ScheduleMetadata(Schedule):
    """A schedule together with its decoded attributes."""

    attributes: ScheduleAttributes = field(kw_only=True)

    @property
    def type(self) -> str:
        return self.attributes.type

    @property
    def cron(self) -> str | None:
        return self.attributes.cron

    @property
    def delay(self) -> int:
        return self.attributes.delay

    @property
    def timezone(self) -> str:
        return self.attributes.timezone

    @property
    def data(self) -> dict[str, Any]:
        return self.attributes.data

    @property
    def next_time(self) -> datetime:
        return self.attributes.next_time

    @property
    def next_run_time(self) -> datetime:
        return self.attributes.next_run_time


# ---------------------------------------------------------------------------
# Lease
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TaskToken:
    """Identifies one claimed occurrence.

    Captured at claim time and handed back to heartbeat/finish so they never
    re-read the row. ``scheduled_time`` (epoch seconds) is the fencing value:
    both calls only touch the row while its ``next_time`` still equals it.
    """

    row_id: str
    scheduled_time: int
    cron: str | None
    delay: int
    timezone: str


@dataclass(frozen=True)
class Task(ScheduleMetadata):
    """A claimed occurrence: schedule attributes plus the lease token."""

    scheduled_time: datetime = field(kw_only=True)
    token: TaskToken = field(kw_only=True)


# ---------------------------------------------------------------------------
# Partial update request
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScheduleUpdate:
    """Fields to change on an existing schedule. ``None`` leaves a column untouched.

    Payload and type are immutable after creation, so they are not here.
    """

    cron: str | None = None
    delay: int | None = None
    timezone: str | None = None

    def changes(self) -> dict[str, Any]:
        """Column -> value for every field that was given."""
        return {
            column: value
            for column, value in (
                ("cron", self.cron),
                ("delay", self.delay),
                ("timezone", self.timezone),
            )
            if value is not None
        }

    def is_empty(self) -> bool:
        return not self.changes()


__all__ = [
    "COLUMNS",
    "ScheduleRow",
    "ScheduleAttributes",
    "Schedule",
    "ScheduleMetadata",
    "TaskToken",
    "Task",
    "ScheduleUpdate",
]
