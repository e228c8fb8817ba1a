"""Cron evaluation for the lease protocol.

``next_occurrence(cron, after, timezone)`` is the only time arithmetic the
lease protocol needs: finish() uses it to advance a schedule past the
occurrence just executed. Expressions are evaluated with croniter in the
schedule's own timezone (so ``0 9 * * *`` in ``Asia/Tokyo`` fires at 09:00
Tokyo time across DST changes) and the result is returned as UTC epoch
seconds.

A schedule without a cron expression is one-shot. Its next occurrence is
:data:`NEVER`, which parks the row: it is never due again, and the token
of the finished run no longer matches ``next_time``.

Tags:
    schedspine, scheduling, cron, croniter, zoneinfo, timezone
"""

from __future__ import annotations

from datetime import UTC, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import CroniterBadCronError, CroniterBadDateError, croniter

from schedspine.core.errors import InvalidScheduleError

# 3000-01-01T00:00:00Z
NEVER = 32503680000


def validate_timezone(timezone: str) -> ZoneInfo:
    """Resolve an IANA timezone name.

    Raises:
        InvalidScheduleError: if the name is unknown.
    """
    try:
        return ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError, TypeError) as e:
        raise InvalidScheduleError(
            f"Unknown timezone: {timezone!r}", field="timezone", value=timezone, cause=e
        ) from e


def validate_cron(cron: str | None) -> None:
    """Reject a cron expression croniter cannot parse. ``None``/empty is one-shot and valid."""
    if not cron:
        return
    if not croniter.is_valid(cron):
        raise InvalidScheduleError(
            f"Invalid cron expression: {cron!r}", field="cron", value=cron
        )


def next_occurrence(cron: str | None, after: int, timezone: str = "UTC") -> int:
    """First occurrence of *cron* strictly after *after*.

    Args:
        cron: Cron expression (5 or 6 fields); ``None`` or empty for one-shot
        after: Epoch seconds
        timezone: IANA timezone the expression is evaluated in

    Returns:
        Epoch seconds of the next occurrence, or :data:`NEVER`.

    Raises:
        InvalidScheduleError: on an unparsable expression or unknown timezone.
    """
    if not cron:
        return NEVER

    tz = validate_timezone(timezone)
    start = datetime.fromtimestamp(after, UTC).astimezone(tz)
    try:
        itr = croniter(cron, start)
        nxt = itr.get_next(datetime)
    except (CroniterBadCronError, CroniterBadDateError, ValueError, KeyError) as e:
        raise InvalidScheduleError(
            f"Invalid cron expression: {cron!r}", field="cron", value=cron, cause=e
        ) from e
    return int(nxt.timestamp())


__all__ = ["NEVER", "next_occurrence", "validate_cron", "validate_timezone"]
