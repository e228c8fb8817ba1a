"""Attribute codec: schedule rows <-> logical attributes.

Payload and job type are separate fields in the domain model but share the
``data`` column on disk: the type is injected into the JSON payload on the
way in and popped out on the way back. This module is the only place that
knows about that merge.

Decoding never fails on payload content: malformed or too deeply nested
JSON, or JSON that is not an object, degrades to an empty payload so a
single bad row cannot break a listing or a claim. Epoch columns outside the
``datetime`` range are clamped to its bounds.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from typing import Any

from schedspine.core.logging import get_logger
from schedspine.scheduling.models import ScheduleAttributes, ScheduleRow

logger = get_logger(__name__)

DEFAULT_TIMEZONE = "UTC"
DEFAULT_DELAY = 0
TYPE_FIELD = "type"

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
MIN_EPOCH = int((datetime.min.replace(tzinfo=UTC) - _EPOCH).total_seconds())
MAX_EPOCH = int((datetime.max.replace(tzinfo=UTC) - _EPOCH).total_seconds())


def to_datetime(epoch: int) -> datetime:
    """Epoch seconds -> aware UTC datetime, clamped to the representable range."""
    return _EPOCH + timedelta(seconds=min(max(int(epoch), MIN_EPOCH), MAX_EPOCH))


def in_datetime_range(epoch: int) -> bool:
    return MIN_EPOCH <= epoch <= MAX_EPOCH


def to_epoch(value: int | float | datetime) -> int:
    """Aware datetime (naive is taken as UTC) or number -> integer epoch seconds."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return int(value.timestamp())
    return int(value)


def encode_payload(type_: str, data: dict[str, Any] | None) -> str:
    """Serialize *data* with the ``type`` tag injected. The caller's dict is not modified."""
    payload = dict(data or {})
    payload[TYPE_FIELD] = type_
    return json.dumps(payload)


def decode_payload(raw: str | bytes | None) -> tuple[str, dict[str, Any]]:
    """Split a stored payload into ``(type, data)``."""
    try:
        payload = json.loads(raw or "{}")
    except (TypeError, ValueError, RecursionError) as e:
        logger.warning("payload_decode_failed", error=str(e))
        payload = {}
    if not isinstance(payload, dict):
        payload = {}

    type_ = payload.pop(TYPE_FIELD, None)
    return ("" if type_ is None else str(type_)), payload


def decode_attributes(row: ScheduleRow) -> ScheduleAttributes:
    """Project a raw row onto its attribute set."""
    type_, data = decode_payload(row.data)
    return ScheduleAttributes(
        type=type_,
        cron=row.cron,
        delay=row.delay if row.delay is not None else DEFAULT_DELAY,
        timezone=row.timezone or DEFAULT_TIMEZONE,
        data=data,
        next_time=to_datetime(row.next_time),
        next_run_time=to_datetime(row.timeout),
    )


__all__ = [
    "DEFAULT_TIMEZONE",
    "DEFAULT_DELAY",
    "MIN_EPOCH",
    "MAX_EPOCH",
    "to_datetime",
    "to_epoch",
    "in_datetime_range",
    "encode_payload",
    "decode_payload",
    "decode_attributes",
]
