"""Tests for the attribute codec."""

import json
from datetime import UTC, datetime

from structlog.testing import capture_logs

from schedspine.scheduling.codec import (
    MAX_EPOCH,
    MIN_EPOCH,
    decode_attributes,
    decode_payload,
    encode_payload,
    in_datetime_range,
    to_datetime,
    to_epoch,
)
from schedspine.scheduling.models import ScheduleRow


class TestPayload:
    """Payload encoding with the embedded type tag."""

    def test_encode_injects_type(self):
        """Type is stored inside the JSON object."""
        raw = encode_payload("report", {"a": 1})
        assert json.loads(raw) == {"a": 1, "type": "report"}

    def test_encode_does_not_mutate_input(self):
        """Caller's dict is left alone."""
        data = {"a": 1}
        encode_payload("report", data)
        assert data == {"a": 1}

    def test_encode_none_payload(self):
        raw = encode_payload("ping", None)
        assert json.loads(raw) == {"type": "ping"}

    def test_decode_splits_type(self):
        """Type is popped out of the payload."""
        assert decode_payload('{"a": 1, "type": "report"}') == ("report", {"a": 1})

    def test_decode_missing_type(self):
        """Missing type decodes to empty string."""
        assert decode_payload('{"a": 1}') == ("", {"a": 1})

    def test_decode_malformed_json(self):
        """Malformed JSON degrades to an empty payload and is logged."""
        with capture_logs() as logs:
            assert decode_payload("{not json") == ("", {})
        assert any(e["event"] == "payload_decode_failed" for e in logs)

    def test_decode_non_object(self):
        """A JSON array is not a payload."""
        assert decode_payload("[1, 2]") == ("", {})

    def test_decode_null_column(self):
        assert decode_payload(None) == ("", {})

    def test_decode_deeply_nested(self):
        """JSON nested past the recursion limit degrades like malformed JSON."""
        raw = "[" * 200_000 + "]" * 200_000
        with capture_logs() as logs:
            assert decode_payload(raw) == ("", {})
        assert any(e["event"] == "payload_decode_failed" for e in logs)

    def test_decode_falsy_type_kept(self):
        """Only a missing or null type becomes the empty string."""
        assert decode_payload('{"type": 0}') == ("0", {})
        assert decode_payload('{"type": ""}') == ("", {})
        assert decode_payload('{"type": null, "a": 1}') == ("", {"a": 1})


class TestTimeConversion:
    """Epoch <-> datetime helpers."""

    def test_to_datetime_is_aware_utc(self):
        dt = to_datetime(0)
        assert dt == datetime(1970, 1, 1, tzinfo=UTC)
        assert dt.tzinfo is UTC

    def test_to_datetime_clamps(self):
        """Epochs outside the datetime range clamp to its bounds."""
        assert to_datetime(10**12) == datetime(9999, 12, 31, 23, 59, 59, tzinfo=UTC)
        assert to_datetime(-(10**12)) == datetime(1, 1, 1, tzinfo=UTC)
        assert to_datetime(MAX_EPOCH).year == 9999

    def test_in_datetime_range(self):
        assert in_datetime_range(0)
        assert in_datetime_range(MAX_EPOCH)
        assert in_datetime_range(MIN_EPOCH)
        assert not in_datetime_range(MAX_EPOCH + 1)
        assert not in_datetime_range(10**12)

    def test_to_epoch_naive_is_utc(self):
        """Naive datetimes are taken as UTC."""
        assert to_epoch(datetime(1970, 1, 1, 0, 1)) == 60

    def test_to_epoch_number(self):
        assert to_epoch(1700000000.9) == 1700000000


class TestDecodeAttributes:
    """Row -> attribute set."""

    def test_full_row(self):
        """Every column maps onto its attribute."""
        row = ScheduleRow(
            id="job1",
            timeout=1700000060,
            next_time=1700000000,
            cron="* * * * *",
            delay=60,
            data='{"type": "report", "x": [1, 2]}',
            timezone="Asia/Tokyo",
        )
        attrs = decode_attributes(row)

        assert attrs.type == "report"
        assert attrs.data == {"x": [1, 2]}
        assert attrs.cron == "* * * * *"
        assert attrs.delay == 60
        assert attrs.timezone == "Asia/Tokyo"
        assert attrs.next_time == to_datetime(1700000000)
        assert attrs.next_run_time == to_datetime(1700000060)
        assert attrs.message is None
        assert attrs.node is None

    def test_defaults(self):
        """Null delay/timezone fall back to 0 and UTC."""
        row = ScheduleRow(id="job1", timeout=0, next_time=0, delay=None, timezone=None)
        attrs = decode_attributes(row)

        assert attrs.delay == 0
        assert attrs.timezone == "UTC"
        assert attrs.type == ""
        assert attrs.data == {}
