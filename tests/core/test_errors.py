"""Tests for schedspine.core.errors module."""

import sqlite3

from schedspine.core.errors import (
    AlreadyExistsError,
    AlreadyFinishedError,
    ConfigError,
    ErrorCategory,
    ErrorContext,
    InvalidConfigError,
    InvalidScheduleError,
    MissingConfigError,
    NotFoundError,
    SchedSpineError,
    ScheduleError,
    TransientConflictError,
    TransientError,
    ValidationError,
    categorize_error,
    is_retryable,
)


class TestErrorContext:
    """Test ErrorContext dataclass."""

    def test_empty_context(self):
        assert ErrorContext().to_dict() == {}

    def test_to_dict_skips_none(self):
        ctx = ErrorContext(key="job1", scheduled_time=100, metadata={"worker": "w1"})
        assert ctx.to_dict() == {"key": "job1", "scheduled_time": 100, "worker": "w1"}


class TestHierarchy:
    """Categories and retry flags per error family."""

    def test_transient_conflict_is_retryable(self):
        err = TransientConflictError("deadlock")
        assert isinstance(err, TransientError)
        assert err.retryable is True
        assert err.category == ErrorCategory.DATABASE

    def test_schedule_outcomes_not_retryable(self):
        for cls in (NotFoundError, AlreadyExistsError, AlreadyFinishedError):
            err = cls("x")
            assert isinstance(err, ScheduleError)
            assert err.retryable is False
            assert err.category == ErrorCategory.SCHEDULE

    def test_config_errors(self):
        missing = MissingConfigError("table")
        assert isinstance(missing, ConfigError)
        assert missing.key == "table"
        assert str(missing) == "table option is required for the lease backend"

        invalid = InvalidConfigError("url", "bogus://")
        assert invalid.value == "bogus://"
        assert invalid.category == ErrorCategory.CONFIG

    def test_invalid_schedule_is_validation(self):
        err = InvalidScheduleError("bad cron", field="cron", value="x")
        assert isinstance(err, ValidationError)
        assert err.to_dict()["field"] == "cron"

    def test_all_derive_from_base(self):
        assert issubclass(AlreadyFinishedError, SchedSpineError)
        assert issubclass(InvalidScheduleError, SchedSpineError)


class TestFluentContext:
    def test_with_context_known_and_extra(self):
        err = NotFoundError("missing").with_context(key="job1", table="schedules", worker="w1")
        assert err.context.key == "job1"
        assert err.context.table == "schedules"
        assert err.context.metadata == {"worker": "w1"}

    def test_with_context_returns_self(self):
        err = AlreadyFinishedError("done")
        assert err.with_context(operation="finish") is err


class TestCause:
    def test_cause_is_chained(self):
        driver = sqlite3.OperationalError("database is locked")
        err = TransientConflictError("conflict", cause=driver)
        assert err.__cause__ is driver
        assert err.to_dict()["cause"] == "database is locked"

    def test_to_dict(self):
        err = NotFoundError("missing").with_context(key="job1")
        assert err.to_dict() == {
            "error_type": "NotFoundError",
            "message": "missing",
            "category": "SCHEDULE",
            "retryable": False,
            "context": {"key": "job1"},
        }


class TestHelpers:
    def test_is_retryable(self):
        assert is_retryable(TransientConflictError("x")) is True
        assert is_retryable(NotFoundError("x")) is False
        assert is_retryable(RuntimeError("x")) is False

    def test_categorize_error(self):
        assert categorize_error(AlreadyExistsError("x")) == ErrorCategory.SCHEDULE
        assert categorize_error(ValueError("x")) == ErrorCategory.VALIDATION
        assert categorize_error(RuntimeError("x")) == ErrorCategory.UNKNOWN
