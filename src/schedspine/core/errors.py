"""
Structured error types for schedspine.

Every error raised by the backend carries a category, an explicit retry
flag, structured context and an optional chained cause, so that callers can
branch on the *kind* of failure instead of parsing messages.

Manifesto:
    - **Typed hierarchy:** NotFound, AlreadyExists and AlreadyFinished are
      expected outcomes callers branch on, not crashes
    - **Explicit retry semantics:** only TransientConflictError is retryable
    - **Rich context:** schedule key, table and occurrence travel with the error
    - **Error chaining:** the driver exception is kept as ``cause``

Architecture:
    ::

        SchedSpineError (category, retryable, context, cause)
        ├── TransientError            retryable=True
        │   └── TransientConflictError     DATABASE (deadlock / serialization)
        ├── ConfigError               CONFIG
        │   ├── MissingConfigError
        │   └── InvalidConfigError
        ├── ValidationError           VALIDATION
        │   └── InvalidScheduleError       bad cron / timezone
        └── ScheduleError             SCHEDULE
            ├── NotFoundError
            ├── AlreadyExistsError
            └── AlreadyFinishedError       lease fencing failed

Examples:
    >>> err = NotFoundError("schedule key=job1 does not exist").with_context(key="job1")
    >>> err.context.key
    'job1'
    >>> is_retryable(TransientConflictError("deadlock"))
    True

Tags:
    error-handling, exception-hierarchy, retry-logic, schedspine

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    DATABASE = "DATABASE"         # Store errors, deadlocks, constraint failures
    VALIDATION = "VALIDATION"     # Malformed cron expressions, timezones
    CONFIG = "CONFIG"             # Missing url/table, invalid settings
    SCHEDULE = "SCHEDULE"         # Missing keys, duplicate keys, stale leases
    INTERNAL = "INTERNAL"         # Bugs, unexpected state
    UNKNOWN = "UNKNOWN"           # Uncategorized errors


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        key: Schedule key the failing operation targeted
        table: Table the backend operates on
        scheduled_time: Epoch seconds of the occurrence a lease refers to
        operation: Name of the backend operation (``acquire``, ``finish``...)
        metadata: Additional key-value pairs
    """

    key: str | None = None
    table: str | None = None
    scheduled_time: int | None = None
    operation: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for name in ["key", "table", "scheduled_time", "operation"]:
            value = getattr(self, name)
            if value is not None:
                result[name] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class SchedSpineError(Exception):
    """
    Base exception for all schedspine errors.

    Subclasses set ``default_category`` and ``default_retryable`` so that
    raising sites only need a message.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> SchedSpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise NotFoundError("missing").with_context(key="job1", table="schedules")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# TRANSIENT ERRORS (Retryable)
# =============================================================================


class TransientError(SchedSpineError):
    """Temporary error that may succeed when the whole unit of work is re-run."""

    default_category = ErrorCategory.DATABASE
    default_retryable = True


class TransientConflictError(TransientError):
    """
    The store asked for the transaction to be restarted.

    Raised by the store collaborator when the dialect classifies a driver
    error as a write-write conflict (MySQL deadlock / lock wait timeout,
    PostgreSQL serialization failure, SQLite busy/locked). The session guard
    retries the operation; callers only see it after retries are exhausted.
    """


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(SchedSpineError):
    """
    Configuration error.

    Never retryable - configuration must be fixed before the backend starts.
    """

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class MissingConfigError(ConfigError):
    """Required configuration is missing."""

    def __init__(self, key: str, message: str | None = None):
        self.key = key
        super().__init__(message or f"{key} option is required for the lease backend")


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}")


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(SchedSpineError):
    """Input validation error. Never retryable."""

    default_category = ErrorCategory.VALIDATION
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = repr(self.value)
        return result


class InvalidScheduleError(ValidationError):
    """Cron expression or timezone cannot be evaluated."""

    pass


# =============================================================================
# SCHEDULE ERRORS (expected outcomes)
# =============================================================================


class ScheduleError(SchedSpineError):
    """Schedule lookup, definition or lease outcome."""

    default_category = ErrorCategory.SCHEDULE
    default_retryable = False


class NotFoundError(ScheduleError):
    """A keyed read, update or delete targeted a schedule that does not exist."""

    pass


class AlreadyExistsError(ScheduleError):
    """Insert violated the uniqueness constraint on the schedule key."""

    pass


class AlreadyFinishedError(ScheduleError):
    """
    Lease fencing failed.

    The occurrence named by the token was already advanced by another
    process (or by an earlier finish); the holder must stop processing.
    """

    pass


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, SchedSpineError):
        return error.retryable
    return False


def categorize_error(error: Exception) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, SchedSpineError):
        return error.category
    if isinstance(error, ValueError):
        return ErrorCategory.VALIDATION
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "SchedSpineError",
    # Transient
    "TransientError",
    "TransientConflictError",
    # Config
    "ConfigError",
    "MissingConfigError",
    "InvalidConfigError",
    # Validation
    "ValidationError",
    "InvalidScheduleError",
    # Schedule outcomes
    "ScheduleError",
    "NotFoundError",
    "AlreadyExistsError",
    "AlreadyFinishedError",
    # Utilities
    "is_retryable",
    "categorize_error",
]
