"""Retry strategies for store operations.

The session guard re-runs a whole unit of work when the store reports a
transient conflict. The *policy* (how many attempts, how long to wait, which
errors qualify) is a strategy object; :class:`RetryContext` executes a
callable under it and counts the attempts.

Example:
    >>> from schedspine.core.retry import ConstantBackoff, RetryContext
    >>> from schedspine.core.errors import TransientConflictError
    >>>
    >>> strategy = ConstantBackoff(max_attempts=10, delay=0.5,
    ...                            retryable_errors=(TransientConflictError,))
    >>> ctx = RetryContext(strategy)
    >>> result = ctx.run(lambda: "ok")
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

T = TypeVar("T")


class RetryStrategy(ABC):
    """Abstract base for retry strategies."""

    @abstractmethod
    def next_delay(self, attempt: int) -> float:
        """Delay in seconds before the attempt following *attempt* (1-based)."""
        ...

    @abstractmethod
    def should_retry(self, attempt: int, error: Exception | None = None) -> bool:
        """Whether another attempt may follow attempt number *attempt* (1-based)."""
        ...


@dataclass
class ConstantBackoff(RetryStrategy):
    """Constant delay between attempts.

    Attributes:
        max_attempts: Total attempts, the first one included
        delay: Sleep between attempts, seconds
        retryable_errors: Exception types that qualify (None = all)
    """

    max_attempts: int = 10
    delay: float = 0.5
    retryable_errors: tuple[type[BaseException], ...] | None = None

    def next_delay(self, attempt: int) -> float:
        return self.delay

    def should_retry(self, attempt: int, error: Exception | None = None) -> bool:
        if attempt >= self.max_attempts:
            return False
        if error is not None and self.retryable_errors is not None:
            return isinstance(error, self.retryable_errors)
        return True

    def is_retryable(self, error: Exception) -> bool:
        """Whether *error* qualifies at all, ignoring the attempt budget."""
        if self.retryable_errors is None:
            return True
        return isinstance(error, self.retryable_errors)


@dataclass
class NoRetry(RetryStrategy):
    """No retry - fail immediately."""

    def next_delay(self, attempt: int) -> float:
        return 0.0

    def should_retry(self, attempt: int, error: Exception | None = None) -> bool:
        return False


@dataclass
class RetryContext:
    """Executes a callable under a strategy and counts attempts.

    ``on_retry(attempt, error, delay)`` is called before each sleep;
    ``on_giveup(attempt, error)`` is called when a qualifying error runs out
    of attempts. Errors the strategy does not qualify propagate immediately
    without either callback.
    """

    strategy: RetryStrategy
    on_retry: Callable[[int, Exception, float], None] | None = None
    on_giveup: Callable[[int, Exception], None] | None = None
    sleep: Callable[[float], None] = time.sleep
    attempt: int = field(default=0, init=False)

    def run(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Execute *func* with retry logic.

        Raises:
            The last exception once retries are exhausted, or the first
            non-qualifying exception.
        """
        while True:
            self.attempt += 1
            try:
                return func(*args, **kwargs)
            except Exception as e:
                if not self.strategy.should_retry(self.attempt, e):
                    qualifies = getattr(self.strategy, "is_retryable", None)
                    if self.on_giveup and qualifies is not None and qualifies(e):
                        self.on_giveup(self.attempt, e)
                    raise

                delay = self.strategy.next_delay(self.attempt)
                if self.on_retry:
                    self.on_retry(self.attempt, e, delay)
                self.sleep(delay)


__all__ = [
    "RetryStrategy",
    "ConstantBackoff",
    "NoRetry",
    "RetryContext",
]
