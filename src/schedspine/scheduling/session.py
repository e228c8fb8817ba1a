"""Session guard: single-writer access to the schedule store.

Manifesto:
    One backend instance owns exactly one store connection, and every
    operation it performs runs under one lock. Inside a process that makes
    operations strictly sequential; *across* processes nothing is
    serialized here, and safety rests entirely on the conditional updates
    the store performs. The session also owns the transient-conflict retry
    policy, because the unit that is retried is the whole operation, not a
    single statement.

Architecture:
    ::

        Session.run(operation)
        ├── lock (threading.Lock, one per backend instance)
        ├── LogContext(operation=name)   bound for every event logged inside
        ├── RetryContext(ConstantBackoff(max_retry, 0.5s, TransientConflictError))
        │     ├── checkout connection (opened lazily)
        │     ├── operation(conn)
        │     ├── commit           on success
        │     ├── rollback         on any error
        │     └── release          always, when disconnect_after_use
        └── unlock

    Only TransientConflictError is retried; it is raised by the store
    after the dialect has classified a driver error. Anything else
    propagates on first occurrence.

Tags:
    schedspine, session, mutex, retry, transient-conflict
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import TypeVar

from schedspine.core.errors import TransientConflictError
from schedspine.core.logging import LogContext, get_logger
from schedspine.core.protocols import Connection
from schedspine.core.retry import ConstantBackoff, RetryContext

logger = get_logger(__name__)

T = TypeVar("T")

MAX_RETRY = 10
RETRY_DELAY = 0.5


def _close_connection(conn: Connection) -> None:
    conn.close()


class Session:
    """Serializes store access of one process instance over one connection.

    Args:
        connect: Zero-argument callable returning a new :class:`Connection`.
        max_retry: Attempts per operation when the store reports a
            transient conflict (the first attempt included).
        retry_delay: Fixed sleep between attempts, seconds.
        disconnect_after_use: Close the connection after every operation
            and reopen it on the next one. Must be False for in-memory
            SQLite, whose data lives only as long as its connection.
        release: Called with a connection the session is done with; closes
            it by default. The backend passes its factory's ``release`` so
            the shared in-memory connection is never closed here.
        sleep: Injected for tests.

    Example:
        >>> session = Session(factory)
        >>> count = session.run(lambda conn: conn.execute("SELECT 1").fetchone()[0])
    """

    def __init__(
        self,
        connect: Callable[[], Connection],
        *,
        max_retry: int = MAX_RETRY,
        retry_delay: float = RETRY_DELAY,
        disconnect_after_use: bool = True,
        release: Callable[[Connection], None] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._connect = connect
        self._close = release or _close_connection
        self._strategy = ConstantBackoff(
            max_attempts=max_retry,
            delay=retry_delay,
            retryable_errors=(TransientConflictError,),
        )
        self._disconnect_after_use = disconnect_after_use
        self._sleep = sleep
        self._lock = threading.Lock()
        self._conn: Connection | None = None
        self._in_use = False
        self.operations = 0
        self.retries = 0

    @property
    def in_use(self) -> bool:
        """True while an operation holds the session."""
        return self._in_use

    @property
    def connected(self) -> bool:
        return self._conn is not None

    def run(self, operation: Callable[[Connection], T], *, name: str | None = None) -> T:
        """Run *operation* with exclusive access to the connection.

        Raises:
            Whatever *operation* raises; a TransientConflictError only after
            ``max_retry`` attempts.
        """
        label = name or getattr(operation, "__name__", "operation")
        with self._lock, LogContext(operation=label):
            self._in_use = True
            try:
                context = RetryContext(
                    self._strategy,
                    on_retry=lambda attempt, error, delay: self._on_retry(label, attempt, error, delay),
                    on_giveup=lambda attempt, error: self._on_giveup(label, attempt, error),
                    sleep=self._sleep,
                )
                return context.run(self._attempt, operation)
            finally:
                self.operations += 1
                self._in_use = False

    def close(self) -> None:
        """Release the connection if one is open."""
        with self._lock:
            self._release()

    # -- internals ---------------------------------------------------------

    def _attempt(self, operation: Callable[[Connection], T]) -> T:
        conn = self._checkout()
        try:
            result = operation(conn)
            conn.commit()
            return result
        except Exception:
            self._rollback(conn)
            raise
        finally:
            if self._disconnect_after_use:
                self._release()

    def _checkout(self) -> Connection:
        if self._conn is None:
            self._conn = self._connect()
        return self._conn

    def _rollback(self, conn: Connection) -> None:
        try:
            conn.rollback()
        except Exception as e:
            # the original error is re-raised by the caller; a dead connection is dropped
            logger.warning("session_rollback_failed", error=str(e))
            self._release()

    def _release(self) -> None:
        conn, self._conn = self._conn, None
        if conn is None:
            return
        try:
            self._close(conn)
        except Exception as e:
            logger.warning("session_close_failed", error=str(e))

    def _on_retry(self, label: str, attempt: int, error: Exception, delay: float) -> None:
        self.retries += 1
        logger.warning(
            "session_retry",
            operation=label,
            attempt=attempt,
            delay=delay,
            error=str(error),
        )

    def _on_giveup(self, label: str, attempt: int, error: Exception) -> None:
        logger.error(
            "session_retry_exhausted",
            operation=label,
            attempts=attempt,
            error=str(error),
        )


__all__ = ["Session", "MAX_RETRY", "RETRY_DELAY"]
