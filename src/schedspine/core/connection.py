"""Connection factory: create database connections from URL strings.

Supported URL schemes
---------------------
==================  ==========================================  ============
Scheme              Example                                     Backend
==================  ==========================================  ============
``memory``          ``memory`` or ``:memory:``                   SQLite RAM
``sqlite``          ``sqlite:///path/to/file.db``                SQLite file
``(file path)``     ``./data/sched.db``                          SQLite file
``postgresql``      ``postgresql+psycopg://user:pw@host/db``     PostgreSQL
``mysql``           ``mysql+pymysql://user:pw@host/db``          MySQL
==================  ==========================================  ============

Server databases go through SQLAlchemy: an ``Engine`` with ``NullPool`` hands
out raw DB-API connections, so closing a connection really disconnects it
(the session guard opens and releases one connection per operation). The
SQLAlchemy MySQL dialects connect with ``CLIENT_FOUND_ROWS``, which makes
UPDATE row counts report *matched* rows: a heartbeat that writes the same
``timeout`` twice still counts as a win.

Usage
-----
::

    from schedspine.core.connection import ConnectionFactory

    factory = ConnectionFactory("sqlite:///sched.db")
    conn = factory()
    print(factory.info)
    # ConnectionInfo(backend='sqlite', persistent=True, path='/abs/sched.db')
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from schedspine.core.adapters import DbapiConnection, SqliteConnection
from schedspine.core.dialect import Dialect, get_dialect
from schedspine.core.errors import InvalidConfigError
from schedspine.core.protocols import Connection

logger = logging.getLogger(__name__)


# ── ConnectionInfo ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class ConnectionInfo:
    """Metadata about a database connection target."""

    backend: str
    """Backend identifier: ``"sqlite"``, ``"postgresql"``, ``"mysql"``."""

    persistent: bool
    """Whether data survives the connection being closed."""

    url: str
    """The original URL or path."""

    resolved_path: str | None = None
    """For file-based SQLite, the resolved absolute path."""

    def __repr__(self) -> str:
        parts = [f"backend={self.backend!r}", f"persistent={self.persistent}"]
        if self.resolved_path:
            parts.append(f"path={self.resolved_path!r}")
        else:
            parts.append(f"url={self.url!r}")
        return f"ConnectionInfo({', '.join(parts)})"

    @property
    def is_sqlite(self) -> bool:
        return self.backend == "sqlite"

    @property
    def dialect(self) -> Dialect:
        return get_dialect(self.backend)


# ── URL parsing ──────────────────────────────────────────────────────────


def _parse_url(db: str) -> tuple[str, str]:
    """Parse a database URL into (scheme, target).

    ``scheme`` is one of ``"memory"``, ``"sqlite"``, ``"server"``.
    """
    if db in ("memory", ":memory:"):
        return "memory", ":memory:"

    for prefix in ("sqlite:///", "sqlite://"):
        if db.startswith(prefix):
            path = db[len(prefix):]
            if not path or path == ":memory:":
                return "memory", ":memory:"
            return "sqlite", path

    if "://" in db:
        return "server", db

    # Bare file path: SQLite file
    return "sqlite", db


# ── Factory ──────────────────────────────────────────────────────────────


class ConnectionFactory:
    """Callable that opens a new :class:`Connection` to one target.

    The URL is parsed (and for server databases the SQLAlchemy engine is
    built) eagerly, so a malformed URL fails at construction time.

    Raises:
        InvalidConfigError: if the URL cannot be parsed or names an
            unsupported backend.
    """

    def __init__(self, url: str, *, sqlite_timeout: float = 5.0) -> None:
        self.url = url
        self._sqlite_timeout = sqlite_timeout
        self._engine: Any = None
        self._memory_conn: SqliteConnection | None = None

        scheme, target = _parse_url(url)
        self._scheme = scheme
        self._target = target

        if scheme == "memory":
            self.info = ConnectionInfo(backend="sqlite", persistent=False, url=url)
        elif scheme == "sqlite":
            resolved = str(Path(target).resolve())
            self._target = resolved
            self.info = ConnectionInfo(
                backend="sqlite",
                persistent=True,
                url=url,
                resolved_path=resolved,
            )
        else:
            self._engine = self._create_engine(url)
            backend = self._engine.dialect.name
            try:
                get_dialect(backend)
            except ValueError as e:
                raise InvalidConfigError("url", url, str(e)) from e
            if backend == "mariadb":
                backend = "mysql"
            self.info = ConnectionInfo(backend=backend, persistent=True, url=url)

    @staticmethod
    def _create_engine(url: str) -> Any:
        from sqlalchemy import create_engine
        from sqlalchemy.exc import ArgumentError, NoSuchModuleError
        from sqlalchemy.pool import NullPool

        try:
            return create_engine(url, poolclass=NullPool)
        except (ArgumentError, NoSuchModuleError) as e:
            raise InvalidConfigError("url", url, f"Cannot use database url {url!r}: {e}") from e

    def __call__(self) -> Connection:
        if self._scheme == "memory":
            # One shared connection: an in-memory database lives and dies with it
            if self._memory_conn is None:
                self._memory_conn = SqliteConnection(":memory:", timeout=self._sqlite_timeout)
            return self._memory_conn

        if self._scheme == "sqlite":
            Path(self._target).parent.mkdir(parents=True, exist_ok=True)
            return SqliteConnection(self._target, timeout=self._sqlite_timeout)

        logger.debug("Opening %s connection", self.info.backend)
        return DbapiConnection(self._engine.raw_connection())

    def release(self, conn: Connection) -> None:
        """Close *conn* unless it is the shared in-memory connection, which
        stays open until :meth:`dispose`."""
        if conn is self._memory_conn:
            return
        conn.close()

    def dispose(self) -> None:
        """Close the shared in-memory connection and dispose of the engine."""
        if self._memory_conn is not None:
            self._memory_conn.close()
            self._memory_conn = None
        if self._engine is not None:
            self._engine.dispose()

    def __repr__(self) -> str:
        return f"ConnectionFactory({self.info!r})"


def create_connection(db: str) -> tuple[Connection, ConnectionInfo]:
    """Open a single connection from a URL, path, or keyword.

    Returns:
        ``(conn, info)``: the connection (satisfies ``Connection``) and
        metadata about the target.
    """
    factory = ConnectionFactory(db)
    return factory(), factory.info


__all__ = ["ConnectionInfo", "ConnectionFactory", "create_connection"]
