"""schedspine.core: platform primitives the lease backend is built on.

Layers::

    errors.py       Structured error hierarchy (SchedSpineError, TransientConflictError)
    protocols.py    Connection protocol
    dialect.py      SQL dialects + driver error classification
    adapters.py     sqlite3 / DB-API connection adapters
    connection.py   ConnectionFactory (URL -> Connection)
    retry.py        ConstantBackoff + RetryContext
    logging.py      structlog configuration
    settings.py     BackendSettings (pydantic-settings)
"""

from schedspine.core.errors import (
    AlreadyExistsError,
    AlreadyFinishedError,
    ConfigError,
    InvalidConfigError,
    InvalidScheduleError,
    MissingConfigError,
    NotFoundError,
    SchedSpineError,
    TransientConflictError,
)
from schedspine.core.protocols import Connection

__all__ = [
    "Connection",
    "SchedSpineError",
    "ConfigError",
    "MissingConfigError",
    "InvalidConfigError",
    "InvalidScheduleError",
    "NotFoundError",
    "AlreadyExistsError",
    "AlreadyFinishedError",
    "TransientConflictError",
]
