"""Backend settings.

``BackendSettings`` is the configuration surface the lease backend consumes:
where the schedule table lives and how the session guard and the claim scan
behave. Values come from constructor arguments, ``SCHEDSPINE_*``
environment variables, or a ``.env`` file.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.
    ``url`` and ``table`` have no sensible default, so they are optional at
    the settings level and checked eagerly when a backend is built from them
    (:class:`~schedspine.core.errors.MissingConfigError`); everything else
    has the defaults the lease protocol was tuned with.

Examples:
    >>> from schedspine.core.settings import BackendSettings
    >>> settings = BackendSettings(url="sqlite:///sched.db", table="schedules")
    >>> settings.max_retry
    10

Tags:
    settings, configuration, pydantic, environment, schedspine
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BackendSettings(BaseSettings):
    """Settings for :class:`~schedspine.scheduling.backend.LeaseBackend`.

    Fields
    ──────
    url                  : Database URL or SQLite path (required)
    table                : Schedule table name (required)
    max_retry            : Attempts per operation on transient conflicts
    retry_delay          : Fixed sleep between attempts, seconds
    scan_batch_size      : Due rows read per claim scan
    alive_time           : Default lease length for acquire/heartbeat, seconds
    disconnect_after_use : Close the connection after every operation
    log_level            : CLI log level when --verbose is not given
    """

    model_config = SettingsConfigDict(
        env_prefix="SCHEDSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Store ────────────────────────────────────────────────────
    url: str | None = None
    table: str | None = None

    # ── Session guard ────────────────────────────────────────────
    max_retry: int = Field(default=10, ge=1)
    retry_delay: float = Field(default=0.5, ge=0.0)
    disconnect_after_use: bool = True

    # ── Lease protocol ───────────────────────────────────────────
    scan_batch_size: int = Field(default=4, ge=1)
    alive_time: int = Field(default=300, ge=1)

    # ── Observability ────────────────────────────────────────────
    log_level: str = "WARNING"


__all__ = ["BackendSettings"]
