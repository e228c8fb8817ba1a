"""Lease-based schedule storage.

Manifesto:
    Many scheduler processes share one schedule table and no lock manager.
    A process claims a due schedule by moving its ``timeout`` forward with a
    conditional update, keeps the claim alive with heartbeats, and completes
    it by advancing ``next_time`` to the next cron occurrence. The affected
    row count of each conditional update decides every race.

Quick Start::

    from schedspine.scheduling import LeaseBackend

    backend = LeaseBackend("sqlite:///sched.db", "schedules")
    backend.init_database()
    backend.add("daily-report", "report", "0 8 * * *")

    task = backend.acquire(alive_time=60)
    if task is not None:
        backend.heartbeat(task.token, alive_time=60)
        backend.finish(task.token)

Modules::

    models.py       ScheduleRow, ScheduleMetadata, Task, TaskToken, ScheduleUpdate
    codec.py        row <-> attributes, payload with embedded type
    cron.py         next_occurrence (croniter + zoneinfo), NEVER
    session.py      Session guard (lock, transient retry, release)
    protocol.py     ScheduleStore protocol
    store.py        SqlScheduleStore
    repository.py   get_metadata / list / submit / delete / modify
    acquisition.py  acquire
    lifecycle.py    heartbeat / finish
    backend.py      LeaseBackend facade

Tags:
    schedspine, scheduling, lease, optimistic-concurrency
"""

from schedspine.scheduling.acquisition import SCAN_BATCH_SIZE, LeaseAcquirer
from schedspine.scheduling.backend import LeaseBackend
from schedspine.scheduling.cron import NEVER, next_occurrence
from schedspine.scheduling.lifecycle import LeaseLifecycle
from schedspine.scheduling.models import (
    Schedule,
    ScheduleAttributes,
    ScheduleMetadata,
    ScheduleRow,
    ScheduleUpdate,
    Task,
    TaskToken,
)
from schedspine.scheduling.protocol import ScheduleStore
from schedspine.scheduling.repository import ScheduleRepository
from schedspine.scheduling.session import Session
from schedspine.scheduling.store import SqlScheduleStore

__all__ = [
    # Facade
    "LeaseBackend",
    # Components
    "Session",
    "ScheduleRepository",
    "LeaseAcquirer",
    "LeaseLifecycle",
    "ScheduleStore",
    "SqlScheduleStore",
    # Models
    "Schedule",
    "ScheduleAttributes",
    "ScheduleMetadata",
    "ScheduleRow",
    "ScheduleUpdate",
    "Task",
    "TaskToken",
    # Cron
    "NEVER",
    "next_occurrence",
    "SCAN_BATCH_SIZE",
]
