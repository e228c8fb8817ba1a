"""
schedspine - lease-based distributed schedule storage.

- schedspine.core: errors, dialects, connections, retry, logging, settings
- schedspine.scheduling: the lease backend (claim / heartbeat / finish)
- schedspine.cli: the ``schedspine`` command
"""

__version__ = "0.1.0"

from schedspine.scheduling import (  # noqa: E402
    LeaseBackend,
    Schedule,
    ScheduleMetadata,
    ScheduleUpdate,
    Task,
    TaskToken,
)

__all__ = [
    "__version__",
    "LeaseBackend",
    "Schedule",
    "ScheduleMetadata",
    "ScheduleUpdate",
    "Task",
    "TaskToken",
]
