"""Scheduler package for triggering sync runs."""

from .job_scheduler import (
    SyncScheduler,
    SchedulerError,
    PERIODIC_SYNC_JOB,
    WATCH_CHECK_JOB,
    STARTUP_SYNC_JOB
)

__all__ = [
    "SyncScheduler",
    "SchedulerError",
    "PERIODIC_SYNC_JOB",
    "WATCH_CHECK_JOB",
    "STARTUP_SYNC_JOB"
]
