"""Job scheduler driving periodic and change-triggered syncs."""

from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.events import EVENT_JOB_EXECUTED, EVENT_JOB_ERROR, EVENT_JOB_MISSED

from ..config import DriveConfig
from ..watcher import ChangeWatcher
from ..utils.logging import get_logger


PERIODIC_SYNC_JOB = "periodic_sync"
WATCH_CHECK_JOB = "watch_check"
STARTUP_SYNC_JOB = "startup_sync"

SyncCallback = Callable[[str], Awaitable[Any]]


class SchedulerError(Exception):
    """Raised when scheduler operations fail."""
    pass


class SyncScheduler:
    """Schedules sync runs on a timer and when the watcher reports changes.

    The scheduler only decides *when* to sync; ``sync_callback`` does the
    work and receives the trigger name (``timer``, ``watcher``, ``startup``).
    """

    def __init__(
        self,
        sync_callback: SyncCallback,
        watcher: Optional[ChangeWatcher] = None,
        watch_check_interval: int = 10
    ):
        """Initialize the scheduler.

        Args:
            sync_callback: Coroutine function running one sync
            watcher: Change watcher polled by the watch-check job
            watch_check_interval: Seconds between watcher polls
        """
        self.sync_callback = sync_callback
        self.watcher = watcher
        self.watch_check_interval = watch_check_interval
        self.logger = get_logger(self.__class__.__name__)

        self.scheduler = AsyncIOScheduler(
            job_defaults={
                'coalesce': True,  # Combine multiple pending executions
                'max_instances': 1,  # Only one instance per job
                'misfire_grace_time': 60
            }
        )

        self.job_stats: Dict[str, Dict[str, Any]] = {}
        self._changes_pending = False

        self.scheduler.add_listener(self._job_executed, EVENT_JOB_EXECUTED)
        self.scheduler.add_listener(self._job_error, EVENT_JOB_ERROR)
        self.scheduler.add_listener(self._job_missed, EVENT_JOB_MISSED)

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self, config: DriveConfig, initial_sync: bool = True) -> None:
        """Start the scheduler with jobs for ``config``.

        Must be called from within a running event loop.
        """
        if self.scheduler.running:
            self.logger.warning("Scheduler is already running")
            return

        try:
            self.scheduler.start()
        except Exception as e:
            self.logger.error("Failed to start scheduler", error=str(e))
            raise SchedulerError(f"Failed to start scheduler: {e}")

        self.reload_jobs(config, initial_sync=initial_sync)
        self.logger.info("Sync scheduler started", jobs=[job.id for job in self.scheduler.get_jobs()])

    def stop(self, wait: bool = False) -> None:
        if not self.scheduler.running:
            return

        self.scheduler.shutdown(wait=wait)
        self.logger.info("Sync scheduler stopped")

    def reload_jobs(self, config: DriveConfig, initial_sync: bool = False) -> None:
        """Replace all jobs to match ``config``.

        Nothing is scheduled for an unconfigured account.
        """
        self.scheduler.remove_all_jobs()
        self._changes_pending = False

        if not config.is_configured():
            self.logger.info("Account not configured, no sync jobs scheduled")
            return

        self._add_job(
            self._run_sync,
            IntervalTrigger(seconds=config.sync_interval_secs),
            PERIODIC_SYNC_JOB,
            args=["timer"]
        )

        if config.watch_local_changes and self.watcher is not None:
            self._add_job(
                self._check_watcher,
                IntervalTrigger(seconds=self.watch_check_interval),
                WATCH_CHECK_JOB
            )

        if initial_sync and config.sync_on_startup:
            self._add_job(
                self._run_sync,
                DateTrigger(run_date=datetime.now(timezone.utc)),
                STARTUP_SYNC_JOB,
                args=["startup"]
            )

        self.logger.info(
            "Jobs reloaded",
            sync_interval_secs=config.sync_interval_secs,
            watch_local_changes=config.watch_local_changes
        )

    def get_job_stats(self) -> Dict[str, Dict[str, Any]]:
        stats = {job_id: values.copy() for job_id, values in self.job_stats.items()}
        if self.scheduler.running:
            for job in self.scheduler.get_jobs():
                stats.setdefault(job.id, {})["next_run"] = job.next_run_time
        return stats

    def _add_job(self, func, trigger, job_id: str, args: Optional[list] = None):
        job = self.scheduler.add_job(
            func=func,
            trigger=trigger,
            args=args or [],
            id=job_id,
            name=job_id,
            replace_existing=True
        )
        self.job_stats.setdefault(job_id, {
            "run_count": 0,
            "error_count": 0,
            "last_run": None,
            "last_error": None
        })
        return job

    async def _run_sync(self, trigger: str):
        self.logger.info("Scheduled sync triggered", trigger=trigger)
        return await self.sync_callback(trigger)

    async def _check_watcher(self) -> bool:
        """Trigger a sync early if the watcher saw local changes.

        Changes stay pending when the sync is skipped because another run
        holds the engine, and are retried on the next check.
        """
        if self.watcher is None:
            return False

        if self.watcher.has_changes():
            self._changes_pending = True
        if not self._changes_pending:
            return False

        self.logger.info("Local changes detected, syncing early")
        self._changes_pending = False
        report = await self.sync_callback("watcher")

        if getattr(report, "skipped", False):
            self.logger.info("Sync already running, retrying local changes on next check")
            self._changes_pending = True
            return False
        return True

    def _job_executed(self, event):
        stats = self.job_stats.get(event.job_id)
        if stats is not None:
            stats["run_count"] += 1
            stats["last_run"] = datetime.now(timezone.utc)

    def _job_error(self, event):
        stats = self.job_stats.get(event.job_id)
        if stats is not None:
            stats["run_count"] += 1
            stats["error_count"] += 1
            stats["last_run"] = datetime.now(timezone.utc)
            stats["last_error"] = str(event.exception)

        self.logger.error(
            "Scheduled job failed",
            job_id=event.job_id,
            error=str(event.exception)
        )

    def _job_missed(self, event):
        self.logger.warning(
            "Scheduled job missed",
            job_id=event.job_id,
            scheduled_run_time=event.scheduled_run_time
        )
