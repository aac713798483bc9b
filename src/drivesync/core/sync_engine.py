"""Core sync engine orchestrating bidirectional sync of the personal and shared trees."""

import asyncio
from pathlib import Path
from typing import List, Optional

from .activity import ActivityLog, SyncStatusStore
from .errors import DirectoryCreationError, NotConfiguredError
from .models import (
    ActivityEntry,
    ActivityStatus,
    DirectorySyncTarget,
    SyncReport,
    SyncStatus,
    TargetResult,
)
from .rclone import RcloneRunner
from ..config.schema import DriveConfig
from ..utils.logging import get_logger, log_async_execution_time


DEFAULT_ACTIVITY_LIMIT = 50


def build_targets(config: DriveConfig) -> List[DirectorySyncTarget]:
    """Directory pairs in sync order: personal first, then shared."""
    return [
        DirectorySyncTarget(
            name="personal",
            remote_url=config.personal_webdav_url(),
            local_path=config.personal_sync_path,
            username=config.user_email
        ),
        DirectorySyncTarget(
            name="shared",
            remote_url=config.shared_webdav_url(),
            local_path=config.shared_sync_path,
            username=config.user_email
        ),
    ]


def aggregate_status(results: List[TargetResult]) -> SyncStatus:
    """Fold per-target results into one status.

    Priority is error, then conflict, then idle. When several targets fail
    with ordinary errors, the message of the first one in sync order wins,
    so a personal failure masks a shared one.
    """
    failures = [result for result in results if not result.success]
    if not failures:
        return SyncStatus.idle()

    for failure in failures:
        if not failure.is_conflict:
            return SyncStatus.error(failure.error_message or "Sync failed")

    return SyncStatus.conflict()


class SyncEngine:
    """Runs sync attempts and owns the status slot and activity log."""

    def __init__(
        self,
        rclone_path: str = "rclone",
        timeout_seconds: Optional[float] = None,
        status_store: Optional[SyncStatusStore] = None,
        activity_log: Optional[ActivityLog] = None
    ):
        """Initialize sync engine.

        Args:
            rclone_path: rclone executable name or path
            timeout_seconds: Per-invocation timeout for bisync runs
            status_store: Status slot (a fresh one when omitted)
            activity_log: Activity log (a fresh one when omitted)
        """
        self.status_store = status_store or SyncStatusStore()
        self.activity_log = activity_log or ActivityLog()
        self.runner = RcloneRunner(
            status_store=self.status_store,
            rclone_path=rclone_path,
            timeout_seconds=timeout_seconds
        )
        self.logger = get_logger(self.__class__.__name__)

        # Held for a whole sync_all call so two rclone runs never share a directory
        self._sync_lock = asyncio.Lock()
        self._configured = True

    @property
    def is_syncing(self) -> bool:
        return self._sync_lock.locked()

    @log_async_execution_time
    async def sync_all(self, config: DriveConfig, token: str) -> SyncReport:
        """Sync both directory pairs once.

        Per-target failures are recorded in the activity log and reflected in
        the status; they do not raise. A call made while another one is in
        flight returns a skipped report without touching anything.

        Args:
            config: Current user configuration
            token: Plaintext bearer token used as the WebDAV password

        Returns:
            SyncReport with one result per target

        Raises:
            NotConfiguredError: If server URL or user email is missing
            ObscureError: If the token cannot be obscured; no directory is
                touched and the status is left as it was
        """
        if not config.is_configured():
            raise NotConfiguredError("Not configured")

        if self._sync_lock.locked():
            self.logger.warning("Sync already in progress, skipping trigger")
            return SyncReport(status=self.get_status(), skipped=True)

        async with self._sync_lock:
            return await self._sync_all_locked(config, token)

    async def _sync_all_locked(self, config: DriveConfig, token: str) -> SyncReport:
        obscured_password = await self.runner.obscure(token)
        self.runner.max_file_size_bytes = config.max_file_size_bytes

        self.logger.info("Starting sync for all directories", user=config.user_email)
        self.status_store.set(SyncStatus.syncing())

        results: List[TargetResult] = []
        status: Optional[SyncStatus] = None
        try:
            for target in build_targets(config):
                result = await self._sync_target(target, obscured_password)
                self._record_result(target, result)
                results.append(result)

            status = aggregate_status(results)
            self.status_store.set(status)
        finally:
            if status is None:
                status = SyncStatus.error("Sync interrupted")
                self.status_store.set(status)

        if not self._configured:
            self.logger.info("Account logged out during sync")
            self.status_store.set(SyncStatus.not_configured())

        self.logger.info(
            "Completed sync for all directories",
            state=status.state.value,
            failed_targets=[result.target for result in results if not result.success]
        )

        return SyncReport(results=results, status=status)

    async def _sync_target(self, target: DirectorySyncTarget, obscured_password: str) -> TargetResult:
        try:
            self._ensure_directory(target)
        except DirectoryCreationError as e:
            self.logger.error("Cannot prepare local directory", target=target.name, error=str(e))
            return TargetResult(target=target.name, success=False, error_message=str(e))

        return await self.runner.run_bisync(
            target=target.name,
            remote_url=target.remote_url,
            local_path=target.local_path,
            username=target.username,
            obscured_password=obscured_password
        )

    def _ensure_directory(self, target: DirectorySyncTarget) -> None:
        try:
            Path(target.local_path).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DirectoryCreationError(f"Cannot create {target.name} dir: {e}")

    def _record_result(self, target: DirectorySyncTarget, result: TargetResult) -> ActivityEntry:
        if result.success:
            return self.activity_log.record(
                action=target.action,
                status=ActivityStatus.SUCCESS,
                file_path=str(target.local_path)
            )
        return self.activity_log.record(
            action=target.action,
            status=ActivityStatus.ERROR,
            file_path=str(target.local_path),
            details=result.error_message
        )

    def get_status(self) -> SyncStatus:
        """Get the current sync status."""
        return self.status_store.get()

    def get_activity(self, limit: int = DEFAULT_ACTIVITY_LIMIT) -> List[ActivityEntry]:
        """Get recent activity entries, most recent last."""
        return self.activity_log.recent(limit)

    def set_configured(self, configured: bool) -> None:
        """Move between not-configured and idle after login, logout or startup.

        While a sync runs the status is left alone; a logout arriving then
        takes effect when the run finishes.
        """
        self._configured = configured
        if self.is_syncing:
            return
        self.status_store.set(SyncStatus.idle() if configured else SyncStatus.not_configured())
