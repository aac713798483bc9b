"""Wrapper around ``rclone bisync`` and ``rclone obscure``."""

import asyncio
import os
import time
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .activity import SyncStatusStore
from .errors import ObscureError, ToolExecutionError, ToolInvocationError
from .models import SyncStatus, TargetResult
from ..utils.logging import get_logger


INIT_MARKER_NAME = ".sync-init"

# rclone reads the settings of an on-the-fly ":webdav:" remote from these
WEBDAV_REMOTE = ":webdav:"
ENV_WEBDAV_URL = "RCLONE_WEBDAV_URL"
ENV_WEBDAV_USER = "RCLONE_WEBDAV_USER"
ENV_WEBDAV_PASS = "RCLONE_WEBDAV_PASS"


def is_conflict(message: str) -> bool:
    """Classify a failure message as a sync conflict.

    rclone has no structured conflict signal for bisync, so this is a
    substring match on its diagnostic output.
    """
    return "conflict" in message.lower()


def init_marker_path(local_path: Path) -> Path:
    return Path(local_path) / INIT_MARKER_NAME


class RcloneRunner:
    """Runs rclone as a subprocess for one directory pair at a time."""

    def __init__(
        self,
        status_store: SyncStatusStore,
        rclone_path: str = "rclone",
        timeout_seconds: Optional[float] = None,
        max_file_size_bytes: int = 0
    ):
        """Initialize the runner.

        Args:
            status_store: Shared status slot, set to conflict as soon as a
                conflict is reported
            rclone_path: rclone executable name or path
            timeout_seconds: Kill a bisync run after this long (None = wait)
            max_file_size_bytes: Skip larger files (0 = unlimited)
        """
        self.status_store = status_store
        self.rclone_path = rclone_path
        self.timeout_seconds = timeout_seconds
        self.max_file_size_bytes = max_file_size_bytes
        self.logger = get_logger(self.__class__.__name__)

    async def obscure(self, plaintext: str) -> str:
        """Convert a secret into rclone's obscured form.

        Raises:
            ObscureError: If rclone cannot be started or exits non-zero
        """
        try:
            returncode, stdout, stderr = await self._run([self.rclone_path, "obscure", plaintext])
        except ToolInvocationError as e:
            raise ObscureError(f"Failed to obscure password: {e}")

        if returncode != 0:
            self.logger.error("rclone obscure failed", returncode=returncode, stderr=stderr.strip())
            raise ObscureError("Failed to obscure password")

        return stdout.rstrip()

    def build_bisync_args(self, local_path: Path, first_run: bool) -> List[str]:
        """Build the bisync command line; credentials never appear in it."""
        args = [
            self.rclone_path,
            "bisync",
            WEBDAV_REMOTE,
            str(local_path),
            "--create-empty-src-dirs",
            "--resilient",
            "--conflict-resolve=newer",
            "--verbose",
        ]

        if self.max_file_size_bytes > 0:
            args.append(f"--max-size={self.max_file_size_bytes}B")

        args.append("--resync" if first_run else "--recover")
        return args

    def build_env(self, remote_url: str, username: str, obscured_password: str) -> Dict[str, str]:
        env = os.environ.copy()
        env[ENV_WEBDAV_URL] = remote_url
        env[ENV_WEBDAV_USER] = username
        env[ENV_WEBDAV_PASS] = obscured_password
        return env

    async def run_bisync(
        self,
        target: str,
        remote_url: str,
        local_path: Path,
        username: str,
        obscured_password: str
    ) -> TargetResult:
        """Run one bidirectional sync between ``remote_url`` and ``local_path``.

        The first successful run for a directory is a full ``--resync``; the
        marker file written afterwards switches later runs to ``--recover``.

        Returns:
            TargetResult; failures are reported in it, never raised
        """
        local_path = Path(local_path)
        marker = init_marker_path(local_path)
        first_run = not marker.exists()
        start_time = time.monotonic()

        result = TargetResult(target=target, success=False, first_run=first_run)

        self.logger.info(
            "Running rclone bisync",
            target=target,
            remote_url=remote_url,
            local_path=str(local_path),
            first_run=first_run
        )

        try:
            await self._bisync(local_path, first_run, remote_url, username, obscured_password)
            result.success = True
        except ToolExecutionError as e:
            result.error_message = str(e)
            result.is_conflict = e.is_conflict
            if e.is_conflict:
                self.status_store.set(SyncStatus.conflict())
        except ToolInvocationError as e:
            result.error_message = str(e)
        finally:
            result.duration = time.monotonic() - start_time

        if result.success and first_run:
            self._write_marker(marker)

        if not result.success:
            self.logger.error(
                "rclone bisync failed",
                target=target,
                is_conflict=result.is_conflict,
                error=result.error_message
            )

        return result

    async def _bisync(
        self,
        local_path: Path,
        first_run: bool,
        remote_url: str,
        username: str,
        obscured_password: str
    ) -> None:
        args = self.build_bisync_args(local_path, first_run)
        env = self.build_env(remote_url, username, obscured_password)

        returncode, stdout, stderr = await self._run(args, env=env, timeout=self.timeout_seconds)

        self.logger.debug("rclone stdout", output=stdout)
        if stderr:
            self.logger.warning("rclone stderr", output=stderr)

        if returncode != 0:
            message = stderr if stderr else f"rclone exited with code {returncode}"
            raise ToolExecutionError(message, returncode=returncode, is_conflict=is_conflict(message))

    def _write_marker(self, marker: Path) -> None:
        try:
            marker.write_text("initialized", encoding="utf-8")
        except OSError as e:
            # Next run repeats the resync, which is safe
            self.logger.warning("Failed to write sync init marker", marker=str(marker), error=str(e))

    async def _run(
        self,
        args: List[str],
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None
    ) -> Tuple[int, str, str]:
        """Run a command to completion and return (returncode, stdout, stderr)."""
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env
            )
        except OSError as e:
            raise ToolInvocationError(f"Failed to run rclone: {e}")

        try:
            if timeout:
                stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
            else:
                stdout, stderr = await proc.communicate()
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise ToolExecutionError(f"rclone timed out after {timeout:g} seconds")

        return (
            proc.returncode,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )
