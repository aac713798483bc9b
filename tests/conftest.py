"""Shared fixtures: a fake rclone process factory and a configured account."""

import asyncio
from typing import Callable, Dict, List, Optional, Tuple
from unittest.mock import AsyncMock, MagicMock

import pytest

from drivesync.config import DriveConfig


class FakeRclone:
    """Stand-in for ``asyncio.create_subprocess_exec`` running rclone.

    ``bisync_results`` maps a local path to ``(returncode, stderr)``; paths
    not listed succeed. ``gate`` lets a test hold bisync runs open.
    """

    def __init__(
        self,
        bisync_results: Optional[Dict[str, Tuple[int, str]]] = None,
        obscure_returncode: int = 0,
        start_error: Optional[OSError] = None,
        on_bisync: Optional[Callable[[str], None]] = None,
        gate: Optional[asyncio.Event] = None
    ):
        self.bisync_results = bisync_results or {}
        self.obscure_returncode = obscure_returncode
        self.start_error = start_error
        self.on_bisync = on_bisync
        self.gate = gate
        self.calls: List[Tuple[List[str], Optional[dict]]] = []

    async def __call__(self, *args, stdout=None, stderr=None, env=None):
        args = list(args)
        self.calls.append((args, env))

        if self.start_error is not None:
            raise self.start_error

        proc = MagicMock()
        if args[1] == "obscure":
            proc.returncode = self.obscure_returncode
            proc.communicate = AsyncMock(return_value=(b"obscured-secret\n", b""))
            return proc

        local_path = args[3]
        if self.on_bisync is not None:
            self.on_bisync(local_path)

        returncode, error_text = self.bisync_results.get(local_path, (0, ""))
        proc.returncode = returncode

        async def communicate():
            if self.gate is not None:
                await self.gate.wait()
            return b"Bisync successful", error_text.encode()

        proc.communicate = AsyncMock(side_effect=communicate)
        return proc

    @property
    def bisync_calls(self) -> List[Tuple[List[str], Optional[dict]]]:
        return [call for call in self.calls if call[0][1] == "bisync"]

    @property
    def obscure_calls(self) -> List[Tuple[List[str], Optional[dict]]]:
        return [call for call in self.calls if call[0][1] == "obscure"]


@pytest.fixture
def drive_config(tmp_path):
    """A logged-in configuration whose sync roots do not exist yet."""
    return DriveConfig(
        server_url="https://docs.example.com/",
        user_email="user@example.com",
        tenant_id="tenant-1",
        personal_sync_path=tmp_path / "p",
        shared_sync_path=tmp_path / "s"
    )
