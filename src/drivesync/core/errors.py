"""Exceptions raised by the sync engine and its external tool wrapper."""

from typing import Optional


class SyncEngineError(Exception):
    """Base exception for sync engine errors."""
    pass


class NotConfiguredError(SyncEngineError):
    """Raised when a sync is requested before the account is configured."""
    pass


class NotLoggedInError(SyncEngineError):
    """Raised when no usable token is stored for the configured user."""
    pass


class DirectoryCreationError(SyncEngineError):
    """Raised when a local sync root cannot be created."""
    pass


class ToolInvocationError(SyncEngineError):
    """Raised when the rclone process cannot be started."""
    pass


class ToolExecutionError(SyncEngineError):
    """Raised when rclone ran but exited with a non-zero code."""

    def __init__(self, message: str, returncode: Optional[int] = None, is_conflict: bool = False):
        super().__init__(message)
        self.returncode = returncode
        self.is_conflict = is_conflict


class ObscureError(SyncEngineError):
    """Raised when the credential cannot be obscured; aborts the whole sync."""
    pass
