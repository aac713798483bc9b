"""Core sync orchestration package."""

from .activity import ActivityLog, SyncStatusStore, ACTIVITY_LOG_CAPACITY
from .errors import (
    SyncEngineError,
    NotConfiguredError,
    NotLoggedInError,
    DirectoryCreationError,
    ToolInvocationError,
    ToolExecutionError,
    ObscureError
)
from .models import (
    SyncState,
    SyncStatus,
    ActivityStatus,
    ActivityEntry,
    DirectorySyncTarget,
    TargetResult,
    SyncReport
)
from .rclone import RcloneRunner, INIT_MARKER_NAME, is_conflict
from .sync_engine import SyncEngine, aggregate_status, build_targets

__all__ = [
    "ActivityLog",
    "SyncStatusStore",
    "ACTIVITY_LOG_CAPACITY",
    "SyncEngineError",
    "NotConfiguredError",
    "NotLoggedInError",
    "DirectoryCreationError",
    "ToolInvocationError",
    "ToolExecutionError",
    "ObscureError",
    "SyncState",
    "SyncStatus",
    "ActivityStatus",
    "ActivityEntry",
    "DirectorySyncTarget",
    "TargetResult",
    "SyncReport",
    "RcloneRunner",
    "INIT_MARKER_NAME",
    "is_conflict",
    "SyncEngine",
    "aggregate_status",
    "build_targets"
]
