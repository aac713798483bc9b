"""Data types shared by the sync engine, the scheduler and the command surface."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SyncState(str, Enum):
    """High-level sync states."""
    NOT_CONFIGURED = "not_configured"
    IDLE = "idle"
    SYNCING = "syncing"
    CONFLICT = "conflict"
    ERROR = "error"


class SyncStatus(BaseModel):
    """Current sync status; ``message`` is only set for :attr:`SyncState.ERROR`."""

    model_config = ConfigDict(frozen=True)

    state: SyncState
    message: Optional[str] = None

    @classmethod
    def not_configured(cls) -> "SyncStatus":
        return cls(state=SyncState.NOT_CONFIGURED)

    @classmethod
    def idle(cls) -> "SyncStatus":
        return cls(state=SyncState.IDLE)

    @classmethod
    def syncing(cls) -> "SyncStatus":
        return cls(state=SyncState.SYNCING)

    @classmethod
    def conflict(cls) -> "SyncStatus":
        return cls(state=SyncState.CONFLICT)

    @classmethod
    def error(cls, message: str) -> "SyncStatus":
        return cls(state=SyncState.ERROR, message=message)


class ActivityStatus(str, Enum):
    """Outcome recorded in an activity entry."""
    SUCCESS = "success"
    ERROR = "error"


class ActivityEntry(BaseModel):
    """One immutable record in the activity log."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    action: str
    file_path: str = ""
    status: ActivityStatus
    details: Optional[str] = None


@dataclass(frozen=True)
class DirectorySyncTarget:
    """A remote WebDAV tree paired with a local directory."""

    name: str
    remote_url: str
    local_path: Path
    username: str

    @property
    def action(self) -> str:
        """Activity log action name for this target."""
        return f"sync_{self.name}"


@dataclass
class TargetResult:
    """Outcome of syncing a single target."""

    target: str
    success: bool
    error_message: Optional[str] = None
    is_conflict: bool = False
    first_run: bool = False
    duration: Optional[float] = None


@dataclass
class SyncReport:
    """Outcome of one ``sync_all`` call."""

    results: List[TargetResult] = field(default_factory=list)
    status: Optional[SyncStatus] = None
    skipped: bool = False

    @property
    def success(self) -> bool:
        """True when every target synced; a skipped run is not a success."""
        return not self.skipped and all(result.success for result in self.results)

    def to_dict(self) -> dict:
        return {
            "skipped": self.skipped,
            "success": self.success,
            "status": self.status.model_dump(mode="json") if self.status else None,
            "results": [
                {
                    "target": result.target,
                    "success": result.success,
                    "error_message": result.error_message,
                    "is_conflict": result.is_conflict,
                    "first_run": result.first_run,
                    "duration": result.duration,
                }
                for result in self.results
            ],
        }
