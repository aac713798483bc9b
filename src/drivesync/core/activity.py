"""Lock-protected status slot and bounded activity log."""

import threading
from collections import deque
from typing import List, Optional

from .models import ActivityEntry, ActivityStatus, SyncStatus


ACTIVITY_LOG_CAPACITY = 1000


class SyncStatusStore:
    """Single mutable slot holding the current :class:`SyncStatus`."""

    def __init__(self, initial: Optional[SyncStatus] = None):
        self._lock = threading.Lock()
        self._status = initial or SyncStatus.not_configured()

    def get(self) -> SyncStatus:
        with self._lock:
            return self._status

    def set(self, status: SyncStatus) -> None:
        with self._lock:
            self._status = status


class ActivityLog:
    """Append-only FIFO of sync outcomes.

    Once ``capacity`` entries are held, every append evicts the oldest entry,
    so the log always contains the most recent entries in call order.
    """

    def __init__(self, capacity: int = ACTIVITY_LOG_CAPACITY):
        if capacity < 1:
            raise ValueError("Activity log capacity must be at least 1")
        self.capacity = capacity
        self._lock = threading.Lock()
        self._entries: deque = deque(maxlen=capacity)

    def append(self, entry: ActivityEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def record(
        self,
        action: str,
        status: ActivityStatus,
        file_path: str = "",
        details: Optional[str] = None
    ) -> ActivityEntry:
        """Create an entry stamped with the current time and append it."""
        entry = ActivityEntry(action=action, file_path=file_path, status=status, details=details)
        self.append(entry)
        return entry

    def recent(self, limit: int) -> List[ActivityEntry]:
        """Return up to ``limit`` most recent entries, oldest first."""
        if limit <= 0:
            return []
        with self._lock:
            entries = list(self._entries)
        return entries[-limit:]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
