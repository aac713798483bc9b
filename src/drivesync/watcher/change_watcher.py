"""Local filesystem watcher that coalesces events into a pending-changes flag."""

import queue
import threading
import time
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers.polling import PollingObserver

from ..utils.logging import get_logger


QueuedEvent = Tuple[float, FileSystemEvent]


class _QueueingHandler(FileSystemEventHandler):
    """Pushes every raw event onto the watcher's queue with its arrival time."""

    def __init__(self, events: "queue.Queue[QueuedEvent]"):
        super().__init__()
        self.events = events

    def on_any_event(self, event: FileSystemEvent) -> None:
        self.events.put((time.monotonic(), event))


class ChangeWatcher:
    """Watches directory trees recursively for local changes.

    A polling observer is used so changes are seen on network and FUSE
    mounts too, at the cost of up to ``poll_interval`` seconds of latency.
    """

    def __init__(self, poll_interval: float = 2.0):
        self.poll_interval = poll_interval
        self.logger = get_logger(self.__class__.__name__)

        self._lock = threading.Lock()
        self._observer: Optional[PollingObserver] = None
        self._events: Optional["queue.Queue[QueuedEvent]"] = None
        self._watched: List[Path] = []
        # Events arriving before this monotonic time are our own sync's writes
        self._ignore_until = 0.0

    @property
    def is_watching(self) -> bool:
        with self._lock:
            return self._observer is not None

    @property
    def watched_paths(self) -> List[Path]:
        with self._lock:
            return list(self._watched)

    def start(self, paths: Iterable[Path]) -> List[Path]:
        """Start watching the given directories; missing ones are skipped.

        Calling start while already watching restarts with the new paths.

        Returns:
            The paths actually being watched
        """
        self.stop()

        events: "queue.Queue[QueuedEvent]" = queue.Queue()
        handler = _QueueingHandler(events)
        observer = PollingObserver(timeout=self.poll_interval)

        watched = []
        for path in paths:
            path = Path(path)
            if not path.exists():
                self.logger.debug("Skipping missing directory", path=str(path))
                continue
            observer.schedule(handler, str(path), recursive=True)
            watched.append(path)
            self.logger.info("Watching directory", path=str(path))

        observer.start()

        with self._lock:
            self._observer = observer
            self._events = events
            self._watched = watched

        return watched

    def stop(self) -> None:
        """Stop watching and discard undelivered events. Safe to call twice."""
        with self._lock:
            observer = self._observer
            self._observer = None
            self._events = None
            self._watched = []

        if observer is not None:
            observer.stop()
            observer.join()
            self.logger.info("File watcher stopped")

    def has_changes(self) -> bool:
        """Return True if any change was seen since the last call.

        Non-blocking; drains every queued event so one burst of changes is
        reported once.
        """
        with self._lock:
            events = self._events
            ignore_until = self._ignore_until

        fresh = [event for seen_at, event in self._drain(events) if seen_at > ignore_until]
        if not fresh:
            return False

        self.logger.debug(
            "File change detected",
            event_type=fresh[0].event_type,
            path=fresh[0].src_path,
            events=len(fresh)
        )
        return True

    def discard_pending(self, settle_seconds: Optional[float] = None) -> None:
        """Forget changes made by a sync that just finished.

        Queued events are dropped, and so are events the observer reports
        within ``settle_seconds`` (two poll intervals by default), since a
        write made just before the sync returned shows up on a later poll.
        """
        settle = 2 * self.poll_interval if settle_seconds is None else settle_seconds
        with self._lock:
            self._ignore_until = time.monotonic() + settle
            events = self._events

        dropped = len(self._drain(events))
        if dropped:
            self.logger.debug("Discarded changes made by sync", events=dropped)

    @staticmethod
    def _drain(events: Optional["queue.Queue[QueuedEvent]"]) -> List[QueuedEvent]:
        drained: List[QueuedEvent] = []
        if events is None:
            return drained
        while True:
            try:
                drained.append(events.get_nowait())
            except queue.Empty:
                return drained
