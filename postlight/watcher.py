"""Debounced content watching for Postlight.

A watchdog observer forwards raw filesystem events into a queue. A dedicated
debouncer thread drains that queue and, once no event has arrived for the
debounce window, puts a single ChangeNotification on the downstream queue.
Editors that write several times per save therefore cause one reload.

State machine: IDLE -> WATCHING -> (event) -> DEBOUNCING -> WATCHING.

Key classes:
- Debouncer: Coalesces bursts of raw events into one notification.
- ContentWatcher: Registers a watchdog observer on the content directory.
"""

from __future__ import annotations

import enum
import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .errors import WatchError
from .utils import is_editor_temp_file

logger = logging.getLogger(__name__)

RELEVANT_EVENT_TYPES = frozenset({"created", "modified", "deleted", "moved"})

_STOP = object()


class WatchState(enum.Enum):
    IDLE = "idle"
    WATCHING = "watching"
    DEBOUNCING = "debouncing"


@dataclass(frozen=True)
class ChangeNotification:
    """Emitted once per debounced burst.

    Attributes:
        paths: Paths touched during the burst, in first-seen order.
    """

    paths: tuple[str, ...] = field(default_factory=tuple)


class Debouncer:
    """Collapses bursts of events into single change notifications.

    Attributes:
        window: Quiet period in seconds that ends a burst.
        changes: Queue receiving ChangeNotification objects.
        state: Current WatchState.
    """

    def __init__(self, window: float, changes: queue.Queue):
        """Initialize the debouncer.

        Args:
            window: Debounce window in seconds.
            changes: Downstream queue for notifications.
        """
        self.window = window
        self.changes = changes
        self.state = WatchState.IDLE
        self._events: queue.Queue = queue.Queue()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self.state = WatchState.WATCHING
        self._thread = threading.Thread(target=self._run, name="postlight-debouncer", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        if self._thread is not None:
            self._events.put(_STOP)
            self._thread.join()
            self._thread = None
        self.state = WatchState.IDLE

    def push(self, path: str = "") -> None:
        """Record a raw event. Safe to call from any thread."""
        self._events.put(path)

    def _run(self) -> None:
        while True:
            item = self._events.get()
            if item is _STOP:
                return
            self.state = WatchState.DEBOUNCING
            paths = [item] if item else []
            deadline = time.monotonic() + self.window
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                try:
                    item = self._events.get(timeout=remaining)
                except queue.Empty:
                    break
                if item is _STOP:
                    self.state = WatchState.IDLE
                    return
                if item and item not in paths:
                    paths.append(item)
                deadline = time.monotonic() + self.window
            self.state = WatchState.WATCHING
            logger.debug("Debounced change: %s", paths)
            self.changes.put(ChangeNotification(tuple(paths)))


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, debouncer: Debouncer):
        super().__init__()
        self.debouncer = debouncer

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in RELEVANT_EVENT_TYPES:
            return
        paths = [event.src_path]
        dest = getattr(event, "dest_path", "")
        if dest:
            paths.append(dest)
        relevant = [p for p in map(_as_str, paths) if not is_editor_temp_file(Path(p))]
        for path in relevant:
            self.debouncer.push(path)


def _as_str(path) -> str:
    return path.decode() if isinstance(path, bytes) else str(path)


class ContentWatcher:
    """Watches a directory tree and emits debounced change notifications.

    Attributes:
        path: Directory being watched.
        changes: Queue receiving ChangeNotification objects.
        debouncer: The Debouncer fed by the observer.
    """

    def __init__(self, path: Path, changes: queue.Queue, debounce: float = 0.2):
        """Initialize the watcher.

        Args:
            path: Directory to watch recursively.
            changes: Downstream queue for notifications.
            debounce: Debounce window in seconds.
        """
        self.path = path
        self.changes = changes
        self.debouncer = Debouncer(debounce, changes)
        self._observer: Observer | None = None

    @property
    def state(self) -> WatchState:
        return self.debouncer.state

    def start(self) -> None:
        """Register the observer and start debouncing.

        Raises:
            WatchError: If the path is not a directory or cannot be watched.
        """
        if not self.path.is_dir():
            raise WatchError(f"Cannot watch {self.path}: not a directory")
        observer = Observer()
        try:
            observer.schedule(_ChangeHandler(self.debouncer), str(self.path), recursive=True)
            observer.start()
        except OSError as exc:
            raise WatchError(f"Cannot watch {self.path}: {exc}") from exc
        self._observer = observer
        self.debouncer.start()
        logger.info("Watching %s for changes", self.path)

    def stop(self) -> None:
        if self._observer:
            self._observer.stop()
            self._observer.join()
            self._observer = None
        self.debouncer.stop()
