"""
Native directory watchers.

``NativeWatcher`` is the small interface the change event bridge depends
on; ``WatchdogWatcher`` implements it with the watchdog library, polling by
default so that network mounts and unusual filesystems are not missed.
"""

import logging
import os
import queue
import threading
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Tuple

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver, ObservedWatch
from watchdog.observers.polling import PollingObserver

from .events import ChangeType
from .registry import is_under, normalize_real_path

logger = logging.getLogger(__name__)

NativeEventHandler = Callable[[ChangeType, str], None]

# Tells the delivery thread to exit
_STOP = object()


class NativeWatcher(ABC):
    """
    A recursive directory watcher reporting (kind, real path) notifications.

    Implementations deliver notifications on their own thread, in the order
    the platform reports them.
    """

    def __init__(self) -> None:
        self._handler: Optional[NativeEventHandler] = None

    def set_handler(self, handler: Optional[NativeEventHandler]) -> None:
        """Install the single receiver of native notifications."""
        self._handler = handler

    def emit(self, kind: ChangeType, path: str) -> None:
        """Forward one notification to the installed handler."""
        handler = self._handler
        if handler is not None:
            handler(kind, path)

    @abstractmethod
    def add_target(self, path: str) -> None:
        """Start watching ``path`` (recursively for directories)."""
        pass

    @abstractmethod
    def remove_target(self, path: str) -> None:
        """Stop watching exactly ``path``. Unknown paths are ignored."""
        pass

    @abstractmethod
    def targets(self) -> List[str]:
        """Paths currently watched."""
        pass

    def start(self) -> None:
        """Begin delivering notifications."""
        pass

    def stop(self) -> None:
        """Stop delivering notifications and release native resources."""
        pass


class _TargetEventHandler(FileSystemEventHandler):
    """
    Translates watchdog events for one watch target into queued notifications.

    Runs on the observer thread, which holds the observer's lock, so it only
    enqueues. ``scope`` limits events to the target's subtree when the native
    watch covers more than the target (file targets and not-yet-existing
    targets).
    """

    def __init__(self, watcher: "WatchdogWatcher", target: str, scope: Optional[str] = None):
        super().__init__()
        self.watcher = watcher
        self.target = target
        self.scope = scope

    def on_created(self, event: FileSystemEvent) -> None:
        self._forward(ChangeType.CREATED, event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        # Directory mtime changes duplicate the child's own event
        if event.is_directory:
            return
        self._forward(ChangeType.CHANGED, event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._forward(ChangeType.DELETED, event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        self._forward(ChangeType.DELETED, event.src_path)
        self._forward(ChangeType.CREATED, event.dest_path)

    def _forward(self, kind: ChangeType, raw_path) -> None:
        path = normalize_real_path(os.fsdecode(raw_path))
        if self.scope is not None and not is_under(path, self.scope):
            return
        if self.watcher.owner_of(path) != self.target:
            return
        self.watcher.enqueue(kind, path)


def _nearest_existing(path: str) -> str:
    current = path
    while not os.path.isdir(current):
        parent = os.path.dirname(current)
        if parent == current:
            break
        current = parent
    return current


class WatchdogWatcher(NativeWatcher):
    """
    NativeWatcher backed by a watchdog observer.

    Directory targets are scheduled recursively. File targets are scheduled
    on their parent directory without recursion and filtered to the file.
    A target that does not exist yet is scheduled recursively on its nearest
    existing ancestor and filtered to its own subtree, so it reports once it
    appears. Targets needing the same native watch share it. When targets
    nest, each event is reported once, by the deepest target containing the
    path.

    Notifications are handed from the observer thread to a delivery thread
    through a queue; the installed handler always runs on the delivery
    thread, never while the observer's lock is held.

    Example:
        >>> watcher = WatchdogWatcher(use_polling=True, poll_interval=0.5)
        >>> watcher.set_handler(lambda kind, path: print(kind.name, path))
        >>> watcher.add_target("/tmp/proj")
        >>> watcher.start()
    """

    def __init__(self, use_polling: bool = True, poll_interval: float = 1.0):
        """
        Initialize the watcher.

        Args:
            use_polling: Poll for changes instead of using kernel notifications
            poll_interval: Seconds between polls (polling mode only)
        """
        super().__init__()
        self.use_polling = use_polling
        self.poll_interval = poll_interval
        self._observer: BaseObserver = (
            PollingObserver(timeout=poll_interval) if use_polling else Observer()
        )
        self._lock = threading.RLock()
        self._targets: Dict[str, Tuple[_TargetEventHandler, ObservedWatch]] = {}
        # Read without the lock from observer threads
        self._target_paths: Tuple[str, ...] = ()
        self._watch_refs: Dict[Tuple[str, bool], Tuple[ObservedWatch, int]] = {}
        self._events: "queue.Queue" = queue.Queue()
        self._delivery: Optional[threading.Thread] = None
        self._started = False
        self._stopped = False

    def add_target(self, path: str) -> None:
        target = normalize_real_path(path)
        with self._lock:
            if target in self._targets:
                return

            if os.path.isdir(target):
                key = (target, True)
                handler = _TargetEventHandler(self, target)
            elif os.path.lexists(target):
                key = (os.path.dirname(target), False)
                handler = _TargetEventHandler(self, target, scope=target)
            else:
                anchor = _nearest_existing(os.path.dirname(target))
                logger.info(f"{target} does not exist yet, watching {anchor} until it appears")
                key = (anchor, True)
                handler = _TargetEventHandler(self, target, scope=target)

            if key in self._watch_refs:
                watch, refs = self._watch_refs[key]
                self._observer.add_handler_for_watch(handler, watch)
                self._watch_refs[key] = (watch, refs + 1)
            else:
                try:
                    watch = self._observer.schedule(handler, key[0], recursive=key[1])
                except OSError as e:
                    logger.error(f"Failed to watch {target}: {e}")
                    return
                self._watch_refs[key] = (watch, 1)

            self._targets[target] = (handler, watch)
            self._target_paths = tuple(self._targets)
        logger.debug(f"Watching {target} ({'polling' if self.use_polling else 'native'})")

    def remove_target(self, path: str) -> None:
        target = normalize_real_path(path)
        with self._lock:
            entry = self._targets.pop(target, None)
            if entry is None:
                return
            self._target_paths = tuple(self._targets)
            handler, watch = entry
            key = (watch.path, watch.is_recursive)
            self._observer.remove_handler_for_watch(handler, watch)
            _, refs = self._watch_refs[key]
            if refs <= 1:
                del self._watch_refs[key]
                self._observer.unschedule(watch)
            else:
                self._watch_refs[key] = (watch, refs - 1)
        logger.debug(f"Stopped watching {target}")

    def targets(self) -> List[str]:
        with self._lock:
            return list(self._targets)

    def owner_of(self, path: str) -> Optional[str]:
        """Deepest current target containing ``path``."""
        owner = None
        for target in self._target_paths:
            if is_under(path, target) and (owner is None or len(target) > len(owner)):
                owner = target
        return owner

    # ========== Delivery ==========

    def enqueue(self, kind: ChangeType, path: str) -> None:
        """Queue one notification for the delivery thread. Never blocks."""
        self._events.put((kind, path))

    def _deliver(self) -> None:
        while True:
            item = self._events.get()
            if item is _STOP:
                return
            kind, path = item
            try:
                self.emit(kind, path)
            except Exception as e:
                logger.error(f"Error delivering {kind.name.lower()} {path}: {e}", exc_info=True)

    # ========== Lifecycle ==========

    def start(self) -> None:
        with self._lock:
            if self._started:
                return
            self._started = True
        self._delivery = threading.Thread(target=self._deliver, name="localfs-watch-delivery", daemon=True)
        self._delivery.start()
        self._observer.start()
        logger.debug("Watchdog observer started")

    def stop(self, timeout: float = 5.0) -> None:
        with self._lock:
            if not self._started or self._stopped:
                self._stopped = True
                return
            self._stopped = True
        self._observer.stop()
        self._observer.join(timeout)
        self._events.put(_STOP)
        if self._delivery is not None and self._delivery is not threading.current_thread():
            self._delivery.join(timeout)
        logger.debug("Watchdog observer stopped")

    @property
    def is_running(self) -> bool:
        return self._started and not self._stopped
