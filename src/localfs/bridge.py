"""
Change event bridge.

Receives raw (kind, real path) notifications from a ``NativeWatcher``,
drops ignored and unmounted paths, translates the rest to virtual
addresses and fans each event out to every registered listener.
"""

import itertools
import logging
import threading
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from .addressing import AddressLike, PathTranslator
from .events import ChangeType, FileChangeEvent, Subscription
from .exceptions import PathNotMountedError
from .ignore import IgnorePolicy
from .watcher import NativeWatcher

logger = logging.getLogger(__name__)

ChangeListener = Callable[[FileChangeEvent], None]


class ChangeEventBridge:
    """
    Observer registry between one native watcher and many listeners.

    Watch targets are tracked per real path as a set of registration tokens:
    the native watcher is told about a path once and released when the last
    live registration for that exact path is disposed. Tokens dropped by
    ``close`` make later disposals of older subscriptions no-ops.

    Listeners are kept in a copy-on-write tuple so a delivery pass iterates a
    stable snapshot while other threads register or unregister.
    """

    def __init__(
        self,
        translator: PathTranslator,
        watcher: NativeWatcher,
        ignore_policy: Optional[IgnorePolicy] = None,
    ) -> None:
        self.translator = translator
        self.watcher = watcher
        self.ignore_policy = ignore_policy or IgnorePolicy()

        self._listeners_lock = threading.Lock()
        self._listeners: Dict[int, ChangeListener] = {}
        self._listener_snapshot: Tuple[ChangeListener, ...] = ()
        self._handle_ids = itertools.count(1)

        self._watch_lock = threading.RLock()
        self._watch_refs: Dict[str, Set[int]] = {}
        self._watch_tokens = itertools.count(1)

        self.watcher.set_handler(self.dispatch)

    # ========== Watch targets ==========

    def watch(
        self,
        address: AddressLike,
        recursive: bool = True,
        excludes: Iterable[str] = (),
    ) -> Subscription:
        """
        Start watching the real path behind ``address``.

        Paths matching the ignore policy are accepted but never registered,
        so no events ever fire for them.

        Args:
            address: Virtual address to watch
            recursive: Accepted for contract compatibility; watching is always recursive
            excludes: Accepted for contract compatibility; not applied

        Returns:
            Subscription whose disposal releases exactly this path

        Raises:
            AddressNotFoundError: If the address cannot be translated
        """
        address = self.translator.coerce(address)
        logger.debug(f"watch called: {address}")
        excludes = list(excludes)
        if not recursive or excludes:
            logger.debug(f"watch options ignored: recursive={recursive} excludes={excludes}")

        real_path = self.translator.to_real_path(address)
        if self.ignore_policy.matches(real_path):
            logger.debug(f"watch ignored: {real_path}")
            return Subscription.noop(f"ignored watch {address}")

        with self._watch_lock:
            token = next(self._watch_tokens)
            tokens = self._watch_refs.setdefault(real_path, set())
            tokens.add(token)
            if len(tokens) == 1:
                self.watcher.add_target(real_path)

        return Subscription(lambda: self._release_watch(real_path, token), description=f"watch {address}")

    def _release_watch(self, real_path: str, token: int) -> None:
        with self._watch_lock:
            tokens = self._watch_refs.get(real_path)
            if tokens is None or token not in tokens:
                return
            tokens.discard(token)
            if not tokens:
                del self._watch_refs[real_path]
                self.watcher.remove_target(real_path)

    def watched_paths(self) -> List[str]:
        """Real paths with at least one live watch subscription."""
        with self._watch_lock:
            return sorted(self._watch_refs)

    # ========== Listeners ==========

    def on_change(self, listener: ChangeListener) -> Subscription:
        """
        Register ``listener`` for every future change event.

        Returns:
            Subscription whose disposal unregisters the listener (idempotent)
        """
        with self._listeners_lock:
            handle = next(self._handle_ids)
            self._listeners[handle] = listener
            self._listener_snapshot = tuple(self._listeners.values())
        logger.debug(f"Registered change listener #{handle}")
        return Subscription(lambda: self._remove_listener(handle), description=f"listener #{handle}")

    def _remove_listener(self, handle: int) -> None:
        with self._listeners_lock:
            if self._listeners.pop(handle, None) is None:
                return
            self._listener_snapshot = tuple(self._listeners.values())

    def listener_count(self) -> int:
        return len(self._listener_snapshot)

    # ========== Delivery ==========

    def dispatch(self, kind: ChangeType, real_path: str) -> None:
        """
        Deliver one native notification to every listener.

        Ignored paths and paths outside every mount are dropped silently;
        a failing listener is logged and does not affect the others.
        """
        if self.ignore_policy.matches(real_path):
            logger.debug(f"{kind.name.lower()} ignored: {real_path}")
            return

        try:
            address = self.translator.to_virtual_address(real_path)
        except PathNotMountedError:
            logger.debug(f"{kind.name.lower()} dropped, not mounted: {real_path}")
            return

        event = FileChangeEvent(kind, address)
        logger.debug(f"{kind.name.lower()} detected: {real_path}")

        for listener in self._listener_snapshot:
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Error in change listener {listener!r} for {event}: {e}", exc_info=True)

    # ========== Lifecycle ==========

    def start(self) -> None:
        self.watcher.start()

    def close(self) -> None:
        """Drop every listener and watch target, then stop the native watcher."""
        with self._listeners_lock:
            self._listeners.clear()
            self._listener_snapshot = ()
        with self._watch_lock:
            paths = list(self._watch_refs)
            self._watch_refs.clear()
            for path in paths:
                self.watcher.remove_target(path)
        self.watcher.stop()
        self.watcher.set_handler(None)
