"""Change events and disposable subscription handles."""

import logging
import threading
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Optional

from .addressing import VirtualAddress

logger = logging.getLogger(__name__)


class ChangeType(IntEnum):
    """Kind of a change notification. Values follow the usual provider contract."""
    CHANGED = 1
    CREATED = 2
    DELETED = 3


@dataclass(frozen=True)
class FileChangeEvent:
    """One normalized change, addressed virtually."""
    type: ChangeType
    address: VirtualAddress

    def __str__(self) -> str:
        return f"{self.type.name.lower()} {self.address}"


class Subscription:
    """
    Handle returned by ``watch`` and ``on_change``.

    ``dispose()`` runs the release action at most once, so disposing twice
    (or from several threads) is safe. Also usable as a context manager.
    """

    def __init__(self, release: Optional[Callable[[], None]] = None, description: str = ""):
        self._release = release
        self._lock = threading.Lock()
        self._disposed = False
        self.description = description

    @classmethod
    def noop(cls, description: str = "") -> "Subscription":
        """A subscription whose release does nothing."""
        return cls(None, description)

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        with self._lock:
            if self._disposed:
                return
            self._disposed = True
            release, self._release = self._release, None
        if release is not None:
            release()
            logger.debug(f"Disposed subscription {self.description}")

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "active"
        return f"Subscription({self.description!r}, {state})"
