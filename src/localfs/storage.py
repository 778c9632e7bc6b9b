"""
Durable key/value state for localfs.

The host registry persists its mappings through a ``StateStore``. Two
backends are provided:
- JsonFileStateStore: a single JSON document on disk, rewritten atomically
- MemoryStateStore: an in-process dictionary for tests and ephemeral use
"""

import json
import logging
import os
import stat
import tempfile
from abc import ABC, abstractmethod
from copy import deepcopy
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional

from .exceptions import StateStoreError

logger = logging.getLogger(__name__)


class StateStore(ABC):
    """Abstract base class for durable key/value state."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the value stored under ``key`` or ``default``."""
        pass

    @abstractmethod
    def update(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``. Must be durable when it returns."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key`` if present."""
        pass

    @abstractmethod
    def keys(self) -> List[str]:
        """List all stored keys."""
        pass


class MemoryStateStore(StateStore):
    """In-memory state store. Values are deep-copied in and out."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = deepcopy(initial) if initial else {}
        self._lock = Lock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            if key not in self._data:
                return default
            return deepcopy(self._data[key])

    def update(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = deepcopy(value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._data)


class JsonFileStateStore(StateStore):
    """
    File-based state store holding every key in one JSON document.

    Writes go to a temporary file in the same directory which then replaces
    the store file, so a crash mid-write leaves the previous state intact.
    """

    def __init__(self, path: Path):
        """
        Initialize file state store.

        Args:
            path: Location of the JSON document (``~`` is expanded)
        """
        self.path = Path(path).expanduser()
        self._lock = Lock()
        self._data: Dict[str, Any] = self._load()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            if key not in self._data:
                return default
            return deepcopy(self._data[key])

    def update(self, key: str, value: Any) -> None:
        with self._lock:
            data = dict(self._data)
            data[key] = deepcopy(value)
            self._write(data)
            self._data = data

    def delete(self, key: str) -> None:
        with self._lock:
            if key not in self._data:
                return
            data = dict(self._data)
            del data[key]
            self._write(data)
            self._data = data

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._data)

    def _load(self) -> Dict[str, Any]:
        """Load the store from disk. Missing or corrupt files yield an empty store."""
        if not self.path.exists():
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse state store {self.path}: {e}")
            return {}
        except OSError as e:
            logger.warning(f"Failed to read state store {self.path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Ignoring state store {self.path}: expected a JSON object")
            return {}

        logger.debug(f"Loaded {len(data)} keys from {self.path}")
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        """Atomically replace the store file with ``data``."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)
                    f.flush()
                    os.fsync(f.fileno())
                os.chmod(tmp_name, stat.S_IRUSR | stat.S_IWUSR)
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            logger.error(f"Failed to save state store {self.path}: {e}")
            raise StateStoreError(
                f"Failed to save state to {self.path}: {e}",
                path=str(self.path),
            ) from e

        logger.debug(f"Saved state store to {self.path}")
