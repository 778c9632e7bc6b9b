"""
Host registry: the set of (host id, base directory) mappings.

A host id is the authority part of a virtual address (``localfs://h0/...``)
and names exactly one mounted real directory. Mappings are created on
demand, never mutated, and persisted through a ``StateStore`` so that
addresses handed out before a restart keep resolving afterwards.
"""

import logging
import os
import re
import threading
from typing import Any, Iterable, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .exceptions import RegistryError
from .storage import StateStore

logger = logging.getLogger(__name__)


def normalize_real_path(path: Union[str, os.PathLike]) -> str:
    """Collapse redundant separators and ``.``/``..`` segments of a real path."""
    return os.path.normpath(os.fspath(path))


def is_under(path: str, base_dir: str) -> bool:
    """
    Check whether ``path`` equals ``base_dir`` or lies below it.

    The comparison is made at segment boundaries, so ``/a/bc`` is not under
    ``/a/b``. Both arguments must already be normalized.
    """
    if path == base_dir:
        return True
    return path.startswith(base_dir.rstrip(os.sep) + os.sep)


class HostMapping(BaseModel):
    """An immutable (host id, base directory) pair."""

    model_config = ConfigDict(frozen=True)

    host: str
    base_dir: str

    @field_validator("host")
    @classmethod
    def validate_host(cls, value: str) -> str:
        if not value or "/" in value or ":" in value:
            raise ValueError(f"Invalid host id: {value!r}")
        return value

    @field_validator("base_dir")
    @classmethod
    def validate_base_dir(cls, value: str) -> str:
        if not os.path.isabs(value):
            raise ValueError(f"Base directory must be absolute: {value!r}")
        return normalize_real_path(value)


class HostRegistry:
    """
    Registry of mounted directories keyed by host id.

    Lookups read an immutable tuple that ``mount`` replaces wholesale, so
    readers never need the lock; writers are serialized by it.

    Example:
        >>> registry = HostRegistry(MemoryStateStore())
        >>> registry.mount("/tmp/proj")
        'h0'
        >>> registry.resolve_by_path("/tmp/proj/src/main.py").host
        'h0'
    """

    def __init__(
        self,
        store: StateStore,
        state_key: str = "localfs.hostBaseDirPairs",
        host_prefix: str = "h",
    ) -> None:
        """
        Initialize the registry and load persisted mappings.

        Args:
            store: Durable key/value store holding the mapping set
            state_key: Key of the mapping set inside ``store``
            host_prefix: Prefix of allocated host ids
        """
        self._store = store
        self._state_key = state_key
        self._host_prefix = host_prefix
        self._lock = threading.RLock()
        self._host_id_pattern = re.compile(rf"^{re.escape(host_prefix)}(\d+)$")

        mappings, next_id = self._load()
        self._mappings: Tuple[HostMapping, ...] = tuple(mappings)
        self._next_id = next_id

        logger.debug(f"HostRegistry loaded {len(self._mappings)} mappings (next id {self._next_id})")

    # ========== Mutations ==========

    def mount(self, base_directory: Union[str, os.PathLike]) -> str:
        """
        Assign a host id to ``base_directory``, reusing an existing one if mounted.

        The updated mapping set is persisted before this returns.

        Args:
            base_directory: Absolute path of the real directory to mount

        Returns:
            The host id naming the directory

        Raises:
            RegistryError: If ``base_directory`` is not an absolute path
        """
        raw = os.fspath(base_directory)
        if not raw or not os.path.isabs(raw):
            raise RegistryError(
                f"Mount directory must be an absolute path: {raw!r}",
                path=raw,
                suggestion="Resolve the directory with os.path.abspath() before mounting.",
            )
        base_dir = normalize_real_path(raw)

        with self._lock:
            for mapping in self._mappings:
                if mapping.base_dir == base_dir:
                    logger.debug(f"Directory already mounted as {mapping.host}: {base_dir}")
                    return mapping.host

            for mapping in self._mappings:
                if is_under(base_dir, mapping.base_dir) or is_under(mapping.base_dir, base_dir):
                    logger.warning(
                        f"Mount {base_dir} overlaps {mapping.base_dir} ({mapping.host}); "
                        f"paths resolve to the longest matching base directory"
                    )

            host = self._allocate_host_id()
            mapping = HostMapping(host=host, base_dir=base_dir)
            mappings = self._mappings + (mapping,)
            self._persist(mappings, self._next_id)
            self._mappings = mappings

        logger.info(f"Mounted {base_dir} as host {host}")
        return host

    def reset(self) -> None:
        """Remove every mapping. Host ids already handed out are not reused."""
        with self._lock:
            self._persist((), self._next_id)
            self._mappings = ()
        logger.info("Host registry reset")

    # ========== Lookups ==========

    def resolve_by_host(self, host: str) -> Optional[str]:
        """Return the base directory mounted as ``host``, or None."""
        for mapping in self._mappings:
            if mapping.host == host:
                return mapping.base_dir
        return None

    def resolve_by_path(self, real_path: Union[str, os.PathLike]) -> Optional[HostMapping]:
        """
        Find the mapping whose base directory is the longest prefix of ``real_path``.

        Args:
            real_path: An absolute real path

        Returns:
            The best matching HostMapping, or None if no mount covers the path
        """
        path = normalize_real_path(real_path)
        best: Optional[HostMapping] = None
        for mapping in self._mappings:
            if is_under(path, mapping.base_dir):
                if best is None or len(mapping.base_dir) > len(best.base_dir):
                    best = mapping
        return best

    def mappings(self) -> List[HostMapping]:
        """Snapshot of all mappings in mount order."""
        return list(self._mappings)

    def __len__(self) -> int:
        return len(self._mappings)

    def __contains__(self, host: object) -> bool:
        return any(mapping.host == host for mapping in self._mappings)

    # ========== Persistence ==========

    def _allocate_host_id(self) -> str:
        host = f"{self._host_prefix}{self._next_id}"
        self._next_id += 1
        return host

    def _persist(self, mappings: Iterable[HostMapping], next_id: int) -> None:
        self._store.update(
            self._state_key,
            {
                "next_id": next_id,
                "hosts": [mapping.model_dump() for mapping in mappings],
            },
        )

    def _load(self) -> Tuple[List[HostMapping], int]:
        """
        Read mappings from the store.

        Accepts either ``{"next_id": n, "hosts": [...]}`` or a bare list of
        pairs, each a ``{"host", "base_dir"}`` object or a two-item
        ``[host, base_dir]`` list. Malformed and duplicate entries are
        skipped with a warning.
        """
        raw: Any = self._store.get(self._state_key)
        if raw is None:
            return [], 0

        stored_next_id = 0
        if isinstance(raw, dict):
            entries = raw.get("hosts", [])
            try:
                stored_next_id = int(raw.get("next_id", 0))
            except (TypeError, ValueError):
                logger.warning(f"Ignoring invalid next_id in stored host mappings: {raw.get('next_id')!r}")
        elif isinstance(raw, list):
            entries = raw
        else:
            logger.warning(f"Ignoring stored host mappings of unexpected type {type(raw).__name__}")
            return [], 0

        mappings: List[HostMapping] = []
        seen_hosts = set()
        seen_dirs = set()
        for entry in entries if isinstance(entries, list) else []:
            if isinstance(entry, (list, tuple)) and len(entry) == 2:
                entry = {"host": entry[0], "base_dir": entry[1]}
            try:
                mapping = HostMapping.model_validate(entry)
            except ValidationError as e:
                logger.warning(f"Skipping invalid stored host mapping {entry!r}: {e}")
                continue
            if mapping.host in seen_hosts or mapping.base_dir in seen_dirs:
                logger.warning(f"Skipping duplicate stored host mapping {entry!r}")
                continue
            seen_hosts.add(mapping.host)
            seen_dirs.add(mapping.base_dir)
            mappings.append(mapping)

        next_id = stored_next_id
        for mapping in mappings:
            match = self._host_id_pattern.match(mapping.host)
            if match:
                next_id = max(next_id, int(match.group(1)) + 1)

        return mappings, next_id
