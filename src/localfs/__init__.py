"""
LocalFS - local directories behind stable virtual addresses

Mounts real directories under ``localfs://<host>/<path>`` addresses,
performs file operations on them, and relays native change notifications
as a normalized event stream keyed by virtual address.

License: Apache-2.0
"""

__version__ = "0.1.0"

from .addressing import PathTranslator, VirtualAddress
from .bridge import ChangeEventBridge
from .config import LocalFsConfig
from .events import ChangeType, FileChangeEvent, Subscription
from .exceptions import (
    AddressNotFoundError,
    ConfigurationError,
    EntryExistsError,
    EntryIsADirectoryError,
    EntryNotADirectoryError,
    EntryNotFoundError,
    FileSystemOperationError,
    InvalidAddressError,
    LocalFsError,
    NoPermissionsError,
    ParentMissingError,
    PathNotMountedError,
    PathTraversalError,
    RegistryError,
    StateStoreError,
    UnknownFsError,
    UnknownHostError,
)
from .fileops import FileStat, FileType
from .ignore import IgnorePolicy
from .provider import LocalFsProvider
from .registry import HostMapping, HostRegistry
from .service import LocalFsService
from .storage import JsonFileStateStore, MemoryStateStore, StateStore
from .watcher import NativeWatcher, WatchdogWatcher

__all__ = [
    # Version
    "__version__",
    # Service
    "LocalFsService",
    "LocalFsConfig",
    # Components
    "HostRegistry",
    "HostMapping",
    "PathTranslator",
    "VirtualAddress",
    "ChangeEventBridge",
    "LocalFsProvider",
    "IgnorePolicy",
    "NativeWatcher",
    "WatchdogWatcher",
    # State
    "StateStore",
    "JsonFileStateStore",
    "MemoryStateStore",
    # Data models
    "FileStat",
    "FileType",
    "ChangeType",
    "FileChangeEvent",
    "Subscription",
    # Errors
    "LocalFsError",
    "FileSystemOperationError",
    "EntryNotFoundError",
    "EntryExistsError",
    "ParentMissingError",
    "NoPermissionsError",
    "EntryNotADirectoryError",
    "EntryIsADirectoryError",
    "UnknownFsError",
    "AddressNotFoundError",
    "UnknownHostError",
    "PathNotMountedError",
    "InvalidAddressError",
    "PathTraversalError",
    "RegistryError",
    "StateStoreError",
    "ConfigurationError",
]
