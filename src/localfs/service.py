"""
LocalFS service: wires the registry, translator, watcher, bridge and provider.

This is the object a host application owns. It turns mount requests into
virtual root addresses and handles absolute addresses (``localfsabs:///dir``)
that arrive from outside, e.g. as a deep link.
"""

import logging
import os
from typing import Optional, Union

from .addressing import FILE_SCHEME, PathTranslator, VirtualAddress
from .bridge import ChangeEventBridge
from .config import LocalFsConfig
from .exceptions import InvalidAddressError
from .ignore import IgnorePolicy
from .provider import LocalFsProvider
from .registry import HostRegistry
from .storage import JsonFileStateStore, StateStore
from .watcher import NativeWatcher, WatchdogWatcher

logger = logging.getLogger(__name__)


class LocalFsService:
    """
    Composition root for one independent localfs instance.

    Every collaborator is created here or injected, so several services
    (each with its own registry and watcher) can coexist in one process.

    Example:
        >>> with LocalFsService(LocalFsConfig(state_path=tmp / "state.json")) as service:
        ...     root = service.mount("/tmp/proj")
        ...     str(root)
        'localfs://h0/'
    """

    def __init__(
        self,
        config: Optional[LocalFsConfig] = None,
        store: Optional[StateStore] = None,
        watcher: Optional[NativeWatcher] = None,
    ) -> None:
        """
        Initialize the service.

        Args:
            config: Configuration (if None, uses ``LocalFsConfig.from_env()``)
            store: Durable state (if None, a JSON file at ``config.state_path``)
            watcher: Native watcher (if None, a watchdog watcher per config)
        """
        self.config = config or LocalFsConfig.from_env()
        self.store = store if store is not None else JsonFileStateStore(self.config.state_path)

        self.registry = HostRegistry(
            self.store,
            state_key=self.config.state_key,
            host_prefix=self.config.host_prefix,
        )
        self.translator = PathTranslator(
            self.registry,
            scheme=self.config.scheme,
            abs_scheme=self.config.abs_scheme,
        )
        self.watcher = watcher or WatchdogWatcher(
            use_polling=self.config.use_polling,
            poll_interval=self.config.poll_interval,
        )
        self.bridge = ChangeEventBridge(
            self.translator,
            self.watcher,
            IgnorePolicy(self.config.ignored_segments),
        )
        self.provider = LocalFsProvider(self.translator, self.bridge)
        self._started = False

        logger.info(f"LocalFsService initialized with {len(self.registry)} mounted hosts")

    def mount(self, directory: Union[str, os.PathLike]) -> VirtualAddress:
        """
        Mount a real directory and return the root address of its host.

        Mounting the same directory again returns the same address.

        Raises:
            RegistryError: If ``directory`` is not absolute
        """
        host = self.registry.mount(directory)
        return self.translator.root_address(host)

    def handle_uri(self, uri: Union[str, VirtualAddress]) -> Optional[VirtualAddress]:
        """
        Handle an address received from outside the host application.

        Absolute addresses (``localfsabs:///abs/dir`` or ``file:///abs/dir``)
        become mount requests. Anything else is not handled.

        Returns:
            Root address of the mounted host, or None if the address is not absolute
        """
        try:
            address = self.translator.coerce(uri)
        except InvalidAddressError:
            logger.warning(f"Ignoring malformed address: {uri!r}")
            return None

        if address.scheme not in (self.config.abs_scheme, FILE_SCHEME):
            logger.debug(f"Not an absolute address, ignoring: {address}")
            return None

        directory = self.translator.to_real_path(address)
        logger.info(f"Mount requested from absolute address {address}")
        return self.mount(directory)

    def start(self) -> None:
        """Start the native watcher. Safe to call more than once."""
        if self._started:
            return
        self._started = True
        self.bridge.start()

    def close(self) -> None:
        """Dispose every subscription and stop the native watcher. Not restartable."""
        self.bridge.close()

    def __enter__(self) -> "LocalFsService":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
