"""
Virtual filesystem operations.

``LocalFsProvider`` is the operation surface a host registers as the
backend for the ``localfs`` scheme. Every operation translates its
address(es), checks existence and overwrite preconditions itself so that
expected failures surface as specific errors, then performs the native
call through ``localfs.fileops``.
"""

import logging
import os
from typing import Iterable, List, Tuple, Union

from . import fileops
from .addressing import AddressLike, PathTranslator, VirtualAddress
from .bridge import ChangeEventBridge, ChangeListener
from .events import Subscription
from .exceptions import (
    EntryExistsError,
    EntryNotADirectoryError,
    EntryNotFoundError,
    ParentMissingError,
)
from .fileops import FileStat, FileType, catch_permission_error

logger = logging.getLogger(__name__)

Content = Union[bytes, bytearray, memoryview, str]


class LocalFsProvider:
    """
    File operations on virtual addresses, performed against the real filesystem.

    All I/O operations are coroutines; ``watch`` and ``on_did_change_file``
    are synchronous registrations on the change event bridge.

    Example:
        >>> provider = LocalFsProvider(translator, bridge)
        >>> await provider.write_file("localfs://h0/a.txt", b"hi", create=True, overwrite=False)
        >>> await provider.read_file("localfs://h0/a.txt")
        b'hi'
    """

    def __init__(
        self,
        translator: PathTranslator,
        bridge: ChangeEventBridge,
    ) -> None:
        self.translator = translator
        self.bridge = bridge

    # ========== Helpers ==========

    def _resolve(self, address: AddressLike) -> Tuple[VirtualAddress, str]:
        address = self.translator.coerce(address)
        return address, self.translator.to_real_path(address)

    async def _assert_exists(self, address: VirtualAddress, real_path: str) -> None:
        if not await fileops.exists(real_path):
            raise EntryNotFoundError(f"File not found: {address}", path=str(address))

    async def _assert_parent_exists(self, address: VirtualAddress, real_path: str) -> None:
        parent = os.path.dirname(real_path)
        if not await fileops.is_dir(parent):
            message = f"The parent dir does not exist: {parent} for {address}"
            logger.debug(message)
            raise ParentMissingError(message, parent=parent, path=str(address))

    # ========== Metadata ==========

    async def stat(self, address: AddressLike) -> FileStat:
        """
        Size, times and kind of the entry at ``address``.

        Raises:
            EntryNotFoundError: If nothing exists at the address
        """
        address, real_path = self._resolve(address)
        logger.debug(f"stat called: {address}")
        await self._assert_exists(address, real_path)
        async with catch_permission_error(real_path, "stat"):
            return await fileops.stat(real_path)

    async def read_directory(self, address: AddressLike) -> List[Tuple[str, FileType]]:
        """
        List a directory as (name, kind) pairs in native listing order.

        Raises:
            EntryNotFoundError: If the directory does not exist
            EntryNotADirectoryError: If the entry is not a directory
        """
        address, real_path = self._resolve(address)
        logger.debug(f"readDirectory called: {address}")
        await self._assert_exists(address, real_path)
        if not await fileops.is_dir(real_path):
            raise EntryNotADirectoryError(f"Not a directory: {address}", path=str(address))
        async with catch_permission_error(real_path, "readDirectory"):
            return await fileops.list_dir(real_path)

    # ========== Content ==========

    async def read_file(self, address: AddressLike) -> bytes:
        """
        Raw content of the file at ``address``.

        Raises:
            EntryNotFoundError: If the file does not exist
            NoPermissionsError: If the native read is denied
        """
        address, real_path = self._resolve(address)
        logger.debug(f"readFile called: {address}")
        await self._assert_exists(address, real_path)
        async with catch_permission_error(real_path, "readFile"):
            return await fileops.read_bytes(real_path)

    async def write_file(
        self,
        address: AddressLike,
        content: Content,
        create: bool,
        overwrite: bool,
    ) -> None:
        """
        Create or overwrite a file.

        ==========  ===============  =========================
        exists      flags            outcome
        ==========  ===============  =========================
        yes         overwrite=True   overwrite
        yes         overwrite=False  EntryExistsError
        no          create=True      create (parent must exist,
                                     else ParentMissingError)
        no          create=False     EntryNotFoundError
        ==========  ===============  =========================

        Args:
            address: Target file
            content: Bytes to write (``str`` is encoded as UTF-8)
            create: Allow creating a missing file
            overwrite: Allow replacing an existing file
        """
        address, real_path = self._resolve(address)
        logger.debug(f"writeFile called: {address}")
        data = content.encode("utf-8") if isinstance(content, str) else bytes(content)

        if await fileops.exists(real_path):
            if not overwrite:
                message = f"writeFile failed. The file exists: {address}"
                logger.debug(message)
                raise EntryExistsError(message, path=str(address))
        elif create:
            await self._assert_parent_exists(address, real_path)
        else:
            message = f"writeFile failed. The file does not exist: {address}"
            logger.debug(message)
            raise EntryNotFoundError(message, path=str(address))

        async with catch_permission_error(real_path, "writeFile"):
            await fileops.write_bytes(real_path, data)

    # ========== Structure ==========

    async def create_directory(self, address: AddressLike) -> None:
        """
        Create one directory.

        Raises:
            ParentMissingError: If the containing directory does not exist
            EntryExistsError: If something already exists at the address
        """
        address, real_path = self._resolve(address)
        logger.debug(f"createDirectory called: {address}")
        await self._assert_parent_exists(address, real_path)
        if await fileops.exists(real_path):
            raise EntryExistsError(f"createDirectory failed. The entry exists: {address}", path=str(address))
        async with catch_permission_error(real_path, "createDirectory"):
            await fileops.mkdir(real_path)

    async def delete(self, address: AddressLike, recursive: bool = False) -> None:
        """
        Remove a file or directory. Non-empty directories need ``recursive=True``.

        Raises:
            EntryNotFoundError: If nothing exists at the address
            EntryExistsError: If a non-empty directory is deleted without ``recursive``
            NoPermissionsError: If the native removal is denied
        """
        address, real_path = self._resolve(address)
        logger.debug(f"delete called: {address}")
        await self._assert_exists(address, real_path)
        async with catch_permission_error(real_path, "delete"):
            await fileops.remove(real_path, recursive=recursive)

    async def rename(self, source: AddressLike, target: AddressLike, overwrite: bool = False) -> None:
        """
        Move ``source`` to ``target``. Atomic where the native rename is.

        Raises:
            EntryNotFoundError: If the source does not exist
            ParentMissingError: If the target's directory does not exist
            EntryExistsError: If the target exists and ``overwrite`` is False
        """
        source, source_path = self._resolve(source)
        target, target_path = self._resolve(target)
        logger.debug(f"rename called: source: {source} target: {target}")
        await self._assert_exists(source, source_path)
        await self._assert_parent_exists(target, target_path)
        if await fileops.exists(target_path) and not overwrite:
            message = f"rename failed. A target file exists: {target}"
            logger.debug(message)
            raise EntryExistsError(message, path=str(target))
        async with catch_permission_error(target_path, "rename"):
            await fileops.rename(source_path, target_path, overwrite=overwrite)

    async def copy(self, source: AddressLike, target: AddressLike, overwrite: bool = False) -> None:
        """
        Copy ``source`` to ``target``, keeping the source. Not atomic.

        Raises:
            EntryNotFoundError: If the source does not exist
            ParentMissingError: If the target's directory does not exist
            EntryExistsError: If the target exists and ``overwrite`` is False
        """
        source, source_path = self._resolve(source)
        target, target_path = self._resolve(target)
        logger.debug(f"copy called: source: {source} target: {target}")
        await self._assert_exists(source, source_path)
        await self._assert_parent_exists(target, target_path)
        if await fileops.exists(target_path) and not overwrite:
            message = f"copy failed. The target file exists: {target}"
            logger.debug(message)
            raise EntryExistsError(message, path=str(target))
        async with catch_permission_error(target_path, "copy"):
            await fileops.copy(source_path, target_path, overwrite=overwrite)

    # ========== Change notification ==========

    def watch(
        self,
        address: AddressLike,
        recursive: bool = True,
        excludes: Iterable[str] = (),
    ) -> Subscription:
        """Watch ``address`` for changes. See ``ChangeEventBridge.watch``."""
        return self.bridge.watch(address, recursive=recursive, excludes=excludes)

    def on_did_change_file(self, listener: ChangeListener) -> Subscription:
        """Register a change listener. See ``ChangeEventBridge.on_change``."""
        return self.bridge.on_change(listener)
