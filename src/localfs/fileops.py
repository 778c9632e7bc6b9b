"""
Raw file operations.

Thin, stateless async wrappers over native file I/O. Each wrapper runs the
blocking call on a worker thread so callers on an event loop are never
blocked by the filesystem. No policy lives here: existence and overwrite
checks belong to ``localfs.provider``.
"""

import asyncio
import errno
import logging
import os
import shutil
import stat as stat_module
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, AsyncIterator, Dict, List, Tuple

from .exceptions import (
    EntryExistsError,
    EntryIsADirectoryError,
    EntryNotADirectoryError,
    EntryNotFoundError,
    FileSystemOperationError,
    NoPermissionsError,
    UnknownFsError,
)

logger = logging.getLogger(__name__)


class FileType(IntEnum):
    """Kind of a filesystem entry. Values follow the usual provider contract."""
    UNKNOWN = 0
    FILE = 1
    DIRECTORY = 2
    SYMBOLIC_LINK = 64


@dataclass(frozen=True)
class FileStat:
    """
    Metadata of one entry.

    Times are milliseconds since the epoch. ``ctime`` is the creation (birth)
    time where the platform reports it and the status-change time elsewhere.
    """
    type: FileType
    ctime: float
    mtime: float
    size: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.name.lower(),
            "ctime": self.ctime,
            "mtime": self.mtime,
            "size": self.size,
        }


# errno -> taxonomy member
_PERMISSION_ERRNOS = {errno.EACCES, errno.EPERM, errno.EROFS}
_EXISTS_ERRNOS = {errno.EEXIST, errno.ENOTEMPTY}


def classify_os_error(err: OSError, path: str, operation: str) -> FileSystemOperationError:
    """
    Map a native OSError to the localfs error taxonomy by its errno.

    Args:
        err: The native error
        path: Real path the operation was acting on
        operation: Operation name used in the message (e.g. 'writeFile')

    Returns:
        The classified error; ``UnknownFsError`` when no member fits
    """
    code = err.errno
    detail = err.strerror or str(err)

    if code in _PERMISSION_ERRNOS:
        return NoPermissionsError(
            f"{operation} failed. {errno.errorcode.get(code, code)}: {path}",
            errno_code=code,
            path=path,
        )
    if code == errno.ENOENT:
        return EntryNotFoundError(f"{operation} failed. No such file or directory: {path}", path=path)
    if code in _EXISTS_ERRNOS:
        return EntryExistsError(f"{operation} failed. The target exists: {path}", path=path)
    if code == errno.ENOTDIR:
        return EntryNotADirectoryError(f"{operation} failed. Not a directory: {path}", path=path)
    if code == errno.EISDIR:
        return EntryIsADirectoryError(f"{operation} failed. Is a directory: {path}", path=path)

    return UnknownFsError(
        f"{operation} unknown error {detail}: {path}",
        native_message=str(err),
        errno_code=code,
        path=path,
    )


@asynccontextmanager
async def catch_permission_error(path: str, operation: str) -> AsyncIterator[None]:
    """Reclassify native failures raised inside the block and log them."""
    try:
        yield
    except OSError as e:
        error = classify_os_error(e, path, operation)
        logger.error(str(error))
        raise error from e


def file_type_from_mode(mode: int) -> FileType:
    if stat_module.S_ISLNK(mode):
        return FileType.SYMBOLIC_LINK
    if stat_module.S_ISDIR(mode):
        return FileType.DIRECTORY
    if stat_module.S_ISREG(mode):
        return FileType.FILE
    return FileType.UNKNOWN


def _entry_type(entry: os.DirEntry) -> FileType:
    if entry.is_symlink():
        return FileType.SYMBOLIC_LINK
    if entry.is_dir(follow_symlinks=False):
        return FileType.DIRECTORY
    if entry.is_file(follow_symlinks=False):
        return FileType.FILE
    return FileType.UNKNOWN


# ========== Blocking implementations ==========

def _stat_sync(path: str) -> FileStat:
    link_info = os.lstat(path)
    kind = file_type_from_mode(link_info.st_mode)
    info = link_info
    if kind is FileType.SYMBOLIC_LINK:
        try:
            info = os.stat(path)
        except OSError:
            # Dangling link: report the link itself
            info = link_info

    created = getattr(info, "st_birthtime", None)
    if created is None:
        created = info.st_ctime
    return FileStat(
        type=kind,
        ctime=created * 1000.0,
        mtime=info.st_mtime * 1000.0,
        size=info.st_size,
    )


def _list_dir_sync(path: str) -> List[Tuple[str, FileType]]:
    with os.scandir(path) as entries:
        return [(entry.name, _entry_type(entry)) for entry in entries]


def _read_bytes_sync(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def _write_bytes_sync(path: str, content: bytes) -> None:
    with open(path, "wb") as f:
        f.write(content)


def _remove_sync(path: str, recursive: bool) -> None:
    if os.path.isdir(path) and not os.path.islink(path):
        if recursive:
            shutil.rmtree(path)
        else:
            os.rmdir(path)
    else:
        os.unlink(path)


def _rename_sync(source: str, target: str, overwrite: bool) -> None:
    if overwrite:
        os.replace(source, target)
    else:
        os.rename(source, target)


def _copy_sync(source: str, target: str, overwrite: bool) -> None:
    if os.path.isdir(source):
        if overwrite and os.path.lexists(target):
            _remove_sync(target, recursive=True)
        shutil.copytree(source, target, symlinks=True)
        return
    # Not atomic: read the whole source, then write the target
    _write_bytes_sync(target, _read_bytes_sync(source))


# ========== Async wrappers ==========

async def exists(path: str) -> bool:
    """True if an entry (including a dangling symlink) exists at ``path``."""
    return await asyncio.to_thread(os.path.lexists, path)


async def is_dir(path: str) -> bool:
    return await asyncio.to_thread(os.path.isdir, path)


async def stat(path: str) -> FileStat:
    return await asyncio.to_thread(_stat_sync, path)


async def list_dir(path: str) -> List[Tuple[str, FileType]]:
    """Directory entries as (name, type) pairs in native listing order."""
    return await asyncio.to_thread(_list_dir_sync, path)


async def read_bytes(path: str) -> bytes:
    return await asyncio.to_thread(_read_bytes_sync, path)


async def write_bytes(path: str, content: bytes) -> None:
    await asyncio.to_thread(_write_bytes_sync, path, bytes(content))


async def mkdir(path: str) -> None:
    await asyncio.to_thread(os.mkdir, path)


async def remove(path: str, recursive: bool = False) -> None:
    """Remove a file, a symlink, an empty directory, or (``recursive``) a tree."""
    await asyncio.to_thread(_remove_sync, path, recursive)


async def rename(source: str, target: str, overwrite: bool = False) -> None:
    await asyncio.to_thread(_rename_sync, source, target, overwrite)


async def copy(source: str, target: str, overwrite: bool = False) -> None:
    """Copy a file (read-then-write) or a directory tree."""
    await asyncio.to_thread(_copy_sync, source, target, overwrite)
