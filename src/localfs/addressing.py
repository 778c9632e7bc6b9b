"""
Virtual addresses and their translation to real paths.

Caller-facing addresses are always ``scheme://host/posix/path``; the host
names a mounted directory in the ``HostRegistry``. The translator converts
in both directions and never lets a virtual path climb above its base
directory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union
from urllib.parse import quote, unquote, urlsplit

from .exceptions import (
    InvalidAddressError,
    PathNotMountedError,
    PathTraversalError,
    UnknownHostError,
)
from .registry import HostRegistry, is_under, normalize_real_path

FILE_SCHEME = "file"

AddressLike = Union[str, "VirtualAddress"]


def normalize_virtual_path(path: str) -> str:
    """
    Normalize a virtual POSIX path to canonical absolute form.

    Empty and ``.`` segments are dropped and ``..`` pops the previous
    segment.

    Raises:
        PathTraversalError: If ``..`` would climb above the root
    """
    normalized: List[str] = []
    for part in path.split("/"):
        if part in ("", "."):
            continue
        if part == "..":
            if not normalized:
                raise PathTraversalError(f"Path escapes its base directory: {path}", path=path)
            normalized.pop()
            continue
        normalized.append(part)
    return "/" + "/".join(normalized)


@dataclass(frozen=True)
class VirtualAddress:
    """
    A (scheme, host, path) triple addressing one entry of a mounted directory.

    Attributes:
        scheme: Address scheme (e.g. 'localfs')
        host: Host id of the mounted directory (empty for absolute schemes)
        path: Canonical absolute POSIX path inside the mount (e.g. '/src/a.txt')
    """

    scheme: str
    host: str
    path: str = "/"

    def __post_init__(self):
        object.__setattr__(self, "path", normalize_virtual_path(self.path))

    @classmethod
    def parse(cls, text: str) -> "VirtualAddress":
        """
        Parse ``scheme://host/path``. Percent-escapes in the path are decoded.

        Raises:
            InvalidAddressError: If the text has no scheme or no ``//`` authority part
        """
        if not isinstance(text, str):
            raise InvalidAddressError(f"Address must be a string, got {type(text).__name__}")
        parts = urlsplit(text)
        if not parts.scheme or not text[len(parts.scheme) + 1:].startswith("//"):
            raise InvalidAddressError(f"Malformed address: {text!r}", path=text)
        if parts.query or parts.fragment:
            raise InvalidAddressError(f"Address must not carry a query or fragment: {text!r}", path=text)
        return cls(scheme=parts.scheme, host=parts.netloc, path=unquote(parts.path) or "/")

    @property
    def segments(self) -> Tuple[str, ...]:
        """Path segments below the root, e.g. ('src', 'a.txt')."""
        if self.path == "/":
            return ()
        return tuple(self.path[1:].split("/"))

    @property
    def name(self) -> str:
        """Final path segment ('' for the root)."""
        segments = self.segments
        return segments[-1] if segments else ""

    @property
    def parent(self) -> "VirtualAddress":
        """Address of the containing directory (the root is its own parent)."""
        return VirtualAddress(self.scheme, self.host, "/" + "/".join(self.segments[:-1]))

    def is_root(self) -> bool:
        return self.path == "/"

    def joinpath(self, *parts: str) -> "VirtualAddress":
        """Append path segments. Raises PathTraversalError if ``..`` escapes the root."""
        return VirtualAddress(self.scheme, self.host, "/".join((self.path,) + parts))

    def with_path(self, path: str) -> "VirtualAddress":
        return VirtualAddress(self.scheme, self.host, path)

    def __truediv__(self, part: str) -> "VirtualAddress":
        return self.joinpath(part)

    def __str__(self) -> str:
        return f"{self.scheme}://{self.host}{quote(self.path, safe='/')}"


class PathTranslator:
    """
    Bidirectional translation between virtual addresses and real paths.

    Example:
        >>> host = registry.mount("/tmp/proj")
        >>> translator = PathTranslator(registry)
        >>> translator.to_real_path("localfs://h0/src/a.txt")
        '/tmp/proj/src/a.txt'
        >>> str(translator.to_virtual_address("/tmp/proj/src/a.txt"))
        'localfs://h0/src/a.txt'
    """

    def __init__(
        self,
        registry: HostRegistry,
        scheme: str = "localfs",
        abs_scheme: str = "localfsabs",
    ) -> None:
        self.registry = registry
        self.scheme = scheme
        self.abs_scheme = abs_scheme

    def root_address(self, host: str) -> VirtualAddress:
        """Address of the root of ``host``."""
        return VirtualAddress(self.scheme, host, "/")

    def coerce(self, address: AddressLike) -> VirtualAddress:
        """Accept either a VirtualAddress or its string form."""
        if isinstance(address, VirtualAddress):
            return address
        return VirtualAddress.parse(address)

    def is_absolute_address(self, address: AddressLike) -> bool:
        """Whether the address names a real path directly (``localfsabs:`` or ``file:``)."""
        return self.coerce(address).scheme in (self.abs_scheme, FILE_SCHEME)

    def to_real_path(self, address: AddressLike) -> str:
        """
        Translate a virtual address to an absolute real path.

        Absolute-scheme addresses map straight to their path.

        Raises:
            UnknownHostError: If the host is not mounted
            InvalidAddressError: If the scheme is not recognized
            PathTraversalError: If the path would escape the base directory
        """
        address = self.coerce(address)

        if address.scheme in (self.abs_scheme, FILE_SCHEME):
            return normalize_real_path(address.path)

        if address.scheme != self.scheme:
            raise InvalidAddressError(f"Unknown scheme: {address}", path=str(address))

        base_dir = self.registry.resolve_by_host(address.host)
        if base_dir is None:
            raise UnknownHostError(
                f"Base directory not found for host {address.host!r}: {address}",
                host=address.host,
                path=str(address),
            )

        real_path = normalize_real_path(os.path.join(base_dir, *address.segments))
        if not is_under(real_path, base_dir):
            raise PathTraversalError(f"Path escapes its base directory: {address}", path=str(address))
        return real_path

    def to_virtual_address(self, real_path: Union[str, os.PathLike]) -> VirtualAddress:
        """
        Translate a real path to the address under its longest matching mount.

        Raises:
            PathNotMountedError: If no mounted directory contains the path
        """
        path = normalize_real_path(real_path)
        mapping = self.registry.resolve_by_path(path)
        if mapping is None:
            raise PathNotMountedError(f"Invalid file path, not under any mount: {path}", path=path)

        relative = path[len(mapping.base_dir):]
        segments = [segment for segment in relative.split(os.sep) if segment]
        return VirtualAddress(self.scheme, mapping.host, "/" + "/".join(segments))

    def try_virtual_address(self, real_path: Union[str, os.PathLike]) -> Optional[VirtualAddress]:
        """Like ``to_virtual_address`` but returns None for unmounted paths."""
        try:
            return self.to_virtual_address(real_path)
        except PathNotMountedError:
            return None
