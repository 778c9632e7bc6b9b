"""Watch ignore policy: whole-segment matching of noisy directories."""

import os
import re
from typing import Iterable, Tuple, Union

from .config import DEFAULT_IGNORED_SEGMENTS

_SEPARATORS = re.compile(r"[\\/]+")


class IgnorePolicy:
    """
    Suppresses watch registration and events for paths under ignored directories.

    A path matches when one of its segments equals an ignored name, so
    ``/repo/.git/HEAD`` matches ``.git`` while ``/repo/.github/ci.yml`` and
    ``/repo/my.git.notes`` do not.
    """

    def __init__(self, segments: Iterable[str] = DEFAULT_IGNORED_SEGMENTS):
        self.segments: Tuple[str, ...] = tuple(s for s in segments if s)
        self._names = frozenset(self.segments)

    def matches(self, path: Union[str, os.PathLike]) -> bool:
        if not self._names:
            return False
        return any(part in self._names for part in _SEPARATORS.split(os.fspath(path)))

    def __repr__(self) -> str:
        return f"IgnorePolicy({list(self.segments)!r})"
