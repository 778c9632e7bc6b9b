"""
Shared fixtures for the localfs test-suite.
"""

from typing import List, Tuple

import pytest

from localfs.addressing import PathTranslator
from localfs.bridge import ChangeEventBridge
from localfs.events import ChangeType
from localfs.ignore import IgnorePolicy
from localfs.provider import LocalFsProvider
from localfs.registry import HostRegistry
from localfs.storage import MemoryStateStore
from localfs.watcher import NativeWatcher


class FakeWatcher(NativeWatcher):
    """NativeWatcher that records calls and lets tests fire notifications."""

    def __init__(self):
        super().__init__()
        self.calls: List[Tuple[str, str]] = []
        self._targets: List[str] = []
        self.started = False
        self.stopped = False

    def add_target(self, path: str) -> None:
        self.calls.append(("add", path))
        self._targets.append(path)

    def remove_target(self, path: str) -> None:
        self.calls.append(("remove", path))
        if path in self._targets:
            self._targets.remove(path)

    def targets(self) -> List[str]:
        return list(self._targets)

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def fire(self, kind: ChangeType, path: str) -> None:
        self.emit(kind, path)


@pytest.fixture
def store():
    return MemoryStateStore()


@pytest.fixture
def registry(store):
    return HostRegistry(store)


@pytest.fixture
def translator(registry):
    return PathTranslator(registry)


@pytest.fixture
def fake_watcher():
    return FakeWatcher()


@pytest.fixture
def bridge(translator, fake_watcher):
    return ChangeEventBridge(translator, fake_watcher, IgnorePolicy())


@pytest.fixture
def provider(translator, bridge):
    return LocalFsProvider(translator, bridge)


@pytest.fixture
def project_dir(tmp_path):
    """A real directory to mount."""
    directory = tmp_path / "proj"
    directory.mkdir()
    return directory


@pytest.fixture
def host(registry, project_dir):
    """Host id of ``project_dir``, mounted in ``registry``."""
    return registry.mount(str(project_dir))


@pytest.fixture
def watcher_factory():
    """Builds independent FakeWatcher instances."""
    return FakeWatcher
