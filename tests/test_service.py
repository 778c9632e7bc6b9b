"""
Tests for the localfs.service module.

This module tests:
- Mounting through the service and root addresses
- Handling of absolute addresses
- Persistence of mounts across service instances
- Event flow from the native watcher to listeners
- Lifecycle (start, close, context manager)
"""

import pytest

from localfs.config import LocalFsConfig
from localfs.events import ChangeType
from localfs.exceptions import RegistryError
from localfs.service import LocalFsService
from localfs.storage import MemoryStateStore
from localfs.watcher import WatchdogWatcher


@pytest.fixture
def config(tmp_path):
    return LocalFsConfig(state_path=tmp_path / "state" / "state.json")


@pytest.fixture
def service(config, watcher_factory):
    service = LocalFsService(config, watcher=watcher_factory())
    yield service
    service.close()


# =============================================================================
# Mount
# =============================================================================

class TestMount:
    """Tests for LocalFsService.mount."""

    def test_mount_returns_root_address(self, service, project_dir):
        root = service.mount(project_dir)

        assert str(root) == "localfs://h0/"

    def test_remount_is_stable(self, service, project_dir):
        assert service.mount(project_dir) == service.mount(str(project_dir))

    def test_relative_directory(self, service):
        with pytest.raises(RegistryError):
            service.mount("relative")

    def test_custom_scheme_and_prefix(self, tmp_path, project_dir, watcher_factory):
        config = LocalFsConfig(
            scheme="vfs",
            abs_scheme="vfsabs",
            host_prefix="dummyhost",
            state_path=tmp_path / "s.json",
        )
        service = LocalFsService(config, store=MemoryStateStore(), watcher=watcher_factory())

        assert str(service.mount(project_dir)) == "vfs://dummyhost0/"

    def test_default_watcher_follows_config(self, tmp_path):
        config = LocalFsConfig(state_path=tmp_path / "s.json", poll_interval=0.2)

        service = LocalFsService(config)

        assert isinstance(service.watcher, WatchdogWatcher)
        assert service.watcher.use_polling is True
        assert service.watcher.poll_interval == 0.2


# =============================================================================
# Absolute Addresses
# =============================================================================

class TestHandleUri:
    """Tests for LocalFsService.handle_uri."""

    def test_absolute_address_mounts(self, service, project_dir):
        root = service.handle_uri(f"localfsabs://{project_dir.as_posix()}")

        assert str(root) == "localfs://h0/"
        assert service.registry.resolve_by_host("h0") == str(project_dir)

    def test_file_address_mounts(self, service, project_dir):
        root = service.handle_uri(project_dir.as_uri())

        assert root is not None
        assert service.translator.to_real_path(root) == str(project_dir)

    def test_absolute_address_is_idempotent(self, service, project_dir):
        first = service.handle_uri(f"localfsabs://{project_dir.as_posix()}")
        second = service.mount(project_dir)

        assert first == second

    def test_virtual_address_is_not_handled(self, service, project_dir):
        service.mount(project_dir)

        assert service.handle_uri("localfs://h0/") is None
        assert len(service.registry) == 1

    def test_malformed_address_is_not_handled(self, service):
        assert service.handle_uri("not an address") is None
        assert len(service.registry) == 0


# =============================================================================
# Persistence
# =============================================================================

class TestPersistence:
    """Mounted hosts survive a restart."""

    def test_addresses_survive_restart(self, config, project_dir, watcher_factory):
        first = LocalFsService(config, watcher=watcher_factory())
        root = first.mount(project_dir)
        first.close()

        second = LocalFsService(config, watcher=watcher_factory())

        assert second.translator.to_real_path(root) == str(project_dir)
        assert second.mount(project_dir) == root
        assert config.state_path.exists()

    @pytest.mark.asyncio
    async def test_files_readable_after_restart(self, config, project_dir, watcher_factory):
        (project_dir / "a.txt").write_bytes(b"kept")
        root = LocalFsService(config, watcher=watcher_factory()).mount(project_dir)

        service = LocalFsService(config, watcher=watcher_factory())

        assert await service.provider.read_file(root / "a.txt") == b"kept"


# =============================================================================
# Events and Lifecycle
# =============================================================================

class TestEventsAndLifecycle:
    """Event flow and lifecycle of the composed service."""

    def test_events_reach_listeners(self, service, project_dir):
        root = service.mount(project_dir)
        received = []
        service.provider.on_did_change_file(received.append)
        service.provider.watch(root)

        service.watcher.fire(ChangeType.CREATED, str(project_dir / "x.txt"))
        service.watcher.fire(ChangeType.CHANGED, str(project_dir / ".git" / "index"))

        assert [str(e) for e in received] == ["created localfs://h0/x.txt"]

    def test_ignored_segments_come_from_config(self, tmp_path, project_dir, watcher_factory):
        config = LocalFsConfig(state_path=tmp_path / "s.json", ignored_segments=["build"])
        service = LocalFsService(config, store=MemoryStateStore(), watcher=watcher_factory())
        service.mount(project_dir)
        received = []
        service.provider.on_did_change_file(received.append)

        service.watcher.fire(ChangeType.CREATED, str(project_dir / "build" / "x"))
        service.watcher.fire(ChangeType.CREATED, str(project_dir / ".git" / "x"))

        assert [e.address.path for e in received] == ["/.git/x"]

    def test_context_manager_starts_and_closes(self, config, watcher_factory):
        watcher = watcher_factory()

        with LocalFsService(config, watcher=watcher) as service:
            assert watcher.started
            service.start()

        assert watcher.stopped
