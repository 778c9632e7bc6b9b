"""
Tests for the localfs.bridge and localfs.events modules.

This module tests:
- Watch registration, per-registration release and release after close
- Event translation, ordering and fan-out to listeners
- Ignore filtering and dropping of unmounted paths
- Listener isolation and unregistration during delivery
- Subscription semantics
"""

import threading
from unittest.mock import Mock

import pytest

from localfs.addressing import VirtualAddress
from localfs.bridge import ChangeEventBridge
from localfs.events import ChangeType, FileChangeEvent, Subscription
from localfs.exceptions import UnknownHostError
from localfs.ignore import IgnorePolicy


# =============================================================================
# Subscription
# =============================================================================

class TestSubscription:
    """Tests for the Subscription handle."""

    def test_dispose_runs_release_once(self):
        release = Mock()
        subscription = Subscription(release, "test")

        subscription.dispose()
        subscription.dispose()

        release.assert_called_once_with()
        assert subscription.disposed

    def test_context_manager_disposes(self):
        release = Mock()

        with Subscription(release) as subscription:
            assert not subscription.disposed

        release.assert_called_once_with()

    def test_noop(self):
        subscription = Subscription.noop("nothing")
        subscription.dispose()

        assert subscription.disposed
        assert "disposed" in repr(subscription)

    def test_concurrent_dispose_releases_once(self):
        release = Mock()
        subscription = Subscription(release)

        threads = [threading.Thread(target=subscription.dispose) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert release.call_count == 1


# =============================================================================
# Watch Registration
# =============================================================================

class TestWatch:
    """Tests for ChangeEventBridge.watch."""

    def test_watch_registers_real_path(self, bridge, fake_watcher, host, project_dir):
        bridge.watch(f"localfs://{host}/")

        assert fake_watcher.calls == [("add", str(project_dir))]
        assert bridge.watched_paths() == [str(project_dir)]

    def test_dispose_releases_path(self, bridge, fake_watcher, host, project_dir):
        subscription = bridge.watch(f"localfs://{host}/")

        subscription.dispose()
        subscription.dispose()

        assert fake_watcher.calls == [("add", str(project_dir)), ("remove", str(project_dir))]
        assert bridge.watched_paths() == []

    def test_same_path_is_reference_counted(self, bridge, fake_watcher, host, project_dir):
        first = bridge.watch(f"localfs://{host}/")
        second = bridge.watch(f"localfs://{host}/")

        assert fake_watcher.calls == [("add", str(project_dir))]

        first.dispose()
        assert fake_watcher.targets() == [str(project_dir)]

        second.dispose()
        assert fake_watcher.targets() == []

    def test_release_is_per_path(self, bridge, fake_watcher, host, project_dir):
        root = bridge.watch(f"localfs://{host}/")
        sub = bridge.watch(f"localfs://{host}/src")

        sub.dispose()

        assert fake_watcher.targets() == [str(project_dir)]
        root.dispose()

    def test_ignored_path_is_never_registered(self, bridge, fake_watcher, host):
        subscription = bridge.watch(f"localfs://{host}/.git")

        assert fake_watcher.calls == []
        subscription.dispose()
        assert fake_watcher.calls == []

    def test_options_are_accepted(self, bridge, fake_watcher, host, project_dir):
        bridge.watch(f"localfs://{host}/", recursive=False, excludes=["*.tmp"])

        assert fake_watcher.targets() == [str(project_dir)]

    def test_unknown_host_raises(self, bridge, fake_watcher):
        with pytest.raises(UnknownHostError):
            bridge.watch("localfs://h42/")

        assert fake_watcher.calls == []


# =============================================================================
# Event Delivery
# =============================================================================

class TestDelivery:
    """Tests for ChangeEventBridge.dispatch."""

    def test_events_are_translated_in_order(self, bridge, fake_watcher, host, project_dir):
        received = []
        bridge.on_change(received.append)
        path = str(project_dir / "a.txt")

        fake_watcher.fire(ChangeType.CREATED, path)
        fake_watcher.fire(ChangeType.CHANGED, path)
        fake_watcher.fire(ChangeType.DELETED, path)

        address = VirtualAddress("localfs", host, "/a.txt")
        assert received == [
            FileChangeEvent(ChangeType.CREATED, address),
            FileChangeEvent(ChangeType.CHANGED, address),
            FileChangeEvent(ChangeType.DELETED, address),
        ]

    def test_every_listener_receives_event(self, bridge, fake_watcher, host, project_dir):
        first, second = Mock(), Mock()
        bridge.on_change(first)
        bridge.on_change(second)

        fake_watcher.fire(ChangeType.CREATED, str(project_dir / "a.txt"))

        assert first.call_count == 1
        assert second.call_count == 1
        assert first.call_args.args[0].address.path == "/a.txt"

    def test_ignored_paths_are_dropped(self, bridge, fake_watcher, host, project_dir):
        listener = Mock()
        bridge.on_change(listener)

        fake_watcher.fire(ChangeType.CHANGED, str(project_dir / ".git" / "HEAD"))
        fake_watcher.fire(ChangeType.CREATED, str(project_dir / "web" / "node_modules" / "x.js"))

        listener.assert_not_called()

    def test_similar_names_are_not_ignored(self, bridge, fake_watcher, host, project_dir):
        listener = Mock()
        bridge.on_change(listener)

        fake_watcher.fire(ChangeType.CREATED, str(project_dir / ".github" / "ci.yml"))

        listener.assert_called_once()

    def test_unmounted_paths_are_dropped(self, bridge, fake_watcher, host, tmp_path):
        listener = Mock()
        bridge.on_change(listener)

        fake_watcher.fire(ChangeType.CREATED, str(tmp_path / "elsewhere" / "a.txt"))

        listener.assert_not_called()

    def test_custom_ignore_policy(self, translator, fake_watcher, host, project_dir):
        bridge = ChangeEventBridge(translator, fake_watcher, IgnorePolicy(["build"]))
        listener = Mock()
        bridge.on_change(listener)

        fake_watcher.fire(ChangeType.CREATED, str(project_dir / "build" / "out.o"))
        fake_watcher.fire(ChangeType.CREATED, str(project_dir / ".git" / "HEAD"))

        assert listener.call_count == 1
        assert listener.call_args.args[0].address.path == "/.git/HEAD"

    def test_failing_listener_does_not_affect_others(self, bridge, fake_watcher, host, project_dir, caplog):
        received = []

        def broken(event):
            raise RuntimeError("listener bug")

        bridge.on_change(broken)
        bridge.on_change(received.append)

        with caplog.at_level("ERROR", logger="localfs.bridge"):
            fake_watcher.fire(ChangeType.CREATED, str(project_dir / "a.txt"))

        assert len(received) == 1
        assert "listener bug" in caplog.text

    def test_disposed_listener_receives_nothing(self, bridge, fake_watcher, host, project_dir):
        listener = Mock()
        subscription = bridge.on_change(listener)

        subscription.dispose()
        subscription.dispose()
        fake_watcher.fire(ChangeType.CREATED, str(project_dir / "a.txt"))

        listener.assert_not_called()
        assert bridge.listener_count() == 0

    def test_unregister_during_delivery(self, bridge, fake_watcher, host, project_dir):
        calls = []
        subscriptions = []

        def first(event):
            calls.append("first")
            subscriptions[1].dispose()

        def second(event):
            calls.append("second")

        subscriptions.append(bridge.on_change(first))
        subscriptions.append(bridge.on_change(second))

        # The running pass keeps its snapshot
        fake_watcher.fire(ChangeType.CREATED, str(project_dir / "a.txt"))
        fake_watcher.fire(ChangeType.CREATED, str(project_dir / "b.txt"))

        assert calls == ["first", "second", "first"]

    def test_listener_registered_during_delivery_sees_next_event(self, bridge, fake_watcher, host, project_dir):
        late = Mock()

        def register(event):
            if late.call_count == 0 and bridge.listener_count() == 1:
                bridge.on_change(late)

        bridge.on_change(register)
        fake_watcher.fire(ChangeType.CREATED, str(project_dir / "a.txt"))
        late.assert_not_called()

        fake_watcher.fire(ChangeType.DELETED, str(project_dir / "a.txt"))
        late.assert_called_once()

    def test_provider_surface_delegates(self, provider, fake_watcher, host, project_dir):
        received = []
        provider.on_did_change_file(received.append)
        provider.watch(f"localfs://{host}/")

        fake_watcher.fire(ChangeType.CHANGED, str(project_dir / "a.txt"))

        assert fake_watcher.targets() == [str(project_dir)]
        assert [str(e) for e in received] == [f"changed localfs://{host}/a.txt"]


# =============================================================================
# Lifecycle
# =============================================================================

class TestLifecycle:
    """Tests for start and close."""

    def test_start_starts_watcher(self, bridge, fake_watcher):
        bridge.start()

        assert fake_watcher.started

    def test_close_releases_everything(self, bridge, fake_watcher, host, project_dir):
        listener = Mock()
        bridge.on_change(listener)
        bridge.watch(f"localfs://{host}/")

        bridge.close()
        fake_watcher.fire(ChangeType.CREATED, str(project_dir / "a.txt"))

        assert fake_watcher.stopped
        assert fake_watcher.targets() == []
        assert bridge.listener_count() == 0
        listener.assert_not_called()

    def test_dispose_after_close_is_harmless(self, bridge, fake_watcher, host, project_dir):
        subscription = bridge.watch(f"localfs://{host}/")
        bridge.close()

        subscription.dispose()

        assert fake_watcher.calls.count(("remove", str(project_dir))) == 1

    def test_stale_subscription_does_not_release_new_watch(self, bridge, fake_watcher, host, project_dir):
        stale = bridge.watch(f"localfs://{host}/")
        bridge.close()
        fresh = bridge.watch(f"localfs://{host}/")

        stale.dispose()

        assert fake_watcher.targets() == [str(project_dir)]
        assert bridge.watched_paths() == [str(project_dir)]

        fresh.dispose()

        assert fake_watcher.targets() == []
        assert bridge.watched_paths() == []
