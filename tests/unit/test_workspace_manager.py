"""Tests for the workspace manager lifecycle, lock handling and import mapping."""

import threading
from unittest.mock import patch

import pytest

from conftest import package_files, write_manifest
from dlang_cli.deps.lockfile import LockedDependency, LockFile, get_lockfile_path
from dlang_cli.deps.workspace_manager import WorkspaceManager, WorkspaceState
from dlang_cli.errors import (
    DependencyNotInstalledError,
    MissingLockFileError,
    VersionConflictError,
)
from dlang_cli.models.dependency_reference import RefType


@pytest.fixture
def remotes():
    return {
        "acme/core": {
            "v1.0.0": package_files(name="core"),
            "v1.1.0": package_files(name="core"),
        },
        "acme/sales": {"v2.0.0": package_files({"acme/core": "v1.0.0"}, name="sales")},
    }


@pytest.fixture
def manifest_data():
    return {
        "model": {"name": "app"},
        "dependencies": {
            "core": {"source": "acme/core", "ref": "v1.0.0"},
            "acme/sales": "v2.0.0",
            "shared": {"path": "./shared"},
        },
        "paths": {"@shared": "./shared"},
    }


@pytest.fixture
def manager_for(workspace, make_cache, remotes, manifest_data):
    def _make(allow_network=True, data=None):
        write_manifest(workspace, data or manifest_data)
        cache = make_cache(remotes)
        return WorkspaceManager(cache=cache, allow_network=allow_network)

    return _make


def pin(lock, key, ref, commit):
    lock.add_dependency(key, LockedDependency(ref, RefType.TAG, f"https://github.com/{key}", commit))


class TestInitialize:
    def test_finds_root_from_nested_directory(self, workspace, manager_for):
        manager = manager_for()
        nested = workspace / "domains" / "sales"
        nested.mkdir(parents=True)

        manager.initialize(nested)

        assert manager.state == WorkspaceState.READY
        assert manager.workspace_root == workspace.resolve()

    def test_without_manifest_uses_start_directory(self, tmp_path):
        manager = WorkspaceManager(allow_network=False)
        manager.initialize(tmp_path)

        assert manager.state == WorkspaceState.READY
        assert manager.workspace_root == tmp_path.resolve()
        assert manager.manifest_path is None
        assert manager.get_manifest().dependencies == {}
        assert manager.ensure_lock_file().dependencies == {}
        assert not get_lockfile_path(tmp_path).exists()

    def test_failed_initialization_can_retry(self, workspace, manager_for):
        manager = manager_for()
        original = manager._perform_initialization
        attempts = []

        def flaky(path):
            attempts.append(path)
            if len(attempts) == 1:
                raise OSError("disk unavailable")
            original(path)

        with patch.object(manager, "_perform_initialization", side_effect=flaky):
            with pytest.raises(OSError):
                manager.initialize(workspace)
            assert manager.state == WorkspaceState.UNINITIALIZED

            manager.initialize(workspace)

        assert manager.state == WorkspaceState.READY
        assert manager.get_manifest().name == "app"

    def test_concurrent_callers_share_one_initialization(self, workspace, manager_for):
        manager = manager_for()
        calls = []
        gate = threading.Event()
        original = manager._perform_initialization

        def slow(path):
            calls.append(path)
            gate.wait(5)
            original(path)

        with patch.object(manager, "_perform_initialization", side_effect=slow):
            threads = [threading.Thread(target=manager.initialize, args=(workspace,)) for _ in range(5)]
            for thread in threads:
                thread.start()
            gate.set()
            for thread in threads:
                thread.join(5)

        assert len(calls) == 1
        assert manager.state == WorkspaceState.READY

    def test_idempotent(self, workspace, manager_for):
        manager = manager_for()
        manager.initialize(workspace)
        manager.initialize(workspace)
        assert manager.state == WorkspaceState.READY

    def test_use_before_initialize(self):
        with pytest.raises(RuntimeError, match="not initialized"):
            WorkspaceManager(allow_network=False).get_manifest()

    def test_default_cache_location(self, workspace):
        write_manifest(workspace, {"model": {"name": "app"}})
        manager = WorkspaceManager(allow_network=False)
        manager.initialize(workspace)
        assert manager.cache.cache_root == workspace.resolve() / ".dlang" / "packages"


class TestLockFileLifecycle:
    def test_ensure_lock_file_resolves_and_writes(self, workspace, manager_for):
        manager = manager_for()
        manager.initialize(workspace)

        lock = manager.ensure_lock_file()

        assert lock.get_package_keys() == ["acme/core", "acme/sales"]
        on_disk = LockFile.read(get_lockfile_path(workspace))
        assert on_disk.to_dict() == lock.to_dict()

    def test_ensure_lock_file_is_cached_in_memory(self, workspace, manager_for):
        manager = manager_for()
        manager.initialize(workspace)
        first = manager.ensure_lock_file()
        calls = manager.cache.ls_remote_calls

        assert manager.ensure_lock_file() is first
        assert manager.cache.ls_remote_calls == calls

    def test_ensure_lock_file_offline_without_lock(self, workspace, manager_for):
        manager = manager_for(allow_network=False)
        manager.initialize(workspace)
        with pytest.raises(MissingLockFileError):
            manager.ensure_lock_file()

    def test_install_offline_without_lock_never_contacts_remotes(self, workspace, manager_for):
        manager = manager_for(allow_network=False)
        manager.initialize(workspace)

        with pytest.raises(MissingLockFileError):
            manager.install()
        with pytest.raises(MissingLockFileError):
            manager.regenerate_lock_file()
        assert manager.cache.ls_remote_calls == 0
        assert not get_lockfile_path(workspace).exists()

    def test_install_offline_with_full_lock(self, workspace, manager_for):
        online = manager_for()
        online.initialize(workspace)
        expected = online.ensure_lock_file().to_dict()
        calls = online.cache.ls_remote_calls

        offline = WorkspaceManager(cache=online.cache, allow_network=False)
        offline.initialize(workspace)

        assert offline.install().to_dict() == expected
        assert online.cache.ls_remote_calls == calls

    def test_install_offline_with_unpinned_package(self, workspace, manager_for):
        online = manager_for()
        online.initialize(workspace)
        full = online.ensure_lock_file()
        calls = online.cache.ls_remote_calls
        partial = LockFile()
        partial.add_dependency("acme/core", full.get_dependency("acme/core"))
        partial.write(get_lockfile_path(workspace))

        offline = WorkspaceManager(cache=online.cache, allow_network=False)
        offline.initialize(workspace)

        with pytest.raises(DependencyNotInstalledError, match="acme/sales"):
            offline.install()
        assert online.cache.ls_remote_calls == calls

    def test_ensure_lock_file_loads_from_disk_offline(self, workspace, manager_for):
        lock = LockFile()
        pin(lock, "acme/core", "v1.0.0", "c" * 40)
        manager = manager_for(allow_network=False)
        lock.write(get_lockfile_path(workspace))

        manager.initialize(workspace)

        assert manager.ensure_lock_file().get_dependency("acme/core").commit == "c" * 40

    def test_conflict_writes_no_lock(self, workspace, manager_for, remotes, manifest_data):
        remotes["acme/sales"]["v2.0.0"] = package_files({"acme/core": "v2.0.0"}, name="sales")
        remotes["acme/core"]["v2.0.0"] = package_files(name="core")
        manager = manager_for()
        manager.initialize(workspace)

        with pytest.raises(VersionConflictError):
            manager.ensure_lock_file()
        assert not get_lockfile_path(workspace).exists()

    def test_install_honors_pins(self, workspace, manager_for):
        manager = manager_for()
        lock = LockFile()
        pin(lock, "acme/core", "v1.0.0", "c" * 40)
        lock.write(get_lockfile_path(workspace))
        manager.initialize(workspace)
        manager.cache.get_cache_path(
            manager.get_manifest().dependencies["core"].get_identifier(), "c" * 40
        ).mkdir(parents=True)

        result = manager.install()

        assert result.get_dependency("acme/core").commit == "c" * 40

    def test_regenerate_ignores_pins(self, workspace, manager_for):
        manager = manager_for()
        lock = LockFile()
        pin(lock, "acme/core", "v1.0.0", "c" * 40)
        lock.write(get_lockfile_path(workspace))
        manager.initialize(workspace)

        result = manager.regenerate_lock_file()

        assert result.get_dependency("acme/core").commit == manager.cache.commit("acme/core", "v1.0.0")
        assert LockFile.read(get_lockfile_path(workspace)).to_dict() == result.to_dict()

    def test_regenerate_single_package_keeps_other_pins(self, workspace, manager_for):
        manager = manager_for()
        manager.initialize(workspace)
        manager.ensure_lock_file()
        sales_commit = manager.get_lock_file().get_dependency("acme/sales").commit

        result = manager.regenerate_lock_file("acme/core")

        assert result.get_dependency("acme/sales").commit == sales_commit

    def test_refresh_lock_file_rereads_disk(self, workspace, manager_for):
        manager = manager_for(allow_network=False)
        manager.initialize(workspace)
        assert manager.get_lock_file() is None

        lock = LockFile()
        pin(lock, "acme/core", "v1.0.0", "d" * 40)
        lock.write(get_lockfile_path(workspace))

        assert manager.refresh_lock_file().get_dependency("acme/core").commit == "d" * 40


class TestImports:
    def test_resolve_dependency_import(self, workspace, manager_for):
        manager = manager_for()
        manager.initialize(workspace)

        assert manager.resolve_dependency_import("core") == "acme/core@v1.0.0"
        assert manager.resolve_dependency_import("core/types/money") == "acme/core@v1.0.0/types/money"
        assert manager.resolve_dependency_import("acme/sales") == "acme/sales@v2.0.0"

    def test_local_and_unknown_dependencies_not_mapped(self, workspace, manager_for):
        manager = manager_for()
        manager.initialize(workspace)
        assert manager.resolve_dependency_import("shared") is None
        assert manager.resolve_dependency_import("unknown") is None
        assert manager.resolve_dependency_import("corex") is None

    def test_resolve_entry_point(self, workspace, manager_for):
        manager = manager_for()
        manager.initialize(workspace)

        path = manager.resolve_entry_point("core")

        assert path.name == "index.dlang"
        assert manager.cache.commit("acme/core", "v1.0.0") in str(path)

    def test_resolve_entry_point_offline_uses_cache_only(self, workspace, manager_for):
        online = manager_for()
        online.initialize(workspace)
        online.ensure_lock_file()

        offline = WorkspaceManager(cache=online.cache, allow_network=False)
        offline.initialize(workspace)
        downloads = len(online.cache.downloads)

        assert offline.resolve_entry_point("acme/sales").is_file()
        assert len(online.cache.downloads) == downloads

    def test_resolve_entry_point_not_locked(self, workspace, manager_for):
        manager = manager_for()
        manager.initialize(workspace)
        manager.ensure_lock_file()
        with pytest.raises(DependencyNotInstalledError):
            manager.resolve_entry_point("other/pkg")

    def test_path_aliases(self, workspace, manager_for):
        manager = manager_for()
        manager.initialize(workspace)
        assert manager.get_path_aliases() == {"@shared": "./shared"}


class TestInvalidation:
    def test_manifest_cache(self, workspace, manager_for):
        manager = manager_for()
        manager.initialize(workspace)
        manager.get_manifest()
        manager.get_manifest()
        assert manager.manifest_store.read_count == 1

        manager.invalidate_manifest_cache()
        manager.get_manifest()
        assert manager.manifest_store.read_count == 2

    def test_lock_cache(self, workspace, manager_for):
        manager = manager_for()
        manager.initialize(workspace)
        manager.ensure_lock_file()
        calls = manager.cache.ls_remote_calls

        manager.invalidate_lock_cache()
        assert manager.get_lock_file() is None
        assert manager.ensure_lock_file().get_package_keys() == ["acme/core", "acme/sales"]
        assert manager.cache.ls_remote_calls == calls

    def test_invalidate_all(self, workspace, manager_for):
        manager = manager_for()
        manager.initialize(workspace)
        manager.ensure_lock_file()
        reads = manager.manifest_store.read_count

        manager.invalidate_cache()

        assert manager.get_lock_file() is None
        manager.get_manifest()
        assert manager.manifest_store.read_count > reads
