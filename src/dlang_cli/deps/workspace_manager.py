"""Workspace façade: manifest and lock file lifecycle plus import resolution.

A ``WorkspaceManager`` moves through ``UNINITIALIZED -> INITIALIZING ->
READY``. Initialization is memoized in a ``concurrent.futures.Future`` so
threads that call :meth:`WorkspaceManager.initialize` concurrently share one
run; a failed run resets the state so the next call retries.
"""

import threading
from concurrent.futures import Future
from dataclasses import replace
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from ..config import get_allow_network, get_cache_dir, get_git_timeout
from ..errors import DependencyNotInstalledError, MissingLockFileError
from ..models.dependency_reference import DependencyIdentifier, is_git_specifier
from ..models.manifest import ModelManifest
from .lockfile import LockFile, get_lockfile_path
from .manifest_store import ManifestStore
from .repository_cache import RepositoryCache
from .resolver import DependencyResolver


class WorkspaceState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


class WorkspaceManager:
    """Owns the manifest, lock file and package cache of one workspace."""

    def __init__(
        self,
        cache: Optional[RepositoryCache] = None,
        manifest_store: Optional[ManifestStore] = None,
        allow_network: Optional[bool] = None,
        auto_resolve: bool = False,
    ):
        """
        Args:
            cache: Package cache. Created from config on initialize when omitted.
            manifest_store: Manifest cache, shareable between managers.
            allow_network: Defaults to :func:`get_allow_network`.
            auto_resolve: Resolve and write a lock file during initialize if none exists.
        """
        self._cache = cache
        self.manifest_store = manifest_store or ManifestStore()
        self.allow_network = get_allow_network() if allow_network is None else allow_network
        self.auto_resolve = auto_resolve

        self.state = WorkspaceState.UNINITIALIZED
        self._state_lock = threading.Lock()
        self._resolve_lock = threading.Lock()
        self._init_future: Optional[Future] = None

        self._workspace_root: Optional[Path] = None
        self._manifest_path: Optional[Path] = None
        self._lock_file: Optional[LockFile] = None
        self.messages: List[str] = []

    # Lifecycle

    def initialize(self, start_path: Path) -> None:
        """Locate the workspace root above ``start_path`` and load its lock file.

        Without a model.yaml in ``start_path`` or above, ``start_path`` itself
        becomes the root and the workspace has no dependencies.
        """
        with self._state_lock:
            if self.state == WorkspaceState.READY:
                return
            future = self._init_future
            owner = future is None
            if owner:
                future = Future()
                self._init_future = future
                self.state = WorkspaceState.INITIALIZING

        if not owner:
            future.result()
            return

        try:
            self._perform_initialization(Path(start_path))
        except Exception as e:
            with self._state_lock:
                self.state = WorkspaceState.UNINITIALIZED
                self._init_future = None
            future.set_exception(e)
            raise

        with self._state_lock:
            self.state = WorkspaceState.READY
        future.set_result(None)

    def _perform_initialization(self, start_path: Path) -> None:
        manifest_path = self.manifest_store.find_manifest_path(start_path)
        if manifest_path is None:
            root = start_path.resolve()
            self._workspace_root = root.parent if root.is_file() else root
        else:
            self._workspace_root = manifest_path.parent
        self._manifest_path = manifest_path
        if self._cache is None:
            self._cache = RepositoryCache(get_cache_dir(self._workspace_root), timeout=get_git_timeout())

        self._lock_file = LockFile.read(get_lockfile_path(self._workspace_root))
        if self._lock_file is None and self.auto_resolve and self.allow_network:
            self._generate_lock_file(prior_lock=None)

    def _ensure_initialized(self) -> None:
        future = self._init_future
        if future is not None:
            future.result()
        elif self.state != WorkspaceState.READY:
            raise RuntimeError("WorkspaceManager not initialized. Call initialize() first.")

    @property
    def workspace_root(self) -> Path:
        if self._workspace_root is None:
            raise RuntimeError("WorkspaceManager not initialized. Call initialize() first.")
        return self._workspace_root

    @property
    def manifest_path(self) -> Optional[Path]:
        self._ensure_initialized()
        return self._manifest_path

    @property
    def cache(self) -> RepositoryCache:
        self._ensure_initialized()
        return self._cache

    def get_manifest(self) -> ModelManifest:
        """Return the workspace manifest, re-reading it only when it changed on disk."""
        self._ensure_initialized()
        if self._manifest_path is None:
            return ModelManifest()
        return self.manifest_store.load(self._manifest_path, workspace_root=self._workspace_root)

    def get_path_aliases(self) -> Dict[str, str]:
        return dict(self.get_manifest().paths)

    # Lock file

    def get_lock_file(self) -> Optional[LockFile]:
        """The in-memory lock file, without touching disk or network."""
        self._ensure_initialized()
        return self._lock_file

    def ensure_lock_file(self) -> LockFile:
        """Return the lock file from memory, then disk, then a fresh resolution.

        Raises:
            MissingLockFileError: If no lock exists and the network is disabled.
        """
        self._ensure_initialized()
        with self._resolve_lock:
            if self._lock_file is not None:
                return self._lock_file

            self._lock_file = LockFile.read(get_lockfile_path(self._workspace_root))
            if self._lock_file is not None:
                return self._lock_file

            if self._manifest_path is None:
                self._lock_file = LockFile()
                return self._lock_file
            if not self.allow_network:
                raise MissingLockFileError()
            return self._generate_lock_file(prior_lock=None)

    def regenerate_lock_file(self, package_key: Optional[str] = None, cancel_event=None) -> LockFile:
        """Re-resolve against the remotes and rewrite model.lock.

        With ``package_key`` only that package loses its pin; every other
        locked package keeps its commit as long as its ref is unchanged.
        """
        self._ensure_initialized()
        with self._resolve_lock:
            prior_lock = None
            if package_key is not None and self._lock_file is not None:
                prior_lock = LockFile(version=self._lock_file.version)
                for key, dep in self._lock_file.dependencies.items():
                    if key != package_key:
                        prior_lock.add_dependency(key, dep)
            return self._generate_lock_file(prior_lock=prior_lock, cancel_event=cancel_event)

    def install(self, cancel_event=None) -> LockFile:
        """Resolve honoring existing pins and write model.lock."""
        self._ensure_initialized()
        with self._resolve_lock:
            prior_lock = self._lock_file or LockFile.read(get_lockfile_path(self._workspace_root))
            return self._generate_lock_file(prior_lock=prior_lock, cancel_event=cancel_event)

    def refresh_lock_file(self) -> Optional[LockFile]:
        """Drop the in-memory lock file and reload it from disk."""
        self._ensure_initialized()
        self._lock_file = LockFile.read(get_lockfile_path(self._workspace_root))
        return self._lock_file

    def _generate_lock_file(self, prior_lock: Optional[LockFile], cancel_event=None) -> LockFile:
        if self._manifest_path is None:
            self._lock_file = LockFile()
            return self._lock_file
        if prior_lock is None and not self.allow_network:
            raise MissingLockFileError()
        manifest = self.manifest_store.load(self._manifest_path, workspace_root=self._workspace_root)
        resolver = DependencyResolver(self._cache, self.manifest_store, self.allow_network)
        lock_file = resolver.resolve(manifest, prior_lock=prior_lock, cancel_event=cancel_event)
        self.messages = list(resolver.messages)

        lock_file.write(get_lockfile_path(self._workspace_root))
        self._lock_file = lock_file
        return lock_file

    # Imports

    def resolve_dependency_import(self, specifier: str) -> Optional[str]:
        """Map a declared dependency key (plus optional subpath) to ``source@ref/subpath``.

        Returns None when no declared source dependency matches; local path
        dependencies are reached through path aliases instead.
        """
        manifest = self.get_manifest()
        for key in sorted(manifest.dependencies, key=len, reverse=True):
            dep = manifest.dependencies[key]
            if dep.is_local:
                continue
            if specifier != key and not specifier.startswith(f"{key}/"):
                continue
            identifier = dep.get_identifier()
            suffix = specifier[len(key):].strip("/")
            subpath = "/".join(part for part in (identifier.subpath, suffix) if part) or None
            return replace(identifier, subpath=subpath).to_specifier()
        return None

    def resolve_entry_point(self, specifier: str) -> Path:
        """Resolve an external import to the file to load, using the lock file and cache.

        Raises:
            DependencyNotInstalledError: If the package is not in the lock file,
                or is not cached while the network is disabled.
            EntryPointNotFoundError: If the package has no such entry file.
        """
        mapped = self.resolve_dependency_import(specifier)
        if mapped is None:
            if not is_git_specifier(specifier):
                raise DependencyNotInstalledError(specifier)
            mapped = specifier

        identifier = DependencyIdentifier.parse(mapped)
        lock_file = self.ensure_lock_file()
        locked = lock_file.get_dependency(identifier.package_key)
        if locked is None:
            raise DependencyNotInstalledError(identifier.package_key)

        return self._cache.resolve_entry_point(
            identifier.with_ref(locked.ref),
            locked.commit,
            allow_network=self.allow_network,
        )

    # Invalidation

    def invalidate_manifest_cache(self) -> None:
        self.manifest_store.invalidate()

    def invalidate_lock_cache(self) -> None:
        self._lock_file = None

    def invalidate_cache(self) -> None:
        self.invalidate_manifest_cache()
        self.invalidate_lock_cache()
