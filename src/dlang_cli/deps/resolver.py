"""Full dependency resolution: discover, reconcile, pin, lock."""

import threading
from typing import List, Optional

from ..models.manifest import ModelManifest
from .commit_resolver import CommitResolver
from .conflict_resolver import ConflictResolver
from .dependency_graph import DependencyGraphBuilder
from .lockfile import LockFile
from .manifest_store import ManifestStore
from .repository_cache import RepositoryCache


class DependencyResolver:
    """Runs one resolution pass and produces a fresh lock file.

    Informational messages (overrides applied, latest-wins picks) are
    collected in :attr:`messages` for the caller to display.
    """

    def __init__(self, cache: RepositoryCache, manifest_store: ManifestStore, allow_network: bool = True):
        self.cache = cache
        self.manifest_store = manifest_store
        self.allow_network = allow_network
        self.messages: List[str] = []

    def resolve(
        self,
        manifest: ModelManifest,
        prior_lock: Optional[LockFile] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> LockFile:
        """Resolve ``manifest`` to a lock file. Nothing is written to disk.

        Args:
            manifest: Validated workspace manifest.
            prior_lock: Existing pins to reuse where refs are unchanged.
                Pass None to re-resolve every ref against the remotes.
            cancel_event: Optional event checked before each package fetch.

        Raises:
            CyclicDependencyError, VersionConflictError: The graph cannot be resolved.
            UnresolvableRefError, GitOperationError: A remote could not provide a ref.
        """
        self.messages = []
        builder = DependencyGraphBuilder(self.cache, self.manifest_store, self.allow_network)
        graph = builder.build(manifest, prior_lock=prior_lock, cancel_event=cancel_event)

        conflicts = ConflictResolver()
        conflicts.resolve(graph, manifest.overrides)
        self.messages.extend(conflicts.messages)

        CommitResolver(self.cache, self.allow_network).resolve(graph, prior_lock)

        integrities = {
            dep.package_key: dep.integrity for dep in manifest.get_source_dependencies() if dep.integrity
        }
        return LockFile.from_graph(graph, integrities)
