"""Dependency analysis over a lock file and the local cache.

Everything here works offline: package manifests are read from cached
checkouts, and a package whose checkout is missing simply contributes
no children.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from ..models.dependency_reference import DependencyIdentifier
from ..models.manifest import ModelManifest
from .dependency_graph import find_cycles
from .lockfile import LockedDependency, LockFile
from .manifest_store import ManifestStore
from .repository_cache import RepositoryCache
from .semver import filter_stable_versions, sort_versions_descending


ROOT_DEPENDENT = "root"


@dataclass
class DependencyTreeNode:
    package_key: str
    ref: str
    commit: str
    depth: int = 0
    dependencies: List["DependencyTreeNode"] = field(default_factory=list)


@dataclass
class ReverseDependency:
    dependent: str
    ref: str
    type: str = "direct"


@dataclass
class VersionPolicy:
    policy: str
    ref: str
    available_refs: List[str] = field(default_factory=list)


class DependencyAnalyzer:
    """Tree rendering, impact analysis and cycle detection for locked packages."""

    def __init__(self, cache: RepositoryCache, manifest_store: Optional[ManifestStore] = None):
        self.cache = cache
        self.manifest_store = manifest_store or ManifestStore()

    def build_dependency_tree(self, lock_file: LockFile, manifest: ModelManifest) -> List[DependencyTreeNode]:
        """One root node per direct source dependency of the workspace."""
        nodes = []
        for dep in manifest.get_source_dependencies():
            node = self._build_node(dep.package_key, lock_file, 0, set())
            if node is not None:
                nodes.append(node)
        return nodes

    def _build_node(
        self,
        package_key: str,
        lock_file: LockFile,
        depth: int,
        ancestors: Set[str],
    ) -> Optional[DependencyTreeNode]:
        locked = lock_file.get_dependency(package_key)
        if locked is None:
            return None

        node = DependencyTreeNode(package_key=package_key, ref=locked.ref, commit=locked.commit, depth=depth)
        # Stop at a package already on the current path
        if package_key in ancestors:
            return node

        path = ancestors | {package_key}
        for child_key in self._package_dependencies(locked):
            child = self._build_node(child_key, lock_file, depth + 1, path)
            if child is not None:
                node.dependencies.append(child)
        return node

    def find_reverse_dependencies(
        self,
        package_key: str,
        lock_file: LockFile,
        manifest: ModelManifest,
    ) -> List[ReverseDependency]:
        """Who depends directly on ``package_key``: the workspace root and/or other locked packages."""
        result = []
        for dep in manifest.get_source_dependencies():
            if dep.package_key == package_key:
                result.append(ReverseDependency(dependent=ROOT_DEPENDENT, ref="workspace"))

        for other_key in lock_file.get_package_keys():
            if other_key == package_key:
                continue
            locked = lock_file.get_dependency(other_key)
            if package_key in self._package_dependencies(locked):
                result.append(ReverseDependency(dependent=other_key, ref=locked.ref))
        return result

    def detect_circular_dependencies(self, lock_file: LockFile) -> List[List[str]]:
        edges = {
            key: list(self._package_dependencies(lock_file.get_dependency(key)))
            for key in lock_file.get_package_keys()
        }
        return find_cycles(edges)

    @staticmethod
    def format_dependency_tree(nodes: List[DependencyTreeNode], show_commits: bool = False) -> str:
        lines: List[str] = []

        def format_node(node: DependencyTreeNode, prefix: str, is_last: bool) -> None:
            branch = "└── " if is_last else "├── "
            ref = f"{node.ref} ({node.commit[:7]})" if show_commits else node.ref
            lines.append(f"{prefix}{branch}{node.package_key}@{ref}")
            child_prefix = prefix + ("    " if is_last else "│   ")
            for index, child in enumerate(node.dependencies):
                format_node(child, child_prefix, index == len(node.dependencies) - 1)

        for index, node in enumerate(nodes):
            format_node(node, "", index == len(nodes) - 1)
        return "\n".join(lines)

    @staticmethod
    def resolve_version_policy(policy: str, available_refs: List[str]) -> VersionPolicy:
        """Turn ``latest`` / ``stable`` into a concrete ref; anything else is a pin."""
        if policy == "latest":
            ordered = sort_versions_descending(available_refs)
            return VersionPolicy("latest", ordered[0] if ordered else "main", ordered)
        if policy == "stable":
            ordered = sort_versions_descending(filter_stable_versions(available_refs))
            return VersionPolicy("stable", ordered[0] if ordered else "main", ordered)
        return VersionPolicy("pinned", policy)

    def _package_dependencies(self, locked: LockedDependency) -> Dict[str, str]:
        """Source dependencies declared by a cached package, as ``{package_key: ref}``."""
        identifier = DependencyIdentifier.parse(locked.resolved)
        if not self.cache.is_cached(identifier, locked.commit):
            return {}
        package_manifest = self.manifest_store.read_package_manifest(
            self.cache.get_cache_path(identifier, locked.commit)
        )
        if package_manifest is None:
            return {}
        return {dep.package_key: dep.ref for dep in package_manifest.get_source_dependencies()}
