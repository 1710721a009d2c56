"""Dependency graph discovery.

The graph is built breadth-first with an explicit queue and visited set,
so a package reached through several dependents becomes a single node
that accumulates every ref constraint placed on it. Cycles are left in
the graph for :mod:`dlang_cli.deps.conflict_resolver` to report.
"""

import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from ..errors import DependencyNotInstalledError, ResolutionCancelledError
from ..models.dependency_reference import DependencyIdentifier, RefType, is_full_commit_hash
from ..models.manifest import ModelManifest
from .lockfile import LockFile
from .manifest_store import ManifestStore
from .repository_cache import RepositoryCache


ROOT_NODE_NAME = "root"


@dataclass
class GraphNode:
    """One package in the graph and everything its dependents asked of it."""

    package_key: str
    ref_constraint: str
    identifier: DependencyIdentifier
    repo_url: str
    constraints: Set[str] = field(default_factory=set)
    dependents: List[str] = field(default_factory=list)
    requirements: List[Tuple[str, str]] = field(default_factory=list)
    dependencies: Dict[str, str] = field(default_factory=dict)
    resolved_ref: Optional[str] = None
    ref_type: Optional[RefType] = None
    commit_hash: Optional[str] = None
    # Commit checked out for ref_constraint during discovery
    checkout_commit: Optional[str] = None

    def add_requirement(self, parent: str, ref: str) -> None:
        self.constraints.add(ref)
        if parent not in self.dependents:
            self.dependents.append(parent)
        self.requirements.append((parent, ref))


@dataclass
class DependencyGraph:
    """All packages reachable from a workspace manifest."""

    root: str = ROOT_NODE_NAME
    nodes: Dict[str, GraphNode] = field(default_factory=dict)
    root_dependencies: Dict[str, str] = field(default_factory=dict)

    def get_node(self, package_key: str) -> Optional[GraphNode]:
        return self.nodes.get(package_key)

    def edges(self) -> Dict[str, List[str]]:
        """Package-level adjacency in discovery order."""
        return {key: list(node.dependencies) for key, node in self.nodes.items()}

    def __len__(self) -> int:
        return len(self.nodes)


def find_cycles(edges: Mapping[str, Iterable[str]], first_only: bool = False) -> List[List[str]]:
    """Find cycles with an iterative depth-first search.

    Each cycle is returned as a closed path, e.g. ``["a", "b", "c", "a"]``.
    """
    white, gray, black = 0, 1, 2
    color: Dict[str, int] = {node: white for node in edges}
    cycles: List[List[str]] = []

    for start in list(edges):
        if color.get(start, white) != white:
            continue
        color[start] = gray
        path = [start]
        stack = [iter(edges.get(start, ()))]

        while stack:
            child = next(stack[-1], None)
            if child is None:
                stack.pop()
                color[path.pop()] = black
                continue

            state = color.get(child, white)
            if state == gray:
                cycles.append(path[path.index(child):] + [child])
                if first_only:
                    return cycles
            elif state == white:
                color[child] = gray
                path.append(child)
                stack.append(iter(edges.get(child, ())))

    return cycles


def find_cycle(edges: Mapping[str, Iterable[str]]) -> Optional[List[str]]:
    cycles = find_cycles(edges, first_only=True)
    return cycles[0] if cycles else None


class DependencyGraphBuilder:
    """Discovers the transitive dependency graph of a workspace manifest."""

    def __init__(self, cache: RepositoryCache, manifest_store: ManifestStore, allow_network: bool = True):
        self.cache = cache
        self.manifest_store = manifest_store
        self.allow_network = allow_network

    def build(
        self,
        manifest: ModelManifest,
        prior_lock: Optional[LockFile] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> DependencyGraph:
        """Fetch every reachable package once and record all constraints.

        Args:
            manifest: The workspace manifest; only its source dependencies are followed.
            prior_lock: When a locked entry's ref matches the requested ref its
                commit is reused without contacting the remote.
            cancel_event: Checked before each fetch.

        Raises:
            ResolutionCancelledError: If ``cancel_event`` is set mid-traversal.
            DependencyNotInstalledError: With the network disabled, for a package
                whose ref has no matching pin.
        """
        graph = DependencyGraph(root=manifest.name or ROOT_NODE_NAME)
        queue: Deque[Tuple[DependencyIdentifier, str]] = deque()
        visited: Set[str] = set()

        for dep in manifest.get_source_dependencies():
            identifier = dep.get_identifier()
            graph.root_dependencies[identifier.package_key] = identifier.ref
            queue.append((identifier, graph.root))

        while queue:
            identifier, parent = queue.popleft()
            package_key = identifier.package_key

            if package_key in visited:
                graph.nodes[package_key].add_requirement(parent, identifier.ref)
                continue

            if cancel_event is not None and cancel_event.is_set():
                raise ResolutionCancelledError()

            visited.add(package_key)
            node = GraphNode(
                package_key=package_key,
                ref_constraint=identifier.ref,
                identifier=identifier,
                repo_url=identifier.repo_url,
            )
            node.add_requirement(parent, identifier.ref)
            graph.nodes[package_key] = node

            commit = self._commit_for(identifier, prior_lock)
            node.checkout_commit = commit
            package_dir = self.cache.ensure_checkout(identifier, commit, self.allow_network)
            package_manifest = self.manifest_store.read_package_manifest(package_dir)
            if package_manifest is None:
                continue

            # Local path dependencies of fetched packages are not followed
            for child in package_manifest.get_source_dependencies():
                child_identifier = child.get_identifier()
                node.dependencies[child_identifier.package_key] = child_identifier.ref
                queue.append((child_identifier, package_key))

        return graph

    def _commit_for(self, identifier: DependencyIdentifier, prior_lock: Optional[LockFile]) -> str:
        locked = prior_lock.get_dependency(identifier.package_key) if prior_lock else None
        if locked is not None and locked.ref == identifier.ref:
            return locked.commit
        if not self.allow_network and not is_full_commit_hash(identifier.ref.lower()):
            raise DependencyNotInstalledError(identifier.package_key)
        return self.cache.resolve_commit(identifier)
