"""Pin every resolved ref in a graph to an exact commit."""

from typing import Optional

from ..errors import DependencyNotInstalledError
from ..models.dependency_reference import detect_ref_type, is_full_commit_hash
from .dependency_graph import DependencyGraph
from .lockfile import LockFile
from .repository_cache import RepositoryCache


class CommitResolver:
    """Maps each node's ``resolved_ref`` to a commit hash.

    A prior lock entry is reused only while its ref still equals the
    node's resolved ref. A node still at the ref it was discovered with
    keeps the commit checked out during discovery. Anything else asks the
    remote, which fails with the network disabled.
    """

    def __init__(self, cache: RepositoryCache, allow_network: bool = True):
        self.cache = cache
        self.allow_network = allow_network

    def resolve(self, graph: DependencyGraph, prior_lock: Optional[LockFile] = None) -> DependencyGraph:
        for package_key, node in graph.nodes.items():
            ref = node.resolved_ref or node.ref_constraint
            node.resolved_ref = ref
            node.ref_type = node.ref_type or detect_ref_type(ref)

            locked = prior_lock.get_dependency(package_key) if prior_lock else None
            if locked is not None and locked.ref == ref:
                node.commit_hash = locked.commit
            elif is_full_commit_hash(ref.lower()):
                node.commit_hash = ref.lower()
            elif node.checkout_commit and ref == node.ref_constraint:
                node.commit_hash = node.checkout_commit
            elif not self.allow_network:
                raise DependencyNotInstalledError(package_key)
            else:
                node.commit_hash = self.cache.resolve_commit(node.identifier, ref)
        return graph
