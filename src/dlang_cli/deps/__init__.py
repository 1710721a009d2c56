"""Dependency resolution and workspace management for DomainLang."""

from .analyzer import DependencyAnalyzer, DependencyTreeNode, ReverseDependency, VersionPolicy
from .commit_resolver import CommitResolver
from .conflict_resolver import ConflictResolver
from .dependency_graph import DependencyGraph, DependencyGraphBuilder, GraphNode
from .governance import GovernanceValidator, GovernanceViolation
from .import_resolver import ImportResolver
from .lockfile import LockFile, LockedDependency, get_lockfile_path
from .manifest_store import ManifestStore
from .repository_cache import CacheStats, RepositoryCache
from .resolver import DependencyResolver
from .workspace_manager import WorkspaceManager, WorkspaceState

__all__ = [
    'DependencyAnalyzer',
    'DependencyTreeNode',
    'ReverseDependency',
    'VersionPolicy',
    'CommitResolver',
    'ConflictResolver',
    'DependencyGraph',
    'DependencyGraphBuilder',
    'GraphNode',
    'GovernanceValidator',
    'GovernanceViolation',
    'ImportResolver',
    'LockFile',
    'LockedDependency',
    'get_lockfile_path',
    'ManifestStore',
    'CacheStats',
    'RepositoryCache',
    'DependencyResolver',
    'WorkspaceManager',
    'WorkspaceState',
]
