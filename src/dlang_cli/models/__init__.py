"""Models for DomainLang CLI data structures."""

from .dependency_reference import (
    DependencyIdentifier,
    RefType,
    detect_ref_type,
    is_full_commit_hash,
    is_git_specifier,
)
from .manifest import (
    DependencySpec,
    GovernancePolicy,
    ModelManifest,
)

__all__ = [
    "DependencyIdentifier",
    "RefType",
    "detect_ref_type",
    "is_full_commit_hash",
    "is_git_specifier",
    "DependencySpec",
    "GovernancePolicy",
    "ModelManifest",
]
