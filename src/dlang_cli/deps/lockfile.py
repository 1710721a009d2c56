"""Lock file support for DomainLang dependency resolution.

Provides deterministic, reproducible installs by capturing the exact commit
every package resolved to. The lock file (``model.lock``) is JSON:

    {
      "version": "1",
      "dependencies": {
        "acme/core": {"ref": "v1.5.0", "refType": "tag",
                      "resolved": "https://github.com/acme/core",
                      "commit": "<40 hex chars>"}
      }
    }
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..config import LOCKFILE_FILENAME
from ..models.dependency_reference import RefType, detect_ref_type, is_full_commit_hash


KNOWN_LOCKFILE_VERSIONS = ("1",)
CURRENT_LOCKFILE_VERSION = KNOWN_LOCKFILE_VERSIONS[-1]
JSON_INDENT = 2


@dataclass
class LockedDependency:
    """A resolved dependency pinned to an exact commit."""

    ref: str
    ref_type: RefType
    resolved: str
    commit: str
    integrity: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict for JSON output."""
        result: Dict[str, Any] = {
            "ref": self.ref,
            "refType": self.ref_type.value,
            "resolved": self.resolved,
            "commit": self.commit,
        }
        if self.integrity:
            result["integrity"] = self.integrity
        return result

    @classmethod
    def from_dict(cls, data: Any) -> Optional["LockedDependency"]:
        """Deserialize from dict. Returns None when required fields are missing or malformed."""
        if not isinstance(data, dict):
            return None
        ref = data.get("ref")
        resolved = data.get("resolved")
        commit = data.get("commit")
        if not isinstance(ref, str) or not isinstance(resolved, str) or not isinstance(commit, str):
            return None
        if not is_full_commit_hash(commit):
            return None

        try:
            ref_type = RefType(data.get("refType"))
        except ValueError:
            ref_type = detect_ref_type(ref)

        integrity = data.get("integrity")
        return cls(
            ref=ref,
            ref_type=ref_type,
            resolved=resolved,
            commit=commit,
            integrity=integrity if isinstance(integrity, str) else None,
        )


@dataclass
class LockFile:
    """Lock file for reproducible dependency resolution."""

    version: str = CURRENT_LOCKFILE_VERSION
    dependencies: Dict[str, LockedDependency] = field(default_factory=dict)

    def add_dependency(self, package_key: str, dep: LockedDependency) -> None:
        """Add a dependency to the lock file."""
        self.dependencies[package_key] = dep

    def get_dependency(self, package_key: str) -> Optional[LockedDependency]:
        """Get a dependency by its package key."""
        return self.dependencies.get(package_key)

    def has_dependency(self, package_key: str) -> bool:
        """Check if a dependency exists."""
        return package_key in self.dependencies

    def get_package_keys(self) -> List[str]:
        return sorted(self.dependencies)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "dependencies": {key: self.dependencies[key].to_dict() for key in sorted(self.dependencies)},
        }

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=JSON_INDENT, ensure_ascii=False) + "\n"

    @classmethod
    def from_dict(cls, data: Any) -> "LockFile":
        """Permissive decoding.

        Entries missing required fields are dropped rather than failing the
        whole file, and an unknown or missing version falls back to the
        oldest known format.
        """
        if not isinstance(data, dict):
            return cls()

        version = data.get("version")
        if not isinstance(version, str) or version not in KNOWN_LOCKFILE_VERSIONS:
            version = KNOWN_LOCKFILE_VERSIONS[0]

        lock = cls(version=version)
        raw_deps = data.get("dependencies")
        if isinstance(raw_deps, dict):
            for key, dep_data in raw_deps.items():
                dep = LockedDependency.from_dict(dep_data)
                if dep is not None:
                    lock.add_dependency(str(key), dep)
        return lock

    @classmethod
    def from_json(cls, json_str: str) -> "LockFile":
        """Deserialize from JSON string.

        Raises:
            ValueError: If the content is not valid JSON.
        """
        if not json_str.strip():
            return cls()
        return cls.from_dict(json.loads(json_str))

    def write(self, path: Path) -> None:
        """Write lock file to disk."""
        path.write_text(self.to_json(), encoding="utf-8")

    @classmethod
    def read(cls, path: Path) -> Optional["LockFile"]:
        """Read lock file from disk. Returns None if not exists or corrupt."""
        if not path.exists():
            return None
        try:
            return cls.from_json(path.read_text(encoding="utf-8"))
        except ValueError:
            return None

    @classmethod
    def from_graph(cls, graph, integrities: Optional[Dict[str, str]] = None) -> "LockFile":
        """Create a lock file from a fully resolved dependency graph.

        Args:
            graph: A DependencyGraph whose nodes carry resolved_ref, ref_type and commit_hash.
            integrities: Optional package_key -> integrity hash declared in the manifest.

        Raises:
            ValueError: If any node is unresolved.
        """
        integrities = integrities or {}
        lock = cls()
        for package_key, node in graph.nodes.items():
            if not node.resolved_ref or not node.commit_hash:
                raise ValueError(f"Failed to resolve ref for '{package_key}'")
            lock.add_dependency(
                package_key,
                LockedDependency(
                    ref=node.resolved_ref,
                    ref_type=node.ref_type or detect_ref_type(node.resolved_ref),
                    resolved=node.repo_url,
                    commit=node.commit_hash,
                    integrity=integrities.get(package_key),
                ),
            )
        return lock


def get_lockfile_path(project_root: Path) -> Path:
    """Get the path to the lock file for a project."""
    return Path(project_root) / LOCKFILE_FILENAME
