"""Model manifest (model.yaml) data structures and validation."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..errors import InvalidManifestError, InvalidSpecifierError
from .dependency_reference import DependencyIdentifier, is_git_specifier


PATH_ALIAS_PREFIX = "@"


@dataclass(frozen=True)
class DependencySpec:
    """A manifest dependency normalized to its canonical form.

    Exactly one of ``source`` (git coordinates) or ``local_path`` is set.
    """

    key: str
    source: Optional[str] = None
    ref: Optional[str] = None
    local_path: Optional[str] = None
    integrity: Optional[str] = None
    description: Optional[str] = None

    @property
    def is_local(self) -> bool:
        return self.local_path is not None

    def get_identifier(self) -> DependencyIdentifier:
        """Return the git identifier for a source dependency, pinned to its ref."""
        if self.source is None:
            raise ValueError(f"Dependency '{self.key}' is a local path dependency")
        identifier = DependencyIdentifier.parse(self.source)
        return identifier.with_ref(self.ref) if self.ref else identifier

    @property
    def package_key(self) -> Optional[str]:
        if self.source is None:
            return None
        return self.get_identifier().package_key


@dataclass
class GovernancePolicy:
    """Organizational policy from the manifest ``governance`` section."""

    allowed_sources: List[str] = field(default_factory=list)
    blocked_packages: List[str] = field(default_factory=list)
    require_stable_versions: bool = False
    require_team_ownership: bool = False

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "GovernancePolicy":
        data = data or {}
        return cls(
            allowed_sources=list(data.get("allowedSources") or []),
            blocked_packages=list(data.get("blockedPackages") or []),
            require_stable_versions=bool(data.get("requireStableVersions", False)),
            require_team_ownership=bool(data.get("requireTeamOwnership", False)),
        )


@dataclass
class ModelManifest:
    """Parsed and validated model.yaml."""

    name: Optional[str] = None
    version: Optional[str] = None
    entry: Optional[str] = None
    main: Optional[str] = None
    dependencies: Dict[str, DependencySpec] = field(default_factory=dict)
    paths: Dict[str, str] = field(default_factory=dict)
    overrides: Dict[str, str] = field(default_factory=dict)
    governance: GovernancePolicy = field(default_factory=GovernancePolicy)
    metadata: Dict[str, Any] = field(default_factory=dict)
    path: Optional[Path] = None

    def get_source_dependencies(self) -> List[DependencySpec]:
        """Git dependencies in declaration order."""
        return [dep for dep in self.dependencies.values() if not dep.is_local]

    def get_local_dependencies(self) -> List[DependencySpec]:
        return [dep for dep in self.dependencies.values() if dep.is_local]

    @classmethod
    def from_dict(
        cls,
        data: Any,
        manifest_path: Optional[Path] = None,
        workspace_root: Optional[Path] = None,
    ) -> "ModelManifest":
        """Build a manifest from parsed YAML, normalizing and validating every section.

        Args:
            data: Result of ``yaml.safe_load`` (``None`` for an empty file).
            manifest_path: Where the manifest was read from, used in messages
                and to resolve relative local paths.
            workspace_root: Boundary local paths must stay within. Defaults
                to the manifest's directory.

        Raises:
            InvalidManifestError: On any structural violation.
        """
        where = str(manifest_path) if manifest_path else None
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise InvalidManifestError(
                "Manifest must be a YAML mapping",
                "Start model.yaml with top-level keys such as 'model:' and 'dependencies:'.",
                where,
            )

        manifest_dir = Path(manifest_path).parent if manifest_path else Path(".")
        root = Path(workspace_root) if workspace_root else manifest_dir

        model = data.get("model") or {}
        if not isinstance(model, dict):
            raise InvalidManifestError("'model' section must be a mapping", None, where)

        dependencies: Dict[str, DependencySpec] = {}
        raw_deps = data.get("dependencies") or {}
        if not isinstance(raw_deps, dict):
            raise InvalidManifestError(
                "'dependencies' section must be a mapping",
                "Use 'owner/repo: v1.0.0' entries under 'dependencies:'.",
                where,
            )
        for key, raw in raw_deps.items():
            spec = normalize_dependency(str(key), raw, where)
            if spec.local_path is not None:
                validate_local_path(spec.local_path, spec.key, manifest_dir, root, where)
            dependencies[spec.key] = spec

        paths = data.get("paths") or {}
        if not isinstance(paths, dict):
            raise InvalidManifestError("'paths' section must be a mapping", None, where)
        validate_path_aliases(paths, manifest_dir, root, where)

        overrides = data.get("overrides") or {}
        if not isinstance(overrides, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in overrides.items()
        ):
            raise InvalidManifestError(
                "'overrides' must map package keys to ref strings",
                "Example:\n\n  overrides:\n    owner/repo: v1.2.0",
                where,
            )

        metadata = data.get("metadata") or {}
        if not isinstance(metadata, dict):
            metadata = {}

        return cls(
            name=model.get("name"),
            version=_as_str(model.get("version")),
            entry=model.get("entry"),
            main=model.get("main"),
            dependencies=dependencies,
            paths={str(k): str(v) for k, v in paths.items()},
            overrides=dict(overrides),
            governance=GovernancePolicy.from_dict(data.get("governance")),
            metadata=metadata,
            path=Path(manifest_path) if manifest_path else None,
        )


def normalize_dependency(key: str, raw: Any, where: Optional[str] = None) -> DependencySpec:
    """Normalize a string-or-mapping dependency entry to a :class:`DependencySpec`.

    - ``owner/repo: v1.0.0`` -> source derived from the key
    - ``{source, ref}`` -> git dependency
    - ``{path}`` -> local dependency
    - ``{ref}`` only -> source derived from the key when it is a git specifier
    """
    if isinstance(raw, (str, int, float)) and not isinstance(raw, bool):
        raw = {"ref": str(raw)}
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise InvalidManifestError(
            f"Invalid dependency '{key}': entry must be a ref string or a mapping",
            f"Use '{key}: v1.0.0' or '{key}: {{source: owner/repo, ref: v1.0.0}}'.",
            where,
        )

    source = raw.get("source")
    local_path = raw.get("path")
    ref = _as_str(raw.get("ref"))

    if source and local_path:
        raise InvalidManifestError(
            f"Invalid dependency '{key}': cannot specify both 'source' and 'path'",
            "Use 'source' for git dependencies or 'path' for local workspace dependencies.",
            where,
        )

    if not source and not local_path:
        if not is_git_specifier(key):
            raise InvalidManifestError(
                f"Invalid dependency '{key}': must specify either 'source' or 'path'",
                "Add 'source: owner/repo' for git dependencies, or 'path: ./local/path' for local packages.",
                where,
            )
        source = key

    if local_path:
        return DependencySpec(
            key=key,
            local_path=str(local_path),
            integrity=raw.get("integrity"),
            description=raw.get("description"),
        )

    try:
        identifier = DependencyIdentifier.parse(str(source))
    except InvalidSpecifierError as e:
        raise InvalidManifestError(
            f"Invalid dependency '{key}': source '{source}' is not a git specifier",
            e.hint,
            where,
        )

    if not ref and identifier.has_explicit_ref:
        ref = identifier.ref
    if not ref:
        raise InvalidManifestError(
            f"Invalid dependency '{key}': git dependencies must specify a 'ref'",
            "Add 'ref: v1.0.0' (tag), 'ref: main' (branch), or a commit SHA.",
            where,
        )
    # A '/' after '@' starts the subpath in import specifiers
    if "/" in ref:
        raise InvalidManifestError(
            f"Invalid dependency '{key}': ref '{ref}' cannot contain '/'",
            "Reference the branch by a name without slashes, or pin the commit SHA instead.",
            where,
        )

    return DependencySpec(
        key=key,
        source=str(source),
        ref=ref,
        integrity=raw.get("integrity"),
        description=raw.get("description"),
    )


def validate_path_aliases(paths: Dict[str, Any], manifest_dir: Path, workspace_root: Path, where: Optional[str]) -> None:
    for alias, target in paths.items():
        alias = str(alias)
        if not alias.startswith(PATH_ALIAS_PREFIX):
            raise InvalidManifestError(
                f"Invalid path alias '{alias}': path aliases must start with '{PATH_ALIAS_PREFIX}'",
                f"Rename to '{PATH_ALIAS_PREFIX}{alias}' in your model.yaml paths section.",
                where,
            )
        validate_local_path(str(target), alias, manifest_dir, workspace_root, where)


def validate_local_path(
    local_path: str,
    name: str,
    manifest_dir: Path,
    workspace_root: Path,
    where: Optional[str] = None,
) -> Path:
    """Ensure a local path is relative and does not escape the workspace.

    Returns:
        Path: The resolved absolute path.
    """
    if os.path.isabs(local_path) or Path(local_path).is_absolute():
        raise InvalidManifestError(
            f"Invalid local path '{name}': cannot use absolute path '{local_path}'",
            "Use relative paths (e.g., './lib', './packages/shared') for local dependencies.",
            where,
        )

    resolved = Path(os.path.normpath(manifest_dir.resolve() / local_path))
    root = Path(os.path.normpath(workspace_root.resolve()))
    try:
        resolved.relative_to(root)
    except ValueError:
        raise InvalidManifestError(
            f"Invalid local path '{name}': '{local_path}' resolves outside the workspace boundary "
            f"(resolved: {resolved}, workspace: {root})",
            "Local dependencies must be within the workspace. Move the dependency or use a git-based source.",
            where,
        )
    return resolved


def _as_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)
