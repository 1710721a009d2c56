"""Structured errors raised by the DomainLang dependency system.

Every error carries a human-readable message and, where one exists, a
concrete hint telling the user how to fix the problem. Diagnostics layers
consume them through :meth:`DependencyError.to_dict`.
"""

from typing import Any, Dict, List, Optional


class DependencyError(Exception):
    """Base class for all dependency resolution errors."""

    kind = "dependency-error"

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.hint = hint

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message}\nHint: {self.hint}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the ``{kind, message, hint}`` shape used by diagnostics."""
        return {"kind": self.kind, "message": self.message, "hint": self.hint}


class InvalidSpecifierError(DependencyError):
    """A dependency specifier string could not be parsed."""

    kind = "invalid-specifier"

    def __init__(self, specifier: str, hint: Optional[str] = None):
        super().__init__(
            f"Invalid git import specifier: '{specifier}'",
            hint or "Use 'owner/repo' or 'owner/repo@ref' format (e.g., 'domainlang/core@v1.0.0').",
        )
        self.specifier = specifier


class UnresolvableRefError(DependencyError):
    """A ref could not be mapped to a commit on the remote."""

    kind = "unresolvable-ref"

    def __init__(self, repo_url: str, ref: str, hint: Optional[str] = None):
        super().__init__(
            f"Could not resolve ref '{ref}' for {repo_url}",
            hint or "Check that the tag, branch, or commit exists in the repository.",
        )
        self.repo_url = repo_url
        self.ref = ref


class EntryPointNotFoundError(DependencyError):
    """The package's declared entry file is missing after checkout."""

    kind = "entry-point-not-found"

    def __init__(self, package: str, entry: str, hint: Optional[str] = None):
        super().__init__(
            f"Entry point '{entry}' not found in package '{package}'",
            hint or "Ensure the package has an entry point file (default: index.dlang) "
            "or set 'model.entry' in its model.yaml.",
        )
        self.package = package
        self.entry = entry


class InvalidManifestError(DependencyError):
    """The manifest violates the structural rules of model.yaml."""

    kind = "invalid-manifest"

    def __init__(self, message: str, hint: Optional[str] = None, manifest_path: Optional[str] = None):
        if manifest_path:
            message = f"{message} (in {manifest_path})"
        super().__init__(message, hint)
        self.manifest_path = manifest_path


class VersionConflictError(DependencyError):
    """Dependents require refs of one package that cannot be reconciled."""

    kind = "version-conflict"

    def __init__(
        self,
        package_key: str,
        requirements: List[tuple],
        reason: str,
        suggested_ref: str,
    ):
        lines = [f"Dependency ref conflict for '{package_key}': {reason}"]
        for parent, ref in requirements:
            lines.append(f"  └─ {parent} requires {package_key}@{ref}")
        hint = (
            "Add an override in model.yaml to choose the ref explicitly:\n\n"
            "  overrides:\n"
            f"    {package_key}: {suggested_ref}"
        )
        super().__init__("\n".join(lines), hint)
        self.package_key = package_key
        self.requirements = list(requirements)
        self.refs = sorted({ref for _, ref in requirements})
        self.dependents = [parent for parent, _ in requirements]
        self.suggested_ref = suggested_ref


class CyclicDependencyError(DependencyError):
    """Packages depend on each other in a cycle."""

    kind = "cyclic-dependency"

    def __init__(self, cycle: List[str]):
        self.cycle = list(cycle)
        self.cycle_path = " → ".join(cycle)
        super().__init__(
            f"Cyclic package dependency detected:\n  {self.cycle_path}",
            "Extract shared types into a separate package that both can depend on.",
        )


class MissingLockFileError(DependencyError):
    """No lock file exists and network resolution is disabled."""

    kind = "missing-lock-file"

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message or "Lock file (model.lock) not found and network access is disabled.",
            "Run 'dlang install' to generate the lock file.",
        )


class DependencyNotInstalledError(DependencyError):
    """A locked package is not present in the cache and the network is disabled."""

    kind = "dependency-not-installed"

    def __init__(self, package_key: str):
        super().__init__(
            f"Dependency '{package_key}' not installed",
            "Run 'dlang install' to fetch dependencies and generate model.lock.",
        )
        self.package_key = package_key


class GitOperationError(DependencyError):
    """A git subprocess failed (clone, fetch, checkout or ls-remote)."""

    kind = "git-operation-failed"

    def __init__(self, operation: str, detail: str, hint: Optional[str] = None):
        super().__init__(
            f"git {operation} failed: {detail}",
            hint or "Check your network connection and verify the repository URL is correct.",
        )
        self.operation = operation


class ResolutionCancelledError(DependencyError):
    """The caller cancelled dependency resolution."""

    kind = "resolution-cancelled"

    def __init__(self):
        super().__init__("Dependency resolution was cancelled")


class WorkspaceNotFoundError(DependencyError):
    """No model.yaml was found in the start directory or any parent."""

    kind = "workspace-not-found"

    def __init__(self, start_path: str):
        super().__init__(
            f"Workspace root (directory with model.yaml) not found from '{start_path}'",
            "Create a model.yaml at the root of your DomainLang project.",
        )
        self.start_path = start_path


class ImportResolutionError(DependencyError):
    """An import specifier could not be mapped to a model file."""

    kind = "import-resolution"

    def __init__(self, specifier: str, message: str, hint: Optional[str] = None):
        super().__init__(message, hint)
        self.specifier = specifier
