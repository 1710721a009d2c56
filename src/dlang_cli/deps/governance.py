"""Governance checks for locked dependencies.

Policies live in the ``governance`` section of model.yaml::

    governance:
      allowedSources:
        - github.com/acme
      blockedPackages:
        - legacy/
      requireStableVersions: true
      requireTeamOwnership: true
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from ..models.manifest import GovernancePolicy, ModelManifest
from .lockfile import LockFile
from .semver import is_pre_release


VIOLATION_BLOCKED_SOURCE = "blocked-source"
VIOLATION_UNSTABLE_VERSION = "unstable-version"
VIOLATION_MISSING_METADATA = "missing-metadata"

WORKSPACE_PACKAGE = "workspace"


@dataclass
class GovernanceViolation:
    type: str
    package_key: str
    message: str
    severity: str = "error"


class GovernanceValidator:
    """Validates a lock file against the workspace's governance policy."""

    def __init__(self, policy: Optional[GovernancePolicy] = None):
        self.policy = policy or GovernancePolicy()

    @classmethod
    def from_manifest(cls, manifest: ModelManifest) -> "GovernanceValidator":
        return cls(manifest.governance)

    def validate(self, lock_file: LockFile, manifest: ModelManifest) -> List[GovernanceViolation]:
        violations = []
        policy = self.policy

        for package_key in lock_file.get_package_keys():
            locked = lock_file.get_dependency(package_key)

            if policy.allowed_sources and not any(
                pattern in locked.resolved or package_key.startswith(pattern)
                for pattern in policy.allowed_sources
            ):
                violations.append(
                    GovernanceViolation(
                        VIOLATION_BLOCKED_SOURCE,
                        package_key,
                        f"Package from unauthorized source: {locked.resolved}",
                    )
                )

            if any(pattern in package_key for pattern in policy.blocked_packages):
                violations.append(
                    GovernanceViolation(
                        VIOLATION_BLOCKED_SOURCE,
                        package_key,
                        "Package is blocked by governance policy",
                    )
                )

            if policy.require_stable_versions and is_pre_release(locked.ref):
                violations.append(
                    GovernanceViolation(
                        VIOLATION_UNSTABLE_VERSION,
                        package_key,
                        f"Pre-release ref not allowed: {locked.ref}",
                    )
                )

        if policy.require_team_ownership:
            metadata = manifest.metadata or {}
            if not metadata.get("team") or not metadata.get("contact"):
                violations.append(
                    GovernanceViolation(
                        VIOLATION_MISSING_METADATA,
                        WORKSPACE_PACKAGE,
                        "Missing required team ownership metadata in model.yaml",
                        severity="warning",
                    )
                )

        return violations

    def generate_audit_report(self, lock_file: LockFile, manifest: ModelManifest, workspace_root: Path) -> str:
        metadata = manifest.metadata or {}
        violations = self.validate(lock_file, manifest)

        lines = [
            "=== Dependency Audit Report ===",
            "",
            f"Workspace: {workspace_root}",
            f"Team: {metadata.get('team') or 'N/A'}",
            f"Contact: {metadata.get('contact') or 'N/A'}",
            f"Domain: {metadata.get('domain') or 'N/A'}",
            "",
            "Dependencies:",
        ]
        for package_key in lock_file.get_package_keys():
            locked = lock_file.get_dependency(package_key)
            lines.append(f"  - {package_key}@{locked.ref}")
            lines.append(f"    Source: {locked.resolved}")
            lines.append(f"    Commit: {locked.commit}")

        lines.append("")
        if violations:
            lines.append("Violations:")
            for violation in violations:
                lines.append(f"  [{violation.severity.upper()}] {violation.package_key}: {violation.message}")
        else:
            lines.append("✓ No policy violations detected")

        return "\n".join(lines)
