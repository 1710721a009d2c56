"""Content-addressable cache of git checkouts.

Layout: ``<root>/<platform>/<owner>/<repo>/<commit>/``. A commit never
changes, so a cache hit is always valid and entries are never evicted
automatically. Concurrent processes populating the same commit are
tolerated: each checks out into a private temporary directory and the
first rename wins.
"""

import os
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from ..config import DEFAULT_ENTRY, DEFAULT_GIT_TIMEOUT, MANIFEST_FILENAME, MODEL_FILE_EXTENSION
from ..errors import (
    DependencyNotInstalledError,
    EntryPointNotFoundError,
    GitOperationError,
    UnresolvableRefError,
)
from ..models.dependency_reference import (
    DependencyIdentifier,
    RefType,
    detect_ref_type,
    is_full_commit_hash,
)
from ..utils.git_host import get_token_for_platform, sanitize_token_url_in_message


@dataclass
class CacheStats:
    """Size and entry count of the on-disk cache."""

    cache_dir: Path
    entry_count: int = 0
    total_size: int = 0


def read_package_entry(package_dir: Path) -> str:
    """Read a package's entry file name from its model.yaml.

    Uses ``model.entry``, then ``model.main``, then ``index.dlang``. A missing
    or unreadable manifest falls back to the default.
    """
    manifest_path = Path(package_dir) / MANIFEST_FILENAME
    if not manifest_path.is_file():
        return DEFAULT_ENTRY
    try:
        data = yaml.safe_load(manifest_path.read_text(encoding="utf-8")) or {}
    except (yaml.YAMLError, OSError):
        return DEFAULT_ENTRY
    model = data.get("model") if isinstance(data, dict) else None
    if not isinstance(model, dict):
        return DEFAULT_ENTRY
    return model.get("entry") or model.get("main") or DEFAULT_ENTRY


class RepositoryCache:
    """On-disk store of package checkouts keyed by (platform, owner, repo, commit)."""

    def __init__(self, cache_root: Path, git_executable: str = "git", timeout: int = DEFAULT_GIT_TIMEOUT):
        self.cache_root = Path(cache_root)
        self.git_executable = git_executable
        self.timeout = timeout

    def get_cache_path(self, identifier: DependencyIdentifier, commit: str) -> Path:
        return self.cache_root / identifier.platform / identifier.owner / identifier.repo / commit

    def is_cached(self, identifier: DependencyIdentifier, commit: str) -> bool:
        return self.get_cache_path(identifier, commit).is_dir()

    def ensure_checkout(self, identifier: DependencyIdentifier, commit: str, allow_network: bool = True) -> Path:
        """Return the checkout directory for a commit, downloading it on a miss.

        Raises:
            DependencyNotInstalledError: On a miss with network disabled.
            GitOperationError: If clone/fetch/checkout fails.
        """
        target = self.get_cache_path(identifier, commit)
        if target.is_dir():
            return target
        if not allow_network:
            raise DependencyNotInstalledError(identifier.package_key)
        self._download(identifier, commit, target)
        return target

    def _download(self, identifier: DependencyIdentifier, commit: str, target: Path) -> None:
        """Shallow-clone without checkout, fetch only the target commit, detach at it and strip .git."""
        target.parent.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=f".{commit[:12]}-", dir=target.parent))
        clone_url = identifier.clone_url(get_token_for_platform(identifier.platform))

        try:
            self._run_git(["clone", "--no-checkout", "--depth", "1", clone_url, str(staging)], operation="clone")
            self._run_git(["fetch", "--depth", "1", "origin", commit], cwd=staging, operation="fetch")
            self._run_git(["checkout", "--force", "--detach", commit], cwd=staging, operation="checkout")
            shutil.rmtree(staging / ".git", ignore_errors=True)
        except GitOperationError:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        try:
            staging.rename(target)
        except OSError:
            # Another process populated the same commit first; same commit means same tree
            shutil.rmtree(staging, ignore_errors=True)
            if not target.is_dir():
                raise

    def resolve_entry_point(
        self,
        identifier: DependencyIdentifier,
        commit: str,
        allow_network: bool = True,
    ) -> Path:
        """Return the file a parser should load for this identifier.

        Without a subpath this is the package's entry file. With a subpath,
        an explicit file wins, then a directory's own entry, then ``<subpath>.dlang``.

        Raises:
            EntryPointNotFoundError: If no matching file exists after checkout.
        """
        package_dir = self.ensure_checkout(identifier, commit, allow_network)
        label = f"{identifier.package_key}@{identifier.ref}"

        if identifier.subpath:
            target = package_dir / identifier.subpath
            if target.is_file():
                return target
            if target.is_dir():
                entry = read_package_entry(target)
                if (target / entry).is_file():
                    return target / entry
                raise EntryPointNotFoundError(label, f"{identifier.subpath}/{entry}")
            with_ext = target.with_name(target.name + MODEL_FILE_EXTENSION)
            if with_ext.is_file():
                return with_ext
            raise EntryPointNotFoundError(label, identifier.subpath)

        entry = read_package_entry(package_dir)
        entry_file = package_dir / entry
        if not entry_file.is_file():
            raise EntryPointNotFoundError(label, entry)
        return entry_file

    def list_remote_refs(self, identifier: DependencyIdentifier, patterns: Optional[List[str]] = None) -> Dict[str, str]:
        """List remote refs as ``{ref_name: commit}`` via ``git ls-remote``."""
        clone_url = identifier.clone_url(get_token_for_platform(identifier.platform))
        output = self._run_git(["ls-remote", clone_url, *(patterns or [])], operation="ls-remote")
        refs: Dict[str, str] = {}
        for line in output.splitlines():
            parts = line.strip().split("\t")
            if len(parts) == 2 and parts[0]:
                refs[parts[1]] = parts[0].lower()
        return refs

    def resolve_commit(self, identifier: DependencyIdentifier, ref: Optional[str] = None) -> str:
        """Resolve a tag, branch or commit to a full commit hash.

        Raises:
            UnresolvableRefError: If the remote has no matching ref and the ref is not a hash.
        """
        ref = ref or identifier.ref
        ref_type = detect_ref_type(ref)
        if ref_type == RefType.COMMIT and is_full_commit_hash(ref.lower()):
            return ref.lower()

        listing = self.list_remote_refs(identifier, [ref])
        commit = _select_ref(listing, ref)
        if commit:
            return commit

        if ref_type == RefType.COMMIT:
            prefix = ref.lower()
            matches = {sha for sha in self.list_remote_refs(identifier).values() if sha.startswith(prefix)}
            if len(matches) == 1:
                return matches.pop()
            raise UnresolvableRefError(
                identifier.repo_url,
                ref,
                "Short commit hashes can only be expanded when a branch or tag points at them. "
                "Use the full 40-character commit SHA.",
            )

        raise UnresolvableRefError(identifier.repo_url, ref)

    def clear_cache(self) -> None:
        """Remove every cached checkout."""
        shutil.rmtree(self.cache_root, ignore_errors=True)

    def get_cache_stats(self) -> CacheStats:
        stats = CacheStats(cache_dir=self.cache_root)
        if not self.cache_root.is_dir():
            return stats
        # platform/owner/repo/commit
        for entry in self.cache_root.glob("*/*/*/*"):
            if not entry.is_dir() or entry.name.startswith("."):
                continue
            stats.entry_count += 1
            for file_path in entry.rglob("*"):
                if file_path.is_file():
                    stats.total_size += file_path.stat().st_size
        return stats

    def _run_git(self, args: List[str], cwd: Optional[Path] = None, operation: str = "") -> str:
        cmd = [self.git_executable, *args]
        env = dict(os.environ, GIT_TERMINAL_PROMPT="0")
        try:
            result = subprocess.run(
                cmd,
                cwd=str(cwd) if cwd else None,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env=env,
            )
        except subprocess.TimeoutExpired:
            raise GitOperationError(operation, f"timed out after {self.timeout}s")
        except FileNotFoundError:
            raise GitOperationError(
                operation,
                f"'{self.git_executable}' executable not found",
                "Install git and make sure it is on your PATH.",
            )

        if result.returncode != 0:
            detail = result.stderr.strip() or f"exit code {result.returncode}"
            raise GitOperationError(operation, sanitize_token_url_in_message(detail))
        return result.stdout


def _select_ref(listing: Dict[str, str], ref: str) -> Optional[str]:
    """Pick the commit for a ref, preferring peeled tags, then tags, then branches."""
    for candidate in (f"refs/tags/{ref}^{{}}", f"refs/tags/{ref}", f"refs/heads/{ref}", ref):
        if candidate in listing:
            return listing[candidate]
    for name, commit in listing.items():
        if name.endswith(f"/{ref}"):
            return commit
    return None
