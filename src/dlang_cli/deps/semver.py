"""Semantic versioning utilities for git refs.

Supported formats:
- "1.0.0" or "v1.0.0" (tags)
- "1.0.0-alpha.1" (pre-release)
- "main", "develop" (branches, never parse as SemVer)
- "abc123def" (commit SHAs, never parse as SemVer)
"""

import re
from dataclasses import dataclass
from functools import cmp_to_key
from typing import List, Optional

from ..models.dependency_reference import RefType, detect_ref_type


_SEMVER_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)(?:-(.+))?$")
_PRE_RELEASE_MARKER_RE = re.compile(r"-(alpha|beta|rc|pre|dev|snapshot)", re.IGNORECASE)


@dataclass(frozen=True)
class SemVer:
    """Parsed semantic version. ``original`` keeps the ref exactly as written."""

    major: int
    minor: int
    patch: int
    pre_release: Optional[str] = None
    original: str = ""


def parse_semver(ref: str) -> Optional[SemVer]:
    """Parse ``[v]major.minor.patch[-prerelease]``; anything else returns None.

    >>> parse_semver("v1.2.3")
    SemVer(major=1, minor=2, patch=3, pre_release=None, original='v1.2.3')
    >>> parse_semver("main") is None
    True
    """
    normalized = ref[1:] if ref.startswith("v") else ref
    match = _SEMVER_RE.match(normalized)
    if not match:
        return None
    return SemVer(
        major=int(match.group(1)),
        minor=int(match.group(2)),
        patch=int(match.group(3)),
        pre_release=match.group(4),
        original=ref,
    )


def compare_semver(a: SemVer, b: SemVer) -> int:
    """Negative if a < b, positive if a > b, zero if equal.

    Pre-releases sort below the release they precede; two pre-releases
    compare their suffixes lexicographically.
    """
    for left, right in ((a.major, b.major), (a.minor, b.minor), (a.patch, b.patch)):
        if left != right:
            return left - right

    if a.pre_release and not b.pre_release:
        return -1
    if not a.pre_release and b.pre_release:
        return 1
    if a.pre_release and b.pre_release:
        return (a.pre_release > b.pre_release) - (a.pre_release < b.pre_release)
    return 0


def pick_latest(refs: List[str]) -> Optional[str]:
    """Return the highest SemVer ref (original spelling), ignoring unparseable refs."""
    parsed = [v for v in (parse_semver(ref) for ref in refs) if v is not None]
    if not parsed:
        return None
    latest = parsed[0]
    for candidate in parsed[1:]:
        if compare_semver(candidate, latest) > 0:
            latest = candidate
    return latest.original


def _compare_refs_descending(a: str, b: str) -> int:
    semver_a = parse_semver(a)
    semver_b = parse_semver(b)
    if semver_a and semver_b:
        return compare_semver(semver_b, semver_a)
    if semver_a:
        return -1
    if semver_b:
        return 1
    return (b > a) - (b < a)


def sort_versions_descending(refs: List[str]) -> List[str]:
    """Newest first. SemVer refs rank above non-SemVer refs, which sort lexicographically."""
    return sorted(refs, key=cmp_to_key(_compare_refs_descending))


def is_pre_release(ref: str) -> bool:
    """True for a parsed pre-release suffix, or any ref carrying a pre-release marker.

    Refs like ``v1.0-beta`` count even though they are not strict SemVer.
    """
    parsed = parse_semver(ref)
    if parsed and parsed.pre_release:
        return True
    clean = ref[1:] if ref.startswith("v") else ref
    return bool(_PRE_RELEASE_MARKER_RE.search(clean))


def are_same_major(a: SemVer, b: SemVer) -> bool:
    return a.major == b.major


def get_major_version(ref: str) -> Optional[int]:
    parsed = parse_semver(ref)
    return parsed.major if parsed else None


def filter_stable_versions(refs: List[str]) -> List[str]:
    return [ref for ref in refs if not is_pre_release(ref)]


def filter_semver_tags(refs: List[str]) -> List[str]:
    """Keep only refs that classify as tags and parse as strict SemVer."""
    return [ref for ref in refs if detect_ref_type(ref) == RefType.TAG and parse_semver(ref) is not None]
