"""Dependency identifiers: parsing specifier strings and classifying git refs."""

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

from ..errors import InvalidSpecifierError
from ..utils.git_host import (
    PLATFORM_GITHUB,
    build_https_clone_url,
    default_host,
    detect_platform,
    is_valid_fqdn,
)


DEFAULT_REF = "main"

# owner/repo[@ref][/subpath]
_SHORTHAND_RE = re.compile(
    r"^(?P<owner>[a-zA-Z0-9-]+)/(?P<repo>[a-zA-Z0-9_.-]+)(?:@(?P<ref>[^/]+))?(?:/(?P<subpath>.+))?$"
)
# scheme://host/owner/repo[.git][@ref][/subpath]
_URL_RE = re.compile(
    r"^(?P<scheme>https|git)://(?P<host>[^/@\s]+)/(?P<owner>[^/@\s]+)/(?P<repo>[^/@\s]+?)(?:\.git)?"
    r"(?:@(?P<ref>[^/\s]+))?(?:/(?P<subpath>\S+))?$"
)
_COMMIT_RE = re.compile(r"^[0-9a-f]{7,40}$", re.IGNORECASE)
_TAG_RE = re.compile(r"^v?\d+\.\d+\.\d+")
_FULL_COMMIT_RE = re.compile(r"^(?:[0-9a-f]{40}|[0-9a-f]{64})$")


class RefType(str, Enum):
    """Kind of git reference a dependency is pinned to."""

    TAG = "tag"
    BRANCH = "branch"
    COMMIT = "commit"


def detect_ref_type(ref: str) -> RefType:
    """Classify a ref string.

    Commit SHAs (7-40 hex chars) win over everything, then anything starting
    with an optionally v-prefixed ``X.Y.Z`` is a tag, everything else is a
    branch. Classification does not require the tag to be strict SemVer,
    so ``1.0.0-beta`` and ``v2.0.0.1`` are both tags.
    """
    if _COMMIT_RE.match(ref):
        return RefType.COMMIT
    if _TAG_RE.match(ref):
        return RefType.TAG
    return RefType.BRANCH


def is_full_commit_hash(ref: Optional[str]) -> bool:
    """True for a complete lowercase SHA-1 (40) or SHA-256 (64) object id."""
    return bool(ref) and bool(_FULL_COMMIT_RE.match(ref))


def is_git_specifier(specifier: str) -> bool:
    """Return True if the string looks like a git dependency rather than a local path.

    Relative paths, absolute paths and ``@alias`` imports are never git
    specifiers, so callers can use this before attempting :meth:`DependencyIdentifier.parse`.
    """
    if not specifier or specifier.startswith((".", "/", "@", "~", "\\")):
        return False
    if _SHORTHAND_RE.match(specifier):
        return True
    match = _URL_RE.match(specifier)
    return bool(match and is_valid_fqdn(match.group("host")))


@dataclass(frozen=True)
class DependencyIdentifier:
    """Immutable identity of a git dependency derived from a specifier string."""

    platform: str
    owner: str
    repo: str
    ref: str = DEFAULT_REF
    subpath: Optional[str] = None
    host: str = "github.com"
    original: str = field(default="", compare=False)
    has_explicit_ref: bool = field(default=False, compare=False)

    @property
    def package_key(self) -> str:
        """Canonical ``owner/repo`` key identifying the package in the graph and lock file."""
        return f"{self.owner}/{self.repo}"

    @property
    def repo_url(self) -> str:
        return f"https://{self.host}/{self.owner}/{self.repo}"

    @property
    def ref_type(self) -> RefType:
        return detect_ref_type(self.ref)

    def clone_url(self, token: Optional[str] = None) -> str:
        return build_https_clone_url(self.host, self.package_key, token)

    def with_ref(self, ref: str) -> "DependencyIdentifier":
        return replace(self, ref=ref, has_explicit_ref=True)

    def to_specifier(self) -> str:
        """Render back to a specifier string that :meth:`parse` accepts."""
        if self.platform == PLATFORM_GITHUB and self.host == default_host():
            base = self.package_key
        else:
            base = self.repo_url
        spec = f"{base}@{self.ref}"
        if self.subpath:
            spec = f"{spec}/{self.subpath}"
        return spec

    def __str__(self) -> str:
        return self.to_specifier()

    @classmethod
    def parse(cls, specifier: str) -> "DependencyIdentifier":
        """Parse a specifier string.

        Supported formats:
        - ``owner/repo`` (GitHub shorthand, ref defaults to ``main``)
        - ``owner/repo@ref`` and ``owner/repo@ref/sub/path``
        - ``https://github.com/owner/repo@ref`` (also gitlab.com, bitbucket.org)
        - ``https://git.example.com/owner/repo@ref`` and ``git://host/owner/repo``

        Raises:
            InvalidSpecifierError: If the string matches none of the formats.
        """
        if not isinstance(specifier, str) or not specifier.strip():
            raise InvalidSpecifierError(str(specifier))
        specifier = specifier.strip()

        match = _SHORTHAND_RE.match(specifier)
        if match:
            return cls(
                platform=PLATFORM_GITHUB,
                owner=match.group("owner"),
                repo=match.group("repo"),
                ref=match.group("ref") or DEFAULT_REF,
                subpath=_clean_subpath(match.group("subpath")),
                host=default_host(),
                original=specifier,
                has_explicit_ref=match.group("ref") is not None,
            )

        match = _URL_RE.match(specifier)
        if match and is_valid_fqdn(match.group("host")):
            host = match.group("host").lower()
            return cls(
                platform=detect_platform(host),
                owner=match.group("owner"),
                repo=match.group("repo"),
                ref=match.group("ref") or DEFAULT_REF,
                subpath=_clean_subpath(match.group("subpath")),
                host=host,
                original=specifier,
                has_explicit_ref=match.group("ref") is not None,
            )

        raise InvalidSpecifierError(
            specifier,
            "Supported formats: 'owner/repo', 'owner/repo@ref', "
            "'https://github.com/owner/repo@ref', 'https://gitlab.com/owner/repo@ref'.",
        )


def _clean_subpath(subpath: Optional[str]) -> Optional[str]:
    if not subpath:
        return None
    subpath = subpath.strip("/")
    if ".." in subpath.split("/"):
        raise InvalidSpecifierError(subpath, "Subpaths may not contain '..' segments.")
    return subpath or None
