"""Utilities for classifying git hosts and building clone URLs.

Platform detection is purely string based; no network calls are made.
"""

import os
import re
from typing import Optional


PLATFORM_GITHUB = "github"
PLATFORM_GITLAB = "gitlab"
PLATFORM_BITBUCKET = "bitbucket"
PLATFORM_GENERIC = "generic"

# Token env vars consulted per platform, first match wins
_TOKEN_ENV_VARS = {
    PLATFORM_GITHUB: ("DLANG_GITHUB_TOKEN", "GITHUB_TOKEN"),
    PLATFORM_GITLAB: ("DLANG_GITLAB_TOKEN", "GITLAB_TOKEN"),
    PLATFORM_BITBUCKET: ("DLANG_BITBUCKET_TOKEN",),
}


def default_host() -> str:
    """Host assumed for ``owner/repo`` shorthand; ``GITHUB_HOST`` overrides github.com."""
    return os.environ.get("GITHUB_HOST", "github.com")


def is_github_hostname(hostname: Optional[str]) -> bool:
    """github.com or a GitHub Enterprise Cloud host (``*.ghe.com``)."""
    if not hostname:
        return False
    host = hostname.lower()
    return host == "github.com" or host.endswith(".ghe.com")


def is_gitlab_hostname(hostname: Optional[str]) -> bool:
    """Return True for gitlab.com and self-hosted instances named gitlab.*."""
    if not hostname:
        return False
    h = hostname.lower()
    return h == "gitlab.com" or h.startswith("gitlab.")


def is_bitbucket_hostname(hostname: Optional[str]) -> bool:
    """Return True for bitbucket.org."""
    if not hostname:
        return False
    return hostname.lower() == "bitbucket.org"


def detect_platform(hostname: Optional[str]) -> str:
    """Classify a hostname as github, gitlab, bitbucket or generic."""
    if is_github_hostname(hostname):
        return PLATFORM_GITHUB
    if is_gitlab_hostname(hostname):
        return PLATFORM_GITLAB
    if is_bitbucket_hostname(hostname):
        return PLATFORM_BITBUCKET
    return PLATFORM_GENERIC


def get_token_for_platform(platform: str) -> Optional[str]:
    """Return an access token for the platform from the environment, if any."""
    for var in _TOKEN_ENV_VARS.get(platform, ()):
        token = os.environ.get(var)
        if token:
            return token
    return None


def build_https_clone_url(host: str, repo_path: str, token: Optional[str] = None) -> str:
    """``https://host/owner/repo.git``, with ``x-access-token`` credentials when a token is given.

    The token is embedded verbatim; never log the result.
    """
    credentials = f"x-access-token:{token}@" if token else ""
    return f"https://{credentials}{host}/{repo_path}.git"


_FQDN_RE = re.compile(
    r"^[a-zA-Z0-9](?:[a-zA-Z0-9-]*[a-zA-Z0-9])?(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]*[a-zA-Z0-9])?)+$"
)


def is_valid_fqdn(hostname: Optional[str]) -> bool:
    """True for dotted hostnames whose labels are alphanumeric with inner hyphens.

    Anything after the first ``/`` is ignored, so ``github.com/owner/repo`` passes.
    """
    if not hostname:
        return False
    return bool(_FQDN_RE.match(hostname.split("/", 1)[0]))


def sanitize_token_url_in_message(message: str, host: Optional[str] = None) -> str:
    """Mask ``https://<credentials>@`` in git output, optionally only for ``host``."""
    if host:
        return re.sub(rf"https://[^@\s/]+@{re.escape(host)}", f"https://***@{host}", message)
    return re.sub(r"https://[^@\s/]+@", "https://***@", message)
