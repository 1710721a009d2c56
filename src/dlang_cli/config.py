"""Configuration management for the DomainLang CLI."""

import os
import json
from pathlib import Path
from typing import Any, Dict


CONFIG_DIR = os.path.expanduser("~/.dlang")
CONFIG_FILE = os.path.join(CONFIG_DIR, "config.json")

MANIFEST_FILENAME = "model.yaml"
LOCKFILE_FILENAME = "model.lock"
DEFAULT_ENTRY = "index.dlang"
MODEL_FILE_EXTENSION = ".dlang"

# Project-local cache, like node_modules
DEFAULT_CACHE_SUBDIR = os.path.join(".dlang", "packages")
DEFAULT_GIT_TIMEOUT = 300


def ensure_config_exists() -> None:
    """Ensure the configuration directory and file exist."""
    if not os.path.exists(CONFIG_DIR):
        os.makedirs(CONFIG_DIR)

    if not os.path.exists(CONFIG_FILE):
        with open(CONFIG_FILE, "w") as f:
            json.dump({}, f)


def get_config() -> Dict[str, Any]:
    """Get the current configuration.

    Returns:
        dict: Current configuration.
    """
    ensure_config_exists()
    with open(CONFIG_FILE, "r") as f:
        return json.load(f)


def update_config(updates: Dict[str, Any]) -> None:
    """Update the configuration with new values.

    Args:
        updates (dict): Dictionary of configuration values to update.
    """
    config = get_config()
    config.update(updates)

    with open(CONFIG_FILE, "w") as f:
        json.dump(config, f, indent=2)


def get_cache_dir(workspace_root: Path) -> Path:
    """Return the package cache root for a workspace.

    Precedence: ``DLANG_CACHE_DIR`` env var, then ``cache_dir`` in the
    config file, then ``<workspace>/.dlang/packages``.
    """
    env_dir = os.environ.get("DLANG_CACHE_DIR")
    if env_dir:
        return Path(env_dir).expanduser()

    configured = get_config().get("cache_dir")
    if configured:
        return Path(configured).expanduser()

    return Path(workspace_root) / DEFAULT_CACHE_SUBDIR


def get_allow_network() -> bool:
    """Network access is allowed unless ``DLANG_OFFLINE`` is set or config disables it."""
    if os.environ.get("DLANG_OFFLINE", "").lower() in ("1", "true", "yes"):
        return False
    return bool(get_config().get("allow_network", True))


def get_git_timeout() -> int:
    """Timeout in seconds applied to each git subprocess."""
    return int(get_config().get("git_timeout", DEFAULT_GIT_TIMEOUT))
