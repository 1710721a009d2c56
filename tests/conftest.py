"""Shared fixtures for dlang-cli tests."""

import hashlib
import os
from pathlib import Path

import pytest
import yaml

import dlang_cli.config
from dlang_cli.deps.repository_cache import RepositoryCache
from dlang_cli.models.dependency_reference import RefType, detect_ref_type
from dlang_cli.utils.console import _reset_console


def commit_for(seed: str) -> str:
    """A deterministic 40-char lowercase hex commit hash."""
    return hashlib.sha1(seed.encode("utf-8")).hexdigest()


def write_manifest(directory: Path, data: dict) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / "model.yaml"
    path.write_text(yaml.dump(data, sort_keys=False), encoding="utf-8")
    return path


class FakeRemoteCache(RepositoryCache):
    """RepositoryCache whose remotes are in-memory file trees instead of git servers.

    ``remotes`` maps ``owner/repo`` to ``{ref: files}`` where ``files`` maps
    relative paths to text (``model.yaml`` may be given as a dict).
    """

    def __init__(self, cache_root: Path, remotes: dict):
        super().__init__(cache_root)
        self.remotes = remotes
        self.downloads = []
        self.ls_remote_calls = 0

    def commit(self, package_key: str, ref: str) -> str:
        return commit_for(f"{package_key}@{ref}")

    def list_remote_refs(self, identifier, patterns=None):
        self.ls_remote_calls += 1
        refs = {}
        for ref in self.remotes.get(identifier.package_key, {}):
            kind = "tags" if detect_ref_type(ref) == RefType.TAG else "heads"
            refs[f"refs/{kind}/{ref}"] = self.commit(identifier.package_key, ref)
        return refs

    def _download(self, identifier, commit, target):
        self.downloads.append((identifier.package_key, commit))
        for ref, files in self.remotes.get(identifier.package_key, {}).items():
            if self.commit(identifier.package_key, ref) != commit:
                continue
            target.mkdir(parents=True, exist_ok=True)
            for rel_path, content in files.items():
                file_path = target / rel_path
                file_path.parent.mkdir(parents=True, exist_ok=True)
                if isinstance(content, dict):
                    content = yaml.dump(content, sort_keys=False)
                file_path.write_text(content, encoding="utf-8")
            return
        raise AssertionError(f"unknown commit {commit} for {identifier.package_key}")


def package_files(dependencies=None, entry_content="Domain Core {}", **model):
    """Files of a package at one ref: a model.yaml plus an index.dlang."""
    manifest = {"model": {"name": model.get("name", "pkg"), **{k: v for k, v in model.items() if k != "name"}}}
    if dependencies:
        manifest["dependencies"] = dependencies
    entry = model.get("entry", "index.dlang")
    return {"model.yaml": manifest, entry: entry_content}


@pytest.fixture(autouse=True)
def isolated_config(tmp_path_factory, monkeypatch):
    """Point the config file at a temp dir and clear environment overrides."""
    config_dir = tmp_path_factory.mktemp("dlang-config")
    monkeypatch.setattr(dlang_cli.config, "CONFIG_DIR", str(config_dir))
    monkeypatch.setattr(dlang_cli.config, "CONFIG_FILE", os.path.join(str(config_dir), "config.json"))
    for var in (
        "GITHUB_HOST",
        "DLANG_CACHE_DIR",
        "DLANG_OFFLINE",
        "DLANG_GITHUB_TOKEN",
        "GITHUB_TOKEN",
        "DLANG_GITLAB_TOKEN",
        "GITLAB_TOKEN",
        "DLANG_BITBUCKET_TOKEN",
    ):
        monkeypatch.delenv(var, raising=False)
    _reset_console()
    yield
    _reset_console()


@pytest.fixture
def workspace(tmp_path):
    root = tmp_path / "workspace"
    root.mkdir()
    return root


@pytest.fixture
def make_cache(tmp_path):
    def _make(remotes):
        return FakeRemoteCache(tmp_path / "cache", remotes)

    return _make
