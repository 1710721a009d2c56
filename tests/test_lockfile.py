"""Tests for the DomainLang lock file module."""

import json

import pytest

from dlang_cli.deps.dependency_graph import DependencyGraph, GraphNode
from dlang_cli.deps.lockfile import LockedDependency, LockFile, get_lockfile_path
from dlang_cli.models.dependency_reference import DependencyIdentifier, RefType

COMMIT = "0123456789abcdef0123456789abcdef01234567"


class TestLockedDependency:
    def test_to_dict_minimal(self):
        dep = LockedDependency(ref="v1.0.0", ref_type=RefType.TAG, resolved="https://github.com/a/b", commit=COMMIT)
        assert dep.to_dict() == {
            "ref": "v1.0.0",
            "refType": "tag",
            "resolved": "https://github.com/a/b",
            "commit": COMMIT,
        }

    def test_to_dict_with_integrity(self):
        dep = LockedDependency("main", RefType.BRANCH, "https://github.com/a/b", COMMIT, integrity="sha256-abc")
        assert dep.to_dict()["integrity"] == "sha256-abc"

    def test_from_dict(self):
        dep = LockedDependency.from_dict(
            {"ref": "main", "refType": "branch", "resolved": "https://github.com/a/b", "commit": COMMIT}
        )
        assert dep.ref_type == RefType.BRANCH
        assert dep.commit == COMMIT

    def test_from_dict_derives_missing_ref_type(self):
        dep = LockedDependency.from_dict({"ref": "v2.0.0", "resolved": "https://github.com/a/b", "commit": COMMIT})
        assert dep.ref_type == RefType.TAG

    @pytest.mark.parametrize(
        "data",
        [
            {"refType": "tag", "resolved": "https://github.com/a/b", "commit": COMMIT},
            {"ref": "v1.0.0", "commit": COMMIT},
            {"ref": "v1.0.0", "resolved": "https://github.com/a/b"},
            {"ref": "v1.0.0", "resolved": "https://github.com/a/b", "commit": "abc1234"},
            "not-a-mapping",
        ],
    )
    def test_from_dict_rejects_incomplete_entries(self, data):
        assert LockedDependency.from_dict(data) is None


class TestLockFile:
    def test_add_and_get_dependency(self):
        lock = LockFile()
        dep = LockedDependency("v1.0.0", RefType.TAG, "https://github.com/owner/repo", COMMIT)
        lock.add_dependency("owner/repo", dep)
        assert lock.has_dependency("owner/repo")
        assert not lock.has_dependency("other/repo")
        assert lock.get_dependency("owner/repo") is dep

    def test_to_json_sorted(self):
        lock = LockFile()
        lock.add_dependency("z/pkg", LockedDependency("main", RefType.BRANCH, "https://github.com/z/pkg", COMMIT))
        lock.add_dependency("a/pkg", LockedDependency("main", RefType.BRANCH, "https://github.com/a/pkg", COMMIT))
        data = json.loads(lock.to_json())
        assert data["version"] == "1"
        assert list(data["dependencies"]) == ["a/pkg", "z/pkg"]

    def test_from_json(self):
        json_str = json.dumps(
            {
                "version": "1",
                "dependencies": {
                    "acme/core": {
                        "ref": "v1.5.0",
                        "refType": "tag",
                        "resolved": "https://github.com/acme/core",
                        "commit": COMMIT,
                    }
                },
            }
        )
        lock = LockFile.from_json(json_str)
        assert lock.get_package_keys() == ["acme/core"]
        assert lock.get_dependency("acme/core").ref == "v1.5.0"

    def test_from_json_drops_bad_entries_only(self):
        json_str = json.dumps(
            {
                "version": "1",
                "dependencies": {
                    "good/pkg": {"ref": "main", "resolved": "https://github.com/good/pkg", "commit": COMMIT},
                    "bad/pkg": {"ref": "main"},
                },
            }
        )
        assert LockFile.from_json(json_str).get_package_keys() == ["good/pkg"]

    def test_unknown_version_falls_back(self):
        assert LockFile.from_json(json.dumps({"version": "99", "dependencies": {}})).version == "1"
        assert LockFile.from_json(json.dumps({"dependencies": {}})).version == "1"

    def test_from_json_invalid(self):
        with pytest.raises(ValueError):
            LockFile.from_json("{not json")

    def test_write_and_read(self, tmp_path):
        lock = LockFile()
        lock.add_dependency(
            "acme/core",
            LockedDependency("v1.0.0", RefType.TAG, "https://github.com/acme/core", COMMIT, integrity="sha256-x"),
        )
        path = get_lockfile_path(tmp_path)
        lock.write(path)

        loaded = LockFile.read(path)
        assert loaded.to_dict() == lock.to_dict()

    def test_read_nonexistent(self, tmp_path):
        assert LockFile.read(tmp_path / "model.lock") is None

    def test_read_corrupt(self, tmp_path):
        path = tmp_path / "model.lock"
        path.write_text("{{{", encoding="utf-8")
        assert LockFile.read(path) is None

    def test_get_lockfile_path(self, tmp_path):
        assert get_lockfile_path(tmp_path) == tmp_path / "model.lock"


class TestFromGraph:
    def _node(self, key, ref, commit):
        ident = DependencyIdentifier.parse(f"{key}@{ref}")
        return GraphNode(
            package_key=key,
            ref_constraint=ref,
            identifier=ident,
            repo_url=ident.repo_url,
            resolved_ref=ref,
            ref_type=ident.ref_type,
            commit_hash=commit,
        )

    def test_from_graph(self):
        graph = DependencyGraph(nodes={"acme/core": self._node("acme/core", "v1.5.0", COMMIT)})
        lock = LockFile.from_graph(graph, {"acme/core": "sha256-abc"})
        dep = lock.get_dependency("acme/core")
        assert dep.ref == "v1.5.0"
        assert dep.ref_type == RefType.TAG
        assert dep.resolved == "https://github.com/acme/core"
        assert dep.integrity == "sha256-abc"

    def test_from_graph_rejects_unresolved(self):
        graph = DependencyGraph(nodes={"acme/core": self._node("acme/core", "v1.5.0", None)})
        with pytest.raises(ValueError, match="acme/core"):
            LockFile.from_graph(graph)
