"""Reading, validating and caching model.yaml manifests."""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

import yaml

from ..config import MANIFEST_FILENAME
from ..errors import InvalidManifestError
from ..models.manifest import ModelManifest


@dataclass
class _CachedManifest:
    mtime_ns: int
    manifest: ModelManifest


def find_manifest_path(start_dir: Path) -> Optional[Path]:
    """Walk upward from ``start_dir`` to the filesystem root looking for model.yaml."""
    current = Path(start_dir).resolve()
    if current.is_file():
        current = current.parent
    for directory in (current, *current.parents):
        candidate = directory / MANIFEST_FILENAME
        if candidate.is_file():
            return candidate
    return None


def parse_manifest_file(path: Path, workspace_root: Optional[Path] = None) -> ModelManifest:
    """Parse and validate a manifest file without caching.

    Raises:
        InvalidManifestError: If the YAML is malformed or fails validation.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise InvalidManifestError(
            f"Failed to parse manifest: {e}",
            "Check model.yaml for YAML syntax errors.",
            str(path),
        )
    return ModelManifest.from_dict(data, manifest_path=path, workspace_root=workspace_root)


class ManifestStore:
    """Caches parsed manifests, re-reading a file only when its mtime changes."""

    def __init__(self):
        self._cache: Dict[Path, _CachedManifest] = {}
        self.read_count = 0

    @staticmethod
    def find_manifest_path(start_dir: Path) -> Optional[Path]:
        return find_manifest_path(start_dir)

    def load(self, path: Path, workspace_root: Optional[Path] = None) -> ModelManifest:
        """Return the manifest at ``path``, parsing it only if changed since the last load.

        Raises:
            FileNotFoundError: If the manifest does not exist.
            InvalidManifestError: If it fails to parse or validate.
        """
        key = Path(path).resolve()
        mtime_ns = key.stat().st_mtime_ns
        cached = self._cache.get(key)
        if cached is not None and cached.mtime_ns == mtime_ns:
            return cached.manifest

        self.read_count += 1
        manifest = parse_manifest_file(key, workspace_root)
        self._cache[key] = _CachedManifest(mtime_ns=mtime_ns, manifest=manifest)
        return manifest

    def invalidate(self, path: Optional[Path] = None) -> None:
        """Drop one cached manifest, or all of them when ``path`` is None."""
        if path is None:
            self._cache.clear()
        else:
            self._cache.pop(Path(path).resolve(), None)

    def read_package_manifest(self, package_dir: Path) -> Optional[ModelManifest]:
        """Load a fetched package's own manifest; None when the package has none.

        The package directory is the workspace boundary for its local paths.
        """
        manifest_path = Path(package_dir) / MANIFEST_FILENAME
        if not manifest_path.is_file():
            return None
        return self.load(manifest_path, workspace_root=Path(package_dir))
