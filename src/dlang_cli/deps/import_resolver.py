"""Resolve import specifiers to model files.

Three kinds of specifier are understood:

- relative paths (``./shared``, ``../core/types.dlang``) resolved from the importing file's directory
- path aliases (``@shared/types``); ``@/`` always maps to the workspace root
- external packages declared in model.yaml (``acme/core``), served from the lock file and cache

Paths without an extension resolve directory-first: ``<dir>/index.dlang``
(or the directory's own ``model.entry``), then ``<path>.dlang``.
"""

import os
from pathlib import Path
from typing import Dict, Optional, Tuple

from ..config import MODEL_FILE_EXTENSION
from ..errors import ImportResolutionError
from .repository_cache import read_package_entry
from .workspace_manager import WorkspaceManager


ROOT_ALIAS_PREFIX = "@/"


class ImportResolver:
    def __init__(self, workspace_manager: WorkspaceManager):
        self.workspace_manager = workspace_manager

    def resolve_from(self, base_dir: Path, specifier: str) -> Path:
        """Resolve ``specifier`` as written in a file located in ``base_dir``.

        Raises:
            ImportResolutionError: For unknown aliases, bad extensions or missing files.
            DependencyNotInstalledError: For external packages absent from the lock file.
        """
        base_dir = Path(base_dir)
        self.workspace_manager.initialize(base_dir)

        if specifier.startswith(("./", "../")):
            return self._resolve_local_path(Path(os.path.normpath(base_dir / specifier)), specifier)
        if specifier.startswith("@"):
            return self._resolve_path_alias(specifier)
        return self._resolve_external(specifier)

    def resolve_for_file(self, importing_file: Path, specifier: str) -> Path:
        return self.resolve_from(Path(importing_file).parent, specifier)

    def _resolve_path_alias(self, specifier: str) -> Path:
        root = self.workspace_manager.workspace_root
        match = find_matching_alias(specifier, self.workspace_manager.get_path_aliases())
        if match is not None:
            target, remainder = match
            resolved = Path(os.path.normpath(root / target))
            if remainder:
                resolved = resolved / remainder
            return self._resolve_local_path(resolved, specifier)

        if specifier.startswith(ROOT_ALIAS_PREFIX):
            return self._resolve_local_path(root / specifier[len(ROOT_ALIAS_PREFIX):], specifier)

        alias = specifier.split("/", 1)[0]
        raise ImportResolutionError(
            specifier,
            f"Unknown path alias '{alias}' in import '{specifier}'",
            f'Define it in model.yaml paths section:\n  paths:\n    "{alias}": "./some/path"',
        )

    def _resolve_external(self, specifier: str) -> Path:
        manager = self.workspace_manager
        if manager.resolve_dependency_import(specifier) is None:
            raise ImportResolutionError(
                specifier,
                f"Dependency '{specifier}' not found in model.yaml",
                f"Add it to your dependencies:\n  dependencies:\n    {specifier}:\n      ref: v1.0.0",
            )
        return manager.resolve_entry_point(specifier)

    def _resolve_local_path(self, resolved: Path, original: str) -> Path:
        if resolved.suffix == MODEL_FILE_EXTENSION:
            if not resolved.is_file():
                raise ImportResolutionError(
                    original,
                    f"Cannot resolve import '{original}': {resolved} does not exist",
                    "Check that the path is correct and the file exists.",
                )
            return resolved

        if resolved.suffix and not resolved.is_dir():
            raise ImportResolutionError(
                original,
                f"Invalid file extension '{resolved.suffix}' in import '{original}'",
                f"DomainLang files must use the {MODEL_FILE_EXTENSION} extension.",
            )

        if resolved.is_dir():
            entry = read_package_entry(resolved)
            entry_file = resolved / entry
            if entry_file.is_file():
                return entry_file
            raise ImportResolutionError(
                original,
                f"Module '{original}' is missing its entry file (expected {entry_file})",
                f"Create '{entry}' in the module directory, or set a custom entry in its model.yaml:\n"
                "  model:\n    entry: main.dlang",
            )

        with_ext = resolved.with_name(resolved.name + MODEL_FILE_EXTENSION)
        if with_ext.is_file():
            return with_ext

        raise ImportResolutionError(
            original,
            f"Cannot resolve import '{original}'. Tried:\n"
            f"  • {resolved}/index.dlang (directory module)\n"
            f"  • {with_ext} (file)",
            "Check that the path is correct and the file exists.",
        )


def find_matching_alias(specifier: str, aliases: Dict[str, str]) -> Optional[Tuple[str, str]]:
    """Longest alias that equals ``specifier`` or prefixes it with ``/``.

    Returns:
        ``(target_path, remainder)`` or None.
    """
    for alias in sorted(aliases, key=len, reverse=True):
        if specifier == alias:
            return aliases[alias], ""
        if specifier.startswith(f"{alias}/"):
            return aliases[alias], specifier[len(alias) + 1:]
    return None
