"""DomainLang dependency management commands."""

import sys
from pathlib import Path
from typing import Optional

import click
from rich.table import Table

from ..deps.analyzer import DependencyAnalyzer
from ..deps.governance import GovernanceValidator
from ..deps.workspace_manager import WorkspaceManager
from ..errors import DependencyError, WorkspaceNotFoundError
from ..models.dependency_reference import DependencyIdentifier
from ..utils.console import (
    _get_console,
    _rich_echo,
    _rich_error,
    _rich_info,
    _rich_panel,
    _rich_success,
    _rich_warning,
)


def _open_workspace(path: str = ".") -> WorkspaceManager:
    manager = WorkspaceManager()
    manager.initialize(Path(path))
    if manager.manifest_path is None:
        raise WorkspaceNotFoundError(str(Path(path).resolve()))
    return manager


def _fail(error: Exception) -> None:
    """Print an error (and its hint) and exit with status 1."""
    if isinstance(error, DependencyError):
        _rich_error(error.message)
        if error.hint:
            _rich_info(f"Hint: {error.hint}")
    else:
        _rich_error(f"Unexpected error: {error}")
    sys.exit(1)


def _print_messages(manager: WorkspaceManager) -> None:
    for message in manager.messages:
        _rich_info(message, symbol="info")


def _print_lock_table(lock_file, title: str) -> None:
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Package", style="bold white")
    table.add_column("Ref", style="yellow")
    table.add_column("Type", style="magenta")
    table.add_column("Commit", style="blue")
    for package_key in lock_file.get_package_keys():
        locked = lock_file.get_dependency(package_key)
        table.add_row(package_key, locked.ref, locked.ref_type.value, locked.commit[:7])
    _get_console().print(table)


@click.command(help="📦 Resolve dependencies and write model.lock")
def install():
    """Resolve every dependency, reusing existing pins, and write the lock file."""
    try:
        manager = _open_workspace()
        _rich_info("Resolving dependencies...")
        lock_file = manager.install()
        _print_messages(manager)
        if not lock_file.dependencies:
            _rich_info("No git dependencies declared in model.yaml")
            return
        _print_lock_table(lock_file, "📦 Locked Dependencies")
        _rich_success(f"Installed {len(lock_file.dependencies)} package(s)")
    except Exception as e:
        _fail(e)


@click.command(help="🔄 Re-resolve dependencies ignoring existing pins")
@click.argument("package", required=False)
def update(package: Optional[str]):
    """Update every package, or only PACKAGE, to the latest commit of its ref."""
    try:
        manager = _open_workspace()
        if package:
            lock_file = manager.get_lock_file()
            if lock_file is not None and not lock_file.has_dependency(package):
                _rich_error(f"Package '{package}' is not in model.lock")
                sys.exit(1)
            _rich_info(f"Updating {package}...")
        else:
            _rich_info("Updating all dependencies...")

        before = manager.get_lock_file()
        lock_file = manager.regenerate_lock_file(package)
        _print_messages(manager)

        changed = 0
        for package_key in lock_file.get_package_keys():
            new = lock_file.get_dependency(package_key)
            old = before.get_dependency(package_key) if before else None
            if old is None or old.commit != new.commit:
                changed += 1
                _rich_echo(f"  {package_key}@{new.ref} → {new.commit[:7]}", style="green")
        if changed:
            _rich_success(f"Updated {changed} package(s)")
        else:
            _rich_success("All dependencies are up to date")
    except Exception as e:
        _fail(e)


@click.command(help="🩺 Show workspace and cache status")
def status():
    try:
        manager = _open_workspace()
        _rich_info(f"Workspace: {manager.workspace_root}")
        _rich_info(f"Cache: {manager.cache.cache_root}")

        lock_file = manager.get_lock_file()
        if lock_file is None:
            _rich_warning("No model.lock found. Run 'dlang install' to resolve dependencies.")
            return

        missing = 0
        for package_key in lock_file.get_package_keys():
            locked = lock_file.get_dependency(package_key)
            cached = manager.cache.is_cached(DependencyIdentifier.parse(locked.resolved), locked.commit)
            if cached:
                _rich_success(f"{package_key}@{locked.ref} ({locked.commit[:7]})")
            else:
                missing += 1
                _rich_warning(f"{package_key}@{locked.ref} ({locked.commit[:7]}) not in cache")

        if missing:
            _rich_info("Run 'dlang install' to fetch missing packages.")
    except Exception as e:
        _fail(e)


@click.command(name="list", help="📋 List locked dependencies")
def list_packages():
    try:
        manager = _open_workspace()
        lock_file = manager.get_lock_file()
        if lock_file is None or not lock_file.dependencies:
            _rich_info("💡 No dependencies locked yet")
            _rich_echo("Run 'dlang install' to resolve dependencies from model.yaml", style="dim")
            return
        _print_lock_table(lock_file, "📋 DomainLang Dependencies")
    except Exception as e:
        _fail(e)


@click.command(help="🌳 Show dependency tree structure")
@click.option("--commits", is_flag=True, help="Show the locked commit next to each ref")
def tree(commits: bool):
    try:
        manager = _open_workspace()
        manifest = manager.get_manifest()
        lock_file = manager.ensure_lock_file()
        analyzer = DependencyAnalyzer(manager.cache, manager.manifest_store)
        nodes = analyzer.build_dependency_tree(lock_file, manifest)

        _rich_echo(f"{manifest.name or manager.workspace_root.name} (local)", style="bold cyan")
        if not nodes:
            _rich_echo("└── No dependencies installed", style="dim")
            return
        _rich_echo(analyzer.format_dependency_tree(nodes, show_commits=commits))
    except Exception as e:
        _fail(e)


@click.command(help="🎯 Show which packages depend on PACKAGE")
@click.argument("package")
def impact(package: str):
    try:
        manager = _open_workspace()
        lock_file = manager.ensure_lock_file()
        analyzer = DependencyAnalyzer(manager.cache, manager.manifest_store)
        dependents = analyzer.find_reverse_dependencies(package, lock_file, manager.get_manifest())

        if not dependents:
            _rich_info(f"Nothing depends on {package}")
            return
        _rich_info(f"Packages depending on {package}:")
        for dependent in dependents:
            _rich_echo(f"  • {dependent.dependent} ({dependent.ref})")
    except Exception as e:
        _fail(e)


@click.command(help="📝 Print a dependency audit report")
def audit():
    try:
        manager = _open_workspace()
        manifest = manager.get_manifest()
        lock_file = manager.ensure_lock_file()
        report = GovernanceValidator.from_manifest(manifest).generate_audit_report(
            lock_file, manifest, manager.workspace_root
        )
        _rich_panel(report, title="Audit")
    except Exception as e:
        _fail(e)


@click.command(help="🛡️ Check dependencies against governance policy")
def compliance():
    try:
        manager = _open_workspace()
        manifest = manager.get_manifest()
        lock_file = manager.ensure_lock_file()
        violations = GovernanceValidator.from_manifest(manifest).validate(lock_file, manifest)
    except Exception as e:
        _fail(e)
        return

    if not violations:
        _rich_success("No policy violations detected")
        return

    for violation in violations:
        message = f"{violation.package_key}: {violation.message}"
        if violation.severity == "error":
            _rich_error(message)
        else:
            _rich_warning(message)
    if any(v.severity == "error" for v in violations):
        sys.exit(1)


@click.command(name="cache-clear", help="🧹 Remove all cached package checkouts")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
def cache_clear(yes: bool):
    try:
        manager = _open_workspace()
        stats = manager.cache.get_cache_stats()
        if stats.entry_count == 0:
            _rich_info("Cache is already empty")
            return
        if not yes and not click.confirm(
            f"Remove {stats.entry_count} cached checkout(s) ({stats.total_size} bytes)?", default=False
        ):
            _rich_info("Aborted")
            return
        manager.cache.clear_cache()
        _rich_success(f"Removed {stats.entry_count} cached checkout(s) from {stats.cache_dir}")
    except Exception as e:
        _fail(e)


COMMANDS = [install, update, status, list_packages, tree, impact, audit, compliance, cache_clear]
