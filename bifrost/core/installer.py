"""Transactional plugin installer.

This module contains the PluginInstaller which installs a plugin into a
project in a fixed sequence of phases:

    fetching -> validating platform -> installing files -> merging configs
    -> installing dependencies -> committed

Every committed side effect (file written, dependency batch added) is
recorded in an ``InstallationTransaction`` the moment it succeeds. If any
phase fails, the recorded effects are undone in reverse order on a
best-effort basis and the original error is re-raised.

Config merges are not recorded and are therefore not undone.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Protocol

from rich.console import Console

from bifrost.config.schemas import FileEntry, PluginManifest
from bifrost.core.config_manager import ConfigProcessor, ConfigResult
from bifrost.core.errors import (
    InstallError,
    PlatformMismatchError,
    UnsafePathError,
    WriteError,
)
from bifrost.core.package_manager import DependencyManagerError, PackageManager
from bifrost.core.project import Project
from bifrost.core.prompts import Prompter
from bifrost.utils.filesystem import remove_file, resolve_within, write_text_file
from bifrost.utils.process import CommandRunner

logger = logging.getLogger("bifrost.installer")

__all__ = [
    "DependencyManagerError",
    "InstallError",
    "InstallPhase",
    "InstallResult",
    "InstallationTransaction",
    "PlatformMismatchError",
    "PluginInstaller",
    "RollbackReport",
    "UnsafePathError",
    "WriteError",
    "rollback",
]


class PluginSource(Protocol):
    """Where a plugin's manifest and files come from."""

    repo: str

    def fetch_manifest(self) -> PluginManifest: ...
    def fetch_file(self, name: str) -> str: ...


class InstallPhase(str, Enum):
    """States of a single installation run."""

    FETCHING = "fetching"
    VALIDATING_PLATFORM = "validating-platform"
    INSTALLING_FILES = "installing-files"
    MERGING_CONFIGS = "merging-configs"
    INSTALLING_DEPENDENCIES = "installing-dependencies"
    COMMITTED = "committed"
    ROLLING_BACK = "rolling-back"
    FAILED = "failed"


@dataclass
class InstallationTransaction:
    """Side effects committed by one installation run.

    Owned by a single run and only appended to. Paths and dependency names
    are recorded after the effect has succeeded, never before.
    """

    installed_files: list[Path] = field(default_factory=list)
    installed_libraries: list[str] = field(default_factory=list)
    # Previous content of files that existed before being overwritten
    backups: dict[Path, bytes] = field(default_factory=dict)

    def record_file(self, path: Path, previous: bytes | None = None) -> None:
        """Record a written file, with its prior content if it was overwritten."""
        # Only the state from before this run matters for rollback
        if previous is not None and path not in self.installed_files:
            self.backups[path] = previous
        self.installed_files.append(path)

    def record_libraries(self, names: list[str]) -> None:
        """Record a dependency batch that was added."""
        self.installed_libraries.extend(names)

    @property
    def is_empty(self) -> bool:
        return not self.installed_files and not self.installed_libraries


@dataclass
class RollbackReport:
    """What a rollback managed to undo. Failures are reported, never raised."""

    removed_files: list[Path] = field(default_factory=list)
    restored_files: list[Path] = field(default_factory=list)
    failed_files: list[tuple[Path, str]] = field(default_factory=list)
    removed_libraries: list[str] = field(default_factory=list)
    library_error: str | None = None

    @property
    def clean(self) -> bool:
        return not self.failed_files and self.library_error is None


@dataclass
class InstallResult:
    """Result of a committed installation."""

    plugin: str
    manifest: PluginManifest
    installed_files: list[Path] = field(default_factory=list)
    installed_libraries: list[str] = field(default_factory=list)
    configs: list[ConfigResult] = field(default_factory=list)
    package_manager: str | None = None


def _prune_empty_parents(path: Path, stop: Path) -> None:
    """Remove empty directories above ``path`` up to (not including) ``stop``."""
    parent = path.parent
    try:
        while parent != stop and stop in parent.parents:
            if parent.is_dir() and not any(parent.iterdir()):
                parent.rmdir()
                parent = parent.parent
            else:
                break
    except OSError as e:
        logger.debug("Could not prune %s: %s", parent, e)


def rollback(
    transaction: InstallationTransaction,
    package_manager: PackageManager | None,
    project_root: Path | None = None,
) -> RollbackReport:
    """Undo the effects recorded in a transaction, newest first.

    Files that existed before the run are restored to their previous
    content; files the run created are deleted. Recorded dependencies are
    removed with one package manager call. Each failing step is logged and
    recorded in the report; nothing is raised.
    """
    report = RollbackReport()

    for path in reversed(transaction.installed_files):
        try:
            if path in transaction.backups:
                path.write_bytes(transaction.backups[path])
                report.restored_files.append(path)
                logger.debug("Restored %s", path)
            else:
                remove_file(path)
                report.removed_files.append(path)
                logger.debug("Removed %s", path)
                if project_root is not None:
                    _prune_empty_parents(path, project_root)
        except OSError as e:
            logger.error("Failed to remove %s: %s", path, e)
            report.failed_files.append((path, str(e)))

    if transaction.installed_libraries:
        if package_manager is None:
            report.library_error = "no package manager available"
            logger.error("Cannot remove installed libraries: no package manager available")
        else:
            try:
                package_manager.remove(transaction.installed_libraries)
                report.removed_libraries.extend(transaction.installed_libraries)
            except Exception as e:
                logger.error("Failed to remove installed libraries: %s", e)
                report.library_error = str(e)

    return report


class PluginInstaller:
    """Installs one plugin into a project, undoing its effects on failure."""

    def __init__(
        self,
        project: Project,
        source: PluginSource,
        prompter: Prompter,
        package_manager: PackageManager | None = None,
        console: Console | None = None,
        runner: CommandRunner | None = None,
    ):
        """Initialize the installer.

        Args:
            project: The project to install into
            source: Plugin source providing the manifest and files
            prompter: Used to confirm install locations and config handling
            package_manager: Package manager to use; detected from the
                project's lockfile when omitted
            console: Console for progress output
            runner: Command runner handed to a detected package manager
        """
        self.project = project
        self.source = source
        self.prompter = prompter
        self.console = console or Console()
        self._package_manager = package_manager
        self._runner = runner
        self.phase = InstallPhase.FETCHING
        self.last_rollback: RollbackReport | None = None

    @property
    def plugin_name(self) -> str:
        return self.source.repo

    def _enter(self, phase: InstallPhase) -> None:
        logger.debug("%s: %s -> %s", self.plugin_name, self.phase.value, phase.value)
        self.phase = phase

    def _get_package_manager(self) -> PackageManager:
        """Detect the package manager once per run."""
        if self._package_manager is None:
            self._package_manager = PackageManager.detect(self.project.root, self._runner)
            logger.info("Using package manager: %s", self._package_manager.name)
        return self._package_manager

    def install(self) -> InstallResult:
        """Run the installation.

        Returns:
            InstallResult describing what was committed

        Raises:
            FetchError, PlatformMismatchError, UnsafePathError, WriteError,
            MergeError, DependencyManagerError: the first failure, after any
            committed effects have been rolled back
        """
        transaction = InstallationTransaction()
        configs: list[ConfigResult] = []

        try:
            self._enter(InstallPhase.FETCHING)
            self.console.print(f"Fetching plugin configuration from {self.plugin_name}...")
            manifest = self.source.fetch_manifest()
            self.console.print("[green]\u2713[/green] Plugin configuration fetched")

            self._enter(InstallPhase.VALIDATING_PLATFORM)
            if manifest.platform != self.project.platform:
                raise PlatformMismatchError(
                    manifest.platform, self.project.platform, self.plugin_name
                )

            self._enter(InstallPhase.INSTALLING_FILES)
            for entry in manifest.files:
                self._install_file(entry, transaction)
            if manifest.files:
                self.console.print("[green]\u2713[/green] Plugin files installed")

            self._enter(InstallPhase.MERGING_CONFIGS)
            if manifest.configs:
                processor = ConfigProcessor(
                    self.project.root, self.source, self.prompter, self.console
                )
                configs = processor.process(manifest.configs)
                self.console.print("[green]\u2713[/green] Configuration files processed")

            self._enter(InstallPhase.INSTALLING_DEPENDENCIES)
            self._install_dependencies(manifest, transaction)

        except Exception:
            self._enter(InstallPhase.ROLLING_BACK)
            self.console.print("[red]\u2717[/red] Plugin installation failed")
            if not transaction.is_empty:
                self.console.print("[yellow]Rolling back changes...[/yellow]")
            self.last_rollback = rollback(
                transaction,
                self._package_manager,
                self.project.root,
            )
            for path, reason in self.last_rollback.failed_files:
                self.console.print(f"[red]Failed to remove {path}: {reason}[/red]")
            if self.last_rollback.library_error:
                self.console.print("[red]Failed to remove installed libraries[/red]")
            self._enter(InstallPhase.FAILED)
            raise

        self._enter(InstallPhase.COMMITTED)
        result = InstallResult(
            plugin=self.plugin_name,
            manifest=manifest,
            installed_files=list(transaction.installed_files),
            installed_libraries=list(transaction.installed_libraries),
            configs=configs,
        )
        if self._package_manager is not None:
            result.package_manager = self._package_manager.name
        logger.info(
            "Installed %s: %d file(s), %d dependency(ies)",
            self.plugin_name,
            len(result.installed_files),
            len(result.installed_libraries),
        )
        return result

    def _resolve_target(self, entry: FileEntry) -> Path:
        """Ask where a file goes and resolve it inside the project root."""
        location = entry.location
        if not self.prompter.confirm(f"Install {entry.name} to {entry.location}?", default=True):
            location = self.prompter.ask(
                f"Enter custom location for {entry.name}", default=entry.location
            )

        target = resolve_within(self.project.root, location)
        if target is None:
            raise UnsafePathError(location, self.plugin_name)
        return target

    def _install_file(self, entry: FileEntry, transaction: InstallationTransaction) -> None:
        """Fetch and write one file, recording it once it is on disk."""
        target = self._resolve_target(entry)
        content = self.source.fetch_file(entry.name)

        try:
            previous = target.read_bytes() if target.is_file() else None
            write_text_file(target, content)
        except OSError as e:
            raise WriteError(target, str(e), self.plugin_name) from e

        transaction.record_file(target, previous)
        logger.debug("Wrote %s", target)

    def _install_dependencies(
        self, manifest: PluginManifest, transaction: InstallationTransaction
    ) -> None:
        """Add runtime then dev dependencies as two batches."""
        if not manifest.dependencies and not manifest.dev_dependencies:
            return

        package_manager = self._get_package_manager()

        if manifest.dependencies:
            self.console.print("Installing dependencies...")
            package_manager.add(manifest.dependencies)
            transaction.record_libraries(manifest.dependencies)
            self.console.print("[green]\u2713[/green] Dependencies installed")

        if manifest.dev_dependencies:
            self.console.print("Installing dev dependencies...")
            package_manager.add(manifest.dev_dependencies, dev=True)
            transaction.record_libraries(manifest.dev_dependencies)
            self.console.print("[green]\u2713[/green] Dev dependencies installed")
