"""JavaScript package manager detection and invocation.

The installer adds and removes dependencies through whichever package
manager the host project uses, detected from its lockfile.
"""

import logging
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from bifrost.utils.process import CommandRunner, run_command

logger = logging.getLogger("bifrost.package_manager")


class DependencyManagerError(Exception):
    """Error running the package manager."""

    def __init__(self, message: str, command: list[str] | None = None):
        self.command = command
        super().__init__(message)


@dataclass(frozen=True)
class ManagerCommands:
    """Command prefixes for one package manager."""

    add: tuple[str, ...]
    add_dev: tuple[str, ...]
    remove: tuple[str, ...]


MANAGER_COMMANDS: dict[str, ManagerCommands] = {
    "npm": ManagerCommands(("npm", "install"), ("npm", "install", "-D"), ("npm", "uninstall")),
    "yarn": ManagerCommands(("yarn", "add"), ("yarn", "add", "-D"), ("yarn", "remove")),
    "pnpm": ManagerCommands(("pnpm", "add"), ("pnpm", "add", "-D"), ("pnpm", "remove")),
    "bun": ManagerCommands(("bun", "add"), ("bun", "add", "-D"), ("bun", "remove")),
}

# Checked in order; first lockfile found wins
LOCKFILES: list[tuple[str, str]] = [
    ("bun.lockb", "bun"),
    ("bun.lock", "bun"),
    ("pnpm-lock.yaml", "pnpm"),
    ("yarn.lock", "yarn"),
    ("package-lock.json", "npm"),
]

DEFAULT_MANAGER = "npm"


def detect_package_manager(project_root: Path) -> str:
    """Pick the package manager from the lockfile present in the project."""
    for lockfile, manager in LOCKFILES:
        if (project_root / lockfile).exists():
            logger.debug("Found %s, using %s", lockfile, manager)
            return manager
    logger.debug("No lockfile found, defaulting to %s", DEFAULT_MANAGER)
    return DEFAULT_MANAGER


class PackageManager:
    """Adds and removes dependencies with a specific package manager."""

    def __init__(
        self,
        name: str,
        project_root: Path,
        runner: CommandRunner | None = None,
    ):
        if name not in MANAGER_COMMANDS:
            raise ValueError(f"Unknown package manager: {name}")
        self.name = name
        self.project_root = project_root
        self._commands = MANAGER_COMMANDS[name]
        self._runner = runner or run_command

    @classmethod
    def detect(cls, project_root: Path, runner: CommandRunner | None = None) -> "PackageManager":
        """Create a manager for whatever the project's lockfile indicates."""
        return cls(detect_package_manager(project_root), project_root, runner)

    def command_for(self, verb: str, packages: Sequence[str]) -> list[str]:
        """Build the full command line for ``add``, ``add_dev`` or ``remove``."""
        prefix: tuple[str, ...] = getattr(self._commands, verb)
        return [*prefix, *packages]

    def _run(self, verb: str, packages: Sequence[str]) -> None:
        if not packages:
            return
        command = self.command_for(verb, packages)
        logger.info("Running %s", " ".join(command))
        try:
            self._runner(command, self.project_root)
        except subprocess.CalledProcessError as e:
            raise DependencyManagerError(
                f"{' '.join(command)} failed with exit code {e.returncode}", command
            ) from e
        except FileNotFoundError as e:
            raise DependencyManagerError(f"Cannot run {self.name}: {e}", command) from e

    def add(self, packages: Sequence[str], dev: bool = False) -> None:
        """Add dependencies (as dev dependencies when ``dev`` is set).

        Raises:
            DependencyManagerError: If the package manager fails
        """
        self._run("add_dev" if dev else "add", packages)

    def remove(self, packages: Sequence[str]) -> None:
        """Remove dependencies.

        Raises:
            DependencyManagerError: If the package manager fails
        """
        self._run("remove", packages)

    def __repr__(self) -> str:
        return f"PackageManager(name={self.name!r}, root={self.project_root!r})"
