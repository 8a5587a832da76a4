"""Tests for bifrost.core.package_manager module."""

from pathlib import Path

import pytest

from bifrost.core.package_manager import (
    DependencyManagerError,
    PackageManager,
    detect_package_manager,
)


class TestDetectPackageManager:
    """Tests for detect_package_manager function."""

    @pytest.mark.parametrize(
        "lockfile,expected",
        [
            ("bun.lockb", "bun"),
            ("bun.lock", "bun"),
            ("pnpm-lock.yaml", "pnpm"),
            ("yarn.lock", "yarn"),
            ("package-lock.json", "npm"),
        ],
    )
    def test_lockfile_selects_manager(self, temp_dir: Path, lockfile: str, expected: str):
        """Each lockfile maps to its manager."""
        (temp_dir / lockfile).write_text("")

        assert detect_package_manager(temp_dir) == expected

    def test_defaults_to_npm(self, temp_dir: Path):
        """No lockfile means npm."""
        assert detect_package_manager(temp_dir) == "npm"

    def test_bun_wins_over_yarn(self, temp_dir: Path):
        """Lockfiles are checked in priority order."""
        (temp_dir / "yarn.lock").write_text("")
        (temp_dir / "bun.lockb").write_text("")

        assert detect_package_manager(temp_dir) == "bun"


class TestPackageManager:
    """Tests for PackageManager class."""

    def test_unknown_manager(self, temp_dir: Path):
        """Unknown names are rejected."""
        with pytest.raises(ValueError, match="Unknown package manager"):
            PackageManager("pip", temp_dir)

    @pytest.mark.parametrize(
        "name,add,add_dev,remove",
        [
            ("npm", ["npm", "install"], ["npm", "install", "-D"], ["npm", "uninstall"]),
            ("yarn", ["yarn", "add"], ["yarn", "add", "-D"], ["yarn", "remove"]),
            ("pnpm", ["pnpm", "add"], ["pnpm", "add", "-D"], ["pnpm", "remove"]),
            ("bun", ["bun", "add"], ["bun", "add", "-D"], ["bun", "remove"]),
        ],
    )
    def test_commands(self, temp_dir, command_runner, name, add, add_dev, remove):
        """Each verb maps to the manager's own command."""
        manager = PackageManager(name, temp_dir, command_runner)

        manager.add(["a", "b"])
        manager.add(["c"], dev=True)
        manager.remove(["a"])

        assert command_runner.commands == [[*add, "a", "b"], [*add_dev, "c"], [*remove, "a"]]
        assert command_runner.cwds == [temp_dir, temp_dir, temp_dir]

    def test_empty_batch_runs_nothing(self, temp_dir: Path, command_runner):
        """Empty package lists are a no-op."""
        PackageManager("npm", temp_dir, command_runner).add([])

        assert command_runner.commands == []

    def test_command_failure(self, temp_dir: Path, make_runner):
        """Non-zero exit becomes DependencyManagerError."""
        manager = PackageManager("npm", temp_dir, make_runner(fail_on=lambda cmd: True))

        with pytest.raises(DependencyManagerError, match="exit code 1") as exc_info:
            manager.add(["zod"])

        assert exc_info.value.command == ["npm", "install", "zod"]

    def test_missing_executable(self, temp_dir: Path, make_runner):
        """A missing executable becomes DependencyManagerError."""
        manager = PackageManager("pnpm", temp_dir, make_runner(missing=True))

        with pytest.raises(DependencyManagerError, match="Cannot run pnpm"):
            manager.add(["zod"])

    def test_detect(self, temp_dir: Path):
        """detect builds a manager for the project's lockfile."""
        (temp_dir / "pnpm-lock.yaml").write_text("")

        manager = PackageManager.detect(temp_dir)

        assert manager.name == "pnpm"
        assert manager.project_root == temp_dir
