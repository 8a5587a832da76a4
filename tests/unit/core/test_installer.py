"""Tests for bifrost.core.installer module."""

import io
import json
from pathlib import Path
from unittest.mock import patch

import pytest
from rich.console import Console

from bifrost.config.schemas import PluginManifest
from bifrost.core.config_manager import ConfigOutcome
from bifrost.core.installer import (
    DependencyManagerError,
    InstallationTransaction,
    InstallPhase,
    PlatformMismatchError,
    PluginInstaller,
    UnsafePathError,
    WriteError,
    rollback,
)
from bifrost.core.package_manager import PackageManager
from bifrost.core.project import Project
from bifrost.registry.github import FetchError
from bifrost.utils.filesystem import remove_file


@pytest.fixture
def quiet_console() -> Console:
    """Console that writes to a buffer."""
    return Console(file=io.StringIO())


@pytest.fixture
def package_json(project: Project) -> Path:
    """Existing package.json in the project."""
    path = project.root / "package.json"
    path.write_text(json.dumps({"name": "app", "scripts": {"dev": "remix dev"}}))
    return path


@pytest.fixture
def make_installer(project, make_source, prompter, command_runner, quiet_console):
    """Build an installer for a manifest with an injected npm manager."""

    def _make(manifest, files, prompter=prompter, runner=command_runner):
        source = make_source(manifest, files)
        installer = PluginInstaller(
            project,
            source,
            prompter,
            package_manager=PackageManager("npm", project.root, runner),
            console=quiet_console,
        )
        return installer, source

    return _make


class TestInstallationTransaction:
    """Tests for InstallationTransaction dataclass."""

    def test_starts_empty(self):
        """New transaction has nothing recorded."""
        transaction = InstallationTransaction()

        assert transaction.is_empty
        assert transaction.installed_files == []
        assert transaction.installed_libraries == []

    def test_records_in_order(self, temp_dir: Path):
        """Files and libraries are appended in order."""
        transaction = InstallationTransaction()
        transaction.record_file(temp_dir / "a")
        transaction.record_file(temp_dir / "b")
        transaction.record_libraries(["x", "y"])

        assert transaction.installed_files == [temp_dir / "a", temp_dir / "b"]
        assert transaction.installed_libraries == ["x", "y"]
        assert not transaction.is_empty

    def test_keeps_first_backup(self, temp_dir: Path):
        """A second write to the same path keeps the original backup."""
        transaction = InstallationTransaction()
        transaction.record_file(temp_dir / "a", b"original")
        transaction.record_file(temp_dir / "a", b"first write")

        assert transaction.backups[temp_dir / "a"] == b"original"

    def test_new_file_written_twice_has_no_backup(self, temp_dir: Path):
        """A file created by the run is never restored."""
        transaction = InstallationTransaction()
        transaction.record_file(temp_dir / "a")
        transaction.record_file(temp_dir / "a", b"first write")

        assert temp_dir / "a" not in transaction.backups


class TestRollback:
    """Tests for rollback function."""

    def test_removes_files_and_prunes_directories(self, temp_dir: Path):
        """Created files and their empty directories are removed."""
        target = temp_dir / "app" / "lib" / "auth.ts"
        target.parent.mkdir(parents=True)
        target.write_text("x")
        transaction = InstallationTransaction()
        transaction.record_file(target)

        report = rollback(transaction, None, temp_dir)

        assert not target.exists()
        assert not (temp_dir / "app").exists()
        assert report.removed_files == [target]
        assert report.clean

    def test_keeps_non_empty_directories(self, temp_dir: Path):
        """Directories holding other files survive."""
        (temp_dir / "app").mkdir()
        (temp_dir / "app" / "root.tsx").write_text("root")
        target = temp_dir / "app" / "auth.ts"
        target.write_text("x")
        transaction = InstallationTransaction()
        transaction.record_file(target)

        rollback(transaction, None, temp_dir)

        assert (temp_dir / "app" / "root.tsx").exists()

    def test_prune_failure_is_logged(self, temp_dir: Path, caplog):
        """A directory that cannot be removed is logged and left in place."""
        target = temp_dir / "app" / "auth.ts"
        target.parent.mkdir()
        target.write_text("x")
        transaction = InstallationTransaction()
        transaction.record_file(target)

        with caplog.at_level("DEBUG", logger="bifrost.installer"):
            with patch.object(Path, "rmdir", side_effect=OSError("busy")):
                report = rollback(transaction, None, temp_dir)

        assert not target.exists()
        assert (temp_dir / "app").exists()
        assert report.clean
        assert "Could not prune" in caplog.text

    def test_restores_overwritten_files(self, temp_dir: Path):
        """Files that existed before are restored, not deleted."""
        target = temp_dir / "auth.ts"
        target.write_text("plugin version")
        transaction = InstallationTransaction()
        transaction.record_file(target, b"original")

        report = rollback(transaction, None, temp_dir)

        assert target.read_text() == "original"
        assert report.restored_files == [target]

    def test_removes_libraries(self, temp_dir: Path, command_runner):
        """Recorded libraries are removed in one call."""
        transaction = InstallationTransaction()
        transaction.record_libraries(["a", "b"])
        manager = PackageManager("pnpm", temp_dir, command_runner)

        report = rollback(transaction, manager, temp_dir)

        assert command_runner.commands == [["pnpm", "remove", "a", "b"]]
        assert report.removed_libraries == ["a", "b"]

    def test_library_failure_is_reported(self, temp_dir: Path, make_runner):
        """A failing remove is reported, not raised."""
        transaction = InstallationTransaction()
        transaction.record_libraries(["a"])
        manager = PackageManager("npm", temp_dir, make_runner(fail_on=lambda cmd: True))

        report = rollback(transaction, manager, temp_dir)

        assert not report.clean
        assert "npm uninstall a" in report.library_error

    def test_libraries_without_manager(self, temp_dir: Path):
        """No package manager means libraries cannot be removed."""
        transaction = InstallationTransaction()
        transaction.record_libraries(["a"])

        report = rollback(transaction, None)

        assert report.library_error == "no package manager available"

    def test_file_failure_does_not_stop_rollback(self, temp_dir: Path):
        """Remaining files are still removed after a failure."""
        first = temp_dir / "first.ts"
        second = temp_dir / "second.ts"
        first.write_text("1")
        second.write_text("2")
        transaction = InstallationTransaction()
        transaction.record_file(first)
        transaction.record_file(second)

        def flaky_remove(path: Path) -> bool:
            if path == second:
                raise PermissionError("denied")
            return remove_file(path)

        with patch("bifrost.core.installer.remove_file", side_effect=flaky_remove):
            report = rollback(transaction, None, temp_dir)

        assert not first.exists()
        assert report.failed_files == [(second, "denied")]


class TestPluginInstaller:
    """Tests for PluginInstaller.install."""

    def test_installs_everything(
        self, make_installer, sample_manifest, sample_files, package_json, command_runner
    ):
        """Files, configs and dependencies are installed in order."""
        installer, _ = make_installer(sample_manifest, sample_files)

        result = installer.install()

        root = installer.project.root
        assert (root / "app/lib/auth.ts").read_text() == sample_files["auth.ts"]
        assert (root / "app/routes/login.tsx").exists()
        assert json.loads(package_json.read_text())["scripts"] == {
            "dev": "remix dev",
            "auth": "node auth.js",
        }
        assert command_runner.commands == [
            ["npm", "install", "remix-auth"],
            ["npm", "install", "-D", "@types/node"],
        ]
        assert result.installed_files == [root / "app/lib/auth.ts", root / "app/routes/login.tsx"]
        assert result.installed_libraries == ["remix-auth", "@types/node"]
        assert result.configs[0].outcome is ConfigOutcome.APPLIED
        assert result.package_manager == "npm"
        assert installer.phase is InstallPhase.COMMITTED

    def test_second_install_leaves_config_unchanged(
        self, make_installer, sample_manifest, sample_files, package_json
    ):
        """Re-running does not duplicate configuration."""
        installer, _ = make_installer(sample_manifest, sample_files)
        installer.install()
        after_first = package_json.read_text()

        installer, _ = make_installer(sample_manifest, sample_files)
        result = installer.install()

        assert package_json.read_text() == after_first
        assert result.configs[0].outcome is ConfigOutcome.PRESENT

    def test_platform_gate_performs_no_writes(
        self, make_installer, sample_files, command_runner, project
    ):
        """A manifest for another platform never touches the project."""
        manifest = PluginManifest.model_validate(
            {
                "platform": "nextjs",
                "files": [{"name": "auth.ts", "location": "app/lib/auth.ts"}],
                "dependencies": ["next-auth"],
            }
        )
        installer, source = make_installer(manifest, sample_files)

        with pytest.raises(PlatformMismatchError, match="Plugin is for nextjs"):
            installer.install()

        assert source.fetched == []
        assert command_runner.commands == []
        assert not (project.root / "app").exists()
        assert installer.phase is InstallPhase.FAILED

    def test_failed_write_rolls_back_earlier_files(self, make_installer, sample_files, project):
        """Files written before a failing write are removed."""
        manifest = PluginManifest.model_validate(
            {
                "platform": "remix",
                "files": [
                    {"name": "auth.ts", "location": "app/lib/auth.ts"},
                    {"name": "login.tsx", "location": "app/routes/login.tsx"},
                    # parent is a file, so the write fails
                    {"name": "auth.ts", "location": "app/lib/auth.ts/nested.ts"},
                ],
            }
        )
        installer, _ = make_installer(manifest, sample_files)

        with pytest.raises(WriteError):
            installer.install()

        assert not (project.root / "app/lib/auth.ts").exists()
        assert not (project.root / "app/routes/login.tsx").exists()
        assert not (project.root / "app").exists()
        assert installer.last_rollback.removed_files == [
            project.root / "app/routes/login.tsx",
            project.root / "app/lib/auth.ts",
        ]

    def test_failed_fetch_rolls_back(self, make_installer, sample_manifest, project):
        """A file that cannot be fetched undoes earlier writes."""
        installer, _ = make_installer(sample_manifest, {"auth.ts": "x"})

        with pytest.raises(FetchError, match="login.tsx"):
            installer.install()

        assert not (project.root / "app/lib/auth.ts").exists()

    def test_failed_dev_dependencies_remove_runtime_batch(
        self, make_installer, sample_manifest, sample_files, make_runner, package_json, project
    ):
        """Dependencies from a successful batch are removed on failure."""
        runner = make_runner(fail_on=lambda cmd: "-D" in cmd)
        installer, _ = make_installer(sample_manifest, sample_files, runner=runner)

        with pytest.raises(DependencyManagerError):
            installer.install()

        assert runner.commands[-1] == ["npm", "uninstall", "remix-auth"]
        assert not (project.root / "app/lib/auth.ts").exists()
        assert installer.last_rollback.removed_libraries == ["remix-auth"]

    def test_config_merges_are_not_rolled_back(
        self, make_installer, sample_manifest, sample_files, make_runner, package_json
    ):
        """Merged configuration survives a later failure."""
        runner = make_runner(fail_on=lambda cmd: True)
        installer, _ = make_installer(sample_manifest, sample_files, runner=runner)

        with pytest.raises(DependencyManagerError):
            installer.install()

        assert "auth" in json.loads(package_json.read_text())["scripts"]

    def test_original_error_survives_failing_rollback(
        self, make_installer, sample_manifest, sample_files, make_runner, package_json
    ):
        """The triggering error is re-raised even if rollback fails."""
        runner = make_runner(fail_on=lambda cmd: cmd[1] != "install" or "-D" in cmd)
        installer, _ = make_installer(sample_manifest, sample_files, runner=runner)

        with (
            patch("bifrost.core.installer.remove_file", side_effect=PermissionError("denied")),
            pytest.raises(DependencyManagerError, match="npm install -D @types/node"),
        ):
            installer.install()

        report = installer.last_rollback
        assert len(report.failed_files) == 2
        assert "npm uninstall remix-auth" in report.library_error

    def test_restores_overwritten_file_on_failure(
        self, make_installer, sample_manifest, sample_files, make_runner, project
    ):
        """A file that existed before install gets its content back."""
        existing = project.root / "app/lib/auth.ts"
        existing.parent.mkdir(parents=True)
        existing.write_text("my own auth")
        runner = make_runner(fail_on=lambda cmd: True)
        installer, _ = make_installer(sample_manifest, sample_files, runner=runner)

        with pytest.raises(DependencyManagerError):
            installer.install()

        assert existing.read_text() == "my own auth"
        assert not (project.root / "app/routes").exists()

    def test_custom_location(self, make_installer, sample_files, make_prompter, project):
        """A declined default location asks for another one."""
        manifest = PluginManifest.model_validate(
            {"platform": "remix", "files": [{"name": "auth.ts", "location": "app/lib/auth.ts"}]}
        )
        prompter = make_prompter(confirms=[False], answers=["app/services/auth.ts"])
        installer, _ = make_installer(manifest, sample_files, prompter=prompter)

        result = installer.install()

        assert result.installed_files == [project.root / "app/services/auth.ts"]
        assert not (project.root / "app/lib/auth.ts").exists()

    def test_location_outside_project_is_refused(
        self, make_installer, sample_files, make_prompter, project
    ):
        """Overrides that escape the project root fail before writing."""
        manifest = PluginManifest.model_validate(
            {"platform": "remix", "files": [{"name": "auth.ts", "location": "app/lib/auth.ts"}]}
        )
        prompter = make_prompter(confirms=[False], answers=["../outside.ts"])
        installer, source = make_installer(manifest, sample_files, prompter=prompter)

        with pytest.raises(UnsafePathError, match="../outside.ts"):
            installer.install()

        assert not (project.root.parent / "outside.ts").exists()
        assert source.fetched == []

    def test_missing_config_target_is_skipped(
        self, make_installer, sample_manifest, sample_files, project
    ):
        """Config entries for files that do not exist are skipped."""
        installer, source = make_installer(sample_manifest, sample_files)

        result = installer.install()

        assert result.configs[0].outcome is ConfigOutcome.MISSING
        assert "package.fragment.json" not in source.fetched
        assert not (project.root / "package.json").exists()

    def test_no_dependencies_never_detects_manager(self, project, make_source, prompter):
        """Plugins without dependencies do not need a package manager."""
        manifest = PluginManifest(platform="remix")
        installer = PluginInstaller(
            project, make_source(manifest), prompter, console=Console(file=io.StringIO())
        )

        result = installer.install()

        assert result.package_manager is None
        assert result.installed_files == []

    def test_detects_package_manager_from_lockfile(
        self, project, make_source, prompter, command_runner
    ):
        """The lockfile selects the package manager."""
        (project.root / "yarn.lock").write_text("")
        manifest = PluginManifest(platform="remix", dependencies=["zod"])
        installer = PluginInstaller(
            project,
            make_source(manifest),
            prompter,
            console=Console(file=io.StringIO()),
            runner=command_runner,
        )

        result = installer.install()

        assert result.package_manager == "yarn"
        assert command_runner.commands == [["yarn", "add", "zod"]]

    def test_plugin_name_is_source_repo(self, make_installer, sample_manifest, sample_files):
        """The plugin is identified by its source coordinate."""
        installer, _ = make_installer(sample_manifest, sample_files)

        assert installer.plugin_name == "someone/test-plugin"
