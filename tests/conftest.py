"""Shared fixtures for Bifrost tests."""

import json
import shutil
import subprocess
import tempfile
from collections.abc import Callable, Generator
from pathlib import Path

import pytest

from bifrost.config.schemas import PluginManifest
from bifrost.core.project import Project
from bifrost.registry.github import FetchError


class FakeSource:
    """In-memory plugin source."""

    def __init__(
        self,
        manifest: PluginManifest,
        files: dict[str, str] | None = None,
        repo: str = "someone/test-plugin",
    ):
        self.repo = repo
        self.manifest = manifest
        self.files = files or {}
        self.fetched: list[str] = []

    def fetch_manifest(self) -> PluginManifest:
        return self.manifest

    def fetch_file(self, name: str) -> str:
        self.fetched.append(name)
        if name not in self.files:
            raise FetchError(f"Failed to fetch file {name}: HTTP 404: Not Found")
        return self.files[name]


class ScriptedPrompter:
    """Prompter that answers from queues, falling back to defaults."""

    def __init__(
        self,
        confirms: list[bool] | None = None,
        answers: list[str] | None = None,
        choices: list[str] | None = None,
    ):
        self.confirms = list(confirms or [])
        self.answers = list(answers or [])
        self.choices = list(choices or [])
        self.messages: list[str] = []

    def confirm(self, message: str, default: bool = True) -> bool:
        self.messages.append(message)
        return self.confirms.pop(0) if self.confirms else default

    def ask(self, message: str, default: str | None = None) -> str:
        self.messages.append(message)
        return self.answers.pop(0) if self.answers else (default or "")

    def choose(self, message: str, choices: dict[str, str], default: str) -> str:
        self.messages.append(message)
        return self.choices.pop(0) if self.choices else default


class RecordingRunner:
    """Command runner that records commands instead of running them."""

    def __init__(self, fail_on: Callable[[list[str]], bool] | None = None, missing: bool = False):
        self.commands: list[list[str]] = []
        self.cwds: list[Path] = []
        self.fail_on = fail_on
        self.missing = missing

    def __call__(self, command: list[str], cwd: Path) -> None:
        if self.missing:
            raise FileNotFoundError(f"{command[0]}: command not found")
        self.commands.append(command)
        self.cwds.append(cwd)
        if self.fail_on is not None and self.fail_on(command):
            raise subprocess.CalledProcessError(1, command)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory."""
    path = Path(tempfile.mkdtemp(prefix="bifrost_test_"))
    yield path
    if path.exists():
        shutil.rmtree(path)


@pytest.fixture
def temp_project(temp_dir: Path) -> Path:
    """Create a remix project directory with config.bifrost."""
    project_dir = temp_dir / "test-project"
    project_dir.mkdir()
    (project_dir / "config.bifrost").write_text(json.dumps({"platform": "remix"}))
    return project_dir


@pytest.fixture
def project(temp_project: Path) -> Project:
    """Loaded project for temp_project."""
    return Project.load(temp_project)


@pytest.fixture
def sample_manifest() -> PluginManifest:
    """Manifest with two files, one config entry and dependencies."""
    return PluginManifest.model_validate(
        {
            "platform": "remix",
            "files": [
                {"name": "auth.ts", "location": "app/lib/auth.ts"},
                {"name": "login.tsx", "location": "app/routes/login.tsx"},
            ],
            "configs": [
                {"targetFile": "package.json", "configSource": "package.fragment.json"},
            ],
            "dependencies": ["remix-auth"],
            "devDependencies": ["@types/node"],
        }
    )


@pytest.fixture
def sample_files() -> dict[str, str]:
    """Plugin file contents keyed by name."""
    return {
        "auth.ts": "export const auth = {};\n",
        "login.tsx": "export default function Login() {}\n",
        "package.fragment.json": json.dumps({"scripts": {"auth": "node auth.js"}}),
    }


@pytest.fixture
def make_source() -> Callable[..., FakeSource]:
    """Factory for in-memory plugin sources."""
    return FakeSource


@pytest.fixture
def make_prompter() -> Callable[..., ScriptedPrompter]:
    """Factory for scripted prompters."""
    return ScriptedPrompter


@pytest.fixture
def prompter() -> ScriptedPrompter:
    """Prompter that accepts every default."""
    return ScriptedPrompter()


@pytest.fixture
def make_runner() -> Callable[..., RecordingRunner]:
    """Factory for recording command runners."""
    return RecordingRunner


@pytest.fixture
def command_runner() -> RecordingRunner:
    """Command runner that records and succeeds."""
    return RecordingRunner()
