"""Plugin scaffolding for ``bifrost create``."""

import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

from bifrost.config.parser import save_json, save_plugin_manifest
from bifrost.config.schemas import PluginManifest
from bifrost.template.engine import render
from bifrost.utils.filesystem import ensure_directory, write_text_file
from bifrost.utils.process import CommandRunner, run_command

logger = logging.getLogger("bifrost.creator")

GITIGNORE = """node_modules/
.DS_Store
*.log
.env
.env.local
dist/
build/
"""


class ScaffoldError(Exception):
    """Error creating a plugin scaffold."""

    def __init__(self, message: str, path: Path | None = None):
        self.path = path
        super().__init__(message)


@dataclass
class PluginScaffold:
    """Answers collected for a new plugin."""

    name: str
    platform: str
    description: str
    github_username: str
    tags: list[str] = field(default_factory=list)
    libraries: list[str] = field(default_factory=list)

    @property
    def github(self) -> str:
        return f"{self.github_username}/{self.name}"

    def to_manifest(self) -> PluginManifest:
        return PluginManifest(
            name=self.name,
            description=self.description,
            platform=self.platform,
            github=self.github,
            tags=self.tags,
            libraries=self.libraries,
            dependencies=self.libraries,
        )


def split_list(value: str) -> list[str]:
    """Split a comma-separated answer into trimmed, non-empty items."""
    return [item.strip() for item in value.split(",") if item.strip()]


def manual_push_steps(name: str) -> list[str]:
    """Commands the author can run to publish the scaffold by hand."""
    return [
        f"cd {name}",
        "git init",
        "git add .",
        'git commit -m "Initial commit"',
        f"gh repo create {name} --public --source=. --remote=origin --push",
    ]


def create_plugin(parent_dir: Path, scaffold: PluginScaffold) -> Path:
    """Create the plugin directory structure.

    Creates ``<name>/files/``, ``package.json``, ``plugin.bifrost``,
    ``README.md`` and ``.gitignore``.

    Returns:
        Path to the new plugin directory

    Raises:
        ScaffoldError: If the directory already exists
    """
    plugin_dir = parent_dir / scaffold.name
    if plugin_dir.exists():
        raise ScaffoldError(f"Directory {scaffold.name} already exists", plugin_dir)

    ensure_directory(plugin_dir / "files")

    save_json(
        plugin_dir / "package.json",
        {
            "name": scaffold.name,
            "version": "1.0.0",
            "description": scaffold.description,
            "main": "index.js",
            "type": "module",
            "keywords": scaffold.tags,
            "author": scaffold.github_username,
            "license": "MIT",
        },
    )

    manifest = scaffold.to_manifest()
    save_plugin_manifest(plugin_dir, manifest)

    readme = render(
        "README.md.j2",
        {
            "name": scaffold.name,
            "description": scaffold.description,
            "platform": scaffold.platform,
            "libraries": scaffold.libraries,
            "tags": scaffold.tags,
            "files": manifest.files,
            "author": scaffold.github_username,
        },
    )
    write_text_file(plugin_dir / "README.md", readme)
    write_text_file(plugin_dir / ".gitignore", GITIGNORE)

    logger.info("Created plugin scaffold at %s", plugin_dir)
    return plugin_dir


def push_to_github(plugin_dir: Path, name: str, runner: CommandRunner | None = None) -> bool:
    """Initialize a git repository and publish it with the GitHub CLI.

    Returns:
        True if every command succeeded, False otherwise
    """
    runner = runner or run_command
    commands = [
        ["git", "init"],
        ["git", "add", "."],
        ["git", "commit", "-m", "Initial commit: Plugin scaffold"],
        ["gh", "repo", "create", name, "--public", "--source=.", "--remote=origin", "--push"],
    ]
    for command in commands:
        try:
            runner(command, plugin_dir)
        except (subprocess.CalledProcessError, FileNotFoundError) as e:
            logger.warning("Could not run %s: %s", " ".join(command), e)
            return False
    return True
