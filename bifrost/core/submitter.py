"""Registry submission for ``bifrost submit``.

Submitting forks the registry repository with the GitHub CLI, adds or
updates the plugin's entry in ``registry.bifrost`` and opens a pull request.
"""

import logging
import shutil
import subprocess
from collections.abc import Callable
from pathlib import Path

from bifrost.config.parser import REGISTRY_FILE, dump_registry, load_plugin_manifest, save_json
from bifrost.config.schemas import PluginManifest, RegistryEntry
from bifrost.registry.github import FetchError
from bifrost.registry.index import REGISTRY_REPO, load_registry
from bifrost.utils.process import (
    CommandRunner,
    OutputRunner,
    capture_command,
    run_command,
)

logger = logging.getLogger("bifrost.submitter")

TEMP_DIR_NAME = ".bifrost-temp"


class SubmitError(Exception):
    """Error submitting a plugin to the registry."""

    def __init__(self, message: str, manual_steps: list[str] | None = None):
        self.manual_steps = manual_steps or []
        super().__init__(message)


def manual_submit_steps() -> list[str]:
    """Steps to submit by hand when the GitHub CLI is unavailable."""
    return [
        f"Fork the repository: https://github.com/{REGISTRY_REPO}",
        "Clone your fork",
        f"Add your plugin to {REGISTRY_FILE}",
        "Commit and push changes",
        "Create a pull request",
    ]


def build_registry_entry(manifest: PluginManifest) -> RegistryEntry:
    """Registry entry for a plugin manifest.

    Raises:
        SubmitError: If the manifest lacks a name or GitHub coordinate
    """
    if not manifest.name or not manifest.github:
        raise SubmitError("plugin.bifrost must define 'name' and 'github' to be submitted")
    return RegistryEntry(
        name=manifest.name,
        description=manifest.description or "",
        platform=manifest.platform,
        github=manifest.github,
        tags=manifest.tags,
    )


def upsert_registry(entries: list[RegistryEntry], entry: RegistryEntry) -> bool:
    """Replace the entry with the same name, or append it.

    Returns:
        True if an existing entry was updated
    """
    for index, existing in enumerate(entries):
        if existing.name == entry.name:
            entries[index] = entry
            return True
    entries.append(entry)
    return False


def _current_registry(fetch_registry: Callable[[], list[RegistryEntry]]) -> list[RegistryEntry]:
    try:
        return fetch_registry()
    except FetchError as e:
        logger.warning("Could not fetch current registry, starting empty: %s", e)
        return []


def submit_plugin(
    plugin_dir: Path,
    runner: CommandRunner | None = None,
    capture: OutputRunner | None = None,
    fetch_registry: Callable[[], list[RegistryEntry]] = load_registry,
) -> str:
    """Submit the plugin in ``plugin_dir`` to the registry.

    Returns:
        URL of the created pull request

    Raises:
        ConfigError: If plugin.bifrost is missing or invalid
        SubmitError: If the GitHub CLI is missing or a command fails
    """
    runner = runner or run_command
    capture = capture or capture_command

    manifest = load_plugin_manifest(plugin_dir)
    entry = build_registry_entry(manifest)
    temp_dir = plugin_dir / TEMP_DIR_NAME
    fork_name = REGISTRY_REPO.split("/")[1]

    try:
        logger.info("Forking %s", REGISTRY_REPO)
        runner(["gh", "repo", "fork", REGISTRY_REPO, "--clone=false"], plugin_dir)
        username = capture(["gh", "api", "user", "-q", ".login"], plugin_dir).strip()

        logger.info("Cloning %s/%s", username, fork_name)
        runner(["gh", "repo", "clone", f"{username}/{fork_name}", str(temp_dir)], plugin_dir)

        entries = _current_registry(fetch_registry)
        if upsert_registry(entries, entry):
            logger.warning("Plugin %s already exists in registry. Updating...", entry.name)
        save_json(temp_dir / REGISTRY_FILE, dump_registry(entries))

        runner(["git", "add", "."], temp_dir)
        runner(["git", "commit", "-m", f"Add/Update plugin: {entry.name}"], temp_dir)
        runner(["git", "push"], temp_dir)

        body = (
            f"Submitting plugin {entry.name} to the registry.\n\n"
            f"Platform: {entry.platform}\nDescription: {entry.description}"
        )
        title = f"Add plugin: {entry.name}"
        pr_command = ["gh", "pr", "create", "--repo", REGISTRY_REPO, "--title", title]
        pr_url = capture([*pr_command, "--body", body], temp_dir).strip()
    except FileNotFoundError as e:
        raise SubmitError(
            "GitHub CLI (gh) is not installed", manual_steps=manual_submit_steps()
        ) from e
    except subprocess.CalledProcessError as e:
        raise SubmitError(f"Command failed: {' '.join(e.cmd)}") from e
    finally:
        if temp_dir.exists():
            shutil.rmtree(temp_dir, ignore_errors=True)

    logger.info("Created pull request %s", pr_url)
    return pr_url
