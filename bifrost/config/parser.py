"""Configuration file parsing utilities."""

import json
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter, ValidationError

from bifrost.config.schemas import PluginManifest, ProjectConfig, RegistryEntry

PROJECT_CONFIG_FILE = "config.bifrost"
PLUGIN_MANIFEST_FILE = "plugin.bifrost"
REGISTRY_FILE = "registry.bifrost"

_registry_adapter = TypeAdapter(list[RegistryEntry])


class ConfigError(Exception):
    """Error loading or parsing configuration."""

    def __init__(self, message: str, path: Path | str | None = None):
        self.path = path
        super().__init__(message)


def load_json(path: Path) -> Any:
    """Load and parse a JSON file.

    Args:
        path: Path to the JSON file

    Returns:
        Parsed JSON value

    Raises:
        ConfigError: If the file cannot be read or parsed
    """
    if not path.exists():
        raise ConfigError(f"File not found: {path}", path)

    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}", path) from e
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}", path) from e


def save_json(path: Path, data: Any, indent: int = 2) -> None:
    """Save data to a JSON file.

    Args:
        path: Path to write to
        data: Data to serialize
        indent: JSON indentation level
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=indent)
        f.write("\n")


def load_project_config(project_root: Path) -> ProjectConfig:
    """Load project configuration from config.bifrost.

    Raises:
        ConfigError: If the file is missing or invalid
    """
    config_path = project_root / PROJECT_CONFIG_FILE
    data = load_json(config_path)

    try:
        return ProjectConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid project config: {e}", config_path) from e


def parse_plugin_manifest(data: Any, source: str | None = None) -> PluginManifest:
    """Validate already-loaded manifest data.

    Args:
        data: Parsed JSON content of a plugin.bifrost file
        source: Where the data came from, for error messages

    Raises:
        ConfigError: If the data does not match the manifest schema
    """
    try:
        return PluginManifest.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid plugin manifest: {e}", source) from e


def load_plugin_manifest(plugin_path: Path) -> PluginManifest:
    """Load plugin manifest from plugin.bifrost.

    Args:
        plugin_path: Path to the plugin directory

    Raises:
        ConfigError: If the file is missing or invalid
    """
    manifest_path = plugin_path / PLUGIN_MANIFEST_FILE
    return parse_plugin_manifest(load_json(manifest_path), str(manifest_path))


def save_plugin_manifest(plugin_path: Path, manifest: PluginManifest) -> None:
    """Save a plugin manifest to plugin.bifrost using camelCase keys."""
    save_json(plugin_path / PLUGIN_MANIFEST_FILE, manifest.model_dump(by_alias=True))


def parse_registry(data: Any, source: str | None = None) -> list[RegistryEntry]:
    """Validate registry data (a JSON array of entries).

    Raises:
        ConfigError: If the data is not a valid registry
    """
    try:
        return _registry_adapter.validate_python(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid registry: {e}", source) from e


def dump_registry(entries: list[RegistryEntry]) -> list[dict[str, Any]]:
    """Convert registry entries back to plain JSON data."""
    return [entry.model_dump() for entry in entries]


def find_project_root(start_path: Path | None = None) -> Path | None:
    """Find the project root by looking for config.bifrost.

    Args:
        start_path: Directory to start searching from (defaults to cwd)

    Returns:
        Path to project root, or None if not found
    """
    if start_path is None:
        start_path = Path.cwd()

    current = start_path.resolve()
    while current != current.parent:
        if (current / PROJECT_CONFIG_FILE).exists():
            return current
        current = current.parent

    if (current / PROJECT_CONFIG_FILE).exists():
        return current

    return None
