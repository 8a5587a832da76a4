"""Plugin registry lookup.

The registry is a JSON array of entries kept in ``registry.bifrost`` at the
root of the registry repository.
"""

import json
import logging
from pathlib import Path

from bifrost.config.parser import REGISTRY_FILE, load_json, parse_registry
from bifrost.config.schemas import RegistryEntry
from bifrost.registry.github import FetchError, GitHubSource, decode_text, http_get

logger = logging.getLogger(__name__)

REGISTRY_REPO = "A5GARD/BIFROST-PLUGIN"


def default_registry_source() -> GitHubSource:
    """Source for the public plugin registry."""
    return GitHubSource(REGISTRY_REPO)


def load_registry(source: str | None = None) -> list[RegistryEntry]:
    """Load the plugin registry.

    Args:
        source: None for the public registry, an https:// URL, or a local
                file path

    Raises:
        FetchError: If a remote registry cannot be fetched
        ConfigError: If the registry content is invalid
    """
    if source is None:
        client = default_registry_source()
        text = client.fetch_text(REGISTRY_FILE)
        origin = client.url_for(REGISTRY_FILE)
    elif source.startswith("https://") or source.startswith("http://"):
        text = decode_text(http_get(source), source)
        origin = source
    else:
        path = Path(source)
        logger.debug("Loading registry from %s", path)
        return parse_registry(load_json(path), str(path))

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise FetchError(f"Invalid JSON in registry at {origin}: {e}", url=origin) from e
    return parse_registry(data, origin)


def find_plugin(entries: list[RegistryEntry], name: str) -> RegistryEntry | None:
    """Find a registry entry by plugin name."""
    for entry in entries:
        if entry.name == name:
            return entry
    return None


def validate_platform_compatibility(project_platform: str, plugin_platform: str) -> bool:
    """Check whether a plugin targets the project's platform."""
    return project_platform == plugin_platform


def compatible_plugins(entries: list[RegistryEntry], platform: str) -> list[RegistryEntry]:
    """Registry entries installable on a platform."""
    return [e for e in entries if validate_platform_compatibility(platform, e.platform)]
