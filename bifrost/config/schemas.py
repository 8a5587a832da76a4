"""Pydantic schemas for Bifrost configuration files.

This module defines the data models for:
- config.bifrost (host project configuration)
- plugin.bifrost (plugin manifest)
- registry.bifrost (plugin registry)
"""

from typing import Literal

from pydantic import BaseModel, Field, field_validator

# =============================================================================
# Common Types
# =============================================================================

Platform = Literal["remix", "nextjs", "vite", "other"]
InsertType = Literal["append", "replace", "merge"]

PLATFORM_CHOICES: dict[str, str] = {
    "remix": "Remix",
    "nextjs": "Next.js",
    "vite": "Vite",
    "other": "Other",
}


# =============================================================================
# Plugin Manifest (plugin.bifrost)
# =============================================================================


class FileEntry(BaseModel):
    """A file contributed by a plugin.

    - name: File name under the plugin's files/ directory
    - location: Default install location relative to the project root
    """

    model_config = {"frozen": True}

    name: str
    location: str


class ConfigEntry(BaseModel):
    """A configuration fragment to merge into an existing project file."""

    model_config = {"frozen": True, "populate_by_name": True}

    target_file: str = Field(alias="targetFile")
    config_source: str = Field(alias="configSource")
    insert_type: InsertType = Field(default="append", alias="insertType")


class PluginManifest(BaseModel):
    """Plugin manifest (plugin.bifrost) schema.

    Only ``platform``, ``files``, ``configs`` and the dependency lists drive
    installation. The descriptive fields are written by ``bifrost create``
    and read by ``bifrost submit``.
    """

    model_config = {"frozen": True, "populate_by_name": True}

    platform: str
    files: list[FileEntry] = Field(default_factory=list)
    configs: list[ConfigEntry] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)
    dev_dependencies: list[str] = Field(default_factory=list, alias="devDependencies")

    name: str | None = None
    description: str | None = None
    github: str | None = None
    tags: list[str] = Field(default_factory=list)
    libraries: list[str] = Field(default_factory=list)

    @field_validator("platform")
    @classmethod
    def validate_platform(cls, v: str) -> str:
        """Platform must be a non-empty identifier."""
        if not v.strip():
            raise ValueError("Plugin platform cannot be empty")
        return v


# =============================================================================
# Project Configuration (config.bifrost)
# =============================================================================


class ProjectConfig(BaseModel):
    """Host project configuration (config.bifrost) schema."""

    platform: str
    name: str | None = None
    registry: str | None = None  # Optional registry override (URL or path)


# =============================================================================
# Registry (registry.bifrost)
# =============================================================================


class RegistryEntry(BaseModel):
    """A plugin listed in the registry."""

    name: str
    description: str = ""
    platform: str
    github: str
    tags: list[str] = Field(default_factory=list)

    @field_validator("github")
    @classmethod
    def validate_github(cls, v: str) -> str:
        """GitHub coordinate must look like owner/repo."""
        parts = v.split("/")
        if len(parts) != 2 or not all(parts):
            raise ValueError(f"Invalid GitHub coordinate (expected owner/repo): {v}")
        return v
