"""Installation errors shared by the installer and the config processor."""

from pathlib import Path


class InstallError(Exception):
    """Error during plugin installation."""

    def __init__(self, message: str, plugin_name: str | None = None):
        self.plugin_name = plugin_name
        super().__init__(message)


class PlatformMismatchError(InstallError):
    """Plugin targets a different platform than the project."""

    def __init__(self, plugin_platform: str, project_platform: str, plugin_name: str | None = None):
        self.plugin_platform = plugin_platform
        self.project_platform = project_platform
        super().__init__(
            f"Platform mismatch: Plugin is for {plugin_platform}, "
            f"but project is {project_platform}",
            plugin_name,
        )


class WriteError(InstallError):
    """A file could not be written into the project."""

    def __init__(self, path: Path, reason: str, plugin_name: str | None = None):
        self.path = path
        super().__init__(f"Failed to write {path}: {reason}", plugin_name)


class UnsafePathError(InstallError):
    """An install location resolves outside the project root."""

    def __init__(self, location: str, plugin_name: str | None = None):
        self.location = location
        super().__init__(f"Refusing to install outside the project root: {location}", plugin_name)


class ReadError(InstallError):
    """An existing project file could not be read as text."""

    def __init__(self, path: Path, reason: str, plugin_name: str | None = None):
        self.path = path
        super().__init__(f"Failed to read {path}: {reason}", plugin_name)
