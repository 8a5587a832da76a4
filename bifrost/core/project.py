"""Project model representing a bifrost host project."""

from pathlib import Path

from bifrost.config.parser import PROJECT_CONFIG_FILE, find_project_root, load_project_config
from bifrost.config.schemas import ProjectConfig


class Project:
    """Represents a bifrost project.

    A project is defined by its config.bifrost file.
    """

    def __init__(self, root: Path, config: ProjectConfig):
        """Initialize a Project.

        Args:
            root: Path to the project root directory
            config: Parsed project configuration
        """
        self._root = root.resolve()
        self._config = config

    @classmethod
    def load(cls, path: Path | None = None) -> "Project":
        """Load a project from disk.

        Args:
            path: Path to the project root, or None to search from cwd

        Raises:
            FileNotFoundError: If no project is found
            ConfigError: If config.bifrost is invalid
        """
        if path is None:
            path = find_project_root()
            if path is None:
                raise FileNotFoundError(
                    f"{PROJECT_CONFIG_FILE} not found in current directory or any parent directory"
                )
        else:
            path = path.resolve()
            if not (path / PROJECT_CONFIG_FILE).exists():
                raise FileNotFoundError(f"{PROJECT_CONFIG_FILE} not found in {path}")

        return cls(path, load_project_config(path))

    @property
    def root(self) -> Path:
        """Get the project root directory."""
        return self._root

    @property
    def platform(self) -> str:
        """Get the project's platform (remix, nextjs, ...)."""
        return self._config.platform

    @property
    def name(self) -> str:
        """Get the project name."""
        return self._config.name or self._root.name

    @property
    def config(self) -> ProjectConfig:
        """Get the underlying configuration."""
        return self._config

    def __repr__(self) -> str:
        return f"Project(root={self._root!r}, platform={self.platform!r})"
