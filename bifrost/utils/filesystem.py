"""Filesystem utilities for Bifrost."""

import shutil
from pathlib import Path


def ensure_directory(path: Path) -> Path:
    """Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path to ensure exists

    Returns:
        The directory path
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def remove_file(path: Path) -> bool:
    """Remove a file.

    Args:
        path: File path to remove

    Returns:
        True if the file was removed, False if it didn't exist
    """
    if not path.exists():
        return False
    path.unlink()
    return True


def remove_directory(path: Path) -> bool:
    """Remove a directory and its contents.

    Returns:
        True if the directory was removed, False if it didn't exist
    """
    if not path.exists():
        return False
    shutil.rmtree(path)
    return True


def read_text_file(path: Path) -> str:
    """Read a text file as UTF-8."""
    return path.read_text(encoding="utf-8")


def write_text_file(path: Path, content: str) -> None:
    """Write content to a text file, creating parent directories.

    Args:
        path: Path to the file
        content: Content to write
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def resolve_within(root: Path, relative: str) -> Path | None:
    """Resolve a relative location against a root directory.

    Returns:
        The absolute path, or None if it escapes ``root``
    """
    root = root.resolve()
    candidate = (root / relative).resolve()
    try:
        candidate.relative_to(root)
    except ValueError:
        return None
    return candidate
