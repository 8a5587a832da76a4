"""Tests for bifrost.utils.filesystem module."""

from pathlib import Path

from bifrost.utils.filesystem import (
    ensure_directory,
    read_text_file,
    remove_directory,
    remove_file,
    resolve_within,
    write_text_file,
)


class TestResolveWithin:
    """Tests for resolve_within function."""

    def test_relative_path(self, temp_dir: Path):
        """Relative locations resolve under the root."""
        assert resolve_within(temp_dir, "app/lib/auth.ts") == temp_dir.resolve() / "app/lib/auth.ts"

    def test_dot_segments_inside_root(self, temp_dir: Path):
        """'..' that stays inside the root is allowed."""
        result = resolve_within(temp_dir, "app/../lib/auth.ts")

        assert result == temp_dir.resolve() / "lib/auth.ts"

    def test_escaping_root(self, temp_dir: Path):
        """Locations outside the root are rejected."""
        assert resolve_within(temp_dir, "../outside.ts") is None
        assert resolve_within(temp_dir, "/etc/passwd") is None

    def test_symlink_out_of_root(self, temp_dir: Path):
        """Symlinked directories pointing outside are rejected."""
        outside = temp_dir / "outside"
        outside.mkdir()
        root = temp_dir / "root"
        root.mkdir()
        (root / "link").symlink_to(outside)

        assert resolve_within(root, "link/file.ts") is None


class TestFileHelpers:
    """Tests for file read/write helpers."""

    def test_write_creates_parents(self, temp_dir: Path):
        """Parent directories are created."""
        path = temp_dir / "a" / "b" / "c.txt"

        write_text_file(path, "hello")

        assert read_text_file(path) == "hello"

    def test_remove_file(self, temp_dir: Path):
        """Removing reports whether the file existed."""
        path = temp_dir / "x.txt"
        path.write_text("x")

        assert remove_file(path) is True
        assert remove_file(path) is False

    def test_directories(self, temp_dir: Path):
        """Directories can be ensured and removed."""
        path = ensure_directory(temp_dir / "d" / "e")
        (path / "f.txt").write_text("f")

        assert remove_directory(temp_dir / "d") is True
        assert not (temp_dir / "d").exists()
        assert remove_directory(temp_dir / "d") is False
