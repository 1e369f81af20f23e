"""
Unit tests for the zigkit directory layout.
"""

from pathlib import Path

from zigkit.core.directory import (
    ensure_zigkit_structure,
    get_bin_dir,
    get_versions_dir,
    get_zigkit_dir,
    verify_directory_writable,
)


class TestGetZigkitDir:
    """Test root directory resolution."""

    def test_env_override(self, zigkit_dir):
        assert get_zigkit_dir() == zigkit_dir.resolve()

    def test_default_under_home(self, isolated_home):
        assert get_zigkit_dir() == Path(isolated_home) / ".zigkit"

    def test_sub_directories(self, temp_dir):
        assert get_versions_dir(temp_dir) == temp_dir / "versions"
        assert get_bin_dir(temp_dir) == temp_dir / "bin"


class TestEnsureZigkitStructure:
    """Test ensure_zigkit_structure function."""

    def test_creates_layout(self, temp_dir):
        root = temp_dir / "zk"
        paths = ensure_zigkit_structure(root)

        for key in ("root", "versions", "bin", "temp", "lock"):
            assert paths[key].is_dir(), key
        assert paths["config"] == root / "zigkit.json"
        assert paths["mirrors"] == root / "mirrors.yaml"
        assert paths["settings"] == root / "settings.yaml"

    def test_idempotent(self, temp_dir):
        first = ensure_zigkit_structure(temp_dir / "zk")
        second = ensure_zigkit_structure(temp_dir / "zk")
        assert first == second

    def test_uses_env_root(self, zigkit_dir):
        paths = ensure_zigkit_structure()
        assert paths["root"] == zigkit_dir.resolve()


class TestVerifyDirectoryWritable:
    def test_writable(self, temp_dir):
        assert verify_directory_writable(temp_dir)

    def test_missing(self, temp_dir):
        assert not verify_directory_writable(temp_dir / "missing")

    def test_file(self, temp_dir):
        path = temp_dir / "file"
        path.write_text("x")
        assert not verify_directory_writable(path)
