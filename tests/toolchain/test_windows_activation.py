"""
Tests for extraction-based activation (runs on any OS; it only copies files).
"""

import json

import pytest

from zigkit.core.exceptions import WindowsActivationError
from zigkit.core.filesystem import recursive_copy
from zigkit.toolchain import windows_activation
from zigkit.toolchain.windows_activation import (
    BACKUP_METADATA_FILENAME,
    WindowsActivationManager,
)


def make_install(versions_dir, version):
    extracted = versions_dir / version / f"zig-x86_64-windows-{version}"
    (extracted / "lib").mkdir(parents=True)
    (extracted / "zig.exe").write_text(f"zig {version}")
    (extracted / "lib" / "std.zig").write_text("std")
    return versions_dir / version


@pytest.fixture
def manager(temp_dir):
    return WindowsActivationManager(temp_dir / "temp")


@pytest.fixture
def bin_dir(temp_dir):
    return temp_dir / "bin"


@pytest.fixture
def versions_dir(temp_dir):
    return temp_dir / "versions"


class TestActivateVersion:
    """Tests for WindowsActivationManager.activate_version."""

    def test_activate_into_empty_bin(self, manager, bin_dir, versions_dir):
        install = make_install(versions_dir, "0.11.0")

        manager.activate_version("0.11.0", install, bin_dir)

        assert (bin_dir / "zig.exe").read_text() == "zig 0.11.0"
        assert (bin_dir / "lib" / "std.zig").exists()
        assert list(manager.temp_dir.iterdir()) == []

    def test_switch_replaces_files(self, manager, bin_dir, versions_dir):
        old = make_install(versions_dir, "0.10.1")
        (old / "zig-x86_64-windows-0.10.1" / "only-in-old.txt").write_text("x")
        new = make_install(versions_dir, "0.11.0")

        manager.activate_version("0.10.1", old, bin_dir)
        manager.activate_version("0.11.0", new, bin_dir)

        assert (bin_dir / "zig.exe").read_text() == "zig 0.11.0"
        assert not (bin_dir / "only-in-old.txt").exists()
        assert list(manager.temp_dir.iterdir()) == []

    def test_invalid_install_leaves_bin_untouched(
        self, manager, bin_dir, versions_dir
    ):
        good = make_install(versions_dir, "0.11.0")
        broken = versions_dir / "0.12.0"
        broken.mkdir(parents=True)
        (broken / "README").write_text("no executable here")
        manager.activate_version("0.11.0", good, bin_dir)

        with pytest.raises(WindowsActivationError) as exc_info:
            manager.activate_version("0.12.0", broken, bin_dir)

        assert exc_info.value.version == "0.12.0"
        assert (bin_dir / "zig.exe").read_text() == "zig 0.11.0"

    def test_copy_failure_rolls_back(
        self, manager, bin_dir, versions_dir, monkeypatch
    ):
        old = make_install(versions_dir, "0.10.1")
        new = make_install(versions_dir, "0.11.0")
        manager.activate_version("0.10.1", old, bin_dir)

        calls = []

        def flaky_copy(source, destination, *args, **kwargs):
            calls.append(source)
            # stage, backup, then the copy into bin fails
            if len(calls) == 3:
                raise OSError("disk full")
            return recursive_copy(source, destination, *args, **kwargs)

        monkeypatch.setattr(windows_activation, "recursive_copy", flaky_copy)

        with pytest.raises(WindowsActivationError, match="disk full"):
            manager.activate_version("0.11.0", new, bin_dir)

        assert (bin_dir / "zig.exe").read_text() == "zig 0.10.1"
        assert not (bin_dir / BACKUP_METADATA_FILENAME).exists()
        assert list(manager.temp_dir.iterdir()) == []

    def test_failure_without_previous_version_clears_bin(
        self, manager, bin_dir, versions_dir, monkeypatch
    ):
        install = make_install(versions_dir, "0.11.0")

        def verify_fails(directory):
            if directory == bin_dir:
                raise OSError("verification failed")

        monkeypatch.setattr(manager, "_verify_executable", verify_fails)

        with pytest.raises(WindowsActivationError):
            manager.activate_version("0.11.0", install, bin_dir)

        assert list(bin_dir.iterdir()) == []

    def test_activate_from_zip(self, manager, bin_dir, versions_dir, zig_archive):
        install = versions_dir / "0.11.0"
        install.mkdir(parents=True)
        (install / "zig-x86_64-windows-0.11.0.zip").write_bytes(
            zig_archive("0.11.0", "x86_64-windows", fmt="zip")
        )

        manager.activate_version("0.11.0", install, bin_dir)

        assert (bin_dir / "zig.exe").exists()
        assert (bin_dir / "lib" / "std" / "std.zig").exists()


class TestBackups:
    """Tests for backup creation and restore."""

    def test_create_backup_writes_metadata(self, manager, bin_dir):
        bin_dir.mkdir()
        (bin_dir / "zig.exe").write_text("zig")

        backup = manager.create_backup(bin_dir)

        metadata = json.loads((backup / BACKUP_METADATA_FILENAME).read_text())
        assert metadata["bin_contents"] == ["zig.exe"]
        assert (backup / "zig.exe").read_text() == "zig"

    def test_restore_backup(self, manager, bin_dir):
        bin_dir.mkdir()
        (bin_dir / "zig.exe").write_text("old")
        backup = manager.create_backup(bin_dir)
        (bin_dir / "zig.exe").write_text("new")

        manager.restore_backup(backup, bin_dir)

        assert (bin_dir / "zig.exe").read_text() == "old"
        assert not (bin_dir / BACKUP_METADATA_FILENAME).exists()
        assert not backup.exists()

    def test_restore_missing_backup(self, manager, bin_dir, temp_dir):
        with pytest.raises(WindowsActivationError, match="does not exist"):
            manager.restore_backup(temp_dir / "missing-backup", bin_dir)

    def test_deactivate_empties_bin(self, manager, bin_dir, versions_dir):
        manager.activate_version(
            "0.11.0", make_install(versions_dir, "0.11.0"), bin_dir
        )

        manager.deactivate(bin_dir)

        assert bin_dir.is_dir()
        assert list(bin_dir.iterdir()) == []
