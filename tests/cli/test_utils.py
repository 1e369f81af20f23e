"""Tests for CLI utility functions."""

import io
from unittest.mock import Mock

from zigkit.cli.utils import (
    ProgressPrinter,
    build_installer,
    print_error,
    print_warning,
    resolve_zigkit_dir,
    safe_print,
)
from zigkit.core.download import DownloadProgress


def progress(done, total=1000):
    return DownloadProgress(
        bytes_downloaded=done,
        total_bytes=total,
        percentage=done / total * 100,
        speed_bps=1024.0,
        eta_seconds=1.0,
    )


class TestResolveZigkitDir:
    def test_not_given(self):
        assert resolve_zigkit_dir(Mock(zigkit_dir=None)) is None

    def test_missing_attribute(self):
        assert resolve_zigkit_dir(object()) is None

    def test_resolved(self, temp_dir):
        result = resolve_zigkit_dir(Mock(zigkit_dir=temp_dir / "a" / ".." / "zk"))
        assert result == (temp_dir / "zk").resolve()


class TestBuildInstaller:
    def test_creates_layout(self, temp_dir):
        root = temp_dir / "zk"
        installer = build_installer(Mock(zigkit_dir=root))

        assert installer.root == root.resolve()
        assert (root / "versions").is_dir()
        assert (root / "bin").is_dir()

    def test_uses_environment(self, zigkit_dir):
        installer = build_installer(Mock(zigkit_dir=None))
        assert installer.root == zigkit_dir.resolve()


class TestProgressPrinter:
    """Test ProgressPrinter."""

    def test_redraws_on_percent_change(self):
        stream = io.StringIO()
        printer = ProgressPrinter(stream)

        printer(progress(100))
        printer(progress(101))
        printer(progress(500))
        printer.finish()

        output = stream.getvalue()
        assert output.count("\r") == 2
        assert output.endswith("\n")

    def test_finish_without_progress(self):
        stream = io.StringIO()
        ProgressPrinter(stream).finish()
        assert stream.getvalue() == ""


class TestMessages:
    def test_print_error(self, capsys):
        print_error("Something failed", "try again")
        err = capsys.readouterr().err
        assert "ERROR: Something failed" in err
        assert "  try again" in err

    def test_print_error_without_details(self, capsys):
        print_error("Something failed")
        assert capsys.readouterr().err == "ERROR: Something failed\n"

    def test_print_warning(self, capsys):
        print_warning("careful")
        assert capsys.readouterr().err == "WARNING: careful\n"

    def test_safe_print_falls_back_to_ascii(self):
        class AsciiStream(io.StringIO):
            def write(self, text):
                text.encode("ascii")
                return super().write(text)

        stream = AsciiStream()
        safe_print("✓ done → next", file=stream)
        assert stream.getvalue() == "[OK] done -> next\n"

    def test_safe_print(self, capsys):
        safe_print("plain")
        assert capsys.readouterr().out == "plain\n"
