"""
Shared utilities for CLI commands.

Provides common functionality used across multiple CLI commands to
eliminate duplication and ensure consistent behavior.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from zigkit.core.download import DownloadProgress, format_progress
from zigkit.toolchain.installer import ZigInstaller

logger = logging.getLogger(__name__)


# ============================================================================
# Installer Construction
# ============================================================================


def resolve_zigkit_dir(args) -> Optional[Path]:
    """
    Root directory requested on the command line, if any.

    Returns:
        Resolved path, or None to use $ZIGKIT_DIR / ~/.zigkit
    """
    zigkit_dir = getattr(args, "zigkit_dir", None)
    if zigkit_dir is None:
        return None
    return Path(zigkit_dir).expanduser().resolve()


def build_installer(args) -> ZigInstaller:
    """
    Create an installer for the root directory selected by ``args``.

    The directory layout is created on first use.
    """
    root = resolve_zigkit_dir(args)
    installer = ZigInstaller.from_directory(root)
    logger.debug(f"Using zigkit directory {installer.root}")
    return installer


# ============================================================================
# Output Formatting
# ============================================================================


class ProgressPrinter:
    """
    Download progress callback that redraws a single stderr line.

    Only redraws when the whole-percent value changes.
    """

    def __init__(self, stream=None):
        self.stream = stream or sys.stderr
        self._last_percent = None
        self._printed = False

    def __call__(self, progress: DownloadProgress) -> None:
        percent = int(progress.percentage)
        if percent == self._last_percent:
            return
        self._last_percent = percent
        self.stream.write(f"\r  {format_progress(progress)}")
        self.stream.flush()
        self._printed = True

    def finish(self) -> None:
        """End the progress line, if one was drawn."""
        if self._printed:
            self.stream.write("\n")
            self.stream.flush()
        self._last_percent = None
        self._printed = False


def print_error(message: str, details: Optional[str] = None):
    """
    Print error message to stderr in consistent format.

    Args:
        message: Main error message
        details: Optional additional details
    """
    print(f"ERROR: {message}", file=sys.stderr)
    if details:
        print(f"  {details}", file=sys.stderr)


def print_warning(message: str):
    """Print warning message to stderr."""
    print(f"WARNING: {message}", file=sys.stderr)


def safe_print(message: str, file=None):
    """
    Print message with safe encoding handling for Windows console.

    Falls back to ASCII markers if the console cannot encode them.

    Args:
        message: Message to print
        file: Output file (default: stdout)
    """
    try:
        print(message, file=file)
    except UnicodeEncodeError:
        safe_message = (
            message.replace("✓", "[OK]").replace("✗", "[X]").replace("→", "->")
        )
        print(safe_message, file=file)
