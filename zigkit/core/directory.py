"""
Directory structure management for zigkit.

This module resolves the zigkit root directory and creates the layout
that every other component relies on.

Directory Structure:
    Root ($ZIGKIT_DIR or ~/.zigkit/):
        - versions/      : One directory per installed Zig version
        - bin/           : Launcher directory (the only directory on PATH)
        - temp/          : Scratch space for activation backups
        - lock/          : Cross-process lock files
        - zigkit.json    : Installed versions and active version
        - mirrors.yaml   : Ranked community mirror registry
        - settings.yaml  : Optional user settings
"""

import os
from pathlib import Path
from typing import Dict, Optional

from zigkit.core.exceptions import ZigkitError

ZIGKIT_DIR_ENV = "ZIGKIT_DIR"

CONFIG_FILENAME = "zigkit.json"
MIRRORS_FILENAME = "mirrors.yaml"
SETTINGS_FILENAME = "settings.yaml"


class DirectoryError(ZigkitError):
    """Base exception for directory-related errors."""

    pass


class DirectoryCreationError(DirectoryError):
    """Raised when directory creation fails."""

    pass


def get_zigkit_dir() -> Path:
    """
    Get the zigkit root directory.

    Returns:
        Path: ``$ZIGKIT_DIR`` (resolved) if set, otherwise ``~/.zigkit``.

    Raises:
        DirectoryError: If the home directory cannot be determined.

    Example:
        >>> root = get_zigkit_dir()
        >>> print(root)
        /home/user/.zigkit  # on Linux
    """
    env_dir = os.environ.get(ZIGKIT_DIR_ENV)
    if env_dir:
        return Path(env_dir).expanduser().resolve()

    if os.name == "nt":  # Windows
        user_profile = os.environ.get("USERPROFILE")
        if not user_profile:
            raise DirectoryError(
                "USERPROFILE environment variable is not set. "
                "Cannot determine zigkit directory."
            )
        return Path(user_profile) / ".zigkit"

    return Path.home() / ".zigkit"


def get_versions_dir(root: Optional[Path] = None) -> Path:
    """Directory holding one subdirectory per installed version."""
    return (root or get_zigkit_dir()) / "versions"


def get_bin_dir(root: Optional[Path] = None) -> Path:
    """Launcher directory that users put on PATH."""
    return (root or get_zigkit_dir()) / "bin"


def verify_directory_writable(path: Path) -> bool:
    """
    Verify that a directory exists and is writable.

    Args:
        path: Directory path to verify.

    Returns:
        bool: True if directory exists and is writable, False otherwise.
    """
    if not path.exists():
        return False

    if not path.is_dir():
        return False

    # Try to create a temporary file to test write permissions
    try:
        test_file = path / ".write_test"
        test_file.touch()
        test_file.unlink()
        return True
    except OSError:
        return False


def ensure_zigkit_structure(root: Optional[Path] = None) -> Dict[str, Path]:
    """
    Create the zigkit directory structure if it doesn't exist.

    Args:
        root: Root directory (default: ``get_zigkit_dir()``)

    Returns:
        Dict mapping layout names ('root', 'versions', 'bin', 'temp', 'lock',
        'config', 'mirrors', 'settings') to paths.

    Raises:
        DirectoryCreationError: If directory creation fails or root is not writable.

    Example:
        >>> paths = ensure_zigkit_structure()
        >>> print(paths['bin'])
    """
    root = Path(root) if root is not None else get_zigkit_dir()

    try:
        root.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise DirectoryCreationError(
            f"Failed to create zigkit directory at {root}: {e}"
        ) from e

    if not verify_directory_writable(root):
        raise DirectoryCreationError(
            f"zigkit directory at {root} is not writable. "
            "Please check directory permissions."
        )

    paths = {
        "root": root,
        "versions": root / "versions",
        "bin": root / "bin",
        "temp": root / "temp",
        "lock": root / "lock",
    }
    for name in ("versions", "bin", "temp", "lock"):
        try:
            paths[name].mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DirectoryCreationError(
                f"Failed to create subdirectory {paths[name]}: {e}"
            ) from e

    paths["config"] = root / CONFIG_FILENAME
    paths["mirrors"] = root / MIRRORS_FILENAME
    paths["settings"] = root / SETTINGS_FILENAME
    return paths
