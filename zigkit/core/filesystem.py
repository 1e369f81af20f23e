"""
Cross-platform file system utilities for zigkit.

This module provides the file operations the stores, installer and
activation strategies share:
- Atomic writes (temp file + rename) for persisted state
- Guarded deletion of install directories and launcher entries
- Archive extraction (tar.xz, zip) with path-traversal protection
- Directory copies used by extraction-based activation
- Executable lookup on PATH
"""

import os
import shutil
import sys
import tarfile
import tempfile
import zipfile
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

from zigkit.core.exceptions import ZigkitError

IS_WINDOWS = os.name == "nt"


# ============================================================================
# Error Handling
# ============================================================================


class FilesystemError(ZigkitError):
    """Base exception for filesystem operations."""

    pass


class ArchiveExtractionError(FilesystemError):
    """Failed to extract an archive."""

    pass


class UnsupportedArchiveFormat(ArchiveExtractionError):
    """Archive format is not supported."""

    pass


class InsecureArchiveError(ArchiveExtractionError):
    """Archive contains insecure paths (directory traversal attempt)."""

    pass


# ============================================================================
# Path Utilities
# ============================================================================


def is_relative_to(path: Path, parent: Path) -> bool:
    """
    Check if path is relative to (under) parent directory.

    Args:
        path: Path to check
        parent: Parent directory

    Returns:
        True if path is under parent directory

    Example:
        >>> is_relative_to(Path("/home/user/.zigkit/bin"), Path("/home/user"))
        True
    """
    try:
        path.relative_to(parent)
        return True
    except ValueError:
        return False


def find_executable(
    name: str,
    search_paths: Optional[Iterable[Path]] = None,
    exclude: Optional[Path] = None,
) -> Optional[Path]:
    """
    Find an executable in the system PATH or provided search paths.

    Args:
        name: Executable name (e.g., 'zig')
        search_paths: Optional list of directories to search
        exclude: Skip any match located under this directory

    Returns:
        Path to executable if found, None otherwise

    Example:
        >>> find_executable('zig', exclude=Path.home() / '.zigkit')
        PosixPath('/usr/local/bin/zig')
    """
    # Add Windows executable extensions
    extensions = [""] if not IS_WINDOWS else ["", ".exe", ".bat", ".cmd"]

    # Use provided paths or system PATH
    if search_paths is None:
        path_env = os.environ.get("PATH", "")
        search_paths = [Path(p) for p in path_env.split(os.pathsep) if p]

    excluded = Path(exclude).resolve() if exclude is not None else None

    for directory in search_paths:
        for ext in extensions:
            exe_path = Path(directory) / f"{name}{ext}"
            if not (exe_path.is_file() and os.access(exe_path, os.X_OK)):
                continue
            if excluded is not None and (
                is_relative_to(exe_path.absolute(), excluded)
                or is_relative_to(exe_path.resolve(), excluded)
            ):
                continue
            return exe_path

    return None


# ============================================================================
# Safe File Operations
# ============================================================================


def atomic_write(
    file_path: Union[str, Path], content: Union[str, bytes], encoding: str = "utf-8"
) -> None:
    """
    Write file atomically using temp file + rename.

    This ensures the file is never in a partially-written state.
    If the write fails, the original file (if any) remains unchanged.

    Args:
        file_path: Path to write to
        content: Content to write (string or bytes)
        encoding: Text encoding (used only for string content)

    Example:
        >>> atomic_write('zigkit.json', '{"config_version": 1}')
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    # Create temp file in same directory (ensures same filesystem)
    temp_fd, temp_path_str = tempfile.mkstemp(
        dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
    )
    temp_path = Path(temp_path_str)

    try:
        if isinstance(content, str):
            with open(temp_fd, "w", encoding=encoding, newline="\n") as f:
                f.write(content)
        else:
            with open(temp_fd, "wb") as f:
                f.write(content)

        # Atomic rename (replaces destination if it exists)
        temp_path.replace(file_path)

    except BaseException:
        try:
            temp_path.unlink(missing_ok=True)
        except OSError:
            pass
        raise


def safe_rmtree(
    path: Union[str, Path], require_prefix: Optional[Union[str, Path]] = None
) -> None:
    """
    Safely remove a directory tree with safeguards.

    Args:
        path: Directory to remove
        require_prefix: If specified, path must be under this directory

    Raises:
        ValueError: If path is not under require_prefix
        FilesystemError: If deletion fails

    Example:
        >>> safe_rmtree('~/.zigkit/versions/0.11.0', require_prefix='~/.zigkit/versions')
    """
    path = Path(path).resolve()

    if require_prefix is not None:
        require_prefix = Path(require_prefix).resolve()
        if not is_relative_to(path, require_prefix) or path == require_prefix:
            raise ValueError(
                f"Refusing to delete '{path}': not under required prefix '{require_prefix}'"
            )

    if not path.exists():
        return  # Already gone, nothing to do

    if not path.is_dir():
        raise FilesystemError(f"Path is not a directory: {path}")

    try:
        if IS_WINDOWS:

            def handle_remove_readonly(func, failed_path, exc):
                """Error handler for Windows read-only files."""
                if not os.access(failed_path, os.W_OK):
                    os.chmod(failed_path, 0o777)
                    func(failed_path)
                else:
                    raise

            shutil.rmtree(path, onerror=handle_remove_readonly)
        else:
            shutil.rmtree(path)

    except Exception as e:
        raise FilesystemError(f"Failed to remove directory '{path}': {e}") from e


def safe_remove(path: Union[str, Path]) -> bool:
    """
    Remove a file, symlink (including dangling ones) or directory tree.

    Args:
        path: Path to remove

    Returns:
        True if something was removed, False if nothing existed

    Raises:
        FilesystemError: If removal fails
    """
    path = Path(path)

    if not path.exists() and not path.is_symlink():
        return False

    try:
        if path.is_symlink() or path.is_file():
            path.unlink()
        else:
            shutil.rmtree(path)
    except OSError as e:
        raise FilesystemError(f"Failed to remove '{path}': {e}") from e

    return True


def clear_directory(path: Union[str, Path]) -> None:
    """Remove everything inside a directory, keeping the directory itself."""
    path = Path(path)
    if not path.is_dir():
        return
    for item in path.iterdir():
        safe_remove(item)


def recursive_copy(
    source: Union[str, Path],
    destination: Union[str, Path],
    symlinks: bool = False,
) -> None:
    """
    Recursively copy a directory tree into destination (merging).

    Args:
        source: Source directory
        destination: Destination directory
        symlinks: If True, copy symlinks as symlinks (default: follow symlinks)

    Example:
        >>> recursive_copy('/source', '/dest')
    """
    source = Path(source)
    destination = Path(destination)

    if not source.exists():
        raise FilesystemError(f"Source does not exist: {source}")

    if not source.is_dir():
        raise FilesystemError(f"Source is not a directory: {source}")

    destination.mkdir(parents=True, exist_ok=True)
    shutil.copytree(source, destination, symlinks=symlinks, dirs_exist_ok=True)


def is_empty_directory(path: Union[str, Path]) -> bool:
    """
    Check if a directory is empty.

    Returns:
        True if directory exists and is empty
    """
    path = Path(path)

    if not path.is_dir():
        return False

    return not any(path.iterdir())


# ============================================================================
# Archive Extraction
# ============================================================================


def _validate_archive_path(path: str, destination: Path) -> None:
    """
    Validate that an archive member path is safe to extract.

    Raises:
        InsecureArchiveError: If path attempts directory traversal
    """
    member_path = (destination / path).resolve()

    if not is_relative_to(member_path, destination.resolve()):
        raise InsecureArchiveError(
            f"Archive member '{path}' attempts directory traversal. "
            "This is a security risk and extraction has been blocked."
        )


def extract_archive(
    archive_path: Union[str, Path],
    destination: Union[str, Path],
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> None:
    """
    Extract an archive to a destination directory.

    Supported formats are the ones Zig publishes: ``.tar.xz`` and ``.zip``.
    All member paths are validated before anything is written.

    Args:
        archive_path: Path to the archive file
        destination: Directory to extract to
        progress_callback: Optional callback(current, total) for progress

    Raises:
        UnsupportedArchiveFormat: If archive format is not recognized
        ArchiveExtractionError: If extraction fails
        InsecureArchiveError: If archive contains malicious paths
    """
    archive_path = Path(archive_path)
    destination = Path(destination)

    if not archive_path.exists():
        raise ArchiveExtractionError(f"Archive not found: {archive_path}")

    destination.mkdir(parents=True, exist_ok=True)

    archive_name = archive_path.name.lower()

    try:
        if archive_name.endswith(".zip"):
            _extract_zip(archive_path, destination, progress_callback)
        elif archive_name.endswith(".tar.xz"):
            _extract_tar(archive_path, destination, "r:xz", progress_callback)
        else:
            raise UnsupportedArchiveFormat(
                f"Unsupported archive format: {archive_path.name}. "
                "Supported: .tar.xz, .zip"
            )
    except (InsecureArchiveError, UnsupportedArchiveFormat):
        raise
    except Exception as e:
        raise ArchiveExtractionError(f"Failed to extract {archive_path}: {e}") from e


def _extract_zip(
    archive_path: Path,
    destination: Path,
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> None:
    """Extract a ZIP archive."""
    with zipfile.ZipFile(archive_path, "r") as zf:
        members = zf.namelist()
        total = len(members)

        for member in members:
            _validate_archive_path(member, destination)

        for i, member in enumerate(members):
            zf.extract(member, destination)
            if progress_callback:
                progress_callback(i + 1, total)


def _extract_tar(
    archive_path: Path,
    destination: Path,
    mode: str,
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> None:
    """Extract a tar archive with specified compression."""
    with tarfile.open(archive_path, mode) as tar:
        members = tar.getmembers()
        total = len(members)

        for member in members:
            _validate_archive_path(member.name, destination)

        # Paths were validated above; the data filter adds link checks on 3.12+
        if sys.version_info >= (3, 12):
            tar.extractall(destination, filter="data")
        else:
            tar.extractall(destination)

        if progress_callback:
            progress_callback(total, total)
