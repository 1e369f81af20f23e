"""
Extraction-based activation for Windows.

Symbolic links need elevated privileges on most Windows machines, so on
Windows the active version's files are copied into the launcher directory
itself. The swap is guarded:

1. the new version is staged into a scratch directory and checked for
   ``zig.exe``
2. the current launcher directory is backed up
3. the launcher directory is replaced by the staged files
4. the backup is removed

If anything fails after the backup exists, the backup is restored, so the
launcher directory never ends up empty or holding a mix of two versions.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from zigkit.core.exceptions import WindowsActivationError
from zigkit.core.filesystem import (
    FilesystemError,
    clear_directory,
    extract_archive,
    is_empty_directory,
    recursive_copy,
    safe_remove,
)

logger = logging.getLogger(__name__)

BACKUP_METADATA_FILENAME = ".backup-metadata.json"


def _unique_suffix() -> str:
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
    return f"{timestamp}-{uuid.uuid4().hex[:8]}"


class WindowsActivationManager:
    """
    Copies an installed version into the launcher directory with rollback.

    Attributes:
        temp_dir: Scratch directory for backups and staging
        executable_name: Executable that must exist after activation
    """

    def __init__(self, temp_dir: Path, executable_name: str = "zig.exe"):
        self.temp_dir = Path(temp_dir)
        self.executable_name = executable_name

    def activate_version(self, version: str, install_path: Path, bin_dir: Path) -> None:
        """
        Make ``version`` the contents of ``bin_dir``.

        Raises:
            WindowsActivationError: If activation fails. When a rollback was
                needed and also failed, the message says so and
                ``backup_path`` points at the surviving backup.
        """
        install_path = Path(install_path)
        bin_dir = Path(bin_dir)
        logger.info(f"Activating Zig {version} in {bin_dir}")

        staging = self._stage(version, install_path)
        backup_path = None
        try:
            if bin_dir.is_dir() and not is_empty_directory(bin_dir):
                backup_path = self.create_backup(bin_dir)
                logger.debug(f"Backup created at {backup_path}")

            bin_dir.mkdir(parents=True, exist_ok=True)
            clear_directory(bin_dir)
            recursive_copy(staging, bin_dir)
            self._verify_executable(bin_dir)

        except (OSError, FilesystemError, WindowsActivationError) as e:
            logger.error(f"Failed to activate Zig {version}: {e}")
            if backup_path is not None:
                try:
                    self.restore_backup(backup_path, bin_dir)
                    logger.info("Rolled back to previous installation")
                except WindowsActivationError as rollback_error:
                    raise WindowsActivationError(
                        f"Activation failed and rollback also failed: {e}. "
                        f"Rollback error: {rollback_error}",
                        version=version,
                        backup_path=str(backup_path),
                    ) from e
            else:
                # Nothing was active before; do not leave a partial copy behind
                try:
                    clear_directory(bin_dir)
                except FilesystemError as clear_error:
                    logger.warning(f"Could not clear {bin_dir}: {clear_error}")
            raise WindowsActivationError(
                f"Failed to activate Zig {version}: {e}",
                version=version,
                backup_path=str(backup_path) if backup_path else None,
            ) from e
        finally:
            self.cleanup_backup(staging)

        if backup_path is not None:
            self.cleanup_backup(backup_path)
        logger.info(f"Activated Zig {version}")

    def deactivate(self, bin_dir: Path) -> None:
        """Empty the launcher directory."""
        clear_directory(bin_dir)

    def create_backup(self, bin_dir: Path) -> Path:
        """
        Copy the launcher directory contents into a fresh backup directory.

        Returns:
            Path to the backup directory
        """
        bin_dir = Path(bin_dir)
        backup_path = self.temp_dir / f"backup-{_unique_suffix()}"
        try:
            backup_path.mkdir(parents=True)
            contents = sorted(item.name for item in bin_dir.iterdir())
            recursive_copy(bin_dir, backup_path)
            metadata = {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "backup_path": str(backup_path),
                "bin_contents": contents,
            }
            (backup_path / BACKUP_METADATA_FILENAME).write_text(
                json.dumps(metadata, indent=2), encoding="utf-8"
            )
        except (OSError, FilesystemError) as e:
            raise WindowsActivationError(f"Failed to create backup: {e}") from e
        return backup_path

    def restore_backup(self, backup_path: Path, bin_dir: Path) -> None:
        """Replace the launcher directory contents with a backup."""
        backup_path = Path(backup_path)
        bin_dir = Path(bin_dir)
        try:
            if not backup_path.is_dir():
                raise FilesystemError(f"Backup directory does not exist: {backup_path}")

            bin_dir.mkdir(parents=True, exist_ok=True)
            clear_directory(bin_dir)
            recursive_copy(backup_path, bin_dir)
            safe_remove(bin_dir / BACKUP_METADATA_FILENAME)
        except (OSError, FilesystemError) as e:
            raise WindowsActivationError(
                f"Failed to restore backup: {e}", backup_path=str(backup_path)
            ) from e

        self.cleanup_backup(backup_path)

    def extract_installation(self, install_path: Path, destination: Path) -> None:
        """
        Lay out an installed version's files flat in ``destination``.

        Sources, in order of preference: an extracted ``zig-*`` directory in
        the install path, a ``.zip`` archive in the install path (flattened
        if it has a single top-level directory), or the install path itself.
        """
        install_path = Path(install_path)
        destination = Path(destination)
        try:
            if not install_path.is_dir():
                raise FilesystemError(f"Installation path does not exist: {install_path}")

            destination.mkdir(parents=True, exist_ok=True)
            entries = sorted(install_path.iterdir())

            extracted = next(
                (p for p in entries if p.is_dir() and p.name.startswith("zig-")), None
            )
            archive = next(
                (p for p in entries if p.is_file() and p.name.lower().endswith(".zip")),
                None,
            )

            if extracted is not None:
                recursive_copy(extracted, destination)
            elif archive is not None:
                extract_archive(archive, destination)
                self._flatten_single_directory(destination)
            else:
                recursive_copy(install_path, destination)

            self._verify_executable(destination)
        except (OSError, FilesystemError) as e:
            raise WindowsActivationError(f"Failed to extract installation: {e}") from e

    def cleanup_backup(self, backup_path: Optional[Path]) -> None:
        """Remove a backup or staging directory; failures are only logged."""
        if backup_path is None:
            return
        try:
            safe_remove(backup_path)
        except FilesystemError as e:
            logger.warning(f"Failed to clean up {backup_path}: {e}")

    def _stage(self, version: str, install_path: Path) -> Path:
        staging = self.temp_dir / f"stage-{_unique_suffix()}"
        try:
            self.extract_installation(install_path, staging)
        except WindowsActivationError as e:
            self.cleanup_backup(staging)
            raise WindowsActivationError(
                f"Failed to activate Zig {version}: {e}", version=version
            ) from e
        return staging

    def _flatten_single_directory(self, directory: Path) -> None:
        entries = list(directory.iterdir())
        if len(entries) != 1 or not entries[0].is_dir():
            return
        nested = entries[0]
        holding = directory.parent / f".{directory.name}-{uuid.uuid4().hex[:8]}"
        nested.rename(holding)
        try:
            for item in holding.iterdir():
                item.rename(directory / item.name)
        finally:
            safe_remove(holding)

    def _verify_executable(self, directory: Path) -> None:
        executable = directory / self.executable_name
        if not executable.is_file():
            raise FilesystemError(
                f"{self.executable_name} not found in extracted installation at {executable}"
            )
