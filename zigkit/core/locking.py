"""
Cross-process locking for zigkit.

A per-version file lock is held for the whole duration of an install so
that two zigkit invocations cannot download into the same version
directory at once.

Usage:
    from zigkit.core.locking import LockManager

    lock_manager = LockManager(paths["lock"])
    with lock_manager.install_lock("0.11.0", timeout=5):
        # Safe to download and extract 0.11.0
        pass
"""

import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from filelock import FileLock, Timeout as LockTimeout

from zigkit.core.directory import get_zigkit_dir
from zigkit.core.exceptions import InstallLockTimeout

logger = logging.getLogger(__name__)

DEFAULT_INSTALL_LOCK_TIMEOUT = 5


def _safe_lock_name(value: str) -> str:
    return value.replace("/", "-").replace("\\", "-").replace(":", "-")


class LockManager:
    """
    Manages file locks for zigkit resources.

    Uses file-based locking with the `filelock` library for cross-platform
    compatibility and automatic cleanup on process death.

    Attributes:
        lock_dir: Directory where lock files are stored
    """

    def __init__(self, lock_dir: Optional[Path] = None):
        if lock_dir is None:
            lock_dir = get_zigkit_dir() / "lock"

        self.lock_dir = Path(lock_dir)
        self.lock_dir.mkdir(parents=True, exist_ok=True)

    def acquire_install_lock(
        self, version: str, timeout: float = DEFAULT_INSTALL_LOCK_TIMEOUT
    ) -> FileLock:
        """
        Acquire the install lock for a version and return it held.

        The caller owns the returned lock and must call ``release()`` on it.

        Raises:
            InstallLockTimeout: If another process holds the lock
        """
        lock_path = self.lock_dir / f"install-{_safe_lock_name(version)}.lock"
        lock = FileLock(lock_path, timeout=timeout)

        try:
            lock.acquire()
        except LockTimeout as e:
            logger.error(
                f"Could not acquire install lock for Zig {version} after {timeout}s. "
                "Another zigkit process may be installing this version."
            )
            raise InstallLockTimeout(
                f"Could not acquire install lock for Zig {version} after {timeout}s. "
                "Another zigkit process may be installing this version."
            ) from e

        logger.debug(f"Acquired install lock: {lock_path}")
        return lock

    @contextmanager
    def install_lock(self, version: str, timeout: float = DEFAULT_INSTALL_LOCK_TIMEOUT):
        """
        Hold the install lock for a version for the duration of a block.

        Raises:
            InstallLockTimeout: If lock can't be acquired within timeout

        Example:
            >>> with lock_manager.install_lock('0.11.0'):
            ...     install('0.11.0')
        """
        lock = self.acquire_install_lock(version, timeout=timeout)
        try:
            yield
        finally:
            lock.release()
            logger.debug(f"Released install lock: {lock.lock_file}")

    def cleanup_stale_locks(self, max_age_hours: int = 24) -> int:
        """
        Remove lock files older than max_age_hours.

        Returns:
            Number of stale locks removed
        """
        if not self.lock_dir.exists():
            return 0

        current_time = time.time()
        removed_count = 0

        for lock_file in self.lock_dir.glob("*.lock"):
            try:
                age_hours = (current_time - lock_file.stat().st_mtime) / 3600

                if age_hours > max_age_hours:
                    lock_file.unlink()
                    logger.info(f"Removed stale lock file: {lock_file}")
                    removed_count += 1
            except OSError as e:
                # Lock may be in use or already deleted
                logger.debug(f"Could not remove lock {lock_file}: {e}")

        return removed_count


__all__ = ["LockManager", "LockTimeout", "DEFAULT_INSTALL_LOCK_TIMEOUT"]
