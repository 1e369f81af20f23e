"""
Zig installer - top-level install/use/remove/clean operations.

The installer composes the config store, the mirror registry, the
download orchestrator and an activation strategy. Per version the
lifecycle is::

    absent -> downloading -> completed -> absent
                    \\-> absent (any failure or interrupt)

A failed install never leaves a record behind. While an install runs,
``get_current_download()`` returns a ``DownloadHandle`` whose
``cleanup()`` a signal handler can call to remove the partial install.

Example:
    >>> installer = ZigInstaller.from_directory()
    >>> installer.download_version("0.11.0")
    >>> installer.use_version("0.11.0")
"""

import logging
import threading
from pathlib import Path
from typing import Callable, List, Optional

from zigkit.core.config_store import (
    SYSTEM_VERSION,
    ConfigStore,
    InstalledVersion,
    InstallStatus,
    SystemInstallation,
    VerificationStatus,
    utc_now_iso,
)
from zigkit.core.directory import ensure_zigkit_structure
from zigkit.core.download import ProgressCallback
from zigkit.core.exceptions import (
    InstallLockTimeout,
    InvalidOperationError,
    SystemInstallationNotFoundError,
    VersionAlreadyInstalledError,
    VersionNotFoundError,
    VersionNotInstalledError,
    ZigkitError,
)
from zigkit.core.filesystem import FilesystemError, extract_archive, safe_rmtree
from zigkit.core.locking import LockManager
from zigkit.core.platform import PlatformInfo, detect_platform
from zigkit.core.settings import ZigkitSettings, load_settings
from zigkit.mirrors.registry import MirrorRegistry
from zigkit.toolchain.activation import (
    ActivationStrategy,
    SymlinkActivationStrategy,
    create_activation_strategy,
)
from zigkit.toolchain.fetcher import DownloadOrchestrator
from zigkit.toolchain.index import VersionIndex
from zigkit.toolchain.system_detector import detect_system_zig
from zigkit.toolchain.windows_activation import WindowsActivationManager

logger = logging.getLogger(__name__)


class DownloadHandle:
    """
    Cleanup token for one in-flight install.

    ``cleanup()`` removes the partial install directory and its config
    record. It runs at most once, and not at all after ``disarm()`` (which
    the installer calls once the install has completed).
    """

    def __init__(
        self,
        version: str,
        install_path: Path,
        on_cleanup: Callable[[], None],
        lock=None,
    ):
        self.version = version
        self.install_path = Path(install_path)
        self._on_cleanup = on_cleanup
        self._lock = lock
        self._armed = True
        self._guard = threading.Lock()

    @property
    def armed(self) -> bool:
        return self._armed

    def disarm(self) -> None:
        with self._guard:
            self._armed = False

    def cleanup(self) -> None:
        with self._guard:
            if not self._armed:
                return
            self._armed = False
        logger.warning(f"Cleaning up interrupted install of Zig {self.version}")
        self._on_cleanup()

    def release(self) -> None:
        """Release the install lock, if held."""
        if self._lock is not None:
            self._lock.release()
            self._lock = None


class ZigInstaller:
    """
    Manages installed Zig versions under one zigkit root.

    All collaborators can be injected; anything not given is built from
    the directory layout and settings.
    """

    def __init__(
        self,
        paths: dict,
        platform: Optional[PlatformInfo] = None,
        settings: Optional[ZigkitSettings] = None,
        config_store: Optional[ConfigStore] = None,
        mirror_registry: Optional[MirrorRegistry] = None,
        orchestrator: Optional[DownloadOrchestrator] = None,
        index: Optional[VersionIndex] = None,
        strategy: Optional[ActivationStrategy] = None,
        system_strategy: Optional[ActivationStrategy] = None,
        lock_manager: Optional[LockManager] = None,
        system_detector: Optional[Callable[[], Optional[SystemInstallation]]] = None,
    ):
        self.paths = paths
        self.root = Path(paths["root"])
        self.versions_dir = Path(paths["versions"])
        self.bin_dir = Path(paths["bin"])
        self.platform = platform or detect_platform()
        self.settings = settings or ZigkitSettings()

        self.config_store = config_store or ConfigStore(paths["config"])
        self.mirror_registry = mirror_registry or MirrorRegistry(
            paths["mirrors"],
            mirrors_url=self.settings.mirrors_url,
            timeout=self.settings.download_timeout,
        )
        self.orchestrator = orchestrator or DownloadOrchestrator(
            self.mirror_registry,
            max_mirrors=self.settings.max_mirrors,
            timeout=self.settings.download_timeout,
            source_tag=self.settings.source_tag,
        )
        self.index = index or VersionIndex(
            self.settings.index_url, timeout=self.settings.download_timeout
        )
        self.strategy = strategy or create_activation_strategy(
            self.platform,
            windows_manager=WindowsActivationManager(
                paths["temp"], self.platform.executable_name()
            )
            if self.platform.is_windows
            else None,
        )
        # System installs are always linked, never copied
        self.system_strategy = system_strategy or SymlinkActivationStrategy(
            self.platform.executable_name()
        )
        self.lock_manager = lock_manager or LockManager(paths["lock"])
        self.system_detector = system_detector or (
            lambda: detect_system_zig(
                exclude_dir=self.root,
                executable_name=self.platform.executable_name(),
            )
        )
        self._current_download: Optional[DownloadHandle] = None

    @classmethod
    def from_directory(cls, root: Optional[Path] = None, **kwargs) -> "ZigInstaller":
        """Create the directory layout, load settings and build an installer."""
        paths = ensure_zigkit_structure(root)
        settings = kwargs.pop("settings", None) or load_settings(paths["settings"])
        return cls(paths, settings=settings, **kwargs)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_current_version(self) -> Optional[str]:
        return self.config_store.load().current_version

    def get_installed_versions(self) -> List[str]:
        """Completed versions, with 'system' first when a system Zig is known."""
        config = self.config_store.load()
        versions = [
            name
            for name, record in config.versions.items()
            if record.status == InstallStatus.COMPLETED
        ]
        if config.system_installation is not None:
            versions.insert(0, SYSTEM_VERSION)
        return versions

    def get_current_download(self) -> Optional[DownloadHandle]:
        """The handle of the install in progress, if any."""
        return self._current_download

    # ------------------------------------------------------------------
    # Install
    # ------------------------------------------------------------------

    def download_version(
        self, version: str, progress_callback: Optional[ProgressCallback] = None
    ) -> InstalledVersion:
        """Download, verify, extract and record ``version``."""
        handle = self.start_download(version)
        return self.complete_download(handle, progress_callback=progress_callback)

    def start_download(self, version: str) -> DownloadHandle:
        """
        Reserve ``version`` for installation.

        Takes the per-version install lock and writes the ``downloading``
        record before any bytes are fetched.

        Raises:
            InvalidOperationError: For the 'system' pseudo-version
            VersionNotFoundError: If ``version`` is not a usable directory name
            VersionAlreadyInstalledError: If already completed
            InstallLockTimeout: If another process is installing it
        """
        if version == SYSTEM_VERSION:
            raise InvalidOperationError("The system Zig cannot be installed by zigkit")
        if version in ("", ".", "..") or "/" in version or "\\" in version:
            raise VersionNotFoundError(version)

        existing = self.config_store.get_version(version)
        if existing is not None and existing.status == InstallStatus.COMPLETED:
            raise VersionAlreadyInstalledError(version, existing.install_path)

        lock = self.lock_manager.acquire_install_lock(version)
        try:
            # Another process may have finished it while we waited
            existing = self.config_store.get_version(version)
            if existing is not None and existing.status == InstallStatus.COMPLETED:
                raise VersionAlreadyInstalledError(version, existing.install_path)

            install_path = self.versions_dir / version
            if install_path.exists():
                # Left over from an earlier crash
                safe_rmtree(install_path, require_prefix=self.versions_dir)

            logger.info(f"Installing Zig {version}")
            self.config_store.put_version(
                InstalledVersion(version=version, install_path=str(install_path))
            )
        except BaseException:
            lock.release()
            raise

        handle = DownloadHandle(
            version,
            install_path,
            on_cleanup=lambda: self._discard_install(version, install_path),
            lock=lock,
        )
        self._current_download = handle
        return handle

    def complete_download(
        self,
        handle: DownloadHandle,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> InstalledVersion:
        """
        Run the download pipeline for a reserved version.

        On any failure (or interrupt) the record and install directory are
        removed before the error propagates.

        Raises:
            ZigkitNotFoundError: If the version or platform is not in the index
            AllCandidatesFailedError: If no source passed verification
        """
        version = handle.version
        install_path = handle.install_path

        try:
            artifact = self.index.lookup(version, self.platform.index_key())
            install_path.mkdir(parents=True, exist_ok=True)
            archive_path = install_path / artifact.filename

            self.mirror_registry.sync_if_expired(self.settings.sync_threshold_hours)

            result = self.orchestrator.fetch_and_verify(
                artifact.url,
                archive_path,
                expected_checksum=artifact.shasum,
                progress_callback=progress_callback,
            )

            logger.info(f"Extracting {archive_path.name}")
            extract_archive(archive_path, install_path)
            archive_path.unlink(missing_ok=True)

            record = InstalledVersion(
                version=version,
                install_path=str(install_path),
                status=InstallStatus.COMPLETED,
                downloaded_at=utc_now_iso(),
                checksum=result.checksum,
                checksum_verified=result.checksum_verified,
                signature=result.signature,
                signature_verified=result.signature_verified,
                verification_status=VerificationStatus.VERIFIED,
                source_url=result.source_url,
            )
            self.config_store.put_version(record)
            handle.disarm()
        except BaseException:
            handle.cleanup()
            raise
        finally:
            handle.release()
            self._current_download = None

        logger.info(f"Zig {version} successfully installed")
        self._auto_activate(version)
        return record

    def _auto_activate(self, version: str) -> None:
        if self.get_current_version() is not None:
            return
        try:
            self.use_version(version)
            logger.info(f"Automatically activated Zig {version} (first installation)")
        except ZigkitError as e:
            logger.warning(f"Installed Zig {version} but could not activate it: {e}")

    def _discard_install(self, version: str, install_path: Path) -> None:
        try:
            self.config_store.delete_version(version)
        except OSError as e:
            logger.error(f"Could not remove config record for {version}: {e}")
        try:
            safe_rmtree(install_path, require_prefix=self.versions_dir)
        except (FilesystemError, ValueError) as e:
            logger.error(f"Could not remove {install_path}: {e}")

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------

    def use_version(self, version: str) -> None:
        """
        Make ``version`` the active Zig.

        Raises:
            VersionNotInstalledError: If a managed version is not completed
            SystemInstallationNotFoundError: If 'system' is requested and
                no system Zig can be found
            ActivationError: If the launcher cannot be updated
        """
        if version == SYSTEM_VERSION:
            self._use_system()
            return

        record = self.config_store.get_version(version)
        if record is None or not record.is_activatable:
            raise VersionNotInstalledError(version)

        self.strategy.activate(Path(record.install_path), version, self.bin_dir)
        self.config_store.set_current_version(version)
        logger.info(f"Now using Zig {version}")

    def _use_system(self) -> None:
        config = self.config_store.load()
        installation = config.system_installation

        if installation is not None and not Path(installation.path).exists():
            logger.warning(
                f"System Zig is no longer available at {installation.path}, re-scanning"
            )
            config.system_installation = None
            if config.current_version == SYSTEM_VERSION:
                config.current_version = None
            self.config_store.save(config)
            installation = None

        if installation is None:
            installation = self.system_detector()
            if installation is None:
                raise SystemInstallationNotFoundError(
                    "No system Zig installation found on PATH"
                )
            self.config_store.set_system_installation(installation)

        self.system_strategy.activate(
            Path(installation.path), SYSTEM_VERSION, self.bin_dir
        )
        self.config_store.set_current_version(SYSTEM_VERSION)
        logger.info(f"Now using system Zig {installation.version}")

    def deactivate(self) -> None:
        """
        Remove the launcher and clear the active version.

        Raises:
            InvalidOperationError: If the system Zig is active
        """
        current = self.get_current_version()
        if current is None:
            return
        if current == SYSTEM_VERSION:
            raise InvalidOperationError("The system Zig cannot be deactivated")
        self.strategy.deactivate(self.bin_dir)
        self.config_store.set_current_version(None)

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def remove_version(self, version: str) -> None:
        """
        Delete an installed version.

        Raises:
            InvalidOperationError: For 'system'
            VersionNotInstalledError: If there is no record for ``version``
        """
        if version == SYSTEM_VERSION:
            raise InvalidOperationError("Cannot remove the system Zig installation")

        config = self.config_store.load()
        record = config.versions.get(version)
        if record is None:
            raise VersionNotInstalledError(version)

        if config.current_version == version:
            self.strategy.deactivate(self.bin_dir)
            self.config_store.set_current_version(None)

        safe_rmtree(record.install_path, require_prefix=self.versions_dir)
        self.config_store.delete_version(version)
        logger.info(f"Removed Zig {version}")

    def _remove_many(self, versions: List[str]) -> int:
        cleaned = 0
        for version in versions:
            record = self.config_store.get_version(version)
            if record is None:
                continue
            try:
                safe_rmtree(record.install_path, require_prefix=self.versions_dir)
            except (FilesystemError, ValueError) as e:
                logger.error(f"Failed to remove Zig {version}: {e}")
                continue
            self.config_store.delete_version(version)
            cleaned += 1
        return cleaned

    def clean_except_current(self) -> int:
        """
        Remove every version except the active one.

        Returns:
            Number of versions removed

        Raises:
            InvalidOperationError: If no managed version is active
        """
        current = self.get_current_version()
        if current is None or current == SYSTEM_VERSION:
            raise InvalidOperationError(
                "No managed version is active; nothing to keep"
            )

        others = [v for v in self.config_store.load().versions if v != current]
        if not others:
            logger.info("No other versions to clean")
            return 0

        cleaned = self._remove_many(others)
        logger.info(f"Cleaned up {cleaned} old installations, kept {current}")
        return cleaned

    def clean_all_versions(self) -> int:
        """
        Remove every managed version.

        Afterwards a known system Zig becomes active, otherwise nothing is
        active. A system Zig whose recorded path is gone is re-detected.

        Returns:
            Number of versions removed
        """
        config = self.config_store.load()
        cleaned = self._remove_many(list(config.versions))

        try:
            self.strategy.deactivate(self.bin_dir)
        except ZigkitError as e:
            logger.warning(f"Could not clear launcher directory: {e}")

        self.config_store.set_current_version(None)
        if self.config_store.load().system_installation is None:
            logger.info(f"Cleaned up {cleaned} Zig installations; no version is active")
            return cleaned

        # Re-detects a system Zig whose recorded path has gone away
        try:
            self._use_system()
        except SystemInstallationNotFoundError:
            logger.info(f"Cleaned up {cleaned} Zig installations; no version is active")
            return cleaned
        except ZigkitError as e:
            logger.warning(f"Could not activate the system Zig: {e}")
            return cleaned

        system = self.config_store.load().system_installation
        logger.info(
            f"Cleaned up {cleaned} Zig installations; "
            f"using system Zig {system.version}"
        )
        return cleaned

    def cleanup(self) -> int:
        """
        Garbage-collect records left in ``downloading`` by an earlier crash.
        Versions another process is installing right now are skipped.

        Returns:
            Number of incomplete installs removed
        """
        incomplete = [
            name
            for name, record in self.config_store.load().versions.items()
            if record.status != InstallStatus.COMPLETED
        ]

        cleaned = 0
        for version in incomplete:
            try:
                with self.lock_manager.install_lock(version, timeout=0):
                    logger.info(f"Cleaning up incomplete download: {version}")
                    cleaned += self._remove_many([version])
            except InstallLockTimeout:
                logger.info(f"Skipping {version}: install in progress")
        return cleaned
