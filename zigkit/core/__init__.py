"""
Core functionality for zigkit.

This package contains the foundational modules that other components depend on.
"""

from .directory import (
    get_zigkit_dir,
    get_versions_dir,
    get_bin_dir,
    ensure_zigkit_structure,
    verify_directory_writable,
    DirectoryError,
)

from .locking import LockManager

from .platform import (
    PlatformInfo,
    detect_platform,
    is_supported_platform,
    clear_platform_cache,
)

from .config_store import (
    ConfigStore,
    InstalledVersion,
    InstallStatus,
    SystemInstallation,
    VerificationStatus,
    ZigkitConfig,
)

from .settings import ZigkitSettings, load_settings

from .exceptions import (
    ZigkitError,
    TransportError,
    DownloadError,
    IndexFetchError,
    MirrorSyncError,
    IntegrityError,
    ZigkitNotFoundError,
    VersionNotFoundError,
    PlatformNotSupportedError,
    VersionNotInstalledError,
    BinaryNotFoundError,
    SystemInstallationNotFoundError,
    ConflictError,
    VersionAlreadyInstalledError,
    EnvironmentCapabilityError,
    CorruptStateError,
    ConfigurationError,
    InvalidOperationError,
    InstallLockTimeout,
    ActivationError,
    WindowsActivationError,
    AllCandidatesFailedError,
)

__all__ = [
    # Directory
    "get_zigkit_dir",
    "get_versions_dir",
    "get_bin_dir",
    "ensure_zigkit_structure",
    "verify_directory_writable",
    "DirectoryError",
    # Locking
    "LockManager",
    # Platform
    "PlatformInfo",
    "detect_platform",
    "is_supported_platform",
    "clear_platform_cache",
    # State
    "ConfigStore",
    "InstalledVersion",
    "InstallStatus",
    "SystemInstallation",
    "VerificationStatus",
    "ZigkitConfig",
    "ZigkitSettings",
    "load_settings",
    # Exceptions
    "ZigkitError",
    "TransportError",
    "DownloadError",
    "IndexFetchError",
    "MirrorSyncError",
    "IntegrityError",
    "ZigkitNotFoundError",
    "VersionNotFoundError",
    "PlatformNotSupportedError",
    "VersionNotInstalledError",
    "BinaryNotFoundError",
    "SystemInstallationNotFoundError",
    "ConflictError",
    "VersionAlreadyInstalledError",
    "EnvironmentCapabilityError",
    "CorruptStateError",
    "ConfigurationError",
    "InvalidOperationError",
    "InstallLockTimeout",
    "ActivationError",
    "WindowsActivationError",
    "AllCandidatesFailedError",
]
