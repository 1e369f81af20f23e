"""
Zig toolchain management for zigkit.

This module provides functionality for:
- Release index lookup
- Verified download across mirrors
- Activation of an installed version
- System Zig detection
"""

from zigkit.toolchain.activation import (
    ActivationKind,
    ActivationStrategy,
    SymlinkActivationStrategy,
    WindowsActivationStrategy,
    create_activation_strategy,
    find_zig_executable,
)
from zigkit.toolchain.fetcher import (
    DownloadOrchestrator,
    FetchResult,
    mirror_artifact_url,
)
from zigkit.toolchain.index import ArtifactInfo, VersionIndex
from zigkit.toolchain.installer import DownloadHandle, ZigInstaller
from zigkit.toolchain.system_detector import detect_system_zig, extract_zig_version
from zigkit.toolchain.windows_activation import WindowsActivationManager

__all__ = [
    # Activation
    "ActivationKind",
    "ActivationStrategy",
    "SymlinkActivationStrategy",
    "WindowsActivationStrategy",
    "WindowsActivationManager",
    "create_activation_strategy",
    "find_zig_executable",
    # Download
    "DownloadOrchestrator",
    "FetchResult",
    "mirror_artifact_url",
    # Index
    "ArtifactInfo",
    "VersionIndex",
    # Installer
    "DownloadHandle",
    "ZigInstaller",
    # System
    "detect_system_zig",
    "extract_zig_version",
]
