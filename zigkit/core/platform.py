"""
Platform detection for zigkit.

This module detects the current operating system and CPU architecture and
normalizes them to the names used by the Zig download index, so that the
right artifact can be looked up and the right activation strategy chosen.

Usage:
    from zigkit.core.platform import detect_platform

    platform_info = detect_platform()
    print(f"Index key: {platform_info.index_key()}")   # e.g. 'x86_64-linux'
    print(f"Archive: {platform_info.archive_extension()}")
"""

import functools
import platform
from dataclasses import dataclass
from typing import Optional

# Normalized machine names -> Zig index architecture names
_ARCH_ALIASES = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "x64": "x86_64",
    "aarch64": "aarch64",
    "arm64": "aarch64",
    "i386": "x86",
    "i686": "x86",
    "x86": "x86",
    "armv7l": "armv7a",
    "armv7a": "armv7a",
    "riscv64": "riscv64",
    "ppc64le": "powerpc64le",
    "powerpc64le": "powerpc64le",
    "loongarch64": "loongarch64",
    "s390x": "s390x",
}

SUPPORTED_OS = ("linux", "macos", "windows", "freebsd", "netbsd")


@dataclass(frozen=True)
class PlatformInfo:
    """
    Platform information normalized to Zig naming.

    Attributes:
        os: Operating system ('linux', 'macos', 'windows', 'freebsd', ...)
        arch: CPU architecture ('x86_64', 'aarch64', 'x86', 'armv7a', ...)
        os_version: OS version string (informational only)
    """

    os: str
    arch: str
    os_version: str = ""

    @property
    def is_windows(self) -> bool:
        return self.os == "windows"

    def index_key(self) -> str:
        """
        Key used by the Zig download index for this platform.

        Example:
            >>> PlatformInfo('linux', 'x86_64').index_key()
            'x86_64-linux'
        """
        return f"{self.arch}-{self.os}"

    def archive_extension(self) -> str:
        """Archive format Zig publishes for this platform."""
        return "zip" if self.is_windows else "tar.xz"

    def executable_name(self) -> str:
        """Name of the zig executable on this platform."""
        return "zig.exe" if self.is_windows else "zig"

    def __str__(self) -> str:
        if self.os_version:
            return f"{self.index_key()} v{self.os_version}"
        return self.index_key()


@functools.lru_cache(maxsize=1)
def detect_platform() -> PlatformInfo:
    """
    Detect current platform information.

    This function is cached - it only runs detection once per process.

    Returns:
        PlatformInfo instance with detected platform information

    Raises:
        RuntimeError: If the operating system is not supported
    """
    return PlatformInfo(
        os=_detect_os(), arch=_detect_architecture(), os_version=platform.release()
    )


def _detect_os() -> str:
    system = platform.system().lower()

    if system == "windows":
        return "windows"
    elif system == "linux":
        return "linux"
    elif system == "darwin":
        return "macos"
    elif system in ("freebsd", "netbsd"):
        return system
    else:
        raise RuntimeError(f"Unsupported operating system: {system}")


def _detect_architecture() -> str:
    machine = platform.machine().lower()

    if machine in _ARCH_ALIASES:
        return _ARCH_ALIASES[machine]
    elif machine.startswith("arm"):
        return "armv7a"
    else:
        # Return original for unknown architectures
        return machine


def is_supported_platform(info: Optional[PlatformInfo] = None) -> bool:
    """
    Check if zigkit knows how to manage Zig on a platform.

    Args:
        info: PlatformInfo to check. If None, detects current platform.
    """
    if info is None:
        info = detect_platform()

    return info.os in SUPPORTED_OS and info.arch in set(_ARCH_ALIASES.values())


def clear_platform_cache():
    """
    Clear the platform detection cache.

    This forces the next call to detect_platform() to re-detect.
    Useful for testing.
    """
    detect_platform.cache_clear()


__all__ = [
    "PlatformInfo",
    "detect_platform",
    "is_supported_platform",
    "clear_platform_cache",
]
