"""
Activation strategies.

Activation makes one installed version reachable through the launcher
directory (``~/.zigkit/bin``). Two mechanisms exist:

- ``SymlinkActivationStrategy`` (POSIX): ``bin/zig`` is a symbolic link to
  the installed executable, swapped atomically.
- ``WindowsActivationStrategy``: the version's files are copied into the
  launcher directory by ``WindowsActivationManager``, with rollback.

``create_activation_strategy`` picks one for a platform.
"""

import logging
import os
import uuid
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from zigkit.core.config_store import SYSTEM_VERSION
from zigkit.core.exceptions import (
    ActivationError,
    BinaryNotFoundError,
    ConfigurationError,
    EnvironmentCapabilityError,
    InvalidOperationError,
)
from zigkit.core.filesystem import FilesystemError, safe_remove
from zigkit.core.platform import PlatformInfo
from zigkit.toolchain.windows_activation import WindowsActivationManager

logger = logging.getLogger(__name__)

EXTRACTED_DIR_PREFIX = "zig-"


class ActivationKind(Enum):
    """Activation mechanisms."""

    SYMLINK = "symlink"
    WINDOWS_EXTRACT = "windows-extract"


class ActivationStrategy(ABC):
    """Interface for making one version the active launcher."""

    kind: ActivationKind

    @abstractmethod
    def activate(self, source_path: Path, version_id: str, launcher_dir: Path) -> None:
        """
        Make ``version_id`` the active launcher.

        Args:
            source_path: Install directory, or the executable for 'system'
            version_id: Version being activated
            launcher_dir: Launcher directory on PATH

        Raises:
            ActivationError: If activation fails; the previous launcher is
                left in place.
        """
        pass

    @abstractmethod
    def deactivate(self, launcher_dir: Path) -> None:
        """Remove the active launcher, leaving nothing active."""
        pass


def find_zig_executable(install_path: Path, executable_name: str) -> Path:
    """
    Locate the zig executable inside an install directory.

    Looks directly in ``install_path``, then one level down in an extracted
    ``zig-*`` directory.

    Raises:
        BinaryNotFoundError: If no executable is found
    """
    install_path = Path(install_path)
    direct = install_path / executable_name
    if direct.is_file():
        return direct

    if install_path.is_dir():
        for entry in sorted(install_path.iterdir()):
            if entry.is_dir() and entry.name.startswith(EXTRACTED_DIR_PREFIX):
                candidate = entry / executable_name
                if candidate.is_file():
                    return candidate

    raise BinaryNotFoundError(install_path)


class SymlinkActivationStrategy(ActivationStrategy):
    """Points ``launcher_dir/zig`` at the active executable."""

    kind = ActivationKind.SYMLINK

    def __init__(self, executable_name: str = "zig"):
        self.executable_name = executable_name

    def resolve_target(self, source_path: Path, version_id: str) -> Path:
        if version_id == SYSTEM_VERSION:
            # For system installs the path already is the executable
            target = Path(source_path)
            if not target.is_file():
                raise BinaryNotFoundError(target)
            return target.resolve()
        return find_zig_executable(source_path, self.executable_name).resolve()

    def activate(self, source_path: Path, version_id: str, launcher_dir: Path) -> None:
        target = self.resolve_target(source_path, version_id)
        launcher_dir = Path(launcher_dir)
        launcher = launcher_dir / self.executable_name
        logger.info(f"Linking {launcher} -> {target}")

        try:
            launcher_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ActivationError(
                f"Cannot create launcher directory {launcher_dir}: {e}"
            ) from e

        # Build the new link beside the old one, then swap it in
        temp_link = launcher_dir / f".{self.executable_name}.{uuid.uuid4().hex[:8]}.tmp"
        try:
            os.symlink(target, temp_link)
        except PermissionError as e:
            raise EnvironmentCapabilityError(
                f"Permission denied creating symlink in {launcher_dir}: {e}"
            ) from e
        except OSError as e:
            raise ActivationError(
                f"Failed to create symlink for Zig {version_id}: {e}"
            ) from e

        try:
            if launcher.is_dir() and not launcher.is_symlink():
                safe_remove(launcher)
            os.replace(temp_link, launcher)
        except (OSError, FilesystemError) as e:
            temp_link.unlink(missing_ok=True)
            raise ActivationError(f"Failed to activate Zig {version_id}: {e}") from e

        logger.debug(f"Symlink created: {launcher} -> {target}")

    def deactivate(self, launcher_dir: Path) -> None:
        launcher = Path(launcher_dir) / self.executable_name
        if safe_remove(launcher):
            logger.debug(f"Removed launcher {launcher}")


class WindowsActivationStrategy(ActivationStrategy):
    """Copies the active version into the launcher directory."""

    kind = ActivationKind.WINDOWS_EXTRACT

    def __init__(self, manager: WindowsActivationManager):
        self.manager = manager

    def activate(self, source_path: Path, version_id: str, launcher_dir: Path) -> None:
        if version_id == SYSTEM_VERSION:
            raise InvalidOperationError(
                "System Zig activation is not supported with the Windows extraction strategy"
            )
        self.manager.activate_version(version_id, Path(source_path), Path(launcher_dir))

    def deactivate(self, launcher_dir: Path) -> None:
        self.manager.deactivate(Path(launcher_dir))


def create_activation_strategy(
    platform: Union[str, PlatformInfo],
    windows_manager: Optional[WindowsActivationManager] = None,
    executable_name: Optional[str] = None,
) -> ActivationStrategy:
    """
    Choose the activation strategy for a platform.

    Windows gets the extraction strategy, every other platform (known or
    not) gets symlinks.

    Args:
        platform: Platform os name ('windows', 'linux', ...) or PlatformInfo
        windows_manager: Required when the platform is Windows
        executable_name: Override the executable name for the symlink strategy

    Raises:
        ConfigurationError: If Windows is selected without a manager
    """
    if isinstance(platform, PlatformInfo):
        os_name = platform.os
        default_executable = platform.executable_name()
    else:
        os_name = str(platform).lower()
        default_executable = "zig.exe" if os_name == "windows" else "zig"

    if os_name == "windows":
        if windows_manager is None:
            raise ConfigurationError(
                "WindowsActivationManager is required for the Windows platform"
            )
        return WindowsActivationStrategy(windows_manager)

    return SymlinkActivationStrategy(executable_name or default_executable)
