"""
System Zig detection - discovers a Zig already installed outside zigkit.

A system installation is found on PATH, excluding anything inside the
zigkit directory itself (otherwise the launcher would detect itself), and
its version is read from ``zig version``.
"""

import logging
import re
import subprocess
from pathlib import Path
from typing import Iterable, Optional

from zigkit.core.config_store import SystemInstallation
from zigkit.core.filesystem import find_executable

logger = logging.getLogger(__name__)

_VERSION_PATTERN = re.compile(r"\b(\d+\.\d+\.\d+(?:[-+][0-9A-Za-z.+-]+)?)\b")


def extract_zig_version(zig_path: Path, timeout: float = 5) -> Optional[str]:
    """
    Run ``zig version`` and parse its output.

    Args:
        zig_path: Path to zig executable

    Returns:
        Version string (e.g., "0.11.0") or None if extraction failed
    """
    try:
        result = subprocess.run(
            [str(zig_path), "version"],
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired:
        logger.debug(f"Timeout extracting version from {zig_path}")
        return None
    except OSError as e:
        logger.debug(f"Failed to run {zig_path}: {e}")
        return None

    if result.returncode != 0:
        logger.debug(f"{zig_path} version returned {result.returncode}")
        return None

    match = _VERSION_PATTERN.search(result.stdout.strip())
    if match:
        return match.group(1)

    logger.debug(f"Could not parse version from output: {result.stdout[:200]}")
    return None


def detect_system_zig(
    exclude_dir: Optional[Path] = None,
    executable_name: str = "zig",
    search_paths: Optional[Iterable[Path]] = None,
) -> Optional[SystemInstallation]:
    """
    Find a Zig on PATH that zigkit does not manage.

    Args:
        exclude_dir: Directory to ignore (the zigkit root)
        executable_name: 'zig' or 'zig.exe'
        search_paths: Directories to search (default: PATH)

    Returns:
        SystemInstallation or None if nothing usable was found
    """
    name = executable_name[:-4] if executable_name.endswith(".exe") else executable_name
    zig_path = find_executable(name, search_paths=search_paths, exclude=exclude_dir)
    if zig_path is None:
        logger.debug("No system Zig found on PATH")
        return None

    version = extract_zig_version(zig_path)
    if version is None:
        logger.debug(f"Ignoring {zig_path}: could not determine its version")
        return None

    logger.info(f"Found system Zig {version} at {zig_path}")
    return SystemInstallation(path=str(zig_path.absolute()), version=version)
