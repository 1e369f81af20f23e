"""
List command implementation.

Shows installed versions, or versions available for download.
"""

import logging

from zigkit.cli.utils import build_installer, safe_print
from zigkit.core.config_store import MASTER_VERSION, SYSTEM_VERSION, InstallStatus

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the list command.

    Args:
        args: Parsed command-line arguments with:
            - remote: List downloadable versions instead

    Returns:
        Exit code (0 for success)
    """
    installer = build_installer(args)
    if args.remote:
        return _list_remote(installer)
    return _list_installed(installer)


def _list_installed(installer) -> int:
    config = installer.config_store.load()

    if not config.versions and config.system_installation is None:
        print("No Zig versions installed.")
        print("Run 'zigkit install latest' to install one.")
        return 0

    print("Installed Zig versions:")
    print()

    if config.system_installation is not None:
        marker = " (current)" if config.current_version == SYSTEM_VERSION else ""
        print(f"  system {config.system_installation.version}{marker}")
        print(f"    Path: {config.system_installation.path}")

    for version, record in config.versions.items():
        marker = " (current)" if config.current_version == version else ""
        print(f"  {version}{marker}")
        if record.status != InstallStatus.COMPLETED:
            print(f"    Status: {record.status.value} (run 'zigkit cleanup')")
        print(f"    Path: {record.install_path}")
        if record.source_url:
            print(f"    Source: {record.source_url}")

    print()
    return 0


def _list_remote(installer) -> int:
    installed = set(installer.get_installed_versions())
    platform_key = installer.platform.index_key()

    print(f"Available Zig versions for {platform_key}:")
    print()

    master = installer.index.master_version()
    if master:
        marker = " ✓" if MASTER_VERSION in installed else ""
        safe_print(f"  master ({master}){marker}")

    for version in installer.index.list_versions():
        marker = " ✓" if version in installed else ""
        safe_print(f"  {version}{marker}")

    print()
    return 0
