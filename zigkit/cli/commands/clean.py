"""
Clean command implementation.

Removes installed versions in bulk.
"""

import logging

from zigkit.cli.utils import build_installer, print_error, safe_print
from zigkit.core.config_store import SYSTEM_VERSION
from zigkit.core.exceptions import InvalidOperationError

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the clean command.

    Args:
        args: Parsed command-line arguments with:
            - all: Remove every version, not just inactive ones

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    installer = build_installer(args)

    if args.all:
        count = installer.clean_all_versions()
        safe_print(f"✓ Removed {count} Zig installation(s)")
        if installer.get_current_version() == SYSTEM_VERSION:
            print("  Now using the system Zig")
        return 0

    try:
        count = installer.clean_except_current()
    except InvalidOperationError as e:
        print_error(str(e), "Use 'zigkit clean --all' to remove every version")
        return 1

    current = installer.get_current_version()
    safe_print(f"✓ Removed {count} Zig installation(s), kept {current}")
    return 0
