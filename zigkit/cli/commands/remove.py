"""
Remove command implementation.

Deletes one installed Zig version.
"""

import logging

from zigkit.cli.utils import build_installer, print_error, safe_print
from zigkit.core.exceptions import InvalidOperationError, VersionNotInstalledError

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the remove command.

    Args:
        args: Parsed command-line arguments with:
            - version: Version to remove

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    installer = build_installer(args)
    was_current = installer.get_current_version() == args.version

    try:
        installer.remove_version(args.version)
    except (InvalidOperationError, VersionNotInstalledError) as e:
        print_error(str(e))
        return 1

    safe_print(f"✓ Removed Zig {args.version}")
    if was_current:
        print("  No Zig version is active now. Run 'zigkit use VERSION' to pick one.")
    return 0
