"""
Cleanup command implementation.

Removes the leftovers of interrupted installs.
"""

import logging

from zigkit.cli.utils import build_installer, safe_print

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the cleanup command.

    Args:
        args: Parsed command-line arguments with:
            - lock_age: Age in hours after which lock files are stale

    Returns:
        Exit code (0 for success)
    """
    installer = build_installer(args)

    removed = installer.cleanup()
    stale_locks = installer.lock_manager.cleanup_stale_locks(args.lock_age)
    logger.debug(f"Removed {stale_locks} stale lock file(s)")

    if removed == 0:
        print("No incomplete installs found.")
    else:
        safe_print(f"✓ Removed {removed} incomplete install(s)")
    return 0
