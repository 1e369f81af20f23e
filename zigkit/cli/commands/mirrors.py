"""
Mirrors command implementation.

Sub-commands for the ranked community mirror list.
"""

import logging

from zigkit.cli.utils import build_installer, print_error, safe_print
from zigkit.core.exceptions import MirrorSyncError

logger = logging.getLogger(__name__)


def run_sync(args) -> int:
    """
    Re-download the community mirror list, resetting every rank.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    registry = build_installer(args).mirror_registry
    try:
        count = registry.sync()
    except MirrorSyncError as e:
        print_error(str(e), "The previous mirror list was kept")
        return 1

    safe_print(f"✓ Synchronized {count} community mirror(s)")
    return 0


def run_list(args) -> int:
    """
    Show mirrors ordered by rank.

    Returns:
        Exit code (0 for success)
    """
    config = build_installer(args).mirror_registry.load()

    if not config.mirrors:
        print("No mirrors known. Run 'zigkit mirrors sync' to fetch the list.")
        return 0

    print(f"Community mirrors (last synced: {config.last_synced or 'never'}):")
    print()
    for mirror in sorted(config.mirrors, key=lambda m: m.rank):
        print(f"  {mirror.rank:>4g}  {mirror.url}")
    print()
    return 0


def run_reset(args) -> int:
    """
    Reset every mirror to the initial rank.

    Returns:
        Exit code (0 for success)
    """
    count = build_installer(args).mirror_registry.reset_ranks()
    safe_print(f"✓ Reset rank of {count} mirror(s)")
    return 0
