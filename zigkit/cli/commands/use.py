"""
Use command implementation.

Switches the active Zig version.
"""

import logging

from zigkit.cli.utils import build_installer, print_error, safe_print
from zigkit.core.config_store import SYSTEM_VERSION
from zigkit.core.exceptions import (
    InvalidOperationError,
    SystemInstallationNotFoundError,
    VersionNotInstalledError,
)

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the use command.

    Args:
        args: Parsed command-line arguments with:
            - version: Installed version or 'system'

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    installer = build_installer(args)

    try:
        installer.use_version(args.version)
    except VersionNotInstalledError as e:
        print_error(str(e), f"Run 'zigkit install {args.version}' first")
        return 1
    except SystemInstallationNotFoundError as e:
        print_error(str(e), "Install Zig system-wide or use a managed version")
        return 1
    except InvalidOperationError as e:
        print_error(str(e))
        return 1

    if args.version == SYSTEM_VERSION:
        safe_print("✓ Now using system Zig")
    else:
        safe_print(f"✓ Now using Zig {args.version}")
    safe_print(f"  Make sure {installer.bin_dir} is on your PATH")
    return 0
