"""
Install command implementation.

Downloads, verifies and installs a Zig version.
"""

import logging
import signal
import sys
import threading

from zigkit.cli.utils import (
    ProgressPrinter,
    build_installer,
    print_error,
    print_warning,
    safe_print,
)
from zigkit.core.config_store import MASTER_VERSION
from zigkit.core.exceptions import (
    AllCandidatesFailedError,
    VersionAlreadyInstalledError,
)
from zigkit.toolchain.installer import ZigInstaller

logger = logging.getLogger(__name__)

LATEST_ALIAS = "latest"


def run(args) -> int:
    """
    Run the install command.

    Args:
        args: Parsed command-line arguments with:
            - version: Version to install, 'latest' or 'master'
            - use: Activate after installing

    Returns:
        Exit code (0 for success, 1 for error, 130 if interrupted)
    """
    installer = build_installer(args)

    version = resolve_requested_version(installer, args.version)
    if version is None:
        print_error("No stable Zig release found in the download index")
        return 1

    try:
        handle = installer.start_download(version)
    except VersionAlreadyInstalledError as e:
        print_error(str(e), f"Run 'zigkit use {version}' to activate it")
        return 1

    printer = ProgressPrinter()
    previous_handler = _install_interrupt_handler(installer)
    try:
        installer.complete_download(handle, progress_callback=printer)
    except AllCandidatesFailedError as e:
        printer.finish()
        print_error(f"Could not download a verified copy of Zig {version}")
        for failure in e.failures:
            print(f"  - {failure}", file=sys.stderr)
        return 1
    finally:
        printer.finish()
        if previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)

    safe_print(f"✓ Installed Zig {version}")

    if args.use and installer.get_current_version() != version:
        installer.use_version(version)
        safe_print(f"✓ Now using Zig {version}")

    return 0


def resolve_requested_version(installer: ZigInstaller, requested: str):
    """
    Map the 'latest' alias to the newest stable release.

    Other values ('master' included) are returned unchanged.
    """
    if requested == LATEST_ALIAS:
        latest = installer.index.latest_stable()
        if latest is not None:
            logger.info(f"Latest stable Zig release is {latest}")
        return latest
    if requested == MASTER_VERSION:
        logger.debug(f"Installing master build {installer.index.master_version()}")
    return requested


def _install_interrupt_handler(installer: ZigInstaller):
    """
    Route Ctrl+C to the in-flight download's cleanup.

    Returns:
        The previous handler, or None when not on the main thread
    """
    if threading.current_thread() is not threading.main_thread():
        return None

    def handle_interrupt(signum, frame):
        handle = installer.get_current_download()
        if handle is not None:
            handle.cleanup()
        print()
        print_warning("Installation interrupted")
        sys.exit(130)

    return signal.signal(signal.SIGINT, handle_interrupt)
