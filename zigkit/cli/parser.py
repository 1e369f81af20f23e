"""
zigkit CLI argument parser.

This module implements the command-line interface for zigkit using argparse.
"""

import argparse
import importlib
import logging
import sys
from pathlib import Path
from typing import List, Optional

from zigkit.core.exceptions import ZigkitError

# Get version from package
try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("zigkit")
except PackageNotFoundError:
    __version__ = "0.1.0"

logger = logging.getLogger(__name__)


class CLI:
    """zigkit command-line interface."""

    def __init__(self):
        """Initialize CLI with argument parser."""
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser with all subcommands.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog="zigkit",
            description="zigkit - Zig version manager with verified mirror downloads",
            epilog='Use "zigkit COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Global options
        parser.add_argument(
            "--version", action="version", version=f"zigkit {__version__}"
        )
        parser.add_argument(
            "--verbose", "-v", action="store_true", help="Enable verbose output"
        )
        parser.add_argument(
            "--quiet",
            "-q",
            action="store_true",
            help="Enable minimal output (errors only)",
        )
        parser.add_argument(
            "--zigkit-dir",
            type=Path,
            metavar="PATH",
            help="zigkit root directory (default: $ZIGKIT_DIR or ~/.zigkit)",
        )

        # Subcommands
        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        self._add_install_command(subparsers)
        self._add_use_command(subparsers)
        self._add_list_command(subparsers)
        self._add_remove_command(subparsers)
        self._add_clean_command(subparsers)
        self._add_cleanup_command(subparsers)
        self._add_mirrors_command(subparsers)

        return parser

    def _add_install_command(self, subparsers):
        """Add 'install' subcommand."""
        parser = subparsers.add_parser(
            "install",
            help="Download and install a Zig version",
            description=(
                "Download a Zig release from community mirrors (falling back to "
                "ziglang.org), verify its signature and checksum, and install it"
            ),
        )
        parser.add_argument(
            "version",
            metavar="VERSION",
            help='Version to install (e.g., 0.11.0, "latest" or "master")',
        )
        parser.add_argument(
            "--use",
            action="store_true",
            help="Activate the version after installing it",
        )

    def _add_use_command(self, subparsers):
        """Add 'use' subcommand."""
        parser = subparsers.add_parser(
            "use",
            help="Switch the active Zig version",
            description="Make an installed version (or the system Zig) active",
        )
        parser.add_argument(
            "version",
            metavar="VERSION",
            help='Installed version, or "system" for a Zig found on PATH',
        )

    def _add_list_command(self, subparsers):
        """Add 'list' subcommand."""
        parser = subparsers.add_parser(
            "list",
            help="List installed Zig versions",
            description="List installed Zig versions and the active one",
        )
        parser.add_argument(
            "--remote",
            action="store_true",
            help="List versions available for download instead",
        )

    def _add_remove_command(self, subparsers):
        """Add 'remove' subcommand."""
        parser = subparsers.add_parser(
            "remove",
            help="Remove an installed Zig version",
            description="Delete an installed Zig version",
        )
        parser.add_argument("version", metavar="VERSION", help="Version to remove")

    def _add_clean_command(self, subparsers):
        """Add 'clean' subcommand."""
        parser = subparsers.add_parser(
            "clean",
            help="Remove installed versions",
            description=(
                "Remove every installed version except the active one, "
                "or all of them with --all"
            ),
        )
        parser.add_argument(
            "--all",
            action="store_true",
            help="Remove every installed version, including the active one",
        )

    def _add_cleanup_command(self, subparsers):
        """Add 'cleanup' subcommand."""
        parser = subparsers.add_parser(
            "cleanup",
            help="Remove leftovers of interrupted installs",
            description="Remove incomplete installs and stale lock files",
        )
        parser.add_argument(
            "--lock-age",
            type=int,
            default=24,
            metavar="HOURS",
            help="Remove lock files older than HOURS (default: 24)",
        )

    def _add_mirrors_command(self, subparsers):
        """Add 'mirrors' subcommand with sub-commands."""
        parser = subparsers.add_parser(
            "mirrors",
            help="Manage community mirrors",
            description="Manage the ranked community mirror list",
        )
        mirrors_subparsers = parser.add_subparsers(
            dest="mirrors_command", help="Mirror commands", metavar="SUBCOMMAND"
        )
        mirrors_subparsers.add_parser(
            "sync", help="Re-download the community mirror list and reset ranks"
        )
        mirrors_subparsers.add_parser("list", help="Show mirrors and their ranks")
        mirrors_subparsers.add_parser(
            "reset", help="Reset every mirror to the initial rank"
        )

    def parse_args(self, args: Optional[List[str]] = None):
        """
        Parse command-line arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Parsed arguments namespace
        """
        return self.parser.parse_args(args)

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Run CLI with given arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        parsed_args = self.parse_args(args)

        # Configure logging
        self._configure_logging(parsed_args)

        # Check if command specified
        if not parsed_args.command:
            self.parser.print_help()
            return 1

        # Dispatch to command handler
        try:
            return self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130  # Standard exit code for SIGINT
        except ZigkitError as e:
            logger.error(f"Error: {e}")
            if parsed_args.verbose:
                import traceback

                traceback.print_exc()
            return 1

    def _configure_logging(self, args):
        """
        Configure logging based on verbose/quiet flags.

        Args:
            args: Parsed arguments with verbose/quiet flags
        """
        if args.verbose:
            level = logging.DEBUG
            format_str = "%(levelname)s [%(name)s] %(message)s"
        elif args.quiet:
            level = logging.ERROR
            format_str = "%(levelname)s: %(message)s"
        else:
            level = logging.INFO
            format_str = "%(message)s"

        logging.basicConfig(
            level=level,
            format=format_str,
            force=True,  # Reconfigure if already configured
        )

    def _dispatch_command(self, args) -> int:
        """
        Dispatch to appropriate command handler.

        Args:
            args: Parsed arguments with command field

        Returns:
            Exit code from command handler
        """
        # Special handling for mirrors command (has sub-commands)
        if args.command == "mirrors":
            return self._dispatch_mirrors_command(args)

        # Command module mapping
        command_map = {
            "install": "zigkit.cli.commands.install",
            "use": "zigkit.cli.commands.use",
            "list": "zigkit.cli.commands.list_versions",
            "remove": "zigkit.cli.commands.remove",
            "clean": "zigkit.cli.commands.clean",
            "cleanup": "zigkit.cli.commands.cleanup",
        }

        module_name = command_map.get(args.command)
        if not module_name:
            logger.error(f"Unknown command: {args.command}")
            return 1

        module = importlib.import_module(module_name)
        return module.run(args)

    def _dispatch_mirrors_command(self, args) -> int:
        """
        Dispatch mirrors sub-commands.

        Args:
            args: Parsed arguments with mirrors_command field

        Returns:
            Exit code from command handler
        """
        if not getattr(args, "mirrors_command", None):
            logger.error("No mirrors sub-command specified")
            return 1

        from zigkit.cli.commands import mirrors

        # Map sub-commands to functions
        mirrors_command_map = {
            "sync": mirrors.run_sync,
            "list": mirrors.run_list,
            "reset": mirrors.run_reset,
        }

        handler = mirrors_command_map.get(args.mirrors_command)
        if not handler:
            logger.error(f"Unknown mirrors command: {args.mirrors_command}")
            return 1

        return handler(args)


def main():
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
