"""
hoverkit CLI argument parser.

This module implements the command-line interface for hoverkit using argparse.
It is the single place where a failure is turned into an exit status.
"""

import argparse
import importlib
import logging
import sys
from pathlib import Path
from typing import List, Optional

from hoverkit import __version__
from hoverkit.core.exceptions import HoverKitError
from hoverkit.core.platform import BUILD_MODES, SUPPORTED_OS

logger = logging.getLogger(__name__)


class CLI:
    """hoverkit command-line interface."""

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
            prog="hoverkit",
            description="hoverkit - Flutter engine cache and native build preparation",
            epilog='Use "hoverkit COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Global options
        parser.add_argument(
            "--version", action="version", version=f"hoverkit {__version__}"
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
            "--project-root",
            type=Path,
            metavar="PATH",
            default=Path.cwd(),
            help="Project root directory (default: current directory)",
        )

        # Subcommands
        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        self._add_engine_command(subparsers)
        self._add_snapshot_command(subparsers)
        self._add_env_command(subparsers)
        self._add_stage_command(subparsers)

        return parser

    def _add_build_options(self, parser):
        """Add the options shared by every build related command."""
        parser.add_argument(
            "--target-os",
            choices=SUPPORTED_OS,
            metavar="OS",
            help="Target OS (linux|darwin|windows) [default: host OS]",
        )
        parser.add_argument(
            "--cache-path",
            metavar="PATH",
            help="The path used to cache dependencies such as the Flutter engine .so/.dll",
        )
        parser.add_argument(
            "--engine-version",
            metavar="VERSION",
            help="The flutter engine version to use (default: the Flutter SDK's)",
        )
        parser.add_argument(
            "--target",
            "-t",
            metavar="FILE",
            help="The main entry-point file of the application",
        )
        parser.add_argument(
            "--opengl",
            metavar="VERSION",
            help="The OpenGL version used by go-flutter ('none' disables texture support)",
        )

        modes = parser.add_mutually_exclusive_group()
        for flag in ("debug", "profile", "release"):
            modes.add_argument(
                f"--{flag}",
                dest="mode",
                action="store_const",
                const=flag,
                help=f"Use the {BUILD_MODES[flag].name} engine",
            )

    def _add_engine_command(self, subparsers):
        """Add 'engine' subcommand."""
        parser = subparsers.add_parser(
            "engine",
            help="Validate or update the cached Flutter engine",
            description="Download the Flutter engine unless the cached one matches",
        )
        self._add_build_options(parser)
        parser.add_argument(
            "--print-path",
            action="store_true",
            help="Only print the engine cache path, without checking it",
        )

    def _add_snapshot_command(self, subparsers):
        """Add 'snapshot' subcommand."""
        parser = subparsers.add_parser(
            "snapshot",
            help="Generate the AOT ELF snapshot",
            description="Compile the application into libapp.so (profile/release only)",
        )
        self._add_build_options(parser)
        parser.add_argument(
            "--skip-engine-download",
            action="store_true",
            help="Skip downloading the Flutter engine and artifacts",
        )

    def _add_env_command(self, subparsers):
        """Add 'env' subcommand."""
        parser = subparsers.add_parser(
            "env",
            help="Print the go build environment",
            description="Print the cgo compiler/linker environment as KEY=VALUE lines",
        )
        self._add_build_options(parser)

    def _add_stage_command(self, subparsers):
        """Add 'stage' subcommand."""
        parser = subparsers.add_parser(
            "stage",
            help="Copy the engine into the build output directory",
            description="Copy the engine files and icudtl.dat into go/build/outputs/<os>",
        )
        self._add_build_options(parser)
        parser.add_argument(
            "--clean",
            action="store_true",
            help="Clean the output directory first",
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

        self._configure_logging(parsed_args)

        if not parsed_args.command:
            self.parser.print_help()
            return 1

        try:
            return self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130  # Standard exit code for SIGINT
        except HoverKitError as e:
            logger.error(f"{e}")
            if parsed_args.verbose:
                logger.exception("Traceback:")
            return 1
        except Exception as e:
            logger.error(f"Error: {e}")
            if parsed_args.verbose:
                logger.exception("Traceback:")
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
            format_str = "hover: %(message)s"

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
        command_map = {
            "engine": "hoverkit.cli.commands.engine",
            "snapshot": "hoverkit.cli.commands.snapshot",
            "env": "hoverkit.cli.commands.env",
            "stage": "hoverkit.cli.commands.stage",
        }

        module_name = command_map.get(args.command)
        if not module_name:
            logger.error(f"Unknown command: {args.command}")
            return 1

        module = importlib.import_module(module_name)
        return module.run(args)


def main():
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
