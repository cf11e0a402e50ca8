"""
Mantissa Umbra CLI entry point.

This module provides the command-line interface for Umbra.
"""

from __future__ import annotations

import argparse
import sys

from umbra import __version__
from umbra.cli_config import add_config_parser, cmd_config
from umbra.cli_shadow import add_shadow_parsers, cmd_analyze, cmd_assess, cmd_timeline
from umbra.observability import configure_logging


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="umbra",
        description="Mantissa Umbra - Shadow Permission Risk Engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"umbra {__version__}",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (can be repeated)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # analyze, assess and timeline commands
    add_shadow_parsers(subparsers)

    # config command
    add_config_parser(subparsers)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    # Configure logging based on verbosity
    if getattr(args, "verbose", 0):
        configure_logging(level="DEBUG" if args.verbose > 1 else "INFO")

    if args.command is None:
        parser.print_help()
        return 0

    # Route to command handlers
    command_handlers = {
        "analyze": cmd_analyze,
        "assess": cmd_assess,
        "timeline": cmd_timeline,
        "config": cmd_config,
    }

    handler = command_handlers.get(args.command)
    if handler:
        return handler(args)

    print(f"Unknown command: {args.command}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
