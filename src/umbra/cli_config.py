"""
CLI command handlers for engine configuration.

Provides commands for:
- Showing the effective engine configuration
- Validating a configuration file
"""

from __future__ import annotations

import argparse
import json
import logging
from typing import Any

import yaml

from umbra.config import EngineConfig, load_config_from_env
from umbra.errors import ConfigurationError

logger = logging.getLogger(__name__)


def add_config_parser(subparsers: Any) -> None:
    """Add config subcommands to the CLI."""
    config_parser = subparsers.add_parser(
        "config",
        help="Engine configuration commands",
        description="Show or validate Mantissa Umbra engine configuration.",
    )

    config_subparsers = config_parser.add_subparsers(
        dest="config_command",
        title="config commands",
        description="Available configuration commands",
    )

    show_parser = config_subparsers.add_parser(
        "show",
        help="Show the effective configuration",
        description="Display the configuration loaded from a file or the environment.",
    )
    show_parser.add_argument(
        "path",
        nargs="?",
        help="Configuration file (default: from environment)",
    )
    show_parser.add_argument(
        "--format",
        choices=["yaml", "json"],
        default="yaml",
        help="Output format (default: yaml)",
    )
    show_parser.add_argument(
        "--section",
        choices=["weights", "thresholds", "patterns", "scale", "fleet", "timeline"],
        help="Show only a specific section",
    )

    validate_parser = config_subparsers.add_parser(
        "validate",
        help="Validate a configuration file",
        description="Check a configuration file for unknown keys and invalid values.",
    )
    validate_parser.add_argument(
        "path",
        nargs="?",
        help="Configuration file (default: from environment)",
    )


def cmd_config(args: argparse.Namespace) -> int:
    """
    Route config subcommands to appropriate handlers.

    Returns:
        Exit code (0 success, 1 error)
    """
    action = getattr(args, "config_command", None)

    if action is None:
        print("Usage: umbra config <command>")
        print("")
        print("Commands:")
        print("  show       Show the effective configuration")
        print("  validate   Validate a configuration file")
        print("")
        print("Run 'umbra config <command> --help' for more information")
        return 0

    handlers = {
        "show": _cmd_config_show,
        "validate": _cmd_config_validate,
    }

    handler = handlers.get(action)
    if handler:
        return handler(args)

    print(f"Unknown config command: {action}")
    return 1


def _load(path: str | None) -> EngineConfig:
    if path:
        return EngineConfig.from_file(path)
    return load_config_from_env()


def _cmd_config_show(args: argparse.Namespace) -> int:
    """Show the effective configuration."""
    try:
        config = _load(getattr(args, "path", None))
    except ConfigurationError as e:
        logger.error(f"Failed to load configuration: {e}")
        print(f"Error: {e}")
        return 1

    data = config.to_dict()
    section = getattr(args, "section", None)
    if section:
        data = {section: data[section]}

    if getattr(args, "format", "yaml") == "json":
        print(json.dumps(data, indent=2))
    else:
        print(yaml.safe_dump(data, default_flow_style=False, sort_keys=False), end="")
    return 0


def _cmd_config_validate(args: argparse.Namespace) -> int:
    """Validate a configuration file."""
    path = getattr(args, "path", None)
    try:
        _load(path)
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        print(f"Error: {e}")
        return 1

    print(f"Configuration is valid: {path or 'environment'}")
    return 0
