"""Shared CLI utilities and argument parsers."""

import argparse
import logging

from ..config import ConfigError, Settings, find_config_file, load_config

logger = logging.getLogger(__name__)


def create_global_parser() -> argparse.ArgumentParser:
    """Create a parser with global options that can be used as a parent."""
    parser = argparse.ArgumentParser(add_help=False)
    add_verbosity_args(parser)
    parser.add_argument(
        "--settings",
        metavar="FILE",
        help="Path to a TOML settings file",
    )
    return parser


def add_verbosity_args(parser: argparse.ArgumentParser) -> None:
    """Add verbosity-related arguments to a parser."""
    group = parser.add_argument_group("Output options")
    group.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    group.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Suppress non-essential output",
    )
    group.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug output",
    )


def add_config_selection_args(parser: argparse.ArgumentParser) -> None:
    """Add the repeatable snapper configuration selector."""
    parser.add_argument(
        "-c",
        "--config",
        metavar="NAME",
        action="append",
        dest="configs",
        help="Snapper configuration to process (repeatable, default: all)",
    )


def get_log_level(args: argparse.Namespace) -> str:
    """Determine log level from parsed arguments.

    Args:
        args: Parsed command line arguments

    Returns:
        Log level string (DEBUG, INFO, WARNING, ERROR)
    """
    if getattr(args, "debug", False):
        return "DEBUG"
    elif getattr(args, "quiet", False):
        return "WARNING"
    elif getattr(args, "verbose", False):
        return "DEBUG"
    else:
        return "INFO"


def load_settings(args: argparse.Namespace) -> Settings:
    """Load the settings file if there is one, else the defaults.

    Raises:
        ConfigError: If an explicit file is missing or a file is invalid.
    """
    path = find_config_file(getattr(args, "settings", None))
    if path is None:
        logger.debug("No settings file found, using defaults")
        return Settings()

    logger.debug("Loading settings from: %s", path)
    settings, warnings = load_config(path)
    for warning in warnings:
        logger.warning("Settings: %s", warning)
    return settings


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Let command line options win over the settings file."""
    global_config = settings.global_config
    remote = settings.remote

    if getattr(args, "description", None):
        global_config.description = args.description
    if getattr(args, "noconfirm", False):
        global_config.noconfirm = True
    if getattr(args, "keepold", False):
        global_config.keep_old = True
    if getattr(args, "no_notify", False):
        global_config.notify = False

    if getattr(args, "remote", None):
        remote.host = args.remote
    if getattr(args, "port", None) is not None:
        if not 0 < args.port < 65536:
            raise ConfigError(f"Port out of range: {args.port}")
        remote.port = args.port
    if getattr(args, "identity", None):
        remote.identity = args.identity
    if getattr(args, "ssh_sudo", False):
        remote.ssh_sudo = True
    return settings
