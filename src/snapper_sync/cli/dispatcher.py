"""CLI dispatcher with default command detection.

``run`` is the default command, so ``snapper-sync -u <uuid>`` works the
same as ``snapper-sync run -u <uuid>``.
"""

import argparse
import sys
from typing import Callable

from .. import DEFAULT_DESCRIPTION
from .common import add_config_selection_args, create_global_parser

SUBCOMMANDS = frozenset({"run", "status"})
DEFAULT_COMMAND = "run"


def needs_default_command(argv: list[str]) -> bool:
    """Whether ``run`` has to be inserted in front of ``argv``.

    Args:
        argv: Command line arguments (without program name)

    Returns:
        True unless a subcommand, help or version was asked for
    """
    if not argv:
        return True

    first = argv[0]

    if first in SUBCOMMANDS:
        return False

    if first in {"-h", "--help", "-V", "--version"}:
        return False

    return True


def create_subcommand_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="snapper-sync",
        description="Send snapper snapshots incrementally to a btrfs backup volume",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "-V",
        "--version",
        action="store_true",
        help="Show version and exit",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        description="Available commands (use 'command --help' for details)",
    )
    parents = [create_global_parser()]

    # run command
    run_parser = subparsers.add_parser(
        "run",
        parents=parents,
        help="Back up snapper configurations (default)",
        description="Snapshot every configuration and send it to the backup volume",
    )
    run_parser.add_argument(
        "-d",
        "--description",
        metavar="TEXT",
        help=f"Description of the snapshot after the backup (default: '{DEFAULT_DESCRIPTION}')",
    )
    add_config_selection_args(run_parser)
    run_parser.add_argument(
        "-u",
        "--uuid",
        metavar="UUID",
        help="UUID of the mounted btrfs filesystem to back up to (default: ask)",
    )
    run_parser.add_argument(
        "-b",
        "--backupdir",
        metavar="DIR",
        help="Directory on the backup volume for first backups (default: ask)",
    )
    run_parser.add_argument(
        "-n",
        "--noconfirm",
        action="store_true",
        help="Do not ask for confirmation; fail where a question would be needed",
    )
    run_parser.add_argument(
        "-k",
        "--keepold",
        action="store_true",
        help="Keep the previous snapshot, only remove its backup tag",
    )
    run_parser.add_argument(
        "--no-notify",
        action="store_true",
        help="Do not send desktop notifications",
    )

    remote_group = run_parser.add_argument_group("Remote destination")
    remote_group.add_argument(
        "-r",
        "--remote",
        metavar="[USER@]HOST",
        help="Back up to a host over SSH",
    )
    remote_group.add_argument(
        "-p",
        "--port",
        type=int,
        metavar="PORT",
        help="SSH port",
    )
    remote_group.add_argument(
        "-i",
        "--identity",
        metavar="FILE",
        help="SSH private key",
    )
    remote_group.add_argument(
        "--ssh-sudo",
        action="store_true",
        help="Run btrfs and filesystem commands on the remote host with sudo",
    )

    # status command
    status_parser = subparsers.add_parser(
        "status",
        parents=parents,
        help="Show backup tags and incomplete backups",
        description="List destination tags and in-progress snapshots per configuration",
    )
    add_config_selection_args(status_parser)
    status_parser.add_argument(
        "-t",
        "--transactions",
        action="store_true",
        help="Show recent transaction history",
    )
    status_parser.add_argument(
        "-l",
        "--limit",
        type=int,
        default=10,
        metavar="N",
        help="Number of transactions to show (default: 10)",
    )

    return parser


def run_subcommand(args: argparse.Namespace) -> int:
    """Run the specified subcommand.

    Args:
        args: Parsed arguments

    Returns:
        Exit code
    """
    from .. import __version__

    if args.version:
        print(f"snapper-sync {__version__}")
        return 0

    handlers: dict[str, Callable] = {
        "run": cmd_run,
        "status": cmd_status,
    }

    handler = handlers.get(args.command)
    if handler:
        return handler(args)
    print(f"Unknown command: {args.command}")
    return 1


def cmd_run(args: argparse.Namespace) -> int:
    """Execute run command."""
    from .run import execute_run

    return execute_run(args)


def cmd_status(args: argparse.Namespace) -> int:
    """Execute status command."""
    from .status import execute_status

    return execute_status(args)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for snapper-sync CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    if argv is None:
        argv = sys.argv[1:]

    if needs_default_command(argv):
        argv = [DEFAULT_COMMAND] + list(argv)

    parser = create_subcommand_parser()
    args = parser.parse_args(argv)

    return run_subcommand(args)
