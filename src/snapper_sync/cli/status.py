"""Status command: show destination tags and incomplete backups."""

import argparse
import logging

from rich.table import Table

from .. import IN_PROGRESS_MARKER, __logger__, __util__, endpoint
from ..__logger__ import create_logger
from ..config import ConfigError, load_snapper_configs
from ..core import RecoveryScanner
from ..snapper import SnapperStore
from ..transaction import get_transaction_stats, read_transaction_log, set_transaction_log
from .common import get_log_level, load_settings

logger = logging.getLogger(__name__)


def _config_table(store: SnapperStore, scanner: RecoveryScanner, configs) -> tuple[Table, bool]:
    table = Table(title="snapper-sync status")
    table.add_column("Configuration")
    table.add_column("Snapshot", justify="right")
    table.add_column("Destination UUID")
    table.add_column("Backup directory")
    table.add_column("State")

    healthy = True
    for config in configs:
        if config.exclude:
            table.add_row(config.name, "-", "-", "-", "excluded")
            continue
        try:
            records = store.list_snapshots(config)
            leftovers = scanner.find(config)
        except __util__.SubsystemError as e:
            table.add_row(config.name, "-", "-", "-", f"error: {e}")
            healthy = False
            continue

        tagged = [
            r for r in records
            if r.metadata.uuid and r.metadata.backupdir and r.description != IN_PROGRESS_MARKER
        ]
        if not tagged and not leftovers:
            table.add_row(config.name, "-", "-", "-", "never backed up")
        for record in tagged:
            table.add_row(
                config.name,
                str(record.number),
                record.metadata.uuid,
                record.metadata.backupdir,
                "synced",
            )
        for record in leftovers:
            healthy = False
            table.add_row(config.name, str(record.number), "-", "-", "[red]in progress[/]")
    return table, healthy


def _transaction_table(limit: int) -> Table:
    table = Table(title=f"Last {limit} transactions")
    table.add_column("Time")
    table.add_column("Action")
    table.add_column("Status")
    table.add_column("Snapshot")
    table.add_column("Duration", justify="right")
    for record in read_transaction_log(limit=limit):
        duration = record.get("duration_seconds")
        table.add_row(
            record.get("timestamp", ""),
            record.get("action", ""),
            record.get("status", ""),
            record.get("snapshot", ""),
            f"{duration:.1f}s" if duration is not None else "",
        )
    return table


def execute_status(args: argparse.Namespace) -> int:
    """Execute the status command.

    Shows the destination tags of every configuration and any snapshots
    left in progress by failed runs.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code (1 when incomplete backups or errors were found)
    """
    log_level = get_log_level(args)
    create_logger(level=log_level)

    try:
        settings = load_settings(args)
        configs = load_snapper_configs(getattr(args, "configs", None))
    except (ConfigError, __util__.SetupError) as e:
        logger.error("%s", e)
        return 1

    store = SnapperStore(endpoint.LocalEndpoint())
    table, healthy = _config_table(store, RecoveryScanner(store), configs)
    cons = __logger__.cons
    cons.print(table)

    transaction_log = settings.global_config.transaction_log
    if getattr(args, "transactions", False):
        if not transaction_log:
            cons.print("No transaction log configured (set global.transaction_log)")
        else:
            set_transaction_log(transaction_log)
            cons.print(_transaction_table(args.limit))
            stats = get_transaction_stats()
            for bucket in ("snapshots", "transfers", "tags", "deletes", "aborts"):
                counts = stats[bucket]
                cons.print(
                    f"{bucket.capitalize()}: {counts['completed']} completed, "
                    f"{counts['failed']} failed"
                )

    if healthy:
        cons.print("Overall: all backups complete")
    else:
        cons.print("Overall: some issues detected")
    return 0 if healthy else 1
