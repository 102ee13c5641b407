"""Run command: back up snapper configurations to a btrfs volume."""

import argparse
import logging
import time

from .. import __util__, endpoint
from ..__logger__ import create_logger
from ..config import ConfigError, Settings, load_snapper_configs
from ..core import RecoveryScanner, RunContext, SyncController, SyncState, TransferEngine
from ..notify import Notifier
from ..snapper import SnapperStore
from ..transaction import set_transaction_log
from ..volume import VolumeResolver
from . import interactive
from .common import apply_overrides, get_log_level, load_settings

logger = logging.getLogger(__name__)


def _endpoint_config(settings: Settings, log_level: str) -> dict:
    remote = settings.remote
    config = {
        "btrfs_debug": log_level == "DEBUG",
        "port": remote.port,
        "ssh_opts": list(remote.ssh_opts),
        "ssh_sudo": remote.ssh_sudo,
        "batch_mode": settings.global_config.noconfirm,
    }
    if remote.identity:
        config["ssh_identity_file"] = remote.identity
    return config


def execute_run(args: argparse.Namespace) -> int:
    """Execute the run command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code (0 for success, when no destination was selected or when
        the operator declined, 1 for any failure)
    """
    log_level = get_log_level(args)
    create_logger(level=log_level)
    # Settings may not load; notify until they say otherwise
    notifier = Notifier(enabled=not getattr(args, "no_notify", False))

    def setup_failed(message: str) -> int:
        logger.error("%s", message)
        notifier.error("snapper-sync failed", message)
        return 1

    if not __util__.is_root():
        return setup_failed("snapper-sync must be run as root")

    try:
        settings = apply_overrides(load_settings(args), args)
    except ConfigError as e:
        return setup_failed(f"Configuration error: {e}")

    global_config = settings.global_config
    notifier.enabled = global_config.notify
    if global_config.log_file:
        create_logger(level=log_level, log_file=global_config.log_file)
    set_transaction_log(global_config.transaction_log)

    is_interactive = not global_config.noconfirm

    try:
        configs = load_snapper_configs(getattr(args, "configs", None))
    except __util__.SetupError as e:
        return setup_failed(str(e))

    if not getattr(args, "uuid", None) and not is_interactive:
        return setup_failed("--noconfirm requires --uuid to select the destination")

    try:
        destination_endpoint = endpoint.choose_endpoint(
            settings.remote.host, _endpoint_config(settings, log_level)
        )
    except ValueError as e:
        return setup_failed(f"Invalid remote destination: {e}")
    source_endpoint = endpoint.LocalEndpoint(config={"btrfs_debug": log_level == "DEBUG"})

    logger.info(__util__.log_heading(f"Started at {time.ctime()}"))
    try:
        destination_endpoint.prepare()

        resolver = VolumeResolver(destination_endpoint)
        if args.uuid:
            volume = resolver.resolve(args.uuid)
        else:
            volume = interactive.select_volume(resolver.list_volumes())
            if volume is None:
                logger.info("No destination selected, exiting")
                return 0

        store = SnapperStore(source_endpoint)
        scanner = RecoveryScanner(store, notifier)
        for config in configs:
            if config.exclude:
                continue
            try:
                scanner.scan(config)
            except __util__.SubsystemError as e:
                logger.warning("Could not check '%s' for incomplete backups: %s", config.name, e)

        ctx = RunContext(
            volume=volume,
            description=global_config.description,
            interactive=is_interactive,
            keep_old=global_config.keep_old,
            backupdir=getattr(args, "backupdir", None),
        )
        controller = SyncController(
            store,
            TransferEngine(source_endpoint),
            notifier=notifier,
            prompt_backupdir=interactive.prompt_backupdir,
            confirm_run=interactive.confirm_run,
        )
        succeeded = controller.run(ctx, configs)

    except (__util__.SetupError, __util__.ResolutionError, __util__.TransferError) as e:
        logger.error("%s", e)
        notifier.error("snapper-sync failed", str(e))
        return 1
    except KeyboardInterrupt:
        logger.error("Interrupted; unfinished snapshots stay marked as in progress")
        return 1
    finally:
        destination_endpoint.close()

    if not succeeded:
        failed = ", ".join(plan.name for plan in ctx.failed())
        logger.warning("Completed with errors: %s failed", failed)
        return 1

    declined = [plan.name for plan in ctx.plans if plan.state is SyncState.ABORTED]
    if declined:
        logger.info("Declined, not backed up: %s", ", ".join(declined))

    done = [plan.name for plan in ctx.plans if plan.state is SyncState.OLD_DELETED]
    if done:
        notifier.notify(
            "snapper-sync: backup complete",
            f"{', '.join(done)} backed up to {volume.mount_path}",
        )
        logger.info("All confirmed configurations completed successfully")
    return 0
