"""Core sync operations: plan, confirm and execute a run.

Each snapper configuration goes through the same steps:

1. find the snapshot last synced to the destination UUID (if any) and the
   backup directory it was synced into,
2. create a new snapshot described as in progress,
3. once the operator confirms that configuration, send the new snapshot
   (incrementally against the previous one when there is one),
4. tag the new snapshot with ``backupdir`` and ``uuid``,
5. delete the previous snapshot, or strip its tag with ``keep_old``.

A failure leaves the new snapshot described as in progress and the previous
one untouched, so the next run starts again from the same base. Failures are
contained per configuration; the remaining configurations still run.
"""

import logging
import os
import time
from pathlib import Path, PurePosixPath
from typing import Callable, Iterable, Optional

from filelock import FileLock

from .. import IN_PROGRESS_MARKER, __util__
from ..config.schema import SnapperConfig
from ..snapper.matcher import MetadataMatcher
from ..snapper.metadata import DESTINATION_KEYS, MetadataFormatError, SnapshotMetadata
from ..snapper.store import SnapperStore
from ..transaction import log_transaction
from .context import ConfigPlan, RunContext, SyncState
from .transfer import TransferEngine, TransferRequest

logger = logging.getLogger(__name__)

LOCK_DIRS = [Path("/run/lock"), Path("/tmp")]

# States in which the new snapshot exists but is not tagged yet
_PROVISIONAL_STATES = frozenset(
    {SyncState.SNAPSHOT_CREATED, SyncState.AWAITING_CONFIRMATION, SyncState.TRANSFERRING}
)

PromptBackupdir = Callable[[SnapperConfig, RunContext], Optional[str]]
ConfirmRun = Callable[[RunContext, ConfigPlan], bool]


def lock_path(uuid: str, lock_dirs: Optional[Iterable[Path]] = None) -> Path:
    """Lock file serializing runs that write to the filesystem ``uuid``."""
    dirs = list(lock_dirs or LOCK_DIRS)
    for directory in dirs:
        if directory.is_dir() and os.access(directory, os.W_OK):
            return directory / f"snapper-sync.{uuid}.lock"
    return dirs[-1] / f"snapper-sync.{uuid}.lock"


def destination_path(mount_path: str, backupdir: str, config_name: str, number: int):
    return PurePosixPath(mount_path) / backupdir / config_name / str(number)


class SyncController:
    """Walk snapper configurations through a sync run."""

    def __init__(
        self,
        store: SnapperStore,
        transfer_engine: TransferEngine,
        matcher: Optional[MetadataMatcher] = None,
        notifier=None,
        prompt_backupdir: Optional[PromptBackupdir] = None,
        confirm_run: Optional[ConfirmRun] = None,
        lock_dirs: Optional[Iterable[Path]] = None,
    ) -> None:
        self.store = store
        self.transfer_engine = transfer_engine
        self.matcher = matcher or MetadataMatcher(store)
        self.notifier = notifier
        self.prompt_backupdir = prompt_backupdir
        self.confirm_run = confirm_run
        self.lock_dirs = lock_dirs

    @staticmethod
    def _set_state(plan: ConfigPlan, state: SyncState) -> None:
        logger.debug("'%s': %s -> %s", plan.name, plan.state.value, state.value)
        plan.state = state

    def _fail(self, plan: ConfigPlan, error: BaseException) -> None:
        step = plan.state
        plan.fail(error)
        logger.error("Backup of '%s' failed at %s: %s", plan.name, step.value, error)
        if plan.new_number is not None and step in _PROVISIONAL_STATES:
            logger.error(
                "Snapshot %d of '%s' is left marked as in progress",
                plan.new_number,
                plan.name,
            )
        if self.notifier is not None:
            self.notifier.error(f"snapper-sync: backup of '{plan.name}' failed", str(error))

    def run(self, ctx: RunContext, configs: Iterable[SnapperConfig]) -> bool:
        """Plan every configuration, confirm each, then execute.

        Returns whether every configuration succeeded or was skipped.
        """
        logger.info(__util__.log_heading(f"Planning at {time.ctime()}"))
        for config in configs:
            self.plan_config(ctx, config)

        if self.confirm(ctx):
            logger.info(__util__.log_heading(f"Transferring at {time.ctime()}"))
            self.execute(ctx)

        logger.info(__util__.log_heading(f"Finished at {time.ctime()}"))
        for plan in ctx.plans:
            logger.info("  %-20s %s", plan.name, plan.state.value)
        return ctx.succeeded

    # Plan phase

    def plan_config(self, ctx: RunContext, config: SnapperConfig) -> ConfigPlan:
        """Match the previous sync and create the new in-progress snapshot."""
        plan = ctx.add_plan(config)
        if config.exclude:
            logger.info("Skipping excluded configuration '%s'", config.name)
            self._set_state(plan, SyncState.SKIPPED)
            return plan

        logger.info(__util__.log_heading(f"Configuration {config.name}"))
        try:
            self._plan(ctx, plan)
        except KeyboardInterrupt as e:
            self._fail(plan, e)
            raise
        except __util__.SnapperSyncError as e:
            self._fail(plan, e)
        except Exception as e:  # pylint: disable=broad-except
            logger.debug("Unexpected error planning '%s'", config.name, exc_info=True)
            self._fail(plan, e)
        return plan

    def _plan(self, ctx: RunContext, plan: ConfigPlan) -> None:
        config = plan.config
        volume = ctx.volume
        endpoint = volume.endpoint

        self._set_state(plan, SyncState.PENDING_MATCH)
        plan.previous = self.matcher.find_previous(config, volume.uuid)

        if plan.previous is not None:
            plan.backupdir = plan.previous.backupdir
            backup_root = PurePosixPath(volume.mount_path) / plan.backupdir
            if not endpoint.is_dir(backup_root):
                raise __util__.InconsistentDestination(
                    f"Snapshot {plan.previous.number} of '{config.name}' was synced to "
                    f"'{plan.backupdir}', but {backup_root} does not exist on "
                    f"{volume.uuid}. Remove its backupdir/uuid userdata to start over "
                    "with a full backup."
                )
        else:
            plan.backupdir = self._choose_backupdir(ctx, config)
            backup_root = PurePosixPath(volume.mount_path) / plan.backupdir
            if not endpoint.is_dir(backup_root):
                endpoint.mkdir(backup_root)

        self._set_state(plan, SyncState.SNAPSHOT_CREATED)
        plan.new_number = self.store.create(config, IN_PROGRESS_MARKER)
        plan.destination = destination_path(
            volume.mount_path, plan.backupdir, config.name, plan.new_number
        )

        if plan.previous is not None:
            logger.info(
                "'%s': snapshot %d will be sent incrementally against %d to %s",
                config.name,
                plan.new_number,
                plan.previous.number,
                plan.destination,
            )
        else:
            logger.info(
                "'%s': snapshot %d will be sent in full to %s",
                config.name,
                plan.new_number,
                plan.destination,
            )
        self._set_state(plan, SyncState.AWAITING_CONFIRMATION)

    def _choose_backupdir(self, ctx: RunContext, config: SnapperConfig) -> str:
        backupdir = ctx.backupdir
        if backupdir is None:
            if not ctx.interactive or self.prompt_backupdir is None:
                raise __util__.SetupError(
                    f"No previous backup of '{config.name}' on {ctx.volume.uuid} "
                    "and no backup directory given (use --backupdir)"
                )
            backupdir = self.prompt_backupdir(config, ctx)

        backupdir = (backupdir or "").strip().strip("/")
        if not backupdir:
            raise __util__.SetupError(f"No backup directory chosen for '{config.name}'")
        try:
            SnapshotMetadata.for_destination(ctx.volume.uuid, backupdir).serialize()
        except MetadataFormatError as e:
            raise __util__.SetupError(f"Unusable backup directory {backupdir!r}: {e}") from e
        return backupdir

    # Confirmation

    def confirm(self, ctx: RunContext) -> bool:
        """Ask for each planned configuration; abort only the declined ones.

        Returns whether any configuration is left to transfer.
        """
        pending = ctx.pending()
        if not pending:
            logger.info("Nothing to transfer")
            return False
        if not ctx.interactive or self.confirm_run is None:
            return True

        for plan in pending:
            try:
                accepted = self.confirm_run(ctx, plan)
            except __util__.AbortError as e:
                logger.warning("%s", e)
                accepted = False
            if not accepted:
                logger.warning(
                    "Backup of '%s' declined, removing snapshot %d", plan.name, plan.new_number
                )
                self.abort_plan(plan)
        return bool(ctx.pending())

    def abort_plan(self, plan: ConfigPlan) -> None:
        """Delete the new snapshot of one plan; its previous snapshot is untouched."""
        assert plan.new_number is not None
        try:
            self.store.delete(plan.config, plan.new_number)
        except __util__.SubsystemError as e:
            self._fail(plan, e)
            return
        log_transaction(
            action="abort",
            status="completed",
            snapshot=f"{plan.name}#{plan.new_number}",
            destination=str(plan.destination),
        )
        self._set_state(plan, SyncState.ABORTED)

    # Execute phase

    def execute(self, ctx: RunContext) -> None:
        """Execute every confirmed plan while holding the destination lock."""
        pending = ctx.pending()
        if not pending:
            return
        path = lock_path(ctx.volume.uuid, self.lock_dirs)
        logger.debug("Acquiring lock %s", path)
        with FileLock(path):
            for plan in pending:
                self.execute_config(ctx, plan)

    def execute_config(self, ctx: RunContext, plan: ConfigPlan) -> ConfigPlan:
        """Transfer, tag, then retire the previous snapshot of one plan."""
        if not plan.awaiting:
            return plan
        logger.info(__util__.log_heading(f"Backing up {plan.name}"))
        try:
            self._execute(ctx, plan)
        except KeyboardInterrupt as e:
            self._fail(plan, e)
            raise
        except __util__.SnapperSyncError as e:
            self._fail(plan, e)
        except Exception as e:  # pylint: disable=broad-except
            logger.debug("Unexpected error backing up '%s'", plan.name, exc_info=True)
            self._fail(plan, e)
        return plan

    def _execute(self, ctx: RunContext, plan: ConfigPlan) -> None:
        config = plan.config
        number = plan.new_number
        assert number is not None and plan.destination is not None
        assert plan.backupdir is not None

        self._set_state(plan, SyncState.TRANSFERRING)
        base = None
        if plan.previous is not None:
            base = self.store.path(config, plan.previous.number)
        request = TransferRequest(
            snapshot=self.store.path(config, number),
            base=base,
            destination=plan.destination,
            label=f"{config.name}#{number}",
        )
        self.transfer_engine.transfer(request, ctx.volume.endpoint)

        self.store.tag(
            config,
            number,
            ctx.description,
            SnapshotMetadata.for_destination(ctx.volume.uuid, plan.backupdir),
        )
        self._set_state(plan, SyncState.TAGGED)

        if plan.previous is not None:
            if ctx.keep_old:
                self.store.untag(config, plan.previous.number, DESTINATION_KEYS)
            else:
                self.store.delete(config, plan.previous.number)
        self._set_state(plan, SyncState.OLD_DELETED)
        logger.info("Backup of '%s' completed: %s", config.name, plan.destination)
