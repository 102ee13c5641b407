"""Report snapshots left behind by interrupted or failed runs.

A run creates its snapshot with the in-progress description before anything
is transferred and retags it only after the transfer finished. Any snapshot
still carrying that description therefore marks a sync that never completed.
The scan only reports them; deciding what to do is left to the operator.
"""

import logging

from .. import IN_PROGRESS_MARKER
from ..config.schema import SnapperConfig
from ..snapper.store import SnapperStore, SnapshotRecord

logger = logging.getLogger(__name__)


class RecoveryScanner:
    def __init__(self, store: SnapperStore, notifier=None) -> None:
        self.store = store
        self.notifier = notifier

    def find(self, config: SnapperConfig) -> list[SnapshotRecord]:
        """In-progress snapshots of ``config``, oldest first."""
        return [
            record
            for record in self.store.list_snapshots(config)
            if record.description == IN_PROGRESS_MARKER
        ]

    def scan(self, config: SnapperConfig) -> int:
        """Warn about in-progress snapshots and return how many there are."""
        leftovers = self.find(config)
        if not leftovers:
            return 0

        numbers = ", ".join(str(record.number) for record in leftovers)
        message = (
            f"Configuration '{config.name}' has {len(leftovers)} snapshot(s) from "
            f"incomplete backups: {numbers}. Inspect them with "
            f"'snapper -c {config.name} list' and delete them if no longer needed."
        )
        logger.warning(message)
        if self.notifier is not None:
            self.notifier.notify("snapper-sync: incomplete backups found", message)
        return len(leftovers)
