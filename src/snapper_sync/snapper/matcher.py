"""Find the snapshot last synced to a destination.

The only record of a previous sync is the ``uuid``/``backupdir`` userdata on
the source snapshot that was sent. Snapshots still carrying the in-progress
description never match, so an interrupted run is never used as a base.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .. import IN_PROGRESS_MARKER
from ..config.schema import SnapperConfig
from .metadata import SnapshotMetadata
from .store import SnapperStore, SnapshotRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreviousMatch:
    """The snapshot holding the completed tag for a destination."""

    number: int
    backupdir: str
    record: SnapshotRecord


def is_completed_tag(record: SnapshotRecord, uuid: str) -> bool:
    """Whether ``record`` is a finished sync to ``uuid``."""
    metadata: SnapshotMetadata = record.metadata
    return record.description != IN_PROGRESS_MARKER and metadata.is_destination_tag(uuid)


class MetadataMatcher:
    """Derive the previous sync of a configuration from snapshot userdata."""

    def __init__(self, store: SnapperStore) -> None:
        self.store = store

    def find_all(self, config: SnapperConfig, uuid: str) -> list[SnapshotRecord]:
        """Every snapshot carrying a completed tag for ``uuid``, oldest first."""
        return [
            record
            for record in self.store.list_snapshots(config)
            if is_completed_tag(record, uuid)
        ]

    def find_previous(self, config: SnapperConfig, uuid: str) -> Optional[PreviousMatch]:
        """Return the last snapshot synced to ``uuid``, or None.

        Should several snapshots carry the tag, the most recent one wins.
        """
        matches = self.find_all(config, uuid)
        if not matches:
            logger.info("No previous backup of '%s' found on %s", config.name, uuid)
            return None

        if len(matches) > 1:
            logger.warning(
                "Snapshots %s of '%s' are all tagged as synced to %s; using %d",
                ", ".join(str(r.number) for r in matches),
                config.name,
                uuid,
                matches[-1].number,
            )

        latest = matches[-1]
        backupdir = latest.metadata.backupdir
        assert backupdir is not None
        logger.info(
            "Previous backup of '%s' on %s: snapshot %d in '%s'",
            config.name,
            uuid,
            latest.number,
            backupdir,
        )
        return PreviousMatch(number=latest.number, backupdir=backupdir, record=latest)
