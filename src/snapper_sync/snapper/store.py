"""Snapper command wrapper for one machine.

Every call is a ``snapper -c <config> ...`` invocation through an endpoint.
Failures of any kind (unknown configuration, missing binary, non-zero exit,
unparsable output) are raised as ``SubsystemError``.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .. import __util__
from ..config.schema import SnapperConfig
from ..transaction import log_transaction
from .metadata import SnapshotMetadata

logger = logging.getLogger(__name__)

SINGLE = "single"
INFO_FILE = "info.xml"


@dataclass(frozen=True)
class SnapshotPaths:
    """Locations of a snapshot's data subvolume and its info.xml."""

    data: Path
    info: Path

    @property
    def directory(self) -> Path:
        return self.data.parent


@dataclass
class SnapshotRecord:
    """One row of ``snapper list``."""

    number: int
    description: str = ""
    metadata: SnapshotMetadata = field(default_factory=SnapshotMetadata)
    snapshot_type: str = SINGLE
    date: str = ""


class SnapperStore:
    """Create, list, delete and tag snapshots of snapper configurations."""

    def __init__(self, endpoint, snapper_bin: str = "snapper") -> None:
        self.endpoint = endpoint
        self.snapper_bin = snapper_bin

    def _snapper(self, config: SnapperConfig, *args, json_output=False) -> str:
        cmd = [self.snapper_bin]
        if json_output:
            cmd.append("--jsonout")
        cmd += ["-c", config.name, *args]
        try:
            result = self.endpoint.run(cmd)
        except OSError as e:
            raise __util__.SubsystemError(f"Cannot run {self.snapper_bin}: {e}") from e
        if result.returncode != 0:
            message = (result.stderr or result.stdout or "").strip()
            raise __util__.SubsystemError(
                f"snapper {args[0]} failed for configuration '{config.name}' "
                f"(exit {result.returncode}): {message}"
            )
        return result.stdout or ""

    def create(
        self,
        config: SnapperConfig,
        description: str,
        metadata: Optional[SnapshotMetadata] = None,
    ) -> int:
        """Create a single snapshot and return its number."""
        args = ["create", "--type", SINGLE, "--print-number", "--description", description]
        if metadata:
            args += ["--userdata", metadata.serialize()]
        output = self._snapper(config, *args).strip()
        try:
            number = int(output.splitlines()[-1])
        except (IndexError, ValueError) as e:
            raise __util__.SubsystemError(
                f"snapper create printed no snapshot number: {output!r}"
            ) from e

        logger.info("Created snapshot %d of '%s'", number, config.name)
        log_transaction(
            action="snapshot",
            status="completed",
            source=str(config.subvolume),
            snapshot=f"{config.name}#{number}",
            details={"description": description},
        )
        return number

    def list_snapshots(
        self, config: SnapperConfig, snapshot_type: str = SINGLE
    ) -> list[SnapshotRecord]:
        """Return the snapshots of the given type, ordered by number."""
        output = self._snapper(
            config, "list", "--type", snapshot_type, "--disable-used-space", json_output=True
        )
        try:
            data = json.loads(output)
        except json.JSONDecodeError as e:
            raise __util__.SubsystemError(
                f"Unexpected snapper list output for '{config.name}': {e}"
            ) from e

        rows = data.get(config.name, []) if isinstance(data, dict) else []
        records = []
        for row in rows:
            number = int(row.get("number", 0))
            if number == 0:
                continue
            row_type = row.get("type", snapshot_type)
            if row_type != snapshot_type:
                continue
            records.append(
                SnapshotRecord(
                    number=number,
                    description=row.get("description") or "",
                    metadata=SnapshotMetadata.from_userdata(row.get("userdata")),
                    snapshot_type=row_type,
                    date=row.get("date") or "",
                )
            )
        records.sort(key=lambda r: r.number)
        logger.debug("Listed %d %s snapshot(s) of '%s'", len(records), snapshot_type, config.name)
        return records

    def get(self, config: SnapperConfig, number: int) -> Optional[SnapshotRecord]:
        for record in self.list_snapshots(config):
            if record.number == number:
                return record
        return None

    def delete(self, config: SnapperConfig, number: int) -> None:
        """Delete a snapshot. A missing number is an error, not a no-op."""
        try:
            self._snapper(config, "delete", str(number))
        except __util__.SubsystemError as e:
            log_transaction(
                action="delete",
                status="failed",
                snapshot=f"{config.name}#{number}",
                error=str(e),
            )
            raise
        logger.info("Deleted snapshot %d of '%s'", number, config.name)
        log_transaction(
            action="delete", status="completed", snapshot=f"{config.name}#{number}"
        )

    def tag(
        self,
        config: SnapperConfig,
        number: int,
        description: str,
        metadata: SnapshotMetadata,
    ) -> SnapshotMetadata:
        """Rewrite description and merge ``metadata`` into the snapshot's userdata.

        Returns the merged metadata now stored on the snapshot.
        """
        record = self.get(config, number)
        if record is None:
            raise __util__.SubsystemError(
                f"Snapshot {number} of '{config.name}' does not exist"
            )
        merged = record.metadata.merged(metadata)
        self._snapper(
            config,
            "modify",
            "--description",
            description,
            "--userdata",
            merged.serialize(),
            str(number),
        )
        logger.info("Tagged snapshot %d of '%s': %s", number, config.name, merged)
        log_transaction(
            action="tag",
            status="completed",
            snapshot=f"{config.name}#{number}",
            details={"description": description, "userdata": str(merged)},
        )
        return merged

    def untag(self, config: SnapperConfig, number: int, keys) -> None:
        """Remove userdata keys; snapper drops keys given an empty value."""
        cleared = SnapshotMetadata({key: "" for key in keys})
        self._snapper(config, "modify", "--userdata", cleared.serialize(), str(number))
        logger.info(
            "Removed %s from snapshot %d of '%s'", ", ".join(keys), number, config.name
        )

    def path(self, config: SnapperConfig, number: int) -> SnapshotPaths:
        directory = config.snapshots_dir / str(number)
        return SnapshotPaths(data=directory / "snapshot", info=directory / INFO_FILE)
