"""Mounted btrfs volumes and their filesystem UUIDs.

The destination of a sync is chosen by filesystem UUID, never by path, so a
disk mounted somewhere else next time is still recognized. Volumes are listed
with ``findmnt`` through an endpoint, which makes a remote host's mounts
visible over SSH exactly like local ones.
"""

import logging
import re
from dataclasses import dataclass

from . import __util__
from .endpoint.common import Endpoint

logger = logging.getLogger(__name__)

FINDMNT_COMMAND = ["findmnt", "-n", "-v", "-t", "btrfs", "-o", "UUID,TARGET", "--list"]
SNAPSHOTS_DIR_NAME = ".snapshots"

_ESCAPE = re.compile(r"\\x([0-9a-fA-F]{2})")


@dataclass(frozen=True)
class Volume:
    """A resolved destination: filesystem UUID, mount path and endpoint."""

    uuid: str
    mount_path: str
    endpoint: Endpoint

    def __str__(self) -> str:
        return f"{self.mount_path} ({self.uuid}) on {self.endpoint!r}"


def _unescape(target: str) -> str:
    # findmnt --list writes blanks and other unsafe bytes as \xNN
    return _ESCAPE.sub(lambda m: chr(int(m.group(1), 16)), target)


def parse_findmnt(output: str) -> list[tuple[str, str]]:
    """Parse ``UUID TARGET`` lines into (uuid, mount_path) pairs.

    Lines without a UUID and snapper snapshot directories are skipped.
    """
    entries = []
    for line in output.splitlines():
        parts = line.strip().split(None, 1)
        if len(parts) != 2:
            continue
        uuid, target = parts[0], _unescape(parts[1].strip())
        if target.rstrip("/").split("/")[-1] == SNAPSHOTS_DIR_NAME:
            continue
        entries.append((uuid, target))
    return entries


class VolumeResolver:
    """Find btrfs mounts on an endpoint and resolve one by UUID."""

    def __init__(self, endpoint: Endpoint) -> None:
        self.endpoint = endpoint

    def list_volumes(self) -> list[Volume]:
        """Every mounted btrfs filesystem that can take a backup."""
        try:
            result = self.endpoint.run(FINDMNT_COMMAND)
        except OSError as e:
            raise __util__.VolumeNotFound(f"Cannot list mounts on {self.endpoint!r}: {e}") from e
        # findmnt exits 1 when nothing matched
        if result.returncode not in (0, 1):
            raise __util__.VolumeNotFound(
                f"findmnt failed on {self.endpoint!r}: {result.stderr.strip()}"
            )
        volumes = [
            Volume(uuid=uuid, mount_path=target, endpoint=self.endpoint)
            for uuid, target in parse_findmnt(result.stdout or "")
        ]
        logger.debug("Found %d btrfs mount(s) on %r", len(volumes), self.endpoint)
        return volumes

    def resolve(self, uuid: str) -> Volume:
        """Return the single mount of the filesystem with ``uuid``.

        Raises:
            AmbiguousTarget: If the filesystem is mounted more than once.
            VolumeNotFound: If no btrfs filesystem with that UUID is mounted.
        """
        matches = [v for v in self.list_volumes() if v.uuid == uuid]
        if not matches:
            raise __util__.VolumeNotFound(
                f"No btrfs filesystem with UUID {uuid} is mounted on {self.endpoint!r}"
            )
        if len(matches) > 1:
            raise __util__.AmbiguousTarget(
                f"UUID {uuid} is mounted at several places: "
                + ", ".join(v.mount_path for v in matches)
            )
        logger.info("Destination volume: %s", matches[0])
        return matches[0]
