"""Snapshot userdata as a typed record.

Snapper stores free-form ``key=value`` pairs per snapshot, passed on the
command line as ``"key=value, key2=value2"``. A completed sync is recorded as
``backupdir=<dir>, uuid=<destination uuid>`` on the source snapshot.

Tagging merges: keys being written overwrite, every other key is kept.
"""

from dataclasses import dataclass, field
from typing import Mapping, Optional

BACKUPDIR_KEY = "backupdir"
UUID_KEY = "uuid"
DESTINATION_KEYS = (BACKUPDIR_KEY, UUID_KEY)


class MetadataFormatError(ValueError):
    """Userdata that cannot be represented as ``key=value`` pairs."""


@dataclass
class SnapshotMetadata:
    """Ordered ``key=value`` pairs attached to a snapshot."""

    values: dict[str, str] = field(default_factory=dict)

    @classmethod
    def parse(cls, text: Optional[str]) -> "SnapshotMetadata":
        """Parse ``"k=v, k2=v2"``; entries without ``=`` are ignored."""
        values: dict[str, str] = {}
        for entry in (text or "").split(","):
            key, sep, value = entry.partition("=")
            key = key.strip()
            if not sep or not key:
                continue
            values[key] = value.strip()
        return cls(values)

    @classmethod
    def from_userdata(cls, userdata) -> "SnapshotMetadata":
        """Build from snapper's listing, which gives a dict or a string."""
        if userdata is None:
            return cls()
        if isinstance(userdata, Mapping):
            return cls({str(k): "" if v is None else str(v) for k, v in userdata.items()})
        return cls.parse(str(userdata))

    @classmethod
    def for_destination(cls, uuid: str, backupdir: str) -> "SnapshotMetadata":
        return cls({BACKUPDIR_KEY: backupdir, UUID_KEY: uuid})

    def serialize(self) -> str:
        """Render as snapper's ``--userdata`` argument.

        Raises:
            MetadataFormatError: If a key or value would break the format.
        """
        for key, value in self.values.items():
            if not key or any(c in key for c in ",= "):
                raise MetadataFormatError(f"Invalid userdata key: {key!r}")
            if "," in value:
                raise MetadataFormatError(
                    f"Userdata value for {key!r} must not contain a comma: {value!r}"
                )
        return ", ".join(f"{key}={value}" for key, value in self.values.items())

    def merged(self, other: "SnapshotMetadata") -> "SnapshotMetadata":
        """Return a copy with ``other``'s keys written over this one's."""
        values = dict(self.values)
        values.update(other.values)
        return SnapshotMetadata(values)

    def without(self, keys) -> "SnapshotMetadata":
        return SnapshotMetadata({k: v for k, v in self.values.items() if k not in keys})

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.values.get(key, default)

    @property
    def uuid(self) -> Optional[str]:
        return self.values.get(UUID_KEY) or None

    @property
    def backupdir(self) -> Optional[str]:
        return self.values.get(BACKUPDIR_KEY) or None

    def is_destination_tag(self, uuid: str) -> bool:
        """Whether this records a completed sync to ``uuid``."""
        return self.uuid == uuid and self.backupdir is not None

    def __bool__(self) -> bool:
        return bool(self.values)

    def __str__(self) -> str:
        return ", ".join(f"{key}={value}" for key, value in self.values.items())
