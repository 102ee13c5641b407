"""Snapper integration: snapshot store, userdata metadata and tag matching."""

from .matcher import MetadataMatcher, PreviousMatch
from .metadata import SnapshotMetadata
from .store import SnapperStore, SnapshotPaths, SnapshotRecord

__all__ = [
    "MetadataMatcher",
    "PreviousMatch",
    "SnapshotMetadata",
    "SnapperStore",
    "SnapshotPaths",
    "SnapshotRecord",
]
