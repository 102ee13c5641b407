# pyright: standard

"""snapper-sync: snapper_sync/__util__.py
Common utility code shared among the modules.
"""

import os
import subprocess

from .__logger__ import logger


class SnapperSyncError(Exception):
    """Base class of every error raised by snapper-sync."""


class AbortError(SnapperSyncError):
    """The operator declined to continue."""


class SetupError(SnapperSyncError):
    """Missing privileges or configuration; fatal for the whole run."""


class ResolutionError(SnapperSyncError):
    """The destination volume could not be resolved; fatal for the whole run."""


class AmbiguousTarget(ResolutionError):
    """More than one mount point carries the requested UUID."""


class VolumeNotFound(ResolutionError):
    """No mounted btrfs filesystem carries the requested UUID."""


class InconsistentDestination(SnapperSyncError):
    """A snapshot tag refers to a backup directory missing at the destination."""


class SubsystemError(SnapperSyncError):
    """A snapper create/list/delete/modify call failed."""


class TransferError(SnapperSyncError):
    """A send/receive transfer failed."""


class TransportUnavailable(TransferError):
    """The remote channel could not be established."""


class TransferFailed(TransferError):
    """The send/receive stream ended abnormally."""


class DestinationNotWritable(TransferError):
    """The destination directory could not be created."""


def log_heading(caption) -> str:
    """Formatted heading for logging output sections."""
    return f"--[ {caption} ]--"


def is_root() -> bool:
    """Return whether the process runs with an effective uid of 0."""
    return os.geteuid() == 0


def decode_stream(data) -> str:
    """Decode captured process output, tolerating None and bad bytes."""
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return str(data)


def exec_subprocess(command, method="run", **kwargs):
    """Run a command using the given ``subprocess`` method.

    ``method`` is "run" (returns a ``CompletedProcess``) or "Popen" (returns the
    process object). A missing executable surfaces as ``FileNotFoundError``.
    """
    logger.debug("Executing: %s", command)
    func = getattr(subprocess, method)
    try:
        return func(command, **kwargs)
    except FileNotFoundError as e:
        logger.debug("Executable not found for %s: %s", command[0], e)
        raise
