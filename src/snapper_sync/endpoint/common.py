# pyright: standard

"""snapper-sync: snapper_sync/endpoint/common.py
Common functionality among endpoints.
"""

import logging
import subprocess

from snapper_sync import __util__
from snapper_sync.__logger__ import logger


class Endpoint:
    """Generic structure of a command endpoint.

    An endpoint is where commands run: the local machine or a host reached over
    SSH. Snapper, btrfs and filesystem commands all go through ``run`` and
    ``popen`` so callers never care which kind they hold.
    """

    _is_remote = False

    def __init__(self, config=None, **kwargs) -> None:
        """
        Initialize the Endpoint with a configuration dictionary.

        Args:
            config (dict): Configuration dictionary containing endpoint settings.
            kwargs: Additional settings overriding ``config``.
        """
        config = config or {}
        self.config = {}
        self.config["btrfs_debug"] = config.get("btrfs_debug", False)
        self.config["hostname"] = config.get("hostname")

        self.btrfs_flags = ["-v"] if self.config["btrfs_debug"] else []

        for key, value in kwargs.items():
            self.config[key] = value

    def prepare(self):
        """Public access to _prepare, which is called after creating an endpoint."""
        logger.debug("Preparing endpoint %r ...", self)
        return self._prepare()

    def close(self) -> None:
        """Release resources held by the endpoint."""

    def run(self, command, check=False, **kwargs) -> subprocess.CompletedProcess:
        """Run a command to completion and capture its text output."""
        kwargs.setdefault("capture_output", True)
        kwargs.setdefault("text", True)
        result = self._exec_command({"command": command}, method="run", **kwargs)
        if check and result.returncode != 0:
            raise subprocess.CalledProcessError(
                result.returncode, command, result.stdout, result.stderr
            )
        return result

    def popen(self, command, **kwargs) -> subprocess.Popen:
        """Start a command and return its process object."""
        return self._exec_command({"command": command}, method="Popen", **kwargs)

    def send(self, snapshot_path, clone_sources=()):
        """Call 'btrfs send' for the given snapshot and return its Popen object."""
        cmd = self._build_send_command(snapshot_path, clone_sources=clone_sources)
        return self.popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE)

    def receive(self, stdin, destination):
        """Call 'btrfs receive', setting the given pipe as its stdin."""
        cmd = self._build_receive_command(destination)
        loglevel = logging.getLogger().getEffectiveLevel()
        stdout = subprocess.DEVNULL if loglevel >= logging.INFO else None
        return self.popen(cmd, stdin=stdin, stdout=stdout, stderr=subprocess.PIPE)

    def is_dir(self, path) -> bool:
        """Return whether ``path`` is a directory on this endpoint."""
        return self.run(["test", "-d", str(path)]).returncode == 0

    def mkdir(self, path) -> None:
        """Create ``path`` including parents.

        Raises:
            DestinationNotWritable: If the directory could not be created.
        """
        result = self.run(["mkdir", "-p", str(path)])
        if result.returncode != 0:
            raise __util__.DestinationNotWritable(
                f"Cannot create {path} on {self!r}: {result.stderr.strip()}"
            )
        logger.debug("Ensured directory %s on %r", path, self)

    def copy_file(self, source, destination_dir) -> None:
        """Copy a local file into ``destination_dir`` on this endpoint."""
        raise NotImplementedError

    # The following methods may be implemented by endpoints unless the
    # default behaviour is wanted.

    def __repr__(self) -> str:
        return "local"

    def get_id(self) -> str:
        """Return an id string to identify this endpoint over multiple runs."""
        return "unknown://"

    def _prepare(self) -> None:
        """Called after endpoint creation for additional checks."""
        pass

    def _build_send_command(self, snapshot_path, clone_sources=()):
        cmd = ["btrfs", "send", *self.btrfs_flags]
        log_level = logging.getLogger().getEffectiveLevel()
        if log_level >= logging.WARNING:
            cmd += ["--quiet"]
        for clone in clone_sources:
            cmd += ["-c", str(clone)]
        cmd += [str(snapshot_path)]
        return cmd

    def _build_receive_command(self, destination):
        return ["btrfs", "receive", *self.btrfs_flags, str(destination)]

    def _exec_command(self, options, **kwargs):
        command = options.get("command")
        if not command:
            raise ValueError("No command specified in options for _exec_command")
        return __util__.exec_subprocess([str(c) for c in command], **kwargs)
