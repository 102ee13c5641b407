# pyright: standard

"""snapper-sync: SSH endpoint for remote destinations.

Commands are wrapped in ``ssh user@host -- <command>`` over a shared
ControlMaster connection. Exit status 255 is ssh's own failure code and is
reported as an unavailable transport rather than a failed command.
"""

import getpass
import os
import shlex
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional

from snapper_sync import __util__
from snapper_sync.__logger__ import logger
from snapper_sync.sshutil.master import SSHMasterManager

from .common import Endpoint

SSH_FAILURE = 255

# Commands that need root on the remote side when connecting as another user.
PRIVILEGED_COMMANDS = frozenset({"btrfs", "mkdir", "test", "findmnt"})


class SSHEndpoint(Endpoint):
    """SSH-based endpoint for remote operations.

    The username is taken, in order of precedence, from the configuration,
    from ``$SUDO_USER`` when running under sudo, or from the current user.
    """

    _is_remote = True

    def __init__(
        self,
        hostname: str,
        config: Optional[Dict[str, Any]] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(config=config, **kwargs)
        config = config or {}
        self.hostname = hostname
        self.config["hostname"] = hostname
        self.config["username"] = config.get("username") or self._default_username()
        self.config["port"] = config.get("port")
        self.config["ssh_opts"] = list(config.get("ssh_opts", []))
        self.config["ssh_sudo"] = config.get("ssh_sudo", False)
        self.config["ssh_identity_file"] = self._resolve_identity(
            config.get("ssh_identity_file")
        )

        self.ssh_manager = SSHMasterManager(
            hostname=self.hostname,
            username=self.config["username"],
            port=self.config["port"],
            ssh_opts=self.config["ssh_opts"],
            identity_file=self.config["ssh_identity_file"],
            batch_mode=config.get("batch_mode", False),
        )
        logger.debug(
            "SSH endpoint configuration: %s@%s port=%s sudo=%s",
            self.config["username"],
            self.hostname,
            self.config["port"],
            self.config["ssh_sudo"],
        )

    def __repr__(self) -> str:
        return f"(SSH) {self.config['username']}@{self.hostname}"

    def get_id(self) -> str:
        """Return a unique identifier for this SSH endpoint."""
        port = f":{self.config['port']}" if self.config["port"] else ""
        return f"ssh://{self.config['username']}@{self.hostname}{port}"

    @staticmethod
    def _default_username() -> str:
        if os.geteuid() == 0 and os.environ.get("SUDO_USER"):
            return os.environ["SUDO_USER"]
        return getpass.getuser()

    @staticmethod
    def _resolve_identity(identity_file: Optional[str]) -> Optional[str]:
        """Expand ``~`` against the invoking user's home when running under sudo."""
        if not identity_file:
            return None
        sudo_user = os.environ.get("SUDO_USER")
        if identity_file.startswith("~") and os.geteuid() == 0 and sudo_user:
            home = os.path.expanduser(f"~{sudo_user}")
            identity_file = identity_file.replace("~", home, 1)
        path = Path(identity_file).expanduser()
        if not path.exists():
            logger.warning("SSH identity file does not exist: %s", path)
        return str(path)

    def _prepare(self) -> None:
        """Open the master connection and verify the remote shell works."""
        if not self.ssh_manager.start_master():
            raise __util__.TransportUnavailable(
                f"Could not establish SSH connection to {self.hostname}"
            )
        result = self.run(["true"])
        if result.returncode != 0:
            raise __util__.TransportUnavailable(
                f"SSH connection to {self.hostname} is not usable: {result.stderr.strip()}"
            )

    def close(self) -> None:
        self.ssh_manager.stop_master()

    def _build_remote_command(self, command: List[str]) -> List[str]:
        """Prepare a remote command with optional sudo."""
        command = [str(c) for c in command]
        if (
            self.config["ssh_sudo"]
            and self.config["username"] != "root"
            and command
            and command[0] in PRIVILEGED_COMMANDS
        ):
            return ["sudo", "-n"] + command
        return command

    def _exec_command(self, options, **kwargs):
        command = options.get("command")
        if not command:
            raise ValueError("No command specified in options for _exec_command")

        remote_cmd = self._build_remote_command(command)
        ssh_cmd = self.ssh_manager.get_ssh_base_cmd() + ["--", shlex.join(remote_cmd)]
        try:
            result = __util__.exec_subprocess(ssh_cmd, **kwargs)
        except OSError as e:
            raise __util__.TransportUnavailable(f"Cannot run ssh: {e}") from e

        if isinstance(result, subprocess.CompletedProcess):
            if result.returncode == SSH_FAILURE:
                raise __util__.TransportUnavailable(
                    f"SSH to {self.hostname} failed: "
                    + __util__.decode_stream(result.stderr).strip()
                )
        return result

    def copy_file(self, source, destination_dir) -> None:
        """Synchronize a local file into ``destination_dir`` on the remote host."""
        target = f"{self.config['username']}@{self.hostname}:{destination_dir}/"
        cmd = [
            "rsync",
            "-tq",
            "-e",
            shlex.join(self.ssh_manager.transport_cmd()),
            str(source),
            target,
        ]
        if self.config["ssh_sudo"] and self.config["username"] != "root":
            cmd[2:2] = ["--rsync-path", "sudo -n rsync"]
        try:
            result = __util__.exec_subprocess(cmd, capture_output=True, text=True)
        except OSError as e:
            raise __util__.TransferFailed(f"Cannot run rsync: {e}") from e
        if result.returncode != 0:
            raise __util__.TransferFailed(
                f"rsync of {source} to {target} failed: {result.stderr.strip()}"
            )
        logger.debug("Synchronized %s to %s", source, target)
