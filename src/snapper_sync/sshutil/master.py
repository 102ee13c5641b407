"""snapper-sync: shared SSH ControlMaster connection.

One master connection is opened per remote host and reused by every command
of the run, so a password or passphrase is asked for at most once and the
many short snapper-sync commands (test, mkdir, findmnt) don't each pay for a
handshake.
"""

import getpass
import os
import pwd
import subprocess
import threading
from pathlib import Path
from typing import List, Optional

from snapper_sync.__logger__ import logger


class SSHMasterManager:
    """Open, check and close an OpenSSH ControlMaster socket."""

    def __init__(
        self,
        hostname: str,
        username: Optional[str] = None,
        port: Optional[int] = None,
        ssh_opts: Optional[List[str]] = None,
        control_dir: Optional[str] = None,
        persist: str = "60",
        identity_file: Optional[str] = None,
        batch_mode: bool = False,
    ):
        self.hostname = hostname
        self.username = username or getpass.getuser()
        self.port = port
        self.ssh_opts = ssh_opts or []
        self.persist = persist
        self.identity_file = identity_file
        self.batch_mode = batch_mode

        # Under sudo, use the invoking user's keys and known_hosts.
        self.sudo_user = os.environ.get("SUDO_USER")
        self.running_as_sudo = self.sudo_user is not None and os.geteuid() == 0

        if control_dir:
            self.control_dir = Path(control_dir)
        elif self.running_as_sudo:
            self.control_dir = Path(f"/tmp/snapper-sync-ssh-{self.sudo_user}")
        else:
            self.control_dir = Path.home() / ".ssh" / "controlmasters"

        self.control_path = (
            self.control_dir / f"cm_{self.username}_{self.hostname}_{os.getpid()}.sock"
        )
        self._lock = threading.Lock()
        self._master_started = False

    def _target(self) -> str:
        return f"{self.username}@{self.hostname}"

    def _env(self) -> dict:
        env = os.environ.copy()
        if self.running_as_sudo and self.sudo_user:
            env["HOME"] = pwd.getpwnam(self.sudo_user).pw_dir
            env["USER"] = self.sudo_user
        return env

    def transport_cmd(self) -> List[str]:
        """The ssh command without a destination, suitable for ``rsync -e``."""
        cmd = ["ssh"]
        opts = [
            f"ControlPath={self.control_path}",
            "ControlMaster=auto",
            f"ControlPersist={self.persist}",
            "ServerAliveInterval=5",
            "ServerAliveCountMax=6",
            "ConnectTimeout=30",
        ]
        if self.batch_mode:
            opts.append("BatchMode=yes")
        opts.extend(self.ssh_opts)

        for opt in opts:
            cmd.extend(["-o", opt])

        if self.port:
            cmd.extend(["-p", str(self.port)])

        if self.identity_file:
            cmd.extend(["-i", str(self.identity_file)])

        return cmd

    def get_ssh_base_cmd(self) -> List[str]:
        """The ssh command up to and including the destination."""
        return self.transport_cmd() + [self._target()]

    def start_master(self) -> bool:
        with self._lock:
            if self.is_master_alive():
                return True

            self.control_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
            cmd = self.get_ssh_base_cmd()
            cmd.insert(1, "-MNf")
            logger.debug("Starting SSH master: %s", cmd)

            try:
                subprocess.run(cmd, env=self._env(), check=True)
            except (OSError, subprocess.CalledProcessError) as e:
                logger.error("Failed to start SSH master to %s: %s", self._target(), e)
                return False
            self._master_started = True
            return True

    def stop_master(self) -> bool:
        if not self._master_started:
            return True

        with self._lock:
            cmd = [
                "ssh",
                "-O",
                "exit",
                "-o",
                f"ControlPath={self.control_path}",
                self._target(),
            ]
            try:
                subprocess.run(cmd, check=True, capture_output=True)
            except (OSError, subprocess.CalledProcessError) as e:
                logger.warning("Failed to stop SSH master: %s", e)
                return False
            self._master_started = False
            return True

    def is_master_alive(self) -> bool:
        if not self.control_path.exists():
            return False

        cmd = [
            "ssh",
            "-O",
            "check",
            "-o",
            f"ControlPath={self.control_path}",
            self._target(),
        ]
        try:
            subprocess.run(cmd, check=True, capture_output=True)
        except (OSError, subprocess.CalledProcessError):
            return False
        return True
