"""Desktop notifications through ``notify-send``.

snapper-sync runs as root, usually via sudo, while the desktop session
belongs to the invoking user. Notifications are therefore sent as
``$SUDO_USER`` against that user's session bus. Sending is best effort: a
missing ``notify-send`` or an absent session only leaves a debug message.
"""

import logging
import os
import pwd
import subprocess

from . import __util__

logger = logging.getLogger(__name__)

APP_NAME = "snapper-sync"


class Notifier:
    """Send desktop notifications about the outcome of a run."""

    def __init__(self, enabled: bool = True, urgency: str = "normal") -> None:
        self.enabled = enabled
        self.urgency = urgency
        self.sent: list[tuple[str, str]] = []

    def _command(self, summary: str, body: str, urgency: str) -> tuple[list[str], dict]:
        cmd = ["notify-send", "--app-name", APP_NAME, "--urgency", urgency, summary, body]
        env = os.environ.copy()

        sudo_user = os.environ.get("SUDO_USER")
        if sudo_user and __util__.is_root():
            entry = pwd.getpwnam(sudo_user)
            env["DBUS_SESSION_BUS_ADDRESS"] = f"unix:path=/run/user/{entry.pw_uid}/bus"
            env["HOME"] = entry.pw_dir
            cmd = ["sudo", "-u", sudo_user, "--preserve-env=DBUS_SESSION_BUS_ADDRESS"] + cmd
        return cmd, env

    def notify(self, summary: str, body: str = "", urgency: str | None = None) -> bool:
        """Show a notification; return whether it was delivered."""
        if not self.enabled:
            return False
        try:
            cmd, env = self._command(summary, body, urgency or self.urgency)
            result = __util__.exec_subprocess(
                cmd, env=env, capture_output=True, text=True, timeout=10
            )
        except (OSError, KeyError, subprocess.SubprocessError) as e:
            logger.debug("Could not send notification %r: %s", summary, e)
            return False
        if result.returncode != 0:
            logger.debug(
                "notify-send exited with %d: %s", result.returncode, result.stderr.strip()
            )
            return False
        self.sent.append((summary, body))
        return True

    def error(self, summary: str, body: str = "") -> bool:
        return self.notify(summary, body, urgency="critical")
