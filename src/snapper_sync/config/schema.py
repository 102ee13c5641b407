"""Configuration schema definitions using dataclasses.

Defines the structure of the optional TOML settings file and of the
snapper configurations read from the system.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .. import DEFAULT_DESCRIPTION


@dataclass
class RemoteConfig:
    """Remote destination settings.

    Attributes:
        host: Destination host, optionally as user@host
        port: SSH port (None for the ssh default)
        identity: Path to SSH private key
        ssh_opts: Extra ``-o`` options passed to ssh
        ssh_sudo: Run privileged remote commands through ``sudo -n``
    """

    host: Optional[str] = None
    port: Optional[int] = None
    identity: Optional[str] = None
    ssh_opts: list[str] = field(default_factory=list)
    ssh_sudo: bool = False


@dataclass
class GlobalConfig:
    """Global settings.

    Attributes:
        description: Description given to a snapshot once its transfer completed
        noconfirm: Never ask for confirmation
        notify: Send desktop notifications
        keep_old: Keep the superseded snapshot, only removing its tag
        transaction_log: Path to the JSON-lines transaction log (None disables it)
        log_file: Path to a plain log file (None for console only)
    """

    description: str = DEFAULT_DESCRIPTION
    noconfirm: bool = False
    notify: bool = True
    keep_old: bool = False
    transaction_log: Optional[str] = None
    log_file: Optional[str] = None


@dataclass
class Settings:
    """Root settings object.

    Attributes:
        global_config: Global settings
        remote: Remote destination settings
    """

    global_config: GlobalConfig = field(default_factory=GlobalConfig)
    remote: RemoteConfig = field(default_factory=RemoteConfig)


@dataclass(frozen=True)
class SnapperConfig:
    """A snapper configuration as defined in /etc/snapper/configs.

    Attributes:
        name: Configuration name (the key used with ``snapper -c``)
        subvolume: Source subvolume the configuration snapshots
        exclude: Skip this configuration (SNAP_SYNC_EXCLUDE=yes)
    """

    name: str
    subvolume: Path
    exclude: bool = False

    @property
    def snapshots_dir(self) -> Path:
        return self.subvolume / ".snapshots"
