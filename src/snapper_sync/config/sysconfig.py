"""Snapper's own configuration files.

Snapper keeps the list of configurations in a shell-style sysconfig file
(``SNAPPER_CONFIGS="root home"``) and one file per configuration under
/etc/snapper/configs holding ``SUBVOLUME=`` and friends. These are read-only
here; ``SNAP_SYNC_EXCLUDE=yes`` in a configuration file opts it out of syncing.
"""

import logging
import shlex
from pathlib import Path

from .. import __util__
from .schema import SnapperConfig

logger = logging.getLogger(__name__)

GLOBAL_CONFIG_PATHS = [
    Path("/etc/conf.d/snapper"),
    Path("/etc/default/snapper"),
    Path("/etc/sysconfig/snapper"),
]
CONFIGS_DIR = Path("/etc/snapper/configs")

EXCLUDE_KEY = "SNAP_SYNC_EXCLUDE"
_TRUE_VALUES = {"yes", "true", "1", "on"}


def parse_shell_vars(text: str) -> dict[str, str]:
    """Parse ``KEY="value"`` assignments, ignoring comments and other lines."""
    values = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, rest = line.partition("=")
        key = key.strip()
        if key.startswith("export "):
            key = key[len("export ") :].strip()
        if not key.isidentifier():
            continue
        try:
            tokens = shlex.split(rest, comments=True)
        except ValueError as e:
            logger.warning("Skipping malformed line %r: %s", raw, e)
            continue
        values[key] = " ".join(tokens)
    return values


def find_global_config(candidates=None) -> Path | None:
    """Return the first existing global snapper sysconfig file."""
    for path in candidates or GLOBAL_CONFIG_PATHS:
        if Path(path).is_file():
            return Path(path)
    return None


def read_config_names(path: Path) -> list[str]:
    """Return the configuration names listed in SNAPPER_CONFIGS."""
    try:
        values = parse_shell_vars(Path(path).read_text(encoding="utf-8"))
    except OSError as e:
        raise __util__.SetupError(f"Cannot read {path}: {e}") from e
    return values.get("SNAPPER_CONFIGS", "").split()


def read_snapper_config(name: str, configs_dir: Path = CONFIGS_DIR) -> SnapperConfig:
    """Read one configuration file.

    Raises:
        SetupError: If the file is missing, unreadable or has no SUBVOLUME.
    """
    path = Path(configs_dir) / name
    if not path.is_file():
        raise __util__.SetupError(f"Snapper configuration file not found: {path}")
    try:
        values = parse_shell_vars(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise __util__.SetupError(f"Cannot read {path}: {e}") from e

    subvolume = values.get("SUBVOLUME")
    if not subvolume:
        raise __util__.SetupError(f"{path} does not define SUBVOLUME")

    return SnapperConfig(
        name=name,
        subvolume=Path(subvolume),
        exclude=values.get(EXCLUDE_KEY, "").lower() in _TRUE_VALUES,
    )


def load_snapper_configs(
    selected: list[str] | None = None,
    global_config: Path | None = None,
    configs_dir: Path = CONFIGS_DIR,
) -> list[SnapperConfig]:
    """Load the configurations to process, in the order they are listed.

    Args:
        selected: Only these names (default: every configured name)
        global_config: Path of the sysconfig file (default: searched)
        configs_dir: Directory of per-configuration files

    Raises:
        SetupError: If the global file is missing or a selected name is unknown.
    """
    path = global_config or find_global_config()
    if path is None:
        raise __util__.SetupError(
            "Snapper global configuration not found (looked in "
            + ", ".join(str(p) for p in GLOBAL_CONFIG_PATHS)
            + ")"
        )

    names = read_config_names(path)
    logger.debug("Snapper configurations in %s: %s", path, names)

    if selected:
        unknown = [name for name in selected if name not in names]
        if unknown:
            raise __util__.SetupError(
                f"Unknown snapper configuration(s): {', '.join(unknown)}"
            )
        names = [name for name in names if name in selected]

    if not names:
        raise __util__.SetupError(f"No snapper configurations listed in {path}")

    return [read_snapper_config(name, configs_dir) for name in names]
