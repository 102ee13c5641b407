"""TOML settings loading and validation.

Handles settings file discovery, parsing, and validation with helpful error messages.
"""

import tomllib
from pathlib import Path
from typing import Any

from .schema import GlobalConfig, RemoteConfig, Settings


class ConfigError(Exception):
    """Configuration loading or validation error."""

    pass


# Settings file search paths in priority order
CONFIG_PATHS = [
    Path.home() / ".config" / "snapper-sync" / "config.toml",
    Path("/etc/snapper-sync/config.toml"),
]


def find_config_file(explicit_path: str | None = None) -> Path | None:
    """Find settings file.

    Args:
        explicit_path: Explicitly specified settings path (highest priority)

    Returns:
        Path to settings file, or None if not found
    """
    if explicit_path:
        path = Path(explicit_path)
        if path.exists():
            return path
        raise ConfigError(f"Config file not found: {explicit_path}")

    for path in CONFIG_PATHS:
        if path.exists():
            return path

    return None


def _expect(data: dict[str, Any], key: str, kind, section: str):
    value = data.get(key)
    if value is not None and not isinstance(value, kind):
        raise ConfigError(
            f"'{section}.{key}' must be of type {getattr(kind, '__name__', kind)}"
        )
    return value


def _default(value, default):
    return default if value is None else value


KNOWN_KEYS = {
    "global": {"description", "noconfirm", "notify", "keep_old", "transaction_log", "log_file"},
    "remote": {"host", "port", "identity", "ssh_opts", "ssh_sudo"},
}


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' must be a table")
    return section


def _unknown_keys(data: dict[str, Any]) -> list[str]:
    """Warnings for sections and keys the settings schema does not know."""
    warnings = []
    for name, value in data.items():
        if name not in KNOWN_KEYS:
            warnings.append(f"Unknown section '{name}' ignored")
            continue
        for key in value:
            if key not in KNOWN_KEYS[name]:
                warnings.append(f"Unknown key '{name}.{key}' ignored")
    return warnings


def _parse_global(data: dict[str, Any]) -> GlobalConfig:
    """Parse global configuration from dict."""
    defaults = GlobalConfig()
    description = _expect(data, "description", str, "global")
    if description is not None and not description.strip():
        raise ConfigError("'global.description' must not be empty")

    return GlobalConfig(
        description=description or defaults.description,
        noconfirm=bool(_expect(data, "noconfirm", bool, "global") or False),
        notify=_default(_expect(data, "notify", bool, "global"), defaults.notify),
        keep_old=bool(_expect(data, "keep_old", bool, "global") or False),
        transaction_log=_expect(data, "transaction_log", str, "global"),
        log_file=_expect(data, "log_file", str, "global"),
    )


def _parse_remote(data: dict[str, Any]) -> RemoteConfig:
    """Parse remote configuration from dict."""
    port = _expect(data, "port", int, "remote")
    if port is not None and not 0 < port < 65536:
        raise ConfigError(f"'remote.port' out of range: {port}")

    ssh_opts = _expect(data, "ssh_opts", list, "remote") or []
    if not all(isinstance(opt, str) for opt in ssh_opts):
        raise ConfigError("'remote.ssh_opts' must be a list of strings")

    return RemoteConfig(
        host=_expect(data, "host", str, "remote"),
        port=port,
        identity=_expect(data, "identity", str, "remote"),
        ssh_opts=list(ssh_opts),
        ssh_sudo=bool(_expect(data, "ssh_sudo", bool, "remote") or False),
    )


def _validate_settings(settings: Settings) -> list[str]:
    """Validate settings and return list of warnings."""
    warnings = []

    if settings.remote.identity and not settings.remote.host:
        warnings.append("'remote.identity' is set but no 'remote.host' is configured")

    if settings.remote.identity and not Path(settings.remote.identity).expanduser().exists():
        warnings.append(f"SSH identity file not found: {settings.remote.identity}")

    if settings.global_config.noconfirm and not settings.global_config.notify:
        warnings.append(
            "Unattended runs with notifications disabled only report failures in the logs"
        )

    return warnings


def load_config(path: Path | str) -> tuple[Settings, list[str]]:
    """Load and validate settings from TOML file.

    Args:
        path: Path to settings file

    Returns:
        Tuple of (Settings object, list of warnings)

    Raises:
        ConfigError: If settings are invalid or cannot be parsed
    """
    path = Path(path)

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML syntax: {e}")
    except OSError as e:
        raise ConfigError(f"Cannot read config file: {e}")

    settings = Settings(
        global_config=_parse_global(_section(data, "global")),
        remote=_parse_remote(_section(data, "remote")),
    )

    return settings, _unknown_keys(data) + _validate_settings(settings)

