"""Configuration system for snapper-sync.

This module provides the TOML settings loader and the reader for snapper's
own configuration files.
"""

from .loader import ConfigError, find_config_file, load_config
from .schema import GlobalConfig, RemoteConfig, Settings, SnapperConfig
from .sysconfig import load_snapper_configs

__all__ = [
    "GlobalConfig",
    "RemoteConfig",
    "Settings",
    "SnapperConfig",
    "load_config",
    "load_snapper_configs",
    "find_config_file",
    "ConfigError",
]
