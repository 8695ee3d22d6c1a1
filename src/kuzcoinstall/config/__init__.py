"""Installer configuration.

Configuration is resolved once per run into an immutable InstallerConfig.
"""

from kuzcoinstall.config.loader import ConfigError, load_config
from kuzcoinstall.config.models import InstallerConfig

__all__ = [
    "ConfigError",
    "InstallerConfig",
    "load_config",
]
