"""Configuration loading and merging.

Builds an InstallerConfig from, in increasing precedence:
- Built-in defaults
- An optional YAML file (--config, or ~/.kuzco/install.yml)
- Environment variables (KUZCO_BASE_URL, BUCKET_URL, CLI_VERSION, ...)
- CLI flag overrides

URLs derived from KUZCO_BASE_URL follow it unless set explicitly.
"""

from __future__ import annotations

import os
import re
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from kuzcoinstall.config.models import DEFAULT_BASE_URL, InstallerConfig
from kuzcoinstall.core.errors import InstallerError
from kuzcoinstall.core.logging import get_logger

LOGGER = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".kuzco" / "install.yml"

# Environment variable -> config field
ENV_VARS = {
    "KUZCO_BASE_URL": "kuzco_base_url",
    "BUCKET_URL": "bucket_url",
    "WEB_URL": "web_url",
    "API_URL": "api_url",
    "CLI_VERSION": "cli_version",
    "DEBUG_MODE": "debug_mode",
    "HIP_PATH": "hip_path",
    "ROCM_PATH": "rocm_path",
    "PATH": "path",
}

_BOOL_FIELDS = {"debug_mode", "skip_drivers"}

# Environment variable pattern: ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")


class ConfigError(InstallerError):
    """Configuration loading or parsing error."""

    pass


def load_config(
    environ: Optional[Mapping[str, str]] = None,
    config_path: Optional[Path] = None,
    cli_overrides: Optional[Dict[str, Any]] = None,
) -> InstallerConfig:
    """Load configuration with proper precedence.

    Args:
        environ: Environment mapping (defaults to os.environ).
        config_path: Explicit YAML file; must exist when given.
        cli_overrides: Field values from CLI flags; None values are ignored.

    Returns:
        Frozen InstallerConfig.

    Raises:
        ConfigError: If the config file is missing, malformed or has unknown keys.
    """
    env = dict(os.environ if environ is None else environ)
    sources: List[str] = ["defaults"]
    merged: Dict[str, Any] = {}

    if config_path is not None:
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
        merged.update(load_yaml_file(config_path, env))
        sources.append(f"file:{config_path}")
    elif DEFAULT_CONFIG_PATH.exists():
        merged.update(load_yaml_file(DEFAULT_CONFIG_PATH, env))
        sources.append(f"file:{DEFAULT_CONFIG_PATH}")

    env_values = env_to_values(env)
    if env_values:
        merged.update(env_values)
        sources.append("env")

    if cli_overrides:
        overrides = {k: v for k, v in cli_overrides.items() if v is not None}
        if overrides:
            merged.update(overrides)
            sources.append("cli")

    config = dict_to_config(merged)
    LOGGER.debug(f"Config loaded from sources: {sources}")
    return config


def env_to_values(env: Mapping[str, str]) -> Dict[str, Any]:
    """Extract config values from environment variables.

    Empty variables are treated as unset.
    """
    values: Dict[str, Any] = {}
    for var, field_name in ENV_VARS.items():
        raw = env.get(var)
        if raw is None or raw == "":
            continue
        values[field_name] = raw
    return values


def load_yaml_file(path: Path, environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Load and parse a YAML config file.

    Performs environment variable expansion on string values.

    Raises:
        ConfigError: If YAML parsing fails or the document is not a mapping.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f.read())
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}

    if not isinstance(data, dict):
        raise ConfigError(f"Config file must be a YAML mapping, got {type(data).__name__}")

    known = {f.name for f in fields(InstallerConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown keys in {path}: {', '.join(unknown)}")

    env = dict(os.environ if environ is None else environ)
    return {k: expand_env_vars(v, env) for k, v in data.items()}


def expand_env_vars(data: Any, environ: Mapping[str, str]) -> Any:
    """Recursively expand ${VAR} and ${VAR:-default} in config values."""
    if isinstance(data, dict):
        return {k: expand_env_vars(v, environ) for k, v in data.items()}
    elif isinstance(data, list):
        return [expand_env_vars(item, environ) for item in data]
    elif isinstance(data, str):
        def _replace(match: re.Match[str]) -> str:
            var_name, default_value = match.group(1), match.group(2)
            value = environ.get(var_name)
            if value is not None:
                return value
            if default_value is not None:
                return default_value
            LOGGER.warning(f"Environment variable ${var_name} is not set and has no default")
            return ""

        return ENV_VAR_PATTERN.sub(_replace, data)
    else:
        return data


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def dict_to_config(data: Dict[str, Any]) -> InstallerConfig:
    """Convert merged values to an InstallerConfig, filling derived URLs."""
    values = dict(data)
    for name in _BOOL_FIELDS:
        if name in values:
            values[name] = _parse_bool(values[name])

    if "bin_dir_candidates" in values:
        candidates = values["bin_dir_candidates"]
        if isinstance(candidates, str):
            candidates = [c for c in candidates.split(":") if c]
        values["bin_dir_candidates"] = tuple(candidates)

    base = values.get("kuzco_base_url") or DEFAULT_BASE_URL
    values["kuzco_base_url"] = base
    values.setdefault("bucket_url", f"cfs.{base}")
    values.setdefault("web_url", f"https://{base}")
    values.setdefault("api_url", f"https://relay.{base}")

    return InstallerConfig(**values)
