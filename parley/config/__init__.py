"""Configuration loading for Parley.

Settings are layered: the packaged ``defaults.yaml``, then the user's YAML
file, then ``PARLEY_*`` environment variables. String values in the YAML
files may reference environment variables as ``${NAME}``.
"""

import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml

from parley.errors import InvalidConfigError

from .settings import (
    DEFAULT_MAX_ROUNDS,
    DiscussionSettings,
    LoggingConfig,
    Settings,
    coerce_round_limit,
)

CONFIG_FILE = Path.home() / ".parley" / "config.yaml"
DEFAULTS_FILE = Path(__file__).with_name("defaults.yaml")

# Only these top-level YAML sections are handed to Settings
SECTIONS = ("discussion", "logging")

_ENV_REF = re.compile(r"\$\{([^}]+)\}")

_settings: Optional[Settings] = None


def _expand_env_vars(value: Any) -> Any:
    """Substitute ``${NAME}`` references throughout a parsed YAML tree.

    Unset variables expand to the empty string. A string holding a reference
    that expands to nothing becomes None so the field falls back to its
    default; literal empty strings are kept.
    """
    if isinstance(value, dict):
        return {key: _expand_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    if isinstance(value, str) and _ENV_REF.search(value):
        expanded = _ENV_REF.sub(lambda m: os.environ.get(m.group(1), ""), value)
        return expanded or None
    return value


def _deep_merge(base: dict, override: dict) -> dict:
    """Merge ``override`` into a copy of ``base``, recursing into dicts."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            value = _deep_merge(current, value)
        merged[key] = value
    return merged


def read_config_file(path: Path) -> dict:
    """Parse a YAML config file; a missing or empty file yields ``{}``."""
    if not path.is_file():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise InvalidConfigError("config_file", path, f"not valid YAML: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidConfigError("config_file", path, "top level must be a mapping")
    return data


def load_settings(config_path: Optional[Path] = None, force_reload: bool = False) -> Settings:
    """Load and cache the application settings.

    Args:
        config_path: YAML file to use instead of ``~/.parley/config.yaml``
        force_reload: Rebuild even when settings are already cached

    Returns:
        The cached Settings instance
    """
    global _settings

    if _settings is None or force_reload:
        layered = _deep_merge(
            read_config_file(DEFAULTS_FILE),
            read_config_file(config_path or CONFIG_FILE),
        )
        expanded = _expand_env_vars(layered)
        _settings = Settings(**{name: expanded[name] for name in SECTIONS if expanded.get(name)})

    return _settings


def get_settings() -> Settings:
    """Return the cached settings, loading them on first use."""
    return _settings if _settings is not None else load_settings()


def reset_settings() -> None:
    """Drop the cached settings so the next access reloads them."""
    global _settings
    _settings = None


__all__ = [
    "CONFIG_FILE",
    "DEFAULT_MAX_ROUNDS",
    "DiscussionSettings",
    "LoggingConfig",
    "Settings",
    "coerce_round_limit",
    "get_settings",
    "load_settings",
    "read_config_file",
    "reset_settings",
]
