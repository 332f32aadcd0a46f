"""YAML configuration loading with environment overrides."""

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

__all__ = [
    "DATA_DIR_ENV",
    "DEFAULT_CONFIG_NAME",
    "DEFAULT_CONFIG_TEMPLATE",
    "DEFAULT_DATA_DIR",
    "ConfigError",
    "default_path_name",
    "load_config",
    "lock_timeout",
    "resolve_data_dir",
    "write_config",
]

DEFAULT_CONFIG_NAME = "forest.yaml"
DEFAULT_DATA_DIR = ".forest-data"
DATA_DIR_ENV = "FOREST_DATA_DIR"

DEFAULT_CONFIG_TEMPLATE: Dict[str, Any] = {
    "storage": {
        "data_dir": DEFAULT_DATA_DIR,
        "lock_timeout": None,
    },
    "paths": {
        "default": "main",
    },
    "intelligence": {
        "provider": "offline",
        "model": "",
        "base_url": "https://api.anthropic.com/v1/messages",
        "api_key": "",
        "timeout": 60,
        "max_tokens": 4096,
    },
    "logging": {
        "level": "WARNING",
        "file": None,
    },
}


class ConfigError(ValueError):
    """Raised when the configuration file cannot be parsed."""


def _deep_merge(base: Dict[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    for key, value in overrides.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            _deep_merge(current, value)
        else:
            base[key] = copy.deepcopy(value)
    return base


def load_config(config_path: Optional[Path | str] = None) -> Dict[str, Any]:
    """Load configuration, filling any missing keys from the default template.

    A missing file yields the defaults; a file that is not a YAML mapping
    raises :class:`ConfigError`.
    """
    config = copy.deepcopy(DEFAULT_CONFIG_TEMPLATE)
    if config_path is None:
        return config
    path = Path(config_path)
    if not path.exists():
        return config
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        raise ConfigError(f"Failed to parse config {path}: {error}") from error
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration {path} must be a mapping at the top level.")
    return _deep_merge(config, data)


def write_config(config_path: Path | str, config: Optional[Mapping[str, Any]] = None) -> Path:
    """Persist configuration data with stable key ordering."""
    path = Path(config_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = dict(config) if config is not None else copy.deepcopy(DEFAULT_CONFIG_TEMPLATE)
    with path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(payload, handle, sort_keys=False)
    return path


def resolve_data_dir(config: Optional[Mapping[str, Any]] = None) -> Path:
    """Return the storage root: ``$FOREST_DATA_DIR``, then config, then ``./.forest-data``."""
    env_value = os.getenv(DATA_DIR_ENV)
    if env_value and env_value.strip():
        return Path(env_value.strip()).expanduser().resolve()
    storage = (config or {}).get("storage") or {}
    value = storage.get("data_dir")
    if isinstance(value, str) and value.strip():
        return Path(value.strip()).expanduser().resolve()
    return (Path.cwd() / DEFAULT_DATA_DIR).resolve()


def lock_timeout(config: Optional[Mapping[str, Any]] = None) -> Optional[float]:
    """Return the configured lock budget in seconds, or ``None`` to wait forever."""
    storage = (config or {}).get("storage") or {}
    value = storage.get("lock_timeout")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if value < 0:
        return None
    return float(value)


def default_path_name(config: Optional[Mapping[str, Any]] = None) -> str:
    paths = (config or {}).get("paths") or {}
    value = paths.get("default")
    if isinstance(value, str) and value.strip():
        return value.strip()
    return "main"
