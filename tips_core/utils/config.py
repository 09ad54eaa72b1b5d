"""
Loading and saving ``TipsConfig``.

A config file (YAML or JSON) is optional. ``TIPS_*`` environment variables,
including ones read from a ``.env`` file, are applied on top of it.
"""

import json
import os
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError as PydanticValidationError

from tips_core.models.config import TipsConfig
from tips_core.utils.exceptions import ConfigError


def _flag(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "on"}


# variable -> (path inside the config dict, parser)
_ENV_OVERRIDES: Dict[str, Tuple[Tuple[str, ...], Callable[[str], Any]]] = {
    "TIPS_TIMER_DEFAULT_DURATION": (("timer", "default_duration"), int),
    "TIPS_TIMER_SNOOZE_DURATION": (("timer", "snooze_duration"), int),
    "TIPS_TIMER_TICK_INTERVAL": (("timer", "tick_interval"), float),
    "TIPS_STORAGE_DIRECTORY": (("storage", "directory"), str),
    "TIPS_STORAGE_SAVE_INTERVAL": (("storage", "save_interval"), float),
    "TIPS_NOTIFICATIONS_AWAIT_FANOUT": (("notifications", "await_fanout"), _flag),
    "TIPS_LOG_LEVEL": (("log_level",), str),
    "TIPS_LOG_FORMAT": (("log_format",), str),
}

_READERS: Dict[str, Callable[[Any], Any]] = {
    ".json": json.load,
    ".yaml": yaml.safe_load,
    ".yml": yaml.safe_load,
}


def load_config(config_path: Optional[str] = None, env_file: Optional[str] = None) -> TipsConfig:
    """
    Build the configuration from an optional file plus the environment.

    Args:
        config_path: YAML (``.yaml``/``.yml``) or JSON file
        env_file: ``.env`` file to load first (default: search upwards)

    Raises:
        ConfigError: Missing or unreadable file, unknown extension, a
            malformed environment value, or values the models reject

    Example:
        >>> config = load_config("tips.yaml", env_file=".env")
        >>> config.timer.default_duration
        900
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    values = _read_file(Path(config_path)) if config_path else {}

    try:
        values = _apply_env_overrides(values)
    except ValueError as e:
        raise ConfigError("Invalid environment override", cause=e)

    try:
        return TipsConfig(**values)
    except PydanticValidationError as e:
        raise ConfigError(
            "Invalid configuration",
            details={"errors": e.error_count(), "source": config_path or "environment"},
            cause=e,
        )


def _read_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    reader = _READERS.get(path.suffix.lower())
    if reader is None:
        raise ConfigError(f"Unsupported config file format: {path}", details={"suffix": path.suffix})

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = reader(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to load configuration from {path}", cause=e)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration root must be a mapping: {path}")
    return data


def save_config(config: TipsConfig, config_path: str, format: str = "yaml") -> None:
    """
    Write ``config`` to ``config_path`` as YAML or JSON, creating parent
    directories as needed.
    """
    if format not in ("yaml", "json"):
        raise ConfigError(f"Unsupported format: {format}")

    data = config.model_dump(exclude_none=True)
    path = Path(config_path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            if format == "json":
                json.dump(data, f, indent=2)
            else:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
    except OSError as e:
        raise ConfigError(f"Failed to save configuration to {config_path}", cause=e)


def merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursive dict merge; ``override`` wins on conflicts.

    Example:
        >>> merge_configs({"timer": {"default_duration": 900}}, {"timer": {"tick_interval": 2}})
        {'timer': {'default_duration': 900, 'tick_interval': 2}}
    """
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = merge_configs(current, value)
        else:
            merged[key] = value
    return merged


def _apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of ``config`` with every set ``TIPS_*`` variable applied."""
    overrides: Dict[str, Any] = {}
    for variable, (path, parse) in _ENV_OVERRIDES.items():
        raw = os.getenv(variable)
        if not raw:
            continue
        *sections, leaf = path
        target = overrides
        for section in sections:
            target = target.setdefault(section, {})
        target[leaf] = parse(raw)
    return merge_configs(config, overrides)
