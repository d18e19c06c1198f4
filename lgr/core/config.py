"""Configuration loading from .lgr/config.yaml and environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Optional, get_type_hints

import yaml

from .cycle_guard import START_DETECTING_CYCLES_AFTER

logger = logging.getLogger(__name__)

CONFIG_DIR = ".lgr"
CONFIG_FILE = "config.yaml"

PROJECT_MARKERS = ("pyproject.toml", "setup.py", "setup.cfg", ".git")

_TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass
class SerializerConfig:
    escape_html: bool = False
    human_readable: bool = False
    cycle_check_depth: int = START_DETECTING_CYCLES_AFTER


@dataclass
class LoggingConfig:
    level: str = "info"
    # "json" or "console"
    encoding: str = "json"
    time_key: str = "ts"
    name: str = "lgr"


@dataclass
class LgrFileConfig:
    """Contents of .lgr/config.yaml; sections absent from the file are None."""

    serializer: Optional[SerializerConfig] = None
    logging: Optional[LoggingConfig] = None


def find_project_root(start: Optional[Path] = None) -> Optional[Path]:
    """
    Walk up from ``start`` (default: the working directory) to the first project marker.

    Returns:
        The directory containing pyproject.toml, setup.py, setup.cfg or .git,
        or None if no marker is found
    """
    current = (start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        if any((directory / marker).exists() for marker in PROJECT_MARKERS):
            return directory
    return None


def _section(cls: type, raw: Any) -> Any:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise TypeError(f"section must be a mapping, got {type(raw).__name__}")
    known = {f.name for f in fields(cls)}
    unknown = set(raw) - known
    if unknown:
        logger.warning(f"Ignoring unknown config keys: {', '.join(sorted(unknown))}")
    hints = get_type_hints(cls)
    values = {}
    for key in sorted(known & set(raw)):
        value = raw[key]
        expected = hints[key]
        # bool is an int subclass; a flag is not a valid depth
        if not isinstance(value, expected) or (expected is not bool and isinstance(value, bool)):
            raise TypeError(f"{key} must be {expected.__name__}, got {type(value).__name__} {value!r}")
        values[key] = value
    return cls(**values)


def load_config(path: Optional[Path] = None) -> Optional[LgrFileConfig]:
    """
    Load the config file.

    Args:
        path: Explicit config file; defaults to .lgr/config.yaml under the project root

    Returns:
        The parsed config, or None if the file is missing or invalid
    """
    if path is None:
        root = find_project_root()
        if root is None:
            return None
        path = root / CONFIG_DIR / CONFIG_FILE

    if not path.exists():
        logger.debug(f"No config file at {path}")
        return None

    try:
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise TypeError(f"top level must be a mapping, got {type(raw).__name__}")
        return LgrFileConfig(
            serializer=_section(SerializerConfig, raw.get("serializer")),
            logging=_section(LoggingConfig, raw.get("logging")),
        )
    except (yaml.YAMLError, TypeError, OSError) as e:
        logger.warning(f"Failed to load config from {path}: {e}")
        return None


def _env_flag(name: str) -> Optional[bool]:
    value = os.environ.get(name)
    if value is None:
        return None
    return value.strip().lower() in _TRUE_VALUES


def resolve_serializer_config(file_config: Optional[LgrFileConfig] = None) -> SerializerConfig:
    """
    Serializer settings from the file config, overridden by the environment.

    LGR_ESCAPE_HTML and LGR_HUMAN_READABLE take precedence over the file.
    """
    base = file_config.serializer if file_config and file_config.serializer else SerializerConfig()
    config = SerializerConfig(**vars(base))
    escape_html = _env_flag("LGR_ESCAPE_HTML")
    if escape_html is not None:
        config.escape_html = escape_html
    human_readable = _env_flag("LGR_HUMAN_READABLE")
    if human_readable is not None:
        config.human_readable = human_readable
    return config


def resolve_logging_config(file_config: Optional[LgrFileConfig] = None) -> LoggingConfig:
    """Logging settings from the file config; LGR_LOG_LEVEL overrides the level."""
    base = file_config.logging if file_config and file_config.logging else LoggingConfig()
    config = LoggingConfig(**vars(base))
    level = os.environ.get("LGR_LOG_LEVEL")
    if level:
        config.level = level.strip().lower()
    return config
