"""Configuration loading and validation."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

LOGGER = logging.getLogger(__name__)

CONFIG_ENV_VAR = "SPAMSIFT_CONFIG"
DEFAULT_CONFIG_PATH = Path("~/.config/spamsift/config.yaml")
DEFAULT_ROOT_DIR = Path("~/.local/lib/spamsift")
DEFAULT_LOG_LEVEL = "info"
DEFAULT_MODEL_NAME = "default"
DEFAULT_MAX_BYTES = 5_000_000

_MODEL_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


class ConfigError(ValueError):
    """Raised when configuration is invalid or missing."""


@dataclass(frozen=True)
class RotationConfig:
    """Size-based rotation for a log file.

    ``max_bytes`` of 0 disables rotation. ``backups`` is how many rotated
    files are kept next to the live one.
    """

    max_bytes: int = DEFAULT_MAX_BYTES
    backups: int = 5


@dataclass(frozen=True)
class LoggingConfig:
    """Logging-related configuration."""

    level: str = DEFAULT_LOG_LEVEL
    debug_file: bool = False
    rotation: RotationConfig = field(default_factory=RotationConfig)


@dataclass(frozen=True)
class VerdictLogConfig:
    """Whether classifications are recorded, and how that log rotates."""

    enabled: bool = True
    rotation: RotationConfig = field(default_factory=lambda: RotationConfig(backups=3))


@dataclass(frozen=True)
class Config:
    """Fully parsed configuration."""

    root_dir: Path = field(default_factory=lambda: DEFAULT_ROOT_DIR.expanduser())
    model_name: str = DEFAULT_MODEL_NAME
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    verdict_log: VerdictLogConfig = field(default_factory=VerdictLogConfig)


def load_config(path: Path | str | None = None) -> Config:
    """Load and validate configuration from YAML.

    An explicit path or ``$SPAMSIFT_CONFIG`` must exist. When neither is set
    and the default file is absent, the built-in defaults apply.
    """

    config_path, explicit = resolve_config_path(path)
    if not config_path.exists():
        if explicit:
            raise ConfigError(f"Config file not found: {config_path}")
        LOGGER.debug("No config at %s; using defaults.", config_path)
        return Config()

    with config_path.open("r", encoding="utf-8") as handle:
        try:
            raw = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError("Configuration root must be a mapping.")

    return _parse_config(raw)


def resolve_config_path(explicit: Path | str | None) -> tuple[Path, bool]:
    """Return the config path to read and whether it was requested explicitly."""

    if explicit:
        return Path(explicit).expanduser(), True
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser(), True
    return DEFAULT_CONFIG_PATH.expanduser(), False


def _parse_config(raw: dict[str, Any]) -> Config:
    return Config(
        root_dir=_parse_root_dir(raw),
        model_name=_parse_model(raw.get("model")),
        logging=_parse_logging(raw.get("logging")),
        verdict_log=_parse_verdict_log(raw.get("verdict_log")),
    )


def _parse_root_dir(raw: dict[str, Any]) -> Path:
    key = "rootdir" if raw.get("rootdir") is not None else "root_dir"
    value = raw.get(key)
    if value is None:
        return DEFAULT_ROOT_DIR.expanduser()
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{key} must be a non-empty path string.")
    return Path(value).expanduser()


def _parse_model(value: Any) -> str:
    if value is None:
        return DEFAULT_MODEL_NAME
    if not isinstance(value, dict):
        raise ConfigError("model must be a mapping.")
    name = value.get("name", DEFAULT_MODEL_NAME)
    if not isinstance(name, str) or not _MODEL_NAME_PATTERN.match(name):
        raise ConfigError(
            "model.name must be a plain file stem (letters, digits, '.', '_' or '-')."
        )
    return name


def _parse_logging(value: Any) -> LoggingConfig:
    if value is None:
        return LoggingConfig()
    if not isinstance(value, dict):
        raise ConfigError("logging must be a mapping.")
    level = value.get("level", DEFAULT_LOG_LEVEL)
    if not isinstance(level, str):
        raise ConfigError("logging.level must be a string such as 'info'.")
    debug_file = _parse_flag(value.get("debug_file"), "logging.debug_file", default=False)
    rotation = _parse_rotation(value, "logging", RotationConfig())
    return LoggingConfig(level=level.lower(), debug_file=debug_file, rotation=rotation)


def _parse_verdict_log(value: Any) -> VerdictLogConfig:
    defaults = VerdictLogConfig()
    if value is None:
        return defaults
    if isinstance(value, bool):
        return VerdictLogConfig(enabled=value)
    if not isinstance(value, dict):
        raise ConfigError("verdict_log must be true, false or a mapping.")
    enabled = _parse_flag(value.get("enabled"), "verdict_log.enabled", default=True)
    rotation = _parse_rotation(value, "verdict_log", defaults.rotation)
    return VerdictLogConfig(enabled=enabled, rotation=rotation)


def _parse_rotation(value: dict[str, Any], prefix: str, defaults: RotationConfig) -> RotationConfig:
    return RotationConfig(
        max_bytes=_parse_size(value.get("max_bytes"), f"{prefix}.max_bytes", defaults.max_bytes),
        backups=_parse_size(value.get("backups"), f"{prefix}.backups", defaults.backups),
    )


def _parse_size(value: Any, field_name: str, default: int) -> int:
    if value is None:
        return default
    # bool is an int subclass; `max_bytes: yes` is a mistake, not 1.
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigError(f"{field_name} must be a non-negative integer.")
    return value


def _parse_flag(value: Any, field_name: str, *, default: bool) -> bool:
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigError(f"{field_name} must be true or false.")
    return value


__all__ = [
    "Config",
    "LoggingConfig",
    "RotationConfig",
    "VerdictLogConfig",
    "ConfigError",
    "load_config",
    "resolve_config_path",
    "CONFIG_ENV_VAR",
]
