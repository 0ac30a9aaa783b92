"""Logging setup for spamsift."""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .config import ConfigError, LoggingConfig, RotationConfig

FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
MAIN_LOG_NAME = "spamsift.log"
DEBUG_LOG_NAME = "debug.log"


class ConsoleFormatter(logging.Formatter):
    """Console formatter: one-letter level marker, coloured on terminals.

    Warnings are marked ``!`` and anything at ERROR or above ``X``; other
    levels use the first letter of their name.
    """

    COLORS: dict[int, str] = {
        logging.DEBUG: "\x1b[36m",
        logging.INFO: "\x1b[32m",
        logging.WARNING: "\x1b[33m",
        logging.ERROR: "\x1b[31m",
        logging.CRITICAL: "\x1b[35m",
    }
    RESET = "\x1b[0m"

    def __init__(self, use_color: bool) -> None:
        super().__init__("%(message)s")
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        marker = _level_marker(record.levelno, record.levelname)
        message = super().format(record)
        if not self.use_color:
            return f"{marker} {message}"
        color = self.COLORS.get(record.levelno, "\x1b[37m")
        return f"{color}{marker}{self.RESET} {message}"


def _level_marker(levelno: int, levelname: str) -> str:
    if levelno >= logging.ERROR:
        return "X"
    if levelno >= logging.WARNING:
        return "!"
    return levelname[:1].upper() or "?"


def configure_logging(logging_config: LoggingConfig, root_dir: Path) -> None:
    """Install file and console handlers on the root logger.

    ``spamsift.log`` never records below INFO, even at the debug level;
    ``debug.log`` captures everything the root level lets through.
    """

    level = level_from_string(logging_config.level)
    log_dir = (root_dir / "logs").expanduser()
    log_dir.mkdir(parents=True, exist_ok=True)

    files = [(MAIN_LOG_NAME, logging.INFO)]
    if logging_config.debug_file:
        files.append((DEBUG_LOG_NAME, logging.DEBUG))
    handlers: list[logging.Handler] = [
        _build_file_handler(log_dir / name, file_level, logging_config.rotation)
        for name, file_level in files
    ]
    handlers.append(_build_console_handler())

    logging.basicConfig(level=level, handlers=handlers, force=True)


def level_from_string(level: str) -> int:
    normalized = level.strip().upper()
    mapping = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "WARN": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }
    try:
        return mapping[normalized]
    except KeyError as exc:
        raise ConfigError(f"Unknown log level: {level}") from exc


def _build_file_handler(path: Path, level: int, rotation: RotationConfig) -> logging.Handler:
    handler = RotatingFileHandler(
        path,
        maxBytes=rotation.max_bytes,
        backupCount=rotation.backups,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT))
    return handler


def _build_console_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(ConsoleFormatter(_stream_supports_color(handler)))
    return handler


def _stream_supports_color(handler: logging.Handler) -> bool:
    # https://no-color.org: any non-empty NO_COLOR disables colour.
    if os.environ.get("NO_COLOR"):
        return False
    stream = getattr(handler, "stream", None)
    return bool(getattr(stream, "isatty", lambda: False)())


__all__ = ["configure_logging", "level_from_string", "ConsoleFormatter"]
