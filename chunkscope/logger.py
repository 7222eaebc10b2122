"""Structured key=value logging to standard output, as text or JSON."""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

COLOR_RESET = "\033[0m"
COLOR_RED = "\033[31m"
COLOR_YELLOW = "\033[33m"
COLOR_BLUE = "\033[34m"
COLOR_GRAY = "\033[37m"
COLOR_BOLD = "\033[1m"

_LEVEL_COLORS = {
    logging.DEBUG: COLOR_GRAY,
    logging.INFO: COLOR_BLUE,
    logging.WARNING: COLOR_YELLOW,
    logging.ERROR: COLOR_RED,
}

_LEVEL_NAMES = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    logging.WARNING: "WARN",
    logging.ERROR: "ERROR",
}

_LEVELS_BY_NAME = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

_ROOT = logging.getLogger("chunkscope")
_initialized = False


class LogLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


@dataclass(frozen=True)
class LogConfig:
    level: LogLevel | str = LogLevel.INFO
    format: str = "text"  # "text" or "json"
    enable_colors: bool = True


def _level_name(levelno: int) -> str:
    return _LEVEL_NAMES.get(levelno, logging.getLevelName(levelno))


def _timestamp(record: logging.LogRecord) -> str:
    return datetime.fromtimestamp(record.created).astimezone().isoformat(timespec="milliseconds")


def _format_value(value: Any) -> str:
    text = str(value)
    if not text or any(c.isspace() or c in '="' or not c.isprintable() for c in text):
        return json.dumps(text)
    return text


def _record_attrs(record: logging.LogRecord) -> dict[str, Any]:
    return dict(getattr(record, "attrs", {}))


class ColoredFormatter(logging.Formatter):
    """Formats records as ``key=value`` text, optionally colouring the message."""

    def __init__(self, enable_colors: bool) -> None:
        super().__init__()
        self.enable_colors = enable_colors

    def _message(self, record: logging.LogRecord) -> str:
        message = _format_value(record.getMessage())
        color = _LEVEL_COLORS.get(record.levelno)
        if not self.enable_colors or color is None:
            return message
        return color + COLOR_BOLD + message + COLOR_RESET

    def format(self, record: logging.LogRecord) -> str:
        parts = [
            f"time={_timestamp(record)}",
            f"level={_level_name(record.levelno)}",
            f"msg={self._message(record)}",
        ]
        parts.extend(
            f"{_format_value(key)}={_format_value(value)}"
            for key, value in _record_attrs(record).items()
        )
        return " ".join(parts)


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": _timestamp(record),
            "level": _level_name(record.levelno),
            "msg": record.getMessage(),
        }
        payload.update(_record_attrs(record))
        return json.dumps(payload, default=str)


class _StructuredLogger:
    """A logger carrying bound attributes; extra attributes go as keywords."""

    def __init__(self, logger: logging.Logger, attrs: dict[str, Any]) -> None:
        self._logger = logger
        self._attrs = attrs

    def bind(self, **attrs: Any) -> _StructuredLogger:
        return _StructuredLogger(self._logger, {**self._attrs, **attrs})

    def _log(self, level: int, msg: str, attrs: dict[str, Any]) -> None:
        if self._logger.isEnabledFor(level):
            self._logger.log(level, msg, extra={"attrs": {**self._attrs, **attrs}})

    def debug(self, msg: str, **attrs: Any) -> None:
        self._log(logging.DEBUG, msg, attrs)

    def info(self, msg: str, **attrs: Any) -> None:
        self._log(logging.INFO, msg, attrs)

    def warn(self, msg: str, **attrs: Any) -> None:
        self._log(logging.WARNING, msg, attrs)

    warning = warn

    def error(self, msg: str, **attrs: Any) -> None:
        self._log(logging.ERROR, msg, attrs)


def initialize(config: LogConfig) -> None:
    """Configure the package-wide logger writing to standard output."""
    global _initialized
    level_name = str(getattr(config.level, "value", config.level)).lower()
    level = _LEVELS_BY_NAME.get(level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    if config.format == "json":
        handler.setFormatter(_JsonFormatter())
    else:
        enable_colors = config.enable_colors and sys.stdout.isatty()
        handler.setFormatter(ColoredFormatter(enable_colors))

    for old in list(_ROOT.handlers):
        _ROOT.removeHandler(old)
    _ROOT.addHandler(handler)
    _ROOT.setLevel(level)
    _ROOT.propagate = False
    _initialized = True


def _ensure_initialized() -> None:
    if not _initialized:
        initialize(LogConfig())


def _default() -> _StructuredLogger:
    _ensure_initialized()
    return _StructuredLogger(_ROOT, {})


def get_logger(component: str) -> _StructuredLogger:
    """Return a logger tagged with ``component``."""
    return _default().bind(component=component)


def debug(msg: str, **kwargs: Any) -> None:
    _default().debug(msg, **kwargs)


def info(msg: str, **kwargs: Any) -> None:
    _default().info(msg, **kwargs)


def warn(msg: str, **kwargs: Any) -> None:
    _default().warn(msg, **kwargs)


def error(msg: str, **kwargs: Any) -> None:
    _default().error(msg, **kwargs)