"""Configuration from a ``config.env`` file, environment variables and defaults."""

from __future__ import annotations

import os
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from dotenv import dotenv_values

VALID_LOG_LEVELS = ("debug", "info", "warn", "error")
VALID_LOG_FORMATS = ("text", "json")

_CONFIG_NAMES = ("config.env", "config")
_ENV_VAR = re.compile(r"\$(?:\{([^}]*)\}|([A-Za-z0-9_]+))")
_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"", "0", "f", "F", "FALSE", "false", "False"}


@dataclass
class Config:
    rpc_urls: list[str] = field(default_factory=lambda: ["http://localhost:8545"])
    trace_dir: str = ""
    result_dir: str = ""
    log_level: str = "info"
    log_format: str = "text"
    log_file: str = ""
    start_blocks: list[int] = field(default_factory=list)
    end_blocks: list[int] = field(default_factory=list)
    retry_max_attempts: int = 100
    retry_base_delay: int = 1000  # milliseconds
    retry_max_delay: int = 20000  # milliseconds
    retry_jitter: bool = True

    def __str__(self) -> str:
        def seq(values: Iterable[Any]) -> str:
            return "[" + " ".join(str(v) for v in values) + "]"

        return (
            f"Config{{RPCURLs: {seq(self.rpc_urls)}, TraceDir: {self.trace_dir}, "
            f"LogLevel: {self.log_level}, LogFormat: {self.log_format}, "
            f"LogFile: {self.log_file}, StartBlocks: {seq(self.start_blocks)}, "
            f"EndBlocks: {seq(self.end_blocks)}, "
            f"RetryMaxAttempts: {self.retry_max_attempts}, "
            f"RetryBaseDelay: {self.retry_base_delay}, "
            f"RetryMaxDelay: {self.retry_max_delay}, "
            f"RetryJitter: {str(self.retry_jitter).lower()}}}"
        )


class ValidationError(ValueError):
    """A single invalid configuration field."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(field, message)
        self.field = field
        self.message = message

    def __str__(self) -> str:
        return f"config validation error for field '{self.field}': {self.message}"


class ValidationErrors(ValueError):
    """All validation failures found in one configuration."""

    def __init__(self, errors: Iterable[ValidationError]) -> None:
        self.errors = list(errors)
        super().__init__(str(self))

    def __str__(self) -> str:
        lines = "\n".join(str(err) for err in self.errors)
        return f"configuration validation failed:\n{lines}"


def _to_str(key: str, raw: Any) -> str:
    return str(raw)


def _to_int(key: str, raw: Any) -> int:
    if isinstance(raw, bool):
        return int(raw)
    if isinstance(raw, int):
        return raw
    text = str(raw).strip()
    if not text:
        return 0
    try:
        return int(text, 0)
    except ValueError:
        raise ValueError(f"'{key}' cannot parse '{raw}' as int") from None


def _to_uint(key: str, raw: Any) -> int:
    value = _to_int(key, raw)
    if value < 0:
        raise ValueError(f"'{key}' cannot parse '{raw}' as uint")
    return value


def _to_bool(key: str, raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    text = str(raw).strip()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"'{key}' cannot parse '{raw}' as bool")


def _split(raw: Any) -> list[str]:
    if isinstance(raw, (list, tuple)):
        return [str(item) for item in raw]
    text = str(raw).strip()
    return [part.strip() for part in text.split(",")] if text else []


def _to_str_list(key: str, raw: Any) -> list[str]:
    return _split(raw)


def _to_uint_list(key: str, raw: Any) -> list[int]:
    return [_to_uint(key, part) for part in _split(raw)]


_FIELDS: tuple[tuple[str, str, Callable[[str, Any], Any]], ...] = (
    ("RPC_URLS", "rpc_urls", _to_str_list),
    ("TRACE_DIR", "trace_dir", _to_str),
    ("RESULT_DIR", "result_dir", _to_str),
    ("LOG_LEVEL", "log_level", _to_str),
    ("LOG_FORMAT", "log_format", _to_str),
    ("LOG_FILE", "log_file", _to_str),
    ("START_BLOCKS", "start_blocks", _to_uint_list),
    ("END_BLOCKS", "end_blocks", _to_uint_list),
    ("RETRY_MAX_ATTEMPTS", "retry_max_attempts", _to_int),
    ("RETRY_BASE_DELAY_MS", "retry_base_delay", _to_int),
    ("RETRY_MAX_DELAY_MS", "retry_max_delay", _to_int),
    ("RETRY_JITTER", "retry_jitter", _to_bool),
)


def _read_config_file(directory: Path) -> dict[str, str]:
    for name in _CONFIG_NAMES:
        candidate = directory / name
        if candidate.is_file():
            try:
                values = dotenv_values(candidate)
            except (OSError, UnicodeDecodeError) as exc:
                raise ValueError(f"error reading config file: {exc}") from exc
            return {key: "" if value is None else value for key, value in values.items()}
    return {}


def load_config(path: str | os.PathLike[str] = "./configs") -> Config:
    """Load, validate and return the configuration.

    Environment variables take precedence over the config file, which takes
    precedence over the defaults.
    """
    file_values = _read_config_file(Path(path))
    settings: dict[str, Any] = {}
    for key, attr, convert in _FIELDS:
        raw = os.environ.get(key) or file_values.get(key)
        if raw is None:
            continue
        try:
            settings[attr] = convert(key, raw)
        except ValueError as exc:
            raise ValueError(f"error unmarshaling config: {exc}") from exc

    config = Config(**settings)
    validate_config(config)

    return replace(
        config,
        trace_dir=expand_path(config.trace_dir),
        log_file=expand_path(config.log_file) if config.log_file else config.log_file,
    )


def validate_config(config: Config) -> None:
    """Raise :class:`ValidationErrors` listing every invalid field."""
    errors: list[ValidationError] = []

    if config.log_level.lower() not in VALID_LOG_LEVELS:
        errors.append(ValidationError(
            "LOG_LEVEL", f"log level must be one of: {', '.join(VALID_LOG_LEVELS)}"
        ))

    if config.log_format.lower() not in VALID_LOG_FORMATS:
        errors.append(ValidationError(
            "LOG_FORMAT", f"log format must be one of: {', '.join(VALID_LOG_FORMATS)}"
        ))

    if config.log_file:
        log_dir = os.path.dirname(config.log_file) or "."
        try:
            os.makedirs(log_dir, mode=0o755, exist_ok=True)
        except OSError as exc:
            errors.append(ValidationError(
                "LOG_FILE", f"cannot create log file directory '{log_dir}': {exc}"
            ))

    if config.retry_max_attempts < 1:
        errors.append(ValidationError(
            "RETRY_MAX_ATTEMPTS", "retry max attempts must be at least 1"
        ))

    if config.retry_base_delay < 0:
        errors.append(ValidationError(
            "RETRY_BASE_DELAY_MS", "retry base delay must be non-negative"
        ))

    if config.retry_max_delay < config.retry_base_delay:
        errors.append(ValidationError(
            "RETRY_MAX_DELAY_MS",
            "retry max delay must be greater than or equal to base delay",
        ))

    if errors:
        raise ValidationErrors(errors)


def expand_path(path: str) -> str:
    """Substitute ``$VAR``/``${VAR}`` (unset ones become empty) and a leading ``~/``."""
    if not path:
        return path
    path = _ENV_VAR.sub(lambda m: os.environ.get(m.group(1) or m.group(2), ""), path)
    if path.startswith("~/"):
        try:
            path = str(Path.home() / path[2:])
        except RuntimeError:
            pass
    return path