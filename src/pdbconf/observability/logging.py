"""Logging setup for pdbconf: JSON-lines or text output with redaction."""

from __future__ import annotations

import json
import logging
import math
import re
import sys
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Final, Literal, TextIO

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]
LogRedactor = Callable[[JSONValue], JSONValue]
LogFormat = Literal["json", "text"]

_REDACTED_VALUE: Final[str] = "***REDACTED***"
_DEFAULT_LOGGER_NAME: Final[str] = "pdbconf"

_SENSITIVE_KEY_TERMS: Final[tuple[str, ...]] = (
    "secret",
    "token",
    "password",
    "passwd",
    "passphrase",
    "credential",
    "private_key",
)

_SENSITIVE_ASSIGNMENT_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"(?i)\b([\w-]*(?:password|passwd|token|secret))\b\s*([:=])\s*([^\s,;]+)"
)

_STANDARD_LOG_RECORD_FIELDS: Final[frozenset[str]] = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "thread",
        "threadName",
        "taskName",
    }
)

_ACTIVE_HANDLE_LOCK = threading.Lock()
_ACTIVE_HANDLE: LoggingHandle | None = None


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Where and how pdbconf log records are written."""

    level: int | str = "WARNING"
    log_format: LogFormat = "text"
    logger_name: str = _DEFAULT_LOGGER_NAME
    log_file: Path | str | None = None
    stream: TextIO | None = None
    redactor: LogRedactor | None = None


class _JsonLineFormatter(logging.Formatter):
    """Formatter that emits one canonical JSON object per record."""

    def __init__(self, *, redactor: LogRedactor) -> None:
        super().__init__()
        self._redactor = redactor

    def format(self, record: logging.LogRecord) -> str:
        event: dict[str, JSONValue] = {
            "timestamp": _iso8601z_from_epoch(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": _coerce_log_message(self._redactor(record.getMessage())),
        }

        extras = _extract_extra_fields(record)
        if extras:
            event["fields"] = self._redactor(extras)

        if record.exc_info is not None:
            event["exception"] = _coerce_log_message(
                self._redactor(self.formatException(record.exc_info))
            )

        return json.dumps(event, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class _TextFormatter(logging.Formatter):
    """``LEVEL [section] message`` lines for terminals."""

    def __init__(self, *, redactor: LogRedactor) -> None:
        super().__init__()
        self._redactor = redactor

    def format(self, record: logging.LogRecord) -> str:
        message = _coerce_log_message(self._redactor(record.getMessage()))
        section = getattr(record, "section", None)
        prefix = f"{record.levelname} [{section}] " if section else f"{record.levelname} "
        line = prefix + message
        if record.exc_info is not None:
            line += "\n" + _coerce_log_message(self._redactor(self.formatException(record.exc_info)))
        return line


class LoggingHandle:
    """Active logging setup; ``shutdown`` detaches and closes its handlers."""

    def __init__(
        self,
        *,
        logger: logging.Logger,
        handlers: tuple[logging.Handler, ...],
        previous_level: int,
        previous_propagate: bool,
    ) -> None:
        self.logger = logger
        self._handlers = handlers
        self._previous_level = previous_level
        self._previous_propagate = previous_propagate
        self._is_shutdown = False

    @property
    def is_shutdown(self) -> bool:
        return self._is_shutdown

    def shutdown(self) -> None:
        if self._is_shutdown:
            return
        for handler in self._handlers:
            handler.flush()
            self.logger.removeHandler(handler)
            handler.close()
        self.logger.setLevel(self._previous_level)
        self.logger.propagate = self._previous_propagate
        self._is_shutdown = True


def setup_logging(config: LoggingConfig | None = None) -> LoggingHandle:
    """Attach pdbconf handlers to the package logger, replacing earlier ones."""

    cfg = config or LoggingConfig()
    _shutdown_previous_active_handle()

    level = _parse_log_level(cfg.level)
    logger_name = _validate_logger_name(cfg.logger_name)
    redactor = cfg.redactor or default_log_redactor

    formatter: logging.Formatter
    if cfg.log_format == "json":
        formatter = _JsonLineFormatter(redactor=redactor)
    elif cfg.log_format == "text":
        formatter = _TextFormatter(redactor=redactor)
    else:
        raise ValueError(f"unsupported log format {cfg.log_format!r}")

    handlers: list[logging.Handler] = []
    stream_handler = logging.StreamHandler(cfg.stream if cfg.stream is not None else sys.stderr)
    handlers.append(stream_handler)
    if cfg.log_file is not None:
        log_path = Path(cfg.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    logger = logging.getLogger(logger_name)
    previous_level = logger.level
    previous_propagate = logger.propagate
    logger.setLevel(level)
    logger.propagate = False
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    handle = LoggingHandle(
        logger=logger,
        handlers=tuple(handlers),
        previous_level=previous_level,
        previous_propagate=previous_propagate,
    )
    with _ACTIVE_HANDLE_LOCK:
        global _ACTIVE_HANDLE
        _ACTIVE_HANDLE = handle
    return handle


def shutdown_logging(handle: LoggingHandle | None = None) -> None:
    """Shut down ``handle`` (or the active one) and forget it."""

    resolved = handle if handle is not None else get_active_logging_handle()
    if resolved is None:
        return
    resolved.shutdown()
    with _ACTIVE_HANDLE_LOCK:
        global _ACTIVE_HANDLE
        if _ACTIVE_HANDLE is resolved:
            _ACTIVE_HANDLE = None


def get_active_logging_handle() -> LoggingHandle | None:
    with _ACTIVE_HANDLE_LOCK:
        return _ACTIVE_HANDLE


def default_log_redactor(value: JSONValue) -> JSONValue:
    """Deep redaction of secret-looking keys and ``key=value`` text."""

    return _redact_value(_normalize_json_value(value), key_context=None)


def _shutdown_previous_active_handle() -> None:
    existing = get_active_logging_handle()
    if existing is not None:
        existing.shutdown()
    with _ACTIVE_HANDLE_LOCK:
        global _ACTIVE_HANDLE
        _ACTIVE_HANDLE = None


def _validate_logger_name(logger_name: str) -> str:
    if not isinstance(logger_name, str):
        raise ValueError(f"logger_name must be a string, got {type(logger_name).__name__}")
    normalized = logger_name.strip()
    if not normalized:
        raise ValueError("logger_name must not be empty")
    return normalized


def _parse_log_level(value: int | str) -> int:
    if isinstance(value, int):
        return value
    if not isinstance(value, str):
        raise ValueError(f"level must be int or str, got {type(value).__name__}")
    parsed = logging.getLevelName(value.strip().upper())
    if isinstance(parsed, int):
        return parsed
    raise ValueError(f"unsupported logging level {value!r}")


def _iso8601z_from_epoch(epoch_seconds: float) -> str:
    timestamp = datetime.fromtimestamp(epoch_seconds, tz=UTC)
    return timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _coerce_log_message(value: JSONValue) -> str:
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _extract_extra_fields(record: logging.LogRecord) -> dict[str, JSONValue]:
    fields: dict[str, JSONValue] = {}
    for key, value in record.__dict__.items():
        if key in _STANDARD_LOG_RECORD_FIELDS or key.startswith("_"):
            continue
        fields[key] = _normalize_json_value(value)
    return fields


def _normalize_json_value(value: object) -> JSONValue:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else _REDACTED_VALUE
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, Mapping):
        return {str(key): _normalize_json_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize_json_value(item) for item in value]
    return str(value)


def _redact_value(value: JSONValue, *, key_context: str | None) -> JSONValue:
    if key_context is not None and _requires_redaction_for_key(key_context):
        return _REDACTED_VALUE
    if isinstance(value, str):
        return _redact_string(value)
    if isinstance(value, list):
        return [_redact_value(item, key_context=None) for item in value]
    if isinstance(value, dict):
        return {key: _redact_value(item, key_context=key) for key, item in value.items()}
    return value


def _requires_redaction_for_key(key: str) -> bool:
    key_lower = key.lower()
    return any(term in key_lower for term in _SENSITIVE_KEY_TERMS)


def _redact_string(text: str) -> str:
    return _SENSITIVE_ASSIGNMENT_PATTERN.sub(
        lambda match: f"{match.group(1)}{match.group(2)}{_REDACTED_VALUE}", text
    )


__all__ = [
    "JSONScalar",
    "JSONValue",
    "LogFormat",
    "LogRedactor",
    "LoggingConfig",
    "LoggingHandle",
    "default_log_redactor",
    "get_active_logging_handle",
    "setup_logging",
    "shutdown_logging",
]
