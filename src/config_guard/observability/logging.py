"""Structured logging setup: structlog events rendered as redacted JSON lines."""

from __future__ import annotations

import json
import logging
import logging.handlers
import math
import sys
import threading
from collections.abc import Callable, Mapping, MutableMapping
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Final

import structlog

from config_guard.security.redaction import redact_structure, redact_text

JSONValue = str | int | float | bool | None | list["JSONValue"] | dict[str, "JSONValue"]
LogRedactor = Callable[[JSONValue], JSONValue]

# Attributes every ``logging.LogRecord`` carries; anything else arrived via ``extra``.
_RECORD_ATTRIBUTES: Final[frozenset[str]] = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}

_registry_lock = threading.Lock()
_active: LoggingHandle | None = None


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Where config-guard decisions are written and whether secrets are masked."""

    level: int | str = "INFO"
    logger_name: str = "config_guard"
    log_file: Path | str | None = None
    log_to_stderr: bool = True
    rotating_file: bool = False
    max_bytes: int = 10_000_000
    backup_count: int = 5
    redact: bool = True


class _JsonLineFormatter(logging.Formatter):
    """One JSON object per record: timestamp, level, logger, message, fields, exception."""

    def __init__(self, redactor: LogRedactor) -> None:
        super().__init__()
        self._redactor = redactor

    def format(self, record: logging.LogRecord) -> str:
        event: dict[str, JSONValue] = {
            "timestamp": _utc_timestamp(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        fields = {
            key: _jsonable(value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES and not key.startswith("_")
        }
        if fields:
            event["fields"] = fields
        if record.exc_info:
            event["exception"] = self.formatException(record.exc_info)
        return json.dumps(
            self._redactor(event), sort_keys=True, separators=(",", ":"), ensure_ascii=False
        )


class LoggingHandle:
    """Handlers installed by one ``setup_logging`` call."""

    def __init__(
        self,
        *,
        logger: logging.Logger,
        log_path: Path | None,
        handlers: tuple[logging.Handler, ...],
    ) -> None:
        self.logger = logger
        self.log_path = log_path
        self._handlers = handlers
        self._closed = False
        self._lock = threading.Lock()

    @property
    def is_shutdown(self) -> bool:
        return self._closed

    def flush(self) -> None:
        for handler in self._handlers:
            handler.flush()

    def shutdown(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            for handler in self._handlers:
                self.logger.removeHandler(handler)
                handler.close()
            structlog.reset_defaults()


def _rename_reserved_keys(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Prefix event keys that would collide with ``logging.LogRecord`` attributes."""

    for key in [key for key in event_dict if key in _RECORD_ATTRIBUTES]:
        event_dict[f"field_{key}"] = event_dict.pop(key)
    return event_dict


def configure_structlog() -> None:
    """Route ``structlog.get_logger`` events into stdlib logging."""

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            _rename_reserved_keys,
            structlog.stdlib.render_to_log_kwargs,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def setup_logging(config: LoggingConfig | None = None) -> LoggingHandle:
    """Install JSON-lines handlers on the package logger and bridge structlog into them.

    Any handle from an earlier call is shut down first, so repeated setup never
    duplicates output.
    """

    global _active
    config = config if config is not None else LoggingConfig()
    level = _resolve_level(config.level)
    name = config.logger_name.strip() if isinstance(config.logger_name, str) else ""
    if not name:
        raise ValueError("logger_name must not be empty")

    shutdown_logging()

    handlers: list[logging.Handler] = []
    log_path = Path(config.log_file) if config.log_file is not None else None
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        if config.rotating_file:
            handlers.append(
                logging.handlers.RotatingFileHandler(
                    log_path,
                    maxBytes=max(1, config.max_bytes),
                    backupCount=max(1, config.backup_count),
                    encoding="utf-8",
                )
            )
        else:
            handlers.append(logging.FileHandler(log_path, encoding="utf-8"))
    if config.log_to_stderr:
        handlers.append(logging.StreamHandler(sys.stderr))

    formatter = _JsonLineFormatter(default_log_redactor if config.redact else _passthrough)
    logger = logging.getLogger(name)
    for stale in list(logger.handlers):
        logger.removeHandler(stale)
        stale.close()
    logger.setLevel(level)
    logger.propagate = False
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    configure_structlog()

    handle = LoggingHandle(logger=logger, log_path=log_path, handlers=tuple(handlers))
    with _registry_lock:
        _active = handle
    return handle


def shutdown_logging(handle: LoggingHandle | None = None) -> None:
    """Close ``handle`` (default: the active one) and reset structlog."""

    global _active
    with _registry_lock:
        target = handle if handle is not None else _active
        if target is None:
            return
        if target is _active:
            _active = None
    target.shutdown()


def get_active_logging_handle() -> LoggingHandle | None:
    with _registry_lock:
        return _active


def default_log_redactor(value: JSONValue) -> JSONValue:
    """Mask secret-looking keys and inline credentials at any depth."""

    if isinstance(value, str):
        return redact_text(value)
    return redact_structure(value)  # type: ignore[return-value]


def _passthrough(value: JSONValue) -> JSONValue:
    return value


def _utc_timestamp(epoch: float) -> str:
    created = datetime.fromtimestamp(epoch, tz=UTC)
    return created.strftime("%Y-%m-%dT%H:%M:%S.") + f"{created.microsecond // 1000:03d}Z"


def _resolve_level(value: int | str) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        resolved = logging.getLevelNamesMapping().get(value.strip().upper())
        if resolved is not None:
            return resolved
    raise ValueError(f"unsupported logging level {value!r}")


def _jsonable(value: object) -> JSONValue:
    if value is None or isinstance(value, (str, bool, int)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else str(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, Mapping):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if isinstance(value, (set, frozenset)):
        return sorted((_jsonable(item) for item in value), key=repr)
    return str(value)


__all__ = [
    "JSONValue",
    "LogRedactor",
    "LoggingConfig",
    "LoggingHandle",
    "configure_structlog",
    "default_log_redactor",
    "get_active_logging_handle",
    "setup_logging",
    "shutdown_logging",
]
