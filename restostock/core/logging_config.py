"""Logging setup for the stock service.

Loggers live under the ``restostock`` namespace. Call sites pass structured
fields through ``extra``; the JSON formatter folds them into the line.
"""
import json
import logging
import sys
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

_LOGGER_PREFIX = "restostock"

_STDLIB_KEYS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}

_handler: logging.Handler | None = None


def _default(obj: Any) -> Any:
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    return repr(obj)


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, val in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = val
        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            code = getattr(exc, "code", None)
            if code is not None:
                payload["exc_code"] = code
            payload["traceback"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=_default)


class _TextFormatter(logging.Formatter):
    """Plain text, with any ``extra`` fields appended as key=value."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = [
            f"{key}={val}"
            for key, val in vars(record).items()
            if key not in _STDLIB_KEYS
        ]
        if extras:
            line = f"{line} [{' '.join(extras)}]"
        return line


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


def _formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return JSONFormatter()
    return _TextFormatter("%(asctime)s %(levelname)s %(name)s: %(message)s")


def configure_logging(level: str | int = "INFO", json_format: bool = False) -> None:
    """Attach a single stderr handler to the package logger.

    Later calls reuse that handler and only change the level and format.
    """
    global _handler

    root = logging.getLogger(_LOGGER_PREFIX)
    root.setLevel(level.upper() if isinstance(level, str) else level)
    if _handler is None:
        _handler = logging.StreamHandler(sys.stderr)
        root.addHandler(_handler)
    _handler.setFormatter(_formatter(json_format))


def reset_logging() -> None:
    global _handler

    root = logging.getLogger(_LOGGER_PREFIX)
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(logging.NOTSET)
    _handler = None
