"""Logging helpers for boardlink.

Session components log through :class:`SessionLogAdapter`, which stamps
every record with the device id and the current session state. The
structured formatter lifts those two fields to the top level of the JSON
line and renders binary payloads (pump chunks, bus replies) as hex.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable, MutableMapping
from datetime import datetime, timezone
from logging.config import dictConfig
from typing import IO, Any

import msgspec

from .settings import RuntimeConfig

_RESERVED_LOG_KEYS = {
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
    "module",
    "msecs",
    "message",
    "msg",
    "name",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "stack_info",
    "taskName",
    "thread",
    "threadName",
}

# Fields promoted out of "extra" into the top-level JSON object.
_SESSION_KEYS = ("device", "state")


def _serialise_value(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return f"[{bytes(value).hex(' ').upper()}]"
    return str(value)


class SessionLogAdapter(logging.LoggerAdapter):
    """Adds ``device`` and ``state`` to every record of one session."""

    def __init__(
        self,
        logger: logging.Logger,
        device_id: str,
        state: Callable[[], str] | None = None,
    ) -> None:
        super().__init__(logger, {"device": device_id})
        self._state = state

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        extra = dict(self.extra or {})
        if self._state is not None:
            extra["state"] = self._state()
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return msg, kwargs


class StructuredLogFormatter(logging.Formatter):
    """Emit one JSON object per log line, trimming the package prefix."""

    PREFIX = "boardlink."

    def format(self, record: logging.LogRecord) -> str:
        logger_name = record.name
        if logger_name.startswith(self.PREFIX):
            logger_name = logger_name[len(self.PREFIX) :]

        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": logger_name,
            "message": record.getMessage(),
        }
        for key in _SESSION_KEYS:
            if key in record.__dict__:
                payload[key] = _serialise_value(record.__dict__[key])

        extras = {
            key: _serialise_value(value)
            for key, value in record.__dict__.items()
            if key not in _RESERVED_LOG_KEYS and key not in _SESSION_KEYS and not key.startswith("_")
        }
        if extras:
            payload["extra"] = extras

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return msgspec.json.encode(payload).decode("utf-8")


def configure_logging(config: RuntimeConfig, stream: IO[str] | None = None) -> None:
    """Route boardlink records to ``stream`` (stderr by default) as JSON lines."""

    level_name = "DEBUG" if config.debug_logging else "INFO"

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structured": {
                    "()": "boardlink.config.logging.StructuredLogFormatter",
                }
            },
            "handlers": {
                "boardlink": {
                    "class": "logging.StreamHandler",
                    "stream": stream or sys.stderr,
                    "level": level_name,
                    "formatter": "structured",
                }
            },
            "root": {
                "level": level_name,
                "handlers": ["boardlink"],
            },
        }
    )

    logging.getLogger("boardlink").info("Logging configured at level %s", level_name)


__all__ = ["SessionLogAdapter", "StructuredLogFormatter", "configure_logging"]
