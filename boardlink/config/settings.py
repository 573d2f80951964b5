"""Runtime settings for boardlink sessions.

Settings come from an optional TOML file (``[boardlink]`` table). Missing
files fall back to defaults; out-of-range values are rejected by msgspec
during decoding.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Annotated, Any

import msgspec

from ..const import (
    CONFIG_TABLE,
    DEFAULT_BUS_CONVERSION_DELAY_MS,
    DEFAULT_CONFIG_PATH,
    DEFAULT_DEBUG_LOGGING,
    DEFAULT_HANDSHAKE_TIMEOUT,
    DEFAULT_HEARTBEAT_INTERVAL,
    DEFAULT_HEARTBEAT_TIMEOUT,
    DEFAULT_MONITOR_POLL_INTERVAL,
    DEFAULT_MONITOR_THROTTLE,
    DEFAULT_READ_TIMEOUT,
    DEFAULT_TRANSPORT_CONNECT_ATTEMPTS,
    DEFAULT_WRITE_SETTLE,
)

logger = logging.getLogger(__name__)

Seconds = Annotated[float, msgspec.Meta(gt=0.0, le=60.0)]


class RuntimeConfig(msgspec.Struct, frozen=True, forbid_unknown_fields=True):
    """Strongly typed timing and behaviour settings for one session."""

    handshake_timeout: Seconds = DEFAULT_HANDSHAKE_TIMEOUT
    heartbeat_interval: Seconds = DEFAULT_HEARTBEAT_INTERVAL
    heartbeat_timeout: Seconds = DEFAULT_HEARTBEAT_TIMEOUT
    write_settle: Annotated[float, msgspec.Meta(ge=0.0, le=1.0)] = DEFAULT_WRITE_SETTLE
    read_timeout: Seconds = DEFAULT_READ_TIMEOUT
    monitor_throttle: Annotated[float, msgspec.Meta(ge=0.0, le=10.0)] = DEFAULT_MONITOR_THROTTLE
    monitor_poll_interval: Seconds = DEFAULT_MONITOR_POLL_INTERVAL
    bus_conversion_delay_ms: Annotated[int, msgspec.Meta(ge=0, le=5000)] = DEFAULT_BUS_CONVERSION_DELAY_MS
    transport_connect_attempts: Annotated[int, msgspec.Meta(ge=1, le=20)] = DEFAULT_TRANSPORT_CONNECT_ATTEMPTS
    debug_logging: bool = DEFAULT_DEBUG_LOGGING

    def __post_init__(self) -> None:
        if self.heartbeat_timeout <= self.heartbeat_interval:
            raise ValueError(
                "heartbeat_timeout must be greater than heartbeat_interval "
                f"({self.heartbeat_timeout} <= {self.heartbeat_interval})"
            )


def _read_table(path: Path) -> dict[str, Any]:
    document: Any = msgspec.toml.decode(path.read_bytes())
    if not isinstance(document, dict):
        raise ValueError(f"{path}: expected a TOML table at top level")
    table = document.get(CONFIG_TABLE, {})
    if not isinstance(table, dict):
        raise ValueError(f"{path}: [{CONFIG_TABLE}] must be a table")
    return table


def load_runtime_config(path: str | os.PathLike[str] | None = None) -> RuntimeConfig:
    """Load settings from ``path`` (or the default location).

    A missing file yields defaults. Malformed content raises
    ``msgspec.DecodeError``/``msgspec.ValidationError``.
    """
    candidate = Path(path) if path is not None else Path(DEFAULT_CONFIG_PATH)
    if not candidate.exists():
        if path is not None:
            logger.warning("Config file %s not found; using defaults.", candidate)
        return RuntimeConfig()

    table = _read_table(candidate)
    config = msgspec.convert(table, RuntimeConfig, strict=True)
    logger.debug("Loaded runtime config from %s: %s", candidate, config)
    return config


__all__ = ["RuntimeConfig", "load_runtime_config"]
