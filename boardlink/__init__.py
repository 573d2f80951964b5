"""Board peripheral communication layer."""

__version__ = "1.0.0"

import logging

from .config.board import BoardProfile, MonitorSpec, arduino_uno_profile, robo_pro_station_profile
from .config.settings import RuntimeConfig, load_runtime_config
from .errors import (
    BoardLinkError,
    ConnectTimeout,
    DeviceNotFound,
    HeartbeatLost,
    NotReady,
    TransportLost,
)
from .host import HostRuntime, ProgramMode
from .services.session import Session

logger = logging.getLogger(__name__)

__all__ = [
    "BoardLinkError",
    "BoardProfile",
    "ConnectTimeout",
    "DeviceNotFound",
    "HeartbeatLost",
    "HostRuntime",
    "MonitorSpec",
    "NotReady",
    "ProgramMode",
    "RuntimeConfig",
    "Session",
    "TransportLost",
    "arduino_uno_profile",
    "load_runtime_config",
    "robo_pro_station_profile",
]
