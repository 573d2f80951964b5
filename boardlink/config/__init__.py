"""Configuration helpers for boardlink."""

from . import logging, settings  # noqa: F401  # pyright: ignore[reportUnusedImport]
from .board import BoardProfile, MonitorSpec, SerialOptions, arduino_uno_profile, robo_pro_station_profile
from .settings import RuntimeConfig, load_runtime_config

__all__ = [
    "BoardProfile",
    "MonitorSpec",
    "RuntimeConfig",
    "SerialOptions",
    "arduino_uno_profile",
    "load_runtime_config",
    "robo_pro_station_profile",
]
