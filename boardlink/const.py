"""Timing defaults and protocol constants shared across boardlink."""

from __future__ import annotations

from typing import Final

# Liveness supervision (seconds).
DEFAULT_HANDSHAKE_TIMEOUT: Final[float] = 6.5
DEFAULT_HEARTBEAT_INTERVAL: Final[float] = 1.0
DEFAULT_HEARTBEAT_TIMEOUT: Final[float] = 2.2

# Command execution (seconds).
DEFAULT_WRITE_SETTLE: Final[float] = 0.02
DEFAULT_READ_TIMEOUT: Final[float] = 2.0

# Monitoring (seconds).
DEFAULT_MONITOR_THROTTLE: Final[float] = 0.25
DEFAULT_MONITOR_POLL_INTERVAL: Final[float] = 0.1

# Transport connect retry.
DEFAULT_TRANSPORT_CONNECT_ATTEMPTS: Final[int] = 3
TRANSPORT_CONNECT_BACKOFF_BASE: Final[float] = 0.2
TRANSPORT_CONNECT_BACKOFF_MAX: Final[float] = 2.0

DEFAULT_DEBUG_LOGGING: Final[bool] = False

# Pin addressing: analog identifiers occupy indices above the digital bank.
ANALOG_PIN_OFFSET: Final[int] = 14
ANALOG_PIN_PREFIX: Final[str] = "A"

PWM_MIN: Final[int] = 0
PWM_MAX: Final[int] = 255
SERVO_MIN_DEGREES: Final[int] = 0
SERVO_MAX_DEGREES: Final[int] = 180
SERVO_MIN_PULSE_US: Final[int] = 600
SERVO_MAX_PULSE_US: Final[int] = 2400

# Single-wire bus (DS18B20 family).
ONEWIRE_ADDRESS_LENGTH: Final[int] = 8
ONEWIRE_FAMILY_DS18B20: Final[int] = 0x28
ONEWIRE_CMD_CONVERT_T: Final[int] = 0x44
ONEWIRE_CMD_READ_SCRATCHPAD: Final[int] = 0xBE
ONEWIRE_SCRATCHPAD_LENGTH: Final[int] = 9
DEFAULT_BUS_CONVERSION_DELAY_MS: Final[int] = 1000

DEFAULT_CONFIG_PATH: Final[str] = "/etc/boardlink/boardlink.toml"
CONFIG_TABLE: Final[str] = "boardlink"
