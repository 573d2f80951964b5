"""Firmware protocol surface consumed by boardlink."""

from .client import ClientFactory, PinModeCode, ProtocolClient
from .events import (
    AnalogValue,
    DigitalValue,
    OneWireReadReply,
    OneWireSearchReply,
    ProtocolEvent,
    Ready,
    VersionReport,
)
from .pins import PinMap, analog_channel, channel_to_index, format_pin, is_analog, parse_pin

__all__ = [
    "AnalogValue",
    "ClientFactory",
    "DigitalValue",
    "OneWireReadReply",
    "OneWireSearchReply",
    "PinMap",
    "PinModeCode",
    "ProtocolClient",
    "ProtocolEvent",
    "Ready",
    "VersionReport",
    "analog_channel",
    "channel_to_index",
    "format_pin",
    "is_analog",
    "parse_pin",
]
