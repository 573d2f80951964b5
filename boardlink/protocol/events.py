"""Typed firmware events decoded by a :class:`ProtocolClient`.

Events are plain msgspec structs tagged by kind so that they can be logged,
queued and dispatched without ambient listener wiring.
"""

from __future__ import annotations

import msgspec


class ProtocolEvent(msgspec.Struct, frozen=True, tag_field="kind"):
    """Base class for every decoded firmware event."""


class Ready(ProtocolEvent, frozen=True, tag="ready"):
    """Firmware finished its start-up exchange and accepts commands."""


class VersionReport(ProtocolEvent, frozen=True, tag="version"):
    major: int
    minor: int


class DigitalValue(ProtocolEvent, frozen=True, tag="digital"):
    """Value of a digital pin, addressed by protocol pin index."""

    pin: int
    value: int


class AnalogValue(ProtocolEvent, frozen=True, tag="analog"):
    """Value of an analog input, addressed by ADC channel."""

    channel: int
    value: int


class OneWireSearchReply(ProtocolEvent, frozen=True, tag="onewire_search"):
    pin: int
    devices: tuple[bytes, ...] = ()


class OneWireReadReply(ProtocolEvent, frozen=True, tag="onewire_read"):
    pin: int
    data: bytes = b""


__all__ = [
    "AnalogValue",
    "DigitalValue",
    "OneWireReadReply",
    "OneWireSearchReply",
    "ProtocolEvent",
    "Ready",
    "VersionReport",
]
