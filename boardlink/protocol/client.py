"""Interface of the external firmware protocol codec.

The codec is sans-IO: every command method returns the encoded bytes and
the session decides when to put them on the wire. Incoming bytes are fed
back in and come out as typed :mod:`~boardlink.protocol.events`.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from enum import IntEnum
from typing import Protocol

from .events import ProtocolEvent


class PinModeCode(IntEnum):
    """Firmware pin mode numbers."""

    INPUT = 0x00
    OUTPUT = 0x01
    ANALOG = 0x02
    PWM = 0x03
    SERVO = 0x04
    I2C = 0x06
    ONEWIRE = 0x07
    PULLUP = 0x0B


class ProtocolClient(Protocol):
    def feed(self, data: bytes) -> Iterable[ProtocolEvent]: ...

    def report_version(self) -> bytes: ...

    def pin_mode(self, pin: int, mode: PinModeCode) -> bytes: ...

    def digital_write(self, pin: int, level: int) -> bytes: ...

    def digital_read(self, pin: int) -> bytes: ...

    def analog_read(self, channel: int) -> bytes: ...

    def pwm_write(self, pin: int, value: int) -> bytes: ...

    def servo_config(self, pin: int, min_pulse: int, max_pulse: int) -> bytes: ...

    def servo_write(self, pin: int, degrees: int) -> bytes: ...

    def buzzer_tone(self, pin: int, frequency: int) -> bytes: ...

    def buzzer_no_tone(self, pin: int) -> bytes: ...

    def report_digital_pin(self, pin: int, enable: bool) -> bytes: ...

    def report_analog_pin(self, channel: int, enable: bool) -> bytes: ...

    def onewire_config(self, pin: int, parasitic_power: bool) -> bytes: ...

    def onewire_search(self, pin: int) -> bytes: ...

    def onewire_reset(self, pin: int) -> bytes: ...

    def onewire_write(self, pin: int, device: bytes, data: int) -> bytes: ...

    def onewire_delay(self, pin: int, delay_ms: int) -> bytes: ...

    def onewire_write_and_read(self, pin: int, device: bytes, data: int, count: int) -> bytes: ...


ClientFactory = Callable[[], ProtocolClient]


__all__ = ["ClientFactory", "PinModeCode", "ProtocolClient"]
