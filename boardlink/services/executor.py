"""Serialized pin and bus operations with bounded completion time."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Callable, Sequence
from enum import StrEnum
from typing import Any

import msgspec

from ..config.board import BoardProfile
from ..config.settings import RuntimeConfig
from ..const import (
    PWM_MAX,
    PWM_MIN,
    SERVO_MAX_DEGREES,
    SERVO_MAX_PULSE_US,
    SERVO_MIN_DEGREES,
    SERVO_MIN_PULSE_US,
)
from ..errors import NotReady
from ..protocol.client import PinModeCode, ProtocolClient
from ..protocol.events import (
    AnalogValue,
    DigitalValue,
    OneWireReadReply,
    OneWireSearchReply,
    ProtocolEvent,
)
from ..protocol.pins import analog_channel
from ..transport.base import Transport
from ..util import clamp
from .supervisor import ConnectionSupervisor

FrameBuilder = Callable[[ProtocolClient], Sequence[bytes]]


class PinMode(StrEnum):
    INPUT = "INPUT"
    OUTPUT = "OUTPUT"
    INPUT_PULLUP = "INPUT_PULLUP"
    ANALOG = "ANALOG"
    PWM = "PWM"
    SERVO = "SERVO"
    I2C = "I2C"
    ONEWIRE = "ONEWIRE"


_MODE_CODES: dict[PinMode, PinModeCode] = {
    PinMode.INPUT: PinModeCode.INPUT,
    PinMode.OUTPUT: PinModeCode.OUTPUT,
    PinMode.INPUT_PULLUP: PinModeCode.PULLUP,
    PinMode.ANALOG: PinModeCode.ANALOG,
    PinMode.PWM: PinModeCode.PWM,
    PinMode.SERVO: PinModeCode.SERVO,
    PinMode.I2C: PinModeCode.I2C,
    PinMode.ONEWIRE: PinModeCode.ONEWIRE,
}

LEVEL_HIGH = "HIGH"


def parse_level(level: str | int | bool) -> int:
    if isinstance(level, str):
        return 1 if level.strip().upper() == LEVEL_HIGH else 0
    return 1 if level else 0


class OperationKind(StrEnum):
    WRITE_SETTLE = "write_settle"
    READ_RESPONSE = "read_response"


class PendingOperation(msgspec.Struct):
    """Book-keeping for the single operation in flight."""

    kind: OperationKind
    name: str
    started: float
    pin: int | None = None
    expects: type[ProtocolEvent] | None = None
    completion: asyncio.Future[Any] | None = None

    def matches(self, event: ProtocolEvent) -> bool:
        if self.expects is None or not isinstance(event, self.expects):
            return False
        return _event_pin(event) == self.pin

    def resolve(self, value: Any) -> bool:
        """Deliver the response. False when an outcome was already delivered."""
        if self.completion is None or self.completion.done():
            return False
        self.completion.set_result(value)
        return True

    def expire(self) -> bool:
        return self.resolve(None)


def _event_pin(event: ProtocolEvent) -> int | None:
    if isinstance(event, AnalogValue):
        return event.channel
    if isinstance(event, (DigitalValue, OneWireSearchReply, OneWireReadReply)):
        return event.pin
    return None


def _event_value(event: ProtocolEvent) -> Any:
    if isinstance(event, (DigitalValue, AnalogValue)):
        return event.value
    if isinstance(event, OneWireSearchReply):
        return tuple(bytes(device) for device in event.devices)
    if isinstance(event, OneWireReadReply):
        return bytes(event.data)
    return None


class CommandExecutor:
    """Runs pin operations one at a time against a ready session.

    Writes are fire-and-forget on the wire and complete after the settle
    delay. Reads complete with the firmware response or with ``None`` once
    the read timeout expires, whichever happens first.
    """

    def __init__(
        self,
        *,
        supervisor: ConnectionSupervisor,
        transport: Transport,
        profile: BoardProfile,
        config: RuntimeConfig,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self._supervisor = supervisor
        self._transport = transport
        self._profile = profile
        self._config = config
        self._logger = logger or logging.getLogger("boardlink.executor")
        self._condition = asyncio.Condition()
        self._current: PendingOperation | None = None

    @property
    def current(self) -> PendingOperation | None:
        return self._current

    def _is_idle(self) -> bool:
        return self._current is None

    def require_ready(self, operation: str) -> ProtocolClient:
        client = self._supervisor.client
        if not self._supervisor.is_ready() or client is None:
            raise NotReady(operation, self._supervisor.fsm_state)
        return client

    @contextlib.asynccontextmanager
    async def _exclusive(self, pending: PendingOperation) -> AsyncIterator[PendingOperation]:
        async with self._condition:
            await self._condition.wait_for(self._is_idle)
            self._current = pending
        try:
            yield pending
        finally:
            async with self._condition:
                if self._current is pending:
                    self._current = None
                    self._condition.notify_all()

    async def _write(self, operation: str, build: FrameBuilder) -> None:
        self.require_ready(operation)
        loop = asyncio.get_running_loop()
        pending = PendingOperation(kind=OperationKind.WRITE_SETTLE, name=operation, started=loop.time())
        async with self._exclusive(pending):
            client = self.require_ready(operation)
            pending.completion = loop.create_future()
            for frame in build(client):
                await self._transport.write(frame)
            await asyncio.sleep(self._config.write_settle)
            pending.resolve(None)

    async def _read(
        self,
        operation: str,
        *,
        pin: int,
        expects: type[ProtocolEvent],
        build: FrameBuilder,
        extra_timeout: float = 0.0,
    ) -> Any | None:
        self.require_ready(operation)
        loop = asyncio.get_running_loop()
        pending = PendingOperation(
            kind=OperationKind.READ_RESPONSE,
            name=operation,
            started=loop.time(),
            pin=pin,
            expects=expects,
        )
        async with self._exclusive(pending):
            client = self.require_ready(operation)
            completion: asyncio.Future[Any] = loop.create_future()
            pending.completion = completion
            for frame in build(client):
                await self._transport.write(frame)
            timeout = self._config.read_timeout + extra_timeout
            try:
                async with asyncio.timeout(timeout):
                    return await completion
            except TimeoutError:
                pending.expire()
                self._logger.warning(
                    "%s on pin %s got no response within %.2fs",
                    operation,
                    pin,
                    timeout,
                )
                return None

    def on_event(self, event: ProtocolEvent) -> bool:
        """Resolve the in-flight read if ``event`` answers it."""
        pending = self._current
        if pending is None or not pending.matches(event):
            return False
        return pending.resolve(_event_value(event))

    def cancel_pending(self) -> None:
        pending = self._current
        if pending is not None and pending.expire():
            self._logger.debug("Abandoning pending %s due to session reset", pending.name)

    # ------------------------------------------------------------------
    # Pin operations
    # ------------------------------------------------------------------
    async def set_pin_mode(self, pin: str, mode: PinMode | str) -> None:
        index = self._profile.pin_index(pin)
        code = _MODE_CODES[PinMode(mode)]
        await self._write("set_pin_mode", lambda c: [c.pin_mode(index, code)])

    async def set_digital_output(self, pin: str, level: str | int | bool) -> None:
        index = self._profile.pin_index(pin)
        value = parse_level(level)
        await self._write("set_digital_output", lambda c: [c.digital_write(index, value)])

    async def set_pwm_output(self, pin: str, value: float) -> None:
        index = self._profile.pin_index(pin)
        duty = clamp(value, PWM_MIN, PWM_MAX)
        await self._write(
            "set_pwm_output",
            lambda c: [c.pin_mode(index, PinModeCode.PWM), c.pwm_write(index, duty)],
        )

    async def set_servo_output(self, pin: str, degrees: float) -> None:
        index = self._profile.pin_index(pin)
        angle = clamp(degrees, SERVO_MIN_DEGREES, SERVO_MAX_DEGREES)
        await self._write(
            "set_servo_output",
            lambda c: [
                c.pin_mode(index, PinModeCode.SERVO),
                c.servo_config(index, SERVO_MIN_PULSE_US, SERVO_MAX_PULSE_US),
                c.servo_write(index, angle),
            ],
        )

    async def set_tone_output(self, pin: str, frequency: float) -> None:
        index = self._profile.pin_index(pin)
        hertz = max(0, int(frequency))
        await self._write("set_tone_output", lambda c: [c.buzzer_tone(index, hertz)])

    async def stop_tone_output(self, pin: str) -> None:
        index = self._profile.pin_index(pin)
        await self._write("stop_tone_output", lambda c: [c.buzzer_no_tone(index)])

    async def read_digital_pin(self, pin: str) -> int | None:
        index = self._profile.pin_index(pin)
        return await self._read(
            "read_digital_pin",
            pin=index,
            expects=DigitalValue,
            build=lambda c: [c.digital_read(index)],
        )

    async def read_analog_pin(self, pin: str) -> int | None:
        index = self._profile.pin_index(pin)
        channel = analog_channel(index)
        return await self._read(
            "read_analog_pin",
            pin=channel,
            expects=AnalogValue,
            build=lambda c: [c.pin_mode(index, PinModeCode.ANALOG), c.analog_read(channel)],
        )

    # ------------------------------------------------------------------
    # Single-wire bus primitives
    # ------------------------------------------------------------------
    async def bus_configure(self, pin: str, *, parasitic_power: bool = False) -> None:
        index = self._profile.pin_index(pin)
        await self._write("bus_configure", lambda c: [c.onewire_config(index, parasitic_power)])

    async def bus_search(self, pin: str) -> tuple[bytes, ...] | None:
        index = self._profile.pin_index(pin)
        return await self._read(
            "bus_search",
            pin=index,
            expects=OneWireSearchReply,
            build=lambda c: [c.onewire_search(index)],
        )

    async def bus_convert(self, pin: str, device: bytes, command: int, delay_ms: int) -> None:
        """Reset, select ``device``, send ``command`` then queue a firmware delay."""
        index = self._profile.pin_index(pin)
        await self._write(
            "bus_convert",
            lambda c: [
                c.onewire_reset(index),
                c.onewire_write(index, device, command),
                c.onewire_delay(index, delay_ms),
            ],
        )

    async def bus_read(
        self,
        pin: str,
        device: bytes,
        command: int,
        count: int,
        *,
        pending_delay: float = 0.0,
    ) -> bytes | None:
        index = self._profile.pin_index(pin)
        return await self._read(
            "bus_read",
            pin=index,
            expects=OneWireReadReply,
            build=lambda c: [c.onewire_reset(index), c.onewire_write_and_read(index, device, command, count)],
            extra_timeout=pending_delay,
        )


__all__ = [
    "CommandExecutor",
    "OperationKind",
    "PendingOperation",
    "PinMode",
    "parse_level",
]
