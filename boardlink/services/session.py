"""Peripheral session: composition root for one connected board.

A :class:`Session` wires the supervisor, executor, monitor and bus registry
around one transport, runs the message pump that turns transport chunks
into typed events, and exposes the pin operations used by block handlers.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import Any

import msgspec

from ..config.board import BoardProfile
from ..config.logging import SessionLogAdapter
from ..config.settings import RuntimeConfig
from ..drivers import DeviceDriver, DriverBinding
from ..errors import NotReady, TransportLost
from ..host import HostRuntime, ProgramMode
from ..protocol.client import ClientFactory
from ..protocol.events import (
    AnalogValue,
    DigitalValue,
    OneWireReadReply,
    OneWireSearchReply,
    ProtocolEvent,
    Ready,
    VersionReport,
)
from ..transport.base import Transport
from ..util import log_hexdump
from .bus import BusDeviceRegistry
from .executor import CommandExecutor, PinMode
from .monitor import PinMonitor, Snapshot
from .scope import CancellationScope
from .supervisor import ConnectionSupervisor

logger = logging.getLogger("boardlink.session")

EventHandler = Callable[[Any], Any]


class Session:
    """One peripheral instance. Never shared between boards."""

    def __init__(
        self,
        *,
        device_id: str,
        profile: BoardProfile,
        transport: Transport,
        client_factory: ClientFactory,
        host: HostRuntime,
        config: RuntimeConfig | None = None,
        mode: ProgramMode = ProgramMode.REALTIME,
    ) -> None:
        self._device_id = device_id
        self._profile = profile
        self._transport = transport
        self._host = host
        self._config = config or RuntimeConfig()
        self._drivers: dict[str, DriverBinding] = {}
        self._log = SessionLogAdapter(logger, device_id, lambda: self.supervisor.fsm_state)

        self.supervisor = ConnectionSupervisor(
            device_id=device_id,
            transport=transport,
            client_factory=client_factory,
            host=host,
            config=self._config,
            mode=mode,
            on_link_up=self._on_link_up,
        )
        self.executor = CommandExecutor(
            supervisor=self.supervisor,
            transport=transport,
            profile=profile,
            config=self._config,
            logger=SessionLogAdapter(
                logging.getLogger("boardlink.executor"), device_id, lambda: self.supervisor.fsm_state
            ),
        )
        self.monitor = PinMonitor(
            device_id=device_id,
            supervisor=self.supervisor,
            transport=transport,
            profile=profile,
            host=host,
            config=self._config,
            driver_reader=self.read_device,
        )
        self.bus = BusDeviceRegistry(executor=self.executor, profile=profile, config=self._config)

        self._handlers: dict[type[ProtocolEvent], EventHandler] = {}
        self._register_event_handlers()

        host.register_peripheral_extension(device_id, self)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def device_id(self) -> str:
        return self._device_id

    @property
    def profile(self) -> BoardProfile:
        return self._profile

    @property
    def mode(self) -> ProgramMode:
        return self.supervisor.mode

    @property
    def state(self) -> str:
        return self.supervisor.fsm_state

    def is_ready(self) -> bool:
        return self.supervisor.is_ready()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def connect(self, options: Mapping[str, Any] | None = None) -> bool:
        merged: dict[str, Any] = {
            **self._profile.device_options,
            "serial": msgspec.structs.asdict(self._profile.serial),
        }
        merged.update(options or {})
        return await self.supervisor.connect(merged)

    def reset(self) -> None:
        self._drop_session_state()
        self.supervisor.reset()

    async def disconnect(self) -> None:
        self._drop_session_state()
        await self.supervisor.disconnect()

    def _drop_session_state(self) -> None:
        self.executor.cancel_pending()
        self.monitor.clear()
        self.bus.clear()
        for binding in self._drivers.values():
            binding.initialised = False

    def _release_protocol(self) -> None:
        self.executor.cancel_pending()
        self.monitor.clear()
        self.supervisor.release_protocol()

    # ------------------------------------------------------------------
    # Message pump
    # ------------------------------------------------------------------
    def _on_link_up(self, scope: CancellationScope) -> None:
        scope.spawn(self._pump_loop(), name=f"pump:{self._device_id}")

    async def _pump_loop(self) -> None:
        try:
            async for chunk in self._transport.chunks():
                self.handle_chunk(chunk)
        except OSError as exc:
            error = TransportLost(f"{self._device_id}: transport failed: {exc}")
        else:
            error = TransportLost(f"{self._device_id}: transport stream ended")
        self._log.warning("%s", error)
        self.reset()
        self._host.disconnect_error(self._device_id, error)

    def handle_chunk(self, chunk: bytes) -> None:
        client = self.supervisor.client
        if self.supervisor.mode is ProgramMode.UPLOAD or client is None:
            self._host.receive_console(self._device_id, chunk)
            return
        try:
            events = list(client.feed(chunk))
        except (ValueError, msgspec.DecodeError) as exc:
            self._log.warning("Dropping undecodable chunk from %s: %s", self._device_id, exc)
            log_hexdump(self._log, logging.DEBUG, "Dropped", chunk)
            return
        for event in events:
            self.dispatch(event)

    def _register_event_handlers(self) -> None:
        self.register_event_handler(Ready, lambda event: self.supervisor.on_ready())
        self.register_event_handler(VersionReport, lambda event: self.supervisor.on_version_report())
        self.register_event_handler(DigitalValue, self._handle_digital)
        self.register_event_handler(AnalogValue, self._handle_analog)
        self.register_event_handler(OneWireSearchReply, self.executor.on_event)
        self.register_event_handler(OneWireReadReply, self.executor.on_event)

    def register_event_handler(self, event_type: type[ProtocolEvent], handler: EventHandler) -> None:
        self._handlers[event_type] = handler

    def dispatch(self, event: ProtocolEvent) -> None:
        handler = self._handlers.get(type(event))
        if handler is None:
            self._log.debug("Unhandled event from %s: %r", self._device_id, event)
            return
        try:
            handler(event)
        except (OSError, ValueError, TypeError, AttributeError, KeyError, IndexError, RuntimeError):
            self._log.exception("Error handling %s from %s", type(event).__name__, self._device_id)

    def _handle_digital(self, event: DigitalValue) -> None:
        self.executor.on_event(event)
        self.monitor.on_digital(event)

    def _handle_analog(self, event: AnalogValue) -> None:
        self.executor.on_event(event)
        self.monitor.on_analog(event)

    # ------------------------------------------------------------------
    # Host events
    # ------------------------------------------------------------------
    def handle_program_mode(self, mode: ProgramMode | str) -> None:
        mode = ProgramMode(mode)
        if mode is self.supervisor.mode:
            return
        self._log.info("Program mode for %s -> %s", self._device_id, mode)
        if mode is ProgramMode.UPLOAD:
            self.executor.cancel_pending()
            self.monitor.clear()
        self.supervisor.set_mode(mode)

    def handle_upload_success(self) -> None:
        if self.supervisor.mode is ProgramMode.REALTIME:
            self.supervisor.restart_handshake()

    # ------------------------------------------------------------------
    # Program and firmware upload
    # ------------------------------------------------------------------
    async def upload(self, code: bytes | str) -> None:
        payload = code.encode("utf-8") if isinstance(code, str) else bytes(code)
        self._release_protocol()
        await self._transport.upload(payload, self._profile.device_options)

    async def upload_firmware(self) -> None:
        self._release_protocol()
        await self._transport.upload_firmware(self._profile.device_options)

    async def abort_upload(self) -> None:
        await self._transport.abort_upload()

    # ------------------------------------------------------------------
    # Device drivers
    # ------------------------------------------------------------------
    def attach_driver(self, key: str, driver: DeviceDriver, target: str | None = None) -> DriverBinding:
        binding = DriverBinding(key=key, driver=driver, target=target or self._profile.pins.get(key, key))
        self._drivers[key] = binding
        if self.is_ready():
            binding.ensure_initialised()
        return binding

    def _driver(self, key: str, operation: str) -> DriverBinding:
        if not self.is_ready():
            raise NotReady(operation, self.state)
        try:
            binding = self._drivers[key]
        except KeyError:
            raise KeyError(f"no driver attached for {key!r}") from None
        binding.ensure_initialised()
        return binding

    async def read_device(self, key: str) -> Any | None:
        binding = self._driver(key, "read_device")
        try:
            async with asyncio.timeout(self._config.read_timeout):
                return await binding.driver.read()
        except TimeoutError:
            self._log.warning(
                "Driver %s on %s did not answer within %.2fs",
                key,
                self._device_id,
                self._config.read_timeout,
            )
            return None

    async def write_device(self, key: str, value: Any) -> None:
        binding = self._driver(key, "write_device")
        await binding.driver.write(value)
        await asyncio.sleep(self._config.write_settle)

    # ------------------------------------------------------------------
    # Pin operations
    # ------------------------------------------------------------------
    async def set_pin_mode(self, pin: str, mode: PinMode | str) -> None:
        mode = PinMode(mode)
        await self.executor.set_pin_mode(pin, mode)
        if mode is PinMode.ONEWIRE:
            await self.bus.scan(pin)

    async def set_digital_output(self, pin: str, level: str | int | bool) -> None:
        await self.executor.set_digital_output(pin, level)

    async def set_pwm_output(self, pin: str, value: float) -> None:
        await self.executor.set_pwm_output(pin, value)

    async def set_servo_output(self, pin: str, degrees: float) -> None:
        await self.executor.set_servo_output(pin, degrees)

    async def set_tone_output(self, pin: str, frequency: float) -> None:
        await self.executor.set_tone_output(pin, frequency)

    async def stop_tone_output(self, pin: str) -> None:
        await self.executor.stop_tone_output(pin)

    async def read_digital_pin(self, pin: str) -> int | None:
        return await self.executor.read_digital_pin(pin)

    async def read_analog_pin(self, pin: str) -> int | None:
        return await self.executor.read_analog_pin(pin)

    # ------------------------------------------------------------------
    # Monitoring and bus
    # ------------------------------------------------------------------
    async def enable_monitoring(self) -> Snapshot:
        return await self.monitor.enable_monitoring()

    async def disable_monitoring(self) -> None:
        await self.monitor.disable_monitoring()

    async def scan_bus(self, pin: str) -> tuple[bytes, ...]:
        return await self.bus.scan(pin)

    def bus_devices(self, pin: str, family: int | None = None) -> tuple[bytes, ...]:
        return self.bus.devices(pin, family)

    async def read_temperature(self, pin: str, device_index: int = 0) -> float | None:
        return await self.bus.read_temperature(pin, device_index)


__all__ = ["Session"]
