"""Throttled monitoring of board pins and attached drivers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import msgspec

from ..config.board import BoardProfile, MonitorSpec
from ..config.settings import RuntimeConfig
from ..errors import NotReady
from ..host import HostRuntime
from ..protocol.client import ProtocolClient
from ..protocol.events import AnalogValue, DigitalValue
from ..protocol.pins import analog_channel, channel_to_index, is_analog
from ..transport.base import Transport
from .supervisor import ConnectionSupervisor

logger = logging.getLogger("boardlink.monitor")

DriverReader = Callable[[str], Awaitable[Any]]
Snapshot = dict[str, dict[str, Any]]


class MonitorSubscription(msgspec.Struct):
    label: str
    value: Any = 0
    last_emit: float | None = None

    def as_dict(self) -> dict[str, Any]:
        return {"value": self.value, "label": self.label}


class PinMonitor:
    """Streams monitored values to the host, at most once per key per window."""

    def __init__(
        self,
        *,
        device_id: str,
        supervisor: ConnectionSupervisor,
        transport: Transport,
        profile: BoardProfile,
        host: HostRuntime,
        config: RuntimeConfig,
        driver_reader: DriverReader | None = None,
    ) -> None:
        self._device_id = device_id
        self._supervisor = supervisor
        self._transport = transport
        self._profile = profile
        self._host = host
        self._config = config
        self._driver_reader = driver_reader
        self._subscriptions: dict[str, MonitorSubscription] = {}
        self._pollers: dict[str, asyncio.Task[None]] = {}

    @property
    def active(self) -> bool:
        return bool(self._subscriptions)

    def snapshot(self) -> Snapshot:
        return {key: sub.as_dict() for key, sub in self._subscriptions.items()}

    async def enable_monitoring(self) -> Snapshot:
        client = self._supervisor.client
        if not self._supervisor.is_ready() or client is None:
            raise NotReady("enable_monitoring", self._supervisor.fsm_state)
        if self._subscriptions:
            await self.disable_monitoring()

        for spec in self._profile.monitored:
            self._subscriptions[spec.key] = MonitorSubscription(label=spec.display_label)
            if spec.source == "driver":
                self._start_poller(spec)
            else:
                await self._transport.write(self._report_frame(client, spec, enable=True))

        logger.info("Monitoring %d keys on %s", len(self._subscriptions), self._device_id)
        return self.snapshot()

    async def disable_monitoring(self) -> None:
        for task in self._pollers.values():
            task.cancel()
        self._pollers.clear()

        client = self._supervisor.client
        if client is not None and self._transport.is_connected():
            for spec in self._profile.monitored:
                if spec.source != "pin" or spec.key not in self._subscriptions:
                    continue
                try:
                    await self._transport.write(self._report_frame(client, spec, enable=False))
                except OSError as exc:
                    logger.warning("Could not stop reporting %s on %s: %s", spec.key, self._device_id, exc)
                    break
        self._subscriptions.clear()

    def clear(self) -> None:
        """Drop subscriptions without talking to the board (session reset)."""
        for task in self._pollers.values():
            task.cancel()
        self._pollers.clear()
        self._subscriptions.clear()

    def _report_frame(self, client: ProtocolClient, spec: MonitorSpec, *, enable: bool) -> bytes:
        pin = self._profile.pins[spec.key]
        index = self._profile.pin_index(spec.key)
        if is_analog(pin):
            return client.report_analog_pin(analog_channel(index), enable)
        return client.report_digital_pin(index, enable)

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------
    def on_digital(self, event: DigitalValue) -> bool:
        key = self._profile.key_for_index(event.pin)
        return key is not None and self.update(key, event.value)

    def on_analog(self, event: AnalogValue) -> bool:
        key = self._profile.key_for_index(channel_to_index(event.channel))
        return key is not None and self.update(key, event.value)

    def update(self, key: str, value: Any) -> bool:
        """Record ``value`` and push a snapshot unless the key is throttled."""
        subscription = self._subscriptions.get(key)
        if subscription is None:
            return False
        now = asyncio.get_running_loop().time()
        if subscription.last_emit is not None and now - subscription.last_emit < self._config.monitor_throttle:
            return False
        subscription.last_emit = now
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = self._profile.remap_value(key, value)
        subscription.value = value
        self._host.update_monitor(self._device_id, self.snapshot())
        return True

    # ------------------------------------------------------------------
    # Driver polling
    # ------------------------------------------------------------------
    def _start_poller(self, spec: MonitorSpec) -> None:
        scope = self._supervisor.scope
        if self._driver_reader is None or scope is None or scope.released:
            logger.warning("No driver reader for monitored key %s; skipping", spec.key)
            return
        self._pollers[spec.key] = scope.spawn(
            self._poll(spec.key), name=f"monitor:{self._device_id}:{spec.key}"
        )

    async def _poll(self, key: str) -> None:
        assert self._driver_reader is not None
        interval = self._config.monitor_poll_interval
        while key in self._subscriptions:
            if self._supervisor.is_ready():
                try:
                    value = await self._driver_reader(key)
                except NotReady:
                    value = None
                except KeyError:
                    logger.warning("No driver attached for monitored key %s; polling stopped", key)
                    return
                if value is not None:
                    self.update(key, value)
            await asyncio.sleep(interval)


__all__ = ["MonitorSubscription", "PinMonitor"]
