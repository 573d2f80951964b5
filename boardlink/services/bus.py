"""Single-wire bus discovery and temperature sensor readout."""

from __future__ import annotations

import logging

from ..config.board import BoardProfile
from ..config.settings import RuntimeConfig
from ..const import (
    ONEWIRE_ADDRESS_LENGTH,
    ONEWIRE_CMD_CONVERT_T,
    ONEWIRE_CMD_READ_SCRATCHPAD,
    ONEWIRE_FAMILY_DS18B20,
    ONEWIRE_SCRATCHPAD_LENGTH,
)
from ..errors import DeviceNotFound
from ..protocol.structures import decode_temperature, family_code
from ..util import log_hexdump
from .executor import CommandExecutor

logger = logging.getLogger("boardlink.bus")


class BusDeviceRegistry:
    """Caches ROM addresses per bus pin; each scan replaces the pin entry."""

    def __init__(self, *, executor: CommandExecutor, profile: BoardProfile, config: RuntimeConfig) -> None:
        self._executor = executor
        self._profile = profile
        self._config = config
        self._devices: dict[int, tuple[bytes, ...]] = {}

    async def scan(self, pin: str) -> tuple[bytes, ...]:
        index = self._profile.pin_index(pin)
        await self._executor.bus_configure(pin)
        found = await self._executor.bus_search(pin)
        if found is None:
            logger.warning("Bus search on pin %s timed out", pin)
            found = ()
        devices = []
        for address in found:
            if len(address) != ONEWIRE_ADDRESS_LENGTH:
                log_hexdump(logger, logging.WARNING, "Malformed ROM address", address)
                continue
            devices.append(address)
        self._devices[index] = tuple(devices)
        logger.info("Found %d bus device(s) on pin %s", len(devices), pin)
        return self._devices[index]

    def devices(self, pin: str, family: int | None = None) -> tuple[bytes, ...]:
        cached = self._devices.get(self._profile.pin_index(pin), ())
        if family is None:
            return cached
        return tuple(address for address in cached if family_code(address) == family)

    def clear(self) -> None:
        self._devices.clear()

    async def read_temperature(self, pin: str, device_index: int = 0) -> float | None:
        """Convert and read one DS18B20; ``None`` when the bus never answers."""
        self._executor.require_ready("read_temperature")
        sensors = self.devices(pin, ONEWIRE_FAMILY_DS18B20)
        if not 0 <= device_index < len(sensors):
            raise DeviceNotFound(pin, device_index)
        device = sensors[device_index]

        delay_ms = self._config.bus_conversion_delay_ms
        await self._executor.bus_convert(pin, device, ONEWIRE_CMD_CONVERT_T, delay_ms)
        data = await self._executor.bus_read(
            pin,
            device,
            ONEWIRE_CMD_READ_SCRATCHPAD,
            ONEWIRE_SCRATCHPAD_LENGTH,
            pending_delay=delay_ms / 1000.0,
        )
        if data is None:
            return None
        log_hexdump(logger, logging.DEBUG, "Scratchpad", data)
        try:
            return decode_temperature(data)
        except ValueError as exc:
            logger.warning("Undecodable scratchpad from pin %s: %s", pin, exc)
            return None


__all__ = ["BusDeviceRegistry"]
