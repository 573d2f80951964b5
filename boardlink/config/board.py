"""Board capability descriptors.

A :class:`BoardProfile` parameterises a generic session with everything
that differs between boards: the pin table, which keys are monitored, the
serial/device options used by the transport and an optional value
re-mapping function for monitored sensors.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

import msgspec

from ..protocol.pins import PinMap

ValueRemapper = Callable[[str, float], float]
MonitorSource = Literal["pin", "driver"]


def identity_remap(pin: str, value: float) -> float:
    return value


class SerialOptions(msgspec.Struct, frozen=True):
    baud_rate: int = 57600
    data_bits: int = 8
    stop_bits: int = 1


class MonitorSpec(msgspec.Struct, frozen=True):
    """One monitored key.

    ``source="pin"`` keys must appear in the profile pin table and are
    streamed by the firmware; ``source="driver"`` keys are polled through an
    attached device driver.
    """

    key: str
    label: str | None = None
    source: MonitorSource = "pin"

    @property
    def display_label(self) -> str:
        return self.label or self.key


@dataclass(slots=True)
class BoardProfile:
    name: str
    pins: Mapping[str, str]
    monitored: tuple[MonitorSpec, ...] = ()
    serial: SerialOptions = field(default_factory=SerialOptions)
    device_options: Mapping[str, Any] = field(default_factory=dict)
    remap: ValueRemapper = identity_remap
    pin_map: PinMap = field(init=False)
    _key_by_index: dict[int, str] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.pin_map = PinMap(self.pins.values())
        self._key_by_index = {self.pin_map[pin]: key for key, pin in self.pins.items()}
        seen: set[str] = set()
        for spec in self.monitored:
            if spec.key in seen:
                raise ValueError(f"{self.name}: monitored key {spec.key!r} listed twice")
            seen.add(spec.key)
            if spec.source == "pin" and spec.key not in self.pins:
                raise ValueError(f"{self.name}: monitored key {spec.key!r} missing from pin table")

    def resolve_pin(self, pin_or_key: str) -> str:
        """Accept either a table key (``"D8"``) or a pin id (``"8"``)."""
        if pin_or_key in self.pins:
            return self.pins[pin_or_key]
        # Raises KeyError for pins the board does not have.
        self.pin_map.index(pin_or_key)
        return pin_or_key.strip().upper()

    def pin_index(self, pin_or_key: str) -> int:
        return self.pin_map.index(self.resolve_pin(pin_or_key))

    def key_for_index(self, index: int) -> str | None:
        return self._key_by_index.get(index)

    def remap_value(self, key: str, value: float) -> float:
        return self.remap(self.pins.get(key, key), value)


UNO_PINS: Mapping[str, str] = {
    **{f"D{n}": str(n) for n in range(14)},
    **{f"A{n}": f"A{n}" for n in range(6)},
}


def arduino_uno_profile() -> BoardProfile:
    return BoardProfile(
        name="arduinoUno",
        pins=UNO_PINS,
        monitored=tuple(MonitorSpec(key=key) for key in UNO_PINS),
        serial=SerialOptions(baud_rate=57600),
        device_options={"type": "arduino", "fqbn": "arduino:avr:uno", "firmware": "arduinoUno.hex"},
    )


# RoboPro station analog front end.
IN_SENSOR_MIN = 0
IN_SENSOR_MAX = 1023
OUT_SENSOR_MIN = 0
OUT_SENSOR_MAX = 100
TEMP_VOLTS_PER_DEGREE = 0.02  # TMP37
TEMP_OUTPUT_VOLTAGE = 0.25
TEMP_OFFSET_VALUE = TEMP_OUTPUT_VOLTAGE - (25 * TEMP_VOLTS_PER_DEGREE)

ROBO_PRO_TEMP_SENSOR = "A0"
ROBO_PRO_LIGHT_SENSOR = "A4"
_ROBO_PRO_SCALED = frozenset({"A0", "A1", "A2", "A3", "A4"})


def rescale(value: float) -> int:
    scaled = (value - IN_SENSOR_MIN) * (OUT_SENSOR_MAX - OUT_SENSOR_MIN) / (IN_SENSOR_MAX - IN_SENSOR_MIN)
    return round(scaled + OUT_SENSOR_MIN)


def robo_pro_station_remap(pin: str, value: float) -> float:
    if pin == ROBO_PRO_TEMP_SENSOR:
        volts = value * 5.0 / 1024.0
        return round((volts - TEMP_OFFSET_VALUE) / TEMP_VOLTS_PER_DEGREE)
    if pin == ROBO_PRO_LIGHT_SENSOR:
        value = IN_SENSOR_MAX - value
    if pin in _ROBO_PRO_SCALED:
        return rescale(value)
    return value


def robo_pro_station_profile() -> BoardProfile:
    keys = ("D8", "D9", "D10", "D11", "D12", "D13", "A0", "A1", "A2", "A3", "A4")
    return BoardProfile(
        name="roboProStation",
        pins=UNO_PINS,
        monitored=tuple(MonitorSpec(key=key) for key in keys),
        serial=SerialOptions(baud_rate=57600),
        device_options={"type": "arduino", "fqbn": "arduino:avr:uno", "firmware": "arduinoUno.hex"},
        remap=robo_pro_station_remap,
    )


__all__ = [
    "BoardProfile",
    "MonitorSpec",
    "SerialOptions",
    "ValueRemapper",
    "arduino_uno_profile",
    "identity_remap",
    "robo_pro_station_profile",
    "robo_pro_station_remap",
]
