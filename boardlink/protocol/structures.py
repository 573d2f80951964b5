"""Single-wire bus payload structures.

Hybrid msgspec/construct structs: construct validates and parses the raw
bytes, msgspec gives a typed, immutable result.
"""

from __future__ import annotations

from typing import Any, ClassVar, Type, TypeVar

import msgspec
from construct import (  # type: ignore
    Bytes,
    Construct,
    Int8ub,
    Int16sl,
    Struct as BinStruct,
)

from ..const import ONEWIRE_ADDRESS_LENGTH

T = TypeVar("T", bound="BaseStruct")


class BaseStruct(msgspec.Struct, frozen=True):
    """Base class for hybrid msgspec/construct structures."""

    _SCHEMA: ClassVar[Construct[Any]]

    @classmethod
    def decode(cls: Type[T], data: bytes | bytearray | memoryview) -> T:
        if not data:
            raise ValueError("Empty payload")
        container: Any = cls._SCHEMA.parse(bytes(data))
        return cls(**{k: v for k, v in container.items() if not k.startswith("_")})


class ScratchpadPacket(BaseStruct, frozen=True):
    """DS18B20 scratchpad (9 bytes)."""

    raw_temperature: int
    alarm_high: int
    alarm_low: int
    configuration: int
    reserved: bytes
    crc: int

    _SCHEMA = BinStruct(
        "raw_temperature" / Int16sl,
        "alarm_high" / Int8ub,
        "alarm_low" / Int8ub,
        "configuration" / Int8ub,
        "reserved" / Bytes(3),
        "crc" / Int8ub,
    )

    @property
    def celsius(self) -> float:
        # 12-bit fixed point, 1/16 degree per LSB.
        return round(self.raw_temperature / 16.0, 1)


class RomAddressPacket(BaseStruct, frozen=True):
    """64-bit ROM id: family code, 48-bit serial, CRC."""

    family: int
    serial: bytes
    crc: int

    _SCHEMA = BinStruct(
        "family" / Int8ub,
        "serial" / Bytes(ONEWIRE_ADDRESS_LENGTH - 2),
        "crc" / Int8ub,
    )


def decode_temperature(data: bytes) -> float:
    """Decode a scratchpad read into degrees Celsius.

    Only the first two bytes are significant; shorter reads than a full
    scratchpad are padded so partial firmware replies still decode.
    """
    if len(data) < 2:
        raise ValueError(f"scratchpad too short ({len(data)} bytes)")
    padded = bytes(data[:9]).ljust(9, b"\x00")
    return ScratchpadPacket.decode(padded).celsius


def family_code(address: bytes) -> int:
    return RomAddressPacket.decode(address).family


__all__ = [
    "BaseStruct",
    "RomAddressPacket",
    "ScratchpadPacket",
    "decode_temperature",
    "family_code",
]
