"""Tests for single-wire bus discovery and temperature readout."""

from __future__ import annotations

import pytest

from boardlink.const import ONEWIRE_FAMILY_DS18B20
from boardlink.errors import DeviceNotFound, NotReady
from boardlink.protocol.client import PinModeCode

from mocks import decode_frame

SENSOR_A = bytes([0x28, 0xFF, 0x4C, 0x1E, 0x91, 0x16, 0x04, 0x6A])
SENSOR_B = bytes([0x28, 0x61, 0x64, 0x12, 0x3C, 0x7C, 0x2F, 0x27])
EEPROM = bytes([0x2D, 0x01, 0x02, 0x03, 0x04, 0x05, 0x06, 0xB1])

SCRATCHPAD_25C = bytes([0x90, 0x01, 0x4B, 0x46, 0x7F, 0xFF, 0x10, 0x10, 0x5E])


@pytest.mark.asyncio
async def test_onewire_pin_mode_triggers_scan(make_session, firmware, clients) -> None:
    firmware.search[2] = (SENSOR_A, EEPROM, SENSOR_B)
    session = make_session()
    await session.connect()

    await session.set_pin_mode("D2", "ONEWIRE")

    sent = [(name, args) for name, args in clients.latest.sent if name != "report_version"]
    assert [name for name, _ in sent] == ["pin_mode", "onewire_config", "onewire_search"]
    assert sent[0] == ("pin_mode", (2, int(PinModeCode.ONEWIRE)))
    assert session.bus_devices("D2") == (SENSOR_A, EEPROM, SENSOR_B)
    assert session.bus_devices("2", ONEWIRE_FAMILY_DS18B20) == (SENSOR_A, SENSOR_B)
    await session.disconnect()


@pytest.mark.asyncio
async def test_scan_replaces_previous_result(make_session, firmware) -> None:
    firmware.search[2] = (SENSOR_A, SENSOR_B)
    session = make_session()
    await session.connect()
    assert await session.scan_bus("D2") == (SENSOR_A, SENSOR_B)

    firmware.search[2] = (SENSOR_B,)
    assert await session.scan_bus("D2") == (SENSOR_B,)
    assert session.bus_devices("D2") == (SENSOR_B,)
    await session.disconnect()


@pytest.mark.asyncio
async def test_scan_timeout_yields_no_devices(make_session) -> None:
    session = make_session()
    await session.connect()
    assert await session.scan_bus("D3") == ()
    assert session.bus_devices("D3") == ()
    await session.disconnect()


@pytest.mark.asyncio
async def test_scan_drops_malformed_addresses(make_session, firmware) -> None:
    firmware.search[2] = (SENSOR_A, b"\x28\x01")
    session = make_session()
    await session.connect()
    assert await session.scan_bus("D2") == (SENSOR_A,)
    await session.disconnect()


@pytest.mark.asyncio
async def test_read_temperature(make_session, firmware, transport, runtime_config) -> None:
    firmware.search[2] = (EEPROM, SENSOR_A, SENSOR_B)
    firmware.scratchpad = SCRATCHPAD_25C
    session = make_session()
    await session.connect()
    await session.scan_bus("D2")
    transport.writes.clear()

    assert await session.read_temperature("D2", 1) == 25.0

    frames = [decode_frame(frame) for frame in transport.writes]
    frames = [(name, args) for name, args in frames if name != "report_version"]
    assert frames == [
        ("onewire_reset", [2]),
        ("onewire_write", [2, SENSOR_B.hex(), 0x44]),
        ("onewire_delay", [2, runtime_config.bus_conversion_delay_ms]),
        ("onewire_reset", [2]),
        ("onewire_write_and_read", [2, SENSOR_B.hex(), 0xBE, 9]),
    ]
    await session.disconnect()


@pytest.mark.asyncio
async def test_read_temperature_unknown_device(make_session, firmware) -> None:
    firmware.search[2] = (SENSOR_A, EEPROM)
    session = make_session()
    await session.connect()

    with pytest.raises(DeviceNotFound):
        await session.read_temperature("D4", 0)

    await session.scan_bus("D2")
    with pytest.raises(DeviceNotFound) as excinfo:
        await session.read_temperature("D2", 1)
    assert isinstance(excinfo.value, LookupError)
    assert excinfo.value.index == 1
    await session.disconnect()


@pytest.mark.asyncio
async def test_read_temperature_timeout_returns_none(make_session, firmware) -> None:
    firmware.search[2] = (SENSOR_A,)
    session = make_session()
    await session.connect()
    await session.scan_bus("D2")

    assert await session.read_temperature("D2") is None
    await session.disconnect()


@pytest.mark.asyncio
async def test_reset_clears_discovery_cache(make_session, firmware) -> None:
    firmware.search[2] = (SENSOR_A,)
    session = make_session()
    await session.connect()
    await session.scan_bus("D2")

    session.reset()

    assert session.bus_devices("D2") == ()
    await session.disconnect()


@pytest.mark.asyncio
async def test_read_temperature_requires_ready(make_session, firmware) -> None:
    firmware.search[2] = (SENSOR_A,)
    session = make_session()
    with pytest.raises(NotReady):
        await session.read_temperature("D2")

    await session.connect()
    await session.scan_bus("D2")
    session.reset()

    with pytest.raises(NotReady):
        await session.read_temperature("D2")
    await session.disconnect()
