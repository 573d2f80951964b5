"""Tests for serialized pin operations."""

from __future__ import annotations

import asyncio

import pytest

from boardlink.errors import NotReady
from boardlink.host import ProgramMode
from boardlink.protocol.client import PinModeCode
from boardlink.protocol.events import DigitalValue
from boardlink.services.executor import PinMode, parse_level

from mocks import wait_for


def _commands(clients, *names: str) -> list[tuple]:
    return [(name, args) for name, args in clients.latest.sent if name in names]


@pytest.mark.parametrize(
    ("level", "expected"),
    [("HIGH", 1), ("high", 1), ("LOW", 0), ("bogus", 0), (True, 1), (False, 0), (1, 1), (0, 0)],
)
def test_parse_level(level, expected) -> None:
    assert parse_level(level) == expected


@pytest.mark.asyncio
async def test_operations_require_ready(make_session) -> None:
    session = make_session()
    with pytest.raises(NotReady) as excinfo:
        await session.set_digital_output("D4", "HIGH")
    assert excinfo.value.state == "disconnected"
    with pytest.raises(NotReady):
        await session.read_analog_pin("A0")


@pytest.mark.asyncio
async def test_operations_rejected_in_upload_mode(make_session) -> None:
    session = make_session()
    await session.connect()
    session.handle_program_mode(ProgramMode.UPLOAD)
    with pytest.raises(NotReady):
        await session.set_pwm_output("D9", 10)
    await session.disconnect()


@pytest.mark.asyncio
async def test_pwm_output_clamped(make_session, clients) -> None:
    session = make_session()
    await session.connect()

    await session.set_pwm_output("D9", -10)
    await session.set_pwm_output("D9", 999)
    await session.set_pwm_output("9", 127.8)

    assert _commands(clients, "pwm_write") == [
        ("pwm_write", (9, 0)),
        ("pwm_write", (9, 255)),
        ("pwm_write", (9, 127)),
    ]
    assert _commands(clients, "pin_mode")[0] == ("pin_mode", (9, int(PinModeCode.PWM)))
    await session.disconnect()


@pytest.mark.asyncio
async def test_servo_output_clamped_and_configured(make_session, clients) -> None:
    session = make_session()
    await session.connect()

    await session.set_servo_output("D10", 999)
    await session.set_servo_output("D10", -5)

    assert _commands(clients, "servo_write") == [("servo_write", (10, 180)), ("servo_write", (10, 0))]
    assert _commands(clients, "servo_config")[0] == ("servo_config", (10, 600, 2400))
    assert _commands(clients, "pin_mode")[0] == ("pin_mode", (10, int(PinModeCode.SERVO)))
    await session.disconnect()


@pytest.mark.asyncio
async def test_digital_output_and_tones(make_session, clients) -> None:
    session = make_session()
    await session.connect()

    await session.set_digital_output("D13", "HIGH")
    await session.set_digital_output("D13", False)
    await session.set_tone_output("D8", 440.7)
    await session.stop_tone_output("D8")

    assert _commands(clients, "digital_write", "buzzer_tone", "buzzer_no_tone") == [
        ("digital_write", (13, 1)),
        ("digital_write", (13, 0)),
        ("buzzer_tone", (8, 440)),
        ("buzzer_no_tone", (8,)),
    ]
    await session.disconnect()


@pytest.mark.asyncio
async def test_set_pin_mode_codes(make_session, clients) -> None:
    session = make_session()
    await session.connect()

    await session.set_pin_mode("D2", "INPUT_PULLUP")
    await session.set_pin_mode("A1", PinMode.ANALOG)
    with pytest.raises(ValueError):
        await session.set_pin_mode("D2", "BOGUS")
    with pytest.raises(KeyError):
        await session.set_pin_mode("D42", "OUTPUT")

    assert _commands(clients, "pin_mode") == [
        ("pin_mode", (2, int(PinModeCode.PULLUP))),
        ("pin_mode", (15, int(PinModeCode.ANALOG))),
    ]
    await session.disconnect()


@pytest.mark.asyncio
async def test_write_waits_for_settle_delay(make_session, runtime_config) -> None:
    session = make_session()
    await session.connect()
    loop = asyncio.get_running_loop()
    started = loop.time()
    await session.set_digital_output("D4", 1)
    assert loop.time() - started >= runtime_config.write_settle
    assert session.executor.current is None
    await session.disconnect()


@pytest.mark.asyncio
async def test_digital_read_returns_firmware_value(make_session, firmware) -> None:
    firmware.digital[7] = 1
    session = make_session()
    await session.connect()
    assert await session.read_digital_pin("D7") == 1
    await session.disconnect()


@pytest.mark.asyncio
async def test_analog_read_uses_pin_index_for_mode_and_channel_for_read(make_session, firmware, clients) -> None:
    firmware.analog[2] = 612
    session = make_session()
    await session.connect()

    assert await session.read_analog_pin("A2") == 612
    assert _commands(clients, "pin_mode", "analog_read") == [
        ("pin_mode", (16, int(PinModeCode.ANALOG))),
        ("analog_read", (2,)),
    ]
    await session.disconnect()


@pytest.mark.asyncio
async def test_analog_read_rejects_digital_pin(make_session) -> None:
    session = make_session()
    await session.connect()
    with pytest.raises(ValueError):
        await session.read_analog_pin("D3")
    await session.disconnect()


@pytest.mark.asyncio
async def test_read_timeout_returns_none_within_bound(make_session, runtime_config) -> None:
    session = make_session()
    await session.connect()
    loop = asyncio.get_running_loop()

    started = loop.time()
    assert await session.read_digital_pin("D5") is None
    elapsed = loop.time() - started

    assert runtime_config.read_timeout <= elapsed < runtime_config.read_timeout + 0.2
    assert session.executor.current is None
    # A late answer finds nothing to resolve.
    assert session.executor.on_event(DigitalValue(pin=5, value=1)) is False
    await session.disconnect()


@pytest.mark.asyncio
async def test_response_for_other_pin_does_not_resolve_read(make_session, transport) -> None:
    session = make_session()
    await session.connect()
    reading = asyncio.create_task(session.read_digital_pin("D5"))
    await wait_for(lambda: session.executor.current is not None)

    transport.push(DigitalValue(pin=6, value=1))
    await asyncio.sleep(0.02)
    assert not reading.done()

    transport.push(DigitalValue(pin=5, value=1))
    assert await reading == 1
    await session.disconnect()


@pytest.mark.asyncio
async def test_operations_are_serialized(make_session, firmware, transport, runtime_config) -> None:
    firmware.digital[3] = 1
    session = make_session()
    await session.connect()
    loop = asyncio.get_running_loop()
    started = loop.time()

    first = asyncio.create_task(session.read_digital_pin("D2"))
    second = asyncio.create_task(session.read_digital_pin("D3"))
    await wait_for(lambda: session.executor.current is not None)
    reads = [name for name in transport.written_names() if name == "digital_read"]
    assert reads == ["digital_read"]

    assert await first is None
    assert await second == 1
    assert loop.time() - started >= runtime_config.read_timeout
    await session.disconnect()


@pytest.mark.asyncio
async def test_reset_expires_pending_read(make_session, runtime_config) -> None:
    session = make_session()
    await session.connect()
    loop = asyncio.get_running_loop()
    started = loop.time()
    reading = asyncio.create_task(session.read_digital_pin("D5"))
    await wait_for(lambda: session.executor.current is not None)

    session.reset()

    assert await reading is None
    assert loop.time() - started < runtime_config.read_timeout
    await session.disconnect()
