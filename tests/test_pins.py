"""Tests for textual pin identifiers and the board pin map."""

from __future__ import annotations

import pytest

from boardlink.config.board import UNO_PINS
from boardlink.const import ANALOG_PIN_OFFSET
from boardlink.protocol.pins import (
    PinMap,
    analog_channel,
    channel_to_index,
    format_pin,
    is_analog,
    parse_pin,
)


@pytest.mark.parametrize(
    ("pin", "index"),
    [("0", 0), ("4", 4), ("13", 13), ("A0", 14), ("A5", 19), ("a3", 17), (" 7 ", 7)],
)
def test_parse_pin(pin: str, index: int) -> None:
    assert parse_pin(pin) == index


@pytest.mark.parametrize("pin", ["", "A", "D4", "4.0", "-1", "Ax"])
def test_parse_pin_rejects_malformed(pin: str) -> None:
    with pytest.raises(ValueError):
        parse_pin(pin)


def test_parse_and_format_are_inverse_for_board_pins() -> None:
    for pin in UNO_PINS.values():
        assert format_pin(parse_pin(pin), analog=is_analog(pin)) == pin
    for index in range(ANALOG_PIN_OFFSET + 6):
        assert parse_pin(format_pin(index)) == index


def test_format_pin_rejects_digital_hint_mismatch() -> None:
    with pytest.raises(ValueError):
        format_pin(3, analog=True)
    with pytest.raises(ValueError):
        format_pin(-1)
    assert format_pin(15, analog=False) == "15"


def test_analog_channel_shifts_back_by_offset() -> None:
    assert analog_channel(parse_pin("A0")) == 0
    assert analog_channel(parse_pin("A4")) == 4
    assert channel_to_index(2) == parse_pin("A2")
    with pytest.raises(ValueError):
        analog_channel(parse_pin("13"))


def test_pin_map_is_bijective() -> None:
    pin_map = PinMap(UNO_PINS.values())
    assert len(pin_map) == 20
    for pin in pin_map:
        assert pin_map.pin(pin_map.index(pin)) == pin
    assert pin_map["a1"] == 15


def test_pin_map_rejects_non_canonical_and_duplicates() -> None:
    with pytest.raises(ValueError, match="round-trip"):
        PinMap(["04"])
    with pytest.raises(ValueError, match="share index"):
        PinMap(["14", "A0"])


def test_pin_map_unknown_pin_raises_key_error() -> None:
    pin_map = PinMap(["2", "A0"])
    with pytest.raises(KeyError):
        pin_map.index("3")
    with pytest.raises(KeyError):
        pin_map.pin(99)
