"""Textual pin identifiers and their protocol pin indices.

Digital pins are written as plain decimal numbers (``"4"``). Analog inputs
use an ``A`` prefix (``"A0"``) and live in the protocol index space at
``ANALOG_PIN_OFFSET`` above the digital bank, so ``"A0"`` is index 14.
Analog specific commands (``analog_read``/``report_analog_pin``) address the
ADC channel instead, which is the index shifted back down.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping

from ..const import ANALOG_PIN_OFFSET, ANALOG_PIN_PREFIX


def is_analog(pin: str) -> bool:
    return pin.upper().startswith(ANALOG_PIN_PREFIX)


def parse_pin(pin: str) -> int:
    """Return the protocol index for ``pin``; raises ValueError if malformed."""
    text = pin.strip().upper()
    if text.startswith(ANALOG_PIN_PREFIX):
        digits = text[len(ANALOG_PIN_PREFIX) :]
        offset = ANALOG_PIN_OFFSET
    else:
        digits = text
        offset = 0
    if not digits.isdigit():
        raise ValueError(f"invalid pin identifier {pin!r}")
    return int(digits) + offset


def format_pin(index: int, *, analog: bool | None = None) -> str:
    """Inverse of :func:`parse_pin`.

    Without an explicit ``analog`` hint, every index at or above the offset
    is rendered as an analog identifier.
    """
    if index < 0:
        raise ValueError(f"pin index must be non-negative, got {index}")
    if analog is None:
        analog = index >= ANALOG_PIN_OFFSET
    if analog:
        if index < ANALOG_PIN_OFFSET:
            raise ValueError(f"index {index} is below the analog bank")
        return f"{ANALOG_PIN_PREFIX}{index - ANALOG_PIN_OFFSET}"
    return str(index)


def analog_channel(index: int) -> int:
    """Shift a protocol pin index back to its ADC channel."""
    channel = index - ANALOG_PIN_OFFSET
    if channel < 0:
        raise ValueError(f"pin index {index} is not an analog input")
    return channel


def channel_to_index(channel: int) -> int:
    return channel + ANALOG_PIN_OFFSET


class PinMap(Mapping[str, int]):
    """Verified bijection between a board's pin identifiers and indices."""

    def __init__(self, pins: Iterable[str]) -> None:
        forward: dict[str, int] = {}
        reverse: dict[int, str] = {}
        for raw in pins:
            pin = raw.strip().upper()
            index = parse_pin(pin)
            if format_pin(index, analog=is_analog(pin)) != pin:
                raise ValueError(f"pin {raw!r} does not round-trip (non-canonical form)")
            if index in reverse and reverse[index] != pin:
                raise ValueError(f"pins {reverse[index]!r} and {pin!r} share index {index}")
            forward[pin] = index
            reverse[index] = pin
        self._forward = forward
        self._reverse = reverse

    def __getitem__(self, pin: str) -> int:
        try:
            return self._forward[pin.strip().upper()]
        except KeyError:
            raise KeyError(f"pin {pin!r} is not supported by this board") from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._forward)

    def __len__(self) -> int:
        return len(self._forward)

    def index(self, pin: str) -> int:
        return self[pin]

    def pin(self, index: int) -> str:
        try:
            return self._reverse[index]
        except KeyError:
            raise KeyError(f"pin index {index} is not supported by this board") from None

    def __repr__(self) -> str:
        return f"PinMap({list(self._forward)!r})"


__all__ = [
    "PinMap",
    "analog_channel",
    "channel_to_index",
    "format_pin",
    "is_analog",
    "parse_pin",
]
