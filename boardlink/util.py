"""General-purpose utilities for boardlink."""

from __future__ import annotations

import logging

__all__ = ["clamp", "log_hexdump"]


def clamp(value: float, lower: int, upper: int) -> int:
    """Clamp ``value`` into ``[lower, upper]`` and truncate to int."""
    return int(min(max(value, lower), upper))


def log_hexdump(
    logger_instance: logging.Logger | logging.LoggerAdapter,
    level: int,
    label: str,
    data: bytes,
) -> None:
    """Log binary data in hexadecimal format.

    Format: [HEXDUMP] %s: %s. The raw bytes also travel as the ``payload``
    extra so the structured formatter can emit them as a field.
    """
    if not logger_instance.isEnabledFor(level):
        return

    hex_str = data.hex(" ").upper()
    logger_instance.log(level, "[HEXDUMP] %s: %s", label, hex_str, extra={"payload": bytes(data)})
