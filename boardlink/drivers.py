"""Capability contract for drivers layered over a session.

Displays, LED strips and distance sensors talk to the board through their
own command sequences. The session only needs to initialise them, write a
value and read a value back.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


class DeviceDriver(Protocol):
    def init(self, target: str) -> None:
        """Bind the driver to a pin or bus address."""
        ...

    async def write(self, value: Any) -> None: ...

    async def read(self) -> Any: ...


@dataclass(slots=True)
class DriverBinding:
    key: str
    driver: DeviceDriver
    target: str
    initialised: bool = False

    def ensure_initialised(self) -> None:
        if not self.initialised:
            self.driver.init(self.target)
            self.initialised = True


__all__ = ["DeviceDriver", "DriverBinding"]
