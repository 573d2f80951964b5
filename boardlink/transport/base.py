"""Interface of the external serial transport.

The transport owns the physical link. Received data is exposed as an async
iterator of byte chunks which ends when the link goes away.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping
from typing import Any, Protocol


class Transport(Protocol):
    async def connect(self, device_id: str, options: Mapping[str, Any]) -> None: ...

    async def write(self, data: bytes) -> None: ...

    def chunks(self) -> AsyncIterator[bytes]: ...

    async def disconnect(self) -> None: ...

    def is_connected(self) -> bool: ...

    async def upload(self, payload: bytes, device_options: Mapping[str, Any]) -> None: ...

    async def upload_firmware(self, device_options: Mapping[str, Any]) -> None: ...

    async def abort_upload(self) -> None: ...


__all__ = ["Transport"]
