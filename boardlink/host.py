"""Host runtime surface a peripheral session reports into."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from .errors import BoardLinkError


class ProgramMode(StrEnum):
    REALTIME = "realtime"
    UPLOAD = "upload"


class HostRuntime(Protocol):
    """Callbacks a session invokes on the hosting runtime.

    The host drives the session in the other direction by calling
    ``Session.handle_program_mode`` and ``Session.handle_upload_success``.
    """

    def register_peripheral_extension(self, device_id: str, session: Any) -> None: ...

    def connect_success(self, device_id: str, *, recovered: bool = False) -> None: ...

    def disconnect_error(self, device_id: str, error: BoardLinkError) -> None: ...

    def update_monitor(self, device_id: str, snapshot: Mapping[str, Mapping[str, Any]]) -> None: ...

    def receive_console(self, device_id: str, data: bytes) -> None: ...


__all__ = ["HostRuntime", "ProgramMode"]
