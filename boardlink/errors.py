"""Error taxonomy for peripheral sessions."""

from __future__ import annotations


class BoardLinkError(RuntimeError):
    """Base class for every error raised by a peripheral session."""

    reason: str = "error"


class ConnectTimeout(BoardLinkError):
    """Firmware never answered the handshake; reconnect required."""

    reason = "connect_timeout"


class HeartbeatLost(BoardLinkError):
    """Heartbeat responses stopped arriving. Reported, never raised."""

    reason = "heartbeat_lost"


class TransportLost(BoardLinkError):
    """The transport byte stream ended underneath an open session."""

    reason = "transport_lost"


class NotReady(BoardLinkError):
    """Operation attempted while the session is not Ready."""

    reason = "not_ready"

    def __init__(self, operation: str, state: str) -> None:
        super().__init__(f"{operation} requires a ready session (state={state})")
        self.operation = operation
        self.state = state


class DeviceNotFound(BoardLinkError, LookupError):
    """Addressed bus device is missing from the discovery cache."""

    reason = "device_not_found"

    def __init__(self, pin: str, index: int) -> None:
        super().__init__(f"no bus device #{index} discovered on pin {pin}")
        self.pin = pin
        self.index = index


__all__ = [
    "BoardLinkError",
    "ConnectTimeout",
    "DeviceNotFound",
    "HeartbeatLost",
    "NotReady",
    "TransportLost",
]
