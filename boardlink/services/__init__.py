"""Service layer for peripheral sessions."""

from .scope import CancellationScope, ScopeReleased
from .supervisor import ConnectionSupervisor
from .executor import CommandExecutor, OperationKind, PendingOperation, PinMode
from .monitor import MonitorSubscription, PinMonitor
from .bus import BusDeviceRegistry
from .session import Session

__all__ = [
    "BusDeviceRegistry",
    "CancellationScope",
    "CommandExecutor",
    "ConnectionSupervisor",
    "MonitorSubscription",
    "OperationKind",
    "PendingOperation",
    "PinMode",
    "PinMonitor",
    "ScopeReleased",
    "Session",
]
