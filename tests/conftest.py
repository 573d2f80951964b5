"""Pytest configuration for boardlink tests."""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

PACKAGE_ROOT = Path(__file__).resolve().parents[1]
if str(PACKAGE_ROOT) not in sys.path:
    sys.path.insert(0, str(PACKAGE_ROOT))

from boardlink.config.board import BoardProfile, arduino_uno_profile  # noqa: E402
from boardlink.config.settings import RuntimeConfig  # noqa: E402
from boardlink.host import ProgramMode  # noqa: E402
from boardlink.services.session import Session  # noqa: E402

from mocks import ClientFactoryRecorder, FakeFirmware, FakeTransport, RecordingHost  # noqa: E402


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "asyncio: mark test to run on asyncio loop")


@pytest.fixture(autouse=True)
def reset_logging_handlers():
    """Close and remove all logging handlers after each test to prevent ResourceWarnings."""
    yield
    root = logging.getLogger()
    for handler in root.handlers[:]:
        try:
            handler.close()
        except (OSError, RuntimeError):
            pass
        root.removeHandler(handler)


@pytest.fixture()
def runtime_config() -> RuntimeConfig:
    return RuntimeConfig(
        handshake_timeout=0.2,
        heartbeat_interval=0.03,
        heartbeat_timeout=0.1,
        write_settle=0.001,
        read_timeout=0.1,
        monitor_throttle=0.25,
        monitor_poll_interval=0.01,
        bus_conversion_delay_ms=10,
        transport_connect_attempts=2,
        debug_logging=False,
    )


@pytest.fixture()
def profile() -> BoardProfile:
    return arduino_uno_profile()


@pytest.fixture()
def firmware() -> FakeFirmware:
    return FakeFirmware()


@pytest.fixture()
def transport(firmware: FakeFirmware) -> FakeTransport:
    return FakeTransport(firmware)


@pytest.fixture()
def host() -> RecordingHost:
    return RecordingHost()


@pytest.fixture()
def clients() -> ClientFactoryRecorder:
    return ClientFactoryRecorder()


@pytest.fixture()
def make_session(
    runtime_config: RuntimeConfig,
    profile: BoardProfile,
    transport: FakeTransport,
    host: RecordingHost,
    clients: ClientFactoryRecorder,
) -> Callable[..., Session]:
    def _factory(**overrides: Any) -> Session:
        kwargs: dict[str, Any] = {
            "device_id": "uno-1",
            "profile": profile,
            "transport": transport,
            "client_factory": clients,
            "host": host,
            "config": runtime_config,
            "mode": ProgramMode.REALTIME,
        }
        kwargs.update(overrides)
        return Session(**kwargs)

    return _factory
