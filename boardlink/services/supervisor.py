"""Session lifecycle and link liveness supervision.

The supervisor drives the transport connection, the firmware handshake and
the heartbeat that keeps checking the firmware is still answering. It is the
only component that changes liveness state; everything else reads
:meth:`ConnectionSupervisor.is_ready`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

import tenacity
from transitions import Machine

from ..config.logging import SessionLogAdapter
from ..config.settings import RuntimeConfig
from ..const import TRANSPORT_CONNECT_BACKOFF_BASE, TRANSPORT_CONNECT_BACKOFF_MAX
from ..errors import BoardLinkError, ConnectTimeout, HeartbeatLost
from ..host import HostRuntime, ProgramMode
from ..protocol.client import ClientFactory, ProtocolClient
from ..transport.base import Transport
from .scope import CancellationScope

logger = logging.getLogger("boardlink.supervisor")

LinkUpCallback = Callable[[CancellationScope], None]


def _log_connect_retry(retry_state: tenacity.RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Transport connect attempt %d failed (%s); retrying in %.2fs",
        retry_state.attempt_number,
        exc,
        retry_state.next_action.sleep if retry_state.next_action else 0,
    )


class ConnectionSupervisor:
    """Owns the session FSM, its timers and the protocol client instance."""

    if TYPE_CHECKING:
        # FSM generated methods and attributes for static analysis
        fsm_state: str
        begin_connect: Callable[[], bool]
        begin_handshake: Callable[[], bool]
        complete_handshake: Callable[[], bool]
        lose_heartbeat: Callable[[], bool]
        restore_heartbeat: Callable[[], bool]
        go_idle: Callable[[], bool]
        teardown: Callable[[], bool]

    # FSM States
    STATE_DISCONNECTED = "disconnected"
    STATE_CONNECTING = "connecting"
    STATE_HANDSHAKE_PENDING = "handshake_pending"
    STATE_READY = "ready"
    STATE_DEGRADED = "degraded"

    def __init__(
        self,
        *,
        device_id: str,
        transport: Transport,
        client_factory: ClientFactory,
        host: HostRuntime,
        config: RuntimeConfig,
        mode: ProgramMode = ProgramMode.REALTIME,
        on_link_up: LinkUpCallback | None = None,
    ) -> None:
        self._device_id = device_id
        self._transport = transport
        self._client_factory = client_factory
        self._host = host
        self._config = config
        self._mode = mode
        self._on_link_up = on_link_up
        self._log = SessionLogAdapter(logger, device_id, lambda: self.fsm_state)

        self._client: ProtocolClient | None = None
        self._scope: CancellationScope | None = None
        self._liveness: CancellationScope | None = None
        self._handshake_timer: asyncio.TimerHandle | None = None
        self._heartbeat_timer: asyncio.TimerHandle | None = None
        self._handshake_waiter: asyncio.Future[None] | None = None
        self._alive = False

        self.state_machine = Machine(
            model=self,
            states=[
                self.STATE_DISCONNECTED,
                self.STATE_CONNECTING,
                self.STATE_HANDSHAKE_PENDING,
                self.STATE_READY,
                self.STATE_DEGRADED,
            ],
            initial=self.STATE_DISCONNECTED,
            ignore_invalid_triggers=True,
            model_attribute="fsm_state",
        )

        self.state_machine.add_transition(
            trigger="begin_connect", source=self.STATE_DISCONNECTED, dest=self.STATE_CONNECTING
        )
        self.state_machine.add_transition(
            trigger="begin_handshake",
            source=[self.STATE_CONNECTING, self.STATE_DISCONNECTED],
            dest=self.STATE_HANDSHAKE_PENDING,
        )
        self.state_machine.add_transition(
            trigger="complete_handshake", source=self.STATE_HANDSHAKE_PENDING, dest=self.STATE_READY
        )
        self.state_machine.add_transition(
            trigger="lose_heartbeat", source=self.STATE_READY, dest=self.STATE_DEGRADED
        )
        self.state_machine.add_transition(
            trigger="restore_heartbeat", source=self.STATE_DEGRADED, dest=self.STATE_READY
        )
        self.state_machine.add_transition(
            trigger="go_idle",
            source=[
                self.STATE_CONNECTING,
                self.STATE_HANDSHAKE_PENDING,
                self.STATE_READY,
                self.STATE_DEGRADED,
            ],
            dest=self.STATE_DISCONNECTED,
        )
        self.state_machine.add_transition(trigger="teardown", source="*", dest=self.STATE_DISCONNECTED)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------
    @property
    def mode(self) -> ProgramMode:
        return self._mode

    @property
    def client(self) -> ProtocolClient | None:
        return self._client

    @property
    def scope(self) -> CancellationScope | None:
        return self._scope

    @property
    def alive(self) -> bool:
        return self._alive

    def is_ready(self) -> bool:
        return self.fsm_state == self.STATE_READY and self._mode is ProgramMode.REALTIME

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def connect(self, options: Mapping[str, Any] | None = None) -> bool:
        """Open the link and, in real-time mode, wait for the handshake.

        Returns True once Ready, False when the link is up without the
        real-time protocol (upload mode, or the handshake was abandoned by a
        mode switch or reset). Raises :class:`ConnectTimeout` when the
        firmware never answers.
        """
        if self.fsm_state != self.STATE_DISCONNECTED or (self._scope is not None and not self._scope.released):
            raise BoardLinkError(f"connect() while session is {self.fsm_state}; reset() first")

        self.begin_connect()
        scope = self._scope = CancellationScope(f"session:{self._device_id}")
        opener: asyncio.Task[None] | None = None
        try:
            if not self._transport.is_connected():
                opener = scope.spawn(self._open_transport(options or {}), name=f"open:{self._device_id}")
                await opener
        except asyncio.CancelledError:
            current = asyncio.current_task()
            abandoned = opener is not None and opener.cancelled() and scope.released
            if abandoned and not (current is not None and current.cancelling()):
                self._log.info("Connect to %s abandoned by reset", self._device_id)
                return False
            if self._scope is scope:
                self.reset()
            raise
        except BaseException:
            if self._scope is scope:
                self.reset()
            raise

        if scope.released:
            self._log.info("Connect to %s abandoned by reset", self._device_id)
            return False

        self._log.info("Transport connected for %s (mode=%s)", self._device_id, self._mode)
        if self._on_link_up is not None:
            self._on_link_up(scope)

        if self._mode is not ProgramMode.REALTIME:
            self.go_idle()
            return False

        waiter = self._start_handshake(wait=True)
        await waiter
        return self.is_ready()

    async def _open_transport(self, options: Mapping[str, Any]) -> None:
        retryer = tenacity.AsyncRetrying(
            stop=tenacity.stop_after_attempt(self._config.transport_connect_attempts),
            wait=tenacity.wait_exponential(
                multiplier=TRANSPORT_CONNECT_BACKOFF_BASE,
                max=TRANSPORT_CONNECT_BACKOFF_MAX,
            ),
            retry=tenacity.retry_if_exception_type(OSError),
            before_sleep=_log_connect_retry,
            reraise=True,
        )
        async for attempt in retryer:
            with attempt:
                await self._transport.connect(self._device_id, options)

    def reset(self) -> None:
        """Cancel every timer and task and discard the client. Idempotent."""
        self._teardown_liveness()
        if self._scope is not None:
            self._scope.release()
        self.teardown()

    async def disconnect(self) -> None:
        self.reset()
        if self._transport.is_connected():
            await self._transport.disconnect()
        self._log.info("Disconnected %s", self._device_id)

    # ------------------------------------------------------------------
    # Host driven mode changes
    # ------------------------------------------------------------------
    def set_mode(self, mode: ProgramMode) -> None:
        previous, self._mode = self._mode, mode
        if mode is ProgramMode.UPLOAD:
            if self.fsm_state in (self.STATE_HANDSHAKE_PENDING, self.STATE_READY, self.STATE_DEGRADED):
                self._log.info("Upload mode: stopping liveness supervision for %s", self._device_id)
            self.release_protocol()
            return
        if previous is not ProgramMode.REALTIME:
            self.restart_handshake()

    def release_protocol(self) -> None:
        """Drop the protocol path while keeping the transport open."""
        self._teardown_liveness()
        self.go_idle()

    def restart_handshake(self) -> None:
        """Re-enter the handshake if the link is up and no protocol is active."""
        if self._mode is not ProgramMode.REALTIME:
            return
        if self.fsm_state != self.STATE_DISCONNECTED:
            return
        if self._scope is None or self._scope.released or not self._transport.is_connected():
            return
        self._start_handshake(wait=False)

    # ------------------------------------------------------------------
    # Handshake
    # ------------------------------------------------------------------
    def _start_handshake(self, *, wait: bool) -> asyncio.Future[None]:
        assert self._scope is not None
        loop = asyncio.get_running_loop()
        self._liveness = self._scope.child("liveness")
        self._client = self._client_factory()
        waiter: asyncio.Future[None] = loop.create_future()
        if wait:
            self._handshake_waiter = waiter
        else:
            waiter.set_result(None)
        self._handshake_timer = self._liveness.call_later(
            self._config.handshake_timeout, self._on_handshake_timeout
        )
        self.begin_handshake()
        self._log.debug("Handshake pending for %s", self._device_id)
        return waiter

    def _on_handshake_timeout(self) -> None:
        self._handshake_timer = None
        if self.fsm_state != self.STATE_HANDSHAKE_PENDING:
            return
        error = ConnectTimeout(
            f"{self._device_id}: firmware did not answer within "
            f"{self._config.handshake_timeout:.1f}s; upload the real-time firmware first"
        )
        self._log.error("Handshake timeout for %s", self._device_id)
        waiter = self._handshake_waiter
        self._handshake_waiter = None
        self._teardown_liveness()
        self.go_idle()
        self._host.disconnect_error(self._device_id, error)
        if waiter is not None and not waiter.done():
            waiter.set_exception(error)

    def on_ready(self) -> None:
        if self.fsm_state != self.STATE_HANDSHAKE_PENDING or self._liveness is None:
            self._log.debug("Ignoring ready event in state %s", self.fsm_state)
            return
        self._liveness.cancel(self._handshake_timer)
        self._handshake_timer = None
        self._alive = True
        self.complete_handshake()
        self._log.info("Firmware ready on %s", self._device_id)
        self._host.connect_success(self._device_id, recovered=False)

        self._liveness.spawn(self._heartbeat_loop(), name=f"heartbeat:{self._device_id}")
        self._arm_heartbeat_timeout()

        waiter = self._handshake_waiter
        self._handshake_waiter = None
        if waiter is not None and not waiter.done():
            waiter.set_result(None)

    # ------------------------------------------------------------------
    # Heartbeat
    # ------------------------------------------------------------------
    async def _heartbeat_loop(self) -> None:
        interval = self._config.heartbeat_interval
        while True:
            await asyncio.sleep(interval)
            client = self._client
            if client is None:
                return
            try:
                await self._transport.write(client.report_version())
            except OSError as exc:
                self._log.warning("Heartbeat probe write failed on %s: %s", self._device_id, exc)

    def _arm_heartbeat_timeout(self) -> None:
        if self._liveness is None or self._liveness.released:
            return
        self._liveness.cancel(self._heartbeat_timer)
        self._heartbeat_timer = self._liveness.call_later(
            self._config.heartbeat_timeout, self._on_heartbeat_timeout
        )

    def _on_heartbeat_timeout(self) -> None:
        self._heartbeat_timer = None
        if self.fsm_state != self.STATE_READY:
            return
        self._alive = False
        self.lose_heartbeat()
        error = HeartbeatLost(
            f"{self._device_id}: no heartbeat for {self._config.heartbeat_timeout:.1f}s"
        )
        self._log.warning("Heartbeat lost on %s; still probing", self._device_id)
        self._host.disconnect_error(self._device_id, error)

    def on_version_report(self) -> None:
        if self.fsm_state not in (self.STATE_READY, self.STATE_DEGRADED):
            return
        self._arm_heartbeat_timeout()
        if self.fsm_state == self.STATE_DEGRADED:
            self._alive = True
            self.restore_heartbeat()
            self._log.info("Heartbeat restored on %s", self._device_id)
            self._host.connect_success(self._device_id, recovered=True)

    # ------------------------------------------------------------------
    def _teardown_liveness(self) -> None:
        if self._liveness is not None:
            self._liveness.release()
            self._liveness = None
        self._handshake_timer = None
        self._heartbeat_timer = None
        self._client = None
        self._alive = False
        waiter = self._handshake_waiter
        self._handshake_waiter = None
        if waiter is not None and not waiter.done():
            waiter.set_result(None)


__all__ = ["ConnectionSupervisor"]
