"""Transport session: one receive-dispatch loop over the message channel.

The channel reports what it sees (inbound messages, faults, closure) as
events on a single queue. The heartbeat supervisor feeds the same queue,
so a stale heartbeat and a real channel fault take the same path and are
never handled concurrently.

Error policy:
    broken pipe     -> shutdown, never retried
    other faults    -> up to max_reconnect_attempts reconnects, each after
                       a fixed delay, then shutdown
    channel closed  -> shutdown
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol, Union

from linear_mcp.errors import (
    HeartbeatTimeout,
    SessionStartError,
    is_broken_pipe,
    log_error,
)
from linear_mcp.logging_config import get_logger
from linear_mcp.session.shutdown import ShutdownCoordinator, ShutdownReason
from linear_mcp.session.state import ConnectionState, SessionPhase

logger = get_logger("session.transport")

HEARTBEAT_INTERVAL_SECONDS = 10.0
MAX_RECONNECT_ATTEMPTS = 3
RECONNECT_DELAY_SECONDS = 2.0

HEARTBEAT_NOTIFICATION = "server/heartbeat"
HANDSHAKE_METHODS = frozenset(
    {"initialize", "initialized", "notifications/initialized"}
)
HEARTBEAT_METHODS = frozenset({HEARTBEAT_NOTIFICATION, "ping"})


@dataclass(frozen=True)
class InboundMessage:
    method: str | None
    request_id: Any = None


@dataclass(frozen=True)
class TransportFault:
    error: BaseException


@dataclass(frozen=True)
class ChannelClosed:
    reason: str = "eof"


SessionEvent = Union[InboundMessage, TransportFault, ChannelClosed]
EmitFn = Callable[[SessionEvent], None]


class Channel(Protocol):
    """A bidirectional message channel the session can (re)connect."""

    async def connect(self, emit: EmitFn, *, resume: bool) -> None:
        """Establish (or re-establish) the protocol session.

        Args:
            emit: Callback for everything the channel observes
            resume: True when re-attaching after a fault; the peer already
                completed the handshake
        """
        ...

    async def close(self) -> None: ...


class TransportSession:
    """Owns the channel lifecycle: connect, supervise, reconnect.

    Usage:
        session = TransportSession(channel, state, coordinator)
        await session.start()   # raises SessionStartError on failure
        await session.run()     # returns once shutdown is latched
    """

    def __init__(
        self,
        channel: Channel,
        state: ConnectionState,
        coordinator: ShutdownCoordinator,
        heartbeat_interval: float = HEARTBEAT_INTERVAL_SECONDS,
        max_reconnect_attempts: int = MAX_RECONNECT_ATTEMPTS,
        reconnect_delay: float = RECONNECT_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._channel = channel
        self._state = state
        self._coordinator = coordinator
        self.heartbeat_interval = heartbeat_interval
        self.max_reconnect_attempts = max_reconnect_attempts
        self.reconnect_delay = reconnect_delay
        self._sleep = sleep
        self._events: asyncio.Queue[SessionEvent] = asyncio.Queue()
        self._heartbeat_task: asyncio.Task | None = None
        self.reconnects = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def pending_events(self) -> int:
        return self._events.qsize()

    def emit(self, event: SessionEvent) -> None:
        """Queue an event for the dispatch loop. Safe from any coroutine on
        the session's loop."""
        self._events.put_nowait(event)

    async def start(self) -> None:
        """Connect the channel for the first time.

        Raises:
            SessionStartError: If the channel cannot be connected
        """
        self._state.begin_connecting()
        logger.debug("connecting to MCP transport...")
        try:
            await self._channel.connect(self.emit, resume=False)
        except Exception as e:
            log_error(e, "failed to connect MCP server")
            raise SessionStartError(f"failed to connect: {e}") from e

        self._coordinator.add_close_callback(self._channel.close, "channel")
        logger.info("MCP transport connected, waiting for handshake")

    async def run(self) -> None:
        """Dispatch events until shutdown is latched."""
        if self.heartbeat_interval > 0:
            self._heartbeat_task = asyncio.create_task(
                self._heartbeat_loop(), name="heartbeat-supervisor"
            )
        try:
            while not self._state.shutting_down:
                event = await self._events.get()
                await self.dispatch(event)
        finally:
            await self._stop_heartbeat()

    async def dispatch(self, event: SessionEvent) -> None:
        if isinstance(event, InboundMessage):
            self.handle_message(event)
        elif isinstance(event, TransportFault):
            await self.handle_transport_error(event.error)
        elif isinstance(event, ChannelClosed):
            logger.info("channel closed by the other end (%s)", event.reason)
            self._state.mark_pipe_closed()
            await self._coordinator.shutdown(ShutdownReason.PIPE_CLOSED)

    def handle_message(self, message: InboundMessage) -> None:
        method = message.method
        logger.debug("received message: %s", method)
        if method in HANDSHAKE_METHODS:
            if self._state.phase != SessionPhase.CONNECTED:
                logger.info("session initialized (%s)", method)
            self._state.mark_handshake()
        elif method in HEARTBEAT_METHODS:
            self._state.record_heartbeat()
            logger.debug("heartbeat received")

    async def handle_transport_error(self, error: BaseException) -> None:
        """Decide between reconnecting and shutting down."""
        if is_broken_pipe(error):
            logger.info("pipe closed by the other end")
            self._state.mark_pipe_closed()
            await self._coordinator.shutdown(ShutdownReason.PIPE_CLOSED)
            return

        if self._state.shutting_down:
            return

        log_error(error, "transport error")

        while self._state.begin_reconnect(self.max_reconnect_attempts):
            logger.info(
                "attempting reconnection (%d/%d)...",
                self._state.reconnect_attempts,
                self.max_reconnect_attempts,
            )
            await self._sleep(self.reconnect_delay)

            if self._state.shutting_down:
                return
            if not self._state.pipe_active:
                logger.info("pipe is closed, cannot reconnect")
                await self._coordinator.shutdown(ShutdownReason.PIPE_CLOSED)
                return

            try:
                await self._channel.connect(self.emit, resume=True)
            except Exception as e:
                if is_broken_pipe(e):
                    logger.info("pipe closed during reconnection")
                    self._state.mark_pipe_closed()
                    await self._coordinator.shutdown(
                        ShutdownReason.PIPE_CLOSED
                    )
                    return
                log_error(e, "reconnection failed")
                continue

            self._state.mark_reconnected()
            self.reconnects += 1
            logger.info("reconnection successful")
            return

        if not self._state.shutting_down:
            logger.warning(
                "max reconnection attempts reached (%d), shutting down",
                self.max_reconnect_attempts,
            )
            await self._coordinator.shutdown(
                ShutdownReason.RECONNECT_EXHAUSTED, error
            )

    # -------------------------------------------------------------------------
    # Heartbeat supervision
    # -------------------------------------------------------------------------

    def check_heartbeat(self) -> bool:
        """Emit a HeartbeatTimeout fault if the session has gone quiet.

        Only a connected session is supervised; threshold is twice the
        heartbeat interval.

        Returns:
            True if a fault was emitted
        """
        if self.heartbeat_interval <= 0:
            return False
        if self._state.phase != SessionPhase.CONNECTED:
            return False
        threshold = self.heartbeat_interval * 2
        age = self._state.heartbeat_age()
        if age <= threshold:
            return False
        logger.warning("no heartbeat for %.1fs, attempting reconnection", age)
        self.emit(TransportFault(HeartbeatTimeout(age, threshold)))
        return True

    async def _heartbeat_loop(self) -> None:
        while not self._state.shutting_down:
            await asyncio.sleep(self.heartbeat_interval)
            self.check_heartbeat()

    async def _stop_heartbeat(self) -> None:
        if self._heartbeat_task is None:
            return
        self._heartbeat_task.cancel()
        try:
            await self._heartbeat_task
        except asyncio.CancelledError:
            pass
        self._heartbeat_task = None
