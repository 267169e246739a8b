"""Connection state for the single MCP session.

ConnectionState is the one source of truth for session liveness. Only
the TransportSession and the ShutdownCoordinator mutate it. Once shutdown
is latched the state is frozen: every mutator except mark_terminated()
becomes a no-op.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class SessionPhase(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"


@dataclass
class ConnectionState:
    """Session liveness, reconnect budget, and the shutdown latch."""

    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    phase: SessionPhase = SessionPhase.DISCONNECTED
    connected: bool = False
    reconnect_attempts: int = 0
    last_heartbeat_at: float = 0.0
    pipe_active: bool = True
    shutting_down: bool = False
    shutdown_reason: str | None = None

    def __post_init__(self) -> None:
        self.last_heartbeat_at = self.clock()

    def begin_connecting(self) -> None:
        if self.shutting_down:
            return
        self.phase = SessionPhase.CONNECTING

    def mark_handshake(self) -> None:
        """Record an initialize/initialized message."""
        if self.shutting_down:
            return
        self.phase = SessionPhase.CONNECTED
        self.connected = True
        self.reconnect_attempts = 0
        self.last_heartbeat_at = self.clock()

    def record_heartbeat(self) -> None:
        if self.shutting_down:
            return
        self.last_heartbeat_at = self.clock()

    def heartbeat_age(self) -> float:
        """Seconds since the last heartbeat or handshake."""
        return self.clock() - self.last_heartbeat_at

    def begin_reconnect(self, max_attempts: int) -> bool:
        """Claim one reconnection attempt from the budget.

        Returns:
            True if an attempt may proceed, False if the session must shut
            down instead (budget spent, pipe gone, or already shutting down)
        """
        if self.shutting_down or not self.pipe_active:
            return False
        if self.reconnect_attempts >= max_attempts:
            return False
        self.reconnect_attempts += 1
        self.phase = SessionPhase.RECONNECTING
        self.connected = False
        return True

    def mark_reconnected(self) -> None:
        # attempts reset only on an observed handshake, so a flapping
        # channel still exhausts its budget within one outage episode
        if self.shutting_down:
            return
        self.phase = SessionPhase.CONNECTED
        self.connected = True

    def mark_pipe_closed(self) -> None:
        if self.shutting_down:
            return
        self.pipe_active = False

    def latch_shutdown(self, reason: str) -> bool:
        """Enter shutdown. True exactly once per process."""
        if self.shutting_down:
            return False
        self.shutting_down = True
        self.shutdown_reason = reason
        self.connected = False
        self.phase = SessionPhase.SHUTTING_DOWN
        return True

    def mark_terminated(self) -> None:
        if self.shutting_down:
            self.phase = SessionPhase.TERMINATED

    def snapshot(self) -> dict[str, Any]:
        return {
            "phase": self.phase.value,
            "connected": self.connected,
            "reconnect_attempts": self.reconnect_attempts,
            "heartbeat_age_seconds": round(self.heartbeat_age(), 3),
            "pipe_active": self.pipe_active,
            "shutting_down": self.shutting_down,
            "shutdown_reason": self.shutdown_reason,
        }
