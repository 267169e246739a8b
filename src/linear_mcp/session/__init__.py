"""Session lifecycle: connection state, transport supervision, shutdown."""

from linear_mcp.session.shutdown import (
    ShutdownCoordinator,
    ShutdownReason,
    exit_code_for,
    hard_exit,
    install_process_hooks,
)
from linear_mcp.session.state import ConnectionState, SessionPhase
from linear_mcp.session.transport import (
    Channel,
    ChannelClosed,
    InboundMessage,
    TransportFault,
    TransportSession,
)

__all__ = [
    "Channel",
    "ChannelClosed",
    "ConnectionState",
    "InboundMessage",
    "SessionPhase",
    "ShutdownCoordinator",
    "ShutdownReason",
    "TransportFault",
    "TransportSession",
    "exit_code_for",
    "hard_exit",
    "install_process_hooks",
]
