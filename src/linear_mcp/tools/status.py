"""Server diagnostics tool."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from linear_mcp.server.config import SERVER_VERSION

if TYPE_CHECKING:
    from mcp.server.fastmcp import FastMCP

    from linear_mcp.server import ServerState


def register_status_tools(
    mcp: FastMCP,
    state: ServerState,
    tool_if_enabled: Callable,
) -> None:
    @tool_if_enabled
    async def linear_server_status() -> dict[str, Any]:
        """Report session health and cache usage.

        Returns:
            Connection state (phase, reconnect attempts, heartbeat age),
            cache statistics and the enabled tools
        """
        stats = state.cache.stats()
        return {
            "version": SERVER_VERSION,
            "connection": state.connection.snapshot(),
            "cache": {
                "size": stats.size,
                "oldest_entry": stats.oldest_entry,
                "newest_entry": stats.newest_entry,
                "sweeping": state.cache.sweeping,
            },
            "enabled_tools": sorted(state.enabled_tools),
        }
