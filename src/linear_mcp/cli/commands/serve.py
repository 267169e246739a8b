"""Serve command - run the MCP server on stdio."""

from __future__ import annotations

from dataclasses import dataclass, field

from linear_mcp import console
from linear_mcp.errors import ConfigError
from linear_mcp.mcp_server import run_server
from linear_mcp.server.config import LinearConfig


@dataclass
class Serve:
    """Run the Linear MCP server over stdin/stdout."""

    tools: str | None = field(
        default=None,
        metadata={
            "help": "Comma-separated tool categories "
            "(issues,teams,cycles,status) or 'all'"
        },
    )
    heartbeat_interval: float | None = field(
        default=None,
        metadata={"help": "Seconds between client heartbeats (0 disables)"},
    )
    api_timeout: float | None = field(
        default=None,
        metadata={"help": "Seconds before a Linear API call is abandoned"},
    )

    def build_config(self) -> LinearConfig:
        config = LinearConfig()
        if self.tools is not None:
            config.tools = self.tools
        if self.heartbeat_interval is not None:
            config.heartbeat_interval = self.heartbeat_interval
        if self.api_timeout is not None:
            config.api_timeout = self.api_timeout
        config.validate()
        return config

    def run(self) -> int:
        """Execute the serve command."""
        try:
            config = self.build_config()
        except ConfigError as e:
            console.error(str(e))
            return 1
        return run_server(config)
