"""MCP tool modules.

Each module exports a register_*_tools function that registers
tools with the MCP server using the provided state and decorator.
"""

from linear_mcp.tools.cycles import register_cycle_tools
from linear_mcp.tools.issues import register_issue_tools
from linear_mcp.tools.status import register_status_tools
from linear_mcp.tools.teams import register_team_tools

__all__ = [
    "register_cycle_tools",
    "register_issue_tools",
    "register_status_tools",
    "register_team_tools",
]
