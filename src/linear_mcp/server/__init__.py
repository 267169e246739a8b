"""Server configuration, shared state and formatting helpers."""

from linear_mcp.server.config import (
    BULK_UPDATE_BATCH_SIZE,
    SERVER_NAME,
    SERVER_VERSION,
    TOOL_CATEGORIES,
    LinearConfig,
    get_enabled_categories,
    get_enabled_tools,
)
from linear_mcp.server.state import ServerState
from linear_mcp.server.utils import (
    format_date,
    format_datetime,
    format_issue_line,
    format_issue_summary,
    parse_iso_date,
    tool_error,
    utcnow,
)

__all__ = [
    "BULK_UPDATE_BATCH_SIZE",
    "SERVER_NAME",
    "SERVER_VERSION",
    "TOOL_CATEGORIES",
    "LinearConfig",
    "ServerState",
    "format_date",
    "format_datetime",
    "format_issue_line",
    "format_issue_summary",
    "get_enabled_categories",
    "get_enabled_tools",
    "parse_iso_date",
    "tool_error",
    "utcnow",
]
