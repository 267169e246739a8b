"""Server configuration constants and tool category management."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from linear_mcp.cache import CACHE_SWEEP_INTERVAL_SECONDS, CACHE_TTL_SECONDS
from linear_mcp.errors import ConfigError
from linear_mcp.linear.client import LINEAR_API_URL
from linear_mcp.logging_config import is_debug_enabled
from linear_mcp.paths import get_data_dir
from linear_mcp.session.shutdown import SHUTDOWN_GRACE_PERIOD_SECONDS
from linear_mcp.session.transport import (
    HEARTBEAT_INTERVAL_SECONDS,
    MAX_RECONNECT_ATTEMPTS,
    RECONNECT_DELAY_SECONDS,
)
from linear_mcp.timeout import API_TIMEOUT_SECONDS

SERVER_NAME = "linear"
SERVER_VERSION = "1.0.0"

# Environment variable names
ENV_API_KEY = "LINEAR_API_KEY"
ENV_API_URL = "LINEAR_API_URL"
ENV_TOOLS = "LINEAR_MCP_TOOLS"
ENV_HEARTBEAT_INTERVAL = "LINEAR_MCP_HEARTBEAT_INTERVAL"
ENV_API_TIMEOUT = "LINEAR_MCP_API_TIMEOUT"

# Bulk operations run this many upstream requests at once
BULK_UPDATE_BATCH_SIZE = 5

# ---------------------------------------------------------------------------
# Tool Categories - controls which tools are exposed via LINEAR_MCP_TOOLS
# ---------------------------------------------------------------------------
# Default: all categories
# e.g., LINEAR_MCP_TOOLS=issues,teams

TOOL_CATEGORIES: dict[str, set[str]] = {
    # Issue search, details, creation and bulk status changes
    "issues": {
        "linear_create_issue",
        "linear_search_issues",
        "linear_get_issue_details",
        "linear_bulk_update_status",
    },
    # Teams and their current sprint
    "teams": {
        "linear_search_teams",
        "linear_sprint_issues",
        "linear_filter_sprint_issues",
    },
    # Cycle management
    "cycles": {
        "linear_manage_cycle",
    },
    # Session and cache diagnostics
    "status": {
        "linear_server_status",
    },
}

DEFAULT_TOOL_CATEGORIES: set[str] = set(TOOL_CATEGORIES)


def get_enabled_categories(value: str | None = None) -> set[str]:
    """Get enabled tool categories from LINEAR_MCP_TOOLS.

    Args:
        value: Comma-separated categories (default: read the env var)

    Returns:
        Set of enabled category names. Defaults to every category.
    """
    if value is None:
        value = os.environ.get(ENV_TOOLS, "")
    value = value.strip()
    if not value or value.lower() == "all":
        return DEFAULT_TOOL_CATEGORIES.copy()
    return {c.strip().lower() for c in value.split(",") if c.strip()}


def get_enabled_tools(categories: set[str] | None = None) -> set[str]:
    """Get set of enabled tool names based on enabled categories."""
    if categories is None:
        categories = get_enabled_categories()
    tools: set[str] = set()
    for cat in categories:
        if cat in TOOL_CATEGORIES:
            tools.update(TOOL_CATEGORIES[cat])
    return tools


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None


@dataclass
class LinearConfig:
    """Configuration for the Linear MCP server.

    Environment variables:
        LINEAR_API_KEY: Linear personal API key (required)
        LINEAR_API_URL: GraphQL endpoint override
        LINEAR_MCP_TOOLS: Comma-separated tool categories, or "all"
        LINEAR_MCP_HEARTBEAT_INTERVAL: Seconds between expected client
            heartbeats; 0 disables heartbeat supervision
        LINEAR_MCP_API_TIMEOUT: Seconds before an API call is abandoned
        LINEAR_MCP_DEBUG: Debug logging and debug.log in the data dir
        LINEAR_MCP_DATA_DIR: Data directory override

    Example MCP config:
        {
          "mcpServers": {
            "linear": {
              "command": "linear-mcp",
              "args": ["serve"],
              "env": {"LINEAR_API_KEY": "lin_api_..."}
            }
          }
        }
    """

    api_key: str = field(
        default_factory=lambda: os.environ.get(ENV_API_KEY, "")
    )
    api_url: str = field(
        default_factory=lambda: os.environ.get(ENV_API_URL, LINEAR_API_URL)
    )
    tools: str = field(default_factory=lambda: os.environ.get(ENV_TOOLS, ""))
    debug: bool = field(default_factory=is_debug_enabled)
    data_dir: Path = field(default_factory=get_data_dir)
    heartbeat_interval: float = field(
        default_factory=lambda: _env_float(
            ENV_HEARTBEAT_INTERVAL, HEARTBEAT_INTERVAL_SECONDS
        )
    )
    api_timeout: float = field(
        default_factory=lambda: _env_float(
            ENV_API_TIMEOUT, API_TIMEOUT_SECONDS
        )
    )
    max_reconnect_attempts: int = MAX_RECONNECT_ATTEMPTS
    reconnect_delay: float = RECONNECT_DELAY_SECONDS
    grace_period: float = SHUTDOWN_GRACE_PERIOD_SECONDS
    cache_ttl: float = CACHE_TTL_SECONDS
    cache_sweep_interval: float = CACHE_SWEEP_INTERVAL_SECONDS

    @property
    def enabled_tools(self) -> set[str]:
        return get_enabled_tools(get_enabled_categories(self.tools))

    def validate(self) -> None:
        """Check the configuration before anything starts.

        Raises:
            ConfigError: On a missing API key or an out-of-range setting
        """
        if not self.api_key:
            raise ConfigError(
                f"{ENV_API_KEY} is not set. Create a personal API key in "
                "Linear (Settings > API) and export it."
            )
        if any(c.isspace() for c in self.api_key):
            raise ConfigError(f"{ENV_API_KEY} must not contain whitespace")
        if self.api_timeout <= 0:
            raise ConfigError("API timeout must be positive")
        if self.heartbeat_interval < 0:
            raise ConfigError("heartbeat interval must not be negative")
        if self.max_reconnect_attempts < 0:
            raise ConfigError("max reconnect attempts must not be negative")
        if self.reconnect_delay < 0 or self.grace_period < 0:
            raise ConfigError("delays must not be negative")
        if self.cache_ttl <= 0 or self.cache_sweep_interval <= 0:
            raise ConfigError("cache TTL and sweep interval must be positive")

        unknown = get_enabled_categories(self.tools) - set(TOOL_CATEGORIES)
        if unknown:
            raise ConfigError(
                f"unknown tool categories: {', '.join(sorted(unknown))} "
                f"(available: {', '.join(sorted(TOOL_CATEGORIES))})"
            )
