"""MCP server for the Linear issue tracker."""

from linear_mcp.batch import process_batch
from linear_mcp.cache import CacheStats, TTLCache
from linear_mcp.errors import (
    ConfigError,
    LinearAPIError,
    LinearMCPError,
    SessionStartError,
    TransportError,
)
from linear_mcp.timeout import TimedOut, with_timeout

__version__ = "1.0.0"

__all__ = [
    "CacheStats",
    "ConfigError",
    "LinearAPIError",
    "LinearMCPError",
    "SessionStartError",
    "TTLCache",
    "TimedOut",
    "TransportError",
    "process_batch",
    "with_timeout",
]
