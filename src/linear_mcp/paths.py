"""Path utilities for linear-mcp data directories.

linear-mcp keeps nothing durable; the data directory only holds the
debug log written when LINEAR_MCP_DEBUG is set.

Environment variables:
    LINEAR_MCP_DATA_DIR: Override the data directory location.

XDG Base Directory compliance:
    Default location: $XDG_CACHE_HOME/linear-mcp
    Falls back to: ~/.cache/linear-mcp
"""

from __future__ import annotations

import os
from pathlib import Path

ENV_DATA_DIR = "LINEAR_MCP_DATA_DIR"

DATA_DIR_NAME = "linear-mcp"


def get_xdg_cache_home() -> Path:
    """Get XDG cache home directory.

    Returns $XDG_CACHE_HOME if set, otherwise ~/.cache
    """
    xdg_cache = os.environ.get("XDG_CACHE_HOME")
    if xdg_cache:
        return Path(xdg_cache)
    return Path.home() / ".cache"


def get_data_dir() -> Path:
    """Get the data directory for linear-mcp.

    Priority:
    1. LINEAR_MCP_DATA_DIR env var
    2. $XDG_CACHE_HOME/linear-mcp

    Returns:
        Path to the data directory (not created)
    """
    env_dir = os.environ.get(ENV_DATA_DIR)
    if env_dir:
        return Path(env_dir)
    return get_xdg_cache_home() / DATA_DIR_NAME
