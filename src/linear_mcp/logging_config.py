"""Structured logging setup.

stdout carries the MCP protocol, so every log line goes to stderr. Set
LINEAR_MCP_DEBUG=1 to enable debug output and a debug.log file in the
data directory.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Any

import structlog

ENV_DEBUG = "LINEAR_MCP_DEBUG"

_configured = False


def is_debug_enabled() -> bool:
    val = os.environ.get(ENV_DEBUG, "").lower()
    return val in ("1", "true", "yes", "on")


def configure_logging(
    data_dir: Path | None = None,
    debug: bool | None = None,
) -> None:
    """Configure structlog on top of stdlib logging.

    Args:
        data_dir: Directory for debug.log (only written in debug mode)
        debug: Force debug mode (default: from LINEAR_MCP_DEBUG)
    """
    global _configured

    if debug is None:
        debug = is_debug_enabled()
    level = logging.DEBUG if debug else logging.INFO

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.dev.ConsoleRenderer(colors=False),
        foreign_pre_chain=shared_processors,
    )

    handlers: list[logging.Handler] = []
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(formatter)
    handlers.append(stderr_handler)

    if debug and data_dir is not None:
        data_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(data_dir / "debug.log")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    root = logging.getLogger("linear_mcp")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False

    # aiohttp and the mcp sdk are chatty at debug level
    logging.getLogger("mcp").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger namespaced under linear_mcp."""
    return structlog.get_logger(f"linear_mcp.{name}")


def flush_logging() -> None:
    """Flush every handler attached to the linear_mcp logger."""
    for handler in logging.getLogger("linear_mcp").handlers:
        try:
            handler.flush()
        except (OSError, ValueError):
            pass
