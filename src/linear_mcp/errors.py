"""Exception types and error logging helpers."""

from __future__ import annotations

import errno
from typing import Any

import anyio

from linear_mcp.logging_config import get_logger

logger = get_logger("errors")


class LinearMCPError(Exception):
    """Base class for linear-mcp errors."""


class ConfigError(LinearMCPError):
    """Missing or invalid configuration. Fatal at startup."""


class LinearAPIError(LinearMCPError):
    """The Linear API rejected or failed a request."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        errors: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.errors = errors or []


class TransportError(LinearMCPError):
    """A fault on the local message channel."""


class HeartbeatTimeout(TransportError):
    """No heartbeat or handshake message arrived in time."""

    def __init__(self, age: float, threshold: float) -> None:
        super().__init__(
            f"heartbeat timeout: no heartbeat for {age:.1f}s "
            f"(threshold {threshold:.1f}s)"
        )
        self.age = age
        self.threshold = threshold


class SessionStartError(LinearMCPError):
    """The session never reached the connected state."""


def is_broken_pipe(error: BaseException | None) -> bool:
    """Check whether an error means the far end of the channel is gone.

    Looks through exception groups and explicit causes, since the stdio
    transport reports writer failures wrapped in a task group error.
    """
    seen: set[int] = set()
    pending = [error]
    while pending:
        exc = pending.pop()
        if exc is None or id(exc) in seen:
            continue
        seen.add(id(exc))
        if isinstance(exc, (BrokenPipeError, anyio.BrokenResourceError)):
            return True
        if isinstance(exc, OSError) and exc.errno == errno.EPIPE:
            return True
        if isinstance(exc, BaseExceptionGroup):
            pending.extend(exc.exceptions)
        pending.append(exc.__cause__)
    return False


def log_error(error: BaseException, context: str) -> None:
    """Log an error with context and any structured upstream details."""
    details = getattr(error, "errors", None)
    if details:
        logger.error("%s: %s (details: %s)", context, error, details)
    else:
        logger.error("%s: %s", context, error, exc_info=error)
