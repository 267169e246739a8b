"""Deadline guard for upstream calls.

with_timeout() stops *waiting* for an operation once its deadline passes;
it never cancels the operation itself. A TimedOut result means "outcome
unknown", not "operation aborted": a timed-out mutation may still land.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from linear_mcp.errors import LinearMCPError
from linear_mcp.logging_config import get_logger

logger = get_logger("timeout")

T = TypeVar("T")

API_TIMEOUT_SECONDS = 30.0


class TimedOut(LinearMCPError, TimeoutError):
    """An operation did not finish before its deadline.

    ``mutation`` is set when the operation writes upstream, so the change
    may still have been applied.
    """

    def __init__(
        self, context: str, timeout: float, mutation: bool = False
    ) -> None:
        super().__init__(f"timeout after {timeout:g}s: {context}")
        self.context = context
        self.timeout = timeout
        self.mutation = mutation


def _drain_abandoned(context: str, task: asyncio.Future) -> None:
    # retrieve the late outcome so asyncio doesn't warn about it
    if task.cancelled():
        logger.debug("abandoned operation cancelled: %s", context)
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("abandoned operation failed late: %s: %s", context, exc)
    else:
        logger.debug("abandoned operation completed late: %s", context)


async def with_timeout(
    awaitable: Awaitable[T],
    timeout: float = API_TIMEOUT_SECONDS,
    context: str = "operation",
    mutation: bool = False,
) -> T:
    """Await an operation, giving up after ``timeout`` seconds.

    Args:
        awaitable: Coroutine or future to wait on
        timeout: Deadline in seconds
        context: Label included in the TimedOut message
        mutation: The operation changes upstream state

    Returns:
        The operation's result if it finishes first

    Raises:
        TimedOut: If the deadline elapses first
        Exception: Whatever the operation itself raises, unchanged
    """
    task = asyncio.ensure_future(awaitable)
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout)
    except asyncio.CancelledError:
        task.add_done_callback(lambda t: _drain_abandoned(context, t))
        raise
    if task in done:
        return task.result()

    task.add_done_callback(lambda t: _drain_abandoned(context, t))
    error = TimedOut(context, timeout, mutation)
    logger.warning("operation timed out: %s", error)
    raise error
