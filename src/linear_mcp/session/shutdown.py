"""Graceful, exactly-once shutdown.

Any trigger (signal, fatal error, pipe closure, exhausted reconnects)
funnels into ShutdownCoordinator.shutdown(). The first call latches the
connection state and runs the teardown; every later call is a no-op.

Teardown order: close callbacks (transport channel first), a fixed grace
period so in-flight responses can flush, then process exit.
"""

from __future__ import annotations

import asyncio
import os
import signal
import sys
import threading
from collections.abc import Awaitable, Callable
from typing import cast
from enum import Enum

from linear_mcp.errors import is_broken_pipe, log_error
from linear_mcp.logging_config import flush_logging, get_logger
from linear_mcp.session.state import ConnectionState

logger = get_logger("session.shutdown")

SHUTDOWN_GRACE_PERIOD_SECONDS = 5.0

EXIT_OK = 0
EXIT_FAILURE = 1

CloseCallback = Callable[[], Awaitable[None]]


class ShutdownReason(str, Enum):
    SIGNAL = "signal"
    FATAL_ERROR = "fatal_error"
    PIPE_CLOSED = "pipe_closed"
    RECONNECT_EXHAUSTED = "reconnect_exhausted"
    REQUESTED = "requested"


def exit_code_for(reason: ShutdownReason) -> int:
    """Map a shutdown reason to a process exit status.

    Clean endings (signal, client hung up, explicit request) exit 0;
    faults and an unrecoverable channel exit 1.
    """
    if reason in (
        ShutdownReason.FATAL_ERROR,
        ShutdownReason.RECONNECT_EXHAUSTED,
    ):
        return EXIT_FAILURE
    return EXIT_OK


def hard_exit(code: int) -> None:
    """Terminate the process immediately after flushing output.

    The stdin reader runs in a worker thread that cannot be interrupted,
    so a regular interpreter shutdown would block on it.
    """
    flush_logging()
    for stream in (sys.stdout, sys.stderr):
        try:
            stream.flush()
        except (OSError, ValueError):
            pass
    os._exit(code)


class ShutdownCoordinator:
    """Runs the teardown sequence once, whatever triggers it."""

    def __init__(
        self,
        state: ConnectionState,
        grace_period: float = SHUTDOWN_GRACE_PERIOD_SECONDS,
        exit_process: Callable[[int], None] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._state = state
        self._grace_period = grace_period
        self._exit_process = exit_process
        self._sleep = sleep
        self._callbacks: list[tuple[str, CloseCallback]] = []
        self._terminated = asyncio.Event()
        self._exit_code: int | None = None
        self._pending: set[asyncio.Task] = set()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def exit_code(self) -> int | None:
        return self._exit_code

    def add_close_callback(
        self, callback: CloseCallback, name: str | None = None
    ) -> None:
        """Register an async callback to run during teardown, in order."""
        label = name or getattr(callback, "__qualname__", repr(callback))
        self._callbacks.append((label, callback))

    async def shutdown(
        self,
        reason: ShutdownReason,
        error: BaseException | None = None,
    ) -> None:
        """Tear down the session. Safe to call from any trigger, any number
        of times; only the first call does anything."""
        if not self._state.latch_shutdown(reason.value):
            logger.debug(
                "shutdown already in progress, ignoring trigger: %s",
                reason.value,
            )
            return

        if error is not None:
            log_error(error, f"shutting down ({reason.value})")
        else:
            logger.info("shutting down gracefully (reason=%s)...", reason.value)

        for name, callback in self._callbacks:
            try:
                await callback()
            except Exception as e:
                if is_broken_pipe(e):
                    logger.debug("pipe already closed while closing %s", name)
                else:
                    log_error(e, f"error while closing {name}")

        logger.debug(
            "waiting %.1fs for in-flight responses to flush", self._grace_period
        )
        await self._sleep(self._grace_period)

        code = exit_code_for(reason)
        self._state.mark_terminated()
        self._exit_code = code
        self._terminated.set()
        logger.info("shutdown complete (exit code %d)", code)

        if self._exit_process is not None:
            self._exit_process(code)

    def request_shutdown(
        self,
        reason: ShutdownReason,
        error: BaseException | None = None,
    ) -> asyncio.Task | None:
        """Schedule shutdown from a synchronous context (signal handler,
        loop exception handler). Must run on the event loop thread."""
        if self._state.shutting_down:
            return None
        task = asyncio.ensure_future(self.shutdown(reason, error))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def wait_terminated(self) -> int:
        """Block until teardown finished. Returns the exit code."""
        await self._terminated.wait()
        return cast(int, self._exit_code)


def install_process_hooks(
    coordinator: ShutdownCoordinator,
    loop: asyncio.AbstractEventLoop | None = None,
) -> None:
    """Route signals and unhandled errors into the coordinator.

    Covers SIGINT/SIGTERM, exceptions nobody retrieved from asyncio tasks,
    and uncaught exceptions in worker threads or reaching the interpreter's
    top level. Faults in the main
    coroutine are handled by its caller.
    """
    if loop is None:
        loop = asyncio.get_running_loop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(
                sig, coordinator.request_shutdown, ShutdownReason.SIGNAL
            )
        except (NotImplementedError, RuntimeError):
            # no signal support on this platform/loop
            pass

    def handle_loop_exception(
        loop: asyncio.AbstractEventLoop, context: dict
    ) -> None:
        exc = context.get("exception")
        message = context.get("message", "unhandled error")
        if exc is None:
            logger.warning("event loop: %s", message)
            return
        logger.error("unhandled error in event loop: %s", message)
        coordinator.request_shutdown(ShutdownReason.FATAL_ERROR, exc)

    loop.set_exception_handler(handle_loop_exception)

    def handle_thread_exception(args: threading.ExceptHookArgs) -> None:
        exc = args.exc_value
        if exc is None or isinstance(exc, SystemExit):
            return
        logger.error(
            "uncaught exception in thread %s: %s",
            args.thread.name if args.thread else "?",
            exc,
        )
        loop.call_soon_threadsafe(
            coordinator.request_shutdown, ShutdownReason.FATAL_ERROR, exc
        )

    threading.excepthook = handle_thread_exception

    previous_excepthook = sys.excepthook

    def handle_uncaught(exc_type, exc_value, exc_tb) -> None:
        if issubclass(exc_type, KeyboardInterrupt) or loop.is_closed():
            previous_excepthook(exc_type, exc_value, exc_tb)
            return
        logger.error("uncaught exception: %s", exc_value)
        loop.call_soon_threadsafe(
            coordinator.request_shutdown, ShutdownReason.FATAL_ERROR, exc_value
        )

    sys.excepthook = handle_uncaught
