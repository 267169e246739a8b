import asyncio
import errno
import os
import signal
import sys
import threading
from contextlib import contextmanager

import pytest

from linear_mcp.session.shutdown import (
    EXIT_FAILURE,
    EXIT_OK,
    ShutdownCoordinator,
    ShutdownReason,
    exit_code_for,
    install_process_hooks,
)
from linear_mcp.session.state import ConnectionState, SessionPhase


class RecordingSleep:
    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def make_coordinator(**kwargs):
    state = ConnectionState()
    sleep = RecordingSleep()
    exits: list[int] = []
    coordinator = ShutdownCoordinator(
        state,
        grace_period=kwargs.pop("grace_period", 5.0),
        exit_process=exits.append,
        sleep=sleep,
    )
    return coordinator, state, sleep, exits


class TestExitCodes:
    @pytest.mark.parametrize(
        "reason,code",
        [
            (ShutdownReason.SIGNAL, EXIT_OK),
            (ShutdownReason.PIPE_CLOSED, EXIT_OK),
            (ShutdownReason.REQUESTED, EXIT_OK),
            (ShutdownReason.FATAL_ERROR, EXIT_FAILURE),
            (ShutdownReason.RECONNECT_EXHAUSTED, EXIT_FAILURE),
        ],
    )
    def test_exit_code_for(self, reason, code):
        assert exit_code_for(reason) == code


@pytest.mark.asyncio
class TestShutdownCoordinator:
    async def test_sequence(self):
        coordinator, state, sleep, exits = make_coordinator()
        order = []

        async def close_channel():
            order.append("channel")

        async def close_state():
            order.append("state")

        coordinator.add_close_callback(close_channel, "channel")
        coordinator.add_close_callback(close_state, "state")

        await coordinator.shutdown(ShutdownReason.SIGNAL)

        assert order == ["channel", "state"]
        assert sleep.calls == [5.0]
        assert state.phase == SessionPhase.TERMINATED
        assert state.shutdown_reason == "signal"
        assert exits == [EXIT_OK]
        assert coordinator.exit_code == EXIT_OK

    async def test_runs_exactly_once(self):
        coordinator, state, sleep, exits = make_coordinator()
        calls = []

        async def close():
            calls.append(1)

        coordinator.add_close_callback(close)

        await asyncio.gather(
            coordinator.shutdown(ShutdownReason.PIPE_CLOSED),
            coordinator.shutdown(ShutdownReason.FATAL_ERROR),
            coordinator.shutdown(ShutdownReason.SIGNAL),
        )

        assert calls == [1]
        assert exits == [EXIT_OK]
        assert state.shutdown_reason == "pipe_closed"
        assert len(sleep.calls) == 1

    async def test_callback_errors_do_not_stop_teardown(self):
        coordinator, state, _, exits = make_coordinator()
        ran = []

        async def broken_pipe():
            raise BrokenPipeError(errno.EPIPE, "broken pipe")

        async def failing():
            raise RuntimeError("close failed")

        async def last():
            ran.append("last")

        coordinator.add_close_callback(broken_pipe, "pipe")
        coordinator.add_close_callback(failing, "failing")
        coordinator.add_close_callback(last, "last")

        await coordinator.shutdown(
            ShutdownReason.FATAL_ERROR, RuntimeError("fatal")
        )

        assert ran == ["last"]
        assert exits == [EXIT_FAILURE]
        assert state.phase == SessionPhase.TERMINATED

    async def test_wait_terminated(self):
        coordinator, _, _, _ = make_coordinator()
        waiter = asyncio.create_task(coordinator.wait_terminated())
        await asyncio.sleep(0)
        assert not waiter.done()

        await coordinator.shutdown(ShutdownReason.RECONNECT_EXHAUSTED)
        assert await waiter == EXIT_FAILURE

    async def test_request_shutdown_schedules_task(self):
        coordinator, state, _, exits = make_coordinator()
        task = coordinator.request_shutdown(ShutdownReason.SIGNAL)
        assert task is not None
        await task
        assert exits == [EXIT_OK]
        assert coordinator.request_shutdown(ShutdownReason.SIGNAL) is None

    async def test_without_exit_process(self):
        state = ConnectionState()
        coordinator = ShutdownCoordinator(
            state, grace_period=0, sleep=RecordingSleep()
        )
        await coordinator.shutdown(ShutdownReason.REQUESTED)
        assert coordinator.exit_code == EXIT_OK


@contextmanager
def process_hooks(coordinator):
    loop = asyncio.get_running_loop()
    previous_loop_handler = loop.get_exception_handler()
    previous_thread_hook = threading.excepthook
    previous_sys_hook = sys.excepthook
    install_process_hooks(coordinator, loop)
    try:
        yield loop
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        loop.set_exception_handler(previous_loop_handler)
        threading.excepthook = previous_thread_hook
        sys.excepthook = previous_sys_hook


@pytest.mark.asyncio
class TestProcessHooks:
    async def test_signal_and_loop_error_tear_down_once(self):
        coordinator, state, _, exits = make_coordinator()
        closes = []

        async def close():
            closes.append(1)
            await asyncio.sleep(0)

        coordinator.add_close_callback(close)

        with process_hooks(coordinator) as loop:
            os.kill(os.getpid(), signal.SIGINT)
            loop.call_exception_handler(
                {"message": "task failed", "exception": RuntimeError("boom")}
            )
            await asyncio.wait_for(coordinator.wait_terminated(), 2.0)
            # let the pending signal callback run before the handlers go
            await asyncio.sleep(0.05)

        assert closes == [1]
        assert len(exits) == 1
        reason = ShutdownReason(state.shutdown_reason)
        assert reason in (ShutdownReason.SIGNAL, ShutdownReason.FATAL_ERROR)
        assert exits == [exit_code_for(reason)]

    async def test_sigterm_is_a_clean_exit(self):
        coordinator, state, _, exits = make_coordinator()

        with process_hooks(coordinator):
            os.kill(os.getpid(), signal.SIGTERM)
            await asyncio.wait_for(coordinator.wait_terminated(), 2.0)

        assert state.shutdown_reason == "signal"
        assert exits == [EXIT_OK]

    async def test_loop_warning_without_exception_is_ignored(self):
        coordinator, state, _, exits = make_coordinator()

        with process_hooks(coordinator) as loop:
            loop.call_exception_handler({"message": "slow callback"})
            await asyncio.sleep(0)

        assert not state.shutting_down
        assert exits == []

    async def test_thread_exception_is_fatal(self):
        coordinator, state, _, exits = make_coordinator()

        def crash():
            raise RuntimeError("reader thread died")

        with process_hooks(coordinator):
            worker = threading.Thread(target=crash, name="stdin-reader")
            worker.start()
            worker.join()
            await asyncio.wait_for(coordinator.wait_terminated(), 2.0)

        assert state.shutdown_reason == "fatal_error"
        assert exits == [EXIT_FAILURE]

    async def test_uncaught_exception_is_fatal(self):
        coordinator, state, _, exits = make_coordinator()

        with process_hooks(coordinator):
            error = ValueError("escaped")
            sys.excepthook(ValueError, error, None)
            await asyncio.wait_for(coordinator.wait_terminated(), 2.0)

        assert state.shutdown_reason == "fatal_error"
        assert exits == [EXIT_FAILURE]
