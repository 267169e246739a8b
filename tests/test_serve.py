import asyncio
import sys
import threading

import pytest

from linear_mcp.errors import LinearAPIError
from linear_mcp.linear.client import LinearClient
from linear_mcp.mcp_server import serve
from linear_mcp.server import LinearConfig, ServerState
from linear_mcp.session.transport import (
    ChannelClosed,
    InboundMessage,
    TransportFault,
)

VIEWER = {"viewer": {"id": "u1", "name": "Ada"}}


class ViewerClient(LinearClient):
    def __init__(self, response):
        super().__init__("lin_api_test", timeout=1.0)
        self.response = response
        self.closed = False

    async def execute(self, query, variables=None):
        if isinstance(self.response, BaseException):
            raise self.response
        return self.response

    async def aclose(self):
        self.closed = True


class ScriptedChannel:
    """Replays a fixed list of events once connected."""

    def __init__(self, events, fail_connect=False):
        self.events = events
        self.fail_connect = fail_connect
        self.connects: list[bool] = []
        self.closed = False
        self.emit = None

    async def connect(self, emit, *, resume):
        self.emit = emit
        self.connects.append(resume)
        if self.fail_connect:
            raise RuntimeError("stdio unavailable")
        for event in self.events:
            emit(event)

    async def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def restore_hooks(monkeypatch):
    # serve() installs process-wide hooks
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    monkeypatch.setattr(threading, "excepthook", threading.excepthook)


def make_config():
    return LinearConfig(
        api_key="lin_api_test",
        heartbeat_interval=0,
        grace_period=0,
        reconnect_delay=0,
    )


@pytest.mark.asyncio
class TestServe:
    async def test_clean_session(self):
        config = make_config()
        client = ViewerClient(VIEWER)
        state = ServerState(config, client=client)
        channel = ScriptedChannel(
            [InboundMessage("initialize", 1), ChannelClosed()]
        )
        exits = []

        code = await asyncio.wait_for(
            serve(
                config,
                state=state,
                channel_factory=lambda mcp: channel,
                exit_process=exits.append,
            ),
            timeout=2.0,
        )

        assert code == 0
        assert exits == [0]
        assert channel.connects == [False]
        assert channel.closed
        assert client.closed
        assert state.connection.shutdown_reason == "pipe_closed"
        assert not state.cache.sweeping

    async def test_rejected_api_key(self):
        config = make_config()
        client = ViewerClient(LinearAPIError("Authentication required", 401))
        state = ServerState(config, client=client)
        channel = ScriptedChannel([])

        code = await serve(
            config, state=state, channel_factory=lambda mcp: channel
        )

        assert code == 1
        assert channel.connects == []
        assert client.closed

    async def test_transport_start_failure(self):
        config = make_config()
        state = ServerState(config, client=ViewerClient(VIEWER))
        channel = ScriptedChannel([], fail_connect=True)

        code = await serve(
            config, state=state, channel_factory=lambda mcp: channel
        )

        assert code == 1
        assert not state.connection.shutting_down

    async def test_reconnects_exhausted(self):
        config = make_config()
        config.max_reconnect_attempts = 2
        state = ServerState(config, client=ViewerClient(VIEWER))
        channel = ScriptedChannel([])

        task = asyncio.create_task(
            serve(config, state=state, channel_factory=lambda mcp: channel)
        )
        while not channel.connects:
            await asyncio.sleep(0)
        for i in range(3):
            channel.emit(TransportFault(RuntimeError(f"fault {i}")))

        code = await asyncio.wait_for(task, timeout=2.0)

        assert code == 1
        assert channel.connects == [False, True, True]
        assert state.connection.shutdown_reason == "reconnect_exhausted"
