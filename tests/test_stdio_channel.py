import asyncio
import io
import json

import anyio
from mcp.shared.message import SessionMessage
from mcp.types import JSONRPCMessage, JSONRPCNotification
import pytest

from linear_mcp.linear.client import LinearClient
from linear_mcp.mcp_server import create_server
from linear_mcp.server import LinearConfig, ServerState
from linear_mcp.session.stdio import StdioChannel
from linear_mcp.session.transport import (
    ChannelClosed,
    InboundMessage,
    TransportFault,
)

INITIALIZE = {
    "jsonrpc": "2.0",
    "id": 1,
    "method": "initialize",
    "params": {
        "protocolVersion": "2024-11-05",
        "capabilities": {},
        "clientInfo": {"name": "test-client", "version": "0.1"},
    },
}
INITIALIZED = {"jsonrpc": "2.0", "method": "notifications/initialized"}
HEARTBEAT = {"jsonrpc": "2.0", "method": "server/heartbeat"}


def jsonl(*messages) -> str:
    return "".join(
        m if isinstance(m, str) else json.dumps(m) + "\n" for m in messages
    )


def make_channel(stdin_text: str):
    state = ServerState(
        LinearConfig(api_key="k"), client=LinearClient("k", timeout=1.0)
    )
    mcp = create_server(state)
    stdout = io.StringIO()
    channel = StdioChannel(
        mcp._mcp_server,
        stdin=anyio.wrap_file(io.StringIO(stdin_text)),
        stdout=anyio.wrap_file(stdout),
        close_timeout=0.5,
    )
    return channel, stdout


def saw_eof(events) -> bool:
    return any(isinstance(e, ChannelClosed) for e in events)


async def wait_for(predicate, timeout=2.0):
    async def poll():
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(poll(), timeout)


@pytest.mark.asyncio
class TestStdioChannel:
    async def test_reports_messages_and_eof(self):
        events = []
        channel, stdout = make_channel(
            jsonl(INITIALIZE, INITIALIZED, HEARTBEAT)
        )

        await channel.connect(events.append, resume=False)
        try:
            await wait_for(lambda: saw_eof(events))
            await wait_for(lambda: '"id":1' in stdout.getvalue())
        finally:
            await channel.close()

        methods = [e.method for e in events if isinstance(e, InboundMessage)]
        assert methods == [
            "initialize",
            "notifications/initialized",
            "server/heartbeat",
        ]
        response = json.loads(stdout.getvalue().splitlines()[0])
        assert response["result"]["serverInfo"]["name"] == "linear"

    async def test_invalid_json_is_a_fault(self):
        events = []
        channel, _ = make_channel(jsonl("{not json\n"))

        await channel.connect(events.append, resume=False)
        try:
            await wait_for(lambda: saw_eof(events))
        finally:
            await channel.close()

        faults = [e for e in events if isinstance(e, TransportFault)]
        assert len(faults) == 1
        assert "invalid message" in str(faults[0].error)

    async def test_reconnect_starts_new_session(self):
        events = []
        channel, _ = make_channel("")

        await channel.connect(events.append, resume=False)
        first = channel.generation
        await channel.connect(events.append, resume=True)
        try:
            assert channel.generation > first
            assert channel.session_active
        finally:
            await channel.close()

        # replacing a session is not a fault
        assert not any(isinstance(e, TransportFault) for e in events)

    async def test_connect_after_close_fails(self):
        channel, _ = make_channel("")
        await channel.connect(lambda e: None, resume=False)
        await channel.close()
        with pytest.raises(Exception, match="channel is closed"):
            await channel.connect(lambda e: None, resume=True)

    async def test_dead_session_faults_once_per_generation(self):
        events = []
        channel, _ = make_channel("")
        channel._emit = events.append
        ping = SessionMessage(
            JSONRPCMessage(JSONRPCNotification(jsonrpc="2.0", method="ping"))
        )

        def dead_session(generation):
            send, receive = anyio.create_memory_object_stream[
                SessionMessage | Exception
            ](0)
            receive.close()
            channel.generation = generation
            channel._session_in = send
            return send

        first = dead_session(1)
        for _ in range(3):
            await channel._forward(ping, "ping")
        assert len(events) == 1

        second = dead_session(2)
        channel._report_session_fault(1, RuntimeError("stale session"))
        assert len(events) == 1

        await channel._forward(ping, "ping")
        await channel._forward(ping, "ping")
        first.close()
        second.close()

        assert len(events) == 2
        assert all(isinstance(e, TransportFault) for e in events)
        assert "not accepting input" in str(events[1].error)
