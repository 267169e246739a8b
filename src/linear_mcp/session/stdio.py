"""MCP stdio channel with re-attachable protocol sessions.

The process owns stdin/stdout for its whole life, but the low-level MCP
session closes the streams it was given when it ends. So the stdio streams
are opened once and every (re)connect gets a fresh pair of in-memory
streams plus its own Server.run() task:

    stdin -> inbound pump -> [session in] -> Server.run -> [session out]
          -> outbound pump -> stdout

The inbound pump reports every message's method to the transport session
and consumes heartbeat notifications, which the MCP session doesn't know.
"""

from __future__ import annotations

import asyncio

import anyio
from anyio.streams.memory import (
    MemoryObjectReceiveStream,
    MemoryObjectSendStream,
)
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server
from mcp.shared.message import SessionMessage

from linear_mcp.errors import TransportError
from linear_mcp.logging_config import get_logger
from linear_mcp.session.transport import (
    HEARTBEAT_NOTIFICATION,
    ChannelClosed,
    EmitFn,
    InboundMessage,
    SessionEvent,
    TransportFault,
)

logger = get_logger("session.stdio")

CLOSE_TIMEOUT_SECONDS = 2.0


class StdioChannel:
    """Channel over the process's stdin/stdout."""

    def __init__(
        self,
        server: Server,
        stdin: anyio.AsyncFile[str] | None = None,
        stdout: anyio.AsyncFile[str] | None = None,
        close_timeout: float = CLOSE_TIMEOUT_SECONDS,
    ) -> None:
        self._server = server
        self._stdin = stdin
        self._stdout = stdout
        self._close_timeout = close_timeout
        self._emit: EmitFn | None = None
        self._closing = False

        self._io_task: asyncio.Task | None = None
        self._io_ready = asyncio.Event()
        self._stdio_write: MemoryObjectSendStream[SessionMessage] | None = None

        self._session_in: (
            MemoryObjectSendStream[SessionMessage | Exception] | None
        ) = None
        self._session_task: asyncio.Task | None = None
        self._outbound_task: asyncio.Task | None = None
        self.generation = 0
        self._faulted_generation = 0

    @property
    def session_active(self) -> bool:
        return self._session_task is not None and not self._session_task.done()

    async def connect(self, emit: EmitFn, *, resume: bool) -> None:
        if self._closing:
            raise TransportError("channel is closed")
        self._emit = emit

        if self._io_task is None or self._io_task.done():
            self._io_ready.clear()
            self._io_task = asyncio.create_task(
                self._run_stdio(), name="stdio-io"
            )
            await self._io_ready.wait()
        if self._stdio_write is None:
            raise TransportError("stdio streams are not available")

        await self._stop_session()
        self._start_session(resume)
        logger.debug(
            "protocol session %d started (resume=%s)", self.generation, resume
        )

    async def close(self) -> None:
        if self._closing:
            return
        self._closing = True
        await self._stop_session()
        if self._io_task is not None and not self._io_task.done():
            self._io_task.cancel()
            # the stdin reader thread may not notice the cancellation
            await asyncio.wait({self._io_task}, timeout=self._close_timeout)
        logger.debug("stdio channel closed")

    def _report(self, event: SessionEvent) -> None:
        if self._emit is not None and not self._closing:
            self._emit(event)

    def _report_session_fault(self, generation: int, error: Exception) -> None:
        # one fault per protocol session; later ones would tear down the
        # session that replaced it
        if generation != self.generation:
            return
        if self._faulted_generation == generation:
            return
        self._faulted_generation = generation
        self._report(TransportFault(error))

    # -------------------------------------------------------------------------
    # stdio side
    # -------------------------------------------------------------------------

    async def _run_stdio(self) -> None:
        try:
            async with stdio_server(self._stdin, self._stdout) as (
                read_stream,
                write_stream,
            ):
                self._stdio_write = write_stream
                self._io_ready.set()
                await self._pump_inbound(read_stream)
                self._report(ChannelClosed("eof"))
                # keep the writer open so in-flight responses still go out
                await anyio.sleep_forever()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._report(TransportFault(e))
        finally:
            self._stdio_write = None
            self._io_ready.set()

    async def _pump_inbound(
        self, read_stream: MemoryObjectReceiveStream[SessionMessage | Exception]
    ) -> None:
        async with read_stream:
            async for item in read_stream:
                if isinstance(item, Exception):
                    logger.warning("invalid message on stdin: %s", item)
                    self._report(
                        TransportFault(
                            TransportError(f"invalid message: {item}")
                        )
                    )
                    continue

                root = item.message.root
                method = getattr(root, "method", None)
                self._report(InboundMessage(method, getattr(root, "id", None)))
                if method == HEARTBEAT_NOTIFICATION:
                    continue
                await self._forward(item, method)

    async def _forward(self, item: SessionMessage, method: str | None) -> None:
        target = self._session_in
        if target is None:
            logger.warning("no active protocol session, dropped %s", method)
            return
        generation = self.generation
        try:
            await target.send(item)
        except (anyio.BrokenResourceError, anyio.ClosedResourceError):
            # the protocol session died, the pipe itself is fine
            logger.debug("session %d dropped %s", generation, method)
            self._report_session_fault(
                generation,
                TransportError("protocol session is not accepting input"),
            )

    # -------------------------------------------------------------------------
    # protocol session side
    # -------------------------------------------------------------------------

    def _start_session(self, resume: bool) -> None:
        in_send, in_recv = anyio.create_memory_object_stream[
            SessionMessage | Exception
        ](0)
        out_send, out_recv = anyio.create_memory_object_stream[
            SessionMessage
        ](0)
        self.generation += 1
        self._session_in = in_send
        self._session_task = asyncio.create_task(
            self._run_session(in_recv, out_send, resume, self.generation),
            name=f"mcp-session-{self.generation}",
        )
        self._outbound_task = asyncio.create_task(
            self._pump_outbound(out_recv),
            name=f"mcp-outbound-{self.generation}",
        )

    async def _run_session(
        self,
        read_stream: MemoryObjectReceiveStream[SessionMessage | Exception],
        write_stream: MemoryObjectSendStream[SessionMessage],
        resume: bool,
        generation: int,
    ) -> None:
        try:
            await self._server.run(
                read_stream,
                write_stream,
                self._server.create_initialization_options(),
                raise_exceptions=False,
                stateless=resume,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._report_session_fault(generation, e)
            return

        self._report_session_fault(
            generation, TransportError("protocol session ended")
        )

    async def _pump_outbound(
        self, read_stream: MemoryObjectReceiveStream[SessionMessage]
    ) -> None:
        try:
            async with read_stream:
                async for message in read_stream:
                    writer = self._stdio_write
                    if writer is None:
                        raise TransportError("stdio writer is closed")
                    await writer.send(message)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._report(TransportFault(e))

    async def _stop_session(self) -> None:
        # bump first so the old session's exit is not reported as a fault
        self.generation += 1
        in_send, self._session_in = self._session_in, None
        if in_send is not None:
            in_send.close()

        session_task, self._session_task = self._session_task, None
        outbound_task, self._outbound_task = self._outbound_task, None
        for task in (session_task, outbound_task):
            if task is None or task.done():
                continue
            # the closed input ends the session; give it a moment first
            await asyncio.wait({task}, timeout=self._close_timeout)
            if not task.done():
                task.cancel()
                await asyncio.wait({task}, timeout=self._close_timeout)
