from __future__ import annotations

import asyncio
from collections.abc import Callable

from mcp.server.fastmcp import FastMCP

from linear_mcp.errors import SessionStartError, log_error
from linear_mcp.linear.client import verify_connection
from linear_mcp.logging_config import get_logger
from linear_mcp.server import (
    SERVER_NAME,
    LinearConfig,
    ServerState,
    get_enabled_categories,
)
from linear_mcp.session.shutdown import (
    EXIT_FAILURE,
    ShutdownCoordinator,
    ShutdownReason,
    hard_exit,
    install_process_hooks,
)
from linear_mcp.session.stdio import StdioChannel
from linear_mcp.session.transport import Channel, TransportSession
from linear_mcp.tools import (
    register_cycle_tools,
    register_issue_tools,
    register_status_tools,
    register_team_tools,
)

logger = get_logger("mcp_server")

INSTRUCTIONS = """\
Tools for the Linear issue tracker.

<tool_selection>
- Find issues: linear_search_issues (filters, sorting, cursor pagination)
- Read one issue: linear_get_issue_details with an identifier like ENG-123
- Change status of many issues: linear_bulk_update_status
- Sprints: linear_sprint_issues, linear_filter_sprint_issues for your own
  issues, linear_manage_cycle to create/update/get/list cycles
- Team IDs: linear_search_teams
</tool_selection>

Mutations (create, update, bulk status) are not retried automatically.
If one times out, check the current state before trying again.
"""


def create_server(state: ServerState) -> FastMCP:
    """Create the MCP server and register the enabled tools.

    Args:
        state: Shared server state (config, Linear client, cache)

    Returns:
        Configured FastMCP server instance
    """
    mcp = FastMCP(SERVER_NAME, instructions=INSTRUCTIONS)

    enabled_tools = state.enabled_tools
    logger.info(
        "tool categories enabled: %s (%d tools)",
        ", ".join(sorted(get_enabled_categories(state.config.tools))),
        len(enabled_tools),
    )

    def tool_if_enabled(func):
        """Decorator that only registers tool if its category is enabled.

        Uses the function name to look up whether it should be registered.
        If the tool is not in any enabled category, returns the function
        as-is without registering it as an MCP tool.
        """
        if func.__name__ in enabled_tools:
            return mcp.tool()(func)
        return func

    register_issue_tools(mcp, state, tool_if_enabled)
    register_team_tools(mcp, state, tool_if_enabled)
    register_cycle_tools(mcp, state, tool_if_enabled)
    register_status_tools(mcp, state, tool_if_enabled)

    return mcp


async def serve(
    config: LinearConfig,
    state: ServerState | None = None,
    channel_factory: Callable[[FastMCP], Channel] | None = None,
    exit_process: Callable[[int], None] | None = None,
) -> int:
    """Run one MCP session over stdio until shutdown.

    Startup order: verify the API key, start shared state, connect the
    transport. Any failure before the transport is up returns 1 without
    touching the session machinery.

    Args:
        config: Validated configuration
        state: Pre-built server state (default: built from config)
        channel_factory: Builds the message channel for the server
            (default: StdioChannel over the process's stdin/stdout)
        exit_process: Called with the exit code after shutdown
            (run_server passes hard_exit)

    Returns:
        Process exit code
    """
    if state is None:
        state = ServerState(config)

    try:
        await verify_connection(state.client)
    except Exception as e:
        log_error(e, "failed to verify Linear API connection")
        await state.aclose()
        return EXIT_FAILURE

    coordinator = ShutdownCoordinator(
        state.connection,
        grace_period=config.grace_period,
        exit_process=exit_process,
    )
    install_process_hooks(coordinator)

    state.start()
    mcp = create_server(state)
    channel: Channel
    if channel_factory is None:
        channel = StdioChannel(mcp._mcp_server)
    else:
        channel = channel_factory(mcp)

    session = TransportSession(
        channel,
        state.connection,
        coordinator,
        heartbeat_interval=config.heartbeat_interval,
        max_reconnect_attempts=config.max_reconnect_attempts,
        reconnect_delay=config.reconnect_delay,
    )

    try:
        await session.start()
    except SessionStartError:
        await state.aclose()
        return EXIT_FAILURE

    coordinator.add_close_callback(state.aclose, "server state")
    logger.info("linear MCP server running on stdio")

    def on_session_done(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            coordinator.request_shutdown(ShutdownReason.FATAL_ERROR, exc)

    run_task = asyncio.create_task(session.run(), name="transport-session")
    run_task.add_done_callback(on_session_done)
    try:
        return await coordinator.wait_terminated()
    finally:
        if not run_task.done():
            run_task.cancel()
            await asyncio.wait({run_task})


def run_server(config: LinearConfig) -> int:
    """Run the Linear MCP server on stdio.

    Only returns on a startup failure; after a session has started the
    process exits from the shutdown sequence.
    """
    return asyncio.run(serve(config, exit_process=hard_exit))
