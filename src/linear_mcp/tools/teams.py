"""Team and sprint tools."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

from linear_mcp.linear.cycles import get_active_cycle
from linear_mcp.linear.issues import build_issue_filter
from linear_mcp.linear.models import Cycle
from linear_mcp.linear.teams import get_team_by_id
from linear_mcp.logging_config import get_logger
from linear_mcp.server.utils import format_date, format_issue_line, tool_error
from linear_mcp.timeout import with_timeout

if TYPE_CHECKING:
    from mcp.server.fastmcp import FastMCP

    from linear_mcp.server import ServerState

logger = get_logger("tools.teams")

NO_ACTIVE_SPRINT = "No active sprint found for this team."


def _sprint_header(cycle: Cycle) -> str:
    return (
        f"Current Sprint: {cycle.display_name}\n"
        f"Start: {format_date(cycle.starts_at)}\n"
        f"End: {format_date(cycle.ends_at)}"
    )


def register_team_tools(
    mcp: FastMCP,
    state: ServerState,
    tool_if_enabled: Callable,
) -> None:
    """Register team and sprint tools."""

    @tool_if_enabled
    async def linear_search_teams(query: str | None = None) -> str:
        """Search teams by name.

        Args:
            query: Text to search in team names (default: all teams)

        Returns:
            Name, ID, key and member count of each team
        """
        client = state.client
        filter = {"name": {"containsIgnoreCase": query}} if query else None
        try:
            teams = await with_timeout(
                client.teams(filter=filter, include_members=True),
                client.timeout,
                "searching teams",
            )
        except Exception as e:
            raise tool_error(e, "failed to search teams") from e

        if not teams:
            return "No teams found."
        logger.debug("found %d teams", len(teams))
        return "\n".join(
            f"Team: {t.name}\nID: {t.id}\nKey: {t.key}\n"
            f"Members: {len(t.members)}\n"
            for t in teams
        )

    @tool_if_enabled
    async def linear_sprint_issues(team_id: str) -> str:
        """List every issue in the team's active sprint.

        Args:
            team_id: Team ID to get sprint issues for

        Returns:
            Sprint dates and one line per issue
        """
        client = state.client
        try:
            await get_team_by_id(client, state.cache, team_id)
            cycle = await get_active_cycle(client, team_id)
            if cycle is None:
                return NO_ACTIVE_SPRINT

            issues = await with_timeout(
                client.issues(
                    filter=build_issue_filter(
                        team_id=team_id, cycle_id=cycle.id
                    ),
                    first=250,
                ),
                client.timeout,
                "fetching sprint issues",
            )
        except Exception as e:
            raise tool_error(e, "failed to fetch sprint issues") from e

        logger.debug("found %d issues in current sprint", len(issues.nodes))
        listing = "\n".join(format_issue_line(i) for i in issues.nodes)
        return f"{_sprint_header(cycle)}\n\nIssues:\n{listing}"

    @tool_if_enabled
    async def linear_filter_sprint_issues(team_id: str, status: str) -> str:
        """List your own issues with a given status in the active sprint.

        Args:
            team_id: Team ID to get sprint issues for
            status: Status name to filter by

        Returns:
            Sprint dates and the matching issues with their URLs
        """
        client = state.client
        try:
            viewer = await with_timeout(
                client.viewer(), client.timeout, "fetching Linear user info"
            )
            cycle = await get_active_cycle(client, team_id)
            if cycle is None:
                return NO_ACTIVE_SPRINT

            issues = await with_timeout(
                client.issues(
                    filter=build_issue_filter(
                        team_id=team_id,
                        cycle_id=cycle.id,
                        status=status,
                        assignee_id=viewer.id,
                    ),
                    first=250,
                ),
                client.timeout,
                "fetching filtered sprint issues",
            )
        except Exception as e:
            raise tool_error(e, "failed to filter sprint issues") from e

        if not issues.nodes:
            return (
                f'No issues found with status "{status}" assigned to you '
                "in the current sprint."
            )

        listing = "\n\n".join(
            f"{i.identifier}: {i.title}\n"
            f"  Status: {i.state.name if i.state else 'No status'}\n"
            f"  URL: {i.url or '-'}"
            for i in issues.nodes
        )
        return (
            f"{_sprint_header(cycle)}\n\n"
            f'Your Issues with Status "{status}":\n\n{listing}'
        )
