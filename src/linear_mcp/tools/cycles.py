"""Cycle management tool."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING, Literal, cast

from linear_mcp.linear.cycles import (
    CycleDetails,
    create_cycle,
    get_cycle,
    list_cycles,
    update_cycle,
)
from linear_mcp.linear.models import Cycle, Team
from linear_mcp.logging_config import get_logger
from linear_mcp.server.utils import (
    format_date,
    format_issue_line,
    parse_iso_date,
    tool_error,
    utcnow,
)

if TYPE_CHECKING:
    from mcp.server.fastmcp import FastMCP

    from linear_mcp.server import ServerState

logger = get_logger("tools.cycles")

CycleAction = Literal["create", "update", "get", "list"]


def validate_cycle_params(
    action: str,
    cycle_id: str | None,
    name: str | None,
    start_date: str | None,
    end_date: str | None,
) -> tuple[datetime | None, datetime | None]:
    """Check per-action required fields and parse the dates.

    Raises:
        ValueError: On a missing field or a malformed date
    """
    if action in ("update", "get") and not cycle_id:
        raise ValueError(f"cycle_id is required for {action} action")
    if action == "create" and not (name and start_date and end_date):
        raise ValueError(
            "name, start_date, and end_date are required for create action"
        )

    starts_at = parse_iso_date(start_date, "start_date") if start_date else None
    ends_at = parse_iso_date(end_date, "end_date") if end_date else None
    if starts_at and ends_at and ends_at <= starts_at:
        raise ValueError("end_date must be after start_date")
    return starts_at, ends_at


def format_cycle_summary(verb: str, cycle: Cycle, team: Team | None) -> str:
    team_name = team.name if team else "Unknown"
    lines = [
        f'{verb} cycle "{cycle.display_name}" for team {team_name}',
        f"ID: {cycle.id}",
        f"Start: {format_date(cycle.starts_at)}",
        f"End: {format_date(cycle.ends_at)}",
    ]
    if verb == "Updated":
        lines.append(f"Description: {cycle.description or 'None'}")
    return "\n".join(lines)


def format_cycle_details(details: CycleDetails, now: datetime) -> str:
    cycle = details.cycle
    status = "Active" if cycle.status(now) == "ACTIVE" else "Inactive"
    if cycle.status(now) == "COMPLETED":
        status += " (Completed)"

    header = "\n".join(
        [
            f"# Cycle: {cycle.display_name}",
            "\n## Details",
            f"Team: {details.team.name if details.team else 'Unknown'}",
            f"ID: {cycle.id}",
            f"Start Date: {format_date(cycle.starts_at)}",
            f"End Date: {format_date(cycle.ends_at)}",
            f"Status: {status}",
            f"Progress: {details.progress_percentage}% "
            f"({len(details.completed_issues)}/{len(details.issues)} "
            "issues completed)",
            f"Description: {cycle.description or 'None'}",
            f"\n## Issues ({len(details.issues)})",
        ]
    )
    if not details.issues:
        return header + "\n\nNo issues in this cycle."
    listing = "\n".join(f"- {format_issue_line(i)}" for i in details.issues)
    return f"{header}\n\n{listing}"


def format_cycle_list(team: Team, cycles: list[Cycle], now: datetime) -> str:
    if not cycles:
        return f"No cycles found for team {team.name}."
    entries = "\n\n".join(
        f"- {c.display_name} ({c.status(now)})\n"
        f"  ID: {c.id}\n"
        f"  Period: {format_date(c.starts_at)} to {format_date(c.ends_at)}"
        for c in cycles
    )
    return f"# Cycles for Team: {team.name}\n\n{entries}"


def register_cycle_tools(
    mcp: FastMCP,
    state: ServerState,
    tool_if_enabled: Callable,
) -> None:
    """Register cycle tools."""

    @tool_if_enabled
    async def linear_manage_cycle(
        action: CycleAction,
        team_id: str,
        cycle_id: str | None = None,
        name: str | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
        description: str | None = None,
    ) -> str:
        """Create, update, inspect or list a team's cycles (sprints).

        Args:
            action: create, update, get or list
            team_id: Team ID to manage cycles for
            cycle_id: Cycle ID (required for update and get)
            name: Cycle name (required for create)
            start_date: Start date in ISO format (required for create)
            end_date: End date in ISO format (required for create)
            description: Cycle description (create and update)

        Returns:
            Markdown describing the resulting cycle(s)
        """
        logger.debug("managing cycle: action=%s team=%s", action, team_id)
        client = state.client
        try:
            starts_at, ends_at = validate_cycle_params(
                action, cycle_id, name, start_date, end_date
            )

            if action == "create":
                cycle, team = await create_cycle(
                    client,
                    state.cache,
                    team_id,
                    cast(str, name),
                    cast(datetime, starts_at),
                    cast(datetime, ends_at),
                    description,
                )
                return format_cycle_summary("Created", cycle, team)

            if action == "update":
                cycle = await update_cycle(
                    client,
                    cast(str, cycle_id),
                    name=name,
                    starts_at=starts_at,
                    ends_at=ends_at,
                    description=description,
                )
                return format_cycle_summary("Updated", cycle, cycle.team)

            if action == "get":
                details = await get_cycle(client, cast(str, cycle_id))
                return format_cycle_details(details, utcnow())

            team, cycles = await list_cycles(client, state.cache, team_id)
            return format_cycle_list(team, cycles, utcnow())
        except Exception as e:
            raise tool_error(e, f"failed to {action} cycle") from e
