"""Cycle (sprint) operations."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime

from linear_mcp.cache import TTLCache
from linear_mcp.linear.client import MAX_PAGE_SIZE, LinearClient
from linear_mcp.linear.models import Cycle, Issue, Team
from linear_mcp.linear.teams import get_team_by_id
from linear_mcp.logging_config import get_logger
from linear_mcp.timeout import with_timeout

logger = get_logger("linear.cycles")


@dataclass
class CycleDetails:
    cycle: Cycle
    team: Team | None
    issues: list[Issue] = field(default_factory=list)

    @property
    def completed_issues(self) -> list[Issue]:
        return [i for i in self.issues if i.completed_at is not None]

    @property
    def progress_percentage(self) -> int:
        if not self.issues:
            return 0
        return round(len(self.completed_issues) / len(self.issues) * 100)


async def create_cycle(
    client: LinearClient,
    cache: TTLCache,
    team_id: str,
    name: str,
    starts_at: datetime,
    ends_at: datetime,
    description: str | None = None,
) -> tuple[Cycle, Team]:
    """Create a cycle after checking that the team exists."""
    team = await get_team_by_id(client, cache, team_id)
    cycle = await with_timeout(
        client.create_cycle(
            {
                "teamId": team_id,
                "name": name,
                "startsAt": starts_at.isoformat(),
                "endsAt": ends_at.isoformat(),
                "description": description or "",
            }
        ),
        client.timeout,
        "creating cycle",
        mutation=True,
    )
    logger.debug("created cycle %s for team %s", cycle.id, team.key)
    return cycle, team


async def update_cycle(
    client: LinearClient,
    cycle_id: str,
    name: str | None = None,
    starts_at: datetime | None = None,
    ends_at: datetime | None = None,
    description: str | None = None,
) -> Cycle:
    """Update only the given fields of an existing cycle."""
    # existence check, so a bad id reports "not found" rather than a
    # mutation validation error
    await with_timeout(
        client.cycle(cycle_id), client.timeout, "fetching cycle for update"
    )

    patch: dict[str, str] = {}
    if name:
        patch["name"] = name
    if starts_at is not None:
        patch["startsAt"] = starts_at.isoformat()
    if ends_at is not None:
        patch["endsAt"] = ends_at.isoformat()
    if description is not None:
        patch["description"] = description

    return await with_timeout(
        client.update_cycle(cycle_id, patch),
        client.timeout,
        "updating cycle",
        mutation=True,
    )


async def get_cycle(client: LinearClient, cycle_id: str) -> CycleDetails:
    """Fetch a cycle together with its issues for progress reporting."""
    cycle, issues = await asyncio.gather(
        with_timeout(
            client.cycle(cycle_id), client.timeout, "fetching cycle details"
        ),
        with_timeout(
            client.issues(
                filter={"cycle": {"id": {"eq": cycle_id}}},
                first=MAX_PAGE_SIZE,
            ),
            client.timeout,
            "fetching cycle issues",
        ),
    )
    return CycleDetails(cycle=cycle, team=cycle.team, issues=issues.nodes)


async def get_active_cycle(
    client: LinearClient, team_id: str
) -> Cycle | None:
    cycles = await with_timeout(
        client.cycles(
            filter={
                "team": {"id": {"eq": team_id}},
                "isActive": {"eq": True},
            }
        ),
        client.timeout,
        "fetching active cycles",
    )
    return cycles[0] if cycles else None


async def list_cycles(
    client: LinearClient, cache: TTLCache, team_id: str
) -> tuple[Team, list[Cycle]]:
    """All cycles of a team, newest start date first."""
    team = await get_team_by_id(client, cache, team_id)
    cycles = await with_timeout(
        client.cycles(filter={"team": {"id": {"eq": team_id}}}),
        client.timeout,
        "fetching team cycles",
    )
    cycles.sort(key=lambda c: c.starts_at, reverse=True)
    return team, cycles
