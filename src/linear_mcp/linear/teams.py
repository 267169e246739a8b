"""Team lookups with caching."""

from __future__ import annotations

from linear_mcp.cache import TTLCache
from linear_mcp.errors import LinearAPIError, log_error
from linear_mcp.linear.client import LinearClient
from linear_mcp.linear.models import Team
from linear_mcp.timeout import with_timeout


class TeamNotFound(LinearAPIError):
    """No team matches the given id or key."""


def team_cache_key(team_id: str) -> str:
    return f"team:{team_id}"


def team_key_cache_key(key: str) -> str:
    return f"team:key:{key}"


ALL_TEAMS_CACHE_KEY = "teams:all"


async def get_team_by_id(
    client: LinearClient, cache: TTLCache, team_id: str
) -> Team:
    """Fetch a team by id, from cache when possible.

    Raises:
        TeamNotFound: If no such team exists
    """
    key = team_cache_key(team_id)
    cached = cache.get(key)
    if cached is not None:
        return cached

    try:
        team = await with_timeout(
            client.team(team_id),
            client.timeout,
            f"fetching team {team_id}",
        )
    except LinearAPIError as e:
        if _is_not_found(e):
            raise TeamNotFound(f"Team with ID {team_id} not found") from e
        log_error(e, f"failed to fetch team {team_id}")
        raise

    cache.set(key, team)
    return team


async def get_team_by_key(
    client: LinearClient, cache: TTLCache, key: str
) -> Team:
    """Fetch a team by its short key (e.g. "ENG").

    Also caches the team under its id.

    Raises:
        TeamNotFound: If no team has this key
    """
    cache_key = team_key_cache_key(key)
    cached = cache.get(cache_key)
    if cached is not None:
        return cached

    try:
        teams = await with_timeout(
            client.teams(filter={"key": {"eq": key}}),
            client.timeout,
            f"fetching team by key {key}",
        )
    except LinearAPIError as e:
        log_error(e, f"failed to fetch team by key {key}")
        raise

    if not teams:
        raise TeamNotFound(f"Team with key {key} not found")

    team = teams[0]
    cache.set(cache_key, team)
    cache.set(team_cache_key(team.id), team)
    return team


async def get_all_teams(client: LinearClient, cache: TTLCache) -> list[Team]:
    """Fetch every team the API key can see, caching each individually."""
    cached = cache.get(ALL_TEAMS_CACHE_KEY)
    if cached is not None:
        return cached

    try:
        teams = await with_timeout(
            client.teams(), client.timeout, "fetching all teams"
        )
    except LinearAPIError as e:
        log_error(e, "failed to fetch all teams")
        raise

    cache.set(ALL_TEAMS_CACHE_KEY, teams)
    for team in teams:
        cache.set(team_cache_key(team.id), team)
        cache.set(team_key_cache_key(team.key), team)
    return teams


def _is_not_found(error: LinearAPIError) -> bool:
    for detail in error.errors:
        extensions = detail.get("extensions") or {}
        if extensions.get("code") == "ENTITY_NOT_FOUND":
            return True
        if "not found" in str(detail.get("message", "")).lower():
            return True
    return False
