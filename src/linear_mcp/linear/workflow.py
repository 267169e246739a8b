"""Workflow state lookups with caching."""

from __future__ import annotations

from linear_mcp.cache import TTLCache
from linear_mcp.errors import LinearAPIError, log_error
from linear_mcp.linear.client import LinearClient
from linear_mcp.linear.models import WorkflowState
from linear_mcp.timeout import with_timeout


class WorkflowStateNotFound(LinearAPIError):
    """The team has no workflow state with the requested name."""


def states_cache_key(team_id: str) -> str:
    return f"workflowStates:team:{team_id}"


def state_name_cache_key(team_id: str, name: str) -> str:
    return f"workflowState:team:{team_id}:name:{name}"


async def get_workflow_states_for_team(
    client: LinearClient, cache: TTLCache, team_id: str
) -> list[WorkflowState]:
    """All workflow states of a team; each is also cached by name."""
    key = states_cache_key(team_id)
    cached = cache.get(key)
    if cached is not None:
        return cached

    try:
        states = await with_timeout(
            client.workflow_states(filter={"team": {"id": {"eq": team_id}}}),
            client.timeout,
            f"fetching workflow states for team {team_id}",
        )
    except LinearAPIError as e:
        log_error(e, f"failed to fetch workflow states for team {team_id}")
        raise

    cache.set(key, states)
    for state in states:
        cache.set(state_name_cache_key(team_id, state.name), state)
    return states


async def get_workflow_state_by_name(
    client: LinearClient, cache: TTLCache, team_id: str, name: str
) -> WorkflowState:
    """Resolve a state name (exact match) to the team's workflow state.

    Raises:
        WorkflowStateNotFound: If the team has no state with that name
    """
    cached = cache.get(state_name_cache_key(team_id, name))
    if cached is not None:
        return cached

    states = await get_workflow_states_for_team(client, cache, team_id)
    for state in states:
        if state.name == name:
            return state

    raise WorkflowStateNotFound(
        f'Workflow state "{name}" not found for team {team_id}'
    )
