"""Linear GraphQL API client.

Thin async wrapper over a single aiohttp session. Every method issues one
GraphQL request and returns pydantic models; callers apply the timeout
guard and caching.
"""

from __future__ import annotations

from typing import Any

import aiohttp

from linear_mcp.errors import LinearAPIError
from linear_mcp.logging_config import get_logger
from linear_mcp.linear.models import (
    Cycle,
    Issue,
    IssueConnection,
    Team,
    User,
    WorkflowState,
)
from linear_mcp.timeout import API_TIMEOUT_SECONDS, with_timeout

logger = get_logger("linear.client")

LINEAR_API_URL = "https://api.linear.app/graphql"
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 250

USER_FIELDS = "id name email"
STATE_FIELDS = "id name type"
TEAM_FIELDS = "id name key description"
CYCLE_FIELDS = (
    "id name number description startsAt endsAt completedAt "
    f"team {{ {TEAM_FIELDS} }}"
)
ISSUE_FIELDS = (
    "id identifier title priority url createdAt updatedAt completedAt "
    f"state {{ {STATE_FIELDS} }} assignee {{ {USER_FIELDS} }} "
    f"team {{ {TEAM_FIELDS} }}"
)
ISSUE_DETAIL_FIELDS = (
    f"{ISSUE_FIELDS} description creator {{ {USER_FIELDS} }} "
    f"labels {{ nodes {{ id name }} }} "
    f"subscribers {{ nodes {{ {USER_FIELDS} }} }} "
    f"comments {{ nodes {{ id body createdAt user {{ {USER_FIELDS} }} }} }} "
    f"attachments {{ nodes {{ id title url }} }}"
)


class LinearClient:
    """Async client for the Linear GraphQL API.

    Usage:
        client = LinearClient(api_key)
        teams = await client.teams()
        await client.aclose()
    """

    def __init__(
        self,
        api_key: str,
        url: str = LINEAR_API_URL,
        timeout: float = API_TIMEOUT_SECONDS,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.api_key = api_key
        self.url = url
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def aclose(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    async def execute(
        self, query: str, variables: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Run a GraphQL document and return its `data` object.

        Raises:
            LinearAPIError: On transport failure, a non-JSON or non-2xx
                response, or a GraphQL `errors` payload
        """
        session = self._get_session()
        try:
            async with session.post(
                self.url,
                json={"query": query, "variables": variables or {}},
                headers={
                    "Authorization": self.api_key,
                    "Content-Type": "application/json",
                },
            ) as resp:
                try:
                    payload = await resp.json(content_type=None)
                except ValueError:
                    text = await resp.text()
                    raise LinearAPIError(
                        f"HTTP {resp.status}: {text[:100]}", status=resp.status
                    ) from None
                status = resp.status
        except aiohttp.ClientError as e:
            raise LinearAPIError(f"request failed: {e}") from e

        errors = payload.get("errors") if isinstance(payload, dict) else None
        if errors:
            message = errors[0].get("message", "unknown error")
            raise LinearAPIError(message, status=status, errors=errors)
        if status >= 400:
            raise LinearAPIError(f"HTTP {status}", status=status)
        data = payload.get("data") if isinstance(payload, dict) else None
        if data is None:
            raise LinearAPIError("response contained no data", status=status)
        return data

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def viewer(self) -> User:
        data = await self.execute(f"query {{ viewer {{ {USER_FIELDS} }} }}")
        return User.model_validate(data["viewer"])

    async def team(self, team_id: str) -> Team:
        data = await self.execute(
            "query Team($id: String!) { "
            f"team(id: $id) {{ {TEAM_FIELDS} }} }}",
            {"id": team_id},
        )
        return Team.model_validate(data["team"])

    async def teams(
        self,
        filter: dict[str, Any] | None = None,
        include_members: bool = False,
        first: int = MAX_PAGE_SIZE,
    ) -> list[Team]:
        fields = TEAM_FIELDS
        if include_members:
            fields += f" members {{ nodes {{ {USER_FIELDS} }} }}"
        data = await self.execute(
            "query Teams($filter: TeamFilter, $first: Int) { "
            "teams(filter: $filter, first: $first) "
            f"{{ nodes {{ {fields} }} }} }}",
            {"filter": filter, "first": first},
        )
        return [Team.model_validate(n) for n in data["teams"]["nodes"]]

    async def issues(
        self,
        filter: dict[str, Any] | None = None,
        first: int = DEFAULT_PAGE_SIZE,
        after: str | None = None,
        sort: list[dict[str, Any]] | None = None,
    ) -> IssueConnection:
        data = await self.execute(
            "query Issues($filter: IssueFilter, $first: Int, $after: String, "
            "$sort: [IssueSortInput!]) { "
            "issues(filter: $filter, first: $first, after: $after, "
            f"sort: $sort) {{ nodes {{ {ISSUE_FIELDS} }} "
            "pageInfo { hasNextPage endCursor } } }",
            {"filter": filter, "first": first, "after": after, "sort": sort},
        )
        return IssueConnection.model_validate(data["issues"])

    async def issue(self, issue_id: str) -> Issue:
        data = await self.execute(
            "query Issue($id: String!) { "
            f"issue(id: $id) {{ {ISSUE_DETAIL_FIELDS} }} }}",
            {"id": issue_id},
        )
        return Issue.model_validate(data["issue"])

    async def cycles(
        self,
        filter: dict[str, Any] | None = None,
        first: int = MAX_PAGE_SIZE,
    ) -> list[Cycle]:
        data = await self.execute(
            "query Cycles($filter: CycleFilter, $first: Int) { "
            "cycles(filter: $filter, first: $first) "
            f"{{ nodes {{ {CYCLE_FIELDS} }} }} }}",
            {"filter": filter, "first": first},
        )
        return [Cycle.model_validate(n) for n in data["cycles"]["nodes"]]

    async def cycle(self, cycle_id: str) -> Cycle:
        data = await self.execute(
            "query Cycle($id: String!) { "
            f"cycle(id: $id) {{ {CYCLE_FIELDS} }} }}",
            {"id": cycle_id},
        )
        return Cycle.model_validate(data["cycle"])

    async def workflow_states(
        self,
        filter: dict[str, Any] | None = None,
        first: int = MAX_PAGE_SIZE,
    ) -> list[WorkflowState]:
        data = await self.execute(
            "query States($filter: WorkflowStateFilter, $first: Int) { "
            "workflowStates(filter: $filter, first: $first) "
            f"{{ nodes {{ {STATE_FIELDS} }} }} }}",
            {"filter": filter, "first": first},
        )
        return [
            WorkflowState.model_validate(n)
            for n in data["workflowStates"]["nodes"]
        ]

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def create_issue(self, input: dict[str, Any]) -> Issue:
        data = await self.execute(
            "mutation CreateIssue($input: IssueCreateInput!) { "
            "issueCreate(input: $input) { success "
            f"issue {{ {ISSUE_FIELDS} }} }} }}",
            {"input": input},
        )
        return Issue.model_validate(
            _mutation_entity(data, "issueCreate", "issue")
        )

    async def update_issue(
        self, issue_id: str, patch: dict[str, Any]
    ) -> Issue:
        data = await self.execute(
            "mutation UpdateIssue($id: String!, $input: IssueUpdateInput!) { "
            "issueUpdate(id: $id, input: $input) { success "
            f"issue {{ {ISSUE_FIELDS} }} }} }}",
            {"id": issue_id, "input": patch},
        )
        return Issue.model_validate(
            _mutation_entity(data, "issueUpdate", "issue")
        )

    async def create_cycle(self, input: dict[str, Any]) -> Cycle:
        data = await self.execute(
            "mutation CreateCycle($input: CycleCreateInput!) { "
            "cycleCreate(input: $input) { success "
            f"cycle {{ {CYCLE_FIELDS} }} }} }}",
            {"input": input},
        )
        return Cycle.model_validate(
            _mutation_entity(data, "cycleCreate", "cycle")
        )

    async def update_cycle(
        self, cycle_id: str, patch: dict[str, Any]
    ) -> Cycle:
        data = await self.execute(
            "mutation UpdateCycle($id: String!, $input: CycleUpdateInput!) { "
            "cycleUpdate(id: $id, input: $input) { success "
            f"cycle {{ {CYCLE_FIELDS} }} }} }}",
            {"id": cycle_id, "input": patch},
        )
        return Cycle.model_validate(
            _mutation_entity(data, "cycleUpdate", "cycle")
        )


def _mutation_entity(
    data: dict[str, Any], operation: str, entity: str
) -> dict[str, Any]:
    result = data.get(operation) or {}
    if not result.get("success"):
        raise LinearAPIError(f"{operation} was not successful")
    value = result.get(entity)
    if value is None:
        raise LinearAPIError(
            f"{operation} succeeded but returned no {entity}"
        )
    return value


async def verify_connection(client: LinearClient) -> User:
    """Check that the API key works. Used at startup.

    Raises:
        LinearAPIError: If the API rejects the key or is unreachable
        TimedOut: If the API does not answer in time
    """
    viewer = await with_timeout(
        client.viewer(), client.timeout, "Linear API connection check"
    )
    logger.info("connected to Linear as %s", viewer.name)
    return viewer
