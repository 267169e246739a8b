"""Issue helpers: identifiers, sorting, labels, pagination text."""

from __future__ import annotations

import re
from typing import Any, Literal

from linear_mcp.cache import TTLCache
from linear_mcp.errors import LinearAPIError
from linear_mcp.linear.client import LinearClient
from linear_mcp.linear.models import Issue, PageInfo
from linear_mcp.linear.teams import get_team_by_key
from linear_mcp.timeout import with_timeout

IDENTIFIER_PATTERN = re.compile(r"^([A-Z]+)-(\d+)$")

SortField = Literal["created", "updated", "priority", "title"]
SortDirection = Literal["asc", "desc"]

SORT_FIELDS: dict[str, str] = {
    "created": "createdAt",
    "updated": "updatedAt",
    "priority": "priority",
    "title": "title",
}

PRIORITY_LABELS = {
    0: "No priority",
    1: "Low",
    2: "Medium",
    3: "High",
    4: "Urgent",
}


class IssueNotFound(LinearAPIError):
    """No issue matches the identifier."""


def parse_issue_identifier(identifier: str) -> tuple[str, int] | None:
    """Split "ENG-123" into ("ENG", 123). None if malformed."""
    match = IDENTIFIER_PATTERN.match(identifier)
    if not match:
        return None
    return match.group(1), int(match.group(2))


def issue_order_by(
    sort_by: str = "updated", direction: str = "desc"
) -> list[dict[str, Any]]:
    """Build the `sort` argument for an issues query.

    Unknown fields fall back to updatedAt.
    """
    field = SORT_FIELDS.get(sort_by, "updatedAt")
    order = "Ascending" if direction.lower() == "asc" else "Descending"
    return [{field: {"order": order}}]


def priority_label(priority: int | None) -> str:
    if priority is None:
        return "None"
    return PRIORITY_LABELS.get(priority, f"Unknown ({priority})")


def build_pagination_info(
    page_info: PageInfo,
    limit: int,
    cursor: str | None = None,
    query: str | None = None,
    team_id: str | None = None,
) -> str:
    lines = ["## Pagination"]
    if cursor:
        lines.append("Current page is based on the provided cursor.")
    else:
        lines.append("This is the first page of results.")
    lines.append(f"Results per page: {limit}")

    if page_info.has_next_page and page_info.end_cursor:
        lines.append(
            f"\nTo see the next page, use cursor: {page_info.end_cursor}"
        )
        lines.append("\nExample usage:")
        lines.append("```")
        lines.append(
            f'linear_search_issues(query: "{query or ""}", '
            f'team_id: "{team_id or ""}", cursor: "{page_info.end_cursor}")'
        )
        lines.append("```")
    else:
        lines.append("\nNo more pages available.")

    return "\n".join(lines)


def build_issue_filter(
    team_id: str | None = None,
    status: str | None = None,
    assignee_id: str | None = None,
    priority: int | None = None,
    query: str | None = None,
    cycle_id: str | None = None,
) -> dict[str, Any]:
    """Compose an IssueFilter from the optional search criteria."""
    filter: dict[str, Any] = {}
    if team_id:
        filter["team"] = {"id": {"eq": team_id}}
    if status:
        filter["state"] = {"name": {"eq": status}}
    if assignee_id:
        filter["assignee"] = {"id": {"eq": assignee_id}}
    if priority is not None:
        filter["priority"] = {"eq": priority}
    if cycle_id:
        filter["cycle"] = {"id": {"eq": cycle_id}}
    if query:
        filter["or"] = [
            {"title": {"containsIgnoreCase": query}},
            {"description": {"containsIgnoreCase": query}},
        ]
    return filter


async def find_issue_by_identifier(
    client: LinearClient, cache: TTLCache, identifier: str
) -> Issue:
    """Resolve "ENG-123" to the issue, using the cached team lookup.

    Raises:
        ValueError: If the identifier is malformed
        TeamNotFound: If the team key is unknown
        IssueNotFound: If the team has no issue with that number
    """
    parsed = parse_issue_identifier(identifier)
    if parsed is None:
        raise ValueError(
            f"Invalid issue ID format: {identifier}. "
            "Expected format: TEAM-NUMBER (e.g., DATA-1284)"
        )
    team_key, number = parsed
    team = await get_team_by_key(client, cache, team_key)

    result = await with_timeout(
        client.issues(
            filter={
                "team": {"id": {"eq": team.id}},
                "number": {"eq": number},
            },
            first=1,
        ),
        client.timeout,
        f"fetching issue {identifier}",
    )
    if not result.nodes:
        raise IssueNotFound(f"Issue {identifier} not found")
    return result.nodes[0]
