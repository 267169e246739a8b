"""Issue tools.

This module provides tools for:
- Creating issues (linear_create_issue)
- Paginated search (linear_search_issues)
- Full issue details with comments (linear_get_issue_details)
- Moving many issues to one status (linear_bulk_update_status)
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Annotated, Any, Literal

from pydantic import Field

from linear_mcp.batch import process_batch
from linear_mcp.errors import log_error
from linear_mcp.linear.issues import (
    IssueNotFound,
    build_issue_filter,
    build_pagination_info,
    find_issue_by_identifier,
    issue_order_by,
    parse_issue_identifier,
    priority_label,
)
from linear_mcp.linear.models import Issue
from linear_mcp.linear.teams import TeamNotFound, get_team_by_key
from linear_mcp.linear.workflow import (
    WorkflowStateNotFound,
    get_workflow_state_by_name,
)
from linear_mcp.logging_config import get_logger
from linear_mcp.server.config import BULK_UPDATE_BATCH_SIZE
from linear_mcp.server.utils import (
    format_datetime,
    format_issue_summary,
    tool_error,
)
from linear_mcp.timeout import TimedOut, with_timeout

if TYPE_CHECKING:
    from mcp.server.fastmcp import FastMCP

    from linear_mcp.server import ServerState

logger = get_logger("tools.issues")

TIMED_OUT_UNKNOWN_OUTCOME = "Timed out (outcome unknown)"

Priority = Annotated[int, Field(ge=0, le=4)]


@dataclass
class BulkUpdateResult:
    successful: list[str] = field(default_factory=list)
    failed: list[dict[str, str]] = field(default_factory=list)

    def fail(self, issue_id: str, reason: str) -> None:
        self.failed.append({"id": issue_id, "reason": reason})

    def render(self) -> str:
        parts: list[str] = []
        if self.successful:
            parts.append(
                f"## Successfully Updated ({len(self.successful)})\n\n"
                + ", ".join(self.successful)
                + "\n"
            )
        if self.failed:
            lines = [
                f"- {item['id']}: {item['reason']}" for item in self.failed
            ]
            parts.append(
                f"## Failed Updates ({len(self.failed)})\n\n"
                + "\n".join(lines)
                + "\n"
            )
        if not parts:
            return "No issues to update."
        return "\n".join(parts)


def format_issue_details(issue: Issue) -> str:
    """Render an issue as markdown: metadata, description, comments."""
    labels = ", ".join(label.name for label in issue.labels)
    metadata = "\n".join(
        [
            f"ID: {issue.identifier}",
            f"Title: {issue.title}",
            f"Status: {issue.state.name if issue.state else 'No status'}",
            f"Priority: {priority_label(issue.priority)}",
            "Assignee: "
            + (issue.assignee.name if issue.assignee else "Unassigned"),
            f"Creator: {issue.creator.name if issue.creator else 'Unknown'}",
            f"Created: {format_datetime(issue.created_at)}",
            f"Updated: {format_datetime(issue.updated_at)}",
            f"Labels: {labels or 'None'}",
            f"Subscribers: {len(issue.subscribers)}",
            f"Attachments: {len(issue.attachments)}",
            f"URL: {issue.url or '-'}",
        ]
    )

    if issue.description:
        description = f"\n\n## Description\n\n{issue.description}"
    else:
        description = "\n\nNo description provided."

    comments = ""
    if issue.comments:
        rendered = [
            f"### Comment by {c.user.name if c.user else 'Unknown'} "
            f"({format_datetime(c.created_at)})\n\n{c.body}"
            for c in issue.comments
        ]
        comments = (
            f"\n\n## Comments ({len(issue.comments)})\n\n"
            + "\n\n---\n\n".join(rendered)
        )

    return (
        f"# Issue {issue.identifier}\n\n## Metadata\n\n{metadata}"
        f"{description}{comments}"
    )


def register_issue_tools(
    mcp: FastMCP,
    state: ServerState,
    tool_if_enabled: Callable,
) -> None:
    """Register all issue-related tools.

    Args:
        mcp: FastMCP server instance
        state: Server state with the Linear client and cache
        tool_if_enabled: Decorator for conditional tool registration
    """

    @tool_if_enabled
    async def linear_create_issue(
        title: str,
        team_id: str,
        description: str | None = None,
        priority: Priority | None = None,
        status: str | None = None,
    ) -> str:
        """Create a new Linear issue.

        Args:
            title: Issue title
            team_id: Team ID to create the issue in
            description: Issue description (markdown supported)
            priority: Priority level (0 none, 1 low, 2 medium, 3 high,
                4 urgent)
            status: Initial status name (e.g. "Todo")

        Returns:
            The new issue's identifier and title
        """
        logger.debug("creating issue in team %s: %s", team_id, title)
        client = state.client
        try:
            input: dict[str, Any] = {"title": title, "teamId": team_id}
            if description:
                input["description"] = description
            if priority is not None:
                input["priority"] = priority
            if status:
                workflow_state = await get_workflow_state_by_name(
                    client, state.cache, team_id, status
                )
                input["stateId"] = workflow_state.id

            issue = await with_timeout(
                client.create_issue(input),
                client.timeout,
                "creating issue",
                mutation=True,
            )
        except Exception as e:
            raise tool_error(e, "failed to create issue") from e

        logger.info("created issue %s", issue.identifier)
        return f"Created issue {issue.identifier}: {issue.title}"

    @tool_if_enabled
    async def linear_search_issues(
        query: str | None = None,
        team_id: str | None = None,
        status: str | None = None,
        assignee_id: str | None = None,
        priority: Priority | None = None,
        limit: Annotated[int, Field(ge=1, le=250)] = 10,
        cursor: str | None = None,
        sort_by: Literal["created", "updated", "priority", "title"] = (
            "updated"
        ),
        sort_direction: Literal["asc", "desc"] = "desc",
    ) -> str:
        """Search issues with filters, sorting and cursor pagination.

        Args:
            query: Text to search in title and description
            team_id: Filter by team
            status: Filter by status name
            assignee_id: Filter by assignee
            priority: Filter by priority (0-4)
            limit: Max results per page
            cursor: Pagination cursor from a previous page
            sort_by: Field to sort by
            sort_direction: Sort direction

        Returns:
            Matching issues followed by pagination info
        """
        client = state.client
        try:
            result = await with_timeout(
                client.issues(
                    filter=build_issue_filter(
                        team_id=team_id,
                        status=status,
                        assignee_id=assignee_id,
                        priority=priority,
                        query=query,
                    ),
                    first=limit,
                    after=cursor,
                    sort=issue_order_by(sort_by, sort_direction),
                ),
                client.timeout,
                "searching issues",
            )
        except Exception as e:
            raise tool_error(e, "failed to search issues") from e

        logger.debug(
            "found %d issues, has_next_page=%s",
            len(result.nodes),
            result.page_info.has_next_page,
        )
        pagination = build_pagination_info(
            result.page_info,
            limit,
            cursor=cursor,
            query=query,
            team_id=team_id,
        )
        if not result.nodes:
            return f"No issues found matching your criteria.\n\n{pagination}"
        listing = "\n\n".join(format_issue_summary(i) for i in result.nodes)
        return f"{listing}\n\n{pagination}"

    @tool_if_enabled
    async def linear_get_issue_details(issue_id: str) -> str:
        """Get full details of an issue, including comments.

        Args:
            issue_id: Issue identifier, e.g. DATA-1284

        Returns:
            Markdown with metadata, description and comments
        """
        client = state.client
        try:
            found = await find_issue_by_identifier(
                client, state.cache, issue_id
            )
            issue = await with_timeout(
                client.issue(found.id),
                client.timeout,
                f"fetching details for issue {issue_id}",
            )
        except Exception as e:
            raise tool_error(e, "failed to fetch issue details") from e
        return format_issue_details(issue)

    @tool_if_enabled
    async def linear_bulk_update_status(
        issue_ids: list[str],
        target_status: str,
    ) -> str:
        """Move several issues to the same status.

        Issues are processed in small batches. Each issue succeeds or fails
        on its own; failures are listed with a reason.

        Args:
            issue_ids: Issue identifiers, e.g. ["ENG-1", "ENG-2"]
            target_status: Status name to set on every issue

        Returns:
            Markdown lists of updated and failed issues
        """
        logger.debug(
            "bulk updating %d issues to %s", len(issue_ids), target_status
        )
        client = state.client

        async def update_one(issue_id: str) -> str | None:
            """Returns a failure reason, or None on success."""
            parsed = parse_issue_identifier(issue_id)
            if parsed is None:
                return "Invalid format"
            team_key, _ = parsed

            try:
                team = await get_team_by_key(client, state.cache, team_key)
            except TeamNotFound:
                return f'Team "{team_key}" not found'

            try:
                issue = await find_issue_by_identifier(
                    client, state.cache, issue_id
                )
            except IssueNotFound:
                return "Issue not found"

            try:
                workflow_state = await get_workflow_state_by_name(
                    client, state.cache, team.id, target_status
                )
            except WorkflowStateNotFound:
                return f'Status "{target_status}" not found for team {team_key}'

            await with_timeout(
                client.update_issue(issue.id, {"stateId": workflow_state.id}),
                client.timeout,
                f"updating issue {issue_id}",
                mutation=True,
            )
            return None

        async def guarded(issue_id: str) -> str | None:
            try:
                return await update_one(issue_id)
            except TimedOut as e:
                log_error(e, f"failed to update issue {issue_id}")
                if e.mutation:
                    return TIMED_OUT_UNKNOWN_OUTCOME
                return "Timed out"
            except Exception as e:
                log_error(e, f"failed to update issue {issue_id}")
                return "API error"

        def on_progress(completed: int, total: int) -> None:
            logger.debug("progress: %d/%d issues processed", completed, total)

        outcomes = await process_batch(
            issue_ids, BULK_UPDATE_BATCH_SIZE, guarded, on_progress
        )

        results = BulkUpdateResult()
        for issue_id, reason in zip(issue_ids, outcomes):
            if reason is None:
                results.successful.append(issue_id)
            else:
                results.fail(issue_id, reason)
        return results.render()
