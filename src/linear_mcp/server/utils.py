"""Server utility functions."""

from __future__ import annotations

from datetime import datetime, timezone

from mcp.server.fastmcp.exceptions import ToolError

from linear_mcp.errors import LinearAPIError, log_error
from linear_mcp.linear.models import Issue
from linear_mcp.linear.issues import priority_label
from linear_mcp.timeout import TimedOut


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_datetime(value: datetime | None) -> str:
    if value is None:
        return "-"
    return value.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def format_date(value: datetime | None) -> str:
    if value is None:
        return "-"
    return value.astimezone(timezone.utc).strftime("%Y-%m-%d")


def parse_iso_date(value: str, name: str) -> datetime:
    """Parse an ISO date or datetime; naive values are taken as UTC.

    Raises:
        ValueError: If the value is not ISO formatted
    """
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        raise ValueError(
            f"Invalid {name} format. Use ISO format (YYYY-MM-DD)"
        ) from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_issue_line(issue: Issue) -> str:
    """One-line summary: identifier, title, status and assignee."""
    state = issue.state.name if issue.state else "No status"
    line = f"{issue.identifier}: {issue.title} ({state})"
    if issue.assignee:
        line += f" - Assigned to: {issue.assignee.name}"
    return line


def format_issue_summary(issue: Issue) -> str:
    """Multi-line summary used by issue search results."""
    state = issue.state.name if issue.state else "No status"
    assignee = f" | Assignee: {issue.assignee.name}" if issue.assignee else ""
    return (
        f"{issue.identifier}: {issue.title}\n"
        f"  Status: {state} | Priority: {priority_label(issue.priority)}"
        f"{assignee}\n"
        f"  Created: {format_datetime(issue.created_at)} | "
        f"Updated: {format_datetime(issue.updated_at)}\n"
        f"  URL: {issue.url or '-'}"
    )


def tool_error(error: Exception, context: str) -> ToolError:
    """Log a handler failure and turn it into a client-facing ToolError.

    Usage:
        except Exception as e:
            raise tool_error(e, "failed to search issues") from e
    """
    log_error(error, context)
    if isinstance(error, TimedOut):
        if error.mutation:
            return ToolError(
                f"{context}: Linear API did not respond in time, "
                "outcome unknown (the change may still have been applied)"
            )
        return ToolError(f"{context}: Linear API did not respond in time")
    if isinstance(error, (LinearAPIError, ValueError)):
        return ToolError(f"{context}: {error}")
    return ToolError(f"{context}: unexpected error ({type(error).__name__})")
