"""Linear API client and cached lookups."""

from linear_mcp.linear.client import (
    LINEAR_API_URL,
    LinearClient,
    verify_connection,
)
from linear_mcp.linear.issues import (
    IssueNotFound,
    build_pagination_info,
    find_issue_by_identifier,
    issue_order_by,
    parse_issue_identifier,
    priority_label,
)
from linear_mcp.linear.models import (
    Cycle,
    Issue,
    IssueConnection,
    Team,
    User,
    WorkflowState,
)
from linear_mcp.linear.teams import (
    TeamNotFound,
    get_all_teams,
    get_team_by_id,
    get_team_by_key,
)
from linear_mcp.linear.workflow import (
    WorkflowStateNotFound,
    get_workflow_state_by_name,
    get_workflow_states_for_team,
)

__all__ = [
    "LINEAR_API_URL",
    "Cycle",
    "Issue",
    "IssueConnection",
    "IssueNotFound",
    "LinearClient",
    "Team",
    "TeamNotFound",
    "User",
    "WorkflowState",
    "WorkflowStateNotFound",
    "build_pagination_info",
    "find_issue_by_identifier",
    "get_all_teams",
    "get_team_by_id",
    "get_team_by_key",
    "get_workflow_state_by_name",
    "get_workflow_states_for_team",
    "issue_order_by",
    "parse_issue_identifier",
    "priority_label",
    "verify_connection",
]
