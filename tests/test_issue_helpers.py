from datetime import datetime, timezone

import pytest
from mcp.server.fastmcp.exceptions import ToolError

from linear_mcp.errors import LinearAPIError
from linear_mcp.linear.cycles import CycleDetails
from linear_mcp.linear.issues import (
    build_issue_filter,
    build_pagination_info,
    issue_order_by,
    parse_issue_identifier,
    priority_label,
)
from linear_mcp.linear.models import Cycle, Issue, PageInfo, Team
from linear_mcp.server.utils import parse_iso_date, tool_error
from linear_mcp.timeout import TimedOut
from linear_mcp.tools.cycles import (
    format_cycle_details,
    format_cycle_list,
    validate_cycle_params,
)
from linear_mcp.tools.issues import BulkUpdateResult

NOW = datetime(2024, 1, 10, tzinfo=timezone.utc)


def make_cycle(cycle_id, starts, ends, **extra):
    return Cycle.model_validate(
        {"id": cycle_id, "startsAt": starts, "endsAt": ends, **extra}
    )


class TestIssueIdentifiers:
    @pytest.mark.parametrize(
        "identifier,expected",
        [
            ("ENG-123", ("ENG", 123)),
            ("DATA-1", ("DATA", 1)),
            ("eng-123", None),
            ("ENG123", None),
            ("ENG-", None),
            ("ENG-12a", None),
            ("", None),
        ],
    )
    def test_parse(self, identifier, expected):
        assert parse_issue_identifier(identifier) == expected


class TestIssueQueryHelpers:
    def test_default_order(self):
        assert issue_order_by() == [{"updatedAt": {"order": "Descending"}}]

    def test_order_by_field(self):
        assert issue_order_by("created", "asc") == [
            {"createdAt": {"order": "Ascending"}}
        ]

    def test_unknown_sort_field_falls_back(self):
        assert issue_order_by("bogus") == [
            {"updatedAt": {"order": "Descending"}}
        ]

    @pytest.mark.parametrize(
        "priority,label",
        [(None, "None"), (0, "No priority"), (4, "Urgent"), (9, "Unknown (9)")],
    )
    def test_priority_label(self, priority, label):
        assert priority_label(priority) == label

    def test_empty_filter(self):
        assert build_issue_filter() == {}

    def test_full_filter(self):
        filter = build_issue_filter(
            team_id="t1",
            status="Done",
            assignee_id="u1",
            priority=0,
            query="crash",
            cycle_id="c1",
        )
        assert filter["team"] == {"id": {"eq": "t1"}}
        assert filter["state"] == {"name": {"eq": "Done"}}
        assert filter["assignee"] == {"id": {"eq": "u1"}}
        assert filter["priority"] == {"eq": 0}
        assert filter["cycle"] == {"id": {"eq": "c1"}}
        assert {"title": {"containsIgnoreCase": "crash"}} in filter["or"]

    def test_pagination_first_page(self):
        text = build_pagination_info(PageInfo(), 10)
        assert "This is the first page of results." in text
        assert "Results per page: 10" in text
        assert "No more pages available." in text

    def test_pagination_next_cursor(self):
        page = PageInfo(has_next_page=True, end_cursor="abc")
        text = build_pagination_info(
            page, 25, cursor="prev", query="bug", team_id="t1"
        )
        assert "based on the provided cursor" in text
        assert "use cursor: abc" in text
        assert 'query: "bug", team_id: "t1", cursor: "abc"' in text


class TestModels:
    def test_connections_are_flattened(self):
        issue = Issue.model_validate(
            {
                "id": "i1",
                "identifier": "ENG-1",
                "title": "Crash",
                "createdAt": "2024-01-01T00:00:00Z",
                "updatedAt": "2024-01-01T00:00:00Z",
                "labels": {"nodes": [{"id": "l1", "name": "bug"}]},
                "subscribers": {"nodes": []},
                "unknownField": True,
            }
        )
        assert [label.name for label in issue.labels] == ["bug"]
        assert issue.subscribers == []
        assert issue.created_at.tzinfo is not None

    def test_team_members(self):
        team = Team.model_validate(
            {
                "id": "t1",
                "name": "Eng",
                "key": "ENG",
                "members": {"nodes": [{"id": "u1", "name": "Ada"}]},
            }
        )
        assert team.members[0].name == "Ada"

    def test_cycle_status(self):
        active = make_cycle("a", "2024-01-01T00:00:00Z", "2024-01-14T00:00:00Z")
        done = make_cycle("b", "2023-12-01T00:00:00Z", "2023-12-14T00:00:00Z")
        later = make_cycle("c", "2024-02-01T00:00:00Z", "2024-02-14T00:00:00Z")
        assert active.status(NOW) == "ACTIVE"
        assert done.status(NOW) == "COMPLETED"
        assert later.status(NOW) == "UPCOMING"

    def test_cycle_display_name(self):
        cycle = make_cycle(
            "c9", "2024-01-01T00:00:00Z", "2024-01-14T00:00:00Z", number=3
        )
        assert cycle.display_name == "Cycle 3"


class TestCycleParams:
    def test_get_requires_cycle_id(self):
        with pytest.raises(ValueError, match="cycle_id is required for get"):
            validate_cycle_params("get", None, None, None, None)

    def test_create_requires_fields(self):
        with pytest.raises(ValueError, match="name, start_date, and end_date"):
            validate_cycle_params("create", None, "S1", "2024-01-01", None)

    def test_bad_date(self):
        with pytest.raises(ValueError, match="Invalid start_date format"):
            validate_cycle_params("create", None, "S1", "01/02/2024", "x")

    def test_end_before_start(self):
        with pytest.raises(ValueError, match="end_date must be after"):
            validate_cycle_params(
                "create", None, "S1", "2024-01-14", "2024-01-01"
            )

    def test_valid_create(self):
        starts, ends = validate_cycle_params(
            "create", None, "S1", "2024-01-01", "2024-01-14T12:00:00+00:00"
        )
        assert starts == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert ends.hour == 12

    def test_list_needs_nothing(self):
        assert validate_cycle_params("list", None, None, None, None) == (
            None,
            None,
        )

    def test_naive_dates_are_utc(self):
        parsed = parse_iso_date("2024-05-01", "start_date")
        assert parsed.tzinfo == timezone.utc


class TestFormatting:
    def test_cycle_list(self):
        team = Team(id="t1", name="Eng", key="ENG")
        cycles = [
            make_cycle(
                "a", "2024-01-01T00:00:00Z", "2024-01-14T00:00:00Z", name="S1"
            )
        ]
        text = format_cycle_list(team, cycles, NOW)
        assert text.startswith("# Cycles for Team: Eng")
        assert "- S1 (ACTIVE)" in text
        assert "Period: 2024-01-01 to 2024-01-14" in text

    def test_empty_cycle_list(self):
        team = Team(id="t1", name="Eng", key="ENG")
        text = format_cycle_list(team, [], NOW)
        assert text == "No cycles found for team Eng."

    def test_cycle_details_without_issues(self):
        cycle = make_cycle(
            "a", "2023-12-01T00:00:00Z", "2023-12-14T00:00:00Z", name="Old"
        )
        text = format_cycle_details(CycleDetails(cycle, None), NOW)
        assert "Status: Inactive (Completed)" in text
        assert "Progress: 0% (0/0 issues completed)" in text
        assert text.endswith("No issues in this cycle.")

    def test_bulk_result_render(self):
        result = BulkUpdateResult()
        result.successful.extend(["ENG-1", "ENG-2"])
        result.fail("bad", "Invalid format")
        text = result.render()
        assert "## Successfully Updated (2)\n\nENG-1, ENG-2" in text
        assert "## Failed Updates (1)\n\n- bad: Invalid format" in text


class TestToolError:
    def test_timeout_message(self):
        error = tool_error(TimedOut("fetching team", 30), "failed to fetch")
        assert isinstance(error, ToolError)
        assert "did not respond in time" in str(error)
        assert "outcome unknown" not in str(error)

    def test_mutation_timeout_outcome_unknown(self):
        error = tool_error(
            TimedOut("creating issue", 30, mutation=True),
            "failed to create issue",
        )
        assert "outcome unknown" in str(error)
        assert "may still have been applied" in str(error)

    def test_api_error_message(self):
        error = tool_error(LinearAPIError("Forbidden", 403), "failed")
        assert str(error) == "failed: Forbidden"

    def test_unexpected_error_hides_details(self):
        error = tool_error(KeyError("secret"), "failed")
        assert str(error) == "failed: unexpected error (KeyError)"
