"""Pydantic models for Linear GraphQL results.

Field names are snake_case; the API's camelCase keys are accepted through
the alias generator. Connections (`{"nodes": [...]}`) are flattened into
plain lists.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def _unwrap_nodes(value: Any) -> Any:
    if isinstance(value, dict) and "nodes" in value:
        return value["nodes"]
    return value


class LinearModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class User(LinearModel):
    id: str
    name: str
    email: str | None = None


class WorkflowState(LinearModel):
    id: str
    name: str
    type: str | None = Field(
        default=None,
        description="backlog, unstarted, started, completed, or canceled",
    )


class Label(LinearModel):
    id: str
    name: str


class Team(LinearModel):
    id: str
    name: str
    key: str
    description: str | None = None
    members: list[User] = Field(default_factory=list)

    @field_validator("members", mode="before")
    @classmethod
    def flatten_connections(cls, value: Any) -> Any:
        return _unwrap_nodes(value)


class Cycle(LinearModel):
    id: str
    name: str | None = None
    number: int | None = None
    description: str | None = None
    starts_at: datetime
    ends_at: datetime
    completed_at: datetime | None = None
    team: Team | None = None

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        if self.number is not None:
            return f"Cycle {self.number}"
        return self.id

    def status(self, now: datetime) -> str:
        """ACTIVE, COMPLETED, or UPCOMING relative to `now`."""
        if self.starts_at <= now <= self.ends_at:
            return "ACTIVE"
        if now > self.ends_at:
            return "COMPLETED"
        return "UPCOMING"


class Comment(LinearModel):
    id: str
    body: str
    created_at: datetime
    user: User | None = None


class Attachment(LinearModel):
    id: str
    title: str | None = None
    url: str | None = None


class Issue(LinearModel):
    id: str
    identifier: str
    title: str
    description: str | None = None
    priority: int | None = Field(
        default=None, description="0 none, 1 low, 2 medium, 3 high, 4 urgent"
    )
    url: str | None = None
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None
    state: WorkflowState | None = None
    assignee: User | None = None
    creator: User | None = None
    team: Team | None = None
    labels: list[Label] = Field(default_factory=list)
    subscribers: list[User] = Field(default_factory=list)
    comments: list[Comment] = Field(default_factory=list)
    attachments: list[Attachment] = Field(default_factory=list)

    @field_validator(
        "labels", "subscribers", "comments", "attachments", mode="before"
    )
    @classmethod
    def flatten_connections(cls, value: Any) -> Any:
        return _unwrap_nodes(value)


class PageInfo(LinearModel):
    has_next_page: bool = False
    end_cursor: str | None = None


class IssueConnection(LinearModel):
    nodes: list[Issue] = Field(default_factory=list)
    page_info: PageInfo = Field(default_factory=PageInfo)
