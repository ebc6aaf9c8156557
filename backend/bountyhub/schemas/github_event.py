"""Typed GitHub webhook deliveries.

``parse_event`` turns the ``X-GitHub-Event`` header plus the decoded JSON body
into one variant of ``GitHubEvent``. Known types whose body does not match the
expected shape degrade to ``UnknownEvent`` so they are still acknowledged and
audited without entering the settlement path.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class GitHubAccount(_Payload):
    login: str
    id: Optional[int] = None
    avatar_url: Optional[str] = None
    email: Optional[str] = None


class RepositoryRef(_Payload):
    full_name: str
    name: Optional[str] = None
    html_url: Optional[str] = None


class PullRequestData(_Payload):
    number: int
    title: Optional[str] = None
    html_url: Optional[str] = None
    merged: bool = False
    merged_at: Optional[datetime] = None
    merged_by: Optional[GitHubAccount] = None
    user: GitHubAccount
    additions: int = 0
    deletions: int = 0
    commits: int = 1


class PingEvent(_Payload):
    kind: Literal["ping"] = "ping"
    zen: Optional[str] = None
    hook_id: Optional[int] = None
    repository: Optional[RepositoryRef] = None


class PushEvent(_Payload):
    kind: Literal["push"] = "push"
    ref: Optional[str] = None
    commits: list[dict[str, Any]] = Field(default_factory=list)
    repository: Optional[RepositoryRef] = None


class PullRequestEvent(_Payload):
    kind: Literal["pull_request"] = "pull_request"
    action: str
    pull_request: PullRequestData
    repository: RepositoryRef

    @property
    def is_merge(self) -> bool:
        return self.action == "closed" and self.pull_request.merged


class IssuesEvent(_Payload):
    kind: Literal["issues"] = "issues"
    action: Optional[str] = None
    issue: dict[str, Any] = Field(default_factory=dict)
    repository: Optional[RepositoryRef] = None


class IssueCommentEvent(_Payload):
    kind: Literal["issue_comment"] = "issue_comment"
    action: Optional[str] = None
    comment: dict[str, Any] = Field(default_factory=dict)
    repository: Optional[RepositoryRef] = None


class UnknownEvent(_Payload):
    kind: Literal["unknown"] = "unknown"
    event_type: str
    raw: dict[str, Any]


GitHubEvent = Union[PingEvent, PushEvent, PullRequestEvent, IssuesEvent, IssueCommentEvent, UnknownEvent]

EVENT_TYPES: dict[str, type[BaseModel]] = {
    "ping": PingEvent,
    "push": PushEvent,
    "pull_request": PullRequestEvent,
    "issues": IssuesEvent,
    "issue_comment": IssueCommentEvent,
}


def parse_event(event_type: str, payload: dict[str, Any]) -> GitHubEvent:
    model = EVENT_TYPES.get(event_type)
    if model is None:
        return UnknownEvent(event_type=event_type, raw=payload)
    body = {key: value for key, value in payload.items() if key != "kind"}
    try:
        return model.model_validate(body)
    except ValidationError as e:
        logger.warning("Malformed %s payload, treating as unknown: %s", event_type, e.error_count())
        return UnknownEvent(event_type=event_type, raw=payload)


def repository_full_name(payload: dict[str, Any]) -> Optional[str]:
    """Best-effort ``repository.full_name`` from a raw payload, for the audit log."""
    repository = payload.get("repository")
    if isinstance(repository, dict):
        name = repository.get("full_name")
        if isinstance(name, str):
            return name
    return None
