"""
GitHub data models for speclink.

Pydantic models for repository identity and the REST/GraphQL objects the
sync service reads back.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, computed_field

_SSH_PATTERN = re.compile(r"^(?:ssh://)?git@github\.com[:/]([^/]+)/([^/]+?)(?:\.git)?/?$")
_HTTPS_PATTERN = re.compile(r"^https?://(?:[^@/]+@)?github\.com/([^/]+)/([^/]+?)(?:\.git)?/?$")


class RepoInfo(BaseModel):
    """
    GitHub repository identity.

    Example:
        >>> RepoInfo.from_remote_url("git@github.com:acme/app.git")
        RepoInfo(owner='acme', repo='app')
    """

    owner: str = Field(..., min_length=1, description="Repository owner (user or organization)")
    repo: str = Field(..., min_length=1, description="Repository name")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @classmethod
    def from_remote_url(cls, remote_url: str) -> RepoInfo | None:
        """
        Parse owner/repo from a git remote URL.

        Handles SSH (``git@github.com:owner/repo.git``, ``ssh://git@github.com/...``)
        and HTTPS (optionally with credentials) forms. Returns None for
        anything that is not a github.com remote.
        """
        if not remote_url:
            return None
        url = remote_url.strip()
        match = _SSH_PATTERN.match(url) or _HTTPS_PATTERN.match(url)
        if match is None:
            return None
        return cls(owner=match.group(1), repo=match.group(2))


def _label_names(data: Any) -> list[str]:
    names = []
    if isinstance(data, list):
        for label in data:
            if isinstance(label, dict) and isinstance(label.get("name"), str):
                names.append(label["name"])
            elif isinstance(label, str):
                names.append(label)
    return names


class GitHubIssue(BaseModel):
    """An issue as returned by the REST API."""

    number: int
    title: str
    body: str = ""
    state: str = "open"
    labels: list[str] = Field(default_factory=list)
    url: str = Field(default="", description="HTML URL for the issue")
    node_id: str | None = Field(default=None, description="GraphQL global id")

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> GitHubIssue:
        return cls(
            number=int(data["number"]),
            title=str(data.get("title") or ""),
            body=str(data.get("body") or ""),
            state=str(data.get("state") or "open"),
            labels=_label_names(data.get("labels")),
            url=str(data.get("html_url") or ""),
            node_id=data.get("node_id"),
        )


class PullRequest(BaseModel):
    """A pull request and its merge status."""

    number: int
    title: str = ""
    state: str = "open"
    url: str = ""
    head: str = ""
    base: str = ""
    merged: bool = False
    merged_at: datetime | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> PullRequest:
        head = data.get("head") or {}
        base = data.get("base") or {}
        merged_at = data.get("merged_at")
        merged_time = (
            datetime.fromisoformat(merged_at.replace("Z", "+00:00")) if merged_at else None
        )
        return cls(
            number=int(data["number"]),
            title=str(data.get("title") or ""),
            state=str(data.get("state") or "open"),
            url=str(data.get("html_url") or ""),
            head=str(head.get("ref") or "") if isinstance(head, dict) else "",
            base=str(base.get("ref") or "") if isinstance(base, dict) else "",
            merged=bool(data.get("merged")) or merged_at is not None,
            merged_at=merged_time,
        )


class Project(BaseModel):
    """A Projects (v2) board."""

    id: str
    number: int
    title: str = ""
    url: str = ""
    closed: bool = False


class ProjectFieldOption(BaseModel):
    id: str
    name: str


class ProjectField(BaseModel):
    """A project field; only single-select fields carry options."""

    id: str
    name: str
    options: list[ProjectFieldOption] = Field(default_factory=list)

    def option(self, name: str) -> ProjectFieldOption | None:
        return next((o for o in self.options if o.name == name), None)


class ProjectItem(BaseModel):
    """An issue placed on a project board."""

    id: str
    project_id: str
    content_id: str | None = None
