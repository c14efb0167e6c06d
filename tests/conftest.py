"""
Pytest configuration and shared fixtures.

Provides an isolated environment, an in-memory local store, spec document
builders, and an in-memory fake of the GitHub REST and GraphQL APIs.
"""

import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

from speclink.core.github.client import GitHubClient
from speclink.core.github.models import RepoInfo
from speclink.core.specs.models import Phase, Spec, SpecMetadata
from speclink.core.specs.parser import render
from speclink.core.store.connection import open_store

CREATED = datetime(2025, 11, 19, 10, 47, 58, tzinfo=timezone.utc)
UPDATED = datetime(2025, 11, 20, 9, 1, 12, tzinfo=timezone.utc)

SPEC_ID = "3f2b6c1e-8d4a-4f7b-9c2e-1a5d6e7f8a9b"

COMPLETE_BODY = """\
## 1. Background and Purpose

Users need to sign in with a password or through SSO.

## 2. Target Users

Everyone with an account.

## 3. Acceptance Criteria

- Password sign-in works
- SSO sign-in works

## 4. Constraints

Must not store plain-text passwords.

## 5. Dependencies

The identity provider SDK.

## 7. Design Details

### 7.1. Architecture

A login controller in front of the session service.

### 7.5. Test Strategy

Unit tests for the controller, one end-to-end test per provider.

## 8. Implementation Tasks

- [x] Add login form
- [x] Wire SSO callback
"""

TEMPLATE_BODY = """\
## 1. Background and Purpose

(Describe the background and purpose of this feature)

## 2. Target Users

(Describe the target users)

## 3. Acceptance Criteria

(requirement 1)

## 4. Constraints

## 5. Dependencies

(TBD)
"""


# ==============================================================================
# Environment Fixtures
# ==============================================================================


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep the user's real config, token and overrides out of every test."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    for name in (
        "GITHUB_TOKEN",
        "SPECLINK_DOCUMENTS_DIR",
        "SPECLINK_DB_PATH",
        "SPECLINK_GITHUB_OWNER",
        "SPECLINK_GITHUB_REPO",
        "SPECLINK_GITHUB_PROJECT",
        "SPECLINK_TEST_MODE",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def conn():
    """An in-memory local store with the schema applied."""
    connection = open_store(":memory:")
    yield connection
    connection.close()


@pytest.fixture
def docs_dir(tmp_path):
    """An empty documents directory."""
    path = tmp_path / "specs"
    path.mkdir()
    return path


@pytest.fixture
def project_dir(tmp_path):
    """
    A project directory laid out with the default paths.

    Creates:
    - .speclink/specs/
    - .speclink.json pointing at acme/app
    """
    project = tmp_path / "project"
    (project / ".speclink" / "specs").mkdir(parents=True)
    config = {"github": {"owner": "acme", "repo": "app"}}
    (project / ".speclink.json").write_text(json.dumps(config, indent=2))
    return project


# ==============================================================================
# Spec Builders
# ==============================================================================


def _metadata(
    spec_id: str = SPEC_ID,
    name: str = "Login flow",
    phase: Phase = Phase.REQUIREMENTS,
    created_at: datetime = CREATED,
    updated_at: datetime = UPDATED,
    description: str | None = "Password and SSO sign-in",
) -> SpecMetadata:
    return SpecMetadata(
        id=spec_id,
        name=name,
        phase=phase,
        created_at=created_at,
        updated_at=updated_at,
        description=description,
    )


@pytest.fixture
def make_metadata() -> Callable[..., SpecMetadata]:
    """Build SpecMetadata with sensible defaults; override any field by keyword."""
    return _metadata


@pytest.fixture
def write_spec() -> Callable[..., Path]:
    """
    Write a rendered spec document into a directory.

    Usage:
        path = write_spec(docs_dir, phase=Phase.DESIGN, body=COMPLETE_BODY)
    """

    def _write(directory: Path, body: str = "", **fields: Any) -> Path:
        metadata = _metadata(**fields)
        path = directory / f"{metadata.id}.md"
        path.write_text(render(metadata, body), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def make_spec() -> Callable[..., Spec]:
    """Build a store Spec whose fields match the default document."""

    def _make(branch_name: str | None = None, **fields: Any) -> Spec:
        return Spec.from_metadata(_metadata(**fields), branch_name=branch_name)

    return _make


@pytest.fixture
def complete_body() -> str:
    """Document body that satisfies every phase gate."""
    return COMPLETE_BODY


@pytest.fixture
def template_body() -> str:
    """Document body still holding template placeholders."""
    return TEMPLATE_BODY


# ==============================================================================
# GitHub Fake
# ==============================================================================


class FakeGitHub:
    """
    In-memory stand-in for the GitHub REST and GraphQL APIs.

    Served through httpx.MockTransport. Set ``fail[operation] = status`` to
    make an operation return an error (operations: create_issue,
    update_issue, get_issue, add_comment, create_pull).
    """

    def __init__(self, owner: str = "acme", repo: str = "app") -> None:
        self.owner = owner
        self.repo = repo
        self.issues: dict[int, dict[str, Any]] = {}
        self.pulls: dict[int, dict[str, Any]] = {}
        self.comments: list[tuple[int, str]] = []
        self.project_items: list[tuple[str, str]] = []
        self.field_updates: list[dict[str, Any]] = []
        self.requests: list[httpx.Request] = []
        self.fail: dict[str, int] = {}
        self.status_options = ["Todo", "In Progress", "In Review", "Done"]
        self._next_issue = 1
        self._next_pull = 100

    def client(self) -> GitHubClient:
        http = httpx.Client(transport=httpx.MockTransport(self.handler))
        return GitHubClient(
            "test-token", RepoInfo(owner=self.owner, repo=self.repo), http_client=http
        )

    def close_issue(self, number: int) -> None:
        self.issues[number]["state"] = "closed"

    def merge_pull(self, number: int) -> None:
        self.pulls[number].update(
            {"state": "closed", "merged": True, "merged_at": "2025-11-21T08:30:00Z"}
        )

    def _error(self, operation: str) -> httpx.Response | None:
        status = self.fail.get(operation)
        if status is None:
            return None
        return httpx.Response(status, json={"message": f"{operation} failed"})

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        body = json.loads(request.content) if request.content else {}
        prefix = f"/repos/{self.owner}/{self.repo}"

        if path == "/graphql":
            return httpx.Response(200, json=self._graphql(body))

        if path == f"{prefix}/issues" and request.method == "POST":
            error = self._error("create_issue")
            return error if error is not None else self._create_issue(body)

        match = re.fullmatch(rf"{prefix}/issues/(\d+)", path)
        if match:
            issue = self.issues.get(int(match.group(1)))
            operation = "update_issue" if request.method == "PATCH" else "get_issue"
            error = self._error(operation)
            if error is not None:
                return error
            if issue is None:
                return httpx.Response(404, json={"message": "Not Found"})
            if request.method == "PATCH":
                for key in ("title", "body", "state"):
                    if key in body:
                        issue[key] = body[key]
                if "labels" in body:
                    issue["labels"] = [{"name": name} for name in body["labels"]]
            return httpx.Response(200, json=issue)

        match = re.fullmatch(rf"{prefix}/issues/(\d+)/comments", path)
        if match:
            error = self._error("add_comment")
            if error is not None:
                return error
            self.comments.append((int(match.group(1)), body["body"]))
            return httpx.Response(201, json={"id": len(self.comments)})

        if path == f"{prefix}/pulls" and request.method == "POST":
            error = self._error("create_pull")
            return error if error is not None else self._create_pull(body)

        match = re.fullmatch(rf"{prefix}/pulls/(\d+)", path)
        if match and int(match.group(1)) in self.pulls:
            return httpx.Response(200, json=self.pulls[int(match.group(1))])

        return httpx.Response(404, json={"message": "Not Found"})

    def _create_issue(self, body: dict[str, Any]) -> httpx.Response:
        number = self._next_issue
        self._next_issue += 1
        issue = {
            "number": number,
            "title": body["title"],
            "body": body.get("body", ""),
            "state": "open",
            "labels": [{"name": name} for name in body.get("labels", [])],
            "html_url": f"https://github.com/{self.owner}/{self.repo}/issues/{number}",
            "node_id": f"I_{number}",
        }
        self.issues[number] = issue
        return httpx.Response(201, json=issue)

    def _create_pull(self, body: dict[str, Any]) -> httpx.Response:
        number = self._next_pull
        self._next_pull += 1
        pull = {
            "number": number,
            "title": body["title"],
            "body": body.get("body", ""),
            "state": "open",
            "html_url": f"https://github.com/{self.owner}/{self.repo}/pull/{number}",
            "head": {"ref": body["head"]},
            "base": {"ref": body["base"]},
            "merged": False,
            "merged_at": None,
        }
        self.pulls[number] = pull
        return httpx.Response(201, json=pull)

    def _graphql(self, payload: dict[str, Any]) -> dict[str, Any]:
        query = payload["query"]
        variables = payload["variables"]

        if "addProjectV2ItemById" in query:
            self.project_items.append((variables["projectId"], variables["contentId"]))
            item_id = f"PVTI_{len(self.project_items)}"
            return {"data": {"addProjectV2ItemById": {"item": {"id": item_id}}}}

        if "updateProjectV2ItemFieldValue" in query:
            self.field_updates.append(variables)
            item = {"id": variables["itemId"]}
            return {"data": {"updateProjectV2ItemFieldValue": {"projectV2Item": item}}}

        if "fields(first" in query:
            options = [{"id": f"OPT_{name}", "name": name} for name in self.status_options]
            nodes = [
                {"id": "F_title", "name": "Title"},
                {"id": "F_status", "name": "Status", "options": options},
            ]
            return {"data": {"user": {"projectV2": {"fields": {"nodes": nodes}}}}}

        if "projectV2(number" in query:
            project = {
                "id": "PVT_1",
                "number": variables["number"],
                "title": "Roadmap",
                "url": f"https://github.com/users/{self.owner}/projects/{variables['number']}",
                "closed": False,
            }
            return {"data": {"user": {"projectV2": project}}}

        if "repository(owner" in query:
            return {"data": {"repository": {"issue": {"id": f"I_{variables['number']}"}}}}

        if "user(login" in query:
            return {"data": {"user": {"id": "U_1"}}}

        return {"errors": [{"message": "Unknown query"}]}


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()

