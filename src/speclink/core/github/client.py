"""
GitHub API client for speclink.

Talks to the REST API for issues and pull requests and to the GraphQL API
for Projects (v2), authenticated with a bearer token. Every failure is
raised as ExternalAPIError; nothing is retried here.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Any

import httpx

from speclink.core.config.models import SpecLinkConfig
from speclink.core.errors import ExternalAPIError
from speclink.core.github.models import (
    GitHubIssue,
    Project,
    ProjectField,
    ProjectFieldOption,
    ProjectItem,
    PullRequest,
    RepoInfo,
)

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"

_OWNER_TYPE_QUERY = """
query($owner: String!) {
  user(login: $owner) { id }
}
"""

_PROJECT_QUERY = """
query($owner: String!, $number: Int!) {
  %(owner_type)s(login: $owner) {
    projectV2(number: $number) { id number title url closed }
  }
}
"""

_PROJECT_FIELDS_QUERY = """
query($owner: String!, $number: Int!) {
  %(owner_type)s(login: $owner) {
    projectV2(number: $number) {
      fields(first: 50) {
        nodes {
          ... on ProjectV2FieldCommon { id name }
          ... on ProjectV2SingleSelectField { id name options { id name } }
        }
      }
    }
  }
}
"""

_ISSUE_NODE_ID_QUERY = """
query($owner: String!, $repo: String!, $number: Int!) {
  repository(owner: $owner, name: $repo) {
    issue(number: $number) { id }
  }
}
"""

_ADD_ITEM_MUTATION = """
mutation($projectId: ID!, $contentId: ID!) {
  addProjectV2ItemById(input: {projectId: $projectId, contentId: $contentId}) {
    item { id }
  }
}
"""

_UPDATE_FIELD_MUTATION = """
mutation($projectId: ID!, $itemId: ID!, $fieldId: ID!, $optionId: String!) {
  updateProjectV2ItemFieldValue(input: {
    projectId: $projectId
    itemId: $itemId
    fieldId: $fieldId
    value: {singleSelectOptionId: $optionId}
  }) {
    projectV2Item { id }
  }
}
"""


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return response.reason_phrase


class GitHubClient:
    """
    Client for the GitHub REST and GraphQL APIs.

    Constructed explicitly and passed to the services that need it.

    Example:
        >>> client = GitHubClient(token, RepoInfo(owner="acme", repo="app"))
        >>> issue = client.get_issue(42)
        >>> print(issue.title)
    """

    def __init__(
        self,
        token: str,
        repo: RepoInfo,
        *,
        api_url: str = "https://api.github.com",
        graphql_url: str = "https://api.github.com/graphql",
        timeout: float = 30.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.repo = repo
        self.api_url = api_url.rstrip("/")
        self.graphql_url = graphql_url
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=timeout)
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
        }
        self._owner_types: dict[str, str] = {}

    @classmethod
    def from_config(
        cls,
        config: SpecLinkConfig,
        project_dir: Path,
        token: str,
        *,
        http_client: httpx.Client | None = None,
    ) -> GitHubClient:
        """
        Create a client for the configured repository.

        Owner and repo come from config; when either is missing they are
        read from the project's ``origin`` remote.

        Raises:
            ExternalAPIError: If the repository cannot be determined
        """
        owner, repo_name = config.github.owner, config.github.repo
        if not (owner and repo_name):
            remote_url = cls._get_remote_url(project_dir)
            remote = RepoInfo.from_remote_url(remote_url) if remote_url else None
            if remote is None:
                raise ExternalAPIError(
                    "Cannot determine the GitHub repository",
                    hint="Set github.owner and github.repo in .speclink.json "
                    "or add a github.com 'origin' remote",
                )
            owner = owner or remote.owner
            repo_name = repo_name or remote.repo

        return cls(
            token,
            RepoInfo(owner=owner, repo=repo_name),
            api_url=config.github.api_url,
            graphql_url=config.github.graphql_url,
            timeout=config.github.timeout,
            http_client=http_client,
        )

    @staticmethod
    def _get_remote_url(project_dir: Path) -> str | None:
        """Get the git remote origin URL, or None."""
        try:
            result = subprocess.run(
                ["git", "remote", "get-url", "origin"],
                cwd=project_dir,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError:
            return None
        if result.returncode == 0:
            return result.stdout.strip()
        return None

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def __enter__(self) -> GitHubClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _send(self, method: str, url: str, what: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._http.request(method, url, headers=self._headers, **kwargs)
        except httpx.TimeoutException as e:
            raise ExternalAPIError(f"Timed out trying to {what}", retryable=True) from e
        except httpx.RequestError as e:
            raise ExternalAPIError(f"Network error trying to {what}: {e}", retryable=True) from e

        if response.is_success:
            return response

        status = response.status_code
        message = _error_message(response)
        logger.debug("%s %s -> %d %s", method, url, status, message)
        if status == 404:
            raise ExternalAPIError(f"Not found while trying to {what}", status_code=status)
        if status == 401:
            raise ExternalAPIError(
                f"GitHub rejected the token while trying to {what}: {message}",
                status_code=status,
                hint="Check that GITHUB_TOKEN is set and still valid",
            )
        rate_limited = status in (403, 429) and response.headers.get("x-ratelimit-remaining") == "0"
        raise ExternalAPIError(
            f"GitHub API error {status} while trying to {what}: {message}",
            status_code=status,
            retryable=status >= 500 or rate_limited,
        )

    def _rest(self, method: str, path: str, what: str, **kwargs: Any) -> Any:
        response = self._send(method, f"{self.api_url}{path}", what, **kwargs)
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ExternalAPIError(f"Invalid JSON from GitHub while trying to {what}") from e

    def graphql(
        self,
        query: str,
        variables: dict[str, Any],
        what: str,
        *,
        allow_errors: bool = False,
    ) -> dict[str, Any]:
        """
        Run a GraphQL query and return its ``data``.

        Raises:
            ExternalAPIError: On transport/HTTP failure, or when the payload
                carries ``errors`` (unless allow_errors)
        """
        response = self._send(
            "POST", self.graphql_url, what, json={"query": query, "variables": variables}
        )
        try:
            payload = response.json()
        except ValueError as e:
            raise ExternalAPIError(f"Invalid JSON from GitHub while trying to {what}") from e

        errors = payload.get("errors") if isinstance(payload, dict) else None
        if errors and not allow_errors:
            messages = "; ".join(str(err.get("message", err)) for err in errors)
            raise ExternalAPIError(f"GraphQL error while trying to {what}: {messages}")
        data = payload.get("data") if isinstance(payload, dict) else None
        return data or {}

    @property
    def _repo_path(self) -> str:
        return f"/repos/{self.repo.owner}/{self.repo.repo}"

    # ------------------------------------------------------------------
    # Issues
    # ------------------------------------------------------------------

    def create_issue(self, title: str, body: str, labels: list[str] | None = None) -> GitHubIssue:
        data = self._rest(
            "POST",
            f"{self._repo_path}/issues",
            "create an issue",
            json={"title": title, "body": body, "labels": labels or []},
        )
        issue = GitHubIssue.from_api(data)
        logger.info("Created issue #%d in %s", issue.number, self.repo.full_name)
        return issue

    def update_issue(
        self,
        issue_number: int,
        *,
        title: str | None = None,
        body: str | None = None,
        labels: list[str] | None = None,
        state: str | None = None,
    ) -> GitHubIssue:
        """Update the given fields of an issue; labels replace the existing set."""
        payload: dict[str, Any] = {}
        if title is not None:
            payload["title"] = title
        if body is not None:
            payload["body"] = body
        if labels is not None:
            payload["labels"] = labels
        if state is not None:
            payload["state"] = state
        data = self._rest(
            "PATCH",
            f"{self._repo_path}/issues/{issue_number}",
            f"update issue #{issue_number}",
            json=payload,
        )
        return GitHubIssue.from_api(data)

    def get_issue(self, issue_number: int) -> GitHubIssue:
        data = self._rest(
            "GET", f"{self._repo_path}/issues/{issue_number}", f"fetch issue #{issue_number}"
        )
        return GitHubIssue.from_api(data)

    def list_issues(
        self,
        *,
        state: str = "open",
        labels: list[str] | None = None,
        per_page: int = 100,
    ) -> list[GitHubIssue]:
        """List issues (not pull requests), following pagination."""
        issues: list[GitHubIssue] = []
        page = 1
        while True:
            params: dict[str, Any] = {"state": state, "per_page": per_page, "page": page}
            if labels:
                params["labels"] = ",".join(labels)
            data = self._rest("GET", f"{self._repo_path}/issues", "list issues", params=params)
            batch = data or []
            issues.extend(
                GitHubIssue.from_api(item) for item in batch if "pull_request" not in item
            )
            if len(batch) < per_page:
                return issues
            page += 1

    def add_comment(self, issue_number: int, body: str) -> None:
        self._rest(
            "POST",
            f"{self._repo_path}/issues/{issue_number}/comments",
            f"comment on issue #{issue_number}",
            json={"body": body},
        )

    # ------------------------------------------------------------------
    # Pull requests
    # ------------------------------------------------------------------

    def create_pull_request(self, title: str, head: str, base: str, body: str = "") -> PullRequest:
        data = self._rest(
            "POST",
            f"{self._repo_path}/pulls",
            f"create a pull request from {head} into {base}",
            json={"title": title, "head": head, "base": base, "body": body},
        )
        return PullRequest.from_api(data)

    def get_pull_request(self, pr_number: int) -> PullRequest:
        data = self._rest(
            "GET", f"{self._repo_path}/pulls/{pr_number}", f"fetch pull request #{pr_number}"
        )
        return PullRequest.from_api(data)

    # ------------------------------------------------------------------
    # Projects (v2)
    # ------------------------------------------------------------------

    def get_owner_type(self, owner: str) -> str:
        """Return "user" or "organization" for a login."""
        if owner not in self._owner_types:
            data = self.graphql(
                _OWNER_TYPE_QUERY, {"owner": owner}, f"look up owner {owner}", allow_errors=True
            )
            self._owner_types[owner] = "user" if data.get("user") else "organization"
        return self._owner_types[owner]

    def _project_node(self, data: dict[str, Any], owner_type: str) -> dict[str, Any] | None:
        owner_data = data.get(owner_type) or {}
        node = owner_data.get("projectV2")
        return node if isinstance(node, dict) else None

    def get_project(self, owner: str, number: int) -> Project:
        owner_type = self.get_owner_type(owner)
        data = self.graphql(
            _PROJECT_QUERY % {"owner_type": owner_type},
            {"owner": owner, "number": number},
            f"fetch project #{number}",
        )
        node = self._project_node(data, owner_type)
        if node is None:
            raise ExternalAPIError(f"Project #{number} not found for {owner}", status_code=404)
        return Project.model_validate(node)

    def get_project_fields(self, owner: str, number: int) -> list[ProjectField]:
        owner_type = self.get_owner_type(owner)
        data = self.graphql(
            _PROJECT_FIELDS_QUERY % {"owner_type": owner_type},
            {"owner": owner, "number": number},
            f"fetch fields of project #{number}",
        )
        node = self._project_node(data, owner_type)
        if node is None:
            raise ExternalAPIError(f"Project #{number} not found for {owner}", status_code=404)
        fields = []
        for field in (node.get("fields") or {}).get("nodes") or []:
            if not field or "id" not in field:
                continue
            options = [ProjectFieldOption(**o) for o in field.get("options") or []]
            fields.append(ProjectField(id=field["id"], name=field["name"], options=options))
        return fields

    def get_issue_node_id(self, issue_number: int) -> str:
        data = self.graphql(
            _ISSUE_NODE_ID_QUERY,
            {"owner": self.repo.owner, "repo": self.repo.repo, "number": issue_number},
            f"look up node id of issue #{issue_number}",
        )
        issue = (data.get("repository") or {}).get("issue")
        if not issue:
            raise ExternalAPIError(f"Issue #{issue_number} not found", status_code=404)
        return str(issue["id"])

    def add_project_item(self, project_id: str, content_id: str) -> ProjectItem:
        data = self.graphql(
            _ADD_ITEM_MUTATION,
            {"projectId": project_id, "contentId": content_id},
            "add an item to the project",
        )
        item = (data.get("addProjectV2ItemById") or {}).get("item")
        if not item:
            raise ExternalAPIError("GitHub did not return the new project item")
        return ProjectItem(id=item["id"], project_id=project_id, content_id=content_id)

    def update_item_single_select(
        self,
        project_id: str,
        item_id: str,
        field_id: str,
        option_id: str,
    ) -> None:
        self.graphql(
            _UPDATE_FIELD_MUTATION,
            {
                "projectId": project_id,
                "itemId": item_id,
                "fieldId": field_id,
                "optionId": option_id,
            },
            "update a project field",
        )
