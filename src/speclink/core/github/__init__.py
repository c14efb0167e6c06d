"""
GitHub integration: API client and the Spec <-> issue sync service.
"""

from speclink.core.github.client import GitHubClient
from speclink.core.github.models import (
    GitHubIssue,
    Project,
    ProjectField,
    ProjectFieldOption,
    ProjectItem,
    PullRequest,
    RepoInfo,
)
from speclink.core.github.sync import (
    BulkSyncFailure,
    BulkSyncResult,
    ExternalSyncService,
    SyncDirection,
    issue_title,
    name_from_title,
    phase_label,
)

__all__ = [
    "BulkSyncFailure",
    "BulkSyncResult",
    "ExternalSyncService",
    "GitHubClient",
    "GitHubIssue",
    "Project",
    "ProjectField",
    "ProjectFieldOption",
    "ProjectItem",
    "PullRequest",
    "RepoInfo",
    "SyncDirection",
    "issue_title",
    "name_from_title",
    "phase_label",
]
