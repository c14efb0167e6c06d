"""
Bookkeeping models persisted by the local store.

SyncRecords are owned by the sync service and never edited by hand.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing_extensions import assert_never

from speclink.core.specs.models import to_utc_seconds


class EntityType(str, Enum):
    """Kind of local entity a SyncRecord links to a remote object."""

    SPEC = "spec"
    TASK = "task"
    PROJECT = "project"


class SyncStatus(str, Enum):
    """Outcome of the last attempt to link or sync an entity."""

    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"


class SyncRecord(BaseModel):
    """
    Link between a local entity and a remote tracker object.

    For EntityType.SPEC the remote object is an issue (external_id is the
    issue number as text). For EntityType.PROJECT it is a project item
    (external_id is the item id, node_id the project id).
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    entity_type: EntityType
    entity_id: str = Field(..., min_length=1)
    external_id: str | None = None
    external_number: int | None = None
    node_id: str | None = None
    issue_number: int | None = None
    issue_url: str | None = None
    pr_number: int | None = None
    pr_url: str | None = None
    pr_merged_at: datetime | None = None
    sync_status: SyncStatus = SyncStatus.PENDING
    error_message: str | None = None
    last_synced_at: datetime | None = None
    checkbox_hash: str | None = None
    last_body_hash: str | None = None

    model_config = ConfigDict(validate_assignment=True)

    @field_validator("pr_merged_at", "last_synced_at")
    @classmethod
    def normalize_timestamp(cls, v: datetime | None) -> datetime | None:
        return to_utc_seconds(v) if v is not None else None

    @property
    def is_active(self) -> bool:
        """True for a successful link; only these count as linked."""
        return self.sync_status is SyncStatus.SUCCESS

    @property
    def remote_url(self) -> str | None:
        """Browser URL of the linked remote object, when there is one."""
        match self.entity_type:
            case EntityType.SPEC | EntityType.TASK:
                return self.issue_url
            case EntityType.PROJECT:
                return None
            case _:
                assert_never(self.entity_type)

    def describe(self) -> str:
        """One-line description for logs and CLI output."""
        match self.entity_type:
            case EntityType.SPEC:
                target = f"issue #{self.issue_number}"
            case EntityType.TASK:
                target = f"sub-issue #{self.issue_number}"
            case EntityType.PROJECT:
                target = f"project #{self.external_number} item {self.external_id}"
            case _:
                assert_never(self.entity_type)
        return f"{self.entity_type.value} {self.entity_id} -> {target} ({self.sync_status.value})"
