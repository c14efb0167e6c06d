"""
Workflow state: a resumable cursor into a Spec's task list.

One row per Spec, written at session boundaries and deleted when the Spec
reaches ``completed``.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from speclink.core.errors import NotFoundError
from speclink.core.specs.models import to_utc_seconds, utc_now
from speclink.core.store.codec import dump_datetime, load_datetime
from speclink.core.store.connection import execute_one, execute_query, transaction
from speclink.core.store.specs import SpecStore

logger = logging.getLogger(__name__)


class NextAction(str, Enum):
    """What to do when the session resumes."""

    TASK_START = "task_start"
    TASK_DONE = "task_done"
    NONE = "none"


class WorkflowState(BaseModel):
    """
    Saved position in a Spec's implementation tasks.

    Example:
        >>> WorkflowState(spec_id="abc123", current_task_number=3,
        ...               current_task_title="Add login form",
        ...               next_action=NextAction.TASK_START)
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    spec_id: str = Field(..., min_length=1)
    current_task_number: int = Field(..., ge=1, description="1-based task index")
    current_task_title: str = Field(..., min_length=1)
    next_action: NextAction
    remote_issue_number: int | None = Field(default=None, ge=1)
    saved_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("saved_at", "updated_at")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        return to_utc_seconds(v)


def _from_row(row: dict[str, Any]) -> WorkflowState:
    data = dict(row)
    data["saved_at"] = load_datetime(data["saved_at"])
    data["updated_at"] = load_datetime(data["updated_at"])
    return WorkflowState(**data)


class WorkflowStateStore:
    """Upsert-by-spec repository for workflow_state."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def save(
        self,
        spec_id: str,
        current_task_number: int,
        current_task_title: str,
        next_action: NextAction | str,
        remote_issue_number: int | None = None,
    ) -> tuple[WorkflowState, bool]:
        """
        Insert or update the state for a Spec.

        Returns:
            (stored state, True if an existing row was updated)

        Raises:
            pydantic.ValidationError: If the arguments are invalid
            NotFoundError: If the Spec does not exist
        """
        existing = self.find(spec_id)
        now = utc_now()
        state = WorkflowState(
            id=existing.id if existing else str(uuid.uuid4()),
            spec_id=spec_id,
            current_task_number=current_task_number,
            current_task_title=current_task_title,
            next_action=next_action,
            remote_issue_number=remote_issue_number,
            saved_at=now,
            updated_at=now,
        )
        SpecStore(self.conn).get(spec_id)

        with transaction(self.conn, f"save workflow state for {spec_id}"):
            self.conn.execute(
                """
                INSERT INTO workflow_state (id, spec_id, current_task_number,
                    current_task_title, next_action, remote_issue_number, saved_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(spec_id) DO UPDATE SET
                    current_task_number = excluded.current_task_number,
                    current_task_title = excluded.current_task_title,
                    next_action = excluded.next_action,
                    remote_issue_number = excluded.remote_issue_number,
                    saved_at = excluded.saved_at,
                    updated_at = excluded.updated_at
                """,
                (
                    state.id,
                    state.spec_id,
                    state.current_task_number,
                    state.current_task_title,
                    state.next_action.value,
                    state.remote_issue_number,
                    dump_datetime(state.saved_at),
                    dump_datetime(state.updated_at),
                ),
            )
        logger.debug("Saved workflow state for %s (task %d)", spec_id, current_task_number)
        return state, existing is not None

    def find(self, spec_id: str) -> WorkflowState | None:
        row = execute_one(self.conn, "SELECT * FROM workflow_state WHERE spec_id = ?", (spec_id,))
        return _from_row(row) if row else None

    def get(self, spec_id: str) -> WorkflowState:
        """
        Raises:
            NotFoundError: If no state is saved for the Spec
        """
        state = self.find(spec_id)
        if state is None:
            raise NotFoundError("Workflow state", spec_id)
        return state

    def delete(self, spec_id: str) -> bool:
        """Delete the state for a Spec. Returns True if a row was removed."""
        with transaction(self.conn, f"delete workflow state for {spec_id}"):
            cursor = self.conn.execute("DELETE FROM workflow_state WHERE spec_id = ?", (spec_id,))
        deleted = cursor.rowcount > 0
        if deleted:
            logger.debug("Deleted workflow state for %s", spec_id)
        return deleted

    def list(self) -> list[WorkflowState]:
        rows = execute_query(self.conn, "SELECT * FROM workflow_state ORDER BY saved_at DESC")
        return [_from_row(row) for row in rows]
