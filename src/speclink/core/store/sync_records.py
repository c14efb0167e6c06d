"""
SyncRecord persistence.

There is at most one row per (entity_type, entity_id). A failed link
attempt leaves a ``failed`` row; a later successful attempt overwrites the
same row, so no entity can ever carry two success records.
"""

from __future__ import annotations

import sqlite3
from typing import Any

from speclink.core.errors import NotFoundError
from speclink.core.store.codec import dump_datetime, load_datetime
from speclink.core.store.connection import execute_one, execute_query, transaction
from speclink.core.store.models import EntityType, SyncRecord, SyncStatus

_COLUMNS = (
    "id",
    "entity_type",
    "entity_id",
    "external_id",
    "external_number",
    "node_id",
    "issue_number",
    "issue_url",
    "pr_number",
    "pr_url",
    "pr_merged_at",
    "sync_status",
    "error_message",
    "last_synced_at",
    "checkbox_hash",
    "last_body_hash",
)
_DATETIME_COLUMNS = {"pr_merged_at", "last_synced_at"}


def _to_row(record: SyncRecord) -> tuple[Any, ...]:
    values = record.model_dump()
    values["entity_type"] = record.entity_type.value
    values["sync_status"] = record.sync_status.value
    for column in _DATETIME_COLUMNS:
        values[column] = dump_datetime(values[column])
    return tuple(values[c] for c in _COLUMNS)


def _from_row(row: dict[str, Any]) -> SyncRecord:
    data = dict(row)
    for column in _DATETIME_COLUMNS:
        data[column] = load_datetime(data[column])
    return SyncRecord(**data)


class SyncRecordStore:
    """Repository for the external_sync table."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def get(self, entity_type: EntityType, entity_id: str) -> SyncRecord | None:
        """The record for an entity regardless of status, or None."""
        row = execute_one(
            self.conn,
            "SELECT * FROM external_sync WHERE entity_type = ? AND entity_id = ?",
            (entity_type.value, entity_id),
        )
        return _from_row(row) if row else None

    def get_active(self, entity_type: EntityType, entity_id: str) -> SyncRecord | None:
        """The success-status record for an entity, or None if it is not linked."""
        row = execute_one(
            self.conn,
            "SELECT * FROM external_sync "
            "WHERE entity_type = ? AND entity_id = ? AND sync_status = ?",
            (entity_type.value, entity_id, SyncStatus.SUCCESS.value),
        )
        return _from_row(row) if row else None

    def find_by_issue_number(self, issue_number: int) -> SyncRecord | None:
        """The active spec link for a remote issue number, or None."""
        row = execute_one(
            self.conn,
            "SELECT * FROM external_sync "
            "WHERE entity_type = ? AND issue_number = ? AND sync_status = ?",
            (EntityType.SPEC.value, issue_number, SyncStatus.SUCCESS.value),
        )
        return _from_row(row) if row else None

    def list(
        self,
        entity_type: EntityType | None = None,
        status: SyncStatus | None = None,
    ) -> list[SyncRecord]:
        clauses: list[str] = []
        params: list[Any] = []
        if entity_type is not None:
            clauses.append("entity_type = ?")
            params.append(entity_type.value)
        if status is not None:
            clauses.append("sync_status = ?")
            params.append(status.value)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = execute_query(
            self.conn,
            f"SELECT * FROM external_sync{where} ORDER BY entity_type, entity_id",
            tuple(params),
        )
        return [_from_row(row) for row in rows]

    def save(self, record: SyncRecord) -> SyncRecord:
        """
        Insert or replace the record for (entity_type, entity_id).

        An existing row keeps its id. Returns the record as stored.
        """
        placeholders = ",".join("?" * len(_COLUMNS))
        updates = ", ".join(
            f"{c} = excluded.{c}" for c in _COLUMNS if c not in ("id", "entity_type", "entity_id")
        )
        with transaction(self.conn, f"save sync record for {record.entity_id}"):
            self.conn.execute(
                f"INSERT INTO external_sync ({','.join(_COLUMNS)}) VALUES ({placeholders}) "
                f"ON CONFLICT(entity_type, entity_id) DO UPDATE SET {updates}",
                _to_row(record),
            )
        stored = self.get(record.entity_type, record.entity_id)
        assert stored is not None
        return stored

    def delete(self, entity_type: EntityType, entity_id: str) -> None:
        """
        Remove the record for an entity.

        Raises:
            NotFoundError: If there is no record
        """
        with transaction(self.conn, f"delete sync record for {entity_id}"):
            cursor = self.conn.execute(
                "DELETE FROM external_sync WHERE entity_type = ? AND entity_id = ?",
                (entity_type.value, entity_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError("Sync record", f"{entity_type.value}:{entity_id}")
