"""
Spec records in the local store.

Each write is a single statement inside its own transaction, so a reader
never sees half of a record.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any

from speclink.core.errors import NotFoundError, StoreIOError
from speclink.core.specs.models import Phase, Spec
from speclink.core.store.codec import dump_datetime, load_datetime
from speclink.core.store.connection import execute_one, execute_query, transaction

logger = logging.getLogger(__name__)

_COLUMNS = ("id", "name", "description", "phase", "branch_name", "created_at", "updated_at")


def _to_row(spec: Spec) -> tuple[Any, ...]:
    return (
        spec.id,
        spec.name,
        spec.description,
        spec.phase.value,
        spec.branch_name,
        dump_datetime(spec.created_at),
        dump_datetime(spec.updated_at),
    )


def _from_row(row: dict[str, Any]) -> Spec:
    return Spec(
        id=row["id"],
        name=row["name"],
        description=row["description"] or "",
        phase=Phase(row["phase"]),
        branch_name=row["branch_name"],
        created_at=load_datetime(row["created_at"]),
        updated_at=load_datetime(row["updated_at"]),
    )


class SpecStore:
    """
    put/get/list/delete over the specs table.

    Example:
        >>> store = SpecStore(open_store(":memory:"))
        >>> store.put(Spec(id="abc123", name="Login"))
        >>> store.get("abc123").phase
        <Phase.REQUIREMENTS: 'requirements'>
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def put(self, spec: Spec) -> None:
        """Insert or fully replace a Spec record."""
        placeholders = ",".join("?" * len(_COLUMNS))
        updates = ", ".join(f"{c} = excluded.{c}" for c in _COLUMNS if c != "id")
        with transaction(self.conn, f"save spec {spec.id}"):
            self.conn.execute(
                f"INSERT INTO specs ({','.join(_COLUMNS)}) VALUES ({placeholders}) "
                f"ON CONFLICT(id) DO UPDATE SET {updates}",
                _to_row(spec),
            )
        logger.debug("Saved spec %s (%s)", spec.id, spec.phase.value)

    def insert(self, spec: Spec) -> None:
        """
        Insert a new Spec record.

        Raises:
            StoreIOError: If a record with the same id already exists
        """
        placeholders = ",".join("?" * len(_COLUMNS))
        try:
            with transaction(self.conn, f"insert spec {spec.id}"):
                self.conn.execute(
                    f"INSERT INTO specs ({','.join(_COLUMNS)}) VALUES ({placeholders})",
                    _to_row(spec),
                )
        except StoreIOError as e:
            if isinstance(e.__cause__, sqlite3.IntegrityError):
                raise StoreIOError(f"Spec already exists in the local store: {spec.id}") from e
            raise

    def find(self, spec_id: str) -> Spec | None:
        row = execute_one(self.conn, "SELECT * FROM specs WHERE id = ?", (spec_id,))
        return _from_row(row) if row else None

    def get(self, spec_id: str) -> Spec:
        """
        Get a Spec by id.

        Raises:
            NotFoundError: If no record has this id
        """
        spec = self.find(spec_id)
        if spec is None:
            raise NotFoundError("Spec", spec_id)
        return spec

    def list(self, phase: Phase | None = None) -> list[Spec]:
        """All Specs ordered by creation time, optionally filtered by phase."""
        if phase is None:
            rows = execute_query(self.conn, "SELECT * FROM specs ORDER BY created_at, id")
        else:
            rows = execute_query(
                self.conn,
                "SELECT * FROM specs WHERE phase = ? ORDER BY created_at, id",
                (phase.value,),
            )
        return [_from_row(row) for row in rows]

    def ids(self) -> set[str]:
        return {row["id"] for row in execute_query(self.conn, "SELECT id FROM specs")}

    def delete(self, spec_id: str) -> None:
        """
        Delete a Spec record (and its workflow state).

        Raises:
            NotFoundError: If no record has this id
        """
        with transaction(self.conn, f"delete spec {spec_id}"):
            cursor = self.conn.execute("DELETE FROM specs WHERE id = ?", (spec_id,))
            if cursor.rowcount == 0:
                raise NotFoundError("Spec", spec_id)

    def resolve_id(self, prefix: str) -> str:
        """
        Expand a unique id prefix to the full id.

        Raises:
            NotFoundError: If no id, or more than one id, starts with prefix
        """
        if self.find(prefix) is not None:
            return prefix
        escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        rows = execute_query(
            self.conn,
            "SELECT id FROM specs WHERE id LIKE ? ESCAPE '\\' ORDER BY id LIMIT 2",
            (escaped + "%",),
        )
        if not rows:
            raise NotFoundError("Spec", prefix)
        if len(rows) > 1:
            raise NotFoundError(
                "Spec", prefix, hint="The id prefix is ambiguous; give more characters"
            )
        return str(rows[0]["id"])
