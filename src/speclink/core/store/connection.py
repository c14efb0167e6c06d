"""
SQLite connection management for the local store.

Writers are serialized by SQLite's own locking. A connection waits up to
``timeout`` seconds for a lock; if it still cannot get one the error is
raised as a retryable StoreIOError and the caller decides what to do.

Usage:
    from speclink.core.store.connection import open_store, transaction

    conn = open_store(Path(".speclink/speclink.db"))
    with transaction(conn):
        conn.execute("UPDATE specs SET phase = ? WHERE id = ?", ("design", spec_id))
"""

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from speclink.core.errors import StoreIOError
from speclink.core.store.schema import create_schema, needs_migration

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0

_LOCK_MARKERS = ("database is locked", "database table is locked", "busy")


def dict_factory(cursor: sqlite3.Cursor, row: tuple[Any, ...]) -> dict[str, Any]:
    """Row factory that returns rows as dictionaries keyed by column name."""
    fields = [column[0] for column in cursor.description]
    return dict(zip(fields, row))


def is_lock_error(error: BaseException) -> bool:
    """True if the error is a lock/busy timeout rather than a real failure."""
    return isinstance(error, sqlite3.OperationalError) and any(
        marker in str(error).lower() for marker in _LOCK_MARKERS
    )


def to_store_error(error: BaseException, action: str) -> StoreIOError:
    """Wrap a sqlite3/OS error as a StoreIOError."""
    if is_lock_error(error):
        return StoreIOError(
            f"Local store is locked while trying to {action}: {error}",
            retryable=True,
            hint="Another speclink process is writing; try again shortly",
        )
    return StoreIOError(f"Local store failure while trying to {action}: {error}")


@contextmanager
def store_errors(action: str) -> Iterator[None]:
    """Translate sqlite3.Error and OSError raised inside the block."""
    try:
        yield
    except (sqlite3.Error, OSError) as e:
        raise to_store_error(e, action) from e


def configure_connection(conn: sqlite3.Connection, timeout: float = DEFAULT_TIMEOUT) -> None:
    """
    Configure a SQLite connection.

    Settings applied:
    - WAL mode: readers do not block the single writer
    - Foreign keys: enforce referential integrity
    - busy_timeout: bounded wait for locks
    - dict_factory: dict-like row access
    """
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.execute(f"PRAGMA busy_timeout={int(timeout * 1000)}")
    conn.row_factory = dict_factory


def open_store(db_path: Path | str, *, timeout: float = DEFAULT_TIMEOUT) -> sqlite3.Connection:
    """
    Open (and if needed create) the local store.

    Args:
        db_path: Path to the SQLite database file, or ":memory:"
        timeout: Seconds to wait for a lock before failing

    Returns:
        Configured connection with an up-to-date schema

    Raises:
        StoreIOError: If the database cannot be opened or initialized
    """
    with store_errors("open the local store"):
        if str(db_path) != ":memory:":
            db_path = Path(db_path)
            db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(db_path), timeout=timeout)
        try:
            configure_connection(conn, timeout)
            if needs_migration(conn):
                logger.debug("Creating local store schema at %s", db_path)
                create_schema(conn)
        except BaseException:
            conn.close()
            raise
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection, action: str = "write") -> Iterator[sqlite3.Connection]:
    """
    Run a block as one transaction.

    Commits on success and rolls back on any exception. sqlite3 and OS
    errors surface as StoreIOError.
    """
    try:
        yield conn
        conn.commit()
    except (sqlite3.Error, OSError) as e:
        conn.rollback()
        raise to_store_error(e, action) from e
    except BaseException:
        conn.rollback()
        raise


def execute_query(
    conn: sqlite3.Connection,
    query: str,
    params: tuple[Any, ...] | dict[str, Any] = (),
) -> list[dict[str, Any]]:
    """Execute a SELECT and return all rows as dicts."""
    with store_errors("read from the local store"):
        return conn.execute(query, params).fetchall()


def execute_one(
    conn: sqlite3.Connection,
    query: str,
    params: tuple[Any, ...] | dict[str, Any] = (),
) -> dict[str, Any] | None:
    """Execute a SELECT and return the first row, or None."""
    with store_errors("read from the local store"):
        result = conn.execute(query, params).fetchone()
    # fetchone() returns dict[str, Any] or None when dict_factory is configured
    return result  # type: ignore[no-any-return]
