"""
SQLite schema for the speclink local store.

Tables:
- specs: one row per Spec, a projection of the document header plus
  branch_name
- external_sync: links between local entities and remote tracker objects
  (at most one row per entity_type/entity_id)
- workflow_state: resumable task cursor, one row per spec
- schema_info: version tracking for migrations

Timestamps are stored as ISO 8601 strings in UTC.
"""

import sqlite3

# Schema version for migrations
SCHEMA_VERSION = 1

SCHEMA_DDL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_info (
    version INTEGER PRIMARY KEY,
    applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    description TEXT
);

-- Specs (projection of document headers)
CREATE TABLE IF NOT EXISTS specs (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    phase TEXT NOT NULL CHECK(phase IN ('requirements', 'design', 'tasks',
                                        'implementation', 'review', 'completed')),
    branch_name TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

-- Links to remote issue tracker objects
CREATE TABLE IF NOT EXISTS external_sync (
    id TEXT PRIMARY KEY,
    entity_type TEXT NOT NULL CHECK(entity_type IN ('spec', 'task', 'project')),
    entity_id TEXT NOT NULL,
    external_id TEXT,
    external_number INTEGER,
    node_id TEXT,
    issue_number INTEGER,
    issue_url TEXT,
    pr_number INTEGER,
    pr_url TEXT,
    pr_merged_at TEXT,
    sync_status TEXT NOT NULL CHECK(sync_status IN ('success', 'failed', 'pending')),
    error_message TEXT,
    last_synced_at TEXT,
    checkbox_hash TEXT,
    last_body_hash TEXT,

    UNIQUE(entity_type, entity_id)
);

-- Resumable workflow cursor
CREATE TABLE IF NOT EXISTS workflow_state (
    id TEXT PRIMARY KEY,
    spec_id TEXT NOT NULL UNIQUE,
    current_task_number INTEGER NOT NULL CHECK(current_task_number >= 1),
    current_task_title TEXT NOT NULL,
    next_action TEXT NOT NULL CHECK(next_action IN ('task_start', 'task_done', 'none')),
    remote_issue_number INTEGER,
    saved_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,

    FOREIGN KEY (spec_id) REFERENCES specs(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_specs_phase ON specs(phase);
CREATE INDEX IF NOT EXISTS idx_specs_created_at ON specs(created_at);
CREATE INDEX IF NOT EXISTS idx_external_sync_issue ON external_sync(issue_number);
CREATE INDEX IF NOT EXISTS idx_external_sync_status ON external_sync(sync_status);
"""


def create_schema(conn: sqlite3.Connection) -> None:
    """
    Create the database schema.

    Idempotent: safe to call on an existing database.
    """
    conn.executescript(SCHEMA_DDL)
    conn.execute(
        """
        INSERT OR REPLACE INTO schema_info (version, description)
        VALUES (?, ?)
        """,
        (SCHEMA_VERSION, "Initial schema with specs, external_sync, and workflow_state"),
    )
    conn.commit()


def get_schema_version(conn: sqlite3.Connection) -> int | None:
    """
    Get the current schema version from the database.

    Returns:
        Current schema version, or None if schema_info table doesn't exist
    """
    try:
        cursor = conn.execute("SELECT MAX(version) AS version FROM schema_info")
        row = cursor.fetchone()
    except sqlite3.OperationalError:
        # schema_info table doesn't exist
        return None
    if row is None:
        return None
    value = row["version"] if isinstance(row, dict) else row[0]
    return int(value) if value is not None else None


def needs_migration(conn: sqlite3.Connection) -> bool:
    """Check if the database is behind SCHEMA_VERSION (or has no schema)."""
    current_version = get_schema_version(conn)
    if current_version is None:
        return True
    return current_version < SCHEMA_VERSION
