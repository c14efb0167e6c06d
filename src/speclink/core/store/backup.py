"""
Local store backups.

Backups use SQLite's online backup API, which produces a consistent
snapshot even while another process is writing. Files are named by UTC
timestamp so lexical order is chronological.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import closing
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel

from speclink.core.errors import NotFoundError, SpecLinkError
from speclink.core.store.connection import store_errors

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "speclink-"
EMERGENCY_PREFIX = "emergency-"
BACKUP_SUFFIX = ".db"


class BackupInfo(BaseModel):
    """A backup file on disk."""

    path: Path
    created_at: datetime
    size_bytes: int


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")


def _copy_database(source: Path, dest: Path) -> None:
    with closing(sqlite3.connect(str(source))) as src, closing(sqlite3.connect(str(dest))) as dst:
        src.backup(dst)


def list_backups(backup_dir: Path) -> list[BackupInfo]:
    """Regular backups in backup_dir, newest first."""
    if not backup_dir.is_dir():
        return []
    backups = []
    for path in sorted(backup_dir.glob(f"{BACKUP_PREFIX}*{BACKUP_SUFFIX}"), reverse=True):
        stamp = path.name[len(BACKUP_PREFIX):-len(BACKUP_SUFFIX)]
        try:
            created_at = datetime.strptime(stamp, "%Y%m%dT%H%M%S%fZ").replace(tzinfo=timezone.utc)
        except ValueError:
            continue
        backups.append(BackupInfo(path=path, created_at=created_at, size_bytes=path.stat().st_size))
    return backups


def prune_backups(backup_dir: Path, max_backups: int) -> list[Path]:
    """Delete the oldest backups beyond max_backups. Returns the deleted paths."""
    removed = []
    for info in list_backups(backup_dir)[max_backups:]:
        info.path.unlink(missing_ok=True)
        removed.append(info.path)
        logger.debug("Pruned backup %s", info.path)
    return removed


def create_backup(db_path: Path, backup_dir: Path, max_backups: int = 10) -> Path:
    """
    Snapshot the local store into backup_dir.

    Args:
        db_path: Local store to back up
        backup_dir: Destination directory (created if needed)
        max_backups: Number of backups to keep after this one is written

    Returns:
        Path of the new backup file

    Raises:
        NotFoundError: If db_path does not exist
        StoreIOError: If the snapshot cannot be written
    """
    if not db_path.exists():
        raise NotFoundError("Local store", str(db_path))

    with store_errors("create a backup"):
        backup_dir.mkdir(parents=True, exist_ok=True)
        dest = backup_dir / f"{BACKUP_PREFIX}{_timestamp()}{BACKUP_SUFFIX}"
        _copy_database(db_path, dest)
        prune_backups(backup_dir, max_backups)

    logger.info("Backed up %s to %s", db_path, dest)
    return dest


def restore_backup(backup_path: Path, db_path: Path, backup_dir: Path | None = None) -> Path | None:
    """
    Replace the local store's contents with a backup.

    The current store is first copied aside as an emergency backup so a
    bad restore can be undone.

    Returns:
        Path of the emergency copy, or None if there was no store to copy

    Raises:
        NotFoundError: If the backup file does not exist
        StoreIOError: If the copy or restore fails
    """
    if not backup_path.exists():
        raise NotFoundError("Backup", str(backup_path))

    emergency: Path | None = None
    with store_errors("restore a backup"):
        if db_path.exists():
            target_dir = backup_dir or db_path.parent
            target_dir.mkdir(parents=True, exist_ok=True)
            emergency = target_dir / f"{EMERGENCY_PREFIX}{_timestamp()}{BACKUP_SUFFIX}"
            _copy_database(db_path, emergency)
        else:
            db_path.parent.mkdir(parents=True, exist_ok=True)
        _copy_database(backup_path, db_path)

    logger.info("Restored %s from %s", db_path, backup_path)
    return emergency


def opportunistic_backup(db_path: Path, backup_dir: Path, max_backups: int = 10) -> Path | None:
    """
    Take a backup if possible; never raises.

    Failures are logged at WARNING and reported as None.
    """
    try:
        return create_backup(db_path, backup_dir, max_backups)
    except (SpecLinkError, OSError, sqlite3.Error) as e:
        logger.warning("Skipping store backup: %s", e)
        return None
