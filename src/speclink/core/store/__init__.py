"""
Local store: SQLite persistence for Specs and their bookkeeping records.
"""

from speclink.core.store.backup import (
    BackupInfo,
    create_backup,
    list_backups,
    opportunistic_backup,
    restore_backup,
)
from speclink.core.store.connection import open_store, transaction
from speclink.core.store.models import EntityType, SyncRecord, SyncStatus
from speclink.core.store.specs import SpecStore
from speclink.core.store.sync_records import SyncRecordStore

__all__ = [
    "BackupInfo",
    "EntityType",
    "SpecStore",
    "SyncRecord",
    "SyncRecordStore",
    "SyncStatus",
    "create_backup",
    "list_backups",
    "open_store",
    "opportunistic_backup",
    "restore_backup",
    "transaction",
]
