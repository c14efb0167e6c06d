"""
Remote link coverage: which Specs have a linked issue and which link
attempts failed.
"""

from __future__ import annotations

import sqlite3

from speclink.core.integrity.models import GitHubSyncReport, LinkStatus
from speclink.core.store.models import EntityType, SyncStatus
from speclink.core.store.specs import SpecStore
from speclink.core.store.sync_records import SyncRecordStore


class GitHubSyncChecker:
    """Read-only report over specs and their spec-level SyncRecords."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.specs = SpecStore(conn)
        self.records = SyncRecordStore(conn)

    def check(self) -> GitHubSyncReport:
        specs = self.specs.list()
        records = {r.entity_id: r for r in self.records.list(entity_type=EntityType.SPEC)}
        report = GitHubSyncReport(total_specs=len(specs))

        for spec in specs:
            record = records.get(spec.id)
            status = LinkStatus(spec_id=spec.id, name=spec.name, phase=spec.phase.value)
            if record is not None and record.sync_status is SyncStatus.SUCCESS:
                status.issue_number = record.issue_number
                status.issue_url = record.issue_url
                report.linked.append(status)
                continue
            report.unlinked.append(status)
            if record is not None and record.sync_status is SyncStatus.FAILED:
                status.error_message = record.error_message or "Unknown error"
                report.failed.append(status)

        return report
