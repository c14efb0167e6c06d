"""
Integrity checker: documents on disk vs records in the local store.

The check is read-only and idempotent, so it is safe to run
opportunistically after any command. One broken document never aborts the
scan; its parse error becomes that id's mismatch entry.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from speclink.core.errors import DocumentError, SpecLinkError
from speclink.core.integrity.models import IntegrityReport, MismatchEntry
from speclink.core.specs.models import Spec, SpecMetadata, to_utc_seconds
from speclink.core.specs.parser import parse_file
from speclink.core.store.specs import SpecStore

logger = logging.getLogger(__name__)


def document_ids(documents_dir: Path) -> list[str]:
    """Ids of the ``*.md`` documents directly inside documents_dir, sorted."""
    if not documents_dir.is_dir():
        return []
    return sorted(p.stem for p in documents_dir.glob("*.md") if p.is_file())


def document_path(documents_dir: Path, spec_id: str) -> Path:
    return documents_dir / f"{spec_id}.md"


def compare(metadata: SpecMetadata, record: Spec) -> list[str]:
    """
    Field-by-field differences between a document and its store record.

    Compares name, phase and updated_at (whole seconds, UTC).
    """
    differences = []
    if metadata.name != record.name:
        differences.append(f'Name mismatch: file="{metadata.name}" store="{record.name}"')
    if metadata.phase != record.phase:
        differences.append(
            f'Phase mismatch: file="{metadata.phase.value}" store="{record.phase.value}"'
        )
    file_time = to_utc_seconds(metadata.updated_at)
    store_time = to_utc_seconds(record.updated_at)
    if file_time != store_time:
        differences.append(
            f'Updated time mismatch: file="{file_time.strftime("%Y-%m-%dT%H:%M:%S")}" '
            f'store="{store_time.strftime("%Y-%m-%dT%H:%M:%S")}"'
        )
    return differences


class IntegrityChecker:
    """Classifies every Spec id as synced, file-only, store-only or mismatched."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.specs = SpecStore(conn)

    def check(self, documents_dir: Path) -> IntegrityReport:
        """
        Build an IntegrityReport for documents_dir.

        A missing documents directory counts as an empty set of documents.

        Raises:
            StoreIOError: If the store cannot be read
        """
        file_ids = document_ids(documents_dir)
        records = {spec.id: spec for spec in self.specs.list()}
        file_set = set(file_ids)

        report = IntegrityReport(
            files_only=[i for i in file_ids if i not in records],
            store_only=sorted(i for i in records if i not in file_set),
            total_files=len(file_ids),
            total_store_records=len(records),
        )

        for spec_id in file_ids:
            record = records.get(spec_id)
            if record is None:
                continue
            try:
                metadata = parse_file(document_path(documents_dir, spec_id))
            except DocumentError as e:
                logger.debug("Could not parse %s: %s", spec_id, e)
                report.mismatch.append(MismatchEntry(id=spec_id, differences=[f"Parse error: {e}"]))
                continue

            differences = compare(metadata, record)
            if differences:
                report.mismatch.append(MismatchEntry(id=spec_id, differences=differences))
            else:
                report.synced.append(spec_id)

        logger.debug("Integrity check: %s", report.summary())
        return report

    def check_quietly(self, documents_dir: Path) -> IntegrityReport | None:
        """
        Run check() without ever raising.

        Used after commands that change state; problems are logged as
        warnings and the caller carries on.
        """
        try:
            report = self.check(documents_dir)
        except (SpecLinkError, OSError, sqlite3.Error) as e:
            logger.warning("Integrity check skipped: %s", e)
            return None
        if not report.is_clean:
            logger.warning("Integrity check: %s", report.summary())
        return report
