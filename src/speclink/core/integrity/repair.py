"""
Repair: one fixed action per integrity classification.

- files_only: import the document into the store
- store_only: flag for the operator, never delete
- mismatch: the document wins and overwrites the store record

Repair is re-entrant. A record that already equals its document is not
written again, so a second run changes nothing.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from speclink.core.config.models import BackupConfig
from speclink.core.errors import DocumentError, StoreIOError
from speclink.core.integrity.checker import document_path
from speclink.core.integrity.models import IntegrityReport, RepairError, RepairResult
from speclink.core.specs.models import Spec
from speclink.core.specs.parser import parse_file
from speclink.core.store.backup import opportunistic_backup
from speclink.core.store.specs import SpecStore

logger = logging.getLogger(__name__)


class RepairService:
    """
    Applies repair actions for an IntegrityReport.

    Example:
        >>> report = IntegrityChecker(conn).check(docs)
        >>> result = RepairService(conn, docs).repair(report)
        >>> result.summary()
        '1 imported, 0 updated'
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        documents_dir: Path,
        *,
        db_path: Path | None = None,
        backup: BackupConfig | None = None,
    ) -> None:
        self.specs = SpecStore(conn)
        self.documents_dir = documents_dir
        self.db_path = db_path
        self.backup = backup
        self._backed_up = False

    def _before_write(self) -> None:
        """Take one opportunistic backup before the first mutating write."""
        if self._backed_up or self.backup is None or not self.backup.enabled:
            return
        self._backed_up = True
        if self.db_path is not None:
            opportunistic_backup(self.db_path, self.backup.directory, self.backup.max_backups)

    def _import(self, spec_id: str, result: RepairResult) -> None:
        if self.specs.find(spec_id) is not None:
            # Imported since the report was taken
            self._overwrite(spec_id, result)
            return
        try:
            metadata = parse_file(document_path(self.documents_dir, spec_id))
        except DocumentError as e:
            logger.warning("Cannot import %s: %s", spec_id, e)
            result.failed.append(spec_id)
            result.errors.append(RepairError(id=spec_id, error=str(e)))
            return

        self._before_write()
        try:
            self.specs.insert(Spec.from_metadata(metadata))
        except StoreIOError as e:
            if e.retryable:
                raise
            result.failed.append(spec_id)
            result.errors.append(RepairError(id=spec_id, error=str(e)))
            return
        logger.info("Imported %s from its document", spec_id)
        result.imported.append(spec_id)

    def _overwrite(self, spec_id: str, result: RepairResult) -> None:
        try:
            metadata = parse_file(document_path(self.documents_dir, spec_id))
        except DocumentError as e:
            logger.warning("Cannot repair %s: %s", spec_id, e)
            result.failed.append(spec_id)
            result.errors.append(RepairError(id=spec_id, error=str(e)))
            return

        current = self.specs.find(spec_id)
        if current is None:
            self._before_write()
            self.specs.put(Spec.from_metadata(metadata))
            result.imported.append(spec_id)
            return

        repaired = current.apply_metadata(metadata)
        if repaired == current:
            result.skipped.append(spec_id)
            return

        self._before_write()
        self.specs.put(repaired)
        logger.info("Updated %s from its document", spec_id)
        result.updated.append(spec_id)

    def repair(self, report: IntegrityReport) -> RepairResult:
        """
        Apply the repair action for every entry in report.

        Per-document failures are collected in the result. Store failures
        other than per-record conflicts propagate.

        Raises:
            StoreIOError: If the store cannot be written
        """
        result = RepairResult()

        for spec_id in report.files_only:
            self._import(spec_id, result)

        for entry in report.mismatch:
            self._overwrite(entry.id, result)

        for spec_id in report.store_only:
            logger.warning(
                "Spec %s has a store record but no document; it may have been deleted by hand",
                spec_id,
            )
            result.flagged.append(spec_id)

        logger.debug("Repair: %s", result.summary())
        return result
