"""
Integrity between spec documents, the local store, and remote links.
"""

from speclink.core.integrity.checker import IntegrityChecker, compare, document_ids
from speclink.core.integrity.github_checker import GitHubSyncChecker
from speclink.core.integrity.models import (
    GitHubSyncReport,
    IntegrityReport,
    LinkStatus,
    MismatchEntry,
    RepairError,
    RepairResult,
)
from speclink.core.integrity.repair import RepairService

__all__ = [
    "GitHubSyncChecker",
    "GitHubSyncReport",
    "IntegrityChecker",
    "IntegrityReport",
    "LinkStatus",
    "MismatchEntry",
    "RepairError",
    "RepairResult",
    "RepairService",
    "compare",
    "document_ids",
]
