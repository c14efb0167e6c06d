"""
Data models for integrity checking and repair.

Integrity violations are entries in a report, never exceptions.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, computed_field


def percentage(part: int, whole: int) -> int:
    """part / whole * 100 rounded half up; 0 when whole is 0."""
    if whole == 0:
        return 0
    return (part * 200 + whole) // (2 * whole)


class MismatchEntry(BaseModel):
    """A Spec present in both places whose values disagree (or whose document is broken)."""

    id: str
    differences: list[str] = Field(
        default_factory=list,
        description="One human-readable line per differing field, or the parse error",
    )


class IntegrityReport(BaseModel):
    """
    Three-way classification of Spec ids between documents and the store.

    Example:
        >>> report = IntegrityReport(synced=["a"], files_only=["b"], total_files=2)
        >>> report.sync_rate
        50
    """

    files_only: list[str] = Field(
        default_factory=list,
        description="Documents with no store record",
    )
    store_only: list[str] = Field(
        default_factory=list,
        description="Store records with no document (never auto-deleted)",
    )
    mismatch: list[MismatchEntry] = Field(default_factory=list)
    synced: list[str] = Field(default_factory=list)
    total_files: int = Field(default=0, ge=0)
    total_store_records: int = Field(default=0, ge=0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def sync_rate(self) -> int:
        """Percentage of documents whose store record matches."""
        return percentage(len(self.synced), self.total_files)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_clean(self) -> bool:
        return not (self.files_only or self.store_only or self.mismatch)

    def mismatch_for(self, spec_id: str) -> MismatchEntry | None:
        return next((m for m in self.mismatch if m.id == spec_id), None)

    def summary(self) -> str:
        """Generate a human-readable summary of the report."""
        parts = [f"{len(self.synced)}/{self.total_files} synced ({self.sync_rate}%)"]
        if self.files_only:
            parts.append(f"{len(self.files_only)} file-only")
        if self.store_only:
            parts.append(f"{len(self.store_only)} store-only")
        if self.mismatch:
            parts.append(f"{len(self.mismatch)} mismatched")
        return ", ".join(parts)


class RepairError(BaseModel):
    id: str
    error: str


class RepairResult(BaseModel):
    """Outcome of applying repair actions to an IntegrityReport."""

    imported: list[str] = Field(
        default_factory=list,
        description="Documents inserted into the store",
    )
    updated: list[str] = Field(
        default_factory=list,
        description="Store records overwritten from their document",
    )
    skipped: list[str] = Field(
        default_factory=list,
        description="Mismatch entries whose store record already matched",
    )
    failed: list[str] = Field(
        default_factory=list,
        description="Documents that could not be parsed or written",
    )
    flagged: list[str] = Field(
        default_factory=list,
        description="Store-only records left for the operator to review",
    )
    errors: list[RepairError] = Field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.imported or self.updated)

    def summary(self) -> str:
        parts = [f"{len(self.imported)} imported", f"{len(self.updated)} updated"]
        if self.skipped:
            parts.append(f"{len(self.skipped)} unchanged")
        if self.failed:
            parts.append(f"{len(self.failed)} failed")
        if self.flagged:
            parts.append(f"{len(self.flagged)} flagged for review")
        return ", ".join(parts)


class LinkStatus(BaseModel):
    """Remote link state of one Spec."""

    spec_id: str
    name: str
    phase: str
    issue_number: int | None = None
    issue_url: str | None = None
    error_message: str | None = None


class GitHubSyncReport(BaseModel):
    """Which Specs are linked to a remote issue, and which links failed."""

    linked: list[LinkStatus] = Field(default_factory=list)
    unlinked: list[LinkStatus] = Field(default_factory=list)
    failed: list[LinkStatus] = Field(default_factory=list)
    total_specs: int = Field(default=0, ge=0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def linked_rate(self) -> int:
        return percentage(len(self.linked), self.total_specs)

    def summary(self) -> str:
        parts = [f"{len(self.linked)}/{self.total_specs} linked ({self.linked_rate}%)"]
        if self.failed:
            parts.append(f"{len(self.failed)} failed")
        return ", ".join(parts)
