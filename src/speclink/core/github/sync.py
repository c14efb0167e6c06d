"""
External sync: Spec <-> GitHub issue (+ project board + pull request).

Remote view of a Spec:

    unlinked --create_link--> linked-open --(issue closed)--> linked-closed

The document is authoritative. Pushing overwrites the issue's title,
labels and body; pulling brings back the issue's open/closed state,
its title and the checked state of its task items.

A SyncRecord is written only after the remote call has succeeded and its
response has been parsed, so an interrupted call never leaves a success
record behind. The duplicate check before creating an issue is the only
guard against two processes linking the same Spec at once.
"""

from __future__ import annotations

import logging
import re
import sqlite3
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from speclink.core.config.models import GitHubConfig, StatusConfig
from speclink.core.errors import (
    DocumentError,
    DuplicateLinkError,
    ExternalAPIError,
    NotFoundError,
    NotLinkedError,
    SpecLinkError,
    StoreIOError,
)
from speclink.core.fingerprint import checkbox_hash, content_hash, merge_checkbox_states
from speclink.core.github.client import GitHubClient
from speclink.core.specs.models import Phase, Spec, utc_now
from speclink.core.specs.parser import (
    format_timestamp,
    parse,
    read_document,
    update_header,
    write_document,
)
from speclink.core.store.models import EntityType, SyncRecord, SyncStatus
from speclink.core.store.specs import SpecStore
from speclink.core.store.sync_records import SyncRecordStore
from speclink.core.workflow.state import WorkflowStateStore

logger = logging.getLogger(__name__)

_TITLE_PREFIX = re.compile(r"^\[.*?\]\s*(.+)$")


class SyncDirection(str, Enum):
    PUSH = "push"
    PULL = "pull"


def issue_title(spec: Spec) -> str:
    return f"[{spec.phase.value}] {spec.name}"


def phase_label(phase: Phase) -> str:
    return f"phase:{phase.value}"


def name_from_title(title: str) -> str:
    """Strip a leading ``[...]`` prefix from an issue title."""
    title = title.strip()
    match = _TITLE_PREFIX.match(title)
    return match.group(1).strip() if match else title


class BulkSyncFailure(BaseModel):
    spec_id: str
    issue_number: int | None = None
    error: str


class BulkSyncResult(BaseModel):
    """Per-item outcome of a bulk push or pull."""

    direction: SyncDirection
    succeeded: list[str] = Field(default_factory=list)
    failed: list[BulkSyncFailure] = Field(default_factory=list)

    def summary(self) -> str:
        text = f"{self.direction.value}: {len(self.succeeded)} synced"
        if self.failed:
            text += f", {len(self.failed)} failed"
        return text


class ExternalSyncService:
    """
    Links Specs to GitHub issues and keeps them in step.

    Example:
        >>> service = ExternalSyncService(conn, client, docs_dir)
        >>> record = service.create_link(spec_id)
        >>> service.sync_to_remote(spec_id)
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        client: GitHubClient,
        documents_dir: Path,
        *,
        github: GitHubConfig | None = None,
        status: StatusConfig | None = None,
    ) -> None:
        self.client = client
        self.documents_dir = documents_dir
        self.github = github or GitHubConfig()
        self.status = status or StatusConfig()
        self.specs = SpecStore(conn)
        self.records = SyncRecordStore(conn)
        self.workflow = WorkflowStateStore(conn)

    def _document_path(self, spec_id: str) -> Path:
        return self.documents_dir / f"{spec_id}.md"

    def _issue_body(self, spec: Spec) -> str:
        """The full document text, or a generated summary if the file is gone."""
        path = self._document_path(spec.id)
        if path.exists():
            return read_document(path)
        logger.warning("Document for %s not found at %s; using a summary", spec.id, path)
        return "\n".join(
            [
                "## Summary",
                "",
                spec.description or "No description",
                "",
                "## Phase",
                "",
                f"Current phase: **{spec.phase.value}**",
                "",
                "## Details",
                "",
                f"- Spec ID: `{spec.id}`",
                f"- Created: {format_timestamp(spec.created_at)}",
                f"- Updated: {format_timestamp(spec.updated_at)}",
                "",
                "---",
                "*This issue is managed by speclink*",
            ]
        )

    def _require_link(self, spec_id: str) -> SyncRecord:
        """The Spec's issue link; its issue_number is always set."""
        record = self.records.get_active(EntityType.SPEC, spec_id)
        if record is None or record.issue_number is None:
            raise NotLinkedError(f"Spec {spec_id} is not linked to a remote issue")
        return record

    def _comment(self, issue_number: int, body: str) -> None:
        """Post a comment; failures are logged and otherwise ignored."""
        try:
            self.client.add_comment(issue_number, body)
        except ExternalAPIError as e:
            logger.warning("Could not comment on issue #%d: %s", issue_number, e)

    # ------------------------------------------------------------------
    # Issue link
    # ------------------------------------------------------------------

    def create_link(self, spec_id: str, create_if_not_exists: bool = True) -> SyncRecord:
        """
        Create the remote issue for a Spec and record the link.

        Raises:
            NotFoundError: Unknown spec id
            DuplicateLinkError: The Spec already has a success link
            NotLinkedError: Not linked and create_if_not_exists is False
            ExternalAPIError: The issue could not be created (a ``failed``
                record is left for diagnostics)
        """
        spec = self.specs.get(spec_id)

        existing = self.records.get_active(EntityType.SPEC, spec_id)
        if existing is not None:
            raise DuplicateLinkError(spec_id, existing.issue_url)
        if not create_if_not_exists:
            raise NotLinkedError(f"Spec {spec_id} is not linked to a remote issue")

        body = self._issue_body(spec)
        try:
            issue = self.client.create_issue(issue_title(spec), body, [phase_label(spec.phase)])
        except ExternalAPIError as e:
            self._record_failure(spec_id, e)
            raise

        record = self.records.save(
            SyncRecord(
                entity_type=EntityType.SPEC,
                entity_id=spec_id,
                external_id=str(issue.number),
                external_number=issue.number,
                node_id=issue.node_id,
                issue_number=issue.number,
                issue_url=issue.url,
                sync_status=SyncStatus.SUCCESS,
                last_synced_at=utc_now(),
                last_body_hash=content_hash(body),
                checkbox_hash=checkbox_hash(body),
            )
        )
        logger.info("Linked %s to issue #%d", spec_id, issue.number)
        return record

    def _record_failure(self, spec_id: str, error: SpecLinkError) -> None:
        try:
            self.records.save(
                SyncRecord(
                    entity_type=EntityType.SPEC,
                    entity_id=spec_id,
                    sync_status=SyncStatus.FAILED,
                    error_message=str(error),
                    last_synced_at=utc_now(),
                )
            )
        except StoreIOError as store_error:
            logger.warning("Could not record failed link for %s: %s", spec_id, store_error)

    def sync_to_remote(self, spec_id: str) -> SyncRecord:
        """
        Overwrite the linked issue's title, labels and body from the document.

        Raises:
            NotFoundError: Unknown spec id
            NotLinkedError: The Spec has no issue
            ExternalAPIError: The update failed
        """
        spec = self.specs.get(spec_id)
        link = self._require_link(spec_id)
        assert link.issue_number is not None

        body = self._issue_body(spec)
        self.client.update_issue(
            link.issue_number,
            title=issue_title(spec),
            body=body,
            labels=[phase_label(spec.phase)],
        )

        now = utc_now()
        record = self.records.save(
            link.model_copy(
                update={
                    "sync_status": SyncStatus.SUCCESS,
                    "error_message": None,
                    "last_synced_at": now,
                    "last_body_hash": content_hash(body),
                    "checkbox_hash": checkbox_hash(body),
                }
            )
        )
        self._comment(
            link.issue_number,
            "\n".join(
                [
                    "## Synced from spec document",
                    "",
                    f"**Synced at:** {format_timestamp(now)} UTC",
                    f"**Phase:** {spec.phase.value}",
                    f"**Document:** `{spec.id}.md`",
                ]
            ),
        )
        logger.info("Pushed %s to issue #%d", spec_id, link.issue_number)
        return record

    def sync_from_remote(self, issue_number: int) -> Spec:
        """
        Bring an issue's state, title and task checkboxes back to its Spec.

        A closed issue moves the Spec to ``completed``; an open issue never
        touches the phase, so a phase edited in the document survives. Task
        items ticked or unticked on the issue are copied into the document by
        label. The store record is then rebuilt from the document. When the
        document is missing only the store is updated.

        Raises:
            NotLinkedError: No Spec is linked to the issue
            ExternalAPIError: The issue could not be fetched
            DocumentError: The document header could not be read or written
        """
        link = self.records.find_by_issue_number(issue_number)
        if link is None:
            raise NotLinkedError(f"No spec is linked to issue #{issue_number}")

        issue = self.client.get_issue(issue_number)
        spec = self.specs.get(link.entity_id)
        closed = issue.state == "closed"
        name = name_from_title(issue.title) or spec.name

        path = self._document_path(spec.id)
        if path.exists():
            original = read_document(path)
            text, changes = merge_checkbox_states(original, issue.body)
            if changes:
                logger.info(
                    "Copied %d checkbox state(s) from issue #%d into %s",
                    len(changes),
                    issue_number,
                    spec.id,
                )
            current = parse(text)
            phase = Phase.COMPLETED if closed and current.phase is not Phase.COMPLETED else None
            if phase is not None or name != current.name:
                text = update_header(text, name=name, phase=phase, updated_at=utc_now())
            if text != original:
                write_document(path, text)
            updated = spec.apply_metadata(parse(text))
        else:
            logger.warning("Document for %s is missing; updating the store only", spec.id)
            phase = Phase.COMPLETED if closed else spec.phase
            updated = spec
            if phase != spec.phase or name != spec.name:
                updated = spec.model_copy(
                    update={"name": name, "phase": phase, "updated_at": utc_now()}
                )

        if updated != spec:
            self.specs.put(updated)
            logger.info(
                "Pulled issue #%d into %s (%s)", issue_number, spec.id, updated.phase.value
            )

        if updated.phase is Phase.COMPLETED:
            self.workflow.delete(spec.id)

        self.records.save(link.model_copy(update={"last_synced_at": utc_now()}))
        return updated

    def sync_all(self, direction: SyncDirection) -> BulkSyncResult:
        """
        Push or pull every linked Spec.

        Remote, link and document errors are caught per item and logged;
        one failure never stops the rest. Store failures propagate.
        """
        result = BulkSyncResult(direction=direction)
        for link in self.records.list(entity_type=EntityType.SPEC, status=SyncStatus.SUCCESS):
            try:
                match direction:
                    case SyncDirection.PUSH:
                        self.sync_to_remote(link.entity_id)
                    case SyncDirection.PULL:
                        if link.issue_number is None:
                            raise NotLinkedError(f"Spec {link.entity_id} has no issue number")
                        self.sync_from_remote(link.issue_number)
            except (ExternalAPIError, NotLinkedError, NotFoundError, DocumentError) as e:
                logger.warning("Sync %s failed for %s: %s", direction.value, link.describe(), e)
                result.failed.append(
                    BulkSyncFailure(
                        spec_id=link.entity_id, issue_number=link.issue_number, error=str(e)
                    )
                )
                continue
            result.succeeded.append(link.entity_id)
        return result

    # ------------------------------------------------------------------
    # Project board
    # ------------------------------------------------------------------

    def add_to_project(self, spec_id: str, project_number: int | None = None) -> SyncRecord:
        """
        Put a Spec's issue on a Projects (v2) board.

        Raises:
            NotLinkedError: The Spec has no issue
            DuplicateLinkError: The Spec is already on a board
            ExternalAPIError: Project lookup or item creation failed
        """
        number = project_number or self.github.project_number
        if number is None:
            raise SpecLinkError(
                "No project number given",
                hint="Pass a project number or set github.project_number in .speclink.json",
            )
        link = self._require_link(spec_id)
        assert link.issue_number is not None

        existing = self.records.get_active(EntityType.PROJECT, spec_id)
        if existing is not None:
            raise DuplicateLinkError(
                spec_id, target=f"project #{existing.external_number}"
            )

        project = self.client.get_project(self.client.repo.owner, number)
        content_id = link.node_id or self.client.get_issue_node_id(link.issue_number)
        item = self.client.add_project_item(project.id, content_id)

        record = self.records.save(
            SyncRecord(
                entity_type=EntityType.PROJECT,
                entity_id=spec_id,
                external_id=item.id,
                external_number=number,
                node_id=project.id,
                issue_number=link.issue_number,
                issue_url=link.issue_url,
                sync_status=SyncStatus.SUCCESS,
                last_synced_at=utc_now(),
            )
        )
        logger.info("Added %s to project #%d", spec_id, number)
        return record

    def update_project_status(self, spec_id: str) -> str:
        """
        Set the board status column from the Spec's phase.

        Returns:
            The status option that was applied

        Raises:
            NotLinkedError: The Spec is not on a board
            ExternalAPIError: The status field or option does not exist, or
                the update failed
        """
        spec = self.specs.get(spec_id)
        item = self.records.get_active(EntityType.PROJECT, spec_id)
        if (
            item is None
            or item.external_id is None
            or item.node_id is None
            or item.external_number is None
        ):
            raise NotLinkedError(f"Spec {spec_id} is not on a project board")

        fields = self.client.get_project_fields(self.client.repo.owner, item.external_number)
        field = next((f for f in fields if f.name == self.status.field_name), None)
        if field is None:
            raise ExternalAPIError(
                f"Project #{item.external_number} has no '{self.status.field_name}' field"
            )

        wanted = self.status.status_for(spec.phase.value)
        option = field.option(wanted) or field.option(self.status.fallback)
        if option is None:
            raise ExternalAPIError(
                f"Status '{wanted}' (or fallback '{self.status.fallback}') is not an option "
                f"of field '{field.name}'"
            )

        self.client.update_item_single_select(item.node_id, item.external_id, field.id, option.id)
        logger.info("Set project status of %s to %s", spec_id, option.name)
        return option.name

    # ------------------------------------------------------------------
    # Pull requests
    # ------------------------------------------------------------------

    def create_pull_request(
        self,
        spec_id: str,
        head: str | None = None,
        base: str | None = None,
    ) -> SyncRecord:
        """
        Open a pull request for the Spec's branch and record it on the link.

        Raises:
            NotLinkedError: The Spec has no issue
            SpecLinkError: No head branch given and none recorded on the Spec
            ExternalAPIError: The pull request could not be created
        """
        spec = self.specs.get(spec_id)
        link = self._require_link(spec_id)
        assert link.issue_number is not None

        head = head or spec.branch_name
        if not head:
            raise SpecLinkError(
                f"Spec {spec_id} has no branch recorded",
                hint="Pass the branch explicitly with --head",
            )
        base = base or self.github.base_branch

        pr = self.client.create_pull_request(
            title=spec.name,
            head=head,
            base=base,
            body=f"Closes #{link.issue_number}\n\nSpec: `{spec.id}`",
        )
        record = self.records.save(
            link.model_copy(update={"pr_number": pr.number, "pr_url": pr.url, "pr_merged_at": None})
        )
        self._comment(link.issue_number, f"Pull request opened: {pr.url}")
        logger.info("Opened pull request #%d for %s", pr.number, spec_id)
        return record

    def refresh_pull_request(self, spec_id: str) -> bool:
        """
        Check whether the Spec's pull request has been merged.

        Returns:
            True if merged (merge time is recorded on the link)

        Raises:
            NotLinkedError: The Spec has no issue or no pull request
        """
        link = self._require_link(spec_id)
        if link.pr_number is None:
            raise NotLinkedError(f"Spec {spec_id} has no pull request")

        pr = self.client.get_pull_request(link.pr_number)
        if not pr.merged:
            return False
        if link.pr_merged_at is None:
            self.records.save(link.model_copy(update={"pr_merged_at": pr.merged_at or utc_now()}))
            logger.info("Pull request #%d for %s is merged", pr.number, spec_id)
        return True
