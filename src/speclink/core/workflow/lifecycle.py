"""
Phase changes for a Spec.

A Spec moves one step forward at a time (or stays put). The document is
rewritten first, since it is authoritative, then the store record follows.
Reaching ``completed`` clears the saved workflow state.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from pydantic import BaseModel

from speclink.core.errors import PhaseTransitionError
from speclink.core.specs.models import Phase, Spec, utc_now
from speclink.core.specs.parser import (
    parse,
    parse_file,
    read_document,
    update_header,
    write_document,
)
from speclink.core.store.specs import SpecStore
from speclink.core.workflow.state import WorkflowStateStore
from speclink.core.workflow.transitions import PhaseTransitionValidator, TransitionResult

logger = logging.getLogger(__name__)


class PhaseChangeResult(BaseModel):
    spec: Spec
    from_phase: Phase
    to_phase: Phase
    changed: bool
    transition: TransitionResult | None = None
    workflow_cleared: bool = False


def check_sequence(spec_id: str, from_phase: Phase, to_phase: Phase) -> None:
    """
    Enforce the one-step-forward rule.

    Raises:
        PhaseTransitionError: If to_phase is neither from_phase nor the next phase
    """
    if to_phase in (from_phase, from_phase.next()):
        return
    expected = from_phase.next()
    allowed = f"next phase is '{expected.value}'" if expected else "it is already completed"
    raise PhaseTransitionError(
        f"Cannot move {spec_id} from '{from_phase.value}' to '{to_phase.value}': {allowed}",
        hint="Use --force to skip or reverse phases",
    )


class SpecLifecycle:
    """Applies validated phase changes to a Spec's document and store record."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        documents_dir: Path,
        validator: PhaseTransitionValidator | None = None,
    ) -> None:
        self.specs = SpecStore(conn)
        self.workflow = WorkflowStateStore(conn)
        self.documents_dir = documents_dir
        self.validator = validator or PhaseTransitionValidator()

    def change_phase(
        self, spec_id: str, to_phase: Phase, *, force: bool = False
    ) -> PhaseChangeResult:
        """
        Move a Spec to to_phase.

        Returns a result with ``changed=False`` when the Spec is already in
        to_phase or when the document is not complete enough (see
        ``result.transition``).

        Raises:
            PhaseTransitionError: Skipping or reversing phases without force
            DocumentError: The document cannot be read or parsed
            StoreIOError: The store cannot be written
        """
        path = self.documents_dir / f"{spec_id}.md"
        metadata = parse_file(path)
        from_phase = metadata.phase
        record = self.specs.find(spec_id)
        current = record.apply_metadata(metadata) if record else Spec.from_metadata(metadata)

        if to_phase == from_phase and not force:
            return PhaseChangeResult(
                spec=current, from_phase=from_phase, to_phase=to_phase, changed=False
            )
        if not force:
            check_sequence(spec_id, from_phase, to_phase)

        text = read_document(path)
        transition = self.validator.validate(text, from_phase, to_phase, force=force)
        if not transition.is_valid:
            logger.info(
                "Phase change %s -> %s blocked for %s", from_phase.value, to_phase.value, spec_id
            )
            return PhaseChangeResult(
                spec=current,
                from_phase=from_phase,
                to_phase=to_phase,
                changed=False,
                transition=transition,
            )

        new_text = update_header(text, phase=to_phase, updated_at=utc_now())
        write_document(path, new_text)
        updated = current.apply_metadata(parse(new_text))
        self.specs.put(updated)
        logger.info("Moved %s from %s to %s", spec_id, from_phase.value, to_phase.value)

        cleared = False
        if to_phase is Phase.COMPLETED:
            cleared = self.workflow.delete(spec_id)

        return PhaseChangeResult(
            spec=updated,
            from_phase=from_phase,
            to_phase=to_phase,
            changed=True,
            transition=transition,
            workflow_cleared=cleared,
        )
