"""
Phase-transition validation.

A rule table keyed by (from_phase, to_phase) decides whether a document is
complete enough to leave its current phase. Transitions without a rule
always pass. ``force`` and test mode skip validation entirely.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass

from pydantic import BaseModel, Field

from speclink.core.specs.models import Phase
from speclink.core.workflow.placeholders import (
    Placeholder,
    detect_placeholders,
    find_section,
    section_needs_content,
)

logger = logging.getLogger(__name__)

REQUIREMENTS_SECTIONS = [
    "## 1. Background and Purpose",
    "## 2. Target Users",
    "## 3. Acceptance Criteria",
    "## 4. Constraints",
    "## 5. Dependencies",
]
DESIGN_SECTION = "## 7. Design Details"
DESIGN_SUBSECTIONS = ["### 7.1. Architecture", "### 7.5. Test Strategy"]
TASKS_SECTION = "## 8. Implementation Tasks"

_UNCHECKED_TASK = re.compile(r"^[ \t]*[-*] \[ \] ", re.MULTILINE)


def check_requirements(text: str) -> list[str]:
    """Every requirements section must exist and hold real content."""
    return [s for s in REQUIREMENTS_SECTIONS if section_needs_content(text, s)]


def check_design(text: str) -> list[str]:
    """The design section must exist with architecture and test strategy filled in."""
    if find_section(text.splitlines(), DESIGN_SECTION) is None:
        return [DESIGN_SECTION]
    return [s for s in DESIGN_SUBSECTIONS if section_needs_content(text, s)]


def check_implementation(text: str) -> list[str]:
    """The task list must exist and every task must be checked off."""
    if find_section(text.splitlines(), TASKS_SECTION) is None:
        return [TASKS_SECTION]
    unchecked = len(_UNCHECKED_TASK.findall(text))
    if unchecked:
        return [f"{unchecked} unchecked task(s) remain"]
    return []


def check_review(text: str) -> list[str]:
    """Nothing in the document gates review -> completed."""
    return []


@dataclass(frozen=True)
class TransitionRule:
    check: Callable[[str], list[str]]
    message: str


TRANSITION_RULES: dict[tuple[Phase, Phase], TransitionRule] = {
    (Phase.REQUIREMENTS, Phase.DESIGN): TransitionRule(
        check_requirements,
        "Required requirements sections are missing or still placeholders",
    ),
    (Phase.DESIGN, Phase.TASKS): TransitionRule(
        check_design,
        "The design details section is missing or incomplete",
    ),
    (Phase.IMPLEMENTATION, Phase.REVIEW): TransitionRule(
        check_implementation,
        "Implementation tasks are not all complete",
    ),
    (Phase.REVIEW, Phase.COMPLETED): TransitionRule(
        check_review,
        "Review is not complete",
    ),
}


class TransitionResult(BaseModel):
    """Outcome of validating one phase transition."""

    from_phase: Phase
    to_phase: Phase
    is_valid: bool
    needs_completion: bool = False
    missing: list[str] = Field(default_factory=list)
    placeholders: list[Placeholder] = Field(default_factory=list)
    message: str = ""


class PhaseTransitionValidator:
    """
    Gates phase changes on document completeness.

    Example:
        >>> validator = PhaseTransitionValidator()
        >>> result = validator.validate(text, Phase.REQUIREMENTS, Phase.DESIGN)
        >>> result.missing
        ['## 4. Constraints']
    """

    def __init__(
        self,
        rules: dict[tuple[Phase, Phase], TransitionRule] | None = None,
        *,
        test_mode: bool = False,
    ) -> None:
        self.rules = TRANSITION_RULES if rules is None else rules
        self.test_mode = test_mode

    def validate(
        self,
        text: str,
        from_phase: Phase,
        to_phase: Phase,
        *,
        force: bool = False,
    ) -> TransitionResult:
        label = f"{from_phase.value} -> {to_phase.value}"
        if force:
            return TransitionResult(
                from_phase=from_phase,
                to_phase=to_phase,
                is_valid=True,
                message=f"Validation skipped for {label} (--force)",
            )
        if self.test_mode:
            return TransitionResult(
                from_phase=from_phase,
                to_phase=to_phase,
                is_valid=True,
                message=f"Validation skipped for {label} (test mode)",
            )

        rule = self.rules.get((from_phase, to_phase))
        if rule is None:
            return TransitionResult(
                from_phase=from_phase,
                to_phase=to_phase,
                is_valid=True,
                message=f"No validation rule for {label}",
            )

        missing = rule.check(text)
        if missing:
            logger.debug("Transition %s blocked: %s", label, missing)
            return TransitionResult(
                from_phase=from_phase,
                to_phase=to_phase,
                is_valid=False,
                needs_completion=True,
                missing=missing,
                placeholders=detect_placeholders(text),
                message=rule.message,
            )

        return TransitionResult(
            from_phase=from_phase,
            to_phase=to_phase,
            is_valid=True,
            message=f"{label} validation passed",
        )
