"""
Workflow state and phase transitions.
"""

from speclink.core.workflow.lifecycle import PhaseChangeResult, SpecLifecycle, check_sequence
from speclink.core.workflow.placeholders import Placeholder, detect_placeholders
from speclink.core.workflow.state import NextAction, WorkflowState, WorkflowStateStore
from speclink.core.workflow.transitions import (
    TRANSITION_RULES,
    PhaseTransitionValidator,
    TransitionResult,
    TransitionRule,
)

__all__ = [
    "NextAction",
    "PhaseChangeResult",
    "PhaseTransitionValidator",
    "Placeholder",
    "SpecLifecycle",
    "TRANSITION_RULES",
    "TransitionResult",
    "TransitionRule",
    "WorkflowState",
    "WorkflowStateStore",
    "check_sequence",
    "detect_placeholders",
]
