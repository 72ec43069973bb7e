"""
tournaments/ - Tournament setup and verification.

The admin wizard that walks a tournament through eight gated steps before
it goes live. See tournaments/workflow.py.
"""

from .workflow import (
    SharedSlot,
    StepKey,
    StepOutcome,
    TournamentWorkflow,
    WorkflowState,
    WorkflowStatus,
    step_catalog,
    step_dependencies,
)

__all__ = [
    "SharedSlot",
    "StepKey",
    "StepOutcome",
    "TournamentWorkflow",
    "WorkflowState",
    "WorkflowStatus",
    "step_catalog",
    "step_dependencies",
]
