"""
tournaments/workflow.py - Tournament setup/verification wizard

An eight-step guided workflow an admin walks through before a tournament
goes live: seed demo users, verify the bracket, exercise match reporting,
and so on up to cleaning the test data out again.

Steps are gated: a step can be entered only once its prerequisite steps
are complete. One TournamentWorkflow owns one wizard session's state, and
every mutation goes through its methods.

    wf = TournamentWorkflow()
    wf.complete_step(1, {"ok": True})
    wf.can_proceed_to_step(3)   # False, step 2 still missing
"""

import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


# ============================================================================
# Steps
# ============================================================================


class StepKey(str, Enum):
    """Result slot for each step, in step order."""

    DEMO_USER_SETUP = "demoUserSetup"
    BRACKET_VERIFICATION = "bracketVerification"
    MATCH_REPORTING = "matchReporting"
    TOURNAMENT_PROGRESSION = "tournamentProgression"
    ADMIN_CONTROLS = "adminControls"
    USER_EXPERIENCE = "userExperience"
    SCALE_TESTING = "scaleTesting"
    DATA_CLEANUP = "dataCleanup"


class SharedSlot(str, Enum):
    """Cross-step working data buckets."""

    TOURNAMENT = "tournament"
    BRACKET = "bracket"
    SEEDING = "seeding"
    MATCHES = "matches"
    PARTICIPANTS = "participants"


class WorkflowStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class StepOutcome(str, Enum):
    """Result of complete_step."""

    COMPLETED = "completed"
    BLOCKED = "blocked"  # prerequisites missing (strict gating only)
    INVALID_STEP = "invalid_step"  # not a step number


FIRST_STEP = 1
LAST_STEP = 8

STEP_KEYS: tuple[StepKey, ...] = tuple(StepKey)

STEP_TITLES = {
    1: "Demo user setup",
    2: "Tournament selection & bracket verification",
    3: "Match reporting",
    4: "Tournament progression",
    5: "Admin controls",
    6: "User experience",
    7: "Scale testing",
    8: "Data cleanup",
}

STEP_DEPENDENCIES: dict[int, frozenset[int]] = {
    1: frozenset(),
    2: frozenset({1}),  # needs demo users
    3: frozenset({1, 2}),  # needs a verified bracket
    4: frozenset({1, 2, 3}),  # needs match reporting
    5: frozenset({1, 2}),
    6: frozenset({1, 2}),
    7: frozenset({1, 2, 3, 4}),
    8: frozenset({1, 2, 3, 4, 5, 6, 7}),  # cleanup runs last
}


def is_valid_step(step: int) -> bool:
    return isinstance(step, int) and not isinstance(step, bool) and FIRST_STEP <= step <= LAST_STEP


def step_key(step: int) -> StepKey:
    """Result slot for a step number (1-based)."""
    if not is_valid_step(step):
        raise ValueError(f"No workflow step {step!r} (steps are {FIRST_STEP}-{LAST_STEP})")
    return STEP_KEYS[step - 1]


def step_dependencies(step: int) -> frozenset[int]:
    """Prerequisite steps for `step`. Unknown steps have none."""
    return STEP_DEPENDENCIES.get(step, frozenset())


def step_catalog() -> list[dict[str, Any]]:
    """All steps with their keys, titles and prerequisites."""
    return [
        {
            "step": n,
            "key": step_key(n).value,
            "title": STEP_TITLES[n],
            "depends_on": sorted(step_dependencies(n)),
        }
        for n in range(FIRST_STEP, LAST_STEP + 1)
    ]


# ============================================================================
# State
# ============================================================================


@dataclass
class WorkflowState:
    """Progress of one wizard session."""

    current_step: int = FIRST_STEP
    completed_steps: list[int] = field(default_factory=list)
    selected_tournament: str | None = None
    test_results: dict[StepKey, Any] = field(default_factory=dict)
    workflow_status: WorkflowStatus = WorkflowStatus.NOT_STARTED
    shared_data: dict[SharedSlot, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Plain, deep-copied view with string keys."""
        return {
            "current_step": self.current_step,
            "completed_steps": list(self.completed_steps),
            "selected_tournament": self.selected_tournament,
            "test_results": {k.value: copy.deepcopy(v) for k, v in self.test_results.items()},
            "workflow_status": self.workflow_status.value,
            "shared_data": {k.value: copy.deepcopy(v) for k, v in self.shared_data.items()},
        }


def derive_status(state: WorkflowState) -> WorkflowStatus:
    """Status implied by the rest of the state."""
    if LAST_STEP in state.completed_steps:
        return WorkflowStatus.COMPLETED
    if state.selected_tournament is None and not state.completed_steps:
        return WorkflowStatus.NOT_STARTED
    return WorkflowStatus.IN_PROGRESS


# ============================================================================
# Controller
# ============================================================================


class TournamentWorkflow:
    """Owns a WorkflowState and enforces step gating.

    Args:
        strict_gating: If True, complete_step refuses a step whose
            prerequisites aren't complete. Off by default so callers can
            re-run or complete steps out of order (e.g. retries).
        reset_on_tournament_change: If True, picking a different tournament
            while progress exists starts the wizard over.
    """

    def __init__(self, strict_gating: bool = False, reset_on_tournament_change: bool = False):
        self.strict_gating = strict_gating
        self.reset_on_tournament_change = reset_on_tournament_change
        self._state = WorkflowState()

    @property
    def state(self) -> WorkflowState:
        return self._state

    def snapshot(self) -> dict[str, Any]:
        return self._state.to_dict()

    # ------------------------------------------------------------------
    # Gating
    # ------------------------------------------------------------------

    def can_proceed_to_step(self, step: int) -> bool:
        """True iff every prerequisite of `step` is complete."""
        if not is_valid_step(step):
            return False
        return step_dependencies(step) <= set(self._state.completed_steps)

    def missing_dependencies(self, step: int) -> list[int]:
        return sorted(step_dependencies(step) - set(self._state.completed_steps))

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def complete_step(self, step: int, results: Any) -> StepOutcome:
        """Record a step's results and advance to the next step.

        Re-completing a step replaces its stored result.
        """
        if not is_valid_step(step):
            logger.debug(f"Ignoring completion of unknown step {step!r}")
            return StepOutcome.INVALID_STEP

        if self.strict_gating and not self.can_proceed_to_step(step):
            logger.info(f"Step {step} blocked, missing {self.missing_dependencies(step)}")
            return StepOutcome.BLOCKED

        state = self._state
        # Completion order is kept; a rerun moves the step to the end
        if step in state.completed_steps:
            state.completed_steps.remove(step)
        state.completed_steps.append(step)
        state.test_results[step_key(step)] = results
        state.current_step = step + 1 if step < LAST_STEP else LAST_STEP
        state.workflow_status = derive_status(state)

        logger.debug(f"Step {step} ({step_key(step).value}) completed")
        return StepOutcome.COMPLETED

    def go_to_step(self, step: int) -> bool:
        """Move to `step` if its prerequisites are complete. Otherwise no-op."""
        if not self.can_proceed_to_step(step):
            return False
        self._state.current_step = step
        return True

    def set_selected_tournament(self, tournament_id: str | None) -> None:
        state = self._state
        if (
            self.reset_on_tournament_change
            and state.completed_steps
            and tournament_id != state.selected_tournament
        ):
            logger.info(
                f"Tournament changed ({state.selected_tournament} -> {tournament_id}), "
                "resetting workflow"
            )
            self.reset_workflow()
            state = self._state

        state.selected_tournament = tournament_id
        state.workflow_status = derive_status(state)

    def update_shared_data(self, slot: SharedSlot | str, value: Any) -> None:
        """Set one shared data slot. Raises ValueError for an unknown slot."""
        self._state.shared_data[SharedSlot(slot)] = value

    def reset_workflow(self) -> None:
        self._state = WorkflowState()
