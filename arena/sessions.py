"""
arena/sessions.py - Live tournament setup wizards.

Each admin who opens the setup wizard gets a session holding its own
TournamentWorkflow. Sessions live in memory only: a restart or an explicit
close discards them.
"""

import logging
import threading
import uuid
from collections.abc import Callable
from typing import Any, TypeVar

from tournaments.workflow import TournamentWorkflow

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionNotFoundError(KeyError):
    """Raised when a workflow session id is unknown (or already closed)."""


class WorkflowRegistry:
    """Owns every open TournamentWorkflow, keyed by session id.

    Handlers run on a thread pool, so each operation on a workflow runs
    under the registry lock and sees a complete state.
    """

    def __init__(self, strict_gating: bool = False, reset_on_tournament_change: bool = False):
        self.strict_gating = strict_gating
        self.reset_on_tournament_change = reset_on_tournament_change
        self._workflows: dict[str, TournamentWorkflow] = {}
        self._lock = threading.Lock()

    def open(self) -> str:
        """Start a new wizard session. Returns its id."""
        session_id = str(uuid.uuid4())
        workflow = TournamentWorkflow(
            strict_gating=self.strict_gating,
            reset_on_tournament_change=self.reset_on_tournament_change,
        )
        with self._lock:
            self._workflows[session_id] = workflow
        logger.info(f"Workflow session opened: {session_id}")
        return session_id

    def close(self, session_id: str) -> bool:
        """Discard a session. Returns True if it existed."""
        with self._lock:
            existed = self._workflows.pop(session_id, None) is not None
        if existed:
            logger.info(f"Workflow session closed: {session_id}")
        return existed

    def run(self, session_id: str, operation: Callable[[TournamentWorkflow], T]) -> T:
        """Apply `operation` to a session's workflow atomically."""
        with self._lock:
            workflow = self._workflows.get(session_id)
            if workflow is None:
                raise SessionNotFoundError(session_id)
            return operation(workflow)

    def snapshot(self, session_id: str) -> dict[str, Any]:
        return self.run(session_id, lambda wf: wf.snapshot())

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._workflows

    def __len__(self) -> int:
        with self._lock:
            return len(self._workflows)
