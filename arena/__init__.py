"""
arena - HTTP server for SABO Arena

Serves the tournament setup wizard, rank/reward lookups and the
admin-editable reward configuration. Clubs and players live in the hosted
backend; the arena only computes and configures rewards.
"""

from .server import app
from .db import ArenaDB
from .sessions import WorkflowRegistry

__all__ = ["app", "ArenaDB", "WorkflowRegistry"]
