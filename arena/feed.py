"""
arena/feed.py - Realtime workflow feed over WebSockets.

Admin dashboards subscribe to a workflow session and receive its full
snapshot after every change, so several screens can follow one wizard.
"""

import logging
from collections.abc import Callable
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manages WebSocket subscribers per workflow session."""

    def __init__(self):
        # session_id -> list of connected WebSockets
        self.subscribers: dict[str, list[WebSocket]] = {}

    async def connect(
        self, session_id: str, websocket: WebSocket, read_state: Callable[[], dict[str, Any]]
    ):
        """Subscribe, then send the current state.

        `read_state` runs after the socket is registered, so any change made
        from then on reaches this subscriber as a broadcast.
        """
        await websocket.accept()
        self.subscribers.setdefault(session_id, []).append(websocket)
        logger.info(
            f"Subscriber connected to {session_id} ({len(self.subscribers[session_id])} total)"
        )
        # Late joiners start from the current state
        try:
            snapshot = read_state()
        except Exception:
            self.disconnect(session_id, websocket)
            raise
        await websocket.send_json({"type": "workflow_state", "state": snapshot})

    def disconnect(self, session_id: str, websocket: WebSocket):
        if session_id in self.subscribers:
            if websocket in self.subscribers[session_id]:
                self.subscribers[session_id].remove(websocket)
            if not self.subscribers[session_id]:
                del self.subscribers[session_id]
            logger.info(f"Subscriber disconnected from {session_id}")

    async def broadcast(self, session_id: str, message: dict):
        """Send a message to every subscriber of a session."""
        if session_id not in self.subscribers:
            return

        dead = []
        for ws in list(self.subscribers[session_id]):
            try:
                await ws.send_json(message)
            except Exception as e:
                logger.debug(f"Dropping subscriber of {session_id}: {e}")
                dead.append(ws)

        for ws in dead:
            self.disconnect(session_id, ws)

    async def close_session(self, session_id: str):
        """Tell subscribers the session is gone and drop them."""
        await self.broadcast(session_id, {"type": "workflow_closed", "session_id": session_id})
        self.subscribers.pop(session_id, None)

    def subscriber_count(self, session_id: str) -> int:
        return len(self.subscribers.get(session_id, []))
