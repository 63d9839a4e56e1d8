"""
Silver Ravens Engine v1.0 — WebSocket Manager
Pushes state updates, phase changes and log entries to connected clients.
"""

import json
import logging
from fastapi import WebSocket

logger = logging.getLogger("rebellion.web")


class ConnectionManager:
    """Tracks open sheet connections and fans messages out to them."""

    def __init__(self):
        self.active: list[WebSocket] = []

    async def connect(self, ws: WebSocket):
        await ws.accept()
        self.active.append(ws)
        logger.info(f"Client connected ({len(self.active)} open)")

    def disconnect(self, ws: WebSocket):
        if ws in self.active:
            self.active.remove(ws)
            logger.info(f"Client disconnected ({len(self.active)} open)")

    @staticmethod
    def message(event: str, data: dict = None) -> str:
        return json.dumps({"event": event, "data": data or {}}, default=str)

    async def broadcast(self, event: str, data: dict = None):
        """Send an event to every client. Dead sockets are dropped."""
        text = self.message(event, data)
        dead = []
        for ws in self.active:
            try:
                await ws.send_text(text)
            except (RuntimeError, ConnectionError) as e:
                logger.warning(f"Dropping client: {e}")
                dead.append(ws)
        for ws in dead:
            self.disconnect(ws)

    @property
    def client_count(self) -> int:
        return len(self.active)
