"""WebSocket fan-out for run updates."""

import logging

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class WebSocketManager:
    """Tracks the sockets watching each run and pushes JSON messages to them."""

    def __init__(self):
        self.connections: dict[str, list[WebSocket]] = {}

    async def connect(self, run_id: str, websocket: WebSocket) -> None:
        """Accept ``websocket`` and subscribe it to ``run_id``."""
        await websocket.accept()
        self.connections.setdefault(run_id, []).append(websocket)

    async def broadcast(self, run_id: str, message: dict) -> None:
        """Send ``message`` to every subscriber of ``run_id``.

        Sockets that fail to receive are dropped.
        """
        stale = []
        for ws in list(self.connections.get(run_id, [])):
            try:
                await ws.send_json(message)
            except Exception as e:
                logger.debug(f"Dropping socket for run {run_id}: {e}")
                stale.append(ws)

        for ws in stale:
            self.disconnect(run_id, ws)

    def disconnect(self, run_id: str, websocket: WebSocket) -> None:
        subscribers = self.connections.get(run_id)
        if subscribers and websocket in subscribers:
            subscribers.remove(websocket)
            if not subscribers:
                del self.connections[run_id]

    def subscriber_count(self, run_id: str) -> int:
        return len(self.connections.get(run_id, []))
