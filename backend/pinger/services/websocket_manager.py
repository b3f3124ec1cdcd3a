"""Live broadcaster - pushes every check outcome to dashboard WebSockets."""
import asyncio
import json
import logging
from typing import Any, Dict, Set

from fastapi import WebSocket

from ..schemas.events import CheckResultEvent

logger = logging.getLogger(__name__)

# Envelope type for CheckResultEvent payloads
CHECK_RESULT = "check_result"

# A subscriber that cannot take a message within this window is dropped
SEND_TIMEOUT_SECONDS = 2.0


class ConnectionManager:
    """Tracks live subscribers and fans messages out to them.

    Fire-and-forget: sends run concurrently under a short timeout and
    nothing is queued or retried. A subscriber whose send raises or
    stalls is dropped.
    """

    def __init__(self, send_timeout: float = SEND_TIMEOUT_SECONDS):
        self.subscribers: Set[WebSocket] = set()
        self.send_timeout = send_timeout
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        async with self._lock:
            self.subscribers.add(websocket)
        logger.info(f"Live subscriber joined ({len(self.subscribers)} connected)")

    async def disconnect(self, websocket: WebSocket):
        async with self._lock:
            self.subscribers.discard(websocket)
        logger.info(f"Live subscriber left ({len(self.subscribers)} connected)")

    async def broadcast(self, message: Dict[str, Any]) -> int:
        """Send ``message`` as JSON to every subscriber; returns the number reached."""
        async with self._lock:
            targets = list(self.subscribers)
        if not targets:
            return 0

        text = json.dumps(message, default=str)
        outcomes = await asyncio.gather(
            *[asyncio.wait_for(ws.send_text(text), timeout=self.send_timeout) for ws in targets],
            return_exceptions=True,
        )

        dead = [ws for ws, outcome in zip(targets, outcomes) if isinstance(outcome, Exception)]
        if dead:
            logger.debug(f"Dropping {len(dead)} live subscriber(s) after failed send")
            async with self._lock:
                self.subscribers.difference_update(dead)

        return len(targets) - len(dead)

    async def publish_check_result(self, event: CheckResultEvent) -> int:
        return await self.broadcast({"type": CHECK_RESULT, "payload": event.model_dump()})

    @property
    def connection_count(self) -> int:
        return len(self.subscribers)


# Global instance
websocket_manager = ConnectionManager()
