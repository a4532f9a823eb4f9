from typing import Dict, List, Set, Optional
from fastapi import WebSocket
import asyncio
import structlog

from .schema.events import BaseEvent, ConnectionEvent, ErrorEvent

logger = structlog.get_logger(__name__)


class ConnectionManager:
    """Tracks the sockets attached to each session.

    A session may have several sockets at once, typically a chat client and
    a progress display. Every event for the session goes to all of them.
    """

    def __init__(self):
        self.connections: Dict[str, List[WebSocket]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, session_id: str):
        await websocket.accept()

        async with self._lock:
            self.connections.setdefault(session_id, []).append(websocket)

        await self._send(websocket, ConnectionEvent(status="connected", session_id=session_id))
        logger.info("WebSocket connected", session_id=session_id, sockets=self.connection_count(session_id))

    async def disconnect(self, websocket: WebSocket, session_id: str):
        """Detach one socket; the session stays known while others remain"""

        async with self._lock:
            sockets = self.connections.get(session_id, [])
            if websocket in sockets:
                sockets.remove(websocket)
            if not sockets:
                self.connections.pop(session_id, None)

        try:
            await websocket.close()
        except Exception as e:
            logger.debug("WebSocket already closed", session_id=session_id, error=str(e))

        logger.info("WebSocket disconnected", session_id=session_id)

    async def send_event(self, session_id: str, event: BaseEvent) -> int:
        """Send ``event`` to every socket of the session, returning how many received it"""

        sockets = list(self.connections.get(session_id, []))
        if not sockets:
            logger.debug("No connection for session", session_id=session_id, event_type=event.type.value)
            return 0

        if event.session_id is None:
            event.session_id = session_id

        delivered = 0
        for websocket in sockets:
            if await self._send(websocket, event):
                delivered += 1
            else:
                await self.disconnect(websocket, session_id)

        return delivered

    async def _send(self, websocket: WebSocket, event: BaseEvent) -> bool:
        try:
            await websocket.send_json(event.model_dump(mode="json"))
            return True
        except Exception as e:
            logger.error("Failed to send event", session_id=event.session_id, error=str(e))
            return False

    async def send_error(self, session_id: str, error_message: str, error_code: Optional[str] = None):
        await self.send_event(
            session_id,
            ErrorEvent(payload={"message": error_message}, error_code=error_code, session_id=session_id)
        )

    def connection_count(self, session_id: Optional[str] = None) -> int:
        if session_id is not None:
            return len(self.connections.get(session_id, []))
        return sum(len(sockets) for sockets in self.connections.values())

    def get_active_sessions(self) -> Set[str]:
        return set(self.connections.keys())
