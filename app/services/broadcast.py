"""
Update broadcaster: fans committed schedule events out to WebSocket subscribers.
"""
from abc import ABC, abstractmethod
from fastapi import WebSocket
from typing import List, Dict, Any, Optional
import json
import logging

from app.schemas.schedule import ScheduleEvent

logger = logging.getLogger(__name__)


class UpdateBroadcaster(ABC):
    """Receives change events after the write transaction has committed."""

    @abstractmethod
    async def publish(self, event: ScheduleEvent) -> None:
        ...


class ConnectionManager(UpdateBroadcaster):
    """Manages WebSocket connections for real-time updates."""

    def __init__(self):
        self.active_connections: List[WebSocket] = []
        # Stores metadata per connection (e.g., client address)
        self.connection_info: Dict[WebSocket, Dict[str, Any]] = {}

    async def connect(self, websocket: WebSocket, client_info: Optional[Dict[str, Any]] = None):
        """Accept a new WebSocket connection."""
        await websocket.accept()
        self.active_connections.append(websocket)
        self.connection_info[websocket] = client_info or {}
        logger.info(
            f"WebSocket connection established. "
            f"Total connections: {len(self.active_connections)}"
        )

    def disconnect(self, websocket: WebSocket):
        """Remove a WebSocket connection."""
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)
            self.connection_info.pop(websocket, None)
            logger.info(
                f"WebSocket connection closed. Total connections: {len(self.active_connections)}"
            )

    async def send_personal_message(self, message: Dict[str, Any], websocket: WebSocket):
        """Send a message to a specific client."""
        try:
            await websocket.send_text(json.dumps(message, default=str))
        except Exception as e:
            logger.error(f"Failed to send personal message: {str(e)}")
            self.disconnect(websocket)

    async def broadcast(self, message: Dict[str, Any]):
        """Broadcast a message to all connected clients."""
        if not self.active_connections:
            return

        disconnected = []
        for connection in list(self.active_connections):
            try:
                await connection.send_text(json.dumps(message, default=str))
            except Exception as e:
                logger.error(f"Failed to broadcast to connection: {str(e)}")
                disconnected.append(connection)

        # Clean up disconnected clients
        for connection in disconnected:
            self.disconnect(connection)

    async def publish(self, event: ScheduleEvent) -> None:
        await self.broadcast(event.model_dump(mode="json", by_alias=True))

    def get_connection_stats(self) -> Dict[str, Any]:
        """Get statistics about current connections."""
        return {
            "total_connections": len(self.active_connections),
            "connection_details": [
                {
                    "id": id(conn),
                    "info": self.connection_info.get(conn, {})
                }
                for conn in self.active_connections
            ]
        }
