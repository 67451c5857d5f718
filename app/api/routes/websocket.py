"""
WebSocket routes for real-time schedule updates.
"""
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PayloadValidationError
from typing import Dict, Any
import json
import logging

from app.core.dependencies import build_schedule_service, get_broadcaster
from app.core.exceptions import ScheduleError
from app.models.schedule import utcnow
from app.schemas.schedule import StatusUpdateMessage
from app.services.broadcast import ConnectionManager

router = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/updates")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for real-time schedule updates.

    Clients receive:
    - scheduleCreated / scheduleEdited / scheduleDeleted events
    - scheduleUpdated events after every committed status change

    Clients can send:
    - {"type": "updateSchedule", "data": {"id", "status", "actualDeparture"?, "actualArrival"?}}
    - {"type": "ping"}
    """
    manager: ConnectionManager = websocket.app.state.broadcaster
    await manager.connect(websocket, client_info={"client": websocket.client.host if websocket.client else None})

    try:
        # Send initial connection confirmation
        await manager.send_personal_message({
            "type": "connection_established",
            "message": "Connected to train schedule updates",
            "timestamp": utcnow().isoformat()
        }, websocket)

        # Handle incoming messages
        while True:
            data = await websocket.receive_text()

            try:
                message = json.loads(data)
                await handle_client_message(websocket, message)
            except json.JSONDecodeError:
                await manager.send_personal_message({
                    "type": "error",
                    "message": "Invalid JSON format",
                    "timestamp": utcnow().isoformat()
                }, websocket)

    except WebSocketDisconnect:
        manager.disconnect(websocket)


async def handle_client_message(websocket: WebSocket, message: Dict[str, Any]):
    """
    Handle incoming messages from WebSocket clients.
    """
    manager: ConnectionManager = websocket.app.state.broadcaster
    message_type = message.get("type", "unknown")
    logger.debug(f"Received WebSocket message: {message_type}")

    if message_type == "updateSchedule":
        await handle_status_update(websocket, message.get("data") or {})

    elif message_type == "ping":
        await manager.send_personal_message({
            "type": "pong",
            "timestamp": utcnow().isoformat()
        }, websocket)

    else:
        await manager.send_personal_message({
            "type": "error",
            "message": f"Unknown message type: {message_type}",
            "timestamp": utcnow().isoformat()
        }, websocket)


async def handle_status_update(websocket: WebSocket, data: Dict[str, Any]):
    """Apply a status change sent by a client; the result reaches everyone via broadcast."""
    manager: ConnectionManager = websocket.app.state.broadcaster
    try:
        request = StatusUpdateMessage.model_validate(data)
    except PayloadValidationError as e:
        await manager.send_personal_message({
            "type": "error",
            "message": "Invalid status update",
            "details": e.errors(include_url=False, include_context=False),
            "timestamp": utcnow().isoformat()
        }, websocket)
        return

    service = build_schedule_service(websocket.app)
    try:
        await service.update_status(request.id, request)
    except ScheduleError as e:
        await manager.send_personal_message({
            "type": "error",
            "message": e.message,
            "error": e.to_dict(),
            "timestamp": utcnow().isoformat()
        }, websocket)


@router.get("/connections")
async def get_connection_stats(broadcaster: ConnectionManager = Depends(get_broadcaster)):
    """Get statistics about current WebSocket connections."""
    return broadcaster.get_connection_stats()
