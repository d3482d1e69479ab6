"""
WebSocket routes
Connection, heartbeat and per-schedule viewer subscriptions
"""
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Query
from typing import Optional
import json
import logging
import uuid

from ..utils.timezone import now_iso
from ..websocket.connection_manager import connection_manager

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    client_id: Optional[str] = Query(None),
    username: Optional[str] = Query(None)
):
    """
    Main WebSocket endpoint

    Client messages:
        {"type": "ping"}                              -> {"type": "pong"}
        {"type": "subscribe", "schedule_id": <id>}    -> viewers_update to that schedule
        {"type": "unsubscribe"}
    """
    client_id = client_id or uuid.uuid4().hex
    username = (username or "").strip() or "Unknown"

    await connection_manager.connect(websocket, client_id, username)

    try:
        await connection_manager.send_personal_message({
            "type": "connection_established",
            "data": {
                "client_id": client_id,
                "username": username,
                "timestamp": now_iso()
            }
        }, client_id)

        while True:
            data = await websocket.receive_text()

            try:
                message = json.loads(data)
                message_type = message.get("type")

                if message_type == "ping":
                    connection_manager.update_heartbeat(client_id)
                    await connection_manager.send_personal_message({
                        "type": "pong",
                        "timestamp": now_iso()
                    }, client_id)

                elif message_type == "subscribe":
                    schedule_id = message.get("schedule_id")
                    if not isinstance(schedule_id, int):
                        await connection_manager.send_personal_message({
                            "type": "error",
                            "data": {"message": "schedule_id must be an integer"}
                        }, client_id)
                        continue
                    await connection_manager.subscribe(client_id, schedule_id)

                elif message_type == "unsubscribe":
                    await connection_manager.unsubscribe(client_id)

                else:
                    logger.warning(f"Unknown message type from {client_id}: {message_type}")

            except (json.JSONDecodeError, AttributeError):
                logger.error(f"Could not parse message from client {client_id}: {data}")

    except WebSocketDisconnect:
        logger.info(f"Client {client_id} ({username}) WebSocket closed")

    except Exception as e:
        logger.error(f"WebSocket error for client {client_id}: {str(e)}")

    finally:
        # a newer connection with the same id may have replaced this one
        if connection_manager.active_connections.get(client_id) is websocket:
            await connection_manager.disconnect(client_id)


@router.get("/ws/status")
async def get_websocket_status():
    """WebSocket service status (health check)"""
    return {
        "status": "running",
        "online_clients": connection_manager.get_online_count(),
        "schedule_viewers": connection_manager.get_subscription_counts(),
        "timestamp": now_iso()
    }
