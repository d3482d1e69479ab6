"""
WebSocket connection manager
Tracks connected clients, which schedule each one is viewing, heartbeats,
and pushes change notifications to the viewers of a schedule.
"""
from typing import Dict, List, Optional
from datetime import datetime
from fastapi import WebSocket
import asyncio
import logging

from ..core.config import settings
from ..utils.timezone import now, now_iso

logger = logging.getLogger(__name__)


class ConnectionManager:
    """WebSocket connection manager"""

    def __init__(self):
        # client id -> websocket
        self.active_connections: Dict[str, WebSocket] = {}

        # client id -> display name sent on connect
        self.usernames: Dict[str, str] = {}

        # client id -> schedule id currently viewed
        self.subscriptions: Dict[str, int] = {}

        # client id -> last heartbeat
        self.last_heartbeat: Dict[str, datetime] = {}

        self.heartbeat_task: Optional[asyncio.Task] = None
        self.heartbeat_timeout = settings.HEARTBEAT_TIMEOUT_SECONDS
        self.heartbeat_check_interval = settings.HEARTBEAT_CHECK_INTERVAL_SECONDS

    async def connect(self, websocket: WebSocket, client_id: str, username: str = "Unknown"):
        """
        Accept a new connection; an older connection with the same client id is closed

        Args:
            websocket: the websocket
            client_id: id chosen by the browser tab
            username: display name shown to other viewers
        """
        await websocket.accept()

        if client_id in self.active_connections:
            old_ws = self.active_connections[client_id]
            try:
                await old_ws.close()
                logger.info(f"Closed previous connection of client {client_id}")
            except Exception as e:
                logger.error(f"Error closing previous connection of {client_id}: {str(e)}")

        self.active_connections[client_id] = websocket
        self.usernames[client_id] = username or "Unknown"
        self.last_heartbeat[client_id] = now()

        logger.info(f"Client {client_id} ({username}) connected, {len(self.active_connections)} online")

        if self.heartbeat_task is None or self.heartbeat_task.done():
            self.heartbeat_task = asyncio.create_task(self._heartbeat_checker())

    async def disconnect(self, client_id: str):
        """
        Forget a client and tell the viewers of its schedule

        Args:
            client_id: client to drop
        """
        if client_id not in self.active_connections:
            return

        del self.active_connections[client_id]
        self.usernames.pop(client_id, None)
        self.last_heartbeat.pop(client_id, None)
        schedule_id = self.subscriptions.pop(client_id, None)

        logger.info(f"Client {client_id} disconnected, {len(self.active_connections)} online")

        if schedule_id is not None:
            await self.broadcast_viewers_update(schedule_id)

    async def send_personal_message(self, message: dict, client_id: str):
        websocket = self.active_connections.get(client_id)
        if websocket is None:
            return
        try:
            await websocket.send_json(message)
        except Exception as e:
            logger.error(f"Sending to client {client_id} failed: {str(e)}")
            await self.disconnect(client_id)

    async def broadcast(self, message: dict, exclude_client: Optional[str] = None):
        """
        Send a message to every connected client

        Args:
            message: JSON-serialisable payload
            exclude_client: client id to skip (optional)
        """
        await self._send_many(
            [cid for cid in self.active_connections if cid != exclude_client], message
        )

    async def broadcast_to_schedule(
        self, schedule_id: int, message: dict, exclude_client: Optional[str] = None
    ):
        """Send a message to the clients viewing one schedule"""
        await self._send_many(
            [cid for cid in self.viewer_ids(schedule_id) if cid != exclude_client], message
        )

    async def _send_many(self, client_ids: List[str], message: dict):
        disconnected = []
        for client_id in client_ids:
            websocket = self.active_connections.get(client_id)
            if websocket is None:
                continue
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.error(f"Broadcast to client {client_id} failed: {str(e)}")
                disconnected.append(client_id)

        for client_id in disconnected:
            await self.disconnect(client_id)

    async def subscribe(self, client_id: str, schedule_id: int):
        """
        Start viewing a schedule; a client views at most one schedule at a time

        Args:
            client_id: subscribing client
            schedule_id: schedule to follow
        """
        if client_id not in self.active_connections:
            return
        previous = self.subscriptions.get(client_id)
        self.subscriptions[client_id] = schedule_id
        logger.info(f"Client {client_id} is viewing schedule {schedule_id}")

        if previous is not None and previous != schedule_id:
            await self.broadcast_viewers_update(previous)
        await self.broadcast_viewers_update(schedule_id)

    async def unsubscribe(self, client_id: str):
        schedule_id = self.subscriptions.pop(client_id, None)
        if schedule_id is not None:
            logger.info(f"Client {client_id} stopped viewing schedule {schedule_id}")
            await self.broadcast_viewers_update(schedule_id)

    def viewer_ids(self, schedule_id: int) -> List[str]:
        return [cid for cid, sid in self.subscriptions.items() if sid == schedule_id]

    def get_viewers(self, schedule_id: int) -> List[dict]:
        return [
            {"client_id": cid, "username": self.usernames.get(cid, "Unknown")}
            for cid in self.viewer_ids(schedule_id)
        ]

    async def broadcast_viewers_update(self, schedule_id: int):
        viewers = self.get_viewers(schedule_id)
        message = {
            "type": "viewers_update",
            "data": {
                "schedule_id": schedule_id,
                "viewers": viewers,
                "count": len(viewers),
                "timestamp": now_iso(),
            },
        }
        await self.broadcast_to_schedule(schedule_id, message)

    async def broadcast_schedule_change(
        self,
        schedule_id: int,
        entity: str,
        action: str,
        entity_id: Optional[int] = None,
        exclude_client: Optional[str] = None,
    ):
        """
        Tell the viewers of a schedule that something in it changed;
        clients react by fetching the schedule again

        Args:
            schedule_id: changed schedule
            entity: schedule / shift / unit / role / assignment / extra_mission / extra_ambulance
            action: create / update / delete
            entity_id: id of the changed row (optional)
            exclude_client: the client that made the change (optional)
        """
        message = {
            "type": "schedule_changed",
            "data": {
                "schedule_id": schedule_id,
                "entity": entity,
                "action": action,
                "entity_id": entity_id,
                "timestamp": now_iso(),
            },
        }
        await self.broadcast_to_schedule(schedule_id, message, exclude_client=exclude_client)

    def update_heartbeat(self, client_id: str):
        if client_id in self.active_connections:
            self.last_heartbeat[client_id] = now()
            logger.debug(f"Heartbeat from client {client_id}")

    async def check_heartbeats(self):
        """Drop every client whose last heartbeat is older than the timeout"""
        current = now()
        timed_out = [
            client_id
            for client_id, last_time in self.last_heartbeat.items()
            if (current - last_time).total_seconds() > self.heartbeat_timeout
        ]
        for client_id in timed_out:
            logger.warning(f"Client {client_id} heartbeat timed out")
            websocket = self.active_connections.get(client_id)
            await self.disconnect(client_id)
            if websocket is not None:
                try:
                    await websocket.close()
                except Exception as e:
                    logger.debug(f"Closing timed out client {client_id}: {str(e)}")

    async def _heartbeat_checker(self):
        """Background task started with the first connection"""
        logger.info("Heartbeat checker started")

        while True:
            try:
                await asyncio.sleep(self.heartbeat_check_interval)
                if self.active_connections:
                    await self.check_heartbeats()
            except asyncio.CancelledError:
                logger.info("Heartbeat checker cancelled")
                break
            except Exception as e:
                logger.error(f"Heartbeat check failed: {str(e)}")

    def get_online_count(self) -> int:
        return len(self.active_connections)

    def get_subscription_counts(self) -> Dict[int, int]:
        counts: Dict[int, int] = {}
        for schedule_id in self.subscriptions.values():
            counts[schedule_id] = counts.get(schedule_id, 0) + 1
        return counts

    async def shutdown(self):
        """Close every connection (application shutdown)"""
        logger.info("Closing all WebSocket connections...")

        if self.heartbeat_task:
            self.heartbeat_task.cancel()
            try:
                await self.heartbeat_task
            except asyncio.CancelledError:
                pass

        for client_id, websocket in list(self.active_connections.items()):
            try:
                await websocket.close()
            except Exception as e:
                logger.error(f"Error closing client {client_id}: {str(e)}")

        self.active_connections.clear()
        self.usernames.clear()
        self.subscriptions.clear()
        self.last_heartbeat.clear()

        logger.info("All WebSocket connections closed")


connection_manager = ConnectionManager()
