"""
Outbound notification port and its WebSocket implementation.

Services call ``publish(topic, payload)`` after their changes are committed.
Delivery is fire-and-forget: publish never blocks on a subscriber and never
raises because a subscriber went away.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, Set

from fastapi import WebSocket

from apilabs.logging_config import get_logger

logger = get_logger("apilabs.services.notifications")


def user_topic(user_id) -> str:
    return f"user_{user_id}"


def account_topic(account_id) -> str:
    return f"account_{account_id}"


class NotificationPublisher(ABC):
    @abstractmethod
    def publish(self, topic: str, payload: Dict[str, Any]) -> None:
        """
        Hand an event to every subscriber of ``topic`` without waiting for delivery.
        """


class LoggingPublisher(NotificationPublisher):
    def publish(self, topic: str, payload: Dict[str, Any]) -> None:
        logger.info("Event %s -> %s", payload.get("event"), topic)


class WebSocketHub(NotificationPublisher):
    """
    Room-based fan-out over connected WebSockets.
    """

    def __init__(self):
        self.rooms: Dict[str, Set[WebSocket]] = {}
        self._pending: Set[asyncio.Task] = set()

    def subscribe(self, websocket: WebSocket, room: str) -> None:
        self.rooms.setdefault(room, set()).add(websocket)
        logger.info("Client %s joined room %s", websocket.client, room)

    def unsubscribe(self, websocket: WebSocket, room: str) -> None:
        members = self.rooms.get(room)
        if not members:
            return
        members.discard(websocket)
        if not members:
            del self.rooms[room]

    def disconnect(self, websocket: WebSocket) -> None:
        for room in list(self.rooms):
            self.unsubscribe(websocket, room)

    def publish(self, topic: str, payload: Dict[str, Any]) -> None:
        members = list(self.rooms.get(topic, ()))
        if not members:
            return
        for websocket in members:
            task = asyncio.get_running_loop().create_task(self._deliver(websocket, topic, payload))
            # keep a reference until the send finishes
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _deliver(self, websocket: WebSocket, topic: str, payload: Dict[str, Any]) -> None:
        try:
            await websocket.send_json({"room": topic, **payload})
        except Exception as e:
            logger.warning("Dropping subscriber %s from %s after failed send: %s", websocket.client, topic, e)
            self.disconnect(websocket)


hub = WebSocketHub()
