"""
In-memory connection registry for the order chat WebSocket.

Maps connection id -> Subscription (identity + watched order). Holds no
durable state: the message store is authoritative and a restart only drops
live push until clients reconnect. Broadcasts reach connections of this
process only.
"""
import asyncio
import json
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from fastapi import WebSocket
from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)


@dataclass
class Subscription:
    connection_id: str
    websocket: WebSocket
    user_id: Optional[int] = None
    is_admin: bool = False
    order_id: Optional[int] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def is_open(self) -> bool:
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )


class ConnectionManager:
    """Tracks live connections and fans out order-scoped events."""

    def __init__(self) -> None:
        self._connections: Dict[str, Subscription] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._connections)

    @staticmethod
    def new_connection_id() -> str:
        return uuid.uuid4().hex

    def get(self, connection_id: str) -> Optional[Subscription]:
        return self._connections.get(connection_id)

    def subscribers(self, order_id: int) -> List[Subscription]:
        return [s for s in self._connections.values() if s.order_id == order_id]

    async def register(self, connection_id: str, websocket: WebSocket) -> Subscription:
        sub = Subscription(connection_id=connection_id, websocket=websocket)
        async with self._lock:
            self._connections[connection_id] = sub
        logger.debug("Registered connection %s", connection_id)
        return sub

    async def authenticate(self, connection_id: str, user_id: int, is_admin: bool) -> bool:
        async with self._lock:
            sub = self._connections.get(connection_id)
            if sub is None:
                return False
            sub.user_id = user_id
            sub.is_admin = is_admin
        logger.debug("Connection %s authenticated as user %s (admin=%s)", connection_id, user_id, is_admin)
        return True

    async def subscribe(self, connection_id: str, order_id: int) -> bool:
        """Watch one order. Replaces any previous subscription of this connection."""
        async with self._lock:
            sub = self._connections.get(connection_id)
            if sub is None:
                return False
            previous = sub.order_id
            sub.order_id = order_id
        if previous is not None and previous != order_id:
            logger.debug("Connection %s moved from order %s to %s", connection_id, previous, order_id)
        else:
            logger.debug("Connection %s subscribed to order %s", connection_id, order_id)
        return True

    async def unsubscribe(self, connection_id: str) -> Optional[int]:
        """Stop watching; returns the order that was watched, if any."""
        async with self._lock:
            sub = self._connections.get(connection_id)
            if sub is None:
                return None
            previous, sub.order_id = sub.order_id, None
        logger.debug("Connection %s unsubscribed from order %s", connection_id, previous)
        return previous

    async def unregister(self, connection_id: str) -> None:
        async with self._lock:
            self._connections.pop(connection_id, None)
        logger.debug("Unregistered connection %s", connection_id)

    async def send(self, connection_id: str, event: Dict[str, Any]) -> bool:
        """Send one event to one connection. Returns False when it could not be delivered."""
        sub = self.get(connection_id)
        if sub is None or not sub.is_open:
            return False
        return await self._send(sub, json.dumps(event, default=str))

    async def broadcast(self, order_id: int, event: Dict[str, Any]) -> int:
        """
        Send event to every open connection watching order_id.

        Fire-and-forget: closed or failing connections are skipped (they are
        removed on disconnect, not here). Returns the number delivered.
        """
        msg = json.dumps(event, default=str)
        async with self._lock:
            targets = self.subscribers(order_id)
        delivered = 0
        for sub in targets:
            if not sub.is_open:
                continue
            if await self._send(sub, msg):
                delivered += 1
        logger.debug("Broadcast %s to order %s: %d/%d delivered", event.get("type"), order_id, delivered, len(targets))
        return delivered

    async def _send(self, sub: Subscription, text: str) -> bool:
        try:
            await sub.websocket.send_text(text)
            return True
        except Exception as e:
            logger.warning("Send to connection %s failed: %s", sub.connection_id, e)
            return False
