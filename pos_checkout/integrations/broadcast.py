"""
Real-time broadcast channel over WebSockets.

Subscribers connect to the socket endpoint and only listen. Each
settlement emits one `payment-success` event to every connected
subscriber. There is no acknowledgement and no replay for clients that
reconnect later; they fall back to polling check-status.
"""
import asyncio
from typing import Any, Dict, List, Set

import structlog
from fastapi import WebSocket

logger = structlog.get_logger(__name__)

PAYMENT_SUCCESS_EVENT = "payment-success"


class BroadcastHub:
    """Tracks connected WebSocket subscribers and fans events out to them."""

    def __init__(self) -> None:
        self._connections: Set[WebSocket] = set()
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._connections.add(websocket)
        logger.info("broadcast_subscriber_connected", subscribers=len(self._connections))

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._connections.discard(websocket)
        logger.info("broadcast_subscriber_disconnected", subscribers=len(self._connections))

    @property
    def subscriber_count(self) -> int:
        return len(self._connections)

    async def broadcast(self, event: str, data: Dict[str, Any]) -> int:
        """
        Send an event to every subscriber.

        Subscribers whose send fails are dropped. Returns the number of
        subscribers the event was written to.
        """
        async with self._lock:
            connections: List[WebSocket] = list(self._connections)

        message = {"event": event, "data": data}
        results = await asyncio.gather(
            *(ws.send_json(message) for ws in connections), return_exceptions=True
        )

        dead = [ws for ws, result in zip(connections, results) if isinstance(result, Exception)]
        if dead:
            async with self._lock:
                for ws in dead:
                    self._connections.discard(ws)
            logger.info("broadcast_dead_subscribers_dropped", dropped=len(dead))

        return len(connections) - len(dead)

    async def publish_payment_success(self, fingerprint: str) -> int:
        return await self.broadcast(PAYMENT_SUCCESS_EVENT, {"md5": fingerprint})
