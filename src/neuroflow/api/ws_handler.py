"""
WebSocket Handler
==================
Live push channel for the dashboard.

Server -> client messages (JSON text frames):
    {"type": "status", "data": {...}}              on connect and on request
    {"type": "sample", "data": DataPoint}          every accepted 1 Hz reading
    {"type": "state", "state": "ACTIVE", "error": null}
    {"type": "advice", "data": AdviceRequestState} pending/settled/reset
    {"type": "advice_request", "fired": bool, "reason": str}

Pipeline listeners run synchronously on the event thread, so they hand
messages to ``publish`` which schedules the async send on the server loop.
"""

import asyncio
import json
import logging
from typing import Optional, Set

from fastapi import WebSocket

logger = logging.getLogger("WebSocket")


class ConnectionManager:
    """Dashboard clients currently subscribed to the live feed."""

    def __init__(self):
        self.clients: Set[WebSocket] = set()
        self.loop: Optional[asyncio.AbstractEventLoop] = None

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        # publish() needs the server loop; capture it from the first client
        self.loop = asyncio.get_running_loop()
        self.clients.add(websocket)
        logger.info(f"Dashboard subscribed ({len(self.clients)} live)")

    def disconnect(self, websocket: WebSocket):
        if websocket in self.clients:
            self.clients.remove(websocket)
            logger.info(f"Dashboard unsubscribed ({len(self.clients)} live)")

    async def broadcast(self, message: dict):
        """Send one message to every subscriber, dropping any that fail."""
        frame = json.dumps(message)
        for websocket in list(self.clients):
            try:
                await websocket.send_text(frame)
            except Exception as e:
                logger.info(f"Dropping dashboard after {message.get('type')} send failed: {e}")
                self.clients.discard(websocket)

    def publish(self, message: dict):
        """Queue a broadcast from a pipeline listener. No-op with no subscribers."""
        if not self.clients or self.loop is None or self.loop.is_closed():
            return
        asyncio.run_coroutine_threadsafe(self.broadcast(message), self.loop)

    @property
    def client_count(self) -> int:
        return len(self.clients)
