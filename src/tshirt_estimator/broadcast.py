"""WebSocket fan-out for real-time estimation updates."""

from __future__ import annotations

import asyncio
from typing import Any

import structlog
from fastapi import WebSocket

from .interfaces import BroadcasterInterface

logger = structlog.get_logger(__name__)

CONNECTED_MESSAGE = "Connected to estimation server"


class ConnectionManager(BroadcasterInterface):
    """Tracks connected WebSocket clients and sends every update to all of them.

    Delivery is best effort: a client whose send fails is dropped, and there is
    no ordering or replay across clients.
    """

    def __init__(self) -> None:
        self.active_connections: list[WebSocket] = []
        self._pending: set[asyncio.Task[None]] = set()
        self._loop: asyncio.AbstractEventLoop | None = None

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._loop = asyncio.get_running_loop()
        self.active_connections.append(websocket)
        logger.info("WebSocket client connected", clients=len(self.active_connections))
        await websocket.send_json({"type": "connection", "message": CONNECTED_MESSAGE})

    def disconnect(self, websocket: WebSocket) -> None:
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)
        logger.info("WebSocket client disconnected", clients=len(self.active_connections))

    async def broadcast(self, message: dict[str, Any]) -> None:
        """Send a message to every connected client."""
        for connection in list(self.active_connections):
            try:
                await connection.send_json(message)
            except Exception as e:
                logger.warning("Dropping unreachable WebSocket client", error=str(e))
                self.disconnect(connection)

    def publish(self, message: dict[str, Any]) -> None:
        """Schedule a broadcast from synchronous code.

        On the event loop the broadcast becomes a task. From a worker thread it
        is handed to the loop the clients connected on. With neither, the
        message is dropped.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None:
            task = loop.create_task(self.broadcast(message))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            return

        if self._loop is None or self._loop.is_closed() or not self._loop.is_running():
            logger.debug("No running event loop; update not broadcast", message=message)
            return
        asyncio.run_coroutine_threadsafe(self.broadcast(message), self._loop)
