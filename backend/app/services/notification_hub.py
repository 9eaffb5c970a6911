from __future__ import annotations

import asyncio
import logging
from collections import defaultdict

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class NotificationHub:
    """Per-user registry of live websocket sessions.

    One hub is created per application instance and handed to whoever needs
    to push; there is no module-level instance.
    """

    def __init__(self) -> None:
        self._connections: dict[str, set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def connect(self, user_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._connections[user_id].add(websocket)

    async def disconnect(self, user_id: str, websocket: WebSocket) -> None:
        async with self._lock:
            sockets = self._connections.get(user_id)
            if not sockets:
                return
            sockets.discard(websocket)
            if not sockets:
                self._connections.pop(user_id, None)

    def connection_count(self) -> int:
        return sum(len(sockets) for sockets in self._connections.values())

    def is_connected(self, user_id: str) -> bool:
        return bool(self._connections.get(user_id))

    async def publish(self, user_id: str, payload: dict) -> int:
        """Send ``payload`` to every session of ``user_id``; returns how many accepted it."""
        async with self._lock:
            sockets = list(self._connections.get(user_id, set()))

        if not sockets:
            return 0

        delivered = 0
        stale: list[WebSocket] = []
        for websocket in sockets:
            try:
                await websocket.send_json(payload)
                delivered += 1
            except Exception:  # pragma: no cover - network/runtime dependent
                stale.append(websocket)

        if stale:
            async with self._lock:
                active = self._connections.get(user_id, set())
                for socket in stale:
                    active.discard(socket)
                if not active:
                    self._connections.pop(user_id, None)
            logger.debug("Removed %d stale notification websocket(s) for user %s", len(stale), user_id)
        return delivered
