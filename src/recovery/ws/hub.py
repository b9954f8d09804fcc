"""Live notification delivery with per-user offline buffering.

Each user has at most one live connection. Notifications for a user who is
offline, or whose socket fails mid-send, are queued in memory and flushed in
order when the user authenticates again. Nothing is persisted; a restart
drops the queues.
"""

from __future__ import annotations

import asyncio
import json
from collections import deque
from collections.abc import Awaitable, Callable

import structlog
from fastapi import WebSocket
from starlette.websockets import WebSocketState

from recovery.ws.notifications import Notification, PendingMatches

logger = structlog.get_logger()

SnapshotProvider = Callable[[int], Awaitable[PendingMatches | None]]


class NotificationHub:
    """Owns the user -> socket registry and the pending queues.

    Created by the application factory and stored on ``app.state``.
    All state is touched from the event loop only.
    """

    def __init__(self, snapshot_provider: SnapshotProvider | None = None) -> None:
        self._snapshot_provider = snapshot_provider
        self._connections: dict[int, WebSocket] = {}
        self._pending: dict[int, deque[Notification]] = {}
        # Held while a user is being caught up; removed once no authenticate holds or awaits it.
        self._locks: dict[int, asyncio.Lock] = {}
        self._lock_users: dict[int, int] = {}

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def is_online(self, user_id: int) -> bool:
        return user_id in self._connections

    def pending_for(self, user_id: int) -> list[Notification]:
        return list(self._pending.get(user_id, ()))

    async def authenticate(self, websocket: WebSocket, user_id: int) -> None:
        """Register ``websocket`` as the user's live channel and catch it up.

        A newer connection replaces an older one for the same user. The user
        first receives a fresh pending-matches snapshot, then everything that
        was buffered while offline, oldest first.
        """
        self._connections[user_id] = websocket
        logger.info("ws_authenticated", user_id=user_id)

        lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._lock_users[user_id] = self._lock_users.get(user_id, 0) + 1
        try:
            async with lock:
                if self._connections.get(user_id) is not websocket:
                    return
                queue = self._pending.setdefault(user_id, deque())
                # A new snapshot supersedes any that was buffered.
                for stale in [n for n in queue if isinstance(n, PendingMatches)]:
                    queue.remove(stale)
                snapshot = await self._snapshot(user_id)
                if snapshot is not None:
                    queue.appendleft(snapshot)
                await self._flush(user_id, websocket, queue)
        finally:
            self._lock_users[user_id] -= 1
            if not self._lock_users[user_id]:
                del self._lock_users[user_id]
                del self._locks[user_id]

    async def send(self, user_id: int, notification: Notification) -> bool:
        """Deliver now if possible, otherwise buffer.

        Returns True when transmitted, False when queued. Never raises for a
        delivery problem.
        """
        websocket = self._connections.get(user_id)
        if websocket is None or user_id in self._locks or self._pending.get(user_id):
            self._buffer(user_id, notification)
            return False

        if await self._transmit(user_id, websocket, notification):
            return True
        self._buffer(user_id, notification)
        return False

    def disconnect(self, websocket: WebSocket) -> int | None:
        """Forget ``websocket``. Returns the user it was registered for, if still current."""
        for user_id, current in list(self._connections.items()):
            if current is websocket:
                del self._connections[user_id]
                logger.info("ws_disconnected", user_id=user_id)
                return user_id
        return None

    async def close(self) -> None:
        """Close every live socket. Pending queues are dropped."""
        sockets = list(self._connections.items())
        self._connections.clear()
        for user_id, websocket in sockets:
            try:
                await websocket.close(code=1001)
            except RuntimeError:
                logger.debug("ws_close_skipped", user_id=user_id)
        dropped = sum(len(q) for q in self._pending.values())
        if dropped:
            logger.warning("pending_notifications_dropped", count=dropped)
        self._pending.clear()

    def get_stats(self) -> dict[str, int]:
        return {
            "connections": len(self._connections),
            "pending_users": sum(1 for q in self._pending.values() if q),
            "pending_notifications": sum(len(q) for q in self._pending.values()),
            "catching_up": len(self._locks),
        }

    # --- internals ---

    async def _snapshot(self, user_id: int) -> PendingMatches | None:
        if self._snapshot_provider is None:
            return None
        try:
            return await self._snapshot_provider(user_id)
        except Exception:
            logger.exception("pending_snapshot_failed", user_id=user_id)
            return None

    def _buffer(self, user_id: int, notification: Notification) -> None:
        self._pending.setdefault(user_id, deque()).append(notification)
        logger.info("notification_buffered", user_id=user_id, type=notification.type)

    async def _flush(self, user_id: int, websocket: WebSocket, queue: deque[Notification]) -> None:
        while queue:
            if self._connections.get(user_id) is not websocket:
                break
            notification = queue.popleft()
            if not await self._transmit(user_id, websocket, notification):
                queue.appendleft(notification)
                break
        if not queue:
            self._pending.pop(user_id, None)

    async def _transmit(self, user_id: int, websocket: WebSocket, notification: Notification) -> bool:
        if (
            websocket.application_state != WebSocketState.CONNECTED
            or websocket.client_state != WebSocketState.CONNECTED
        ):
            self._drop(user_id, websocket)
            return False
        try:
            await websocket.send_text(json.dumps(notification.to_wire()))
        except Exception:
            logger.warning("notification_send_failed", user_id=user_id, type=notification.type, exc_info=True)
            self._drop(user_id, websocket)
            return False
        logger.debug("notification_sent", user_id=user_id, type=notification.type)
        return True

    def _drop(self, user_id: int, websocket: WebSocket) -> None:
        if self._connections.get(user_id) is websocket:
            del self._connections[user_id]
