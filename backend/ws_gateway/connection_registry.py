"""
WebSocket connection registry.

Each connection owns an explicit set of topics ("admins",
"admins:branch:{id}", "Kitchen_{station}"). A reverse index topic ->
connections makes broadcast a lookup. Every membership change holds one
asyncio.Lock; sends happen outside it on a snapshot.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from shared.config.constants import KITCHEN_ACCESS_ROLES, STAFF_ROLES
from shared.config.logging import ws_gateway_logger as logger
from shared.config.settings import settings
from shared.infrastructure.events import (
    branch_id_from_topic,
    is_valid_topic,
    station_from_topic,
    topic_admins,
)


def _is_ws_connected(ws: WebSocket) -> bool:
    """True when both sides of the socket are still open."""
    return ws.client_state == WebSocketState.CONNECTED and ws.application_state == WebSocketState.CONNECTED


def is_topic_allowed(topic: str, roles: Iterable[str], branch_ids: Iterable[int]) -> bool:
    """
    Whether a user with ``roles`` in ``branch_ids`` may join ``topic``.

    - "admins": ADMIN, MANAGER or WAITER
    - "admins:branch:{id}": the branch must be one of the user's
    - "Kitchen_{station}": KITCHEN, MANAGER or ADMIN
    """
    roles = set(roles)
    if topic == topic_admins():
        return bool(roles & STAFF_ROLES)

    branch_id = branch_id_from_topic(topic)
    if branch_id is not None:
        return branch_id in set(branch_ids) and bool(roles & STAFF_ROLES)

    if station_from_topic(topic) is not None:
        return bool(roles & KITCHEN_ACCESS_ROLES)

    return False


@dataclass
class ConnectionInfo:
    """Identity and subscriptions of one socket."""

    user_id: int
    roles: list[str]
    branch_ids: list[int]
    topics: set[str] = field(default_factory=set)
    last_heartbeat: float = 0.0


class ConnectionRegistry:
    """
    Tracks staff WebSocket connections and their topic subscriptions.

    Usage:
        registry = ConnectionRegistry()
        await registry.connect(ws, user_id=1, roles=["KITCHEN"], branch_ids=[1])
        await registry.join(ws, "Kitchen_BAR")
        await registry.broadcast("Kitchen_BAR", message)
    """

    def __init__(
        self,
        heartbeat_timeout: float | None = None,
        max_connections_per_user: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.heartbeat_timeout = heartbeat_timeout or settings.ws_heartbeat_timeout
        self.max_connections_per_user = max_connections_per_user or settings.ws_max_connections_per_user
        self._clock = clock
        self._shutdown = False
        self._connections: dict[WebSocket, ConnectionInfo] = {}
        self._by_topic: dict[str, set[WebSocket]] = {}
        self._by_user: dict[int, set[WebSocket]] = {}
        self._lock = asyncio.Lock()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def connect(
        self,
        websocket: WebSocket,
        user_id: int,
        roles: list[str],
        branch_ids: list[int],
        timeout: float = 5.0,
    ) -> set[str]:
        """
        Accept and register a connection.

        Admin, manager and waiter connections start in the "admins" topic.

        Returns:
            The connection's initial topics.

        Raises:
            ConnectionError: shutting down, accept timed out, or the user
                already has the maximum number of connections.
        """
        if self._shutdown:
            raise ConnectionError("Server is shutting down")

        try:
            await asyncio.wait_for(websocket.accept(), timeout=timeout)
        except asyncio.TimeoutError:
            raise ConnectionError("WebSocket accept timed out")

        async with self._lock:
            if len(self._by_user.get(user_id, ())) >= self.max_connections_per_user:
                over_limit = True
            else:
                over_limit = False
                info = ConnectionInfo(
                    user_id=user_id,
                    roles=list(roles),
                    branch_ids=list(branch_ids),
                    last_heartbeat=self._clock(),
                )
                self._connections[websocket] = info
                self._by_user.setdefault(user_id, set()).add(websocket)
                if set(roles) & STAFF_ROLES:
                    self._add_topic(websocket, info, topic_admins())
                topics = set(info.topics)

        if over_limit:
            await websocket.close(code=1008, reason="Too many connections")
            raise ConnectionError(
                f"User {user_id} exceeded max connections ({self.max_connections_per_user})"
            )

        logger.info("WebSocket connected", user_id=user_id, roles=roles, topics=sorted(topics))
        return topics

    async def disconnect(self, websocket: WebSocket) -> None:
        """Remove a connection and every one of its memberships."""
        async with self._lock:
            info = self._connections.pop(websocket, None)
            if info is None:
                return
            for topic in info.topics:
                self._discard_from_index(topic, websocket)
            user_sockets = self._by_user.get(info.user_id)
            if user_sockets is not None:
                user_sockets.discard(websocket)
                if not user_sockets:
                    del self._by_user[info.user_id]
        logger.info("WebSocket disconnected", user_id=info.user_id)

    async def shutdown(self) -> int:
        """
        Close every connection and refuse new ones.

        Returns:
            Number of connections closed.
        """
        self._shutdown = True
        logger.info("WebSocket registry shutting down")

        async with self._lock:
            sockets = list(self._connections)

        closed = 0
        for ws in sockets:
            try:
                await ws.close(code=1001, reason="Server shutdown")
                closed += 1
            except Exception as e:
                logger.warning("Failed to close connection during shutdown", error=str(e))
            await self.disconnect(ws)

        logger.info("WebSocket shutdown complete", closed=closed)
        return closed

    # =========================================================================
    # Membership
    # =========================================================================

    def _add_topic(self, websocket: WebSocket, info: ConnectionInfo, topic: str) -> None:
        info.topics.add(topic)
        self._by_topic.setdefault(topic, set()).add(websocket)

    def _discard_from_index(self, topic: str, websocket: WebSocket) -> None:
        members = self._by_topic.get(topic)
        if members is None:
            return
        members.discard(websocket)
        if not members:
            del self._by_topic[topic]

    async def join(self, websocket: WebSocket, topic: str) -> bool:
        """
        Add ``topic`` to the connection's subscriptions.

        Returns:
            False if it was already subscribed.

        Raises:
            ValueError: unknown topic or unregistered connection.
            PermissionError: the user may not follow this topic.
        """
        if not is_valid_topic(topic):
            raise ValueError(f"Unknown topic: {topic!r}")

        async with self._lock:
            info = self._connections.get(websocket)
            if info is None:
                raise ValueError("Connection is not registered")
            if not is_topic_allowed(topic, info.roles, info.branch_ids):
                raise PermissionError(f"Not allowed to join {topic}")
            if topic in info.topics:
                return False
            self._add_topic(websocket, info, topic)

        logger.debug("Topic joined", user_id=info.user_id, topic=topic)
        return True

    async def leave(self, websocket: WebSocket, topic: str) -> bool:
        """
        Remove ``topic`` from the connection's subscriptions.

        Returns:
            False if it was not subscribed.
        """
        async with self._lock:
            info = self._connections.get(websocket)
            if info is None or topic not in info.topics:
                return False
            info.topics.discard(topic)
            self._discard_from_index(topic, websocket)

        logger.debug("Topic left", user_id=info.user_id, topic=topic)
        return True

    def topics_of(self, websocket: WebSocket) -> set[str]:
        info = self._connections.get(websocket)
        return set(info.topics) if info else set()

    def members_of(self, topic: str) -> set[WebSocket]:
        return set(self._by_topic.get(topic, ()))

    # =========================================================================
    # Delivery
    # =========================================================================

    async def broadcast(self, topic: str, message: dict[str, Any]) -> int:
        """
        Send ``message`` to every connection subscribed to ``topic``.

        A failed send is logged and skipped; delivery is best effort.

        Returns:
            Number of connections that received the message.
        """
        async with self._lock:
            targets = list(self._by_topic.get(topic, ()))

        sent = 0
        for ws in targets:
            if not _is_ws_connected(ws):
                logger.debug("Skipping send to disconnected socket", topic=topic)
                continue
            try:
                await ws.send_json(message)
                sent += 1
            except Exception as e:
                logger.warning("Failed to send message", topic=topic, error=str(e))
        return sent

    # =========================================================================
    # Heartbeat
    # =========================================================================

    def heartbeat(self, websocket: WebSocket) -> None:
        """Record activity from a connection."""
        info = self._connections.get(websocket)
        if info is not None:
            info.last_heartbeat = self._clock()

    def get_stale_connections(self) -> list[WebSocket]:
        """Connections silent for longer than the heartbeat timeout."""
        now = self._clock()
        return [
            ws
            for ws, info in list(self._connections.items())
            if now - info.last_heartbeat > self.heartbeat_timeout
        ]

    async def cleanup_stale(self) -> int:
        """
        Close and remove stale connections.

        Returns:
            Number of connections cleaned up.
        """
        stale = self.get_stale_connections()
        for ws in stale:
            try:
                await ws.close(code=1001, reason="Heartbeat timeout")
            except Exception as e:
                logger.warning("Failed to close stale connection", error=str(e))
            await self.disconnect(ws)
        if stale:
            logger.info("Stale connections cleaned", count=len(stale))
        return len(stale)

    # =========================================================================
    # Stats
    # =========================================================================

    @property
    def total_connections(self) -> int:
        return len(self._connections)

    def get_stats(self) -> dict[str, Any]:
        """Connection and subscription counts."""
        return {
            "total_connections": self.total_connections,
            "users_connected": len(self._by_user),
            "topics": {topic: len(members) for topic, members in self._by_topic.items()},
            "shutting_down": self._shutdown,
        }
