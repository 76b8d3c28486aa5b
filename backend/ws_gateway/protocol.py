"""
Client -> gateway messages.

Clients send JSON objects with an ``action``:

    {"action": "join", "topic": "Kitchen_BAR"}
    {"action": "leave", "topic": "admins:branch:3"}
    {"action": "subscribe_branch", "branchId": 3}
    {"action": "unsubscribe_branch", "branchId": 3}
    {"action": "join_station", "station": "GRILL"}
    {"action": "leave_station", "station": "GRILL"}

and the bare text ``ping`` (or ``{"type": "ping"}``) as a heartbeat, answered
with ``pong``.
"""

from __future__ import annotations

import json
from typing import Any

from fastapi import WebSocket

from shared.infrastructure.events import topic_branch_admins, topic_kitchen
from ws_gateway.connection_registry import ConnectionRegistry

PONG = "pong"

JOIN_ACTIONS = {"join", "subscribe_branch", "join_station"}
LEAVE_ACTIONS = {"leave", "unsubscribe_branch", "leave_station"}


def _error(detail: str) -> dict[str, Any]:
    return {"type": "error", "detail": detail}


def _is_ping(data: str, message: Any) -> bool:
    if data.strip() == "ping":
        return True
    return isinstance(message, dict) and (message.get("type") == "ping" or message.get("action") == "ping")


def resolve_topic(message: dict[str, Any]) -> str:
    """
    Topic named by a join/leave message.

    Raises:
        ValueError: missing or malformed branchId/station/topic.
    """
    action = message.get("action")
    if action in ("subscribe_branch", "unsubscribe_branch"):
        branch_id = message.get("branchId")
        if isinstance(branch_id, str) and branch_id.isdigit():
            branch_id = int(branch_id)
        return topic_branch_admins(branch_id)
    if action in ("join_station", "leave_station"):
        return topic_kitchen(message.get("station") or "")

    topic = message.get("topic")
    if not isinstance(topic, str) or not topic:
        raise ValueError("topic is required")
    return topic


async def handle_client_message(
    registry: ConnectionRegistry,
    websocket: WebSocket,
    data: str,
) -> str | dict[str, Any] | None:
    """
    Apply one client message and return the reply to send (if any).

    Any message counts as a heartbeat.
    """
    registry.heartbeat(websocket)

    try:
        message = json.loads(data)
    except json.JSONDecodeError:
        message = None

    if _is_ping(data, message):
        return PONG
    if not isinstance(message, dict):
        return _error("Mensaje inválido")

    action = message.get("action")
    if action not in JOIN_ACTIONS and action not in LEAVE_ACTIONS:
        return _error(f"Acción desconocida: {action!r}")

    try:
        topic = resolve_topic(message)
    except ValueError as e:
        return _error(str(e))

    if action in JOIN_ACTIONS:
        try:
            await registry.join(websocket, topic)
        except PermissionError:
            return _error(f"Sin permiso para {topic}")
        except ValueError as e:
            return _error(str(e))
        return {"type": "joined", "topic": topic, "topics": sorted(registry.topics_of(websocket))}

    await registry.leave(websocket, topic)
    return {"type": "left", "topic": topic, "topics": sorted(registry.topics_of(websocket))}
