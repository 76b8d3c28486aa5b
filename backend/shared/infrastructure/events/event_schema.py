"""
Event Schema.

Defines the Event dataclass carried from the REST API to the gateway.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from typing import Any

from .topics import is_valid_topic


@dataclass
class Event:
    """
    Envelope for a real-time notification.

    ``topic`` names the subscriber group ("admins", "admins:branch:3",
    "Kitchen_BAR"); ``payload`` is the event-specific body delivered to
    clients as-is.
    """

    type: str
    topic: str
    payload: dict[str, Any] = field(default_factory=dict)
    ts: str | None = None
    v: int = 1  # Schema version for future compatibility

    def __post_init__(self) -> None:
        """Reject malformed events before they reach Redis."""
        if not self.type or not isinstance(self.type, str):
            raise ValueError("Event type must be a non-empty string")

        if not isinstance(self.topic, str) or not is_valid_topic(self.topic):
            raise ValueError(f"Event topic is not a known topic: {self.topic!r}")

        if not isinstance(self.payload, dict):
            raise ValueError("Event payload must be a dict")

    def to_message(self) -> dict[str, Any]:
        """Shape sent to WebSocket clients."""
        return {
            "type": self.type,
            "topic": self.topic,
            "payload": self.payload,
            "ts": self.ts or datetime.now(timezone.utc).isoformat(),
            "v": self.v,
        }

    def to_json(self) -> str:
        """Serialize event to JSON string."""
        data = asdict(self)
        data["ts"] = data["ts"] or datetime.now(timezone.utc).isoformat()
        return json.dumps(data, ensure_ascii=False, default=str)

    @classmethod
    def from_json(cls, json_str: str) -> "Event":
        """Deserialize event from JSON string. Validation runs in __post_init__."""
        data = json.loads(json_str)
        return cls(**data)
