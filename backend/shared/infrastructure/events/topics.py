"""
Notification topics and their Redis channels.

Topics:
- "admins": every admin/manager/waiter connection
- "admins:branch:{id}": admins following one branch
- "Kitchen_{station}": kitchen displays showing one station
"""

from __future__ import annotations

from shared.config.constants import Station
from shared.config.settings import settings

ADMINS_TOPIC = "admins"
BRANCH_TOPIC_PREFIX = "admins:branch:"
KITCHEN_TOPIC_PREFIX = "Kitchen_"


def _validate_positive_id(id_value: int, name: str) -> None:
    if not isinstance(id_value, int) or isinstance(id_value, bool) or id_value <= 0:
        raise ValueError(f"{name} must be a positive integer, got {id_value}")


def topic_admins() -> str:
    """Topic for all admin/waiter connections."""
    return ADMINS_TOPIC


def topic_branch_admins(branch_id: int) -> str:
    """Topic for admins subscribed to one branch."""
    _validate_positive_id(branch_id, "branch_id")
    return f"{BRANCH_TOPIC_PREFIX}{branch_id}"


def topic_kitchen(station: str) -> str:
    """Topic for kitchen displays of a station."""
    station = (station or "").upper()
    if station not in Station.ALL:
        raise ValueError(f"Unknown station: {station!r}")
    return f"{KITCHEN_TOPIC_PREFIX}{station}"


def branch_id_from_topic(topic: str) -> int | None:
    """Branch id of an "admins:branch:{id}" topic, else None."""
    if not topic.startswith(BRANCH_TOPIC_PREFIX):
        return None
    raw = topic[len(BRANCH_TOPIC_PREFIX):]
    return int(raw) if raw.isdigit() and int(raw) > 0 else None


def station_from_topic(topic: str) -> str | None:
    """Station of a "Kitchen_{station}" topic, else None."""
    if not topic.startswith(KITCHEN_TOPIC_PREFIX):
        return None
    station = topic[len(KITCHEN_TOPIC_PREFIX):]
    return station if station in Station.ALL else None


def is_valid_topic(topic: str) -> bool:
    """True for the three topic families, with valid ids/stations."""
    return (
        topic == ADMINS_TOPIC
        or branch_id_from_topic(topic) is not None
        or station_from_topic(topic) is not None
    )


def redis_channel(topic: str) -> str:
    """Redis pub/sub channel carrying a topic."""
    return f"{settings.realtime_channel_prefix}{topic}"


def topic_from_channel(channel: str) -> str | None:
    """Inverse of redis_channel; None for channels outside the prefix."""
    prefix = settings.realtime_channel_prefix
    if not channel.startswith(prefix):
        return None
    return channel[len(prefix):]


def channel_pattern() -> str:
    """Pattern matching every realtime channel (for PSUBSCRIBE)."""
    return f"{settings.realtime_channel_prefix}*"
