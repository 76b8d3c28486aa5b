"""
Realtime event system over Redis pub/sub.

- event_types.py: event names
- event_schema.py: Event envelope with validation
- topics.py: topic names and their Redis channels
- redis_pool.py: pooled async client
- circuit_breaker.py: fail-fast when Redis is down
- publisher.py: publish_event with retry
"""

from .circuit_breaker import (
    CircuitState,
    PublishCircuitBreaker,
    get_publish_circuit_breaker,
    backoff_delay,
)
from .event_types import (
    ORDER_CREATED,
    ORDER_STATUS_CHANGED,
    TABLE_ORDER_CREATED,
    NEW_KITCHEN_TICKET,
    KITCHEN_TICKET_UPDATED,
    KITCHEN_PUSH,
    TABLE_SESSION_OPENED,
    TABLE_SESSION_CLOSED,
    TABLE_STATUS_CHANGED,
    ALL_EVENT_TYPES,
    MAX_EVENT_SIZE,
)
from .event_schema import Event
from .topics import (
    topic_admins,
    topic_branch_admins,
    topic_kitchen,
    branch_id_from_topic,
    station_from_topic,
    is_valid_topic,
    redis_channel,
    topic_from_channel,
    channel_pattern,
)
from .redis_pool import get_redis_pool, close_redis_pool
from .publisher import publish_event

__all__ = [
    "CircuitState",
    "PublishCircuitBreaker",
    "get_publish_circuit_breaker",
    "backoff_delay",
    "ORDER_CREATED",
    "ORDER_STATUS_CHANGED",
    "TABLE_ORDER_CREATED",
    "NEW_KITCHEN_TICKET",
    "KITCHEN_TICKET_UPDATED",
    "KITCHEN_PUSH",
    "TABLE_SESSION_OPENED",
    "TABLE_SESSION_CLOSED",
    "TABLE_STATUS_CHANGED",
    "ALL_EVENT_TYPES",
    "MAX_EVENT_SIZE",
    "Event",
    "topic_admins",
    "topic_branch_admins",
    "topic_kitchen",
    "branch_id_from_topic",
    "station_from_topic",
    "is_valid_topic",
    "redis_channel",
    "topic_from_channel",
    "channel_pattern",
    "get_redis_pool",
    "close_redis_pool",
    "publish_event",
]
