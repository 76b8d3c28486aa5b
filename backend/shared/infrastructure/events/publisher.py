"""
Publishing of realtime events to Redis.

Each event goes to the Redis channel of its topic; the WebSocket gateway
pattern-subscribes to all of them and fans out to connected clients.
"""

from __future__ import annotations

import asyncio

import redis.asyncio as redis

from shared.config.settings import settings
from shared.config.logging import get_logger
from .event_types import MAX_EVENT_SIZE
from .event_schema import Event
from .topics import redis_channel
from .circuit_breaker import get_publish_circuit_breaker, backoff_delay

logger = get_logger(__name__)


async def publish_event(redis_client: redis.Redis, event: Event) -> int:
    """
    Publish ``event`` on the channel of its topic.

    Retries transient Redis errors with jittered backoff. Returns the number
    of subscribers reached, or 0 when the circuit breaker is open.

    Raises:
        ValueError: the serialized event is larger than MAX_EVENT_SIZE.
        redis.RedisError (or OSError): every retry failed.
    """
    data = event.to_json()
    size = len(data.encode("utf-8"))
    if size > MAX_EVENT_SIZE:
        raise ValueError(f"Event {event.type} too large: {size} > {MAX_EVENT_SIZE} bytes")

    channel = redis_channel(event.topic)
    breaker = get_publish_circuit_breaker()
    if not breaker.allow():
        logger.warning("Publish dropped, circuit open", channel=channel, event_type=event.type)
        return 0

    retries = max(1, settings.redis_publish_max_retries)
    for attempt in range(retries):
        try:
            receivers = await redis_client.publish(channel, data)
        except (redis.RedisError, OSError) as e:
            if attempt == retries - 1:
                breaker.record_failure()
                logger.error(
                    "Publish failed",
                    channel=channel,
                    event_type=event.type,
                    attempts=retries,
                    error=str(e),
                )
                raise
            delay = backoff_delay(attempt, settings.redis_publish_retry_delay)
            logger.warning(
                "Publish failed, retrying",
                channel=channel,
                event_type=event.type,
                attempt=attempt + 1,
                delay_seconds=round(delay, 3),
            )
            await asyncio.sleep(delay)
        else:
            breaker.record_success()
            logger.debug("Event published", channel=channel, event_type=event.type, receivers=receivers)
            return receivers
    return 0
