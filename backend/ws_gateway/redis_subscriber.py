"""
Redis pub/sub subscriber for the WebSocket gateway.
Listens on every realtime channel and hands each event to the registry.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Awaitable, Callable

from redis.exceptions import RedisError

from shared.config.logging import get_logger
from shared.infrastructure.events import (
    Event,
    channel_pattern,
    get_redis_pool,
    topic_from_channel,
)

logger = get_logger(__name__)

Dispatch = Callable[[str, dict[str, Any]], Awaitable[int]]

RECONNECT_DELAY_SECONDS = 2.0


def parse_message(msg: dict[str, Any]) -> tuple[str, dict[str, Any]] | None:
    """
    (topic, client message) for a pub/sub message, or None to skip it.

    The channel decides the topic; events whose own topic disagrees are
    dropped.
    """
    if msg is None or msg.get("type") not in ("message", "pmessage"):
        return None

    topic = topic_from_channel(msg.get("channel") or "")
    if topic is None:
        return None

    try:
        event = Event.from_json(msg["data"])
    except (json.JSONDecodeError, TypeError, ValueError) as e:
        logger.warning("Invalid realtime event", channel=msg.get("channel"), error=str(e))
        return None

    if event.topic != topic:
        logger.warning("Event topic does not match channel", channel=msg.get("channel"), topic=event.topic)
        return None
    return topic, event.to_message()


async def run_subscriber(dispatch: Dispatch) -> None:
    """
    Pattern-subscribe to all realtime channels and dispatch messages.

    Runs until cancelled; a lost Redis connection is retried after a delay.

    Args:
        dispatch: ``ConnectionRegistry.broadcast`` or compatible.
    """
    pattern = channel_pattern()
    while True:
        redis_pool = await get_redis_pool()
        pubsub = redis_pool.pubsub()
        try:
            await pubsub.psubscribe(pattern)
            logger.info("Redis subscriber started", pattern=pattern)

            async for msg in pubsub.listen():
                parsed = parse_message(msg)
                if parsed is None:
                    continue
                topic, message = parsed
                sent = await dispatch(topic, message)
                logger.debug("Event dispatched", topic=topic, event_type=message["type"], sent=sent)

        except asyncio.CancelledError:
            logger.info("Redis subscriber cancelled")
            raise
        except (RedisError, OSError) as e:
            logger.error("Redis subscriber connection lost", error=str(e))
            await asyncio.sleep(RECONNECT_DELAY_SECONDS)
        finally:
            try:
                await pubsub.punsubscribe(pattern)
                await pubsub.aclose()
            except (RedisError, OSError) as e:
                logger.debug("Error closing pubsub", error=str(e))
