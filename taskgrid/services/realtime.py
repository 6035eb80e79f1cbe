"""Real-time push channel using Redis pub/sub.

Each user has one channel, ``user:{user_id}``. Frames are published there
and forwarded by the WebSocket pump to that user's connections only.
"""

import json
import logging
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

import redis
import redis.asyncio as aioredis

from taskgrid.config import get_settings

if TYPE_CHECKING:
    from redis.asyncio.client import PubSub

logger = logging.getLogger(__name__)
settings = get_settings()


# Synchronous Redis client for publishing from the notification worker
_sync_redis: redis.Redis | None = None


def get_sync_redis() -> redis.Redis:
    """Get synchronous Redis client for publishing frames."""
    global _sync_redis
    if _sync_redis is None:
        _sync_redis = redis.from_url(settings.redis_url)
    return _sync_redis


def user_channel(user_id: int) -> str:
    return f"user:{user_id}"


def publish_user_event(user_id: int, frame: dict[str, Any]) -> bool:
    """Publish a frame to a user's channel.

    Delivery is best effort: a user with no open connection simply misses
    the frame and catches up from persisted notifications.

    Returns:
        True if the frame reached Redis, False otherwise.
    """
    try:
        redis_client = get_sync_redis()
        channel = user_channel(user_id)
        receivers = redis_client.publish(channel, json.dumps(frame))
        logger.debug(f"Published {frame.get('type')} to {channel} ({receivers} receivers)")
        return True
    except Exception as e:
        # Push is best effort, the persisted notification is the fallback
        logger.error(f"Failed to publish event to user {user_id}: {e}")
        return False


class RealtimeService:
    """Async Redis pub/sub service for WebSocket connections."""

    def __init__(self) -> None:
        self._redis: aioredis.Redis | None = None
        self._pubsub: PubSub | None = None

    async def _get_redis(self) -> aioredis.Redis:
        if self._redis is None:
            self._redis = aioredis.from_url(settings.redis_url)
        return self._redis

    async def subscribe(self, channel: str) -> AsyncIterator[dict]:
        """Subscribe to a Redis channel and yield messages."""
        redis_conn = await self._get_redis()
        self._pubsub = redis_conn.pubsub()
        await self._pubsub.subscribe(channel)

        try:
            async for message in self._pubsub.listen():
                if message["type"] == "message":
                    try:
                        data = json.loads(message["data"])
                        yield data
                    except json.JSONDecodeError:
                        logger.warning(f"Invalid JSON in pub/sub message: {message['data']}")
        finally:
            if self._pubsub:
                await self._pubsub.unsubscribe(channel)

    async def cleanup(self) -> None:
        """Clean up Redis connections."""
        if self._pubsub:
            await self._pubsub.close()
        if self._redis:
            await self._redis.close()
