"""
Redis client.

Async Redis wrapper used for the job queue and the variant progress
pub/sub channels.
"""

import json
from typing import Any

import redis.asyncio as redis

from shared.config import settings
from shared.errors import RetryableError, ConfigError
from shared.logging import get_logger

logger = get_logger("redis_client")


class RedisClient:
    """Redis client with JSON publishing and connection health checks."""

    def __init__(self):
        """Initialize Redis client."""
        try:
            self.client = redis.from_url(settings.redis_url, decode_responses=False)
        except Exception as e:
            raise ConfigError(f"Failed to initialize Redis client: {str(e)}") from e

    async def publish(self, channel: str, message: Any) -> int:
        """
        Publish a JSON message on a pub/sub channel.

        Returns:
            Number of subscribers that received the message
        """
        payload = message if isinstance(message, str) else json.dumps(message, default=str)
        try:
            return await self.client.publish(channel, payload.encode("utf-8"))
        except Exception as e:
            raise RetryableError(f"Failed to publish to {channel}: {str(e)}") from e

    def pubsub(self):
        """Return a new pub/sub object bound to this connection pool."""
        return self.client.pubsub()

    async def health_check(self) -> bool:
        """Ping Redis. Returns False instead of raising."""
        try:
            return bool(await self.client.ping())
        except Exception as e:
            logger.warning("Redis health check failed", extra={"error": str(e)})
            return False

    async def close(self) -> None:
        """Close the connection pool."""
        await self.client.aclose()
