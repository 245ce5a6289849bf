"""
Variant progress channel.

One Redis pub/sub channel per variant id. Render jobs publish ProgressEvents
on it and the aggregator subscribes to exactly the ids of its batch.
"""

import asyncio
import json
from typing import AsyncIterator, Iterable, List, Optional, Union
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from redis.exceptions import ConnectionError as RedisConnectionError, TimeoutError as RedisTimeoutError

from shared.errors import RetryableError, ValidationError
from shared.logging import get_logger
from shared.models import ProgressEvent
from shared.redis_client import RedisClient

logger = get_logger("progress_aggregator.channel")

CHANNEL_PREFIX = "variant_progress"


def progress_channel(variant_id: Union[UUID, str]) -> str:
    return f"{CHANNEL_PREFIX}:{variant_id}"


class ProgressPublisher:
    """Publishes ProgressEvents for individual variants."""

    def __init__(self, redis_client: Optional[RedisClient] = None):
        self.redis_client = redis_client or RedisClient()

    async def publish(self, event: ProgressEvent) -> None:
        receivers = await self.redis_client.publish(
            progress_channel(event.variant_id),
            event.model_dump_json()
        )
        logger.debug(
            "Progress event published",
            extra={
                "variant_id": str(event.variant_id),
                "status": event.status.value,
                "percent": event.percent,
                "receivers": receivers,
            }
        )


class VariantProgressSubscription:
    """Subscription to the progress channels of an explicit set of variant ids.

    events() raises RetryableError when the connection drops so the caller
    can re-subscribe and catch up.
    """

    def __init__(
        self,
        variant_ids: Iterable[Union[UUID, str]],
        redis_client: Optional[RedisClient] = None,
        poll_timeout: float = 1.0
    ):
        self.channels: List[str] = [progress_channel(v) for v in variant_ids]
        if not self.channels:
            raise ValidationError("Cannot subscribe to an empty set of variants")
        self.redis_client = redis_client or RedisClient()
        self.poll_timeout = poll_timeout
        self._pubsub = None
        self._closed = False

    async def connect(self) -> None:
        self._pubsub = self.redis_client.pubsub()
        try:
            await self._pubsub.subscribe(*self.channels)
        except (RedisConnectionError, RedisTimeoutError, OSError) as e:
            raise RetryableError(f"Failed to subscribe to progress channels: {str(e)}") from e
        logger.info("Subscribed to progress channels", extra={"channel_count": len(self.channels)})

    async def events(self) -> AsyncIterator[ProgressEvent]:
        if self._pubsub is None:
            raise RuntimeError("connect() must be called before events()")

        while not self._closed:
            try:
                message = await self._pubsub.get_message(
                    ignore_subscribe_messages=True,
                    timeout=self.poll_timeout
                )
            except (RedisConnectionError, RedisTimeoutError, OSError) as e:
                if self._closed:
                    return
                raise RetryableError(f"Progress channel disconnected: {str(e)}") from e

            if message is None:
                # get_message returns immediately when nothing is subscribed
                await asyncio.sleep(0)
                continue
            if message.get("type") != "message":
                continue

            data = message.get("data")
            if isinstance(data, bytes):
                data = data.decode("utf-8")
            try:
                yield ProgressEvent.model_validate(json.loads(data))
            except (json.JSONDecodeError, PydanticValidationError) as e:
                logger.warning(
                    "Dropping malformed progress event",
                    extra={"channel": message.get("channel"), "error": str(e)}
                )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._pubsub is not None:
            try:
                await self._pubsub.unsubscribe()
            except (RedisConnectionError, RedisTimeoutError, OSError) as e:
                logger.debug("Unsubscribe failed on close", extra={"error": str(e)})
            await self._pubsub.aclose()
