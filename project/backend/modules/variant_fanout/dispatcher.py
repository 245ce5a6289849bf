"""
Render dispatchers.

A dispatcher hands one RenderRequest to whatever executes renders and
returns without waiting for the render itself.
"""

from typing import Protocol

from redis.exceptions import RedisError

from api_gateway.services.queue_service import enqueue_render_job
from shared.errors import RenderSubmissionError, RetryableError
from shared.models import RenderRequest


class RenderDispatcher(Protocol):
    async def submit(self, request: RenderRequest) -> None:
        ...


class QueueRenderDispatcher:
    """Submits render jobs to the worker queue."""

    async def submit(self, request: RenderRequest) -> None:
        try:
            await enqueue_render_job(request)
        except (RetryableError, RedisError, OSError) as e:
            raise RenderSubmissionError(
                f"Failed to queue render: {str(e)}",
                job_id=request.variant_id
            ) from e
