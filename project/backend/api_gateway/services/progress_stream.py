"""
Server-Sent Events for batch progress.

Streams a snapshot, then every progress event of the batch, then a final
summary once every variant is terminal.
"""

import json
from typing import AsyncIterator, Callable, Dict, List, Optional
from uuid import UUID

from shared.errors import RetryableError
from shared.logging import get_logger
from shared.models import VariantStatus
from modules.progress_aggregator import VariantProgressSubscription, is_newer
from api_gateway.coordinator import PipelineCoordinator

logger = get_logger(__name__)


def format_sse(event: str, data: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(data, default=str)}\n\n"


async def stream_batch_progress(
    coordinator: PipelineCoordinator,
    variant_ids: List[UUID],
    subscription_factory: Optional[Callable[[List[UUID]], VariantProgressSubscription]] = None
) -> AsyncIterator[str]:
    """
    Yield SSE frames for one batch.

    The subscription is opened before the snapshot is read so nothing
    published in between is missed. A dropped channel ends the stream with
    an ``error`` frame; clients reconnect and get a fresh snapshot.
    """
    factory = subscription_factory or VariantProgressSubscription
    subscription = factory(variant_ids)
    try:
        await subscription.connect()

        snapshot = await coordinator.get_batch_progress(variant_ids)
        yield format_sse("snapshot", snapshot.model_dump(mode="json"))
        statuses: Dict[str, VariantStatus] = {
            variant_id: job.status for variant_id, job in snapshot.jobs.items()
        }
        if snapshot.all_done:
            yield format_sse("complete", snapshot.model_dump(mode="json"))
            return

        batch = {str(v) for v in variant_ids}
        latest = {}
        async for event in subscription.events():
            key = str(event.variant_id)
            if key not in batch:
                continue
            if statuses.get(key, VariantStatus.QUEUED).is_terminal or not is_newer(latest.get(key), event):
                continue
            latest[key] = event
            statuses[key] = event.status
            yield format_sse("progress", event.model_dump(mode="json"))

            if len(statuses) >= len(variant_ids) and all(s.is_terminal for s in statuses.values()):
                summary = await coordinator.get_batch_progress(variant_ids)
                yield format_sse("complete", summary.model_dump(mode="json"))
                return

    except RetryableError as e:
        logger.warning("Progress stream interrupted", extra={"error": str(e), "variant_count": len(variant_ids)})
        yield format_sse("error", {"message": str(e)})
    finally:
        await subscription.close()
