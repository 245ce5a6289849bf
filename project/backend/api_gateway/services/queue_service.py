"""
Queue service.

Job queue management using a Redis list. Analysis jobs and render jobs
share one environment-scoped queue and are told apart by job_type.
"""

import json
from datetime import datetime
from typing import Any, Dict, Optional
from shared.redis_client import RedisClient
from shared.logging import get_logger
from shared.config import settings
from shared.models import RenderRequest

logger = get_logger(__name__)

redis_client = RedisClient()
# Scoped per environment
QUEUE_NAME = settings.queue_name

JOB_TYPE_ANALYSIS = "analysis"
JOB_TYPE_RENDER = "render"

# Job payloads are kept for the worker for 15 minutes
JOB_DATA_TTL = 900


async def _enqueue(job_id: str, job_data: Dict[str, Any]) -> None:
    queue_key = f"{QUEUE_NAME}:queue"
    job_json = json.dumps(job_data, default=str)
    try:
        # Redis client has decode_responses=False, so push bytes
        await redis_client.client.lpush(queue_key, job_json.encode("utf-8"))
        job_key = f"{QUEUE_NAME}:job:{job_id}"
        await redis_client.client.set(job_key, job_json.encode("utf-8"), ex=JOB_DATA_TTL)
    except Exception as e:
        logger.error("Failed to enqueue job", exc_info=e, extra={"job_id": job_id, "job_type": job_data.get("job_type")})
        raise

    logger.info("Job enqueued", extra={"job_id": job_id, "job_type": job_data.get("job_type")})


async def enqueue_analysis_job(
    analysis_id: str,
    source_url: str,
    brand_id: Optional[str] = None
) -> None:
    """
    Enqueue transcription + structure generation for an analysis.

    Args:
        analysis_id: Analysis record id (also the job id)
        source_url: Link the media is fetched from
        brand_id: Optional brand whose context guides structure generation
    """
    await _enqueue(analysis_id, {
        "job_type": JOB_TYPE_ANALYSIS,
        "job_id": analysis_id,
        "analysis_id": analysis_id,
        "source_url": source_url,
        "brand_id": brand_id,
        "created_at": datetime.utcnow().isoformat(),
    })


async def enqueue_render_job(request: RenderRequest) -> None:
    """
    Enqueue one variant render. Fire-and-forget: progress is reported on
    the variant's progress channel, not through this call.

    Args:
        request: Fully resolved render request for one variant
    """
    variant_id = str(request.variant_id)
    await _enqueue(variant_id, {
        "job_type": JOB_TYPE_RENDER,
        "job_id": variant_id,
        "project_id": str(request.project_id),
        "request": request.model_dump(mode="json"),
        "created_at": datetime.utcnow().isoformat(),
    })


async def get_queue_depth() -> int:
    """Number of jobs waiting in the queue."""
    return await redis_client.client.llen(f"{QUEUE_NAME}:queue")
