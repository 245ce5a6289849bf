"""
Queue worker process.

Pops analysis and render jobs from the Redis queue and runs them, up to
worker_max_concurrent_jobs at a time.
"""

import asyncio
import json
from typing import Set

from pydantic import ValidationError as PydanticValidationError

from shared.config import settings
from shared.errors import PipelineError, RetryableError, ValidationError
from shared.logging import get_logger
from shared.models import AnalysisStatus, ProgressEvent, RenderRequest, VariantStatus
from shared.redis_client import RedisClient
from shared.repository import PipelineRepository
from modules.progress_aggregator import ProgressPublisher
from modules.renderer import render_variant
from modules.script_analysis import process_analysis
from api_gateway.services.queue_service import QUEUE_NAME, JOB_TYPE_ANALYSIS, JOB_TYPE_RENDER

logger = get_logger(__name__)

redis_client = RedisClient()
repository = PipelineRepository()
publisher = ProgressPublisher(redis_client)

MAX_CONCURRENT_JOBS = settings.worker_max_concurrent_jobs
semaphore = asyncio.Semaphore(MAX_CONCURRENT_JOBS)


async def process_job(job_data: dict) -> None:
    """
    Process a single job from the queue.

    Dispatches on job_type. Handlers mark their own record failed before
    raising a PipelineError. Jobs that die on a store or channel error are
    given up here so no record is left in flight.

    Args:
        job_data: Job data dictionary with job_id and job_type
    """
    job_type = job_data.get("job_type")
    job_id = job_data.get("job_id")

    if not job_id or job_type not in (JOB_TYPE_ANALYSIS, JOB_TYPE_RENDER):
        logger.error("Invalid job data", extra={"job_data": job_data})
        return

    logger.info("Processing job", extra={"job_id": job_id, "job_type": job_type})

    try:
        if job_type == JOB_TYPE_ANALYSIS:
            await process_analysis_job(job_data)
        else:
            await process_render_job(job_data)

        logger.info("Job processed successfully", extra={"job_id": job_id, "job_type": job_type})

    except RetryableError as e:
        logger.error("Job abandoned after retries", exc_info=e, extra={"job_id": job_id, "job_type": job_type})
        await abandon_job(job_type, job_id, str(e))
    except ValidationError as e:
        # Payload never reached a handler
        logger.error("Malformed job", exc_info=e, extra={"job_id": job_id, "job_type": job_type})
        await abandon_job(job_type, job_id, str(e))
    except PipelineError as e:
        logger.error("Job failed", exc_info=e, extra={"job_id": job_id, "job_type": job_type})
    except Exception as e:
        logger.error("Unexpected error processing job", exc_info=e, extra={"job_id": job_id, "job_type": job_type})
        await abandon_job(job_type, job_id, f"Unexpected error: {str(e)}")


async def process_analysis_job(job_data: dict) -> None:
    await process_analysis(
        job_data["analysis_id"],
        job_data["source_url"],
        brand_id=job_data.get("brand_id"),
        repository=repository,
    )


async def process_render_job(job_data: dict) -> None:
    try:
        request = RenderRequest.model_validate(job_data.get("request") or {})
    except PydanticValidationError as e:
        raise ValidationError(f"Malformed render request: {str(e)}", job_id=job_data.get("job_id")) from e
    await render_variant(request, repository=repository)


async def mark_failed(job_type: str, job_id: str, error_message: str) -> None:
    if job_type == JOB_TYPE_ANALYSIS:
        await repository.update_analysis(job_id, status=AnalysisStatus.FAILED, error_message=error_message)
    else:
        await repository.update_variant_progress(
            job_id, VariantStatus.FAILED, message="Render failed", error_message=error_message
        )


async def abandon_job(job_type: str, job_id: str, error_message: str) -> None:
    """
    Record a job as failed and, for renders, announce it on the variant's
    progress channel. The announcement is sent even when the store write
    fails, so batch tracking still sees a terminal status.
    """
    try:
        await mark_failed(job_type, job_id, error_message)
    except RetryableError as e:
        logger.error(
            "Failed to mark job failed",
            extra={"job_id": job_id, "job_type": job_type, "error": str(e)}
        )
    if job_type != JOB_TYPE_RENDER:
        return
    try:
        await publisher.publish(ProgressEvent(
            variant_id=job_id,
            status=VariantStatus.FAILED,
            percent=100,
            message="Render failed",
            error=error_message,
        ))
    except (RetryableError, PydanticValidationError) as e:
        logger.error(
            "Failed to announce abandoned render",
            extra={"job_id": job_id, "error": str(e)}
        )


async def process_job_with_limit(job_data: dict) -> None:
    """
    Process job with concurrency limit, then drop its bookkeeping keys.

    Args:
        job_data: Job data dictionary
    """
    job_id = job_data.get("job_id")
    processing_key = f"{QUEUE_NAME}:processing"

    async with semaphore:
        try:
            logger.info("Processing job (semaphore acquired)", extra={"job_id": job_id})
            await process_job(job_data)
        except Exception as e:
            logger.error("Job failed (semaphore released)", exc_info=e, extra={"job_id": job_id})
        finally:
            await redis_client.client.srem(processing_key, job_id)
            await redis_client.client.delete(f"{QUEUE_NAME}:job:{job_id}")


async def worker_loop():
    """
    Main worker loop that processes jobs from the queue.

    Jobs run as tasks so a slow render does not hold up the queue; the
    semaphore caps how many run at once.
    """
    logger.info("Worker started", extra={"queue_name": QUEUE_NAME, "max_concurrent_jobs": MAX_CONCURRENT_JOBS})

    queue_key = f"{QUEUE_NAME}:queue"
    processing_key = f"{QUEUE_NAME}:processing"
    running: Set[asyncio.Task] = set()

    try:
        while True:
            try:
                try:
                    job_json = await redis_client.client.brpop(queue_key, timeout=5)
                except Exception as e:
                    logger.error(f"Error during brpop: {e}", exc_info=e)
                    await asyncio.sleep(5)
                    continue

                if not job_json:
                    continue

                # job_json is a tuple: (queue_key, job_data)
                job_data_str = job_json[1]
                try:
                    job_data = json.loads(job_data_str)
                except json.JSONDecodeError as e:
                    logger.error(f"Failed to parse job data JSON: {e}", extra={"job_data_str": job_data_str[:200]})
                    continue

                job_id = job_data.get("job_id")
                logger.info("Job popped from queue", extra={"job_id": job_id, "job_type": job_data.get("job_type")})

                await redis_client.client.sadd(processing_key, job_id)
                task = asyncio.create_task(process_job_with_limit(job_data))
                running.add(task)
                task.add_done_callback(running.discard)

            except asyncio.CancelledError:
                logger.info("Worker loop cancelled")
                break
            except Exception as e:
                logger.error("Error in worker loop", exc_info=e, extra={"queue_key": queue_key})
                await asyncio.sleep(5)
    finally:
        if running:
            logger.info("Waiting for running jobs", extra={"running": len(running)})
            await asyncio.gather(*running, return_exceptions=True)


async def main():
    """Main entry point for worker."""
    try:
        await worker_loop()
    except KeyboardInterrupt:
        logger.info("Worker stopped by user")
    except Exception as e:
        logger.error("Worker crashed", exc_info=e)
        raise
    finally:
        await redis_client.close()


if __name__ == "__main__":
    asyncio.run(main())
