"""
Variant endpoints.

Launch the render batch, read its progress and stream it over SSE.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from fastapi.responses import StreamingResponse

from shared.errors import PipelineError
from shared.logging import get_logger
from api_gateway.coordinator import PipelineCoordinator
from api_gateway.dependencies import get_coordinator
from api_gateway.services.progress_stream import stream_batch_progress

logger = get_logger(__name__)

router = APIRouter()


async def watch_batch(coordinator: PipelineCoordinator) -> None:
    """Background tracking that settles the workflow once every variant is done."""
    try:
        await coordinator.watch_batch()
    except PipelineError as e:
        logger.error(
            "Batch tracking stopped",
            extra={"project_id": str(coordinator.workflow.project_id), "error": str(e), "code": e.code}
        )


@router.post("/workflows/{workflow_id}/variants", status_code=status.HTTP_202_ACCEPTED)
async def launch_variants(
    background_tasks: BackgroundTasks,
    coordinator: PipelineCoordinator = Depends(get_coordinator),
):
    """
    Create the variant records and queue one render job per variant.

    Returns as soon as every job is queued (or recorded as failed).
    """
    variant_ids = await coordinator.launch_variants()
    background_tasks.add_task(watch_batch, coordinator)
    return {
        "project_id": str(coordinator.workflow.project_id),
        "variant_ids": [str(v) for v in variant_ids],
        "state": coordinator.state.value,
    }


@router.get("/workflows/{workflow_id}/progress")
async def get_progress(coordinator: PipelineCoordinator = Depends(get_coordinator)):
    """Polling fallback; the SSE stream is preferred."""
    if not coordinator.workflow.variant_ids:
        raise HTTPException(status_code=404, detail="No variants launched for this workflow")
    summary = await coordinator.get_batch_progress()
    return {
        **summary.model_dump(mode="json"),
        "total": summary.total,
        "completed": summary.completed,
        "failed": summary.failed,
        "state": coordinator.state.value,
    }


@router.get("/workflows/{workflow_id}/progress/stream")
async def stream_progress(coordinator: PipelineCoordinator = Depends(get_coordinator)):
    if not coordinator.workflow.variant_ids:
        raise HTTPException(status_code=404, detail="No variants launched for this workflow")
    return StreamingResponse(
        stream_batch_progress(
            coordinator, list(coordinator.workflow.variant_ids), coordinator.subscription_factory
        ),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
