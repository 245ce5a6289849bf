"""
Analysis endpoints.

Start a source-video analysis, read its result and edit the script.
"""

from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Depends, status
from pydantic import BaseModel, Field

from shared.errors import PipelineError
from shared.logging import get_logger
from api_gateway.coordinator import PipelineCoordinator
from api_gateway.dependencies import get_coordinator

logger = get_logger(__name__)

router = APIRouter()


class AnalyzeRequest(BaseModel):
    source_url: str
    brand_id: Optional[str] = None


class SectionEdit(BaseModel):
    text: str = Field(..., min_length=1)


async def wait_for_analysis(coordinator: PipelineCoordinator) -> None:
    """Background poll that moves the workflow on once the analysis settles."""
    try:
        await coordinator.poll_analysis()
    except PipelineError as e:
        logger.warning(
            "Analysis polling ended without a script",
            extra={"analysis_id": str(coordinator.workflow.analysis_id), "error": str(e), "code": e.code}
        )


@router.post("/workflows/{workflow_id}/analysis", status_code=status.HTTP_202_ACCEPTED)
async def start_analysis(
    body: AnalyzeRequest,
    background_tasks: BackgroundTasks,
    coordinator: PipelineCoordinator = Depends(get_coordinator),
):
    """
    Queue an analysis of the source video.

    Poll GET .../analysis for the result.
    """
    analysis_id = await coordinator.start_analysis(body.source_url, body.brand_id)
    background_tasks.add_task(wait_for_analysis, coordinator)
    return {"analysis_id": str(analysis_id), "state": coordinator.state.value}


@router.get("/workflows/{workflow_id}/analysis")
async def get_analysis(coordinator: PipelineCoordinator = Depends(get_coordinator)):
    """Current analysis record and workflow state."""
    analysis_id = coordinator.workflow.analysis_id
    if analysis_id is None:
        return {"state": coordinator.state.value, "analysis": None}
    analysis = await coordinator.repository.get_analysis(analysis_id)
    return {"state": coordinator.state.value, "analysis": analysis.model_dump(mode="json")}


@router.patch("/workflows/{workflow_id}/sections/{section_id}")
async def edit_section(
    section_id: str,
    body: SectionEdit,
    coordinator: PipelineCoordinator = Depends(get_coordinator),
):
    section = await coordinator.update_section_text(section_id, body.text)
    return section.model_dump(mode="json")
