"""
Workflow endpoints.

Create a workflow and drive it through clip assignment, voice selection,
variant configuration and project approval.
"""

from typing import Dict, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from shared.models import AssignmentSet, VoiceConfig
from shared.models.project import DEFAULT_VOICE_ID, DEFAULT_TTS_MODEL
from modules.voiceover import AVAILABLE_VOICES
from modules.workflow import can_access
from api_gateway.coordinator import PipelineCoordinator
from api_gateway.dependencies import WorkflowRegistry, get_coordinator, get_registry

router = APIRouter()

TABS = ("script", "clips", "voice", "variants", "results")


class CreateWorkflowRequest(BaseModel):
    brand_id: Optional[str] = None


class AssignmentsRequest(BaseModel):
    bindings: Dict[str, Optional[str]]


class VoiceRequest(BaseModel):
    voice_id: str = DEFAULT_VOICE_ID
    model_id: str = DEFAULT_TTS_MODEL
    stability: float = Field(default=0.5, ge=0, le=1)
    similarity_boost: float = Field(default=0.75, ge=0, le=1)


class VariantConfigRequest(BaseModel):
    count: int


class ApproveRequest(BaseModel):
    name: Optional[str] = None


def workflow_view(workflow_id: str, coordinator: PipelineCoordinator) -> dict:
    machine = coordinator.workflow
    return {
        "workflow_id": workflow_id,
        "state": machine.state.value,
        "tabs": {tab: can_access(machine.state, tab) for tab in TABS},
        "analysis_id": str(machine.analysis_id) if machine.analysis_id else None,
        "project_id": str(coordinator.project.id) if coordinator.project else None,
        "variant_count": machine.variant_count,
        "variant_ids": [str(v) for v in machine.variant_ids],
        "failure_reason": machine.failure_reason,
    }


@router.post("/workflows", status_code=status.HTTP_201_CREATED)
async def create_workflow(
    body: CreateWorkflowRequest,
    workflows: WorkflowRegistry = Depends(get_registry),
):
    workflow_id, coordinator = workflows.create(body.brand_id)
    return workflow_view(workflow_id, coordinator)


@router.get("/workflows/{workflow_id}")
async def get_workflow(workflow_id: str, coordinator: PipelineCoordinator = Depends(get_coordinator)):
    return workflow_view(workflow_id, coordinator)


@router.delete("/workflows/{workflow_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_workflow(workflow_id: str, workflows: WorkflowRegistry = Depends(get_registry)):
    if not await workflows.remove(workflow_id):
        raise HTTPException(status_code=404, detail=f"Workflow {workflow_id} not found")


@router.get("/workflows/{workflow_id}/feasibility")
async def get_feasibility(coordinator: PipelineCoordinator = Depends(get_coordinator)):
    """Readiness warnings for the current script against the clip library."""
    report = await coordinator.validate_assignments()
    return report.model_dump(mode="json")


@router.post("/workflows/{workflow_id}/suggestions")
async def suggest(coordinator: PipelineCoordinator = Depends(get_coordinator)):
    suggestion = await coordinator.suggest_assignments()
    return suggestion.model_dump(mode="json")


@router.put("/workflows/{workflow_id}/assignments")
async def assign_clips(
    workflow_id: str,
    body: AssignmentsRequest,
    coordinator: PipelineCoordinator = Depends(get_coordinator),
):
    """Bind every section to a clip. Unbound sections are rejected."""
    assignments = AssignmentSet.model_validate({"bindings": body.bindings})
    await coordinator.assign_clips(assignments)
    return workflow_view(workflow_id, coordinator)


@router.get("/voices")
async def list_voices():
    return {"voices": [{"name": name, "voice_id": voice_id} for name, voice_id in AVAILABLE_VOICES.items()]}


@router.put("/workflows/{workflow_id}/voice")
async def select_voice(
    workflow_id: str,
    body: VoiceRequest,
    coordinator: PipelineCoordinator = Depends(get_coordinator),
):
    coordinator.select_voice(VoiceConfig(**body.model_dump()))
    return workflow_view(workflow_id, coordinator)


@router.put("/workflows/{workflow_id}/variants/config")
async def configure_variants(
    workflow_id: str,
    body: VariantConfigRequest,
    coordinator: PipelineCoordinator = Depends(get_coordinator),
):
    coordinator.configure_variants(body.count)
    return workflow_view(workflow_id, coordinator)


@router.post("/workflows/{workflow_id}/project", status_code=status.HTTP_201_CREATED)
async def approve_project(
    workflow_id: str,
    body: ApproveRequest,
    coordinator: PipelineCoordinator = Depends(get_coordinator),
):
    """Synthesize the voice-over and create the project."""
    project_id = await coordinator.approve_and_create_project(body.name)
    return {"project_id": str(project_id), **workflow_view(workflow_id, coordinator)}


@router.post("/workflows/{workflow_id}/cancel")
async def cancel_workflow(workflow_id: str, coordinator: PipelineCoordinator = Depends(get_coordinator)):
    await coordinator.cancel()
    return workflow_view(workflow_id, coordinator)


@router.post("/workflows/{workflow_id}/reset")
async def reset_workflow(workflow_id: str, coordinator: PipelineCoordinator = Depends(get_coordinator)):
    await coordinator.reset()
    return workflow_view(workflow_id, coordinator)
