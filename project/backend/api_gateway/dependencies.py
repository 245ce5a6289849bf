"""
FastAPI dependencies.

Workflow registry and shared collaborators for the route handlers.
"""

from typing import Callable, Dict, Optional, Tuple
from uuid import uuid4

from fastapi import Depends, HTTPException, Path, status

from shared.logging import get_logger
from shared.repository import PipelineRepository
from shared.storage import StorageClient
from api_gateway.coordinator import PipelineCoordinator

logger = get_logger(__name__)

_repository: Optional[PipelineRepository] = None
_storage: Optional[StorageClient] = None


def get_repository() -> PipelineRepository:
    global _repository
    if _repository is None:
        _repository = PipelineRepository()
    return _repository


def get_storage() -> StorageClient:
    global _storage
    if _storage is None:
        _storage = StorageClient()
    return _storage


def _default_factory(brand_id: Optional[str]) -> PipelineCoordinator:
    return PipelineCoordinator(repository=get_repository(), storage=get_storage(), brand_id=brand_id)


class WorkflowRegistry:
    """In-process map of workflow id -> coordinator."""

    def __init__(self, factory: Optional[Callable[[Optional[str]], PipelineCoordinator]] = None):
        self.factory = factory or _default_factory
        self._coordinators: Dict[str, PipelineCoordinator] = {}

    def create(self, brand_id: Optional[str] = None) -> Tuple[str, PipelineCoordinator]:
        workflow_id = str(uuid4())
        coordinator = self.factory(brand_id)
        self._coordinators[workflow_id] = coordinator
        logger.info("Workflow created", extra={"workflow_id": workflow_id, "brand_id": brand_id})
        return workflow_id, coordinator

    def get(self, workflow_id: str) -> Optional[PipelineCoordinator]:
        return self._coordinators.get(workflow_id)

    async def remove(self, workflow_id: str) -> bool:
        coordinator = self._coordinators.pop(workflow_id, None)
        if coordinator is None:
            return False
        await coordinator.reset()
        return True

    def __len__(self) -> int:
        return len(self._coordinators)


registry = WorkflowRegistry()


def get_registry() -> WorkflowRegistry:
    return registry


async def get_coordinator(
    workflow_id: str = Path(...),
    workflows: WorkflowRegistry = Depends(get_registry)
) -> PipelineCoordinator:
    """
    Resolve the coordinator for a workflow id.

    Raises:
        HTTPException: 404 if the workflow does not exist
    """
    coordinator = workflows.get(workflow_id)
    if coordinator is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Workflow {workflow_id} not found"
        )
    return coordinator
