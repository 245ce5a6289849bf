"""
B-roll catalog endpoints.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from shared.repository import PipelineRepository
from modules.asset_catalog import AssetCatalog
from api_gateway.coordinator import PipelineCoordinator
from api_gateway.dependencies import get_coordinator, get_repository

router = APIRouter()


class MoveAssetRequest(BaseModel):
    folder_id: str


def _catalog_payload(catalog: AssetCatalog) -> dict:
    return {
        "folders": [folder.model_dump(mode="json") for folder in catalog.folders],
        "folder_count": catalog.folder_count,
        "total_assets": catalog.total_assets,
    }


@router.get("/catalog/folders")
async def list_folders(
    brand_id: Optional[str] = Query(None),
    repository: PipelineRepository = Depends(get_repository),
):
    """Folders with clip counts."""
    return _catalog_payload(await AssetCatalog.load(repository, brand_id))


@router.get("/catalog/assets")
async def list_assets(
    brand_id: Optional[str] = Query(None),
    repository: PipelineRepository = Depends(get_repository),
):
    assets = await repository.list_assets(brand_id)
    return {"assets": [asset.model_dump(mode="json") for asset in assets]}


@router.post("/workflows/{workflow_id}/catalog/refresh")
async def refresh_catalog(coordinator: PipelineCoordinator = Depends(get_coordinator)):
    return _catalog_payload(await coordinator.refresh_catalog())


@router.post("/workflows/{workflow_id}/catalog/assets/{asset_id}/move")
async def move_asset(
    asset_id: str,
    body: MoveAssetRequest,
    coordinator: PipelineCoordinator = Depends(get_coordinator),
):
    """Re-file a clip and return the refreshed catalog."""
    return _catalog_payload(await coordinator.move_asset(asset_id, body.folder_id))
