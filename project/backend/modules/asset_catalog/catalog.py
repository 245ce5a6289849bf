"""
Asset catalog.

Read-only snapshot of the B-roll library, grouped by folder, with counts.
"""

from typing import Dict, Iterable, List, Optional, Union
from uuid import UUID

from shared.logging import get_logger
from shared.models import Asset, AssetFolder
from shared.repository import PipelineRepository

logger = get_logger("asset_catalog")


class AssetCatalog:
    """Immutable view over folders and the assets filed in them.

    Folder counts come from the folder records; assets are optional and only
    needed when bindings have to be resolved to storage paths.
    """

    def __init__(self, folders: Iterable[AssetFolder], assets: Optional[Iterable[Asset]] = None):
        self._folders: List[AssetFolder] = list(folders)
        self._assets: Dict[UUID, Asset] = {asset.id: asset for asset in assets or []}

    @classmethod
    def empty(cls) -> "AssetCatalog":
        return cls([])

    @classmethod
    async def load(
        cls,
        repository: PipelineRepository,
        brand_id: Optional[Union[UUID, str]] = None
    ) -> "AssetCatalog":
        """Take a fresh snapshot from the store."""
        folders = await repository.list_folders(brand_id)
        assets = await repository.list_assets(brand_id)

        names = {folder.id: folder.name for folder in folders}
        assets = [
            asset.model_copy(update={"folder_name": names.get(asset.folder_id)})
            for asset in assets
        ]
        catalog = cls(folders, assets)
        logger.info(
            "Asset catalog loaded",
            extra={
                "brand_id": str(brand_id) if brand_id else None,
                "folder_count": catalog.folder_count,
                "total_assets": catalog.total_assets,
            }
        )
        return catalog

    @property
    def folders(self) -> List[AssetFolder]:
        return list(self._folders)

    @property
    def folder_count(self) -> int:
        return len(self._folders)

    @property
    def total_assets(self) -> int:
        return sum(folder.asset_count for folder in self._folders)

    def counts(self) -> Dict[str, int]:
        """Folder name -> asset count."""
        return {folder.name: folder.asset_count for folder in self._folders}

    def empty_folders(self) -> List[AssetFolder]:
        return [folder for folder in self._folders if folder.asset_count == 0]

    def get_asset(self, asset_id: Union[UUID, str]) -> Optional[Asset]:
        if isinstance(asset_id, str):
            asset_id = UUID(asset_id)
        return self._assets.get(asset_id)

    def has_asset(self, asset_id: Union[UUID, str]) -> bool:
        return self.get_asset(asset_id) is not None

    def assets_in_folder(self, folder_id: UUID) -> List[Asset]:
        return sorted(
            (asset for asset in self._assets.values() if asset.folder_id == folder_id),
            key=lambda asset: asset.name
        )
