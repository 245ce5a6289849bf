"""
B-roll asset models.
"""

from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field, field_serializer


class Asset(BaseModel):
    """A B-roll clip stored in the broll bucket."""

    id: UUID
    name: str
    storage_path: str
    folder_id: UUID
    folder_name: Optional[str] = None
    duration: Optional[float] = Field(default=None, gt=0, description="Clip duration in seconds")

    @field_serializer("id", "folder_id")
    def serialize_uuid(self, value: UUID) -> str:
        """Serialize UUID to string."""
        return str(value)


class AssetFolder(BaseModel):
    """A named category of assets with its current count."""

    id: UUID
    name: str
    brand_id: Optional[UUID] = None
    asset_count: int = Field(default=0, ge=0)

    @field_serializer("id", "brand_id")
    def serialize_uuid(self, value: Optional[UUID]) -> Optional[str]:
        """Serialize UUID to string."""
        return str(value) if value else None
