"""
Variant-related data models.

Defines the Variant record, the ProgressEvent pushed while it renders, the
RenderRequest handed to a render job and the BatchSummary folded from a
batch of variants.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional
from uuid import UUID
from pydantic import BaseModel, Field, field_serializer

from .analysis import SectionType, DEFAULT_SECTION_DURATION


class VariantStatus(str, Enum):
    QUEUED = "queued"
    RENDERING = "rendering"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (VariantStatus.COMPLETED, VariantStatus.FAILED)

    @property
    def rank(self) -> int:
        """queued < rendering < terminal. Both terminal states share a rank."""
        return _STATUS_RANK[self]


_STATUS_RANK = {
    VariantStatus.QUEUED: 0,
    VariantStatus.RENDERING: 1,
    VariantStatus.COMPLETED: 2,
    VariantStatus.FAILED: 2,
}


class Variant(BaseModel):
    """One rendered output of a project."""

    id: UUID
    project_id: UUID
    variant_index: int = Field(..., ge=0)
    status: VariantStatus = VariantStatus.QUEUED
    progress_percent: int = Field(default=0, ge=0, le=100)
    progress_message: Optional[str] = None
    video_path: Optional[str] = None
    srt_path: Optional[str] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @field_serializer("id", "project_id")
    def serialize_uuid(self, value: UUID) -> str:
        """Serialize UUID to string."""
        return str(value)

    @field_serializer("created_at", "completed_at")
    def serialize_datetime(self, value: Optional[datetime]) -> Optional[str]:
        """Serialize datetime to ISO format string."""
        return value.isoformat() if value else None


class ProgressEvent(BaseModel):
    """Ephemeral status/progress notification for a single variant."""

    variant_id: UUID
    status: VariantStatus
    percent: int = Field(default=0, ge=0, le=100)
    message: Optional[str] = None
    error: Optional[str] = None
    video_path: Optional[str] = None
    srt_path: Optional[str] = None
    emitted_at: datetime = Field(default_factory=datetime.utcnow)

    @classmethod
    def from_variant(cls, variant: Variant) -> "ProgressEvent":
        return cls(
            variant_id=variant.id,
            status=variant.status,
            percent=variant.progress_percent,
            message=variant.progress_message,
            error=variant.error_message,
            video_path=variant.video_path,
            srt_path=variant.srt_path,
        )

    @field_serializer("variant_id")
    def serialize_uuid(self, value: UUID) -> str:
        """Serialize UUID to string."""
        return str(value)

    @field_serializer("emitted_at")
    def serialize_datetime(self, value: datetime) -> str:
        """Serialize datetime to ISO format string."""
        return value.isoformat()


class ClipBinding(BaseModel):
    """A section bound to the storage path of its B-roll clip."""

    section_id: UUID
    section_type: SectionType
    order_index: int = Field(..., ge=0)
    text: str
    asset_id: UUID
    storage_path: str
    duration: float = Field(default=DEFAULT_SECTION_DURATION, gt=0)

    @field_serializer("section_id", "asset_id")
    def serialize_uuid(self, value: UUID) -> str:
        """Serialize UUID to string."""
        return str(value)


class RenderRequest(BaseModel):
    """Everything a render job needs; carried on the queue as JSON."""

    variant_id: UUID
    project_id: UUID
    variant_index: int = Field(..., ge=0)
    bindings: List[ClipBinding]
    voiceover_path: Optional[str] = None

    @field_serializer("variant_id", "project_id")
    def serialize_uuid(self, value: UUID) -> str:
        """Serialize UUID to string."""
        return str(value)

    @property
    def total_duration(self) -> float:
        return sum(binding.duration for binding in self.bindings)


class VariantSummary(BaseModel):
    """Per-variant row of a batch summary."""

    status: VariantStatus
    percent: int = 0
    message: Optional[str] = None
    error: Optional[str] = None
    video_url: Optional[str] = None
    subtitle_url: Optional[str] = None


class BatchSummary(BaseModel):
    """Folded state of a batch of variants."""

    jobs: Dict[str, VariantSummary] = Field(default_factory=dict)
    all_done: bool = False

    @property
    def total(self) -> int:
        return len(self.jobs)

    @property
    def completed(self) -> int:
        return sum(1 for job in self.jobs.values() if job.status == VariantStatus.COMPLETED)

    @property
    def failed(self) -> int:
        return sum(1 for job in self.jobs.values() if job.status == VariantStatus.FAILED)
