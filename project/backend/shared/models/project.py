"""
Project-related data models.

Defines the operator's clip bindings, voice selection and the Project
record created at approval.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional
from uuid import UUID
from pydantic import BaseModel, Field, field_serializer

from .analysis import Section

DEFAULT_VOICE_ID = "EXAVITQu4vr4xnSDxMaL"
DEFAULT_TTS_MODEL = "eleven_multilingual_v2"


class ProjectStatus(str, Enum):
    DRAFT = "draft"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class AssignmentSet(BaseModel):
    """Section id -> asset id. A None value means the section is unbound."""

    bindings: Dict[UUID, Optional[UUID]] = Field(default_factory=dict)

    @classmethod
    def for_sections(cls, sections: List[Section]) -> "AssignmentSet":
        """Create an empty set with one unbound slot per section."""
        return cls(bindings={section.id: None for section in sections})

    def bind(self, section_id: UUID, asset_id: Optional[UUID]) -> None:
        self.bindings[section_id] = asset_id

    def get(self, section_id: UUID) -> Optional[UUID]:
        return self.bindings.get(section_id)

    @field_serializer("bindings")
    def serialize_bindings(self, value: Dict[UUID, Optional[UUID]]) -> Dict[str, Optional[str]]:
        return {str(k): (str(v) if v else None) for k, v in value.items()}


class VoiceConfig(BaseModel):
    """Voice parameters passed to the text-to-speech service."""

    voice_id: str = DEFAULT_VOICE_ID
    model_id: str = DEFAULT_TTS_MODEL
    stability: float = Field(default=0.5, ge=0, le=1)
    similarity_boost: float = Field(default=0.75, ge=0, le=1)
    style: float = Field(default=0.0, ge=0, le=1)
    use_speaker_boost: bool = False


class Project(BaseModel):
    """An approved analysis + bindings + voice, the unit variants are rendered from."""

    id: UUID
    analysis_id: UUID
    brand_id: Optional[UUID] = None
    name: str
    sections: List[Section] = Field(default_factory=list)
    assignments: AssignmentSet = Field(default_factory=AssignmentSet)
    voice: VoiceConfig = Field(default_factory=VoiceConfig)
    voiceover_path: Optional[str] = None
    variant_count: int = Field(default=3, ge=1)
    status: ProjectStatus = ProjectStatus.DRAFT
    created_at: Optional[datetime] = None

    @field_serializer("id", "analysis_id", "brand_id")
    def serialize_uuid(self, value: Optional[UUID]) -> Optional[str]:
        """Serialize UUID to string."""
        return str(value) if value else None

    @field_serializer("created_at")
    def serialize_datetime(self, value: Optional[datetime]) -> Optional[str]:
        """Serialize datetime to ISO format string."""
        return value.isoformat() if value else None

    @property
    def ordered_sections(self) -> List[Section]:
        return sorted(self.sections, key=lambda s: s.order_index)
