"""
Analysis data models.

Defines Analysis (one transcription + structure pass over a source video)
and the typed script Sections it produces.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional, Dict, Any
from uuid import UUID, uuid4
from pydantic import BaseModel, Field, field_serializer, field_validator

DEFAULT_SECTION_DURATION = 3.0


class AnalysisStatus(str, Enum):
    """Lifecycle of an analysis record."""
    PENDING = "pending"
    PROCESSING = "processing"
    TRANSCRIBED = "transcribed"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def in_flight(self) -> bool:
        return self in (AnalysisStatus.PENDING, AnalysisStatus.PROCESSING, AnalysisStatus.TRANSCRIBED)


class SectionType(str, Enum):
    """Persuasion-structure role of a script section."""
    HOOK = "hook"
    PROBLEM = "problem"
    AGITATION = "agitation"
    SOLUTION = "solution"
    PRODUCT = "product"
    DEMO = "demo"
    BENEFIT = "benefit"
    OBJECTION = "objection"
    CTA = "cta"
    CUSTOM = "custom"


# Labels emitted by the structure model besides the enum values
SECTION_TYPE_ALIASES: Dict[str, SectionType] = {
    "problema": SectionType.PROBLEM,
    "problems": SectionType.PROBLEM,
    "agitacion": SectionType.AGITATION,
    "agitación": SectionType.AGITATION,
    "solucion": SectionType.SOLUTION,
    "solución": SectionType.SOLUTION,
    "producto": SectionType.PRODUCT,
    "beneficios": SectionType.BENEFIT,
    "beneficio": SectionType.BENEFIT,
    "benefits": SectionType.BENEFIT,
    "objecciones": SectionType.OBJECTION,
    "objeciones": SectionType.OBJECTION,
    "objections": SectionType.OBJECTION,
    "call_to_action": SectionType.CTA,
    "call to action": SectionType.CTA,
}


def normalize_section_type(value: Any) -> SectionType:
    """Map a raw type label to SectionType. Unknown labels become CUSTOM."""
    if isinstance(value, SectionType):
        return value
    label = str(value or "").strip().lower()
    try:
        return SectionType(label)
    except ValueError:
        return SECTION_TYPE_ALIASES.get(label, SectionType.CUSTOM)


class Section(BaseModel):
    """One ordered unit of the script."""

    id: UUID = Field(default_factory=uuid4)
    type: SectionType
    text: str
    order_index: int = Field(..., ge=0)
    expected_duration: float = Field(default=DEFAULT_SECTION_DURATION, gt=0, description="Seconds")
    start_time: Optional[float] = Field(default=None, ge=0)
    end_time: Optional[float] = Field(default=None, ge=0)

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v: Any) -> SectionType:
        return normalize_section_type(v)

    @field_serializer("id")
    def serialize_uuid(self, value: UUID) -> str:
        """Serialize UUID to string."""
        return str(value)


def sections_from_payload(items: Optional[List[Dict[str, Any]]]) -> List[Section]:
    """
    Build Sections from stored or generated JSON.

    Items without text are skipped. Missing ids are generated, missing
    order indexes follow list order, and a missing duration is derived from
    start/end times before falling back to the default.
    """
    sections: List[Section] = []
    for item in items or []:
        text = (item.get("text") or "").strip()
        if not text:
            continue
        start_time = item.get("start_time")
        end_time = item.get("end_time")
        duration = item.get("expected_duration") or item.get("duration")
        if not duration and start_time is not None and end_time is not None and end_time > start_time:
            duration = end_time - start_time
        sections.append(Section(
            id=item.get("id") or uuid4(),
            type=item.get("type"),
            text=text,
            order_index=item.get("order_index", len(sections)),
            expected_duration=duration or DEFAULT_SECTION_DURATION,
            start_time=start_time,
            end_time=end_time,
        ))
    return sections


class Analysis(BaseModel):
    """Analysis model: transcript and structured sections of a source video."""

    id: UUID
    source_url: str
    brand_id: Optional[UUID] = None
    status: AnalysisStatus = AnalysisStatus.PENDING
    transcription: Optional[str] = None
    duration: Optional[float] = None
    sections: List[Section] = Field(default_factory=list)
    error_message: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(default=None, description="JSONB metadata")
    created_at: Optional[datetime] = None

    @field_serializer("id", "brand_id")
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
