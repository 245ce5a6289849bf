"""
Data models for the ad variant pipeline.

This module exports all Pydantic models used across pipeline modules.
"""

from .analysis import (
    Analysis,
    AnalysisStatus,
    Section,
    SectionType,
    normalize_section_type,
    sections_from_payload,
    DEFAULT_SECTION_DURATION
)
from .asset import Asset, AssetFolder
from .project import (
    AssignmentSet,
    VoiceConfig,
    Project,
    ProjectStatus,
    DEFAULT_VOICE_ID
)
from .variant import (
    Variant,
    VariantStatus,
    VariantSummary,
    ProgressEvent,
    ClipBinding,
    RenderRequest,
    BatchSummary
)

__all__ = [
    # Analysis models
    "Analysis",
    "AnalysisStatus",
    "Section",
    "SectionType",
    "normalize_section_type",
    "sections_from_payload",
    "DEFAULT_SECTION_DURATION",
    # Asset models
    "Asset",
    "AssetFolder",
    # Project models
    "AssignmentSet",
    "VoiceConfig",
    "Project",
    "ProjectStatus",
    "DEFAULT_VOICE_ID",
    # Variant models
    "Variant",
    "VariantStatus",
    "VariantSummary",
    "ProgressEvent",
    "ClipBinding",
    "RenderRequest",
    "BatchSummary",
]
