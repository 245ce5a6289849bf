"""
Section/asset assignment checks.

validate_feasibility is a conservative aggregate heuristic: it checks that
the library has folders, that none of them is empty and that the total
number of clips covers the number of sections. It does not check that each
section has a suitable candidate.
"""

from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from modules.asset_catalog import AssetCatalog
from shared.models import AssignmentSet, Section


class FeasibilityReport(BaseModel):
    """Result of a feasibility check. Warnings never block the operator."""

    ready: bool
    warnings: List[str] = Field(default_factory=list)


def validate_feasibility(sections: List[Section], catalog: AssetCatalog) -> FeasibilityReport:
    """
    Check whether the catalog can plausibly cover the sections.

    Args:
        sections: Script sections that each need one clip
        catalog: Snapshot of the asset library

    Returns:
        FeasibilityReport with ready=True only when there are no warnings
    """
    warnings: List[str] = []

    if catalog.folder_count == 0:
        warnings.append("No folders in the B-roll library. Create a folder and upload clips first.")

    for folder in catalog.empty_folders():
        warnings.append(f'Folder "{folder.name}" is empty (0 clips)')

    required = len(sections)
    available = catalog.total_assets
    if available < required:
        warnings.append(
            f"Not enough clips: {available} of {required} available. "
            f"The script has {required} sections and needs at least {required} clips."
        )

    return FeasibilityReport(ready=not warnings, warnings=warnings)


def find_unbound_sections(sections: List[Section], assignments: Optional[AssignmentSet]) -> List[Section]:
    """Sections without a bound asset, in script order."""
    bindings: Dict[UUID, Optional[UUID]] = assignments.bindings if assignments else {}
    return [
        section for section in sorted(sections, key=lambda s: s.order_index)
        if bindings.get(section.id) is None
    ]


def find_unknown_assets(assignments: AssignmentSet, catalog: AssetCatalog) -> Dict[UUID, UUID]:
    """Bound section id -> asset id for bindings the catalog does not contain."""
    return {
        section_id: asset_id
        for section_id, asset_id in assignments.bindings.items()
        if asset_id is not None and not catalog.has_asset(asset_id)
    }
