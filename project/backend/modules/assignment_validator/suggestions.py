"""
Automatic clip suggestions.

Proposes one clip per unbound section by matching the section type against
folder names, then falls back to whatever clips are left.
"""

from typing import Dict, List, Optional, Set, Tuple
from uuid import UUID

from modules.asset_catalog import AssetCatalog
from shared.logging import get_logger
from shared.models import Asset, AssignmentSet, Section, SectionType

logger = get_logger("assignment_validator.suggestions")

# Folder-name keywords per section type, most specific first
FOLDER_KEYWORDS: Dict[SectionType, Tuple[str, ...]] = {
    SectionType.HOOK: ("hook", "gancho", "intro"),
    SectionType.PROBLEM: ("problem", "problema", "pain", "dolor"),
    SectionType.AGITATION: ("agitation", "agitacion", "problem", "pain"),
    SectionType.SOLUTION: ("solution", "solucion", "producto", "product"),
    SectionType.PRODUCT: ("product", "producto", "usando el producto", "packshot"),
    SectionType.DEMO: ("demo", "usando el producto", "uso diario", "product"),
    SectionType.BENEFIT: ("benefit", "beneficio", "result", "uso diario"),
    SectionType.OBJECTION: ("social proof", "testimonial", "review", "resena"),
    SectionType.CTA: ("cta", "call to action", "oferta", "offer"),
    SectionType.CUSTOM: (),
}


def _folder_rank(section_type: SectionType, folder_name: str) -> Optional[int]:
    name = folder_name.lower()
    for rank, keyword in enumerate(FOLDER_KEYWORDS.get(section_type, ())):
        if keyword in name:
            return rank
    return None


def suggest_assignments(
    sections: List[Section],
    catalog: AssetCatalog,
    existing: Optional[AssignmentSet] = None
) -> AssignmentSet:
    """
    Fill unbound sections with suggested clips.

    Existing bindings are kept as they are. Each suggested clip is used at
    most once while unused clips remain; sections stay unbound when the
    catalog has no clips at all.

    Args:
        sections: Script sections
        catalog: Snapshot including assets
        existing: Operator bindings to preserve

    Returns:
        A new AssignmentSet
    """
    result = AssignmentSet(bindings=dict(existing.bindings) if existing else {})
    used: Set[UUID] = {asset_id for asset_id in result.bindings.values() if asset_id}

    all_assets: List[Asset] = []
    for folder in catalog.folders:
        all_assets.extend(catalog.assets_in_folder(folder.id))

    for section in sorted(sections, key=lambda s: s.order_index):
        if result.get(section.id) is not None:
            continue

        ranked: List[Tuple[int, Asset]] = []
        for folder in catalog.folders:
            rank = _folder_rank(section.type, folder.name)
            if rank is None:
                continue
            ranked.extend((rank, asset) for asset in catalog.assets_in_folder(folder.id))
        candidates = [asset for _, asset in sorted(ranked, key=lambda pair: pair[0])]

        choice = next((a for a in candidates if a.id not in used), None)
        if choice is None:
            choice = next((a for a in all_assets if a.id not in used), None)
        if choice is None and candidates:
            choice = candidates[0]
        if choice is None and all_assets:
            choice = all_assets[0]

        result.bind(section.id, choice.id if choice else None)
        if choice:
            used.add(choice.id)

    logger.info(
        "Clip suggestions computed",
        extra={
            "section_count": len(sections),
            "bound_count": sum(1 for v in result.bindings.values() if v),
        }
    )
    return result
