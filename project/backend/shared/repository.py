"""
Persistent store access.

Typed reads and writes over the Supabase tables used by the pipeline:
video_analyses, broll_folders, broll_files, projects and variants.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Union
from uuid import UUID, uuid4

from shared.database import DatabaseClient
from shared.errors import ValidationError
from shared.logging import get_logger
from shared.models import (
    Analysis,
    AnalysisStatus,
    Asset,
    AssetFolder,
    AssignmentSet,
    Project,
    ProjectStatus,
    Section,
    Variant,
    VariantStatus,
    VoiceConfig,
    sections_from_payload,
)

logger = get_logger("repository")

IdLike = Union[UUID, str]


def _first_row(data: Any) -> Optional[Dict[str, Any]]:
    if not data:
        return None
    if isinstance(data, list):
        return data[0] if data else None
    return data


def _utcnow() -> str:
    return datetime.utcnow().isoformat()


def analysis_from_row(row: Dict[str, Any]) -> Analysis:
    structure = row.get("structure") or {}
    metadata = row.get("metadata") or {}
    return Analysis(
        id=row["id"],
        source_url=row.get("source_url") or "",
        brand_id=row.get("brand_id"),
        status=row.get("status") or AnalysisStatus.PENDING,
        transcription=row.get("transcription"),
        duration=structure.get("duration") or metadata.get("duration"),
        sections=sections_from_payload(structure.get("sections")),
        error_message=row.get("error_message"),
        metadata=metadata or None,
        created_at=row.get("created_at"),
    )


def project_from_row(row: Dict[str, Any]) -> Project:
    slots = row.get("slots_data") or {}
    voice_settings = row.get("voice_settings") or {}
    return Project(
        id=row["id"],
        analysis_id=row["analysis_id"],
        brand_id=row.get("brand_id"),
        name=row.get("name") or "",
        sections=sections_from_payload((row.get("generated_script") or {}).get("sections")),
        assignments=AssignmentSet(bindings=slots.get("bindings") or {}),
        voice=VoiceConfig(voice_id=row.get("voice_id") or VoiceConfig().voice_id, **voice_settings),
        voiceover_path=row.get("voiceover_path"),
        variant_count=row.get("variant_count") or 1,
        status=row.get("status") or ProjectStatus.DRAFT,
        created_at=row.get("created_at"),
    )


def variant_from_row(row: Dict[str, Any]) -> Variant:
    metadata = row.get("metadata_json") or {}
    return Variant(
        id=row["id"],
        project_id=row["project_id"],
        variant_index=row.get("variant_index") or 0,
        status=row.get("status") or VariantStatus.QUEUED,
        progress_percent=row.get("progress_percent") or 0,
        progress_message=row.get("progress_message") or metadata.get("progress_message"),
        video_path=row.get("video_url"),
        srt_path=row.get("srt_url"),
        error_message=row.get("error_message"),
        created_at=row.get("created_at"),
        completed_at=row.get("completed_at"),
    )


class PipelineRepository:
    """CRUD over analyses, assets, projects and variants."""

    def __init__(self, db: Optional[DatabaseClient] = None):
        self.db = db or DatabaseClient()

    # Analyses

    async def create_analysis(self, source_url: str, brand_id: Optional[IdLike] = None) -> Analysis:
        row = {
            "id": str(uuid4()),
            "source_url": source_url,
            "brand_id": str(brand_id) if brand_id else None,
            "status": AnalysisStatus.PENDING.value,
        }
        result = await self.db.table("video_analyses").insert(row).execute()
        created = _first_row(result.data) or row
        logger.info("Analysis created", extra={"analysis_id": created["id"], "source_url": source_url})
        return analysis_from_row(created)

    async def get_analysis(self, analysis_id: IdLike) -> Analysis:
        result = await self.db.table("video_analyses").select("*").eq("id", str(analysis_id)).limit(1).execute()
        row = _first_row(result.data)
        if not row:
            raise ValidationError(f"Analysis {analysis_id} not found")
        return analysis_from_row(row)

    async def update_analysis(self, analysis_id: IdLike, **fields: Any) -> None:
        """Write analysis columns. Enum values are stored by value."""
        payload = {k: (v.value if isinstance(v, AnalysisStatus) else v) for k, v in fields.items()}
        await self.db.table("video_analyses").update(payload).eq("id", str(analysis_id)).execute()

    async def save_analysis_sections(
        self,
        analysis_id: IdLike,
        sections: List[Section],
        duration: Optional[float] = None
    ) -> None:
        structure: Dict[str, Any] = {"sections": [s.model_dump(mode="json") for s in sections]}
        if duration is not None:
            structure["duration"] = duration
        await self.update_analysis(analysis_id, structure=structure)

    async def get_brand_context(self, brand_id: Optional[IdLike]) -> Optional[Dict[str, Any]]:
        """Brand row used to steer script generation, or None."""
        if not brand_id:
            return None
        result = await self.db.table("brands").select("*").eq("id", str(brand_id)).limit(1).execute()
        return _first_row(result.data)

    # Asset catalog

    async def list_folders(self, brand_id: Optional[IdLike] = None) -> List[AssetFolder]:
        """Folders with their current asset counts."""
        folder_query = self.db.table("broll_folders").select("id, name, brand_id")
        file_query = self.db.table("broll_files").select("id, folder_id")
        if brand_id:
            folder_query = folder_query.eq("brand_id", str(brand_id))
            file_query = file_query.eq("brand_id", str(brand_id))
        folders = (await folder_query.order("name").execute()).data or []
        files = (await file_query.execute()).data or []

        counts: Dict[str, int] = {}
        for row in files:
            if row.get("folder_id"):
                counts[str(row["folder_id"])] = counts.get(str(row["folder_id"]), 0) + 1

        return [
            AssetFolder(
                id=row["id"],
                name=row["name"],
                brand_id=row.get("brand_id"),
                asset_count=counts.get(str(row["id"]), 0),
            )
            for row in folders
        ]

    async def list_assets(self, brand_id: Optional[IdLike] = None) -> List[Asset]:
        query = self.db.table("broll_files").select("id, name, folder_id, storage_path, duration")
        if brand_id:
            query = query.eq("brand_id", str(brand_id))
        rows = (await query.execute()).data or []
        return [Asset(**row) for row in rows if row.get("folder_id")]

    async def move_asset(self, asset_id: IdLike, folder_id: IdLike) -> None:
        """Re-file an asset. The storage object itself does not move."""
        result = await self.db.table("broll_files").update(
            {"folder_id": str(folder_id)}
        ).eq("id", str(asset_id)).execute()
        if not result.data:
            raise ValidationError(f"Asset {asset_id} not found")
        logger.info("Asset moved", extra={"asset_id": str(asset_id), "folder_id": str(folder_id)})

    # Projects

    async def create_project(self, project: Project) -> Project:
        row = {
            "id": str(project.id),
            "analysis_id": str(project.analysis_id),
            "brand_id": str(project.brand_id) if project.brand_id else None,
            "name": project.name,
            "generated_script": {"sections": [s.model_dump(mode="json") for s in project.sections]},
            "slots_data": project.assignments.model_dump(mode="json"),
            "voice_id": project.voice.voice_id,
            "voice_settings": project.voice.model_dump(mode="json", exclude={"voice_id"}),
            "voiceover_path": project.voiceover_path,
            "variant_count": project.variant_count,
            "status": project.status.value,
            "script_approved": True,
        }
        result = await self.db.table("projects").insert(row).execute()
        logger.info("Project created", extra={"project_id": row["id"], "analysis_id": row["analysis_id"]})
        return project_from_row(_first_row(result.data) or row)

    async def get_project(self, project_id: IdLike) -> Project:
        result = await self.db.table("projects").select("*").eq("id", str(project_id)).limit(1).execute()
        row = _first_row(result.data)
        if not row:
            raise ValidationError(f"Project {project_id} not found")
        return project_from_row(row)

    async def update_project_status(self, project_id: IdLike, status: ProjectStatus) -> None:
        await self.db.table("projects").update({"status": status.value}).eq("id", str(project_id)).execute()

    # Variants

    async def create_variant(self, project_id: IdLike, variant_index: int) -> Variant:
        row = {
            "id": str(uuid4()),
            "project_id": str(project_id),
            "variant_index": variant_index,
            "status": VariantStatus.QUEUED.value,
            "progress_percent": 0,
            "progress_message": "Queued",
        }
        result = await self.db.table("variants").insert(row).execute()
        return variant_from_row(_first_row(result.data) or row)

    async def get_variants(self, variant_ids: Iterable[IdLike]) -> List[Variant]:
        ids = [str(v) for v in variant_ids]
        if not ids:
            return []
        result = await self.db.table("variants").select("*").in_("id", ids).execute()
        return [variant_from_row(row) for row in result.data or []]

    async def update_variant_progress(
        self,
        variant_id: IdLike,
        status: VariantStatus,
        percent: Optional[int] = None,
        message: Optional[str] = None,
        **fields: Any
    ) -> bool:
        """
        Conditionally write a variant's status and progress.

        The write only lands while the stored row is non-terminal, its status
        rank is not ahead of ``status`` and (when ``percent`` is given) its
        stored percent is not above ``percent``. Duplicate or out-of-order
        writes therefore match no row and are no-ops.

        Returns:
            True if a row was updated
        """
        payload: Dict[str, Any] = {"status": status.value, **fields}
        if percent is not None:
            payload["progress_percent"] = percent
        if message is not None:
            payload["progress_message"] = message
        if status.is_terminal:
            payload.setdefault("completed_at", _utcnow())

        allowed_from = [
            s.value for s in VariantStatus
            if not s.is_terminal and s.rank <= status.rank
        ]
        query = self.db.table("variants").update(payload).eq("id", str(variant_id)).in_("status", allowed_from)
        if percent is not None:
            query = query.lte("progress_percent", percent)
        result = await query.execute()

        applied = bool(result.data)
        if not applied:
            logger.debug(
                "Variant progress write skipped (stale or terminal)",
                extra={"variant_id": str(variant_id), "status": status.value, "percent": percent}
            )
        return applied
