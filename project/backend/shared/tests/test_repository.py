"""
Tests for the pipeline repository.
"""

import pytest
from unittest.mock import MagicMock, Mock
from uuid import uuid4

from shared.database import DatabaseClient
from shared.errors import ValidationError
from shared.models import AnalysisStatus, Project, Section, VariantStatus
from shared.repository import PipelineRepository, variant_from_row


def _query(data=None):
    """Chainable supabase query whose execute() returns ``data``."""
    query = MagicMock()
    for method in ("select", "insert", "update", "delete", "eq", "neq", "in_", "lte", "limit", "order"):
        getattr(query, method).return_value = query
    query.execute.return_value = Mock(data=data)
    return query


@pytest.fixture
def tables():
    return {}


@pytest.fixture
def repository(tables):
    client = MagicMock()
    client.table.side_effect = lambda name: tables.setdefault(name, _query([]))
    return PipelineRepository(db=DatabaseClient(client=client))


@pytest.mark.asyncio
async def test_create_analysis_inserts_pending_row(repository, tables):
    tables["video_analyses"] = _query(None)

    analysis = await repository.create_analysis("https://www.tiktok.com/@brand/video/1")

    row = tables["video_analyses"].insert.call_args.args[0]
    assert row["status"] == "pending"
    assert row["brand_id"] is None
    assert str(analysis.id) == row["id"]
    assert analysis.status == AnalysisStatus.PENDING


@pytest.mark.asyncio
async def test_get_analysis_parses_structure(repository, tables):
    analysis_id = uuid4()
    tables["video_analyses"] = _query([{
        "id": str(analysis_id),
        "source_url": "https://youtu.be/x",
        "status": "completed",
        "transcription": "Stop scrolling. Buy now.",
        "structure": {
            "duration": 12.5,
            "sections": [
                {"type": "cta", "text": "Buy now.", "order_index": 1},
                {"type": "hook", "text": "Stop scrolling.", "order_index": 0},
            ],
        },
    }])

    analysis = await repository.get_analysis(analysis_id)

    assert analysis.status == AnalysisStatus.COMPLETED
    assert analysis.duration == 12.5
    assert [s.type.value for s in analysis.ordered_sections] == ["hook", "cta"]


@pytest.mark.asyncio
async def test_get_analysis_not_found(repository, tables):
    tables["video_analyses"] = _query([])

    with pytest.raises(ValidationError, match="not found"):
        await repository.get_analysis(uuid4())


@pytest.mark.asyncio
async def test_update_analysis_stores_enum_values(repository, tables):
    analysis_id = uuid4()

    await repository.update_analysis(analysis_id, status=AnalysisStatus.FAILED, error_message="boom")

    query = tables["video_analyses"]
    query.update.assert_called_once_with({"status": "failed", "error_message": "boom"})
    query.eq.assert_called_once_with("id", str(analysis_id))


@pytest.mark.asyncio
async def test_save_analysis_sections(repository, tables):
    section = Section(type="hook", text="Look", order_index=0)

    await repository.save_analysis_sections(uuid4(), [section], duration=8.0)

    payload = tables["video_analyses"].update.call_args.args[0]
    assert payload["structure"]["duration"] == 8.0
    assert payload["structure"]["sections"][0]["id"] == str(section.id)


@pytest.mark.asyncio
async def test_get_brand_context(repository, tables):
    brand_id = uuid4()
    tables["brands"] = _query([{"id": str(brand_id), "name": "Acme", "tone": "playful"}])

    assert await repository.get_brand_context(None) is None
    brand = await repository.get_brand_context(brand_id)

    assert brand["tone"] == "playful"
    tables["brands"].eq.assert_called_once_with("id", str(brand_id))


@pytest.mark.asyncio
async def test_list_folders_counts_assets(repository, tables):
    hooks, demos = uuid4(), uuid4()
    tables["broll_folders"] = _query([
        {"id": str(demos), "name": "Demos"},
        {"id": str(hooks), "name": "Hooks"},
    ])
    tables["broll_files"] = _query([
        {"id": str(uuid4()), "folder_id": str(hooks)},
        {"id": str(uuid4()), "folder_id": str(hooks)},
        {"id": str(uuid4()), "folder_id": None},
    ])

    folders = await repository.list_folders()

    counts = {f.name: f.asset_count for f in folders}
    assert counts == {"Demos": 0, "Hooks": 2}


@pytest.mark.asyncio
async def test_list_assets_skips_unfiled(repository, tables):
    folder = uuid4()
    tables["broll_files"] = _query([
        {"id": str(uuid4()), "name": "a.mp4", "folder_id": str(folder), "storage_path": "f/a.mp4", "duration": 4.0},
        {"id": str(uuid4()), "name": "b.mp4", "folder_id": None, "storage_path": "b.mp4", "duration": None},
    ])

    assets = await repository.list_assets()

    assert [a.name for a in assets] == ["a.mp4"]


@pytest.mark.asyncio
async def test_move_asset_not_found(repository, tables):
    tables["broll_files"] = _query([])

    with pytest.raises(ValidationError, match="not found"):
        await repository.move_asset(uuid4(), uuid4())


@pytest.mark.asyncio
async def test_create_project_persists_bindings_and_voice(repository, tables):
    tables["projects"] = _query(None)
    section = Section(type="hook", text="Look", order_index=0)
    asset_id = uuid4()
    project = Project(id=uuid4(), analysis_id=uuid4(), name="Launch", sections=[section], variant_count=2)
    project.assignments.bind(section.id, asset_id)

    created = await repository.create_project(project)

    row = tables["projects"].insert.call_args.args[0]
    assert row["slots_data"] == {"bindings": {str(section.id): str(asset_id)}}
    assert "voice_id" not in row["voice_settings"]
    assert created.assignments.get(section.id) == asset_id
    assert created.variant_count == 2


@pytest.mark.asyncio
async def test_create_variant_starts_queued(repository, tables):
    tables["variants"] = _query(None)
    project_id = uuid4()

    variant = await repository.create_variant(project_id, 2)

    assert variant.status == VariantStatus.QUEUED
    assert variant.variant_index == 2
    assert variant.project_id == project_id


@pytest.mark.asyncio
async def test_get_variants_empty_ids_skips_query(repository, tables):
    assert await repository.get_variants([]) == []
    assert "variants" not in tables


@pytest.mark.asyncio
async def test_update_variant_progress_is_conditional(repository, tables):
    variant_id = uuid4()
    tables["variants"] = _query([{"id": str(variant_id)}])

    applied = await repository.update_variant_progress(variant_id, VariantStatus.RENDERING, 40, "Rendering")

    query = tables["variants"]
    payload = query.update.call_args.args[0]
    assert applied is True
    assert payload == {"status": "rendering", "progress_percent": 40, "progress_message": "Rendering"}
    query.eq.assert_called_once_with("id", str(variant_id))
    query.in_.assert_called_once_with("status", ["queued", "rendering"])
    query.lte.assert_called_once_with("progress_percent", 40)


@pytest.mark.asyncio
async def test_update_variant_progress_terminal_sets_completed_at(repository, tables):
    tables["variants"] = _query([])

    applied = await repository.update_variant_progress(
        uuid4(), VariantStatus.FAILED, 100, "Render failed", error_message="timeout"
    )

    payload = tables["variants"].update.call_args.args[0]
    assert applied is False
    assert payload["error_message"] == "timeout"
    assert "completed_at" in payload
    tables["variants"].in_.assert_called_once_with("status", ["queued", "rendering"])


@pytest.mark.asyncio
async def test_update_variant_progress_queued_only_from_queued(repository, tables):
    tables["variants"] = _query([{"id": "x"}])

    await repository.update_variant_progress(uuid4(), VariantStatus.QUEUED)

    tables["variants"].in_.assert_called_once_with("status", ["queued"])
    tables["variants"].lte.assert_not_called()


def test_variant_from_row_maps_storage_columns():
    variant = variant_from_row({
        "id": str(uuid4()),
        "project_id": str(uuid4()),
        "variant_index": 0,
        "status": "completed",
        "progress_percent": 100,
        "video_url": "v/video.mp4",
        "srt_url": "v/subtitles.srt",
        "metadata_json": {"progress_message": "Done"},
    })

    assert variant.video_path == "v/video.mp4"
    assert variant.srt_path == "v/subtitles.srt"
    assert variant.progress_message == "Done"
