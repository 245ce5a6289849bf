"""
Shared fixtures for api_gateway tests.

FakeRepository keeps every table in memory so coordinator flows can be
driven end to end without Supabase.
"""

from typing import Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import UUID, uuid4

import pytest

from shared.errors import ValidationError
from shared.models import (
    Analysis,
    AnalysisStatus,
    Asset,
    AssetFolder,
    ProgressEvent,
    Project,
    ProjectStatus,
    Section,
    Variant,
    VariantStatus,
    VoiceConfig,
)
from modules.variant_fanout import VariantFanoutController
from api_gateway.coordinator import PipelineCoordinator

SOURCE_URL = "https://www.tiktok.com/@brand/video/7212345678901234567"


class FakeRepository:
    def __init__(self):
        self.analyses: Dict[UUID, Analysis] = {}
        self.folders: List[AssetFolder] = []
        self.assets: List[Asset] = []
        self.projects: Dict[UUID, Project] = {}
        self.project_status: Dict[UUID, List[ProjectStatus]] = {}
        self.variants: Dict[UUID, Variant] = {}
        # When set, pending analyses complete with this script on first read
        self.ready_script: Optional[List[Section]] = None

    async def create_analysis(self, source_url, brand_id=None):
        analysis = Analysis(id=uuid4(), source_url=source_url, brand_id=brand_id)
        self.analyses[analysis.id] = analysis
        return analysis

    async def get_analysis(self, analysis_id):
        analysis = self.analyses.get(UUID(str(analysis_id)))
        if analysis is None:
            raise ValidationError(f"Analysis {analysis_id} not found")
        if self.ready_script and analysis.status == AnalysisStatus.PENDING:
            self.complete_analysis(analysis.id, self.ready_script)
            analysis = self.analyses[analysis.id]
        return analysis

    async def update_analysis(self, analysis_id, **fields):
        analysis = await self.get_analysis(analysis_id)
        self.analyses[analysis.id] = analysis.model_copy(update=fields)

    async def save_analysis_sections(self, analysis_id, sections, duration=None):
        await self.update_analysis(analysis_id, sections=list(sections), duration=duration)

    def complete_analysis(self, analysis_id, sections):
        self.analyses[analysis_id] = self.analyses[analysis_id].model_copy(
            update={"status": AnalysisStatus.COMPLETED, "sections": sections, "transcription": "..."}
        )

    async def get_brand_context(self, brand_id):
        return None

    def add_folder(self, name, clip_count):
        folder = AssetFolder(id=uuid4(), name=name, asset_count=clip_count)
        self.folders.append(folder)
        for i in range(clip_count):
            self.assets.append(Asset(
                id=uuid4(), name=f"{name.lower()}{i}.mp4",
                storage_path=f"{name.lower()}/{i}.mp4", folder_id=folder.id,
            ))
        return folder

    async def list_folders(self, brand_id=None):
        return list(self.folders)

    async def list_assets(self, brand_id=None):
        return list(self.assets)

    async def move_asset(self, asset_id, folder_id):
        for index, asset in enumerate(self.assets):
            if asset.id == UUID(str(asset_id)):
                self.assets[index] = asset.model_copy(update={"folder_id": UUID(str(folder_id))})
                return
        raise ValidationError(f"Asset {asset_id} not found")

    async def create_project(self, project):
        self.projects[project.id] = project
        return project

    async def get_project(self, project_id):
        return self.projects[UUID(str(project_id))]

    async def update_project_status(self, project_id, status):
        self.project_status.setdefault(UUID(str(project_id)), []).append(status)

    async def create_variant(self, project_id, variant_index):
        variant = Variant(id=uuid4(), project_id=project_id, variant_index=variant_index)
        self.variants[variant.id] = variant
        return variant

    async def get_variants(self, variant_ids):
        return [self.variants[UUID(str(v))] for v in variant_ids if UUID(str(v)) in self.variants]

    async def update_variant_progress(self, variant_id, status, percent=None, message=None, **fields):
        variant = self.variants[UUID(str(variant_id))]
        if variant.status.is_terminal:
            return False
        update = {"status": status, "error_message": fields.get("error_message"), "video_path": fields.get("video_url")}
        if percent is not None:
            update["progress_percent"] = percent
        self.variants[variant.id] = variant.model_copy(update=update)
        return True


class RecordingDispatcher:
    def __init__(self):
        self.requests = []

    async def submit(self, request):
        self.requests.append(request)


class FakeSubscription:
    """Replays a scripted list of events; an Exception item is raised."""

    def __init__(self, items):
        self.items = list(items)
        self.closed = False

    async def connect(self):
        pass

    async def events(self):
        for item in self.items:
            if isinstance(item, Exception):
                raise item
            yield item

    async def close(self):
        self.closed = True


def completing_subscriptions(failed_indexes=()):
    """Factory whose subscription finishes every variant it is given."""
    def factory(variant_ids):
        events = []
        for index, variant_id in enumerate(variant_ids):
            if index in failed_indexes:
                events.append(ProgressEvent(
                    variant_id=variant_id, status=VariantStatus.FAILED, percent=50, error="timeout"
                ))
            else:
                events.append(ProgressEvent(
                    variant_id=variant_id, status=VariantStatus.COMPLETED, percent=100,
                    video_path=f"{variant_id}/video.mp4",
                ))
        return FakeSubscription(events)
    return factory


@pytest.fixture
def repository():
    repository = FakeRepository()
    repository.add_folder("Hooks", 2)
    repository.add_folder("Producto", 2)
    repository.add_folder("CTA", 1)
    return repository


@pytest.fixture
def storage():
    storage = MagicMock()

    async def sign(bucket, path, expires_in=None):
        return f"https://signed.example/{bucket}/{path}"

    storage.get_signed_url = AsyncMock(side_effect=sign)
    return storage


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def publisher():
    publisher = MagicMock()
    publisher.publish = AsyncMock()
    return publisher


@pytest.fixture
def coordinator(repository, storage, dispatcher, publisher):
    return PipelineCoordinator(
        repository=repository,
        storage=storage,
        fanout=VariantFanoutController(repository, dispatcher=dispatcher, publisher=publisher),
        enqueue_analysis=AsyncMock(),
        voiceover_factory=AsyncMock(return_value="project/voiceover.mp3"),
        subscription_factory=completing_subscriptions(),
    )


@pytest.fixture
def script_sections():
    return [
        Section(type="hook", text="Tired of tangled cables?", order_index=0),
        Section(type="product", text="Meet the all-in-one charger.", order_index=1),
        Section(type="cta", text="Order today.", order_index=2),
    ]


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("shared.retry.asyncio.sleep", new_callable=AsyncMock) as sleep:
        yield sleep


class WorkflowDriver:
    """Moves a coordinator through the early stages with canned results."""

    def __init__(self, coordinator, repository, sections):
        self.coordinator = coordinator
        self.repository = repository
        self.sections = sections

    async def script_ready(self):
        analysis_id = await self.coordinator.start_analysis(SOURCE_URL)
        self.repository.complete_analysis(analysis_id, self.sections)
        await self.coordinator.poll_analysis()
        return analysis_id

    async def configured(self, count=3):
        await self.script_ready()
        await self.coordinator.assign_clips(await self.coordinator.suggest_assignments())
        self.coordinator.select_voice(VoiceConfig())
        self.coordinator.configure_variants(count)

    async def rendering(self, count=3):
        await self.configured(count)
        await self.coordinator.approve_and_create_project("Launch")
        return await self.coordinator.launch_variants()


@pytest.fixture
def driver(coordinator, repository, script_sections):
    return WorkflowDriver(coordinator, repository, script_sections)


@pytest.fixture
def subscriptions():
    return completing_subscriptions


@pytest.fixture
def scripted_subscription():
    return FakeSubscription
