"""
Pipeline coordination.

One PipelineCoordinator drives one workflow: analysis, script edits, clip
assignment, voice, variant configuration, project approval, fan-out and
batch tracking. Every step goes through the WorkflowStateMachine so stages
cannot be entered out of order.
"""

from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Union
from uuid import UUID, uuid4

from shared.config import settings
from shared.errors import AnalysisTimeoutError, PipelineError, TTSFailedError, ValidationError
from shared.logging import get_logger, set_project_id
from shared.models import (
    Analysis,
    AnalysisStatus,
    AssignmentSet,
    BatchSummary,
    Project,
    ProjectStatus,
    ProgressEvent,
    Section,
    VoiceConfig,
)
from shared.repository import PipelineRepository
from shared.retry import poll_until
from shared.storage import StorageClient
from shared.validation import validate_section_text, validate_source_url
from modules.asset_catalog import AssetCatalog
from modules.assignment_validator import (
    FeasibilityReport,
    find_unknown_assets,
    suggest_assignments,
    validate_feasibility,
)
from modules.progress_aggregator import ProgressAggregator, summarize
from modules.variant_fanout import VariantFanoutController
from modules.voiceover import create_voiceover
from modules.workflow import EDITABLE_STATES, WorkflowState, WorkflowStateMachine
from api_gateway.services.queue_service import enqueue_analysis_job

logger = get_logger(__name__)

IdLike = Union[UUID, str]
AnalysisEnqueuer = Callable[[str, str, Optional[str]], Awaitable[None]]
VoiceoverFactory = Callable[..., Awaitable[str]]


def _as_uuid(value: IdLike) -> UUID:
    return value if isinstance(value, UUID) else UUID(str(value))


class PipelineCoordinator:
    """Sequences one ad-variant workflow over the pipeline modules."""

    def __init__(
        self,
        repository: Optional[PipelineRepository] = None,
        storage: Optional[StorageClient] = None,
        fanout: Optional[VariantFanoutController] = None,
        enqueue_analysis: Optional[AnalysisEnqueuer] = None,
        voiceover_factory: Optional[VoiceoverFactory] = None,
        subscription_factory=None,
        brand_id: Optional[IdLike] = None
    ):
        self.repository = repository or PipelineRepository()
        self.storage = storage or StorageClient()
        self.fanout = fanout or VariantFanoutController(self.repository)
        self.enqueue_analysis = enqueue_analysis or enqueue_analysis_job
        self.voiceover_factory = voiceover_factory or create_voiceover
        self.subscription_factory = subscription_factory
        self.brand_id = brand_id

        self.workflow = WorkflowStateMachine(max_variants=settings.max_variants)
        self.catalog: Optional[AssetCatalog] = None
        self.project: Optional[Project] = None
        self._aggregator: Optional[ProgressAggregator] = None

    @property
    def state(self) -> WorkflowState:
        return self.workflow.state

    @property
    def sections(self) -> List[Section]:
        if self.workflow.analysis is None:
            return []
        return self.workflow.analysis.ordered_sections

    # Analysis

    async def start_analysis(self, source_url: str, brand_id: Optional[IdLike] = None) -> UUID:
        """
        Create an analysis record and queue its transcription job.

        Returns:
            Analysis id

        Raises:
            ValidationError: If the URL is not a supported source
            WorkflowTransitionError: If a workflow is already in progress
        """
        self.workflow.require_state(WorkflowState.IDLE)
        source_url = validate_source_url(source_url)
        if brand_id is not None:
            self.brand_id = brand_id

        analysis = await self.repository.create_analysis(source_url, self.brand_id)
        try:
            await self.enqueue_analysis(
                str(analysis.id), source_url, str(self.brand_id) if self.brand_id else None
            )
        except Exception as e:
            await self.repository.update_analysis(
                analysis.id, status=AnalysisStatus.FAILED, error_message=f"Failed to queue analysis: {str(e)}"
            )
            raise

        self.workflow.begin_analysis(analysis.id)
        logger.info("Analysis started", extra={"analysis_id": str(analysis.id), "source_url": source_url})
        return analysis.id

    async def poll_analysis(self, analysis_id: Optional[IdLike] = None) -> Analysis:
        """
        Wait for the analysis to leave its in-flight states.

        Completed analyses move the workflow to SCRIPT_READY. Failed ones move
        it to FAILED and are returned so the caller can show the error.

        Raises:
            AnalysisTimeoutError: If it is still in flight after the last attempt
        """
        analysis_id = _as_uuid(analysis_id) if analysis_id is not None else self.workflow.analysis_id
        if analysis_id is None:
            raise ValidationError("No analysis to poll")

        try:
            analysis = await poll_until(
                lambda: self.repository.get_analysis(analysis_id),
                lambda a: not a.status.in_flight,
                interval=settings.analysis_poll_interval_seconds,
                max_attempts=settings.analysis_poll_max_attempts,
                timeout_error=AnalysisTimeoutError,
                description=f"analysis {analysis_id}",
            )
        except AnalysisTimeoutError as e:
            e.job_id = analysis_id
            raise

        if analysis.status == AnalysisStatus.FAILED:
            reason = analysis.error_message or "Analysis failed"
            if not self.workflow.state.is_terminal:
                self.workflow.fail(reason)
            return analysis

        self.workflow.mark_script_ready(analysis)
        logger.info(
            "Script ready",
            extra={"analysis_id": str(analysis_id), "sections": len(analysis.sections)}
        )
        return analysis

    async def update_section_text(self, section_id: IdLike, text: str) -> Section:
        """Edit one section of the script before approval."""
        self.workflow.require_state(*EDITABLE_STATES)
        section_id = _as_uuid(section_id)
        text = validate_section_text(text)

        analysis = self.workflow.analysis
        updated: Optional[Section] = None
        sections = []
        for section in analysis.sections:
            if section.id == section_id:
                updated = section.model_copy(update={"text": text})
                sections.append(updated)
            else:
                sections.append(section)
        if updated is None:
            raise ValidationError(f"Section {section_id} not found")

        await self.repository.save_analysis_sections(analysis.id, sections, analysis.duration)
        self.workflow.update_sections(analysis.model_copy(update={"sections": sections}))
        return updated

    # Clips

    async def refresh_catalog(self, brand_id: Optional[IdLike] = None) -> AssetCatalog:
        self.catalog = await AssetCatalog.load(self.repository, brand_id or self.brand_id)
        return self.catalog

    async def _current_catalog(self) -> AssetCatalog:
        if self.catalog is None:
            return await self.refresh_catalog()
        return self.catalog

    async def validate_assignments(
        self,
        sections: Optional[List[Section]] = None,
        catalog: Optional[AssetCatalog] = None
    ) -> FeasibilityReport:
        """Feasibility warnings for the current script against the library."""
        return validate_feasibility(
            sections if sections is not None else self.sections,
            catalog or await self._current_catalog()
        )

    async def suggest_assignments(self, catalog: Optional[AssetCatalog] = None) -> AssignmentSet:
        self.workflow.require_state(WorkflowState.SCRIPT_READY, WorkflowState.CLIPS_ASSIGNED)
        return suggest_assignments(
            self.sections,
            catalog or await self._current_catalog(),
            existing=self.workflow.assignments
        )

    async def assign_clips(self, assignments: AssignmentSet) -> None:
        """
        Bind clips to sections.

        Raises:
            WorkflowTransitionError: If a section is left without a clip
            ValidationError: If a binding points at an asset not in the library
        """
        self.workflow.require_state(WorkflowState.SCRIPT_READY, WorkflowState.CLIPS_ASSIGNED)
        unknown = find_unknown_assets(assignments, await self._current_catalog())
        if unknown:
            raise ValidationError(
                f"{len(unknown)} binding(s) reference clips that are not in the library"
            )
        self.workflow.assign_clips(assignments)

    async def move_asset(self, asset_id: IdLike, folder_id: IdLike) -> AssetCatalog:
        await self.repository.move_asset(asset_id, folder_id)
        return await self.refresh_catalog()

    # Voice and variants

    def select_voice(self, voice: VoiceConfig) -> None:
        self.workflow.select_voice(voice)

    def configure_variants(self, count: int) -> None:
        self.workflow.configure_variants(count)

    async def approve_and_create_project(self, name: Optional[str] = None) -> UUID:
        """
        Synthesize the voice-over and persist the project.

        Calling it again for the same workflow returns the existing project.

        Raises:
            TTSFailedError: After moving the workflow to FAILED
        """
        self.workflow.require_state(WorkflowState.VARIANTS_CONFIGURED)
        if self.project is not None:
            return self.project.id

        workflow = self.workflow
        project = Project(
            id=uuid4(),
            analysis_id=workflow.analysis.id,
            brand_id=self.brand_id,
            name=name or f"Ad variants {datetime.utcnow():%Y-%m-%d %H:%M}",
            sections=self.sections,
            assignments=workflow.assignments,
            voice=workflow.voice,
            variant_count=workflow.variant_count,
        )
        set_project_id(project.id)

        try:
            voiceover_path = await self.voiceover_factory(
                project.id, project.sections, project.voice, storage=self.storage
            )
        except TTSFailedError as e:
            workflow.fail(str(e))
            raise

        project.voiceover_path = voiceover_path
        self.project = await self.repository.create_project(project)
        logger.info(
            "Project approved",
            extra={"project_id": str(project.id), "variant_count": project.variant_count}
        )
        return self.project.id

    async def launch_variants(
        self,
        project_id: Optional[IdLike] = None,
        count: Optional[int] = None
    ) -> List[UUID]:
        """
        Enter RENDERING and fan out one render job per variant.

        Returns:
            Ids of the created variants, in variant_index order

        Raises:
            ValidationError: If ``count`` differs from the approved project
        """
        self.workflow.require_state(WorkflowState.VARIANTS_CONFIGURED)
        if project_id is None and self.project is None:
            raise ValidationError("Approve the project before launching variants")
        project_id = _as_uuid(project_id) if project_id is not None else self.project.id
        project = self.project if self.project and self.project.id == project_id \
            else await self.repository.get_project(project_id)
        if count is not None and count != project.variant_count:
            raise ValidationError(
                f"Project {project.id} was approved for {project.variant_count} variants, not {count}",
                job_id=project.id
            )
        count = project.variant_count
        catalog = await self._current_catalog()

        self.workflow.start_rendering(project.id)
        try:
            result = await self.fanout.fan_out(project, count, catalog)
        except PipelineError as e:
            self.workflow.fail(str(e))
            await self.repository.update_project_status(project.id, ProjectStatus.FAILED)
            raise

        self.workflow.record_variants(result.variant_ids)
        await self.repository.update_project_status(project.id, ProjectStatus.PROCESSING)
        return result.variant_ids

    # Progress

    async def watch_batch(self, variant_ids: Optional[List[IdLike]] = None) -> BatchSummary:
        """
        Track the batch until every variant is terminal.

        Completion moves the workflow to DONE and settles the project status.
        """
        ids = list(variant_ids) if variant_ids is not None else list(self.workflow.variant_ids)
        kwargs = {}
        if self.subscription_factory is not None:
            kwargs["subscription_factory"] = self.subscription_factory
        aggregator = ProgressAggregator(
            ids,
            self.repository,
            self.storage,
            on_batch_complete=self._on_batch_complete,
            **kwargs
        )
        self._aggregator = aggregator
        try:
            return await aggregator.run()
        finally:
            self._aggregator = None

    async def _on_batch_complete(self, summary: BatchSummary) -> None:
        if self.workflow.state != WorkflowState.RENDERING:
            return
        self.workflow.finish(summary)
        status = ProjectStatus.COMPLETED if summary.completed > 0 else ProjectStatus.FAILED
        await self.repository.update_project_status(self.workflow.project_id, status)
        logger.info(
            "Batch finished",
            extra={
                "project_id": str(self.workflow.project_id),
                "completed": summary.completed,
                "failed": summary.failed,
                "project_status": status.value,
            }
        )

    async def get_batch_progress(self, variant_ids: Optional[List[IdLike]] = None) -> BatchSummary:
        """Snapshot straight from the store, with signed URLs for finished variants."""
        ids = list(variant_ids) if variant_ids is not None else list(self.workflow.variant_ids)
        variants = await self.repository.get_variants(ids)
        order = {str(v): i for i, v in enumerate(ids)}
        variants.sort(key=lambda v: order.get(str(v.id), len(order)))
        return await summarize([ProgressEvent.from_variant(v) for v in variants], self.storage)

    # Lifecycle

    async def cancel(self) -> None:
        """
        Before rendering, discard the workflow. While rendering, stop
        listening; render jobs already queued keep running.
        """
        if self.workflow.state == WorkflowState.RENDERING:
            if self._aggregator is not None:
                await self._aggregator.stop()
            logger.info("Batch tracking cancelled", extra={"project_id": str(self.workflow.project_id)})
            return
        await self.reset()

    async def reset(self) -> None:
        if self._aggregator is not None:
            await self._aggregator.stop()
        self.workflow.reset()
        self.project = None
        set_project_id(None)
