"""
Variant fan-out.

Creates N variant records for an approved project and submits one render
job per variant. Submission failures are isolated to their own variant.
"""

import asyncio
import random
from typing import Dict, List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field

from modules.asset_catalog import AssetCatalog
from modules.progress_aggregator.channel import ProgressPublisher
from modules.variant_fanout.dispatcher import QueueRenderDispatcher, RenderDispatcher
from shared.config import settings
from shared.errors import RetryableError, ValidationError
from shared.logging import get_logger
from shared.models import ClipBinding, ProgressEvent, Project, RenderRequest, Variant, VariantStatus
from shared.repository import PipelineRepository
from shared.validation import validate_variant_count

logger = get_logger("variant_fanout")


class FanoutResult(BaseModel):
    """Outcome of one fan-out. ``failed`` maps variant id to submission error."""

    variant_ids: List[UUID] = Field(default_factory=list)
    dispatched: List[UUID] = Field(default_factory=list)
    failed: Dict[str, str] = Field(default_factory=dict)


def build_bindings(project: Project, catalog: AssetCatalog) -> List[ClipBinding]:
    """
    Resolve every section's bound asset to its storage path.

    Raises:
        ValidationError: If a section is unbound or its asset is not in the catalog
    """
    bindings: List[ClipBinding] = []
    for section in project.ordered_sections:
        asset_id = project.assignments.get(section.id)
        if asset_id is None:
            raise ValidationError(
                f"Section {section.order_index + 1} ({section.type.value}) has no clip assigned",
                job_id=project.id
            )
        asset = catalog.get_asset(asset_id)
        if asset is None:
            raise ValidationError(
                f"Clip {asset_id} bound to section {section.order_index + 1} no longer exists",
                job_id=project.id
            )
        bindings.append(ClipBinding(
            section_id=section.id,
            section_type=section.type,
            order_index=section.order_index,
            text=section.text,
            asset_id=asset.id,
            storage_path=asset.storage_path,
            duration=section.expected_duration,
        ))
    return bindings


def bindings_for_variant(
    bindings: List[ClipBinding],
    catalog: AssetCatalog,
    variant_index: int,
    seed: Union[UUID, str]
) -> List[ClipBinding]:
    """
    Clip choice for one variant.

    Variant 0 renders the operator's picks. Every later variant draws each
    section's clip from the folder of the bound clip, so the batch differs
    while staying on topic. The draw is seeded by ``seed`` and the variant
    index, so re-running a fan-out reproduces the same picks.
    """
    if variant_index == 0:
        return list(bindings)

    rng = random.Random(f"{seed}:{variant_index}")
    chosen: List[ClipBinding] = []
    for binding in bindings:
        bound = catalog.get_asset(binding.asset_id)
        candidates = catalog.assets_in_folder(bound.folder_id) if bound and bound.folder_id else []
        if len(candidates) < 2:
            chosen.append(binding)
            continue
        pick = rng.choice(candidates)
        chosen.append(binding.model_copy(update={"asset_id": pick.id, "storage_path": pick.storage_path}))
    return chosen


class VariantFanoutController:
    """Persists and dispatches the render jobs of one batch."""

    def __init__(
        self,
        repository: PipelineRepository,
        dispatcher: Optional[RenderDispatcher] = None,
        publisher: Optional[ProgressPublisher] = None,
        concurrency: Optional[int] = None
    ):
        self.repository = repository
        self.dispatcher = dispatcher or QueueRenderDispatcher()
        self.publisher = publisher or ProgressPublisher()
        self.concurrency = concurrency or settings.fanout_concurrency

    async def fan_out(self, project: Project, variant_count: int, catalog: AssetCatalog) -> FanoutResult:
        """
        Create ``variant_count`` queued variants and submit a render for each.

        Returns as soon as every variant is persisted and its submission has
        either been accepted or recorded as failed. Store errors while
        creating records propagate before anything is submitted.
        """
        validate_variant_count(variant_count, settings.max_variants)
        bindings = build_bindings(project, catalog)

        variants: List[Variant] = []
        for index in range(variant_count):
            variants.append(await self.repository.create_variant(project.id, index))

        logger.info(
            "Variant records created",
            extra={"project_id": str(project.id), "variant_count": len(variants)}
        )

        semaphore = asyncio.Semaphore(self.concurrency)

        async def submit(variant: Variant) -> None:
            request = RenderRequest(
                variant_id=variant.id,
                project_id=project.id,
                variant_index=variant.variant_index,
                bindings=bindings_for_variant(bindings, catalog, variant.variant_index, project.id),
                voiceover_path=project.voiceover_path,
            )
            async with semaphore:
                await self.dispatcher.submit(request)

        results = await asyncio.gather(*(submit(v) for v in variants), return_exceptions=True)

        result = FanoutResult(variant_ids=[v.id for v in variants])
        for variant, outcome in zip(variants, results):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if not isinstance(outcome, BaseException):
                result.dispatched.append(variant.id)
                continue

            error = str(outcome) or type(outcome).__name__
            result.failed[str(variant.id)] = error
            logger.error(
                f"Render submission failed for variant {variant.variant_index}",
                exc_info=outcome,
                extra={"project_id": str(project.id), "variant_id": str(variant.id)}
            )
            await self._mark_failed(variant, error)

        logger.info(
            "Variant fan-out finished",
            extra={
                "project_id": str(project.id),
                "dispatched": len(result.dispatched),
                "failed": len(result.failed),
            }
        )
        return result

    async def _mark_failed(self, variant: Variant, error: str) -> None:
        """
        Record a rejected submission. Siblings are already queued, so store
        and channel errors are logged, never raised. The failed event is
        published either way so batch tracking sees a terminal status.
        """
        try:
            await self.repository.update_variant_progress(
                variant.id,
                VariantStatus.FAILED,
                message="Render submission failed",
                error_message=error,
            )
        except RetryableError as e:
            logger.error(
                "Failed to record submission failure",
                extra={"variant_id": str(variant.id), "error": str(e)}
            )
        try:
            await self.publisher.publish(ProgressEvent(
                variant_id=variant.id,
                status=VariantStatus.FAILED,
                percent=variant.progress_percent,
                message="Render submission failed",
                error=error,
            ))
        except RetryableError as e:
            logger.warning(
                "Failed to publish submission failure",
                extra={"variant_id": str(variant.id), "error": str(e)}
            )
