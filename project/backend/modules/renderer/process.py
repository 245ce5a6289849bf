"""
Render job entry point.

Renders one variant: signs clip URLs, builds the Shotstack edit, submits and
polls the render, then copies the MP4 and its subtitles into the renders
bucket. Every milestone is written to the variant record and published on
the variant's progress channel.
"""

from typing import Optional

from shared.config import settings
from shared.errors import PipelineError, RenderFailedError, RetryableError
from shared.logging import get_logger, set_project_id, set_variant_id
from shared.models import ProgressEvent, RenderRequest, Variant, VariantStatus
from shared.repository import PipelineRepository
from shared.retry import poll_until
from shared.storage import StorageClient
from modules.progress_aggregator import ProgressPublisher

from .shotstack_client import RENDER_FAILED, RenderStatus, download_render, get_render_status, submit_render
from .subtitles import generate_srt
from .timeline import build_edit

logger = get_logger("renderer.process")

# Share of the bar covered while Shotstack renders (40% -> 70%)
POLL_PROGRESS_START = 40
POLL_PROGRESS_SPAN = 30


class ProgressReporter:
    """Writes a variant's milestones to the store, then announces them."""

    def __init__(
        self,
        request: RenderRequest,
        repository: PipelineRepository,
        publisher: ProgressPublisher
    ):
        self.request = request
        self.repository = repository
        self.publisher = publisher

    async def report(
        self,
        status: VariantStatus,
        percent: int,
        message: str,
        error: Optional[str] = None,
        video_path: Optional[str] = None,
        srt_path: Optional[str] = None
    ) -> None:
        fields = {}
        if error is not None:
            fields["error_message"] = error
        if video_path is not None:
            fields["video_url"] = video_path
        if srt_path is not None:
            fields["srt_url"] = srt_path

        try:
            await self.repository.update_variant_progress(
                self.request.variant_id, status, percent=percent, message=message, **fields
            )
        except RetryableError as e:
            if status.is_terminal:
                raise
            logger.warning(
                f"Failed to record progress: {str(e)}",
                extra={"variant_id": str(self.request.variant_id), "percent": percent}
            )

        event = ProgressEvent(
            variant_id=self.request.variant_id,
            status=status,
            percent=percent,
            message=message,
            error=error,
            video_path=video_path,
            srt_path=srt_path,
        )
        try:
            await self.publisher.publish(event)
        except RetryableError as e:
            logger.warning(
                f"Failed to publish progress: {str(e)}",
                extra={"variant_id": str(self.request.variant_id), "percent": percent}
            )


async def render_variant(
    request: RenderRequest,
    repository: Optional[PipelineRepository] = None,
    storage: Optional[StorageClient] = None,
    publisher: Optional[ProgressPublisher] = None
) -> Variant:
    """
    Render a single variant end to end.

    Returns:
        The variant as stored after completion

    Raises:
        PipelineError: After the variant has been marked failed
    """
    repository = repository or PipelineRepository()
    storage = storage or StorageClient()
    publisher = publisher or ProgressPublisher()
    reporter = ProgressReporter(request, repository, publisher)
    variant_id = request.variant_id
    set_project_id(request.project_id)
    set_variant_id(variant_id)

    logger.info(
        "Render started",
        extra={"variant_id": str(variant_id), "project_id": str(request.project_id), "clips": len(request.bindings)}
    )

    try:
        await reporter.report(VariantStatus.RENDERING, 0, "Starting render")

        ordered = sorted(request.bindings, key=lambda b: b.order_index)
        clip_urls = [
            await storage.get_signed_url(settings.broll_bucket, binding.storage_path)
            for binding in ordered
        ]
        voiceover_url = None
        if request.voiceover_path:
            voiceover_url = await storage.get_signed_url(settings.voiceovers_bucket, request.voiceover_path)
        await reporter.report(VariantStatus.RENDERING, 10, "Clip URLs ready")

        edit = build_edit(ordered, clip_urls, voiceover_url)
        srt_content = generate_srt(ordered)
        await reporter.report(VariantStatus.RENDERING, 20, "Timeline built")

        render_id = await submit_render(edit, job_id=variant_id)
        await reporter.report(VariantStatus.RENDERING, 30, "Submitted to renderer")

        max_attempts = settings.render_poll_max_attempts

        async def on_attempt(attempt: int, status: RenderStatus) -> None:
            percent = POLL_PROGRESS_START + min(
                POLL_PROGRESS_SPAN, int(attempt / max_attempts * POLL_PROGRESS_SPAN)
            )
            await reporter.report(VariantStatus.RENDERING, percent, f"Rendering ({status.status})")

        final = await poll_until(
            lambda: get_render_status(render_id, job_id=variant_id),
            lambda status: status.finished,
            interval=settings.render_poll_interval_seconds,
            max_attempts=max_attempts,
            timeout_error=RenderFailedError,
            description=f"render {render_id}",
            on_attempt=on_attempt,
        )
        if final.status == RENDER_FAILED or not final.url:
            raise RenderFailedError(
                f"Render {render_id} failed: {final.error or 'no output produced'}",
                job_id=variant_id
            )

        video = await download_render(final.url, job_id=variant_id)
        await reporter.report(VariantStatus.RENDERING, 75, "Render downloaded")

        video_path = await storage.upload_file(
            settings.renders_bucket, f"{variant_id}/video.mp4", video, content_type="video/mp4"
        )
        srt_path: Optional[str] = None
        try:
            srt_path = await storage.upload_file(
                settings.renders_bucket, f"{variant_id}/subtitles.srt", srt_content.encode("utf-8")
            )
        except RetryableError as e:
            logger.warning(
                f"Subtitle upload failed, continuing without subtitles: {str(e)}",
                extra={"variant_id": str(variant_id)}
            )
        await reporter.report(VariantStatus.RENDERING, 85, "Uploaded")

        await reporter.report(VariantStatus.RENDERING, 95, "Finalizing")
        await reporter.report(
            VariantStatus.COMPLETED, 100, "Completed", video_path=video_path, srt_path=srt_path
        )

    except Exception as e:
        logger.error(
            f"Render failed: {str(e)}",
            extra={"variant_id": str(variant_id), "error_type": type(e).__name__}
        )
        await reporter.report(VariantStatus.FAILED, 100, "Render failed", error=str(e))
        if isinstance(e, PipelineError):
            raise
        raise RenderFailedError(f"Render failed: {str(e)}", job_id=variant_id) from e

    logger.info("Render completed", extra={"variant_id": str(variant_id), "video_path": video_path})
    variants = await repository.get_variants([variant_id])
    if variants:
        return variants[0]
    return Variant(
        id=variant_id,
        project_id=request.project_id,
        variant_index=request.variant_index,
        status=VariantStatus.COMPLETED,
        progress_percent=100,
        progress_message="Completed",
        video_path=video_path,
        srt_path=srt_path,
    )
