"""
Tests for the queue worker.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

from shared.errors import RenderFailedError, RetryableError
from shared.models import AnalysisStatus, RenderRequest, VariantStatus
from api_gateway import worker


@pytest.fixture
def repository():
    repository = MagicMock()
    repository.update_analysis = AsyncMock()
    repository.update_variant_progress = AsyncMock()
    with patch.object(worker, "repository", repository):
        yield repository


@pytest.fixture
def publisher():
    publisher = MagicMock()
    publisher.publish = AsyncMock()
    with patch.object(worker, "publisher", publisher):
        yield publisher


def _render_job():
    request = RenderRequest(variant_id=uuid4(), project_id=uuid4(), variant_index=0, bindings=[])
    return {
        "job_type": "render",
        "job_id": str(request.variant_id),
        "project_id": str(request.project_id),
        "request": request.model_dump(mode="json"),
    }


@pytest.mark.asyncio
async def test_process_analysis_job(repository):
    job = {"job_type": "analysis", "job_id": "a1", "analysis_id": "a1",
           "source_url": "https://cdn.example.com/ad.mp4", "brand_id": "b1"}

    with patch("api_gateway.worker.process_analysis", new_callable=AsyncMock) as process:
        await worker.process_job(job)

    process.assert_awaited_once_with(
        "a1", "https://cdn.example.com/ad.mp4", brand_id="b1", repository=repository
    )


@pytest.mark.asyncio
async def test_process_render_job_parses_request(repository):
    job = _render_job()

    with patch("api_gateway.worker.render_variant", new_callable=AsyncMock) as render:
        await worker.process_job(job)

    request = render.call_args.args[0]
    assert isinstance(request, RenderRequest)
    assert str(request.variant_id) == job["job_id"]
    assert render.call_args.kwargs["repository"] is repository


@pytest.mark.asyncio
async def test_invalid_job_is_skipped(repository):
    with patch("api_gateway.worker.render_variant", new_callable=AsyncMock) as render:
        await worker.process_job({"job_type": "compose", "job_id": "x"})
        await worker.process_job({"job_type": "render"})

    render.assert_not_called()


@pytest.mark.asyncio
async def test_pipeline_error_is_logged_not_raised(repository, publisher):
    with patch("api_gateway.worker.render_variant", new_callable=AsyncMock,
               side_effect=RenderFailedError("Render render-1 failed")):
        await worker.process_job(_render_job())

    # The renderer already recorded the failure
    repository.update_variant_progress.assert_not_called()
    publisher.publish.assert_not_called()


@pytest.mark.asyncio
async def test_retryable_render_error_fails_variant(repository, publisher):
    job = _render_job()

    with patch("api_gateway.worker.render_variant", new_callable=AsyncMock,
               side_effect=RetryableError("Database operation failed after 3 attempts")):
        await worker.process_job(job)

    args, kwargs = repository.update_variant_progress.call_args
    assert args == (job["job_id"], VariantStatus.FAILED)
    assert "after 3 attempts" in kwargs["error_message"]
    event = publisher.publish.call_args.args[0]
    assert str(event.variant_id) == job["job_id"]
    assert event.status == VariantStatus.FAILED


@pytest.mark.asyncio
async def test_render_failure_announced_when_store_is_down(repository, publisher):
    repository.update_variant_progress.side_effect = RetryableError("store down")
    job = _render_job()

    with patch("api_gateway.worker.render_variant", new_callable=AsyncMock,
               side_effect=RetryableError("store down")):
        await worker.process_job(job)

    event = publisher.publish.call_args.args[0]
    assert event.status == VariantStatus.FAILED
    assert event.error == "store down"


@pytest.mark.asyncio
async def test_retryable_analysis_error_fails_analysis(repository, publisher):
    job = {"job_type": "analysis", "job_id": "a1", "analysis_id": "a1", "source_url": "https://cdn.example.com/ad.mp4"}

    with patch("api_gateway.worker.process_analysis", new_callable=AsyncMock,
               side_effect=RetryableError("openai down")):
        await worker.process_job(job)

    repository.update_analysis.assert_awaited_once_with(
        "a1", status=AnalysisStatus.FAILED, error_message="openai down"
    )
    publisher.publish.assert_not_called()


@pytest.mark.asyncio
async def test_malformed_render_request_fails_variant(repository, publisher):
    variant_id = str(uuid4())
    job = {"job_type": "render", "job_id": variant_id, "request": {"variant_id": "not-a-uuid"}}

    with patch("api_gateway.worker.render_variant", new_callable=AsyncMock) as render:
        await worker.process_job(job)

    render.assert_not_called()
    args, kwargs = repository.update_variant_progress.call_args
    assert args == (variant_id, VariantStatus.FAILED)
    assert "Malformed render request" in kwargs["error_message"]
    assert publisher.publish.call_args.args[0].status == VariantStatus.FAILED


@pytest.mark.asyncio
async def test_unexpected_error_marks_record_failed(repository, publisher):
    job = _render_job()

    with patch("api_gateway.worker.render_variant", new_callable=AsyncMock, side_effect=KeyError("boom")):
        await worker.process_job(job)

    args, kwargs = repository.update_variant_progress.call_args
    assert args == (job["job_id"], VariantStatus.FAILED)
    assert "Unexpected error" in kwargs["error_message"]


@pytest.mark.asyncio
async def test_mark_failed_analysis(repository):
    await worker.mark_failed("analysis", "a1", "Unexpected error: boom")

    repository.update_analysis.assert_awaited_once_with(
        "a1", status=AnalysisStatus.FAILED, error_message="Unexpected error: boom"
    )


@pytest.mark.asyncio
async def test_process_job_with_limit_cleans_up(repository, publisher):
    redis = MagicMock()
    redis.client.srem = AsyncMock()
    redis.client.delete = AsyncMock()
    job = _render_job()

    with patch.object(worker, "redis_client", redis), \
         patch("api_gateway.worker.render_variant", new_callable=AsyncMock, side_effect=RetryableError("down")):
        await worker.process_job_with_limit(job)

    redis.client.srem.assert_awaited_once_with(f"{worker.QUEUE_NAME}:processing", job["job_id"])
    redis.client.delete.assert_awaited_once_with(f"{worker.QUEUE_NAME}:job:{job['job_id']}")
