"""
Shotstack render API client.
"""

from typing import Any, Dict, Optional, Union
from uuid import UUID

import httpx
from pydantic import BaseModel

from shared.config import settings
from shared.errors import ConfigError, RenderFailedError, RenderSubmissionError, RetryableError
from shared.logging import get_logger
from shared.retry import retry_with_backoff

logger = get_logger("renderer.shotstack")

RENDER_DONE = "done"
RENDER_FAILED = "failed"


class RenderStatus(BaseModel):
    """Status of a submitted render."""

    render_id: str
    status: str
    url: Optional[str] = None
    error: Optional[str] = None

    @property
    def finished(self) -> bool:
        return self.status in (RENDER_DONE, RENDER_FAILED)


def _headers() -> Dict[str, str]:
    if not settings.shotstack_api_key:
        raise ConfigError("SHOTSTACK_API_KEY is required for rendering")
    return {"x-api-key": settings.shotstack_api_key, "Content-Type": "application/json"}


def _raise_for_status(response: httpx.Response, action: str, job_id: Optional[Union[UUID, str]]) -> None:
    if response.status_code == 429 or response.status_code >= 500:
        raise RetryableError(
            f"Shotstack {action} error {response.status_code}: {response.text[:200]}",
            job_id=job_id
        )
    if response.status_code >= 400:
        raise RenderSubmissionError(
            f"Shotstack {action} rejected ({response.status_code}): {response.text[:200]}",
            job_id=job_id
        )


@retry_with_backoff(max_attempts=3, base_delay=2)
async def submit_render(edit: Dict[str, Any], job_id: Optional[Union[UUID, str]] = None) -> str:
    """
    Submit an edit for rendering.

    Returns:
        Shotstack render id

    Raises:
        RenderSubmissionError: If the edit is rejected
        RetryableError: On rate limits, 5xx responses and connection problems
    """
    try:
        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.post(f"{settings.shotstack_api_url}/render", json=edit, headers=_headers())
    except (httpx.ConnectError, httpx.TimeoutException) as e:
        raise RetryableError(f"Shotstack submit failed: {str(e)}", job_id=job_id) from e

    _raise_for_status(response, "submit", job_id)
    render_id = (response.json().get("response") or {}).get("id")
    if not render_id:
        raise RenderSubmissionError("Shotstack returned no render id", job_id=job_id)

    logger.info("Render submitted", extra={"render_id": render_id, "job_id": str(job_id) if job_id else None})
    return render_id


@retry_with_backoff(max_attempts=3, base_delay=2)
async def get_render_status(render_id: str, job_id: Optional[Union[UUID, str]] = None) -> RenderStatus:
    try:
        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.get(f"{settings.shotstack_api_url}/render/{render_id}", headers=_headers())
    except (httpx.ConnectError, httpx.TimeoutException) as e:
        raise RetryableError(f"Shotstack status check failed: {str(e)}", job_id=job_id) from e

    _raise_for_status(response, "status", job_id)
    body = response.json().get("response") or {}
    return RenderStatus(
        render_id=render_id,
        status=body.get("status") or "queued",
        url=body.get("url"),
        error=body.get("error"),
    )


@retry_with_backoff(max_attempts=3, base_delay=2)
async def download_render(url: str, job_id: Optional[Union[UUID, str]] = None) -> bytes:
    """Fetch the rendered MP4."""
    try:
        async with httpx.AsyncClient(timeout=httpx.Timeout(300.0, connect=15.0), follow_redirects=True) as client:
            response = await client.get(url)
            response.raise_for_status()
    except (httpx.ConnectError, httpx.TimeoutException) as e:
        raise RetryableError(f"Failed to download render: {str(e)}", job_id=job_id) from e
    except httpx.HTTPStatusError as e:
        raise RenderFailedError(
            f"Rendered video could not be downloaded ({e.response.status_code})",
            job_id=job_id
        ) from e
    if not response.content:
        raise RenderFailedError("Rendered video is empty", job_id=job_id)
    return response.content
