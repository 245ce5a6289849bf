"""
Source media transcription.

Downloads the media behind a source link and transcribes it with Whisper.
"""

from typing import Optional, Union
from urllib.parse import urlparse
from uuid import UUID

import httpx
from openai import AsyncOpenAI
from openai import APIError, RateLimitError, APITimeoutError
from pydantic import BaseModel

from shared.config import settings
from shared.errors import RetryableError, TranscriptionFailedError, ConfigError
from shared.logging import get_logger
from shared.retry import retry_with_backoff

logger = get_logger("transcription")

# Transcripts shorter than this are treated as "no speech"
MIN_TRANSCRIPT_CHARS = 50
MAX_MEDIA_BYTES = 25 * 1024 * 1024  # Whisper upload limit

_openai_client: Optional[AsyncOpenAI] = None


class TranscriptResult(BaseModel):
    text: str
    duration: Optional[float] = None
    language: Optional[str] = None
    segments_count: int = 0


def get_openai_client() -> AsyncOpenAI:
    """Get or create OpenAI async client."""
    global _openai_client
    if _openai_client is None:
        if not settings.openai_api_key:
            raise ConfigError("OPENAI_API_KEY is required for transcription")
        _openai_client = AsyncOpenAI(api_key=settings.openai_api_key)
    return _openai_client


def _filename_for(url: str) -> str:
    name = urlparse(url).path.rsplit("/", 1)[-1]
    return name if "." in name else "audio.mp4"


async def download_media(source_url: str, job_id: Optional[Union[UUID, str]] = None) -> bytes:
    """
    Fetch the media bytes behind ``source_url``.

    Raises:
        RetryableError: On connection problems and timeouts
        TranscriptionFailedError: When the link does not serve media
    """
    timeout = httpx.Timeout(300.0, connect=30.0)
    try:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            response = await client.get(source_url)
            response.raise_for_status()
    except (httpx.ConnectError, httpx.TimeoutException) as e:
        logger.warning(f"Media download failed: {str(e)}", extra={"url": source_url})
        raise RetryableError(f"Could not download source media: {str(e)}", job_id=job_id) from e
    except httpx.HTTPStatusError as e:
        raise TranscriptionFailedError(
            f"Could not download source media (HTTP {e.response.status_code})",
            job_id=job_id
        ) from e

    content_type = response.headers.get("content-type", "")
    if content_type.startswith("text/html"):
        raise TranscriptionFailedError(
            "This link points to a web page, not to a media file. "
            "Download the video and provide a direct link to the file instead.",
            job_id=job_id
        )
    if len(response.content) > MAX_MEDIA_BYTES:
        raise TranscriptionFailedError(
            f"Source media is too large to transcribe ({len(response.content) / (1024 * 1024):.1f} MB)",
            job_id=job_id
        )
    return response.content


@retry_with_backoff(max_attempts=3, base_delay=2)
async def _call_whisper_api(media: bytes, filename: str, job_id: Optional[Union[UUID, str]] = None):
    client = get_openai_client()
    try:
        return await client.audio.transcriptions.create(
            model=settings.transcription_model,
            file=(filename, media),
            response_format="verbose_json",
        )
    except RateLimitError as e:
        raise RetryableError(f"Rate limit error: {str(e)}", job_id=job_id) from e
    except APITimeoutError as e:
        raise RetryableError(f"API timeout: {str(e)}", job_id=job_id) from e
    except APIError as e:
        status_code = getattr(e, "status_code", None)
        if status_code and status_code >= 500:
            raise RetryableError(f"Retryable API error: {str(e)}", job_id=job_id) from e
        raise TranscriptionFailedError(f"Transcription service rejected the media: {str(e)}", job_id=job_id) from e


async def transcribe(source_url: str, job_id: Optional[Union[UUID, str]] = None) -> TranscriptResult:
    """
    Transcribe the speech in a source video.

    Args:
        source_url: Direct media link
        job_id: Analysis id, for logging and errors

    Returns:
        TranscriptResult

    Raises:
        TranscriptionFailedError: If the media can't be used or contains too little speech
        RetryableError: If transient failures persist past the retry budget
    """
    media = await download_media(source_url, job_id=job_id)
    logger.info("Source media downloaded", extra={"analysis_id": str(job_id), "size": len(media)})

    response = await _call_whisper_api(media, _filename_for(source_url), job_id=job_id)
    text = (getattr(response, "text", None) or "").strip()
    if len(text) < MIN_TRANSCRIPT_CHARS:
        raise TranscriptionFailedError(
            "No usable speech was found in this video",
            job_id=job_id
        )

    segments = getattr(response, "segments", None) or []
    result = TranscriptResult(
        text=text,
        duration=getattr(response, "duration", None),
        language=getattr(response, "language", None),
        segments_count=len(segments),
    )
    logger.info(
        "Transcription completed",
        extra={"analysis_id": str(job_id), "chars": len(text), "duration": result.duration}
    )
    return result
