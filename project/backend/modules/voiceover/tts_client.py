"""
Voice-over synthesis.

ElevenLabs text-to-speech over httpx; the resulting MP3 is stored in the
voiceovers bucket and referenced by path.
"""

from datetime import datetime
from typing import Dict, List, Optional, Union
from uuid import UUID

import httpx

from shared.config import settings
from shared.errors import ConfigError, RetryableError, TTSFailedError
from shared.logging import get_logger
from shared.models import Section, VoiceConfig
from shared.retry import retry_with_backoff
from shared.storage import StorageClient

logger = get_logger("voiceover")

# Voice name -> ElevenLabs voice id offered to the operator
AVAILABLE_VOICES: Dict[str, str] = {
    "Sarah": "EXAVITQu4vr4xnSDxMaL",
    "Laura": "FGY2WhTYpPnrIDTdsKH5",
    "Charlie": "IKne3meq5aSn9XLyUdCD",
    "George": "JBFqnCBsd6RMkjVDRZzb",
    "Aria": "9BWtsMINqrJLrRacOk9x",
    "Roger": "CwhRBWXzGAHq8TQ4Fs17",
}


def build_script(sections: List[Section]) -> str:
    """Full narration text, sections in order separated by blank lines."""
    ordered = sorted(sections, key=lambda s: s.order_index)
    return "\n\n".join(section.text.strip() for section in ordered if section.text.strip())


@retry_with_backoff(max_attempts=3, base_delay=2)
async def synthesize_speech(
    text: str,
    voice: VoiceConfig,
    job_id: Optional[Union[UUID, str]] = None
) -> bytes:
    """
    Call the text-to-speech API.

    Returns:
        MP3 audio bytes

    Raises:
        TTSFailedError: If the request is rejected
        RetryableError: On rate limits, 5xx responses and connection problems
    """
    if not settings.elevenlabs_api_key:
        raise ConfigError("ELEVENLABS_API_KEY is required for voice-over synthesis")
    if not text.strip():
        raise TTSFailedError("Cannot synthesize an empty script", job_id=job_id)

    url = f"{settings.elevenlabs_api_url}/text-to-speech/{voice.voice_id}"
    payload = {
        "text": text,
        "model_id": voice.model_id,
        "voice_settings": {
            "stability": voice.stability,
            "similarity_boost": voice.similarity_boost,
            "style": voice.style,
            "use_speaker_boost": voice.use_speaker_boost,
        },
    }
    headers = {
        "Accept": "audio/mpeg",
        "Content-Type": "application/json",
        "xi-api-key": settings.elevenlabs_api_key,
    }

    try:
        async with httpx.AsyncClient(timeout=httpx.Timeout(120.0, connect=15.0)) as client:
            response = await client.post(url, json=payload, headers=headers)
    except (httpx.ConnectError, httpx.TimeoutException) as e:
        raise RetryableError(f"Text-to-speech request failed: {str(e)}", job_id=job_id) from e

    if response.status_code == 429 or response.status_code >= 500:
        raise RetryableError(
            f"Text-to-speech API error {response.status_code}: {response.text[:200]}",
            job_id=job_id
        )
    if response.status_code >= 400:
        raise TTSFailedError(
            f"Text-to-speech API error {response.status_code}: {response.text[:200]}",
            job_id=job_id
        )
    if not response.content:
        raise TTSFailedError("Text-to-speech API returned no audio", job_id=job_id)
    return response.content


async def create_voiceover(
    project_id: Union[UUID, str],
    sections: List[Section],
    voice: VoiceConfig,
    storage: Optional[StorageClient] = None
) -> str:
    """
    Synthesize the narration for a project and store it.

    Returns:
        Storage path of the MP3 in the voiceovers bucket

    Raises:
        TTSFailedError: If synthesis fails for any reason
    """
    storage = storage or StorageClient()
    script = build_script(sections)
    try:
        audio = await synthesize_speech(script, voice, job_id=project_id)
    except RetryableError as e:
        raise TTSFailedError(f"Text-to-speech unavailable: {str(e)}", job_id=project_id) from e

    path = f"{project_id}/{int(datetime.utcnow().timestamp())}.mp3"
    try:
        await storage.upload_file(settings.voiceovers_bucket, path, audio, content_type="audio/mpeg")
    except RetryableError as e:
        raise TTSFailedError(f"Failed to store voice-over: {str(e)}", job_id=project_id) from e

    logger.info(
        "Voice-over created",
        extra={
            "project_id": str(project_id),
            "voice_id": voice.voice_id,
            "chars": len(script),
            "size": len(audio),
        }
    )
    return path
