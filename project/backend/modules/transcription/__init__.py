"""
Transcription module.

Whisper transcription of source videos.
"""

from modules.transcription.whisper_client import transcribe, download_media, TranscriptResult

__all__ = ["transcribe", "download_media", "TranscriptResult"]
