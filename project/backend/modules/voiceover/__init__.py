"""
Voice-over module.

Text-to-speech narration for approved scripts.
"""

from modules.voiceover.tts_client import (
    AVAILABLE_VOICES,
    build_script,
    create_voiceover,
    synthesize_speech
)

__all__ = ["AVAILABLE_VOICES", "build_script", "create_voiceover", "synthesize_speech"]
