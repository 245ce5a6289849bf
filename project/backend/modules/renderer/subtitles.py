"""
SRT subtitle generation.

Sections are laid out back to back, each lasting its expected duration.
"""

from typing import List

from shared.models import ClipBinding


def format_srt_time(seconds: float) -> str:
    """Format seconds as HH:MM:SS,mmm."""
    total_ms = int(round(max(seconds, 0) * 1000))
    hours, remainder = divmod(total_ms, 3_600_000)
    minutes, remainder = divmod(remainder, 60_000)
    secs, millis = divmod(remainder, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"


def generate_srt(bindings: List[ClipBinding]) -> str:
    """Build SRT content with one cue per section, in script order."""
    cues = []
    current = 0.0
    for index, binding in enumerate(sorted(bindings, key=lambda b: b.order_index), start=1):
        start, end = current, current + binding.duration
        cues.append(f"{index}\n{format_srt_time(start)} --> {format_srt_time(end)}\n{binding.text}\n")
        current = end
    return "\n".join(cues)
