"""
Shotstack edit construction.
"""

from typing import Any, Dict, List, Optional

from shared.models import ClipBinding

OUTPUT_WIDTH = 1080
OUTPUT_HEIGHT = 1920
OUTPUT_FPS = 30


def build_edit(
    bindings: List[ClipBinding],
    clip_urls: List[str],
    voiceover_url: Optional[str] = None
) -> Dict[str, Any]:
    """
    Build a vertical 1080x1920 edit.

    Tracks, top to bottom: subtitle titles, B-roll clips, voice-over audio.
    ``clip_urls`` must line up with ``bindings`` sorted by order_index.

    Raises:
        ValueError: If the two lists differ in length
    """
    ordered = sorted(bindings, key=lambda b: b.order_index)
    if len(ordered) != len(clip_urls):
        raise ValueError(f"Expected {len(ordered)} clip URLs, got {len(clip_urls)}")

    video_clips: List[Dict[str, Any]] = []
    title_clips: List[Dict[str, Any]] = []
    start = 0.0
    for binding, url in zip(ordered, clip_urls):
        video_clips.append({
            "asset": {"type": "video", "src": url, "volume": 0},
            "start": start,
            "length": binding.duration,
            "fit": "cover",
        })
        title_clips.append({
            "asset": {
                "type": "title",
                "text": binding.text,
                "style": "minimal",
                "color": "#ffffff",
                "size": "medium",
                "background": "#000000",
                "position": "bottom",
            },
            "start": start,
            "length": binding.duration,
        })
        start += binding.duration

    tracks: List[Dict[str, Any]] = [{"clips": title_clips}, {"clips": video_clips}]
    if voiceover_url:
        tracks.append({
            "clips": [{
                "asset": {"type": "audio", "src": voiceover_url},
                "start": 0,
                "length": start,
            }]
        })

    return {
        "timeline": {"background": "#000000", "tracks": tracks},
        "output": {
            "format": "mp4",
            "aspectRatio": "9:16",
            "size": {"width": OUTPUT_WIDTH, "height": OUTPUT_HEIGHT},
            "fps": OUTPUT_FPS,
        },
    }
