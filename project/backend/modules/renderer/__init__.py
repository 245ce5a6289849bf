"""
Renderer module.

Turns a RenderRequest into a vertical MP4 plus SRT subtitles.
"""

from modules.renderer.process import ProgressReporter, render_variant
from modules.renderer.subtitles import format_srt_time, generate_srt
from modules.renderer.timeline import build_edit

__all__ = ["ProgressReporter", "render_variant", "format_srt_time", "generate_srt", "build_edit"]
