"""
Tests for Shotstack edit construction.
"""

import pytest
from uuid import uuid4

from modules.renderer import build_edit
from shared.models import ClipBinding


def _binding(order_index, duration):
    return ClipBinding(
        section_id=uuid4(), section_type="hook", order_index=order_index, text=f"Line {order_index}",
        asset_id=uuid4(), storage_path=f"clips/{order_index}.mp4", duration=duration,
    )


def test_build_edit_lays_clips_back_to_back():
    bindings = [_binding(1, 2.0), _binding(0, 3.0)]

    edit = build_edit(bindings, ["https://signed/0.mp4", "https://signed/1.mp4"], "https://signed/vo.mp3")

    titles, videos, audio = edit["timeline"]["tracks"]
    assert [c["asset"]["src"] for c in videos["clips"]] == ["https://signed/0.mp4", "https://signed/1.mp4"]
    assert [(c["start"], c["length"]) for c in videos["clips"]] == [(0.0, 3.0), (3.0, 2.0)]
    assert all(c["asset"]["volume"] == 0 for c in videos["clips"])
    assert [c["asset"]["text"] for c in titles["clips"]] == ["Line 0", "Line 1"]
    assert audio["clips"][0]["asset"] == {"type": "audio", "src": "https://signed/vo.mp3"}
    assert audio["clips"][0]["length"] == 5.0
    assert edit["output"]["size"] == {"width": 1080, "height": 1920}
    assert edit["output"]["aspectRatio"] == "9:16"


def test_build_edit_without_voiceover():
    edit = build_edit([_binding(0, 3.0)], ["https://signed/0.mp4"])

    assert len(edit["timeline"]["tracks"]) == 2


def test_build_edit_url_mismatch():
    with pytest.raises(ValueError, match="Expected 2 clip URLs"):
        build_edit([_binding(0, 1.0), _binding(1, 1.0)], ["https://signed/0.mp4"])
