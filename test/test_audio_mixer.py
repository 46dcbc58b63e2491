from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest

from compositor.audio_mixer import AudioLayer, active_directives, build_audio_plan, sound_effect_offset
from compositor.models import BgmConfig, Project, Scene, SoundEffect, SoundTiming
from timeline_builder import build_project_timeline, build_timeline


def _project() -> Project:
    effects = (
        SoundEffect("whoosh", SoundTiming.START, volume=0.5, audio_ref="se/whoosh.mp3"),
        SoundEffect("ding", SoundTiming.MIDDLE, audio_ref="se/ding.mp3"),
        SoundEffect("tada", SoundTiming.END, volume=0.1, audio_ref="se/tada.mp3"),
        SoundEffect("rain", SoundTiming.THROUGHOUT, audio_ref="se/rain.mp3"),
        SoundEffect("silent", SoundTiming.START),
    )
    return Project(
        title="audio",
        scenes=(
            Scene("s1", 5.0, narration_audio_ref="voice/s1.wav", sound_effects=effects),
            Scene("s2", 5.0),
        ),
        bgm=BgmConfig(audio_ref="music/bed.mp3"),
    )


def test_directives_follow_scene_windows() -> None:
    project = _project()
    plan = build_audio_plan(project, build_project_timeline(project))
    s1 = {directive.audio_ref: directive for directive in plan.for_scene("s1")}

    narration = s1["voice/s1.wav"]
    assert narration.layer is AudioLayer.NARRATION
    assert (narration.start_frame, narration.end_frame) == (0, 150)
    assert narration.gain == pytest.approx(0.85)

    assert s1["se/whoosh.mp3"].start_frame == 0
    assert s1["se/whoosh.mp3"].gain == pytest.approx(0.20)
    assert s1["se/ding.mp3"].start_frame == 75
    assert s1["se/ding.mp3"].gain == pytest.approx(0.20)
    assert s1["se/tada.mp3"].start_frame == 120
    assert s1["se/tada.mp3"].gain == pytest.approx(0.1)
    assert s1["se/rain.mp3"].loop
    assert all(directive.end_frame == 150 for directive in s1.values())
    assert len(s1) == 5


def test_missing_narration_is_warned() -> None:
    project = _project()
    plan = build_audio_plan(project, build_project_timeline(project))
    assert [(warning.scene_id, warning.code) for warning in plan.warnings] == [("s2", "missing_narration")]


def test_bgm_spans_whole_project() -> None:
    project = _project()
    plan = build_audio_plan(project, build_project_timeline(project))
    bgm = [directive for directive in plan.directives if directive.layer is AudioLayer.BGM]
    assert len(bgm) == 1
    assert (bgm[0].start_frame, bgm[0].end_frame, bgm[0].loop) == (0, 300, True)
    assert bgm[0].gain == pytest.approx(0.12)


def test_active_directives_at_frame() -> None:
    project = _project()
    plan = build_audio_plan(project, build_project_timeline(project))
    refs = sorted(directive.audio_ref for directive in active_directives(plan, 100))
    assert refs == ["music/bed.mp3", "se/ding.mp3", "se/rain.mp3", "se/whoosh.mp3", "voice/s1.wav"]
    assert [directive.audio_ref for directive in active_directives(plan, 200)] == ["music/bed.mp3"]


def test_offsets_and_mismatch() -> None:
    assert sound_effect_offset(SoundTiming.END, 100) == 80
    assert sound_effect_offset(SoundTiming.THROUGHOUT, 100) == 0
    with pytest.raises(ValueError):
        build_audio_plan(_project(), build_timeline([1.0]))
