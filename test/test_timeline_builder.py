from __future__ import annotations

import math
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest

from compositor.errors import InvalidDurationError
from compositor.models import Project, Scene, WindowKind
from timeline_builder import build_project_timeline, build_timeline, seconds_to_frames, substitute_invalid_durations


def test_three_five_second_scenes_without_opening() -> None:
    plan = build_timeline([5, 5, 5], fps=30)
    assert plan.as_pairs() == [(0, 150), (150, 300), (300, 450)]
    assert plan.total_frames == 450


def test_windows_are_contiguous_with_opening_and_ending() -> None:
    plan = build_timeline([1.2, 2.0, 0.4], fps=30, opening_seconds=3.0, ending_seconds=4.0, scene_ids=["a", "b", "c"])
    kinds = [window.kind for window in plan.windows]
    assert kinds == [WindowKind.OPENING, WindowKind.SCENE, WindowKind.SCENE, WindowKind.SCENE, WindowKind.ENDING]
    assert plan.windows[0].start_frame == 0
    for left, right in zip(plan.windows, plan.windows[1:]):
        assert left.end_frame == right.start_frame
    assert plan.opening_frames == 90
    assert plan.total_frames == 90 + 36 + 60 + 12 + 120


def test_tiny_duration_still_takes_one_frame() -> None:
    plan = build_timeline([0.001], fps=30)
    assert plan.as_pairs() == [(0, 1)]


@pytest.mark.parametrize("bad", [0, -1.5, float("nan"), float("inf"), "abc", None])
def test_invalid_duration_is_rejected(bad) -> None:
    with pytest.raises(InvalidDurationError) as excinfo:
        build_timeline([2.0, bad], fps=30, scene_ids=["ok", "broken"])
    assert excinfo.value.scene_id == "broken"


def test_substitute_invalid_durations_uses_fallback() -> None:
    result = substitute_invalid_durations([2.0, 0, -3, float("nan")], 3.0)
    assert result == [2.0, 3.0, 3.0, 3.0]


def test_window_lookup_covers_every_frame() -> None:
    plan = build_timeline([1.0, 1.0], fps=10, opening_seconds=0.5, scene_ids=["x", "y"])
    assert plan.window_at(-1) is None
    assert plan.window_at(plan.total_frames) is None
    seen = [plan.window_at(frame) for frame in range(plan.total_frames)]
    assert all(window is not None for window in seen)
    assert plan.window_at(5).scene_id == "x"
    assert plan.window_at(14).scene_id == "x"
    assert plan.window_at(15).scene_id == "y"
    assert plan.window_for_scene("y").local_frame(20) == 5


def test_project_timeline_uses_project_bookends() -> None:
    project = Project(title="demo", scenes=(Scene("s1", 2.0), Scene("s2", 1.0)))
    plan = build_project_timeline(project)
    assert plan.as_pairs() == [(0, 60), (60, 90)]
    assert math.isclose(plan.total_seconds, 3.0)


def test_seconds_to_frames_rounds_to_nearest() -> None:
    assert seconds_to_frames(7.6, 30) == 228
    assert seconds_to_frames(0.016, 30) == 0


def test_many_fractional_scenes_do_not_drift() -> None:
    durations = [1.05] * 100
    plan = build_timeline(durations, fps=30)
    assert plan.total_frames == round(sum(durations) * 30) == 3150
    assert plan.scene_windows[2].start_frame == 63
    for index, window in enumerate(plan.scene_windows):
        assert abs(window.start_frame - sum(durations[:index]) * 30) <= 0.5


def test_ending_follows_cumulative_total() -> None:
    durations = [0.35] * 10
    plan = build_timeline(durations, fps=10, opening_seconds=1.0, ending_seconds=2.0)
    assert plan.windows[-1].kind is WindowKind.ENDING
    assert plan.total_frames == 10 + round((sum(durations) + 2.0) * 10)


def test_minimum_frame_pushes_later_boundaries() -> None:
    plan = build_timeline([0.001, 0.001, 1.0], fps=30)
    assert plan.as_pairs() == [(0, 1), (1, 2), (2, 30)]
