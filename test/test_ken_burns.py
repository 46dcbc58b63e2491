from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest

from compositor.ken_burns import KEN_BURNS_PATTERNS, breathing_scale, compute_ken_burns, pattern_for_index


def test_pattern_endpoints() -> None:
    first = compute_ken_burns(0, 0, 150)
    last = compute_ken_burns(0, 150, 150)
    assert first.zoom == pytest.approx(1.0)
    assert (first.pan_x, first.pan_y) == (pytest.approx(0.0), pytest.approx(0.0))
    assert last.zoom == pytest.approx(1.2)
    assert last.pan_x == pytest.approx(-10.0)
    assert last.pan_y == pytest.approx(-5.0)


def test_patterns_cycle_by_scene_index() -> None:
    count = len(KEN_BURNS_PATTERNS)
    assert pattern_for_index(1) == pattern_for_index(1 + count)
    assert pattern_for_index(0)[1] != pattern_for_index(1)[1]


def test_breathing_keeps_frames_moving() -> None:
    assert breathing_scale(0) == 1.0
    values = {round(breathing_scale(frame), 6) for frame in range(0, 100, 10)}
    assert len(values) > 5
    assert all(0.98 <= value <= 1.02 for value in values)


def test_jitter_is_deterministic_and_bounded() -> None:
    a = compute_ken_burns(2, 45, 120, seed_text="hello", jitter_percent=0.5)
    b = compute_ken_burns(2, 45, 120, seed_text="hello", jitter_percent=0.5)
    plain = compute_ken_burns(2, 45, 120)
    assert a == b
    assert abs(a.pan_x - plain.pan_x) <= 0.5
    assert abs(a.pan_y - plain.pan_y) <= 0.5


def test_css_transform_contains_scale() -> None:
    state = compute_ken_burns(5, 10, 100)
    assert state.css_transform.startswith("translate(")
    assert "scale(" in state.css_transform
