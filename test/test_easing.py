from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest

from compositor.easing import CLAMP, MATERIAL_EASE, TRANSITION_EASE, cubic_bezier, interpolate, spring_progress
from compositor.seeded_random import hash_unit, seed_from_text, smooth_noise


def test_bezier_endpoints_and_monotonic() -> None:
    for ease in (TRANSITION_EASE, MATERIAL_EASE):
        assert ease(0.0) == 0.0
        assert ease(1.0) == 1.0
        samples = [ease(step / 20) for step in range(21)]
        assert samples == sorted(samples)


def test_linear_bezier_is_identity() -> None:
    ease = cubic_bezier(0.25, 0.25, 0.75, 0.75)
    assert ease(0.3) == pytest.approx(0.3)


def test_interpolate_extends_or_clamps() -> None:
    assert interpolate(5, [0, 10], [0, 1]) == pytest.approx(0.5)
    assert interpolate(20, [0, 10], [0, 1]) == pytest.approx(2.0)
    assert interpolate(20, [0, 10], [0, 1], extrapolate_right=CLAMP) == 1.0
    assert interpolate(0.75, [0.0, 0.5, 1.0], [0.0, 1.4, 1.0]) == pytest.approx(1.2)


def test_interpolate_rejects_unsorted_ranges() -> None:
    with pytest.raises(ValueError):
        interpolate(0.5, [1, 0], [0, 1])


def test_spring_starts_at_zero_and_settles() -> None:
    assert spring_progress(0, 30) == 0.0
    assert spring_progress(300, 30, damping=12, stiffness=200, mass=0.5) == pytest.approx(1.0, abs=1e-3)


def test_underdamped_spring_overshoots() -> None:
    peak = max(spring_progress(frame, 30, damping=8, stiffness=180, mass=0.6) for frame in range(60))
    assert peak > 1.0


def test_seeded_noise_is_stable() -> None:
    seed = seed_from_text("scene text", salt="x")
    assert seed == seed_from_text("scene text", salt="x")
    assert seed != seed_from_text("scene text", salt="y")
    assert 0.0 <= hash_unit(seed, 3) < 1.0
    assert smooth_noise(seed, 2.0) == pytest.approx(smooth_noise(seed, 2.0))
    assert -1.0 <= smooth_noise(seed, 2.5) <= 1.0
