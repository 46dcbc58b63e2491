"""Easing curves, range interpolation and a closed-form spring.

Everything here is a pure function of its arguments so that any frame can be
recomputed in isolation.
"""
from __future__ import annotations

import math
from typing import Callable, Optional, Sequence

EasingFn = Callable[[float], float]

CLAMP = "clamp"
EXTEND = "extend"
IDENTITY = "identity"

_NEWTON_ITERATIONS = 8
_NEWTON_MIN_SLOPE = 1e-3
_SUBDIVISION_PRECISION = 1e-7
_SUBDIVISION_MAX_ITERATIONS = 12


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def lerp(start: float, end: float, t: float) -> float:
    return start + (end - start) * t


def cubic_bezier(x1: float, y1: float, x2: float, y2: float) -> EasingFn:
    """Return a CSS-style ``cubic-bezier(x1, y1, x2, y2)`` easing function."""
    if not (0.0 <= x1 <= 1.0 and 0.0 <= x2 <= 1.0):
        raise ValueError("bezier x values must be in [0, 1]")

    def _a(a1: float, a2: float) -> float:
        return 1.0 - 3.0 * a2 + 3.0 * a1

    def _b(a1: float, a2: float) -> float:
        return 3.0 * a2 - 6.0 * a1

    def _c(a1: float) -> float:
        return 3.0 * a1

    def _calc(t: float, a1: float, a2: float) -> float:
        return ((_a(a1, a2) * t + _b(a1, a2)) * t + _c(a1)) * t

    def _slope(t: float, a1: float, a2: float) -> float:
        return 3.0 * _a(a1, a2) * t * t + 2.0 * _b(a1, a2) * t + _c(a1)

    def _solve_t(x: float) -> float:
        guess = x
        for _ in range(_NEWTON_ITERATIONS):
            slope = _slope(guess, x1, x2)
            if abs(slope) < _NEWTON_MIN_SLOPE:
                break
            current = _calc(guess, x1, x2) - x
            guess -= current / slope
        if 0.0 <= guess <= 1.0 and abs(_calc(guess, x1, x2) - x) < _SUBDIVISION_PRECISION:
            return guess

        low, high = 0.0, 1.0
        guess = x
        for _ in range(_SUBDIVISION_MAX_ITERATIONS * 4):
            current = _calc(guess, x1, x2) - x
            if abs(current) < _SUBDIVISION_PRECISION:
                break
            if current > 0:
                high = guess
            else:
                low = guess
            guess = (low + high) / 2.0
        return guess

    def ease(t: float) -> float:
        if t <= 0.0:
            return 0.0
        if t >= 1.0:
            return 1.0
        if x1 == y1 and x2 == y2:
            return t
        return _calc(_solve_t(t), y1, y2)

    return ease


def linear(t: float) -> float:
    return t


def ease_out_cubic(t: float) -> float:
    return 1.0 - math.pow(1.0 - t, 3)


# Scene entry/exit transitions
TRANSITION_EASE = cubic_bezier(0.22, 1.0, 0.36, 1.0)
# Material standard curve used for Ken Burns progress
MATERIAL_EASE = cubic_bezier(0.4, 0.0, 0.2, 1.0)


def interpolate(
    value: float,
    input_range: Sequence[float],
    output_range: Sequence[float],
    *,
    easing: Optional[EasingFn] = None,
    extrapolate_left: str = EXTEND,
    extrapolate_right: str = EXTEND,
) -> float:
    """Map ``value`` through piecewise-linear ranges.

    ``input_range`` must be strictly increasing. Outside the range the result
    is extended linearly, clamped, or passed through according to the
    extrapolation modes. ``easing`` is applied to the progress inside the
    active segment.
    """
    if len(input_range) != len(output_range):
        raise ValueError("input_range and output_range must have the same length")
    if len(input_range) < 2:
        raise ValueError("ranges need at least two points")
    for left, right in zip(input_range, input_range[1:]):
        if right <= left:
            raise ValueError(f"input_range must be strictly increasing: {list(input_range)}")

    segment = len(input_range) - 2
    for index in range(1, len(input_range) - 1):
        if input_range[index] > value:
            segment = index - 1
            break
    in_lo, in_hi = input_range[segment], input_range[segment + 1]
    out_lo, out_hi = output_range[segment], output_range[segment + 1]

    if value < in_lo:
        if extrapolate_left == CLAMP:
            return float(out_lo)
        if extrapolate_left == IDENTITY:
            return float(value)
    if value > in_hi:
        if extrapolate_right == CLAMP:
            return float(out_hi)
        if extrapolate_right == IDENTITY:
            return float(value)

    progress = (value - in_lo) / (in_hi - in_lo)
    if easing is not None:
        progress = easing(progress)
    return out_lo + (out_hi - out_lo) * progress


def spring_progress(
    frame: float,
    fps: int,
    *,
    damping: float = 10.0,
    stiffness: float = 100.0,
    mass: float = 1.0,
) -> float:
    """Position of a damped spring released from 0 toward 1 at ``frame``.

    Closed-form solution of ``m x'' + c x' + k (x - 1) = 0`` with ``x(0) = 0``
    and ``x'(0) = 0``. Under-damped configurations overshoot past 1 before
    settling.
    """
    if fps <= 0:
        raise ValueError("fps must be positive")
    if mass <= 0 or stiffness <= 0:
        raise ValueError("mass and stiffness must be positive")
    t = max(0.0, float(frame)) / float(fps)
    if t == 0.0:
        return 0.0

    omega0 = math.sqrt(stiffness / mass)
    zeta = damping / (2.0 * math.sqrt(stiffness * mass))
    x0 = 1.0  # displacement from target at rest

    if zeta < 1.0:
        omega1 = omega0 * math.sqrt(1.0 - zeta * zeta)
        envelope = math.exp(-zeta * omega0 * t)
        offset = envelope * (
            math.sin(omega1 * t) * (zeta * omega0 * x0 / omega1) + x0 * math.cos(omega1 * t)
        )
        return 1.0 - offset
    if zeta == 1.0:
        envelope = math.exp(-omega0 * t)
        return 1.0 - envelope * (x0 + omega0 * x0 * t)

    root = math.sqrt(zeta * zeta - 1.0)
    r1 = -omega0 * (zeta - root)
    r2 = -omega0 * (zeta + root)
    c2 = -r1 * x0 / (r2 - r1)
    c1 = x0 - c2
    return 1.0 - (c1 * math.exp(r1 * t) + c2 * math.exp(r2 * t))
