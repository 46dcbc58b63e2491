"""Background pan/zoom ("Ken Burns") for still images."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from .easing import MATERIAL_EASE, clamp, lerp
from .seeded_random import seed_from_text, smooth_noise


@dataclass(frozen=True)
class KenBurnsPattern:
    zoom: Tuple[float, float]
    pan_x: Tuple[float, float]
    pan_y: Tuple[float, float]


# Cycled by scene index so consecutive scenes never share a movement
KEN_BURNS_PATTERNS: Sequence[KenBurnsPattern] = (
    KenBurnsPattern(zoom=(1.0, 1.2), pan_x=(0.0, -10.0), pan_y=(0.0, -5.0)),  # zoom in, drift to bottom-right
    KenBurnsPattern(zoom=(1.2, 1.0), pan_x=(-10.0, 0.0), pan_y=(-5.0, 0.0)),  # zoom out, return
    KenBurnsPattern(zoom=(1.0, 1.15), pan_x=(0.0, 10.0), pan_y=(0.0, 0.0)),  # pan right
    KenBurnsPattern(zoom=(1.15, 1.0), pan_x=(10.0, 0.0), pan_y=(0.0, 0.0)),  # pan left
    KenBurnsPattern(zoom=(1.05, 1.2), pan_x=(-5.0, 5.0), pan_y=(-5.0, 5.0)),  # diagonal
    KenBurnsPattern(zoom=(1.1, 1.1), pan_x=(0.0, 0.0), pan_y=(-8.0, 8.0)),  # vertical, constant zoom
)

DEFAULT_BREATHING_AMPLITUDE = 0.02
DEFAULT_BREATHING_RATE = 0.015
# Jitter wanders over roughly two-second periods at 30 fps
_JITTER_FRAMES_PER_KNOT = 60.0


@dataclass(frozen=True)
class KenBurnsState:
    pattern_index: int
    progress: float
    zoom: float
    breathing: float
    pan_x: float
    pan_y: float

    @property
    def scale(self) -> float:
        return self.zoom * self.breathing

    @property
    def css_transform(self) -> str:
        return f"translate({self.pan_x:.4f}%, {self.pan_y:.4f}%) scale({self.scale:.6f})"


def pattern_for_index(scene_index: int) -> Tuple[int, KenBurnsPattern]:
    position = scene_index % len(KEN_BURNS_PATTERNS)
    return position, KEN_BURNS_PATTERNS[position]


def breathing_scale(
    local_frame: float,
    amplitude: float = DEFAULT_BREATHING_AMPLITUDE,
    rate: float = DEFAULT_BREATHING_RATE,
) -> float:
    """Slow sinusoidal scale so no frame is perceptibly static."""
    return 1.0 + amplitude * math.sin(local_frame * rate)


def compute_ken_burns(
    scene_index: int,
    local_frame: int,
    total_frames: int,
    *,
    seed_text: Optional[str] = None,
    breathing_amplitude: float = DEFAULT_BREATHING_AMPLITUDE,
    breathing_rate: float = DEFAULT_BREATHING_RATE,
    jitter_percent: float = 0.0,
) -> KenBurnsState:
    """Background transform for one frame.

    ``progress = material_ease(local_frame / total_frames)`` drives zoom and
    pan linearly between the pattern endpoints. When ``jitter_percent`` is
    non-zero, a smooth noise offset seeded from ``seed_text`` is added to the
    pan so that scenes sharing a pattern still drift differently.
    """
    pattern_index, pattern = pattern_for_index(scene_index)
    ratio = clamp(local_frame / float(total_frames)) if total_frames > 0 else 1.0
    progress = MATERIAL_EASE(ratio)

    zoom = lerp(pattern.zoom[0], pattern.zoom[1], progress)
    pan_x = lerp(pattern.pan_x[0], pattern.pan_x[1], progress)
    pan_y = lerp(pattern.pan_y[0], pattern.pan_y[1], progress)

    if jitter_percent > 0.0:
        seed = seed_from_text(seed_text or "", salt=f"ken-burns:{scene_index}")
        knot = local_frame / _JITTER_FRAMES_PER_KNOT
        pan_x += jitter_percent * smooth_noise(seed, knot)
        pan_y += jitter_percent * smooth_noise(seed ^ 0x5F3759DF, knot)

    return KenBurnsState(
        pattern_index=pattern_index,
        progress=progress,
        zoom=zoom,
        breathing=breathing_scale(local_frame, breathing_amplitude, breathing_rate),
        pan_x=pan_x,
        pan_y=pan_y,
    )
