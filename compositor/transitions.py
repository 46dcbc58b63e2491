"""Per-scene entry/exit transitions confined to short windows at each boundary."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional, Sequence

from .easing import TRANSITION_EASE, clamp, lerp
from .models import AspectRatio, Scene, TransitionKind

# Round-robin by scene position when a scene has no explicit transition
DEFAULT_ROTATION: Sequence[TransitionKind] = (
    TransitionKind.FADE,
    TransitionKind.SLIDE,
    TransitionKind.ZOOM,
    TransitionKind.FADE,
)

TRANSITION_FRAMES_AT_30FPS: Mapping[TransitionKind, int] = {
    TransitionKind.FADE: 15,
    TransitionKind.SLIDE: 12,
    TransitionKind.ZOOM: 18,
    TransitionKind.WIPE: 12,
}

SLIDE_DISTANCE_PERCENT = 100.0
ZOOM_ENTRY_SCALE = 0.5
ZOOM_EXIT_SCALE = 1.5


class TransitionPhase(str, Enum):
    ENTRY = "entry"
    HOLD = "hold"
    EXIT = "exit"


@dataclass(frozen=True)
class TransitionState:
    kind: TransitionKind
    phase: TransitionPhase
    opacity: float
    entry_opacity: float
    translate_x: float
    translate_y: float
    scale: float
    clip_width_percent: float

    @property
    def is_identity(self) -> bool:
        return (
            self.opacity == 1.0
            and self.translate_x == 0.0
            and self.translate_y == 0.0
            and self.scale == 1.0
            and self.clip_width_percent == 100.0
        )


def transition_for_scene(scene: Scene, index: int) -> TransitionKind:
    """Explicit override if present, else the default rotation by position."""
    if scene.transition is not None:
        return scene.transition
    return DEFAULT_ROTATION[index % len(DEFAULT_ROTATION)]


def transition_frames(
    kind: TransitionKind,
    fps: int,
    frames_at_30fps: Optional[Mapping[str, int]] = None,
) -> int:
    """Transition length for ``kind`` scaled from its 30 fps definition."""
    base = TRANSITION_FRAMES_AT_30FPS[kind]
    if frames_at_30fps and kind.value in frames_at_30fps:
        base = int(frames_at_30fps[kind.value])
    return max(1, int(round(base * fps / 30.0)))


def effective_window(duration: int, total_frames: int) -> int:
    """Clamp a transition window so entry and exit never overlap."""
    if total_frames <= 0:
        return 0
    return max(0, min(duration, total_frames // 2))


def _entry_progress(local_frame: int, window: int) -> float:
    if window <= 0:
        return 1.0
    return TRANSITION_EASE(clamp(local_frame / float(window)))


def _exit_progress(local_frame: int, window: int, total_frames: int) -> float:
    if window <= 0:
        return 0.0
    start = total_frames - window
    return TRANSITION_EASE(clamp((local_frame - start) / float(window)))


def compute_transition(
    kind: TransitionKind,
    local_frame: int,
    total_frames: int,
    *,
    aspect_ratio: AspectRatio = AspectRatio.LANDSCAPE,
    fps: int = 30,
    symmetric_fade: bool = False,
    frames_at_30fps: Optional[Mapping[str, int]] = None,
) -> TransitionState:
    """Scene-container transform for ``local_frame`` of a ``total_frames`` scene.

    Scene opacity follows the exit fade only; the entry fade is reported in
    ``entry_opacity`` and folded into ``opacity`` only when
    ``symmetric_fade`` is set, because abutting scenes would otherwise flash
    through black at every cut.
    """
    window = effective_window(transition_frames(kind, fps, frames_at_30fps), total_frames)
    in_entry = window > 0 and local_frame < window
    in_exit = window > 0 and local_frame >= total_frames - window

    entry = _entry_progress(local_frame, window)
    exit_ = _exit_progress(local_frame, window, total_frames)

    phase = TransitionPhase.HOLD
    if in_exit:
        phase = TransitionPhase.EXIT
    elif in_entry:
        phase = TransitionPhase.ENTRY

    exit_opacity = 1.0 - exit_
    entry_opacity = entry
    opacity = exit_opacity * entry_opacity if symmetric_fade else exit_opacity

    translate_x = 0.0
    translate_y = 0.0
    scale = 1.0
    clip_width = 100.0

    if kind is TransitionKind.SLIDE:
        if in_exit:
            offset = lerp(0.0, SLIDE_DISTANCE_PERCENT, exit_)
        elif in_entry:
            offset = lerp(SLIDE_DISTANCE_PERCENT, 0.0, entry)
        else:
            offset = 0.0
        if aspect_ratio.is_vertical:
            translate_y = offset
        else:
            translate_x = offset
    elif kind is TransitionKind.ZOOM:
        if in_exit:
            scale = lerp(1.0, ZOOM_EXIT_SCALE, exit_)
        elif in_entry:
            scale = lerp(ZOOM_ENTRY_SCALE, 1.0, entry)
    elif kind is TransitionKind.WIPE:
        if in_entry:
            clip_width = lerp(0.0, 100.0, entry)
    elif kind is not TransitionKind.FADE:
        raise TypeError(f"Unhandled transition kind: {kind!r}")

    return TransitionState(
        kind=kind,
        phase=phase,
        opacity=opacity,
        entry_opacity=entry_opacity,
        translate_x=translate_x,
        translate_y=translate_y,
        scale=scale,
        clip_width_percent=clip_width,
    )
