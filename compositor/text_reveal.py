"""Text reveal modes: instant, audio-synchronised typewriter and word bounce.

All functions are pure in ``(text, mode, local_frame, total_frames)``; seeking
to any frame reproduces identical spans. Empty text yields no spans.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from animation_config import TextRevealProfile

from .easing import CLAMP, interpolate, spring_progress
from .models import EMOTION_ACCENT_COLORS, Emotion, TextDisplayMode
from .text_splitter import split_characters, split_reveal_units, split_word_chunks

DEFAULT_COLOR = "#FFFFFF"
EMPHASIS_COLOR = "#fef08a"
EMPHASIS_GLOW = 25.0
DEFAULT_ACCENT = EMOTION_ACCENT_COLORS[Emotion.NEUTRAL]

TYPEWRITER_FADE_FRAMES = 3
TYPEWRITER_SCALE_FRAMES = 4
CARET_BLINK_RATE = 0.3

BOUNCE_SPRING = {"damping": 8.0, "stiffness": 180.0, "mass": 0.6}
SUBTITLE_SPRING = {"damping": 15.0, "stiffness": 300.0, "mass": 0.3}
SUBTITLE_START_SECONDS = 0.2
SUBTITLE_FRAMES_PER_CHAR = 2
SUBTITLE_CARET_SECONDS = 0.5
SUBTITLE_CARET_BLINK_FRAMES = 10


@dataclass(frozen=True)
class TextSpan:
    index: int
    text: str
    opacity: float
    scale: float = 1.0
    translate_y: float = 0.0
    rotation: float = 0.0
    color: str = DEFAULT_COLOR
    font_weight: int = 800
    glow: float = 0.0
    emphasis: bool = False


@dataclass(frozen=True)
class Caret:
    after_index: int
    visible: bool
    color: str


@dataclass(frozen=True)
class TextRevealState:
    mode: TextDisplayMode
    spans: Tuple[TextSpan, ...] = ()
    caret: Optional[Caret] = None

    @property
    def is_empty(self) -> bool:
        return not self.spans

    def visible_units(self) -> List[str]:
        return [span.text for span in self.spans if span.opacity > 0.0]


@dataclass(frozen=True)
class TypewriterSchedule:
    unit_count: int
    frames_per_unit: int
    start_delay: int
    budget: int
    start_frames: Tuple[int, ...]

    def start_frame(self, index: int) -> int:
        return self.start_frames[index]


def typewriter_schedule(
    unit_count: int,
    total_frames: int,
    *,
    fps: int = 30,
    start_delay_seconds: float = 0.1,
    reveal_fraction: float = 0.9,
) -> TypewriterSchedule:
    """Reveal start frame for each unit of a sync-typewriter scene.

    ``frames_per_unit = floor(reveal_fraction * total_frames / unit_count)``
    (at least 1), leaving the tail of the scene with the full text on screen.
    The start delay shrinks when needed so the last unit always starts by
    ``floor(reveal_fraction * total_frames)``. When units outnumber the
    budget, several units share a frame.
    """
    budget = max(0, int(math.floor(reveal_fraction * total_frames)))
    if unit_count <= 0:
        return TypewriterSchedule(0, 1, 0, budget, ())

    frames_per_unit = max(1, budget // unit_count)
    span = (unit_count - 1) * frames_per_unit
    requested_delay = int(round(start_delay_seconds * fps))

    if span > budget:
        divisor = max(1, unit_count - 1)
        starts = tuple((index * budget) // divisor for index in range(unit_count))
        return TypewriterSchedule(unit_count, frames_per_unit, 0, budget, starts)

    delay = max(0, min(requested_delay, budget - span))
    starts = tuple(delay + index * frames_per_unit for index in range(unit_count))
    return TypewriterSchedule(unit_count, frames_per_unit, delay, budget, starts)


def is_emphasis(word: str, emphasis_words: Iterable[str]) -> bool:
    """A chunk is emphasised when it contains, or is contained in, an emphasis word."""
    if not word:
        return False
    return any(candidate and (candidate in word or word in candidate) for candidate in emphasis_words)


def _instant(text: str) -> TextRevealState:
    trimmed = (text or "").strip()
    if not trimmed:
        return TextRevealState(TextDisplayMode.INSTANT)
    return TextRevealState(TextDisplayMode.INSTANT, (TextSpan(index=0, text=trimmed, opacity=1.0),))


def _sync_typewriter(
    text: str,
    local_frame: int,
    total_frames: int,
    fps: int,
    accent_color: str,
    profile: TextRevealProfile,
) -> TextRevealState:
    units = split_reveal_units(text)
    if not units:
        return TextRevealState(TextDisplayMode.SYNC_TYPEWRITER)

    schedule = typewriter_schedule(
        len(units),
        total_frames,
        fps=fps,
        start_delay_seconds=profile.start_delay_seconds,
        reveal_fraction=profile.reveal_fraction,
    )

    spans: List[TextSpan] = []
    caret_index: Optional[int] = None
    for index, unit in enumerate(units):
        start = schedule.start_frames[index]
        elapsed = local_frame - start
        visible = elapsed >= 0
        if visible:
            opacity = interpolate(elapsed, [0, TYPEWRITER_FADE_FRAMES], [0.0, 1.0], extrapolate_right=CLAMP)
            scale = interpolate(elapsed, [0, TYPEWRITER_SCALE_FRAMES], [0.8, 1.0], extrapolate_right=CLAMP)
            is_last = index == len(units) - 1 or local_frame < schedule.start_frames[index + 1]
            if is_last:
                caret_index = index
        else:
            opacity = 0.0
            scale = 0.8
        spans.append(TextSpan(index=index, text=unit, opacity=opacity, scale=scale, font_weight=900))

    caret = None
    if caret_index is not None:
        caret = Caret(
            after_index=caret_index,
            visible=math.sin(local_frame * CARET_BLINK_RATE) > 0,
            color=accent_color,
        )
    return TextRevealState(TextDisplayMode.SYNC_TYPEWRITER, tuple(spans), caret)


def word_start_frame(index: int, fps: int, profile: TextRevealProfile) -> float:
    return profile.word_delay_seconds * fps + index * profile.word_stagger_seconds * fps


def _word_bounce(
    text: str,
    local_frame: int,
    fps: int,
    emphasis_words: Iterable[str],
    profile: TextRevealProfile,
) -> TextRevealState:
    chunks = split_word_chunks(text, profile.dense_chunk_size)
    if not chunks:
        return TextRevealState(TextDisplayMode.WORD_BOUNCE)

    emphasis_pool = tuple(emphasis_words)
    spans: List[TextSpan] = []
    for index, chunk in enumerate(chunks):
        elapsed = local_frame - word_start_frame(index, fps, profile)
        emphasised = is_emphasis(chunk, emphasis_pool)
        if elapsed >= 0:
            progress = spring_progress(elapsed, fps, **BOUNCE_SPRING)
            scale = interpolate(progress, [0.0, 0.5, 1.0], [0.0, 1.4, 1.0])
            translate_y = interpolate(progress, [0.0, 1.0], [-60.0, 0.0])
            rotation = interpolate(progress, [0.0, 0.5, 1.0], [-15.0, 5.0, 0.0])
            opacity = interpolate(progress, [0.0, 0.3], [0.0, 1.0], extrapolate_right=CLAMP)
        else:
            scale, translate_y, rotation, opacity = 0.0, -60.0, -15.0, 0.0
        spans.append(
            TextSpan(
                index=index,
                text=chunk,
                opacity=opacity,
                scale=scale,
                translate_y=translate_y,
                rotation=rotation,
                color=EMPHASIS_COLOR if emphasised else DEFAULT_COLOR,
                font_weight=900 if emphasised else 800,
                glow=EMPHASIS_GLOW if emphasised else 0.0,
                emphasis=emphasised,
            )
        )
    return TextRevealState(TextDisplayMode.WORD_BOUNCE, tuple(spans))


def compute_text_reveal(
    text: str,
    mode: TextDisplayMode,
    local_frame: int,
    total_frames: int,
    *,
    fps: int = 30,
    emphasis_words: Iterable[str] = (),
    accent_color: str = DEFAULT_ACCENT,
    profile: Optional[TextRevealProfile] = None,
) -> TextRevealState:
    """Center-text reveal state for one frame."""
    settings = profile or TextRevealProfile()
    if mode is TextDisplayMode.INSTANT:
        return _instant(text)
    if mode is TextDisplayMode.SYNC_TYPEWRITER:
        return _sync_typewriter(text, local_frame, total_frames, fps, accent_color, settings)
    if mode is TextDisplayMode.WORD_BOUNCE:
        return _word_bounce(text, local_frame, fps, emphasis_words, settings)
    raise TypeError(f"Unhandled text display mode: {mode!r}")


def reveal_schedule(
    text: str,
    total_frames: int,
    *,
    fps: int = 30,
    profile: Optional[TextRevealProfile] = None,
) -> TypewriterSchedule:
    """Typewriter schedule for ``text`` without rendering any frame."""
    settings = profile or TextRevealProfile()
    return typewriter_schedule(
        len(split_reveal_units(text)),
        total_frames,
        fps=fps,
        start_delay_seconds=settings.start_delay_seconds,
        reveal_fraction=settings.reveal_fraction,
    )


def compute_subtitle_reveal(
    text: str,
    local_frame: int,
    *,
    fps: int = 30,
    accent_color: str = DEFAULT_ACCENT,
) -> TextRevealState:
    """Bottom subtitle band: per-character pop-in with a short-lived caret."""
    chars = split_characters(text)
    if not chars:
        return TextRevealState(TextDisplayMode.SYNC_TYPEWRITER)

    spans: List[TextSpan] = []
    caret: Optional[Caret] = None
    last_index = len(chars) - 1
    for index, char in enumerate(chars):
        start = fps * SUBTITLE_START_SECONDS + index * SUBTITLE_FRAMES_PER_CHAR
        elapsed = local_frame - start
        if elapsed >= 0:
            progress = spring_progress(elapsed, fps, **SUBTITLE_SPRING)
            opacity = interpolate(progress, [0.0, 0.5], [0.0, 1.0], extrapolate_right=CLAMP)
            scale = interpolate(progress, [0.0, 0.5, 1.0], [0.5, 1.2, 1.0])
            translate_y = interpolate(progress, [0.0, 1.0], [10.0, 0.0])
            if index == last_index and elapsed < fps * SUBTITLE_CARET_SECONDS:
                blink_on = (local_frame // SUBTITLE_CARET_BLINK_FRAMES) % 2 == 0
                caret = Caret(after_index=index, visible=blink_on, color=accent_color)
        else:
            opacity, scale, translate_y = 0.0, 0.5, 10.0
        spans.append(
            TextSpan(index=index, text=char, opacity=opacity, scale=scale, translate_y=translate_y, font_weight=700)
        )
    return TextRevealState(TextDisplayMode.SYNC_TYPEWRITER, tuple(spans), caret)
