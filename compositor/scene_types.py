"""Layer stacks for the special scene types: quiz, problem list and text-only.

These scenes replace the image/Ken Burns stack entirely. Each builder is a
pure function of the scene and the frame inside its window and returns the
layers plus the container opacity (every special scene fades itself out).
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .easing import CLAMP, ease_out_cubic, interpolate, spring_progress
from .models import Emotion, ProblemVariant, QuizTheme, Scene
from .seeded_random import hash_unit, scatter, seed_from_text
from .text_splitter import split_tokens
from .visual_tree import Layer

# Quiz timing, in seconds
QUIZ_QUESTION_DELAY = 0.3
QUIZ_CHOICE_START = 1.2
QUIZ_CHOICE_INTERVAL = 0.6
QUIZ_HIGHLIGHT_LEAD = 1.5
QUIZ_FADE_OUT = 0.3
QUIZ_PARTICLES = 20

# Problem timing, in seconds
PROBLEM_HEADLINE_DELAY = 0.2
PROBLEM_ITEM_START = 1.5
PROBLEM_ITEM_INTERVAL = 1.0
PROBLEM_FLASH_PERIOD = 2.5
PROBLEM_FADE_OUT = 0.4
PROBLEM_EMOJIS = ("😰", "😟", "❓", "😣", "💭", "😔")
PROBLEM_EMOJI_COUNT = 12
PROBLEM_RED = "rgba(239, 68, 68, 1)"

TEXT_WORD_STAGGER_FRAMES = 3
TEXT_FADE_OUT = 0.3
TEXT_PARTICLES = 15


@dataclass(frozen=True)
class QuizPalette:
    gradient: Tuple[str, str, str]
    accent: str
    question_icon: str


QUIZ_PALETTES: Dict[QuizTheme, QuizPalette] = {
    QuizTheme.PROBLEM: QuizPalette(("#1a1a2e", "#16213e", "#0f3460"), "#ef4444", "😰"),
    QuizTheme.BENEFIT: QuizPalette(("#0f172a", "#064e3b", "#14532d"), "#22c55e", "✨"),
    QuizTheme.COMPARE: QuizPalette(("#1e1b4b", "#312e81", "#4c1d95"), "#8b5cf6", "🤔"),
    QuizTheme.QUIZ: QuizPalette(("#0c4a6e", "#0369a1", "#0284c7"), "#38bdf8", "❓"),
}


@dataclass(frozen=True)
class TextPalette:
    gradient: Tuple[str, str, str]
    accent: str
    text_color: str


TEXT_PALETTES: Dict[Emotion, TextPalette] = {
    Emotion.NEUTRAL: TextPalette(("#1e293b", "#0f172a", "#1e3a5f"), "rgba(147, 197, 253, 0.8)", "white"),
    Emotion.HAPPY: TextPalette(("#fef3c7", "#fcd34d", "#f59e0b"), "rgba(251, 191, 36, 1)", "#1e293b"),
    Emotion.SERIOUS: TextPalette(("#1e293b", "#312e81", "#1e1b4b"), "rgba(99, 102, 241, 0.8)", "white"),
    Emotion.EXCITED: TextPalette(("#831843", "#db2777", "#f472b6"), "rgba(244, 114, 182, 1)", "white"),
    Emotion.THOUGHTFUL: TextPalette(("#0f172a", "#4c1d95", "#7c3aed"), "rgba(139, 92, 246, 0.8)", "white"),
}


def _clamped(frame: float, start: float, end: float, low: float, high: float) -> float:
    return interpolate(frame, [start, end], [low, high], extrapolate_left=CLAMP, extrapolate_right=CLAMP)


def _fade_out(frame: int, total_frames: int, seconds: float, fps: int) -> float:
    return _clamped(frame, total_frames - fps * seconds, total_frames, 1.0, 0.0)


def _drifting_particles(
    seed: int,
    count: int,
    frame: int,
    *,
    speed_range: Tuple[float, float],
    size_range: Tuple[float, float],
    drift: float,
    wrap: float,
    sway: float,
    sway_rate: float,
    opacity: float,
) -> List[dict]:
    particles = []
    for index in range(count):
        base = index * 5
        start_x = scatter(seed, base, 0.0, 100.0)
        start_y = scatter(seed, base + 1, 0.0, 100.0)
        speed = scatter(seed, base + 2, *speed_range)
        phase = hash_unit(seed, base + 4) * 2.0 * math.pi
        particles.append(
            {
                "x": start_x + math.sin(frame * sway_rate + phase) * sway,
                "y": (start_y + frame * speed * drift) % wrap - (wrap - 100.0) / 2.0,
                "size": scatter(seed, base + 3, *size_range),
                "opacity": opacity,
            }
        )
    return particles


def _corners(opacity: float, color: str, size: int) -> List[Layer]:
    return [
        Layer(kind="corner", opacity=opacity, props={"anchor": "top-left", "size": size, "color": color}),
        Layer(kind="corner", opacity=opacity, props={"anchor": "bottom-right", "size": size, "color": color}),
    ]


# ----------------------------------------------------------------------
# Quiz
# ----------------------------------------------------------------------


def quiz_choice_start(index: int, fps: int) -> float:
    """Frame at which choice ``index`` starts its entrance."""
    return fps * (QUIZ_CHOICE_START + index * QUIZ_CHOICE_INTERVAL)


def quiz_highlight_start(total_frames: int, fps: int) -> float:
    return total_frames - fps * QUIZ_HIGHLIGHT_LEAD


def render_quiz(
    scene: Scene,
    local_frame: int,
    total_frames: int,
    fps: int,
    vertical: bool = False,
) -> Tuple[List[Layer], float]:
    """Question card, staggered choices, and the answer highlight near the end.

    The highlighted choice (``quiz_highlight_index``) pulses and glows from
    1.5 s before the end of the scene.
    """
    palette = QUIZ_PALETTES[scene.quiz_theme]
    f = local_frame
    question_delay = fps * QUIZ_QUESTION_DELAY
    highlight_at = quiz_highlight_start(total_frames, fps)

    layers: List[Layer] = [
        Layer(
            kind="scene_background",
            transform={
                "rotation": interpolate(f, [0, total_frames], [0.0, 15.0]),
                "scale": interpolate(math.sin(f * 0.02), [-1.0, 1.0], [1.0, 1.05]),
            },
            props={"gradient": list(palette.gradient), "direction": "135deg"},
        ),
        Layer(kind="radial_glow", props={"color": palette.accent, "center": [50, 30]}),
        Layer(
            kind="particles",
            props={
                "color": palette.accent,
                "particles": _drifting_particles(
                    seed_from_text(scene.scene_id, salt="quiz"),
                    QUIZ_PARTICLES,
                    f,
                    speed_range=(0.2, 0.6),
                    size_range=(3.0, 9.0),
                    drift=0.2,
                    wrap=110.0,
                    sway=10.0,
                    sway_rate=0.015,
                    opacity=interpolate(f, [0, fps * 0.5], [0.0, 0.4], extrapolate_right=CLAMP),
                ),
            },
        ),
    ]

    progress = spring_progress(max(0.0, f - question_delay), fps, damping=12.0, stiffness=100.0)
    shake = 0.0
    if scene.quiz_theme is QuizTheme.PROBLEM and f > question_delay + fps * 0.5:
        decay = interpolate(
            f, [question_delay + fps * 0.5, question_delay + fps * 1.5], [1.0, 0.0], extrapolate_right=CLAMP
        )
        shake = math.sin(f * 0.5) * 2.0 * decay
    layers.append(
        Layer(
            kind="quiz_question",
            opacity=interpolate(progress, [0.0, 0.3], [0.0, 1.0], extrapolate_right=CLAMP),
            transform={
                "translate_y": interpolate(progress, [0.0, 1.0], [30.0, 0.0]),
                "translate_x": shake,
                "scale": interpolate(progress, [0.0, 0.5, 1.0], [0.8, 1.1, 1.0]),
            },
            props={
                "text": scene.quiz_question or "",
                "icon": palette.question_icon,
                "accent_color": palette.accent,
                "font_size": "2rem" if vertical else "3rem",
            },
        )
    )

    for index, choice in enumerate(scene.quiz_choices):
        local = max(0.0, f - quiz_choice_start(index, fps))
        choice_progress = spring_progress(local, fps, damping=10.0, stiffness=150.0, mass=0.8)
        direction = -1.0 if index % 2 == 0 else 1.0
        highlighted = scene.quiz_highlight_index == index and f > highlight_at
        pulse = 1.0 + math.sin((f - highlight_at) * 0.3) * 0.08 if highlighted else 1.0
        glow = _clamped(f, highlight_at, highlight_at + fps * 0.3, 0.0, 1.0) if highlighted else 0.0
        layers.append(
            Layer(
                kind="quiz_choice",
                opacity=interpolate(choice_progress, [0.0, 0.3], [0.0, 1.0], extrapolate_right=CLAMP),
                transform={
                    "translate_x": interpolate(choice_progress, [0.0, 1.0], [80.0 * direction, 0.0]),
                    "scale": interpolate(choice_progress, [0.0, 0.5, 1.0], [0.0, 1.15, 1.0]) * pulse,
                    "rotation": interpolate(
                        choice_progress, [0.0, 0.5, 1.0], [direction * 10.0, direction * -3.0, 0.0]
                    ),
                },
                props={
                    "index": index,
                    "label": choice.icon or chr(65 + index),
                    "text": choice.text,
                    "highlighted": highlighted,
                    "glow": glow,
                    "accent_color": palette.accent,
                },
            )
        )

    layers.extend(_corners(_clamped(f, fps * 0.5, fps * 0.8, 0.0, 0.8), palette.accent, 60))
    return layers, _fade_out(f, total_frames, QUIZ_FADE_OUT, fps)


# ----------------------------------------------------------------------
# Problem list
# ----------------------------------------------------------------------


def problem_item_start(index: int, fps: int) -> float:
    return fps * (PROBLEM_ITEM_START + index * PROBLEM_ITEM_INTERVAL)


def problem_flash_opacity(local_frame: int, fps: int) -> float:
    """Brief white flash at the start of every 2.5 s period."""
    period = fps * PROBLEM_FLASH_PERIOD
    since = local_frame - math.floor(local_frame / period) * period
    if since >= fps * 0.1:
        return 0.0
    return interpolate(since, [0.0, fps * 0.05, fps * 0.1], [0.0, 0.3, 0.0])


def render_problem(
    scene: Scene,
    local_frame: int,
    total_frames: int,
    fps: int,
    vertical: bool = False,
) -> Tuple[List[Layer], float]:
    """Headline followed by problem items landing one per second."""
    f = local_frame
    variant = scene.problem_variant
    headline_delay = fps * PROBLEM_HEADLINE_DELAY
    pulse = interpolate(math.sin(f * 0.08), [-1.0, 1.0], [0.8, 1.0])

    seed = seed_from_text(scene.scene_id, salt="problem")
    emoji_opacity = interpolate(f, [0, fps * 0.8], [0.0, 0.5], extrapolate_right=CLAMP)
    emojis = []
    for index, particle in enumerate(
        _drifting_particles(
            seed,
            PROBLEM_EMOJI_COUNT,
            f,
            speed_range=(0.15, 0.45),
            size_range=(24.0, 24.0) if vertical else (32.0, 32.0),
            drift=0.15,
            wrap=130.0,
            sway=15.0,
            sway_rate=0.012,
            opacity=emoji_opacity,
        )
    ):
        particle["emoji"] = PROBLEM_EMOJIS[index % len(PROBLEM_EMOJIS)]
        particle["rotation"] = math.sin(f * 0.02 + index) * 20.0
        emojis.append(particle)

    layers: List[Layer] = [
        Layer(
            kind="scene_background",
            transform={"scale": interpolate(math.sin(f * 0.03), [-1.0, 1.0], [1.0, 1.08])},
            props={"gradient": "radial", "center_color": f"rgba(127, 29, 29, {0.3 * pulse})"},
        ),
        Layer(kind="flash", opacity=problem_flash_opacity(f, fps), props={"color": "white"}),
        Layer(
            kind="vignette",
            props={"shape": "ellipse", "stops": [{"at": 0.3, "alpha": 0.0}, {"at": 1.0, "alpha": 0.8}]},
        ),
        Layer(kind="particles", props={"particles": emojis}),
    ]

    progress = spring_progress(max(0.0, f - headline_delay), fps, damping=10.0, stiffness=80.0)
    shake = 0.0
    if variant in (ProblemVariant.SHAKE, ProblemVariant.DRAMATIC):
        decay = interpolate(f, [headline_delay + fps, headline_delay + fps * 2], [1.0, 0.0], extrapolate_right=CLAMP)
        shake = math.sin(f * 0.6) * 3.0 * decay
    layers.append(
        Layer(
            kind="problem_headline",
            opacity=interpolate(progress, [0.0, 0.3], [0.0, 1.0], extrapolate_right=CLAMP),
            transform={
                "translate_y": interpolate(progress, [0.0, 1.0], [-50.0, 0.0]),
                "translate_x": shake,
                "scale": interpolate(progress, [0.0, 0.5, 1.0], [0.5, 1.2, 1.0]),
            },
            props={
                "text": scene.problem_headline or "",
                "color": "#fecaca",
                "glow_color": PROBLEM_RED,
                "font_size": "2.2rem" if vertical else "3.5rem",
            },
        )
    )

    for index, item in enumerate(scene.problem_items):
        local = max(0.0, f - problem_item_start(index, fps))
        item_progress = spring_progress(local, fps, damping=8.0, stiffness=120.0, mass=0.7)
        direction = -1.0 if index % 2 == 0 else 1.0
        impact = 0.0
        if variant is ProblemVariant.DRAMATIC and 0 < local < fps * 0.3:
            impact = math.sin(local * 2.0) * 5.0 * (1.0 - local / (fps * 0.3))
        glow = math.sin((local - fps * 0.5) * 0.1) * 0.5 + 0.5 if local > fps * 0.5 else 0.0
        layers.append(
            Layer(
                kind="problem_item",
                opacity=interpolate(item_progress, [0.0, 0.2], [0.0, 1.0], extrapolate_right=CLAMP),
                transform={
                    "translate_x": interpolate(item_progress, [0.0, 1.0], [120.0 * direction, 0.0]) + impact,
                    "scale": interpolate(item_progress, [0.0, 0.4, 1.0], [0.0, 1.3, 1.0]),
                    "rotation": interpolate(
                        item_progress, [0.0, 0.5, 1.0], [direction * 15.0, direction * -5.0, 0.0]
                    ),
                },
                props={"index": index, "text": item, "marker": "✗", "glow": glow, "glow_color": PROBLEM_RED},
            )
        )

    layers.append(
        Layer(
            kind="border_glow",
            opacity=interpolate(f, [fps * 0.5, fps], [0.0, 1.0], extrapolate_left=CLAMP, extrapolate_right=CLAMP),
            props={"color": f"rgba(239, 68, 68, {0.2 + math.sin(f * 0.1) * 0.15})", "width": 3},
        )
    )
    return layers, _fade_out(f, total_frames, PROBLEM_FADE_OUT, fps)


# ----------------------------------------------------------------------
# Text only
# ----------------------------------------------------------------------


def render_text_only(
    scene: Scene,
    scene_index: int,
    local_frame: int,
    total_frames: int,
    fps: int,
    vertical: bool = False,
) -> Tuple[List[Layer], float]:
    """Subtitle words popping in three frames apart over an emotion-tinted gradient."""
    palette = TEXT_PALETTES[scene.emotion or Emotion.NEUTRAL]
    f = local_frame

    layers: List[Layer] = [
        Layer(
            kind="scene_background",
            transform={
                "rotation": interpolate(f, [0, total_frames], [0.0, 30.0]),
                "scale": interpolate(math.sin(f * 0.03), [-1.0, 1.0], [1.0, 1.05]),
            },
            props={"gradient": list(palette.gradient), "direction": "135deg"},
        ),
        Layer(kind="radial_glow", props={"color": palette.accent, "center": [50, 50]}),
        Layer(
            kind="particles",
            props={
                "color": palette.accent,
                "particles": _drifting_particles(
                    seed_from_text(f"{scene_index}:{scene.scene_id}", salt="text-only"),
                    TEXT_PARTICLES,
                    f,
                    speed_range=(0.3, 0.8),
                    size_range=(4.0, 12.0),
                    drift=0.3,
                    wrap=120.0,
                    sway=8.0,
                    sway_rate=0.02,
                    opacity=interpolate(f, [0, fps * 0.3], [0.0, 0.4], extrapolate_right=CLAMP),
                ),
            },
        ),
    ]

    line_width = _clamped(f, fps * 0.2, fps * 0.6, 0.0, 200.0 if vertical else 400.0)
    for anchor in ("top", "bottom"):
        layers.append(
            Layer(
                kind="accent_line",
                opacity=0.6,
                props={
                    "anchor": anchor,
                    "offset_percent": 10.0,
                    "width": line_width,
                    "height": 2,
                    "color": palette.accent,
                },
            )
        )

    words = split_tokens(scene.subtitle_text)
    spans = [_word_span(word, index, f, fps, palette) for index, word in enumerate(words)]
    if spans:
        layers.append(
            Layer(
                kind="center_text",
                props={
                    "mode": "text-only",
                    "spans": spans,
                    "color": palette.text_color,
                    "font_size": "2.5rem" if vertical else "3.5rem",
                },
            )
        )

    layers.extend(_corners(_clamped(f, fps * 0.3, fps * 0.5, 0.0, 0.6), palette.accent, 50))
    return layers, _fade_out(f, total_frames, TEXT_FADE_OUT, fps)


def _word_span(word: str, index: int, frame: int, fps: int, palette: TextPalette) -> dict:
    delay = index * TEXT_WORD_STAGGER_FRAMES
    # Every fourth word after the first gets a slow pulse and glow
    emphasized = index > 0 and index % 4 == 0
    pulse = interpolate(math.sin((frame - delay) * 0.1), [-1.0, 1.0], [1.0, 1.05]) if emphasized else 1.0
    glow: Optional[str] = palette.accent if emphasized else None
    return {
        "text": word,
        "color": palette.text_color,
        "opacity": _clamped(frame, delay, delay + 8, 0.0, 1.0),
        "scale": spring_progress(max(0, frame - delay), fps, damping=12.0, stiffness=200.0) * pulse,
        "translate_y": interpolate(
            frame,
            [delay, delay + 10],
            [20.0, 0.0],
            easing=ease_out_cubic,
            extrapolate_left=CLAMP,
            extrapolate_right=CLAMP,
        ),
        "glow_color": glow,
    }
