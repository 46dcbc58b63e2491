"""Opening title card and ending card.

Both are pure functions of the project and the frame inside their window.
Floating particles are placed with seeded noise derived from the project
title, so two projects get different but reproducible particle fields.
"""
from __future__ import annotations

import math
from typing import List, Optional, Tuple

from .easing import CLAMP, ease_out_cubic, interpolate, spring_progress
from .models import EndingConfig, OpeningConfig, Project
from .seeded_random import hash_unit, scatter, seed_from_text
from .visual_tree import Layer

OPENING_PARTICLES = 20
ENDING_PARTICLES = 30
DEFAULT_CALL_TO_ACTION = "Thanks for watching"
TITLE_GLOW_COLOR = "rgba(147, 197, 253, 0.8)"


def _fade(frame: float, start: float, length: float, low: float = 0.0, high: float = 1.0) -> float:
    return interpolate(frame, [start, start + length], [low, high], extrapolate_left=CLAMP, extrapolate_right=CLAMP)


def _slide(frame: float, start: float, length: float, distance: float) -> float:
    return interpolate(
        frame,
        [start, start + length],
        [distance, 0.0],
        easing=ease_out_cubic,
        extrapolate_left=CLAMP,
        extrapolate_right=CLAMP,
    )


def opening_particles(title: str, local_frame: int, fps: int) -> List[dict]:
    seed = seed_from_text(title, salt="opening")
    particles = []
    for index in range(OPENING_PARTICLES):
        base = index * 5
        start_x = scatter(seed, base, 0.0, 100.0)
        start_y = scatter(seed, base + 1, 0.0, 100.0)
        speed = scatter(seed, base + 2, 0.5, 1.5)
        size = scatter(seed, base + 3, 2.0, 6.0)
        phase = hash_unit(seed, base + 4) * 2.0 * math.pi
        peak = 0.3 + hash_unit(seed, base + 4) * 0.3
        particles.append(
            {
                "x": start_x + math.sin(local_frame * 0.02 + phase) * 10.0,
                "y": (start_y + local_frame * speed * 0.5) % 120.0 - 10.0,
                "size": size,
                "opacity": _fade(local_frame, 0.0, fps * 0.5, 0.0, peak),
            }
        )
    return particles


def ending_particles(title: str, local_frame: int, fps: int) -> List[dict]:
    seed = seed_from_text(title, salt="ending")
    particles = []
    for index in range(ENDING_PARTICLES):
        base = index * 5
        start_x = scatter(seed, base, 0.0, 100.0)
        speed = scatter(seed, base + 1, 0.8, 2.3)
        size = scatter(seed, base + 2, 3.0, 8.0)
        hue = scatter(seed, base + 3, 0.0, 360.0)
        phase = hash_unit(seed, base + 4) * 2.0 * math.pi
        y = 110.0 - local_frame * speed * 0.8
        visible = 0.0 < y < 100.0
        particles.append(
            {
                "x": start_x + math.sin(local_frame * 0.03 + phase) * 15.0,
                "y": y,
                "size": size,
                "hue": hue,
                "opacity": _fade(local_frame, 0.0, fps * 0.5, 0.0, 0.6) if visible else 0.0,
            }
        )
    return particles


def render_opening(
    project: Project,
    local_frame: int,
    total_frames: int,
    fps: int,
) -> Tuple[List[Layer], float]:
    """Layers for the opening window and the container opacity."""
    config = project.opening or OpeningConfig()
    vertical = project.aspect_ratio.is_vertical
    f = local_frame

    layers: List[Layer] = [
        Layer(
            kind="opening_background",
            props={
                "gradient": "conic",
                "rotation": interpolate(f, [0, fps * 3], [0.0, 360.0]),
                "colors": ["#0f172a", "#1e293b"],
            },
        ),
        Layer(
            kind="light_beam",
            opacity=_fade(f, fps * 0.2, fps * 0.6, 0.0, 0.15),
            transform={"rotation": interpolate(f, [0, fps * 3], [-30.0, 30.0])},
        ),
        Layer(kind="particles", props={"particles": opening_particles(project.title, f, fps)}),
        Layer(
            kind="title",
            opacity=interpolate(f, [0, fps * 0.4], [0.0, 1.0], extrapolate_right=CLAMP),
            transform={
                "scale": spring_progress(f, fps, damping=12.0, stiffness=100.0),
                "translate_y": _slide(f, 0.0, fps * 0.5, 50.0),
            },
            props={
                "text": project.title,
                "font_size": "3.5rem" if vertical else "4.5rem",
                "glow": interpolate(math.sin(f * 0.1), [-1.0, 1.0], [20.0, 40.0]),
                "glow_color": TITLE_GLOW_COLOR,
            },
        ),
    ]

    if config.subtitle:
        delay = fps * 0.5
        layers.append(
            Layer(
                kind="subtitle",
                opacity=_fade(f, delay, fps * 0.3),
                transform={"translate_y": _slide(f, delay, fps * 0.4, 30.0)},
                props={"text": config.subtitle},
            )
        )

    layers.append(
        Layer(
            kind="accent_line",
            opacity=_fade(f, fps * 0.3, fps * 0.3),
            props={"width": _fade(f, fps * 0.3, fps * 0.5, 0.0, 200.0 if vertical else 300.0), "height": 3},
        )
    )
    corner_opacity = _fade(f, fps * 0.5, fps * 0.3)
    layers.append(Layer(kind="corner", opacity=corner_opacity, props={"anchor": "top-left", "size": 60}))
    layers.append(Layer(kind="corner", opacity=corner_opacity, props={"anchor": "bottom-right", "size": 60}))
    return layers, 1.0


def render_ending(
    project: Project,
    local_frame: int,
    total_frames: int,
    fps: int,
) -> Tuple[List[Layer], float]:
    """Layers for the ending window; the container fades out over the last half second."""
    config = project.ending or EndingConfig()
    f = local_frame
    fade_out = interpolate(
        f,
        [total_frames - fps * 0.5, total_frames],
        [1.0, 0.0],
        extrapolate_left=CLAMP,
        extrapolate_right=CLAMP,
    )
    title_delay = fps * 0.4
    cta_delay = fps * 0.8

    layers: List[Layer] = [
        Layer(
            kind="ending_background",
            props={"gradient_position": interpolate(f, [0, fps * 4], [0.0, 100.0])},
        ),
        Layer(kind="particles", props={"particles": ending_particles(project.title, f, fps)}),
        Layer(
            kind="call_to_action",
            opacity=interpolate(f, [0, fps * 0.3], [0.0, 1.0], extrapolate_right=CLAMP),
            transform={"scale": spring_progress(f, fps, damping=15.0, stiffness=80.0)},
            props={
                "text": config.call_to_action or DEFAULT_CALL_TO_ACTION,
                "glow": interpolate(math.sin(f * 0.08), [-1.0, 1.0], [15.0, 30.0]),
            },
        ),
        Layer(
            kind="title",
            opacity=_fade(f, title_delay, fps * 0.3),
            transform={"translate_y": _slide(f, title_delay, fps * 0.4, 30.0)},
            props={"text": project.title},
        ),
    ]
    channel: Optional[str] = config.channel_name
    if channel:
        layers.append(
            Layer(kind="channel_name", opacity=_fade(f, title_delay, fps * 0.3), props={"text": channel})
        )
    layers.append(
        Layer(
            kind="subscribe_button",
            opacity=_fade(f, cta_delay, fps * 0.3),
            transform={"scale": interpolate(math.sin((f - cta_delay) * 0.15), [-1.0, 1.0], [1.0, 1.05])},
        )
    )
    return layers, fade_out
