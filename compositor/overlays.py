"""Atmosphere layers drawn over the scene background."""
from __future__ import annotations

from typing import List

from .easing import CLAMP, interpolate
from .visual_tree import Layer

NEUTRAL_GRADIENT = ("#1e293b", "#0f172a")  # slate-800 -> slate-900

LIGHT_BLOB_OPACITY = 0.3
LIGHT_BLOB_BLUR = 40
# (colour, x path px, y path px) interpolated across the scene
LIGHT_BLOBS = (
    ("rgba(59, 130, 246, 0.95)", (-100.0, 150.0), (80.0, -60.0)),
    ("rgba(236, 72, 153, 0.85)", (200.0, -150.0), (-40.0, 100.0)),
    ("rgba(34, 197, 94, 0.75)", (-30.0, 80.0), (150.0, 20.0)),
)

FILM_GRAIN_OPACITY = 0.05
FILM_GRAIN_TILE = 200

READABILITY_STOPS = ((0.0, 0.1), (0.5, 0.4), (1.0, 0.7))
VIGNETTE_STOPS = ((0.0, 0.0), (0.7, 0.4), (1.0, 0.7))

ACCENT_LINE_HEIGHT = 3


def neutral_background() -> Layer:
    """Fallback background when a scene has no image."""
    return Layer(
        kind="background",
        props={"source": None, "gradient": list(NEUTRAL_GRADIENT), "direction": "to bottom right"},
    )


def light_blobs(local_frame: int, total_frames: int) -> Layer:
    span = [0, max(1, total_frames)]
    blobs = []
    for color, x_path, y_path in LIGHT_BLOBS:
        blobs.append(
            {
                "color": color,
                "x": interpolate(local_frame, span, list(x_path)),
                "y": interpolate(local_frame, span, list(y_path)),
            }
        )
    return Layer(
        kind="light_blobs",
        opacity=LIGHT_BLOB_OPACITY,
        props={"blur": LIGHT_BLOB_BLUR, "blend": "screen", "blobs": blobs},
    )


def film_grain(local_frame: int, opacity: float = FILM_GRAIN_OPACITY) -> Layer:
    """Tiled noise whose offset drifts each frame so the texture never freezes."""
    return Layer(
        kind="film_grain",
        opacity=opacity,
        props={
            "blend": "overlay",
            "tile": FILM_GRAIN_TILE,
            "offset_x": (local_frame * 0.5) % FILM_GRAIN_TILE,
            "offset_y": (local_frame * 0.3) % FILM_GRAIN_TILE,
        },
    )


def readability_gradient() -> Layer:
    return Layer(
        kind="readability_gradient",
        props={"direction": "to bottom", "stops": [{"at": at, "alpha": alpha} for at, alpha in READABILITY_STOPS]},
    )


def vignette() -> Layer:
    return Layer(
        kind="vignette",
        props={"shape": "ellipse", "stops": [{"at": at, "alpha": alpha} for at, alpha in VIGNETTE_STOPS]},
    )


def accent_lines(local_frame: int, fps: int, accent_color: str, vertical: bool) -> List[Layer]:
    """Two thin lines that grow from the centre shortly after the scene starts."""
    full_width = 200.0 if vertical else 400.0
    top_width = interpolate(
        local_frame, [fps * 0.3, fps * 0.8], [0.0, full_width], extrapolate_left=CLAMP, extrapolate_right=CLAMP
    )
    bottom_width = interpolate(
        local_frame, [fps * 0.4, fps * 0.9], [0.0, full_width], extrapolate_left=CLAMP, extrapolate_right=CLAMP
    )
    return [
        Layer(
            kind="accent_line",
            props={
                "anchor": "top",
                "offset_percent": 20.0 if vertical else 15.0,
                "width": top_width,
                "height": ACCENT_LINE_HEIGHT,
                "color": accent_color,
            },
        ),
        Layer(
            kind="accent_line",
            props={
                "anchor": "bottom",
                "offset_percent": 35.0 if vertical else 25.0,
                "width": bottom_width,
                "height": ACCENT_LINE_HEIGHT,
                "color": accent_color,
            },
        ),
    ]
