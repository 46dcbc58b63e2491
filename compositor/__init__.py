"""Deterministic scene timeline and per-frame animation engine.

Scenes are laid end-to-end on a frame timeline, re-stitched when measured
narration durations arrive, and rendered frame by frame into serializable
``VisualTree`` descriptions for an external player or encoder.
"""

__all__ = [
    "models",
    "errors",
    "easing",
    "seeded_random",
    "text_splitter",
    "transitions",
    "ken_burns",
    "text_reveal",
    "assets",
    "audio_mixer",
    "overlays",
    "bookends",
    "visual_tree",
    "renderer",
    "reconciler",
    "project_store",
    "synthesis",
    "script_loader",
    "raster_preview",
]
