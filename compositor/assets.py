"""Per-frame placement and entrance animation of decorative scene assets."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple

from .easing import clamp, interpolate, spring_progress
from .models import (
    AssetAnimation,
    IconAsset,
    LottieAsset,
    ShapeAsset,
    ShapeType,
    SvgAsset,
    TextAsset,
)

ASSET_SPRING = {"damping": 12.0, "stiffness": 200.0, "mass": 0.5}
SLIDE_DISTANCE_PX = 100.0
DEFAULT_STROKE_COLOR = "#1D4ED8"


@dataclass(frozen=True)
class AssetTransform:
    translate_x: float = 0.0
    translate_y: float = 0.0
    scale: float = 1.0
    rotation: float = 0.0

    @property
    def css(self) -> str:
        parts: List[str] = ["translate(-50%, -50%)"]
        if self.translate_x:
            parts.append(f"translateX({self.translate_x:.4f}px)")
        if self.translate_y:
            parts.append(f"translateY({self.translate_y:.4f}px)")
        if self.scale != 1.0:
            parts.append(f"scale({self.scale:.4f})")
        if self.rotation:
            parts.append(f"rotate({self.rotation:.4f}deg)")
        return " ".join(parts)


@dataclass(frozen=True)
class AssetPlacement:
    asset_id: str
    kind: str
    x: float
    y: float
    width: float | None
    height: float | None
    opacity: float
    z_index: int
    transform: AssetTransform
    props: Dict[str, Any] = field(default_factory=dict)


def animation_state(
    animation: AssetAnimation,
    progress: float,
    spring_value: float,
) -> Tuple[float, AssetTransform]:
    """Opacity and transform for an animation at linear ``progress`` / spring value."""
    if animation is AssetAnimation.NONE:
        return 1.0, AssetTransform()
    if animation is AssetAnimation.FADE_IN:
        return progress, AssetTransform()
    if animation is AssetAnimation.FADE_OUT:
        return 1.0 - progress, AssetTransform()
    if animation is AssetAnimation.SLIDE_IN_LEFT:
        return progress, AssetTransform(translate_x=interpolate(progress, [0, 1], [-SLIDE_DISTANCE_PX, 0.0]))
    if animation is AssetAnimation.SLIDE_IN_RIGHT:
        return progress, AssetTransform(translate_x=interpolate(progress, [0, 1], [SLIDE_DISTANCE_PX, 0.0]))
    if animation is AssetAnimation.SLIDE_IN_UP:
        return progress, AssetTransform(translate_y=interpolate(progress, [0, 1], [SLIDE_DISTANCE_PX, 0.0]))
    if animation is AssetAnimation.SLIDE_IN_DOWN:
        return progress, AssetTransform(translate_y=interpolate(progress, [0, 1], [-SLIDE_DISTANCE_PX, 0.0]))
    if animation is AssetAnimation.BOUNCE:
        return 1.0, AssetTransform(scale=interpolate(spring_value, [0.0, 0.5, 1.0], [0.0, 1.3, 1.0]))
    if animation is AssetAnimation.PULSE:
        return 1.0, AssetTransform(scale=1.0 + math.sin(progress * math.pi * 4) * 0.1)
    if animation is AssetAnimation.SPIN:
        return 1.0, AssetTransform(rotation=progress * 360.0)
    if animation is AssetAnimation.SHAKE:
        return 1.0, AssetTransform(translate_x=math.sin(progress * math.pi * 10) * 10.0)
    if animation is AssetAnimation.SCALE:
        return 1.0, AssetTransform(scale=interpolate(spring_value, [0.0, 1.0], [0.0, 1.0]))
    if animation is AssetAnimation.POP:
        return spring_value, AssetTransform(scale=interpolate(spring_value, [0.0, 0.7, 1.0], [0.0, 1.2, 1.0]))
    raise TypeError(f"Unhandled asset animation: {animation!r}")


def _asset_props(asset: Any) -> Dict[str, Any]:
    if isinstance(asset, ShapeAsset):
        return {
            "shape_type": asset.shape_type.value,
            "fill_color": asset.fill_color,
            "stroke_color": (asset.stroke_color or DEFAULT_STROKE_COLOR) if asset.stroke_width else None,
            "stroke_width": asset.stroke_width,
            "border_radius": "50%" if asset.shape_type is ShapeType.CIRCLE else asset.border_radius,
        }
    if isinstance(asset, IconAsset):
        return {"icon_name": asset.icon_name, "size": asset.size, "color": asset.color}
    if isinstance(asset, TextAsset):
        return {
            "text": asset.text,
            "font_size": asset.font_size,
            "font_weight": asset.font_weight,
            "color": asset.color,
            "background_color": asset.background_color,
        }
    if isinstance(asset, LottieAsset):
        return {"lottie_id": asset.lottie_id}
    if isinstance(asset, SvgAsset):
        return {"svg_ref": asset.svg_ref, "color": asset.color}
    raise TypeError(f"Unknown asset type: {type(asset).__name__}")


def place_asset(asset: Any, local_frame: int, fps: int = 30) -> AssetPlacement:
    """Position, opacity and transform of ``asset`` at a scene-relative frame."""
    props = _asset_props(asset)
    delay = asset.animation_delay_seconds * fps
    duration = (asset.animation_duration_seconds or 0.5) * fps
    elapsed = local_frame - delay

    if elapsed < 0:
        anim_opacity, transform = 0.0, AssetTransform()
    else:
        progress = min(elapsed / duration, 1.0) if duration > 0 else 1.0
        spring_value = spring_progress(elapsed, fps, **ASSET_SPRING)
        anim_opacity, transform = animation_state(asset.animation, progress, spring_value)

    return AssetPlacement(
        asset_id=asset.asset_id,
        kind=asset.kind,
        x=asset.position.x,
        y=asset.position.y,
        width=asset.position.width,
        height=asset.position.height,
        opacity=clamp(asset.opacity * anim_opacity),
        z_index=asset.z_index,
        transform=transform,
        props=props,
    )


def place_assets(assets: Sequence[Any], local_frame: int, fps: int = 30) -> List[AssetPlacement]:
    """Place every asset, ordered by z-index then declaration order."""
    ordered = sorted(enumerate(assets), key=lambda pair: (pair[1].z_index, pair[0]))
    return [place_asset(asset, local_frame, fps) for _, asset in ordered]
