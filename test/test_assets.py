from __future__ import annotations

import math
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest

from compositor.assets import animation_state, place_asset, place_assets
from compositor.models import AssetAnimation, AssetPosition, IconAsset, ShapeAsset, ShapeType, TextAsset

CENTER = AssetPosition(x=50.0, y=50.0, width=10.0, height=10.0)


def _shape(animation: AssetAnimation = AssetAnimation.NONE, **kwargs) -> ShapeAsset:
    return ShapeAsset(asset_id=kwargs.pop("asset_id", "shape"), position=CENTER, animation=animation, **kwargs)


def test_fade_in_progresses_over_duration() -> None:
    asset = _shape(AssetAnimation.FADE_IN)
    assert place_asset(asset, 0).opacity == 0.0
    assert place_asset(asset, 15).opacity == pytest.approx(1.0)
    assert place_asset(asset, 90).opacity == pytest.approx(1.0)


def test_delay_hides_asset_until_start() -> None:
    asset = _shape(AssetAnimation.FADE_IN, animation_delay_seconds=1.0)
    assert place_asset(asset, 20).opacity == 0.0
    assert place_asset(asset, 30).opacity == 0.0
    assert place_asset(asset, 45).opacity == pytest.approx(1.0)


def test_slide_in_left_starts_offscreen_left() -> None:
    placement = place_asset(_shape(AssetAnimation.SLIDE_IN_LEFT), 0)
    assert placement.transform.translate_x == pytest.approx(-100.0)
    assert placement.opacity == 0.0
    settled = place_asset(_shape(AssetAnimation.SLIDE_IN_LEFT), 30)
    assert settled.transform.translate_x == pytest.approx(0.0)


def test_pop_opacity_follows_spring() -> None:
    asset = _shape(AssetAnimation.POP)
    assert place_asset(asset, 0).opacity == 0.0
    assert place_asset(asset, 60).opacity == pytest.approx(1.0, abs=1e-2)


def test_base_opacity_multiplies_animation() -> None:
    assert place_asset(_shape(opacity=0.5), 0).opacity == pytest.approx(0.5)


def test_every_animation_is_handled() -> None:
    for animation in AssetAnimation:
        opacity, transform = animation_state(animation, 1.0, 1.0)
        assert math.isfinite(opacity)
        assert math.isfinite(transform.scale)


def test_assets_sorted_by_z_index_then_declaration() -> None:
    assets = [
        _shape(asset_id="a", z_index=2),
        IconAsset(asset_id="b", position=CENTER),
        TextAsset(asset_id="c", position=CENTER, text="hi"),
    ]
    assert [placement.asset_id for placement in place_assets(assets, 0)] == ["b", "c", "a"]


def test_shape_props_and_unknown_type() -> None:
    circle = place_asset(_shape(shape_type=ShapeType.CIRCLE, stroke_width=2.0), 0)
    assert circle.props["border_radius"] == "50%"
    assert circle.props["stroke_color"] == "#1D4ED8"
    assert circle.kind == "shape"
    with pytest.raises(TypeError):
        place_asset(object(), 0)
