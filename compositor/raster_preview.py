"""Rasterize a VisualTree into a still PIL image.

This is a preview adapter, not an encoder: it approximates blurs and blend
modes with plain alpha compositing so a frame can be eyeballed quickly.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

import numpy as np
from PIL import Image, ImageColor, ImageDraw, ImageFont

from logging_utils import get_logger

from .visual_tree import VisualTree

logger = get_logger(__name__)

ImageLoader = Callable[[str], Optional[Image.Image]]
RGBA = Tuple[int, int, int, int]
_RESAMPLING = getattr(Image, "Resampling", Image)

_RGBA_RE = re.compile(r"rgba?\(\s*([\d.]+)\s*,\s*([\d.]+)\s*,\s*([\d.]+)\s*(?:,\s*([\d.]+)\s*)?\)")


def parse_color(value: Optional[str], fallback: RGBA = (255, 255, 255, 255)) -> RGBA:
    """Parse ``#rgb``/``#rrggbb``/``#rrggbbaa``/``rgb()``/``rgba()`` into an RGBA tuple."""
    if not value:
        return fallback
    text = value.strip()
    match = _RGBA_RE.fullmatch(text)
    if match:
        r, g, b = (int(float(part)) for part in match.group(1, 2, 3))
        alpha = float(match.group(4)) if match.group(4) is not None else 1.0
        return (r, g, b, int(round(max(0.0, min(1.0, alpha)) * 255)))
    try:
        rgb = ImageColor.getrgb(text)
    except ValueError:
        return fallback
    if len(rgb) == 4:
        return rgb  # type: ignore[return-value]
    return (rgb[0], rgb[1], rgb[2], 255)


@lru_cache(maxsize=32)
def load_font(path: Optional[str], size: int) -> ImageFont.ImageFont:
    if path:
        font_path = Path(path).expanduser()
        if font_path.exists():
            return ImageFont.truetype(str(font_path), size=size)
        logger.warning("Font not found: %s; using default", font_path)
    try:
        return ImageFont.load_default(size=size)
    except TypeError:
        # Pillow < 10.1 has no sized default font
        return ImageFont.load_default()


@dataclass(frozen=True)
class PreviewContext:
    width: int
    height: int
    scale: float
    frame: int
    image_loader: Optional[ImageLoader] = None
    font_path: Optional[str] = None


def _with_alpha(color: RGBA, opacity: float) -> RGBA:
    return (color[0], color[1], color[2], int(round(color[3] * max(0.0, min(1.0, opacity)))))


def _overlay(canvas: Image.Image, rgba: np.ndarray) -> Image.Image:
    layer = Image.fromarray(np.clip(rgba, 0, 255).astype(np.uint8))
    return Image.alpha_composite(canvas, layer)


def _gradient(ctx: PreviewContext, start: RGBA, end: RGBA, diagonal: bool = True) -> np.ndarray:
    ys, xs = np.mgrid[0:ctx.height, 0:ctx.width].astype(np.float32)
    t = (xs / max(1, ctx.width - 1) + ys / max(1, ctx.height - 1)) / 2.0 if diagonal else ys / max(1, ctx.height - 1)
    a = np.array(start, dtype=np.float32)
    b = np.array(end, dtype=np.float32)
    return a + (b - a) * t[..., None]


def _cover(image: Image.Image, size: Tuple[int, int]) -> Image.Image:
    src_w, src_h = image.size
    factor = max(size[0] / src_w, size[1] / src_h)
    resized = image.convert("RGBA").resize((max(1, int(src_w * factor)), max(1, int(src_h * factor))), _RESAMPLING.LANCZOS)
    left = (resized.width - size[0]) // 2
    top = (resized.height - size[1]) // 2
    return resized.crop((left, top, left + size[0], top + size[1]))


def _paint_background(canvas: Image.Image, layer: Mapping[str, Any], ctx: PreviewContext) -> Image.Image:
    props = layer.get("props", {})
    transform = layer.get("transform", {})
    zoom = float(transform.get("scale", 1.0))
    source = props.get("source")
    image = ctx.image_loader(source) if source and ctx.image_loader else None
    if image is None:
        colors = props.get("gradient") or ["#1e293b", "#0f172a"]
        if not isinstance(colors, list):
            colors = ["#0f172a", "#1e293b"]
        return _overlay(canvas, _gradient(ctx, parse_color(colors[0]), parse_color(colors[-1])))

    zoomed = _cover(image, (max(1, int(ctx.width * zoom)), max(1, int(ctx.height * zoom))))
    dx = int(transform.get("translate_x_percent", 0.0) / 100.0 * ctx.width)
    dy = int(transform.get("translate_y_percent", 0.0) / 100.0 * ctx.height)
    left = (zoomed.width - ctx.width) // 2 - dx
    top = (zoomed.height - ctx.height) // 2 - dy
    frame_image = Image.new("RGBA", canvas.size, (0, 0, 0, 255))
    frame_image.paste(zoomed, (-left, -top))
    return Image.alpha_composite(canvas, frame_image)


def _paint_bookend_background(canvas: Image.Image, layer: Mapping[str, Any], ctx: PreviewContext) -> Image.Image:
    return _overlay(canvas, _gradient(ctx, parse_color("#0f172a"), parse_color("#1e293b")))


def _paint_light_blobs(canvas: Image.Image, layer: Mapping[str, Any], ctx: PreviewContext) -> Image.Image:
    ys, xs = np.mgrid[0:ctx.height, 0:ctx.width].astype(np.float32)
    radius = max(1.0, min(ctx.width, ctx.height) / 2.0)
    opacity = float(layer.get("opacity", 1.0))
    for blob in layer.get("props", {}).get("blobs", []):
        color = parse_color(blob.get("color"))
        cx = ctx.width / 2.0 + float(blob.get("x", 0.0)) * ctx.scale
        cy = ctx.height / 2.0 + float(blob.get("y", 0.0)) * ctx.scale
        distance = np.sqrt((xs - cx) ** 2 + (ys - cy) ** 2) / radius
        falloff = np.clip(1.0 - distance / 0.7, 0.0, 1.0)
        rgba = np.zeros((ctx.height, ctx.width, 4), dtype=np.float32)
        rgba[..., :3] = color[:3]
        rgba[..., 3] = falloff * color[3] * opacity
        canvas = _overlay(canvas, rgba)
    return canvas


def _paint_film_grain(canvas: Image.Image, layer: Mapping[str, Any], ctx: PreviewContext) -> Image.Image:
    props = layer.get("props", {})
    tile = max(1, int(props.get("tile", 200)))
    seed = (int(props.get("offset_x", 0.0) * 10) * 7919 + int(props.get("offset_y", 0.0) * 10)) % (2 ** 32)
    noise = np.random.default_rng(seed).random((tile, tile), dtype=np.float32)
    reps = (ctx.height // tile + 1, ctx.width // tile + 1)
    grain = np.tile(noise, reps)[:ctx.height, :ctx.width] * 255.0
    rgba = np.stack([grain, grain, grain, np.full_like(grain, 255.0 * float(layer.get("opacity", 0.05)))], axis=-1)
    return _overlay(canvas, rgba)


def _stops_alpha(t: np.ndarray, stops: Any) -> np.ndarray:
    positions = [float(stop["at"]) for stop in stops]
    alphas = [float(stop["alpha"]) for stop in stops]
    return np.interp(t, positions, alphas) * 255.0


def _paint_readability(canvas: Image.Image, layer: Mapping[str, Any], ctx: PreviewContext) -> Image.Image:
    t = np.linspace(0.0, 1.0, ctx.height, dtype=np.float32)[:, None] * np.ones((1, ctx.width), dtype=np.float32)
    rgba = np.zeros((ctx.height, ctx.width, 4), dtype=np.float32)
    rgba[..., 3] = _stops_alpha(t, layer.get("props", {}).get("stops", []))
    return _overlay(canvas, rgba)


def _paint_vignette(canvas: Image.Image, layer: Mapping[str, Any], ctx: PreviewContext) -> Image.Image:
    ys, xs = np.mgrid[0:ctx.height, 0:ctx.width].astype(np.float32)
    nx = (xs - ctx.width / 2.0) / (ctx.width / 2.0)
    ny = (ys - ctx.height / 2.0) / (ctx.height / 2.0)
    t = np.clip(np.sqrt(nx ** 2 + ny ** 2) / np.sqrt(2.0), 0.0, 1.0)
    rgba = np.zeros((ctx.height, ctx.width, 4), dtype=np.float32)
    rgba[..., 3] = _stops_alpha(t, layer.get("props", {}).get("stops", []))
    return _overlay(canvas, rgba)


def _draw_layer(canvas: Image.Image, paint: Callable[[ImageDraw.ImageDraw], None]) -> Image.Image:
    overlay = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
    paint(ImageDraw.Draw(overlay))
    return Image.alpha_composite(canvas, overlay)


def _paint_asset(canvas: Image.Image, layer: Mapping[str, Any], ctx: PreviewContext) -> Image.Image:
    props = layer.get("props", {})
    transform = layer.get("transform", {})
    opacity = float(layer.get("opacity", 1.0))
    if opacity <= 0.0:
        return canvas
    zoom = float(transform.get("scale", 1.0))
    cx = props.get("x", 50.0) / 100.0 * ctx.width + float(transform.get("translate_x", 0.0)) * ctx.scale
    cy = props.get("y", 50.0) / 100.0 * ctx.height + float(transform.get("translate_y", 0.0)) * ctx.scale
    default_size = 100.0 * ctx.scale
    w = (props["width"] / 100.0 * ctx.width if props.get("width") else default_size) * zoom
    h = (props["height"] / 100.0 * ctx.height if props.get("height") else default_size) * zoom
    box = (cx - w / 2.0, cy - h / 2.0, cx + w / 2.0, cy + h / 2.0)
    kind = props.get("asset_kind")

    def paint(draw: ImageDraw.ImageDraw) -> None:
        if kind == "shape":
            fill = _with_alpha(parse_color(props.get("fill_color")), opacity)
            shape = props.get("shape_type")
            if shape == "circle":
                draw.ellipse(box, fill=fill)
            elif shape == "triangle":
                draw.polygon([(cx, box[1]), (box[2], box[3]), (box[0], box[3])], fill=fill)
            elif shape == "line":
                draw.line([(box[0], cy), (box[2], cy)], fill=fill, width=max(1, int(4 * ctx.scale)))
            else:
                draw.rectangle(box, fill=fill)
        elif kind == "text":
            font = load_font(ctx.font_path, max(6, int(props.get("font_size", 32) * ctx.scale * zoom)))
            draw.text((cx, cy), str(props.get("text", "")), font=font, anchor="mm",
                      fill=_with_alpha(parse_color(props.get("color")), opacity))
        else:
            draw.ellipse(box, outline=_with_alpha(parse_color(props.get("color"), (16, 185, 129, 255)), opacity),
                         width=max(1, int(3 * ctx.scale)))

    return _draw_layer(canvas, paint)


def _paint_accent_line(canvas: Image.Image, layer: Mapping[str, Any], ctx: PreviewContext) -> Image.Image:
    props = layer.get("props", {})
    width = float(props.get("width", 0.0)) * ctx.scale
    if width <= 0:
        return canvas
    offset = float(props.get("offset_percent", 15.0)) / 100.0 * ctx.height
    y = offset if props.get("anchor", "top") == "top" else ctx.height - offset
    color = _with_alpha(parse_color(props.get("color")), float(layer.get("opacity", 1.0)))
    thickness = max(1, int(props.get("height", 3) * ctx.scale))
    return _draw_layer(
        canvas,
        lambda draw: draw.line([(ctx.width / 2.0 - width / 2.0, y), (ctx.width / 2.0 + width / 2.0, y)], fill=color, width=thickness),
    )


def _draw_spans(canvas: Image.Image, spans: Any, ctx: PreviewContext, center_y: float, size: int) -> Image.Image:
    visible = [span for span in spans if span.get("opacity", 0.0) > 0.0]
    if not visible:
        return canvas
    font = load_font(ctx.font_path, size)
    separator = "" if all(len(span["text"]) == 1 for span in spans) else " "
    widths = [font.getlength(span["text"] + separator) for span in spans]
    x = ctx.width / 2.0 - sum(widths) / 2.0

    def paint(draw: ImageDraw.ImageDraw) -> None:
        cursor = x
        for span, advance in zip(spans, widths):
            opacity = float(span.get("opacity", 0.0))
            if opacity > 0.0:
                y = center_y + float(span.get("translate_y", 0.0)) * ctx.scale
                draw.text((cursor, y), span["text"], font=font, anchor="lm",
                          fill=_with_alpha(parse_color(span.get("color")), opacity))
            cursor += advance

    return _draw_layer(canvas, paint)


def _paint_center_text(canvas: Image.Image, layer: Mapping[str, Any], ctx: PreviewContext) -> Image.Image:
    return _draw_spans(canvas, layer.get("props", {}).get("spans", []), ctx, ctx.height * 0.45, max(8, int(72 * ctx.scale)))


def _paint_subtitle_band(canvas: Image.Image, layer: Mapping[str, Any], ctx: PreviewContext) -> Image.Image:
    props = layer.get("props", {})
    band_h = max(4.0, 90.0 * ctx.scale)
    bottom = ctx.height - float(props.get("bottom_offset", 80)) * ctx.scale
    box = (ctx.width * 0.075, bottom - band_h, ctx.width * 0.925, bottom)
    fill = parse_color(props.get("background"), (0, 0, 0, 191))
    canvas = _draw_layer(canvas, lambda draw: draw.rounded_rectangle(box, radius=max(1, int(16 * ctx.scale)), fill=fill))
    return _draw_spans(canvas, props.get("spans", []), ctx, bottom - band_h / 2.0, max(8, int(32 * ctx.scale)))


def _paint_caption(canvas: Image.Image, layer: Mapping[str, Any], ctx: PreviewContext) -> Image.Image:
    props = layer.get("props", {})
    text = props.get("text")
    opacity = float(layer.get("opacity", 1.0))
    if not text or opacity <= 0.0:
        return canvas
    positions = {"title": 0.45, "call_to_action": 0.35, "subtitle": 0.58, "channel_name": 0.62}
    y = ctx.height * positions.get(layer["kind"], 0.5) + float(layer.get("transform", {}).get("translate_y", 0.0)) * ctx.scale
    size = max(8, int((64 if layer["kind"] in {"title", "call_to_action"} else 32) * ctx.scale))
    font = load_font(ctx.font_path, size)
    return _draw_layer(
        canvas,
        lambda draw: draw.text((ctx.width / 2.0, y), str(text), font=font, anchor="mm", fill=(255, 255, 255, int(255 * opacity))),
    )


def _paint_flash(canvas: Image.Image, layer: Mapping[str, Any], ctx: PreviewContext) -> Image.Image:
    opacity = float(layer.get("opacity", 0.0))
    if opacity <= 0.0:
        return canvas
    color = parse_color(layer.get("props", {}).get("color"))
    rgba = np.zeros((ctx.height, ctx.width, 4), dtype=np.float32)
    rgba[..., :3] = color[:3]
    rgba[..., 3] = 255.0 * opacity
    return _overlay(canvas, rgba)


def _paint_card(canvas: Image.Image, layer: Mapping[str, Any], ctx: PreviewContext) -> Image.Image:
    """Quiz question/choices and problem headline/items as stacked text rows."""
    props = layer.get("props", {})
    opacity = float(layer.get("opacity", 1.0))
    text = props.get("text")
    if not text or opacity <= 0.0:
        return canvas
    heading = layer["kind"] in {"quiz_question", "problem_headline"}
    if heading:
        text = f"{props['icon']} {text}" if props.get("icon") else text
        y = ctx.height * 0.25
    else:
        marker = props.get("label") or props.get("marker")
        text = f"{marker}  {text}" if marker else text
        y = ctx.height * (0.42 + 0.1 * int(props.get("index", 0)))
    y += float(layer.get("transform", {}).get("translate_y", 0.0)) * ctx.scale
    x = ctx.width / 2.0 + float(layer.get("transform", {}).get("translate_x", 0.0)) * ctx.scale
    font = load_font(ctx.font_path, max(8, int((56 if heading else 36) * ctx.scale)))
    fill = parse_color(props.get("accent_color")) if props.get("highlighted") else (255, 255, 255, 255)
    return _draw_layer(
        canvas,
        lambda draw: draw.text((x, y), str(text), font=font, anchor="mm", fill=_with_alpha(fill, opacity)),
    )


def _paint_particles(canvas: Image.Image, layer: Mapping[str, Any], ctx: PreviewContext) -> Image.Image:
    particles = layer.get("props", {}).get("particles", [])

    def paint(draw: ImageDraw.ImageDraw) -> None:
        for particle in particles:
            opacity = float(particle.get("opacity", 0.0))
            if opacity <= 0.0:
                continue
            x = particle["x"] / 100.0 * ctx.width
            y = particle["y"] / 100.0 * ctx.height
            r = max(1.0, particle.get("size", 3.0) * ctx.scale)
            draw.ellipse((x - r, y - r, x + r, y + r), fill=(255, 255, 255, int(255 * opacity)))

    return _draw_layer(canvas, paint)


_PAINTERS: Dict[str, Callable[[Image.Image, Mapping[str, Any], PreviewContext], Image.Image]] = {
    "background": _paint_background,
    "scene_background": _paint_background,
    "opening_background": _paint_bookend_background,
    "ending_background": _paint_bookend_background,
    "light_blobs": _paint_light_blobs,
    "film_grain": _paint_film_grain,
    "readability_gradient": _paint_readability,
    "vignette": _paint_vignette,
    "asset": _paint_asset,
    "accent_line": _paint_accent_line,
    "center_text": _paint_center_text,
    "subtitle_band": _paint_subtitle_band,
    "title": _paint_caption,
    "subtitle": _paint_caption,
    "call_to_action": _paint_caption,
    "channel_name": _paint_caption,
    "particles": _paint_particles,
    "flash": _paint_flash,
    "quiz_question": _paint_card,
    "quiz_choice": _paint_card,
    "problem_headline": _paint_card,
    "problem_item": _paint_card,
}


def _apply_container(image: Image.Image, container: Mapping[str, Any], ctx: PreviewContext) -> Image.Image:
    result = image
    zoom = float(container.get("scale", 1.0))
    if zoom != 1.0 and zoom > 0:
        resized = image.resize((max(1, int(ctx.width * zoom)), max(1, int(ctx.height * zoom))), _RESAMPLING.BILINEAR)
        result = Image.new("RGBA", image.size, (0, 0, 0, 0))
        result.paste(resized, ((ctx.width - resized.width) // 2, (ctx.height - resized.height) // 2))

    dx = int(float(container.get("translate_x_percent", 0.0)) / 100.0 * ctx.width)
    dy = int(float(container.get("translate_y_percent", 0.0)) / 100.0 * ctx.height)
    if dx or dy:
        shifted = Image.new("RGBA", image.size, (0, 0, 0, 0))
        shifted.paste(result, (dx, dy))
        result = shifted

    pixels = np.asarray(result, dtype=np.float32).copy()
    clip = float(container.get("clip_width_percent", 100.0))
    if clip < 100.0:
        pixels[:, int(ctx.width * clip / 100.0):, 3] = 0.0
    pixels[..., 3] *= max(0.0, min(1.0, float(container.get("opacity", 1.0))))
    return Image.fromarray(np.clip(pixels, 0, 255).astype(np.uint8))


def render_preview(
    tree: Union[VisualTree, Mapping[str, Any]],
    *,
    scale: float = 0.25,
    image_loader: Optional[ImageLoader] = None,
    font_path: Optional[str] = None,
) -> Image.Image:
    """Draw ``tree`` at ``scale`` times its native resolution."""
    if scale <= 0:
        raise ValueError("scale must be positive")
    data = tree.to_dict() if isinstance(tree, VisualTree) else dict(tree)
    ctx = PreviewContext(
        width=max(1, int(round(data["width"] * scale))),
        height=max(1, int(round(data["height"] * scale))),
        scale=scale,
        frame=int(data.get("frame", 0)),
        image_loader=image_loader,
        font_path=font_path,
    )
    content = Image.new("RGBA", (ctx.width, ctx.height), (0, 0, 0, 0))
    for layer in data.get("layers", []):
        painter = _PAINTERS.get(layer.get("kind"))
        if painter is not None:
            content = painter(content, layer, ctx)

    composed = _apply_container(content, data.get("container", {}), ctx)
    canvas = Image.new("RGBA", (ctx.width, ctx.height), (0, 0, 0, 255))
    return Image.alpha_composite(canvas, composed).convert("RGB")


def file_image_loader(base_dir: Optional[Path] = None) -> ImageLoader:
    """Loader resolving local file references; remote references are skipped."""

    def _load(ref: str) -> Optional[Image.Image]:
        if ref.startswith(("http://", "https://", "data:")):
            logger.debug("Preview skips remote image %s", ref)
            return None
        path = Path(ref[len("file://"):] if ref.startswith("file://") else ref).expanduser()
        if not path.is_absolute() and base_dir is not None:
            path = base_dir / path
        if not path.exists():
            logger.warning("Preview image not found: %s", path)
            return None
        with Image.open(path) as image:
            return image.convert("RGBA")

    return _load


def save_preview(tree: VisualTree, path: Path, **kwargs: Any) -> Path:
    image = render_preview(tree, **kwargs)
    path.parent.mkdir(parents=True, exist_ok=True)
    image.save(path)
    logger.info("Saved preview frame %d to %s", tree.frame, path)
    return path
