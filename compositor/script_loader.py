"""Loader for project descriptors (JSON, JSONL or YAML) and timesheets."""
from __future__ import annotations

import json
import math
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Type, TypeVar, Union

import yaml

from logging_utils import get_logger

from .errors import ScriptLoadError
from .models import (
    AspectRatio,
    AssetAnimation,
    AssetPosition,
    AvatarConfig,
    AvatarPosition,
    AvatarSize,
    BgmConfig,
    DEFAULT_FPS,
    Emotion,
    EndingConfig,
    IconAsset,
    LottieAsset,
    OpeningConfig,
    Project,
    ProblemVariant,
    QuizChoice,
    QuizTheme,
    Scene,
    SceneType,
    ShapeAsset,
    ShapeType,
    SoundEffect,
    SoundTiming,
    SvgAsset,
    TextAsset,
    TextDisplayMode,
    TimesheetEntry,
    TransitionKind,
)

logger = get_logger(__name__)

E = TypeVar("E", bound=Enum)

DEFAULT_FALLBACK_SECONDS = 3.0
_IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg", ".webp", ".gif", ".bmp")


def _pick(raw: Mapping[str, Any], *keys: str) -> Any:
    """First present, non-empty value among ``keys`` (camelCase and snake_case aliases)."""
    for key in keys:
        if key in raw and raw[key] is not None and raw[key] != "":
            return raw[key]
    return None


def _normalize_optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _cast_float(value: Any, *, field: str, where: str) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ScriptLoadError(f"{where}: '{field}' must be a number, got {value!r}") from None


def _cast_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes", "on"}
    return bool(value)


def _enum(enum_cls: Type[E], value: Any, default: Optional[E], *, field: str, where: str) -> Optional[E]:
    if value is None or value == "":
        return default
    try:
        return enum_cls(str(value).strip())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ScriptLoadError(f"{where}: unknown {field} {value!r} (expected one of: {allowed})") from None


def _looks_like_image_ref(value: str) -> bool:
    lower = value.lower()
    return (
        lower.startswith(("http://", "https://", "data:image/", "/", "./", "file:"))
        or lower.endswith(_IMAGE_SUFFIXES)
    )


# ----------------------------------------------------------------------
# Parsing
# ----------------------------------------------------------------------


def _parse_json_or_jsonl(raw_text: str) -> Tuple[Any, bool]:
    """Try JSON first; if it fails, treat as JSONL."""
    try:
        return json.loads(raw_text), False
    except json.JSONDecodeError:
        pass

    blocks: List[Any] = []
    for line_no, line in enumerate(raw_text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped:
            continue
        try:
            blocks.append(json.loads(stripped))
        except json.JSONDecodeError as exc:
            raise ScriptLoadError(f"Invalid JSONL on line {line_no}: {exc}") from exc
    return blocks, True


def _read_document(path: Path) -> Tuple[Any, str]:
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    raw_text = path.read_text(encoding="utf-8").strip()
    if not raw_text:
        raise ScriptLoadError(f"File is empty: {path}")
    if path.suffix.lower() in {".yaml", ".yml"}:
        try:
            return yaml.safe_load(raw_text), "YAML"
        except yaml.YAMLError as exc:
            raise ScriptLoadError(f"Invalid YAML in {path.name}: {exc}") from exc
    data, is_jsonl = _parse_json_or_jsonl(raw_text)
    return data, "JSONL" if is_jsonl else "JSON"


def _separate_metadata_and_scenes(data: Any) -> Tuple[Dict[str, Any], List[Any]]:
    """Accept an array of scenes, or an object with a ``scenes`` array."""
    if isinstance(data, list):
        # JSONL may carry one leading metadata line with a title
        if data and isinstance(data[0], dict) and "title" in data[0] and not _is_scene_like(data[0]):
            return dict(data[0]), list(data[1:])
        return {}, data
    if not isinstance(data, dict):
        raise ScriptLoadError("Top-level document must be an array or object")
    for key in ("scenes", "cuts", "segments"):
        value = data.get(key)
        if isinstance(value, list):
            metadata = {k: v for k, v in data.items() if k != key}
            return metadata, value
    raise ScriptLoadError("No scene array found. Expected keys: scenes/cuts/segments")


def _is_scene_like(raw: Mapping[str, Any]) -> bool:
    return any(
        key in raw
        for key in ("subtitle", "voiceText", "voice_text", "avatar_script", "duration", "durationSeconds", "duration_seconds")
    )


def _parse_position(raw: Any, where: str) -> AssetPosition:
    if not isinstance(raw, Mapping):
        raise ScriptLoadError(f"{where}: 'position' must be an object with x and y")
    x = _cast_float(raw.get("x"), field="position.x", where=where)
    y = _cast_float(raw.get("y"), field="position.y", where=where)
    if x is None or y is None:
        raise ScriptLoadError(f"{where}: 'position' requires x and y")
    return AssetPosition(
        x=x,
        y=y,
        width=_cast_float(raw.get("width"), field="position.width", where=where),
        height=_cast_float(raw.get("height"), field="position.height", where=where),
    )


def _parse_asset(raw: Any, scene_id: str, idx: int) -> Any:
    where = f"Scene {scene_id} asset #{idx}"
    if not isinstance(raw, Mapping):
        raise ScriptLoadError(f"{where} must be an object, got {type(raw).__name__}")
    kind = _normalize_optional_str(_pick(raw, "type", "kind"))
    common: Dict[str, Any] = {
        "asset_id": _normalize_optional_str(_pick(raw, "id", "assetId", "asset_id")) or f"{scene_id}-asset-{idx}",
        "position": _parse_position(raw.get("position"), where),
        "animation": _enum(AssetAnimation, raw.get("animation"), AssetAnimation.NONE, field="animation", where=where),
        "animation_delay_seconds": _cast_float(
            _pick(raw, "animationDelay", "animation_delay", "animation_delay_seconds"), field="animationDelay", where=where
        ) or 0.0,
        "animation_duration_seconds": _cast_float(
            _pick(raw, "animationDuration", "animation_duration", "animation_duration_seconds"),
            field="animationDuration",
            where=where,
        ) or 0.5,
        "opacity": _cast_float(raw.get("opacity"), field="opacity", where=where),
        "z_index": _cast_float(_pick(raw, "zIndex", "z_index"), field="zIndex", where=where),
    }
    if common["opacity"] is None:
        common["opacity"] = 1.0
    common["z_index"] = 1 if common["z_index"] is None else int(common["z_index"])

    if kind == "shape":
        return ShapeAsset(
            **common,
            shape_type=_enum(ShapeType, _pick(raw, "shapeType", "shape_type"), ShapeType.RECTANGLE, field="shapeType", where=where),
            fill_color=_pick(raw, "fillColor", "fill_color") or "#3B82F6",
            stroke_color=_normalize_optional_str(_pick(raw, "strokeColor", "stroke_color")),
            stroke_width=_cast_float(_pick(raw, "strokeWidth", "stroke_width"), field="strokeWidth", where=where) or 0.0,
            border_radius=_cast_float(_pick(raw, "borderRadius", "border_radius"), field="borderRadius", where=where) or 0.0,
        )
    if kind == "icon":
        return IconAsset(
            **common,
            icon_name=_pick(raw, "iconName", "icon_name", "icon") or "star",
            size=int(_cast_float(raw.get("size"), field="size", where=where) or 48),
            color=_pick(raw, "color") or "#FBBF24",
        )
    if kind == "text":
        return TextAsset(
            **common,
            text=str(_pick(raw, "text") or ""),
            font_size=int(_cast_float(_pick(raw, "fontSize", "font_size"), field="fontSize", where=where) or 32),
            font_weight=str(_pick(raw, "fontWeight", "font_weight") or "bold"),
            color=_pick(raw, "color") or "#FFFFFF",
            background_color=_normalize_optional_str(_pick(raw, "backgroundColor", "background_color")),
        )
    if kind == "lottie":
        return LottieAsset(**common, lottie_id=_pick(raw, "lottieId", "lottie_id") or "confetti")
    if kind == "svg":
        return SvgAsset(
            **common,
            svg_ref=_normalize_optional_str(_pick(raw, "svgUrl", "svg_url", "svgRef", "svg_ref", "src")),
            color=_pick(raw, "color") or "#10B981",
        )
    raise ScriptLoadError(f"{where}: unknown asset type {kind!r} (expected shape/icon/text/lottie/svg)")


def _parse_sound_effect(raw: Any, where: str) -> SoundEffect:
    if not isinstance(raw, Mapping):
        raise ScriptLoadError(f"{where}: sound effect must be an object")
    keyword = _normalize_optional_str(raw.get("keyword")) or ""
    return SoundEffect(
        keyword=keyword,
        timing=_enum(SoundTiming, raw.get("timing"), SoundTiming.START, field="timing", where=where),
        volume=_cast_float(raw.get("volume"), field="volume", where=where),
        audio_ref=_normalize_optional_str(_pick(raw, "url", "audioUrl", "audio_url", "audioRef", "audio_ref")),
        category=_normalize_optional_str(_pick(raw, "type", "category")) or "ambient",
    )


def _normalize_words(value: Any) -> frozenset:
    if value is None:
        return frozenset()
    if isinstance(value, str):
        value = [part for part in value.replace("、", ",").split(",")]
    if not isinstance(value, (list, tuple, set)):
        return frozenset()
    return frozenset(word.strip() for word in (str(item) for item in value) if word.strip())


def _parse_quiz_choice(raw: Any, where: str) -> QuizChoice:
    if isinstance(raw, str):
        text = raw.strip()
        icon = None
    elif isinstance(raw, Mapping):
        text = str(raw.get("text") or "").strip()
        icon = _normalize_optional_str(raw.get("icon"))
    else:
        raise ScriptLoadError(f"{where}: quiz choice must be a string or an object")
    if not text:
        raise ScriptLoadError(f"{where}: quiz choice text is empty")
    return QuizChoice(text=text, icon=icon)


def _string_list(value: Any, *, field: str, where: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise ScriptLoadError(f"{where}: '{field}' must be an array")
    return tuple(text for text in (str(item).strip() for item in value if item is not None) if text)


def _scene_type_fields(raw: Mapping[str, Any], where: str) -> Dict[str, Any]:
    choices_raw = _pick(raw, "quizChoices", "quiz_choices")
    if choices_raw is not None and not isinstance(choices_raw, list):
        raise ScriptLoadError(f"{where}: 'quizChoices' must be an array")
    highlight = _cast_float(
        _pick(raw, "quizHighlightIndex", "quiz_highlight_index"), field="quizHighlightIndex", where=where
    )
    if highlight is not None and (highlight < 0 or highlight != int(highlight)):
        raise ScriptLoadError(f"{where}: 'quizHighlightIndex' must be a non-negative integer")
    return {
        "scene_type": _enum(SceneType, _pick(raw, "sceneType", "scene_type"), None, field="sceneType", where=where),
        "quiz_question": _normalize_optional_str(_pick(raw, "quizQuestion", "quiz_question")),
        "quiz_choices": tuple(_parse_quiz_choice(item, where) for item in choices_raw or []),
        "quiz_theme": _enum(
            QuizTheme, _pick(raw, "quizTheme", "quiz_theme"), QuizTheme.QUIZ, field="quizTheme", where=where
        ),
        "quiz_highlight_index": int(highlight) if highlight is not None else None,
        "problem_headline": _normalize_optional_str(_pick(raw, "problemHeadline", "problem_headline")),
        "problem_items": _string_list(
            _pick(raw, "problemItems", "problem_items"), field="problemItems", where=where
        ),
        "problem_variant": _enum(
            ProblemVariant,
            _pick(raw, "problemVariant", "problem_variant"),
            ProblemVariant.DRAMATIC,
            field="problemVariant",
            where=where,
        ),
    }


def _normalise_scene(raw: Any, idx: int, fallback_seconds: float) -> Scene:
    if not isinstance(raw, Mapping):
        raise ScriptLoadError(f"Scene #{idx} must be an object, got {type(raw).__name__}")

    scene_id = _normalize_optional_str(_pick(raw, "id", "sceneId", "scene_id")) or f"scene-{idx}"
    where = f"Scene {scene_id}"

    duration = _cast_float(
        _pick(raw, "durationSeconds", "duration_seconds", "duration"), field="durationSeconds", where=where
    )
    if duration is None:
        logger.warning("%s has no duration; using %.2f seconds until narration is measured", where, fallback_seconds)
        duration = fallback_seconds

    subtitle = str(_pick(raw, "subtitle", "subtitleText", "subtitle_text", "text") or "")
    voice_text = str(_pick(raw, "voiceText", "voice_text", "avatar_script") or subtitle)

    image_ref = _normalize_optional_str(
        _pick(raw, "imageUrl", "image_url", "backgroundImage", "background_image", "background_image_ref")
    )
    image_prompt = _normalize_optional_str(_pick(raw, "imagePrompt", "image_prompt"))
    prompt_or_ref = _normalize_optional_str(_pick(raw, "imagePromptOrRef", "image_prompt_or_ref"))
    if prompt_or_ref:
        if _looks_like_image_ref(prompt_or_ref):
            image_ref = image_ref or prompt_or_ref
        else:
            image_prompt = image_prompt or prompt_or_ref

    assets_raw = raw.get("assets") or []
    if not isinstance(assets_raw, list):
        raise ScriptLoadError(f"{where}: 'assets' must be an array")
    effects_raw = _pick(raw, "soundEffects", "sound_effects") or []
    if not isinstance(effects_raw, list):
        raise ScriptLoadError(f"{where}: 'soundEffects' must be an array")

    return Scene(
        scene_id=scene_id,
        duration_seconds=duration,
        subtitle_text=subtitle,
        narration_audio_ref=_normalize_optional_str(
            _pick(raw, "audioUrl", "audio_url", "audioRef", "narrationAudioRef", "narration_audio_ref")
        ),
        background_image_ref=image_ref,
        lip_sync_video_ref=_normalize_optional_str(_pick(raw, "lipSyncVideoUrl", "lip_sync_video_url", "lip_sync_video_ref")),
        emphasis_words=_normalize_words(_pick(raw, "emphasisWords", "emphasis_words")),
        transition=_enum(TransitionKind, raw.get("transition"), None, field="transition", where=where),
        emotion=_enum(Emotion, raw.get("emotion"), None, field="emotion", where=where),
        assets=tuple(_parse_asset(item, scene_id, n) for n, item in enumerate(assets_raw, start=1)),
        text_display_mode=_enum(
            TextDisplayMode,
            _pick(raw, "textDisplayMode", "text_display_mode"),
            TextDisplayMode.WORD_BOUNCE,
            field="textDisplayMode",
            where=where,
        ),
        sound_effects=tuple(_parse_sound_effect(item, where) for item in effects_raw),
        voice_text=voice_text,
        image_prompt=image_prompt,
        speaker=_normalize_optional_str(raw.get("speaker")),
        **_scene_type_fields(raw, where),
    )


def _parse_opening(raw: Any, default_seconds: float = 3.0) -> Optional[OpeningConfig]:
    if raw is None:
        return None
    if isinstance(raw, bool):
        return OpeningConfig(enabled=raw, duration_seconds=default_seconds)
    if not isinstance(raw, Mapping):
        raise ScriptLoadError("'opening' must be an object or boolean")
    return OpeningConfig(
        enabled=_cast_bool(raw.get("enabled"), True),
        duration_seconds=_cast_float(_pick(raw, "durationSeconds", "duration_seconds", "duration"), field="duration", where="Opening") or default_seconds,
        subtitle=_normalize_optional_str(raw.get("subtitle")),
    )


def _parse_ending(raw: Any, default_seconds: float = 4.0) -> Optional[EndingConfig]:
    if raw is None:
        return None
    if isinstance(raw, bool):
        return EndingConfig(enabled=raw, duration_seconds=default_seconds)
    if not isinstance(raw, Mapping):
        raise ScriptLoadError("'ending' must be an object or boolean")
    return EndingConfig(
        enabled=_cast_bool(raw.get("enabled"), True),
        duration_seconds=_cast_float(_pick(raw, "durationSeconds", "duration_seconds", "duration"), field="duration", where="Ending") or default_seconds,
        call_to_action=_normalize_optional_str(_pick(raw, "callToAction", "call_to_action")),
        channel_name=_normalize_optional_str(_pick(raw, "channelName", "channel_name")),
    )


def _parse_bgm(raw: Any) -> Optional[BgmConfig]:
    if raw is None:
        return None
    if isinstance(raw, str):
        return BgmConfig(audio_ref=raw) if raw.strip() else None
    if not isinstance(raw, Mapping):
        raise ScriptLoadError("'bgm' must be an object or string")
    ref = _normalize_optional_str(_pick(raw, "url", "audioUrl", "audio_url", "audioRef", "audio_ref"))
    if not ref:
        return None
    return BgmConfig(audio_ref=ref, volume=_cast_float(raw.get("volume"), field="volume", where="BGM"))


def _parse_avatar(raw: Any) -> Optional[AvatarConfig]:
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        raise ScriptLoadError("'avatar' must be an object")
    return AvatarConfig(
        enabled=_cast_bool(raw.get("enabled"), False),
        position=_enum(AvatarPosition, raw.get("position"), AvatarPosition.RIGHT, field="position", where="Avatar"),
        size=_enum(AvatarSize, raw.get("size"), AvatarSize.MEDIUM, field="size", where="Avatar"),
        image_ref=_normalize_optional_str(_pick(raw, "imageUrl", "image_url", "imageRef", "image_ref")),
    )


def build_project(
    data: Any,
    *,
    default_title: str = "Untitled",
    fallback_seconds: float = DEFAULT_FALLBACK_SECONDS,
    aspect_ratio: Optional[str] = None,
    fps: Optional[int] = None,
    opening_seconds: float = 3.0,
    ending_seconds: float = 4.0,
) -> Project:
    """Convert an already-parsed descriptor into a :class:`Project`."""
    metadata, scene_blocks = _separate_metadata_and_scenes(data)
    scenes = [_normalise_scene(raw, idx, fallback_seconds) for idx, raw in enumerate(scene_blocks, start=1)]
    if not scenes:
        raise ScriptLoadError("No scenes found in project descriptor")
    seen: Dict[str, int] = {}
    for scene in scenes:
        if scene.scene_id in seen:
            raise ScriptLoadError(f"Duplicate scene id: {scene.scene_id}")
        seen[scene.scene_id] = 1

    ratio = _enum(
        AspectRatio,
        _pick(metadata, "aspectRatio", "aspect_ratio") or aspect_ratio,
        AspectRatio.LANDSCAPE,
        field="aspectRatio",
        where="Project",
    )
    frame_rate = _cast_float(_pick(metadata, "fps"), field="fps", where="Project") or fps or DEFAULT_FPS
    if frame_rate <= 0 or not math.isfinite(frame_rate) or frame_rate != int(frame_rate):
        raise ScriptLoadError(f"Project: fps must be a positive integer, got {frame_rate!r}")

    return Project(
        title=_normalize_optional_str(metadata.get("title")) or default_title,
        scenes=tuple(scenes),
        opening=_parse_opening(metadata.get("opening"), opening_seconds),
        ending=_parse_ending(metadata.get("ending"), ending_seconds),
        bgm=_parse_bgm(_pick(metadata, "bgm", "bgmUrl", "bgm_url")),
        avatar=_parse_avatar(metadata.get("avatar")),
        aspect_ratio=ratio,
        fps=int(frame_rate),
        show_subtitle=_cast_bool(_pick(metadata, "showSubtitle", "show_subtitle"), True),
        text_only=_cast_bool(_pick(metadata, "textOnly", "text_only"), False),
    )


def load_project(
    path: Union[Path, str],
    *,
    fallback_seconds: float = DEFAULT_FALLBACK_SECONDS,
    aspect_ratio: Optional[str] = None,
    fps: Optional[int] = None,
    opening_seconds: float = 3.0,
    ending_seconds: float = 4.0,
) -> Project:
    """Read a JSON, JSONL or YAML project descriptor."""
    project_path = Path(path).expanduser().resolve()
    data, fmt = _read_document(project_path)
    project = build_project(
        data,
        default_title=project_path.stem,
        fallback_seconds=fallback_seconds,
        aspect_ratio=aspect_ratio,
        fps=fps,
        opening_seconds=opening_seconds,
        ending_seconds=ending_seconds,
    )
    logger.info(
        "Loaded project %s: %s (scenes=%d, aspect=%s, fps=%d)",
        fmt,
        project_path.name,
        len(project.scenes),
        project.aspect_ratio.value,
        project.fps,
    )
    return project


# ----------------------------------------------------------------------
# Timesheets
# ----------------------------------------------------------------------


def _normalise_entry(raw: Any, idx: int) -> TimesheetEntry:
    if isinstance(raw, TimesheetEntry):
        return raw
    if not isinstance(raw, Mapping):
        raise ScriptLoadError(f"Timesheet entry #{idx} must be an object")
    scene_id = _normalize_optional_str(_pick(raw, "id", "sceneId", "scene_id"))
    if scene_id is None:
        raise ScriptLoadError(f"Timesheet entry #{idx} is missing 'id'")
    where = f"Timesheet entry {scene_id}"
    measured = _cast_float(
        _pick(raw, "measuredDurationSeconds", "measured_duration_seconds", "duration"), field="duration", where=where
    )
    if measured is None:
        start = _cast_float(_pick(raw, "startTime", "start_time"), field="startTime", where=where)
        end = _cast_float(_pick(raw, "endTime", "end_time"), field="endTime", where=where)
        measured = (end - start) if start is not None and end is not None else 0.0
    return TimesheetEntry(
        scene_id=scene_id,
        measured_duration_seconds=measured,
        audio_ref=_normalize_optional_str(_pick(raw, "audioRef", "audio_ref", "audioUrl", "audio_url")),
    )


def parse_timesheet(data: Any) -> List[TimesheetEntry]:
    if isinstance(data, Mapping):
        for key in ("timesheet", "entries", "scenes"):
            if isinstance(data.get(key), list):
                data = data[key]
                break
    if not isinstance(data, (list, tuple)):
        raise ScriptLoadError("Timesheet must be an array of entries")
    return [_normalise_entry(raw, idx) for idx, raw in enumerate(data, start=1)]


def load_timesheet(source: Union[Path, str, Sequence[Any]]) -> List[TimesheetEntry]:
    """Read a timesheet from a file path or an in-memory list of entries."""
    if isinstance(source, (str, Path)):
        path = Path(source).expanduser().resolve()
        data, _ = _read_document(path)
        entries = parse_timesheet(data)
        logger.info("Loaded timesheet %s (%d entries)", path.name, len(entries))
        return entries
    return parse_timesheet(list(source))
