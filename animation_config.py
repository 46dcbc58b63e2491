"""Helpers for resolving engine/animation configuration."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

from logging_utils import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class TimelineProfile:
    fps: int = 30
    aspect_ratio: str = "16:9"
    opening_seconds: float = 3.0
    ending_seconds: float = 4.0
    fallback_scene_seconds: float = 3.0


@dataclass(frozen=True)
class ReconcileProfile:
    padding_seconds: float = 0.3


@dataclass(frozen=True)
class TransitionProfile:
    symmetric_fade: bool = False
    frames_at_30fps: Mapping[str, int] = field(
        default_factory=lambda: {"fade": 15, "slide": 12, "zoom": 18, "wipe": 12}
    )


@dataclass(frozen=True)
class KenBurnsProfile:
    breathing_amplitude: float = 0.02
    breathing_rate: float = 0.015
    jitter_percent: float = 0.5


@dataclass(frozen=True)
class TextRevealProfile:
    start_delay_seconds: float = 0.1
    reveal_fraction: float = 0.9
    word_delay_seconds: float = 0.3
    word_stagger_seconds: float = 0.12
    dense_chunk_size: int = 3


@dataclass(frozen=True)
class AudioProfile:
    narration_gain: float = 0.85
    bgm_gain: float = 0.12
    sound_effect_cap: float = 0.20
    sound_effect_default: float = 0.3


@dataclass(frozen=True)
class SynthesisProfile:
    batch_size: int = 3
    max_attempts: int = 3
    retry_wait_seconds: float = 1.0
    retry_max_wait_seconds: float = 30.0


@dataclass(frozen=True)
class EngineSettings:
    timeline: TimelineProfile = field(default_factory=TimelineProfile)
    reconcile: ReconcileProfile = field(default_factory=ReconcileProfile)
    transitions: TransitionProfile = field(default_factory=TransitionProfile)
    ken_burns: KenBurnsProfile = field(default_factory=KenBurnsProfile)
    text: TextRevealProfile = field(default_factory=TextRevealProfile)
    audio: AudioProfile = field(default_factory=AudioProfile)
    synthesis: SynthesisProfile = field(default_factory=SynthesisProfile)


_DEFAULTS = EngineSettings()


def _to_float(value: Any, default: float, *, key: str = "", minimum: float | None = None) -> float:
    if value is None:
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        logger.warning("Invalid %s=%r; falling back to default %s", key or "value", value, default)
        return default
    if minimum is not None and result < minimum:
        logger.warning("%s=%s below minimum %s; falling back to default %s", key or "value", result, minimum, default)
        return default
    return result


def _to_int(value: Any, default: int, *, key: str = "", minimum: int | None = None) -> int:
    if value is None:
        return default
    try:
        result = int(value)
    except (TypeError, ValueError):
        logger.warning("Invalid %s=%r; falling back to default %s", key or "value", value, default)
        return default
    if minimum is not None and result < minimum:
        logger.warning("%s=%s below minimum %s; falling back to default %s", key or "value", result, minimum, default)
        return default
    return result


def _to_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lower = value.strip().lower()
        if lower in {"true", "1", "yes", "on"}:
            return True
        if lower in {"false", "0", "no", "off"}:
            return False
    if isinstance(value, (int, float)):
        return bool(value)
    return default


def _section(raw: Mapping[str, Any], name: str) -> Dict[str, Any]:
    value = raw.get(name) if isinstance(raw, Mapping) else None
    return dict(value) if isinstance(value, Mapping) else {}


def resolve_engine_settings(raw: Mapping[str, Any] | None) -> EngineSettings:
    """Build EngineSettings from a raw config mapping, tolerating missing or bad values."""
    cfg: Mapping[str, Any] = raw if isinstance(raw, Mapping) else {}

    video_cfg = _section(cfg, "video")
    timeline_cfg = _section(cfg, "timeline")
    aspect = str(video_cfg.get("aspect_ratio", _DEFAULTS.timeline.aspect_ratio)).strip()
    if aspect not in {"16:9", "9:16"}:
        logger.warning("Unsupported aspect_ratio=%r; using 16:9", aspect)
        aspect = "16:9"
    timeline = TimelineProfile(
        fps=_to_int(video_cfg.get("fps"), _DEFAULTS.timeline.fps, key="video.fps", minimum=1),
        aspect_ratio=aspect,
        opening_seconds=_to_float(
            timeline_cfg.get("opening_seconds"), _DEFAULTS.timeline.opening_seconds,
            key="timeline.opening_seconds", minimum=0.0,
        ),
        ending_seconds=_to_float(
            timeline_cfg.get("ending_seconds"), _DEFAULTS.timeline.ending_seconds,
            key="timeline.ending_seconds", minimum=0.0,
        ),
        fallback_scene_seconds=_to_float(
            timeline_cfg.get("fallback_scene_seconds"), _DEFAULTS.timeline.fallback_scene_seconds,
            key="timeline.fallback_scene_seconds", minimum=0.01,
        ),
    )

    reconcile_cfg = _section(cfg, "reconcile")
    reconcile = ReconcileProfile(
        padding_seconds=_to_float(
            reconcile_cfg.get("padding_seconds"), _DEFAULTS.reconcile.padding_seconds,
            key="reconcile.padding_seconds", minimum=0.0,
        ),
    )

    transitions_cfg = _section(cfg, "transitions")
    frames = dict(_DEFAULTS.transitions.frames_at_30fps)
    overrides = transitions_cfg.get("frames_at_30fps")
    if isinstance(overrides, Mapping):
        for kind, value in overrides.items():
            if kind not in frames:
                logger.warning("Unknown transition kind in config: %s", kind)
                continue
            frames[kind] = _to_int(value, frames[kind], key=f"transitions.{kind}", minimum=1)
    transitions = TransitionProfile(
        symmetric_fade=_to_bool(transitions_cfg.get("symmetric_fade"), _DEFAULTS.transitions.symmetric_fade),
        frames_at_30fps=frames,
    )

    kb_cfg = _section(cfg, "ken_burns")
    ken_burns = KenBurnsProfile(
        breathing_amplitude=_to_float(
            kb_cfg.get("breathing_amplitude"), _DEFAULTS.ken_burns.breathing_amplitude,
            key="ken_burns.breathing_amplitude", minimum=0.0,
        ),
        breathing_rate=_to_float(
            kb_cfg.get("breathing_rate"), _DEFAULTS.ken_burns.breathing_rate,
            key="ken_burns.breathing_rate", minimum=0.0,
        ),
        jitter_percent=_to_float(
            kb_cfg.get("jitter_percent"), _DEFAULTS.ken_burns.jitter_percent,
            key="ken_burns.jitter_percent", minimum=0.0,
        ),
    )

    text_cfg = _section(cfg, "text")
    reveal_fraction = _to_float(
        text_cfg.get("reveal_fraction"), _DEFAULTS.text.reveal_fraction,
        key="text.reveal_fraction", minimum=0.05,
    )
    if reveal_fraction > 1.0:
        logger.warning("text.reveal_fraction=%s above 1.0; clamping", reveal_fraction)
        reveal_fraction = 1.0
    chunk_size = _to_int(
        text_cfg.get("dense_chunk_size"), _DEFAULTS.text.dense_chunk_size,
        key="text.dense_chunk_size", minimum=1,
    )
    text = TextRevealProfile(
        start_delay_seconds=_to_float(
            text_cfg.get("start_delay_seconds"), _DEFAULTS.text.start_delay_seconds,
            key="text.start_delay_seconds", minimum=0.0,
        ),
        reveal_fraction=reveal_fraction,
        word_delay_seconds=_to_float(
            text_cfg.get("word_delay_seconds"), _DEFAULTS.text.word_delay_seconds,
            key="text.word_delay_seconds", minimum=0.0,
        ),
        word_stagger_seconds=_to_float(
            text_cfg.get("word_stagger_seconds"), _DEFAULTS.text.word_stagger_seconds,
            key="text.word_stagger_seconds", minimum=0.0,
        ),
        dense_chunk_size=chunk_size,
    )

    audio_cfg = _section(cfg, "audio")
    audio = AudioProfile(
        narration_gain=_to_float(audio_cfg.get("narration_gain"), _DEFAULTS.audio.narration_gain, key="audio.narration_gain", minimum=0.0),
        bgm_gain=_to_float(audio_cfg.get("bgm_gain"), _DEFAULTS.audio.bgm_gain, key="audio.bgm_gain", minimum=0.0),
        sound_effect_cap=_to_float(audio_cfg.get("sound_effect_cap"), _DEFAULTS.audio.sound_effect_cap, key="audio.sound_effect_cap", minimum=0.0),
        sound_effect_default=_to_float(
            audio_cfg.get("sound_effect_default"), _DEFAULTS.audio.sound_effect_default,
            key="audio.sound_effect_default", minimum=0.0,
        ),
    )

    synthesis_cfg = _section(cfg, "synthesis")
    synthesis = SynthesisProfile(
        batch_size=_to_int(synthesis_cfg.get("batch_size"), _DEFAULTS.synthesis.batch_size, key="synthesis.batch_size", minimum=1),
        max_attempts=_to_int(synthesis_cfg.get("max_attempts"), _DEFAULTS.synthesis.max_attempts, key="synthesis.max_attempts", minimum=1),
        retry_wait_seconds=_to_float(
            synthesis_cfg.get("retry_wait_seconds"), _DEFAULTS.synthesis.retry_wait_seconds,
            key="synthesis.retry_wait_seconds", minimum=0.0,
        ),
        retry_max_wait_seconds=_to_float(
            synthesis_cfg.get("retry_max_wait_seconds"), _DEFAULTS.synthesis.retry_max_wait_seconds,
            key="synthesis.retry_max_wait_seconds", minimum=0.0,
        ),
    )

    return EngineSettings(
        timeline=timeline,
        reconcile=reconcile,
        transitions=transitions,
        ken_burns=ken_burns,
        text=text,
        audio=audio,
        synthesis=synthesis,
    )
