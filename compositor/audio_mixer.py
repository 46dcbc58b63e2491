"""Audio directives: which clip plays over which frame range, at what gain.

No samples are mixed here; the plan is handed to the encoder as data.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from animation_config import AudioProfile
from logging_utils import get_logger

from .errors import SceneWarning
from .models import Project, Scene, SoundEffect, SoundTiming, TimelinePlan, TimelineWindow

logger = get_logger(__name__)


class AudioLayer(str, Enum):
    NARRATION = "narration"
    BGM = "bgm"
    SOUND_EFFECT = "sound_effect"


@dataclass(frozen=True)
class AudioDirective:
    layer: AudioLayer
    audio_ref: str
    start_frame: int
    end_frame: int
    gain: float
    loop: bool = False
    scene_id: Optional[str] = None

    def is_active(self, frame: int) -> bool:
        return self.start_frame <= frame < self.end_frame

    def to_dict(self) -> Dict[str, Any]:
        return {
            "layer": self.layer.value,
            "audio_ref": self.audio_ref,
            "start_frame": self.start_frame,
            "end_frame": self.end_frame,
            "gain": round(self.gain, 4),
            "loop": self.loop,
            "scene_id": self.scene_id,
        }


@dataclass(frozen=True)
class AudioPlan:
    directives: Tuple[AudioDirective, ...] = ()
    warnings: Tuple[SceneWarning, ...] = ()

    def for_scene(self, scene_id: str) -> List[AudioDirective]:
        return [directive for directive in self.directives if directive.scene_id == scene_id]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "directives": [directive.to_dict() for directive in self.directives],
            "warnings": [warning.to_dict() for warning in self.warnings],
        }


def sound_effect_offset(timing: SoundTiming, total_frames: int) -> int:
    """Frame offset inside the scene at which an effect starts."""
    if timing is SoundTiming.START or timing is SoundTiming.THROUGHOUT:
        return 0
    if timing is SoundTiming.MIDDLE:
        return total_frames // 2
    if timing is SoundTiming.END:
        return int(total_frames * 0.8)
    raise TypeError(f"Unhandled sound timing: {timing!r}")


def sound_effect_gain(effect: SoundEffect, profile: AudioProfile) -> float:
    requested = effect.volume if effect.volume is not None else profile.sound_effect_default
    return min(requested, profile.sound_effect_cap)


def _scene_directives(
    scene: Scene,
    window: TimelineWindow,
    profile: AudioProfile,
    warnings: List[SceneWarning],
) -> List[AudioDirective]:
    directives: List[AudioDirective] = []
    if scene.has_narration_audio:
        directives.append(
            AudioDirective(
                layer=AudioLayer.NARRATION,
                audio_ref=scene.narration_audio_ref.strip(),
                start_frame=window.start_frame,
                end_frame=window.end_frame,
                gain=profile.narration_gain,
                scene_id=scene.scene_id,
            )
        )
    else:
        warnings.append(
            SceneWarning(scene.scene_id, "missing_narration", "No narration audio; scene plays silent")
        )
        logger.warning("Scene %s has no narration audio", scene.scene_id)

    for effect in scene.sound_effects:
        if not (effect.audio_ref and effect.audio_ref.strip()):
            logger.debug("Skipping sound effect %r in scene %s: no audio", effect.keyword, scene.scene_id)
            continue
        offset = sound_effect_offset(effect.timing, window.duration_frames)
        directives.append(
            AudioDirective(
                layer=AudioLayer.SOUND_EFFECT,
                audio_ref=effect.audio_ref.strip(),
                start_frame=window.start_frame + offset,
                end_frame=window.end_frame,
                gain=sound_effect_gain(effect, profile),
                loop=effect.timing is SoundTiming.THROUGHOUT,
                scene_id=scene.scene_id,
            )
        )
    return directives


def build_audio_plan(
    project: Project,
    timeline: TimelinePlan,
    profile: Optional[AudioProfile] = None,
) -> AudioPlan:
    """Narration per scene window, background music over the whole project, sound effects at cue points."""
    settings = profile or AudioProfile()
    directives: List[AudioDirective] = []
    warnings: List[SceneWarning] = []

    scene_windows = timeline.scene_windows
    if len(scene_windows) != len(project.scenes):
        raise ValueError(
            f"Timeline has {len(scene_windows)} scene windows for {len(project.scenes)} scenes"
        )
    for scene, window in zip(project.scenes, scene_windows):
        directives.extend(_scene_directives(scene, window, settings, warnings))

    bgm = project.bgm
    if bgm is not None and bgm.audio_ref and bgm.audio_ref.strip() and timeline.total_frames > 0:
        directives.append(
            AudioDirective(
                layer=AudioLayer.BGM,
                audio_ref=bgm.audio_ref.strip(),
                start_frame=0,
                end_frame=timeline.total_frames,
                gain=bgm.volume if bgm.volume is not None else settings.bgm_gain,
                loop=True,
            )
        )

    logger.info(
        "Audio plan: %d directives, %d warnings across %d scenes",
        len(directives),
        len(warnings),
        len(project.scenes),
    )
    return AudioPlan(directives=tuple(directives), warnings=tuple(warnings))


def active_directives(plan: AudioPlan, frame: int) -> List[AudioDirective]:
    """Directives sounding at absolute ``frame``."""
    return [directive for directive in plan.directives if directive.is_active(frame)]
