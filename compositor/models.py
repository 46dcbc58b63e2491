"""Data structures for projects, scenes, assets and the derived timeline."""
from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, ClassVar, Dict, FrozenSet, List, Optional, Sequence, Tuple, Union

DEFAULT_FPS = 30


class AspectRatio(str, Enum):
    LANDSCAPE = "16:9"
    PORTRAIT = "9:16"

    @property
    def resolution(self) -> Tuple[int, int]:
        if self is AspectRatio.PORTRAIT:
            return (1080, 1920)
        return (1920, 1080)

    @property
    def is_vertical(self) -> bool:
        return self is AspectRatio.PORTRAIT


class TransitionKind(str, Enum):
    FADE = "fade"
    SLIDE = "slide"
    ZOOM = "zoom"
    WIPE = "wipe"


class TextDisplayMode(str, Enum):
    INSTANT = "instant"
    SYNC_TYPEWRITER = "sync-typewriter"
    WORD_BOUNCE = "word-bounce"


class Emotion(str, Enum):
    NEUTRAL = "neutral"
    HAPPY = "happy"
    SERIOUS = "serious"
    EXCITED = "excited"
    THOUGHTFUL = "thoughtful"

    @property
    def accent_color(self) -> str:
        return EMOTION_ACCENT_COLORS[self]


EMOTION_ACCENT_COLORS: Dict[Emotion, str] = {
    Emotion.NEUTRAL: "rgba(147, 197, 253, 1)",
    Emotion.HAPPY: "rgba(251, 191, 36, 1)",
    Emotion.SERIOUS: "rgba(99, 102, 241, 1)",
    Emotion.EXCITED: "rgba(244, 114, 182, 1)",
    Emotion.THOUGHTFUL: "rgba(139, 92, 246, 1)",
}


class SceneType(str, Enum):
    NORMAL = "normal"
    QUIZ = "quiz"
    PROBLEM = "problem"
    TEXT = "text"


class QuizTheme(str, Enum):
    PROBLEM = "problem"
    BENEFIT = "benefit"
    COMPARE = "compare"
    QUIZ = "quiz"


class ProblemVariant(str, Enum):
    SHAKE = "shake"
    PULSE = "pulse"
    DRAMATIC = "dramatic"


class SoundTiming(str, Enum):
    START = "start"
    MIDDLE = "middle"
    END = "end"
    THROUGHOUT = "throughout"


@dataclass(frozen=True)
class SoundEffect:
    keyword: str
    timing: SoundTiming = SoundTiming.START
    volume: Optional[float] = None
    audio_ref: Optional[str] = None
    category: str = "ambient"


# ----------------------------------------------------------------------
# Assets
# ----------------------------------------------------------------------


class AssetAnimation(str, Enum):
    NONE = "none"
    FADE_IN = "fadeIn"
    FADE_OUT = "fadeOut"
    SLIDE_IN_LEFT = "slideInLeft"
    SLIDE_IN_RIGHT = "slideInRight"
    SLIDE_IN_UP = "slideInUp"
    SLIDE_IN_DOWN = "slideInDown"
    BOUNCE = "bounce"
    PULSE = "pulse"
    SPIN = "spin"
    SHAKE = "shake"
    SCALE = "scale"
    POP = "pop"


class ShapeType(str, Enum):
    RECTANGLE = "rectangle"
    CIRCLE = "circle"
    TRIANGLE = "triangle"
    ARROW = "arrow"
    LINE = "line"
    STAR = "star"


@dataclass(frozen=True)
class AssetPosition:
    """Placement in percent of the frame; x/y address the asset centre."""

    x: float
    y: float
    width: Optional[float] = None
    height: Optional[float] = None


@dataclass(frozen=True)
class ShapeAsset:
    kind: ClassVar[str] = "shape"

    asset_id: str
    position: AssetPosition
    animation: AssetAnimation = AssetAnimation.NONE
    animation_delay_seconds: float = 0.0
    animation_duration_seconds: float = 0.5
    opacity: float = 1.0
    z_index: int = 1
    shape_type: ShapeType = ShapeType.RECTANGLE
    fill_color: str = "#3B82F6"
    stroke_color: Optional[str] = None
    stroke_width: float = 0.0
    border_radius: float = 0.0


@dataclass(frozen=True)
class IconAsset:
    kind: ClassVar[str] = "icon"

    asset_id: str
    position: AssetPosition
    animation: AssetAnimation = AssetAnimation.NONE
    animation_delay_seconds: float = 0.0
    animation_duration_seconds: float = 0.5
    opacity: float = 1.0
    z_index: int = 1
    icon_name: str = "star"
    size: int = 48
    color: str = "#FBBF24"


@dataclass(frozen=True)
class TextAsset:
    kind: ClassVar[str] = "text"

    asset_id: str
    position: AssetPosition
    animation: AssetAnimation = AssetAnimation.NONE
    animation_delay_seconds: float = 0.0
    animation_duration_seconds: float = 0.5
    opacity: float = 1.0
    z_index: int = 1
    text: str = ""
    font_size: int = 32
    font_weight: str = "bold"
    color: str = "#FFFFFF"
    background_color: Optional[str] = None


@dataclass(frozen=True)
class LottieAsset:
    kind: ClassVar[str] = "lottie"

    asset_id: str
    position: AssetPosition
    animation: AssetAnimation = AssetAnimation.NONE
    animation_delay_seconds: float = 0.0
    animation_duration_seconds: float = 0.5
    opacity: float = 1.0
    z_index: int = 1
    lottie_id: str = "confetti"


@dataclass(frozen=True)
class SvgAsset:
    kind: ClassVar[str] = "svg"

    asset_id: str
    position: AssetPosition
    animation: AssetAnimation = AssetAnimation.NONE
    animation_delay_seconds: float = 0.0
    animation_duration_seconds: float = 0.5
    opacity: float = 1.0
    z_index: int = 1
    svg_ref: Optional[str] = None
    color: str = "#10B981"


Asset = Union[ShapeAsset, IconAsset, TextAsset, LottieAsset, SvgAsset]
ASSET_TYPES: Tuple[type, ...] = (ShapeAsset, IconAsset, TextAsset, LottieAsset, SvgAsset)


# ----------------------------------------------------------------------
# Scenes and project
# ----------------------------------------------------------------------


def _has_ref(value: Optional[str]) -> bool:
    return bool(value and value.strip())


@dataclass(frozen=True)
class QuizChoice:
    text: str
    icon: Optional[str] = None


@dataclass(frozen=True)
class Scene:
    """One narrated segment. Its frame window is derived, never stored."""

    scene_id: str
    duration_seconds: float
    subtitle_text: str = ""
    narration_audio_ref: Optional[str] = None
    background_image_ref: Optional[str] = None
    lip_sync_video_ref: Optional[str] = None
    emphasis_words: FrozenSet[str] = frozenset()
    transition: Optional[TransitionKind] = None
    emotion: Optional[Emotion] = None
    assets: Tuple[Asset, ...] = ()
    text_display_mode: TextDisplayMode = TextDisplayMode.WORD_BOUNCE
    sound_effects: Tuple[SoundEffect, ...] = ()
    voice_text: str = ""
    image_prompt: Optional[str] = None
    speaker: Optional[str] = None
    scene_type: Optional[SceneType] = None
    quiz_question: Optional[str] = None
    quiz_choices: Tuple[QuizChoice, ...] = ()
    quiz_theme: QuizTheme = QuizTheme.QUIZ
    quiz_highlight_index: Optional[int] = None
    problem_headline: Optional[str] = None
    problem_items: Tuple[str, ...] = ()
    problem_variant: ProblemVariant = ProblemVariant.DRAMATIC

    @property
    def has_narration_audio(self) -> bool:
        return _has_ref(self.narration_audio_ref)

    @property
    def has_background_image(self) -> bool:
        return _has_ref(self.background_image_ref)

    @property
    def has_lip_sync_video(self) -> bool:
        return _has_ref(self.lip_sync_video_ref)

    @property
    def accent_color(self) -> str:
        return (self.emotion or Emotion.NEUTRAL).accent_color

    def effective_type(self, text_only: bool = False) -> SceneType:
        """Scene type actually rendered.

        Quiz and problem scenes fall back when their content is missing; a
        project-wide ``text_only`` flag turns every other scene into text.
        """
        if self.scene_type is SceneType.QUIZ and self.quiz_question and self.quiz_choices:
            return SceneType.QUIZ
        if self.scene_type is SceneType.PROBLEM and self.problem_headline and self.problem_items:
            return SceneType.PROBLEM
        if self.scene_type is SceneType.TEXT or text_only:
            return SceneType.TEXT
        return SceneType.NORMAL


@dataclass(frozen=True)
class OpeningConfig:
    enabled: bool = True
    duration_seconds: float = 3.0
    subtitle: Optional[str] = None


@dataclass(frozen=True)
class EndingConfig:
    enabled: bool = True
    duration_seconds: float = 4.0
    call_to_action: Optional[str] = None
    channel_name: Optional[str] = None


@dataclass(frozen=True)
class BgmConfig:
    audio_ref: str
    volume: Optional[float] = None


class AvatarPosition(str, Enum):
    LEFT = "left"
    RIGHT = "right"
    CENTER = "center"


class AvatarSize(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


@dataclass(frozen=True)
class AvatarConfig:
    enabled: bool = False
    position: AvatarPosition = AvatarPosition.RIGHT
    size: AvatarSize = AvatarSize.MEDIUM
    image_ref: Optional[str] = None


@dataclass(frozen=True)
class Project:
    title: str
    scenes: Tuple[Scene, ...]
    opening: Optional[OpeningConfig] = None
    ending: Optional[EndingConfig] = None
    bgm: Optional[BgmConfig] = None
    avatar: Optional[AvatarConfig] = None
    aspect_ratio: AspectRatio = AspectRatio.LANDSCAPE
    fps: int = DEFAULT_FPS
    show_subtitle: bool = True
    text_only: bool = False

    @property
    def resolution(self) -> Tuple[int, int]:
        return self.aspect_ratio.resolution

    @property
    def opening_seconds(self) -> float:
        if self.opening is None or not self.opening.enabled:
            return 0.0
        return self.opening.duration_seconds

    @property
    def ending_seconds(self) -> float:
        if self.ending is None or not self.ending.enabled:
            return 0.0
        return self.ending.duration_seconds

    def scene_ids(self) -> List[str]:
        return [scene.scene_id for scene in self.scenes]

    def scene_index(self, scene_id: str) -> int:
        for index, scene in enumerate(self.scenes):
            if scene.scene_id == scene_id:
                return index
        raise KeyError(scene_id)

    def scene_by_id(self, scene_id: str) -> Scene:
        return self.scenes[self.scene_index(scene_id)]

    def with_scenes(self, scenes: Sequence[Scene]) -> "Project":
        return replace(self, scenes=tuple(scenes))


@dataclass(frozen=True)
class TimesheetEntry:
    """Measured narration duration for one scene, produced after synthesis."""

    scene_id: str
    measured_duration_seconds: float
    audio_ref: Optional[str] = None


# ----------------------------------------------------------------------
# Derived timeline
# ----------------------------------------------------------------------


class WindowKind(str, Enum):
    OPENING = "opening"
    SCENE = "scene"
    ENDING = "ending"


@dataclass(frozen=True)
class TimelineWindow:
    """Absolute half-open frame range ``[start_frame, end_frame)``."""

    scene_id: Optional[str]
    start_frame: int
    end_frame: int
    kind: WindowKind = WindowKind.SCENE
    scene_index: Optional[int] = None

    @property
    def duration_frames(self) -> int:
        return self.end_frame - self.start_frame

    def contains(self, frame: int) -> bool:
        return self.start_frame <= frame < self.end_frame

    def local_frame(self, frame: int) -> int:
        return frame - self.start_frame

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scene_id": self.scene_id,
            "kind": self.kind.value,
            "start_frame": self.start_frame,
            "end_frame": self.end_frame,
        }


@dataclass(frozen=True)
class TimelinePlan:
    windows: Tuple[TimelineWindow, ...]
    fps: int = DEFAULT_FPS
    _starts: Tuple[int, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_starts", tuple(window.start_frame for window in self.windows))

    @property
    def total_frames(self) -> int:
        if not self.windows:
            return 0
        return self.windows[-1].end_frame

    @property
    def total_seconds(self) -> float:
        return round(self.total_frames / float(self.fps), 3)

    @property
    def scene_windows(self) -> Tuple[TimelineWindow, ...]:
        return tuple(window for window in self.windows if window.kind is WindowKind.SCENE)

    @property
    def opening_frames(self) -> int:
        for window in self.windows:
            if window.kind is WindowKind.OPENING:
                return window.duration_frames
        return 0

    def window_at(self, frame: int) -> Optional[TimelineWindow]:
        if frame < 0 or frame >= self.total_frames:
            return None
        position = bisect_right(self._starts, frame) - 1
        if position < 0:
            return None
        window = self.windows[position]
        return window if window.contains(frame) else None

    def window_for_scene(self, scene_id: str) -> TimelineWindow:
        for window in self.windows:
            if window.kind is WindowKind.SCENE and window.scene_id == scene_id:
                return window
        raise KeyError(scene_id)

    def as_pairs(self) -> List[Tuple[int, int]]:
        return [(window.start_frame, window.end_frame) for window in self.scene_windows]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fps": self.fps,
            "total_frames": self.total_frames,
            "windows": [window.to_dict() for window in self.windows],
        }
