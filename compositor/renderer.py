"""Frame renderer: absolute frame -> VisualTree.

The renderer only holds immutable project data, the derived timeline and the
audio plan, so ``render`` may be called for any frame, in any order, from any
thread.
"""
from __future__ import annotations

import warnings
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from animation_config import EngineSettings
from logging_utils import get_logger
from timeline_builder import build_project_timeline

from .assets import place_assets
from .audio_mixer import AudioPlan, active_directives, build_audio_plan
from .bookends import render_ending, render_opening
from .errors import FrameOutOfRangeError, MissingMediaWarning, SceneWarning
from .ken_burns import compute_ken_burns
from .models import Project, Scene, SceneType, TimelinePlan, TimelineWindow, TransitionKind, WindowKind
from .overlays import accent_lines, film_grain, light_blobs, neutral_background, readability_gradient, vignette
from .scene_types import render_problem, render_quiz, render_text_only
from .text_reveal import TextRevealState, compute_subtitle_reveal, compute_text_reveal
from .transitions import TransitionState, compute_transition, transition_for_scene
from .visual_tree import Layer, VisualTree, normalize

logger = get_logger(__name__)

SUBTITLE_BAND_BACKGROUND = "rgba(0, 0, 0, 0.75)"


def _text_props(state: TextRevealState) -> Dict[str, Any]:
    return {
        "mode": state.mode.value,
        "spans": [normalize(span) for span in state.spans],
        "caret": normalize(state.caret) if state.caret is not None else None,
    }


def _container(state: TransitionState) -> Dict[str, Any]:
    return {
        "scene_type": SceneType.NORMAL.value,
        "transition": state.kind.value,
        "phase": state.phase.value,
        "opacity": state.opacity,
        "entry_opacity": state.entry_opacity,
        "translate_x_percent": state.translate_x,
        "translate_y_percent": state.translate_y,
        "scale": state.scale,
        "clip_width_percent": state.clip_width_percent,
    }


class FrameRenderer:
    """Pure per-frame renderer for one project snapshot."""

    def __init__(
        self,
        project: Project,
        settings: Optional[EngineSettings] = None,
        timeline: Optional[TimelinePlan] = None,
    ) -> None:
        self.project = project
        self.settings = settings or EngineSettings()
        self.timeline = timeline or build_project_timeline(project)
        if len(self.timeline.scene_windows) != len(project.scenes):
            raise ValueError("Timeline does not match the project's scene list")
        self.audio_plan: AudioPlan = build_audio_plan(project, self.timeline, self.settings.audio)
        self._scene_types: Tuple[SceneType, ...] = tuple(
            scene.effective_type(project.text_only) for scene in project.scenes
        )
        self._transitions: Tuple[TransitionKind, ...] = tuple(
            transition_for_scene(scene, index) for index, scene in enumerate(project.scenes)
        )
        self._scene_warnings: Tuple[Tuple[SceneWarning, ...], ...] = tuple(
            self._collect_warnings(scene, scene_type)
            for scene, scene_type in zip(project.scenes, self._scene_types)
        )

    @property
    def total_frames(self) -> int:
        return self.timeline.total_frames

    @property
    def width(self) -> int:
        return self.project.resolution[0]

    @property
    def height(self) -> int:
        return self.project.resolution[1]

    def _collect_warnings(self, scene: Scene, scene_type: SceneType) -> Tuple[SceneWarning, ...]:
        found = [warning for warning in self.audio_plan.warnings if warning.scene_id == scene.scene_id]
        # Quiz, problem and text-only scenes draw their own backgrounds
        if scene_type is SceneType.NORMAL and not scene.has_background_image:
            message = "No background image; neutral gradient used"
            found.append(SceneWarning(scene.scene_id, "missing_background", message))
            logger.warning("Scene %s: %s", scene.scene_id, message)
            warnings.warn(f"Scene {scene.scene_id}: {message}", MissingMediaWarning, stacklevel=3)
        return tuple(found)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------
    def render(self, frame: int) -> VisualTree:
        if isinstance(frame, bool) or not isinstance(frame, int):
            raise TypeError(f"frame must be an int, got {type(frame).__name__}")
        window = self.timeline.window_at(frame)
        if window is None:
            raise FrameOutOfRangeError(frame, self.total_frames)

        audio = tuple(directive.to_dict() for directive in active_directives(self.audio_plan, frame))
        local_frame = window.local_frame(frame)

        if window.kind is WindowKind.SCENE:
            return self._render_scene(frame, window, local_frame, audio)

        fps = self.project.fps
        if window.kind is WindowKind.OPENING:
            layers, opacity = render_opening(self.project, local_frame, window.duration_frames, fps)
        else:
            layers, opacity = render_ending(self.project, local_frame, window.duration_frames, fps)
        return VisualTree(
            frame=frame,
            local_frame=local_frame,
            window_kind=window.kind.value,
            width=self.width,
            height=self.height,
            container={"opacity": opacity},
            layers=tuple(layers),
            audio=audio,
        )

    def _render_scene(
        self,
        frame: int,
        window: TimelineWindow,
        local_frame: int,
        audio: Tuple[Dict[str, Any], ...],
    ) -> VisualTree:
        project = self.project
        settings = self.settings
        fps = project.fps
        index = window.scene_index if window.scene_index is not None else 0
        scene = project.scenes[index]
        total = window.duration_frames
        vertical = project.aspect_ratio.is_vertical
        accent = scene.accent_color

        scene_type = self._scene_types[index]
        if scene_type is not SceneType.NORMAL:
            return self._render_special(frame, index, scene_type, local_frame, total, audio)

        transition = compute_transition(
            self._transitions[index],
            local_frame,
            total,
            aspect_ratio=project.aspect_ratio,
            fps=fps,
            symmetric_fade=settings.transitions.symmetric_fade,
            frames_at_30fps=settings.transitions.frames_at_30fps,
        )
        ken_burns = compute_ken_burns(
            index,
            local_frame,
            total,
            seed_text=scene.subtitle_text or scene.scene_id,
            breathing_amplitude=settings.ken_burns.breathing_amplitude,
            breathing_rate=settings.ken_burns.breathing_rate,
            jitter_percent=settings.ken_burns.jitter_percent,
        )
        background_transform = {
            "pattern": ken_burns.pattern_index,
            "translate_x_percent": ken_burns.pan_x,
            "translate_y_percent": ken_burns.pan_y,
            "scale": ken_burns.scale,
            "css": ken_burns.css_transform,
        }
        if scene.has_background_image:
            background = Layer(
                kind="background",
                transform=background_transform,
                props={"source": scene.background_image_ref.strip(), "fit": "cover"},
            )
        else:
            fallback = neutral_background()
            background = Layer(kind=fallback.kind, transform=background_transform, props=fallback.props)

        layers: List[Layer] = [
            background,
            light_blobs(local_frame, total),
            film_grain(local_frame),
            readability_gradient(),
            vignette(),
        ]

        for placement in place_assets(scene.assets, local_frame, fps):
            layers.append(
                Layer(
                    kind="asset",
                    opacity=placement.opacity,
                    transform={
                        "translate_x": placement.transform.translate_x,
                        "translate_y": placement.transform.translate_y,
                        "scale": placement.transform.scale,
                        "rotation": placement.transform.rotation,
                        "css": placement.transform.css,
                    },
                    props={
                        "asset_id": placement.asset_id,
                        "asset_kind": placement.kind,
                        "x": placement.x,
                        "y": placement.y,
                        "width": placement.width,
                        "height": placement.height,
                        "z_index": placement.z_index,
                        **placement.props,
                    },
                )
            )

        layers.extend(accent_lines(local_frame, fps, accent, vertical))

        if project.show_subtitle:
            center = compute_text_reveal(
                scene.subtitle_text,
                scene.text_display_mode,
                local_frame,
                total,
                fps=fps,
                emphasis_words=sorted(scene.emphasis_words),
                accent_color=accent,
                profile=settings.text,
            )
            if not center.is_empty:
                layers.append(Layer(kind="center_text", props={**_text_props(center), "accent_color": accent}))

            band = compute_subtitle_reveal(scene.subtitle_text, local_frame, fps=fps, accent_color=accent)
            if not band.is_empty:
                layers.append(
                    Layer(
                        kind="subtitle_band",
                        props={
                            **_text_props(band),
                            "background": SUBTITLE_BAND_BACKGROUND,
                            "border_color": accent,
                            "bottom_offset": 120 if vertical else 80,
                        },
                    )
                )

        narration_layer = self._narration_layer(scene)
        if narration_layer is not None:
            layers.append(narration_layer)

        return VisualTree(
            frame=frame,
            local_frame=local_frame,
            window_kind=WindowKind.SCENE.value,
            width=self.width,
            height=self.height,
            scene_id=scene.scene_id,
            scene_index=index,
            container=_container(transition),
            layers=tuple(layers),
            audio=audio,
            warnings=self._scene_warnings[index],
        )

    def _render_special(
        self,
        frame: int,
        index: int,
        scene_type: SceneType,
        local_frame: int,
        total: int,
        audio: Tuple[Dict[str, Any], ...],
    ) -> VisualTree:
        """Quiz, problem and text-only scenes: own layer stack and own fade-out, no transition."""
        scene = self.project.scenes[index]
        fps = self.project.fps
        vertical = self.project.aspect_ratio.is_vertical
        if scene_type is SceneType.QUIZ:
            layers, opacity = render_quiz(scene, local_frame, total, fps, vertical)
        elif scene_type is SceneType.PROBLEM:
            layers, opacity = render_problem(scene, local_frame, total, fps, vertical)
        else:
            layers, opacity = render_text_only(scene, index, local_frame, total, fps, vertical)
        return VisualTree(
            frame=frame,
            local_frame=local_frame,
            window_kind=WindowKind.SCENE.value,
            width=self.width,
            height=self.height,
            scene_id=scene.scene_id,
            scene_index=index,
            container={"scene_type": scene_type.value, "opacity": opacity},
            layers=tuple(layers),
            audio=audio,
            warnings=self._scene_warnings[index],
        )

    def _narration_layer(self, scene: Scene) -> Optional[Layer]:
        if scene.has_lip_sync_video:
            return Layer(kind="lip_sync_video", props={"source": scene.lip_sync_video_ref.strip(), "muted": True})
        avatar = self.project.avatar
        if avatar is not None and avatar.enabled:
            return Layer(
                kind="avatar",
                props={
                    "image_ref": avatar.image_ref,
                    "position": avatar.position.value,
                    "size": avatar.size.value,
                    "emotion": (scene.emotion.value if scene.emotion else "neutral"),
                    "speaking": scene.has_narration_audio,
                },
            )
        return None

    def render_many(self, frames: Iterable[int], *, workers: int = 1) -> List[VisualTree]:
        """Render ``frames`` in the given order; ``workers > 1`` renders in parallel."""
        requested = list(frames)
        if workers <= 1 or len(requested) < 2:
            return [self.render(frame) for frame in requested]
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(self.render, requested))


def export_render_plan(
    project: Project,
    settings: Optional[EngineSettings] = None,
    *,
    frames: Optional[Sequence[int]] = None,
    stride: int = 1,
    workers: int = 1,
) -> Dict[str, Any]:
    """JSON-ready frame stream plus audio plan for an external encoder."""
    if stride < 1:
        raise ValueError("stride must be at least 1")
    renderer = FrameRenderer(project, settings)
    selected = list(frames) if frames is not None else list(range(0, renderer.total_frames, stride))
    logger.info(
        "Exporting render plan for %r: %d/%d frames at %d fps (%dx%d)",
        project.title,
        len(selected),
        renderer.total_frames,
        project.fps,
        renderer.width,
        renderer.height,
    )
    trees = renderer.render_many(selected, workers=workers)
    return {
        "title": project.title,
        "fps": project.fps,
        "width": renderer.width,
        "height": renderer.height,
        "aspect_ratio": project.aspect_ratio.value,
        "total_frames": renderer.total_frames,
        "timeline": renderer.timeline.to_dict(),
        "audio": renderer.audio_plan.to_dict(),
        "frames": [tree.to_dict() for tree in trees],
    }
