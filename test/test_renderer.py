from __future__ import annotations

import json
import math
import sys
import warnings
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest

from compositor.errors import FrameOutOfRangeError, MissingMediaWarning
from compositor.models import (
    AssetAnimation,
    AssetPosition,
    AvatarConfig,
    EndingConfig,
    OpeningConfig,
    ProblemVariant,
    Project,
    QuizChoice,
    QuizTheme,
    Scene,
    SceneType,
    ShapeAsset,
    TransitionKind,
)
from compositor.renderer import FrameRenderer, export_render_plan
from compositor.visual_tree import dump_frames

SCENE_BASE = ["background", "light_blobs", "film_grain", "readability_gradient", "vignette"]


def _project(**overrides) -> Project:
    scenes = (
        Scene(
            "intro",
            2.0,
            subtitle_text="Hello brave new world",
            narration_audio_ref="voice/intro.wav",
            background_image_ref="images/intro.png",
            transition=TransitionKind.ZOOM,
            assets=(
                ShapeAsset(asset_id="box", position=AssetPosition(20, 20, 10, 10), animation=AssetAnimation.POP),
            ),
        ),
        Scene("body", 2.0, subtitle_text="Second scene"),
    )
    values = dict(
        title="Render test",
        scenes=scenes,
        opening=OpeningConfig(duration_seconds=1.0, subtitle="welcome"),
        ending=EndingConfig(duration_seconds=1.0),
    )
    values.update(overrides)
    return Project(**values)


def _renderer(**overrides) -> FrameRenderer:
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", MissingMediaWarning)
        return FrameRenderer(_project(**overrides))


def test_frame_count_includes_bookends() -> None:
    renderer = _renderer()
    assert renderer.total_frames == 30 + 60 + 60 + 30
    assert renderer.render(0).window_kind == "opening"
    assert renderer.render(30).window_kind == "scene"
    assert renderer.render(179).window_kind == "ending"


def test_rendering_is_deterministic_and_order_independent() -> None:
    frames = [150, 31, 95, 0, 179, 64]
    first = _renderer()
    second = _renderer()
    forward = {frame: first.render(frame).to_json() for frame in sorted(frames)}
    backward = {frame: second.render(frame).to_json() for frame in frames}
    assert forward == backward

    parallel = first.render_many(frames, workers=4)
    assert [tree.to_json() for tree in parallel] == [backward[frame] for frame in frames]


def test_scene_layer_order() -> None:
    tree = _renderer().render(45)
    assert tree.scene_id == "intro"
    assert tree.layer_kinds() == SCENE_BASE + [
        "asset",
        "accent_line",
        "accent_line",
        "center_text",
        "subtitle_band",
    ]
    assert tree.first("background").props["source"] == "images/intro.png"


def test_missing_media_is_warned_not_fatal() -> None:
    with pytest.warns(MissingMediaWarning):
        renderer = FrameRenderer(_project())
    tree = renderer.render(100)
    assert tree.scene_id == "body"
    codes = sorted(warning.code for warning in tree.warnings)
    assert codes == ["missing_background", "missing_narration"]
    assert tree.first("background").props["source"] is None
    assert tree.first("background").props["gradient"] == ["#1e293b", "#0f172a"]


def test_audio_directives_attached_to_frames() -> None:
    renderer = _renderer()
    refs = [entry["audio_ref"] for entry in renderer.render(40).audio]
    assert refs == ["voice/intro.wav"]
    assert renderer.render(100).audio == ()


def test_transition_state_in_container() -> None:
    renderer = _renderer()
    entry = renderer.render(30).container
    assert entry["transition"] == "zoom"
    assert entry["scale"] == pytest.approx(0.5)
    assert renderer.render(60).container["scale"] == pytest.approx(1.0)


def test_show_subtitle_false_hides_text_layers() -> None:
    tree = _renderer(show_subtitle=False).render(45)
    assert "center_text" not in tree.layer_kinds()
    assert "subtitle_band" not in tree.layer_kinds()


def test_lip_sync_video_wins_over_avatar() -> None:
    project = _project(avatar=AvatarConfig(enabled=True))
    scenes = list(project.scenes)
    scenes[1] = Scene("body", 2.0, lip_sync_video_ref="video/body.mp4", background_image_ref="b.png")
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", MissingMediaWarning)
        renderer = FrameRenderer(project.with_scenes(scenes))
    assert renderer.render(45).layer_kinds()[-1] == "avatar"
    assert renderer.render(100).layer_kinds()[-1] == "lip_sync_video"


def test_out_of_range_and_bad_frames() -> None:
    renderer = _renderer()
    with pytest.raises(FrameOutOfRangeError):
        renderer.render(renderer.total_frames)
    with pytest.raises(FrameOutOfRangeError):
        renderer.render(-1)
    with pytest.raises(TypeError):
        renderer.render(1.5)


def test_ending_fades_out() -> None:
    renderer = _renderer()
    assert renderer.render(150).container["opacity"] == pytest.approx(1.0)
    assert renderer.render(179).container["opacity"] < 0.1


def test_json_output_is_normalized() -> None:
    tree = _renderer().render(77)
    payload = json.loads(tree.to_json())
    assert payload["frame"] == 77

    def _walk(value):
        if isinstance(value, float):
            assert math.isfinite(value)
            assert value == round(value, 4)
        elif isinstance(value, dict):
            for item in value.values():
                _walk(item)
        elif isinstance(value, list):
            for item in value:
                _walk(item)

    _walk(payload)
    lines = dump_frames([tree, tree]).splitlines()
    assert len(lines) == 2 and lines[0] == lines[1]


def test_export_render_plan_with_stride() -> None:
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", MissingMediaWarning)
        plan = export_render_plan(_project(), stride=20)
    assert plan["total_frames"] == 180
    assert [frame["frame"] for frame in plan["frames"]] == list(range(0, 180, 20))
    assert plan["width"] == 1920 and plan["height"] == 1080
    assert plan["timeline"]["windows"][1]["scene_id"] == "intro"
    with pytest.raises(ValueError):
        export_render_plan(_project(), stride=0)


def _quiz_scene(**overrides) -> Scene:
    values = dict(
        scene_type=SceneType.QUIZ,
        quiz_question="Which planet is largest?",
        quiz_choices=(QuizChoice("Mars"), QuizChoice("Jupiter"), QuizChoice("Venus", icon="♀")),
        quiz_highlight_index=1,
    )
    values.update(overrides)
    return Scene("quiz", 4.0, **values)


def _strict_renderer(*scenes: Scene, **project_overrides) -> FrameRenderer:
    # Special scene types have no background image and must not warn about it
    with warnings.catch_warnings():
        warnings.simplefilter("error", MissingMediaWarning)
        return FrameRenderer(Project(title="Types", scenes=scenes, **project_overrides))


def test_quiz_choices_stagger_and_answer_highlights_near_end() -> None:
    renderer = _strict_renderer(_quiz_scene())
    # 4 s at 30 fps: choices start at 36, 54, 72; highlight after frame 75
    tree = renderer.render(40)
    assert tree.container["scene_type"] == "quiz"
    assert "transition" not in tree.container
    choices = tree.layers_of("quiz_choice")
    assert [choice.props["label"] for choice in choices] == ["A", "B", "♀"]
    assert choices[0].opacity > 0.0
    assert choices[1].opacity == 0.0
    assert renderer.render(35).layers_of("quiz_choice")[0].opacity == 0.0

    at_start = renderer.render(75).layers_of("quiz_choice")[1]
    assert at_start.props["highlighted"] is False
    highlighted = renderer.render(80).layers_of("quiz_choice")
    assert highlighted[1].props["highlighted"] is True
    assert highlighted[1].props["glow"] > 0.0
    assert highlighted[0].props["highlighted"] is False
    assert renderer.render(0).container["opacity"] == pytest.approx(1.0)
    assert renderer.render(119).container["opacity"] == pytest.approx(1.0 / 9.0)


def test_problem_items_land_one_per_second() -> None:
    scene = Scene(
        "problem",
        4.0,
        scene_type=SceneType.PROBLEM,
        problem_headline="Sound familiar?",
        problem_items=("Late again", "Out of ideas"),
    )
    renderer = _strict_renderer(scene)
    assert renderer.render(44).layers_of("problem_item")[0].opacity == 0.0
    items = renderer.render(50).layers_of("problem_item")
    assert items[0].opacity > 0.0
    assert items[1].opacity == 0.0
    assert renderer.render(80).layers_of("problem_item")[1].opacity > 0.0
    assert renderer.render(1).layers_of("flash")[0].opacity == pytest.approx(0.2)
    assert renderer.render(10).layers_of("flash")[0].opacity == 0.0
    assert renderer.render(10).layers_of("problem_headline")[0].transform["translate_x"] != 0.0

    calm = _strict_renderer(
        Scene(
            "problem",
            4.0,
            scene_type=SceneType.PROBLEM,
            problem_headline="Sound familiar?",
            problem_items=("Late again",),
            problem_variant=ProblemVariant.PULSE,
        )
    )
    assert calm.render(10).layers_of("problem_headline")[0].transform["translate_x"] == 0.0


def test_text_only_project_renders_words_over_gradient() -> None:
    scene = Scene("plain", 2.0, subtitle_text="one two three four five", background_image_ref="img.png")
    renderer = _strict_renderer(scene, text_only=True)
    tree = renderer.render(8)
    assert tree.container["scene_type"] == "text"
    assert "background" not in tree.layer_kinds()
    assert tree.layer_kinds()[0] == "scene_background"
    spans = tree.layers_of("center_text")[0].props["spans"]
    assert [span["text"] for span in spans] == ["one", "two", "three", "four", "five"]
    assert spans[0]["opacity"] == pytest.approx(1.0)
    assert spans[1]["opacity"] == pytest.approx(5.0 / 8.0)
    assert spans[4]["glow_color"] is not None
    assert spans[1]["glow_color"] is None


def test_incomplete_special_scene_falls_back() -> None:
    bare_quiz = _quiz_scene(quiz_choices=())
    assert bare_quiz.effective_type() is SceneType.NORMAL
    assert bare_quiz.effective_type(text_only=True) is SceneType.TEXT
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", MissingMediaWarning)
        tree = FrameRenderer(Project(title="t", scenes=(bare_quiz,))).render(0)
    assert tree.container["scene_type"] == "normal"
    assert tree.layer_kinds()[: len(SCENE_BASE)] == SCENE_BASE


def test_special_scene_json_is_stable() -> None:
    renderers = [_strict_renderer(_quiz_scene(quiz_theme=QuizTheme.PROBLEM)) for _ in range(2)]
    first, second = (json.dumps(renderer.render(60).to_dict(), sort_keys=True) for renderer in renderers)
    assert first == second
    assert renderers[0].render(30).layers_of("quiz_question")[0].transform["translate_x"] != 0.0
