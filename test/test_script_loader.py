from __future__ import annotations

import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest

from compositor.errors import ScriptLoadError
from compositor.models import (
    AspectRatio,
    ProblemVariant,
    QuizChoice,
    QuizTheme,
    SceneType,
    ShapeAsset,
    SoundTiming,
    TextDisplayMode,
    TransitionKind,
)
from compositor.script_loader import build_project, load_project, load_timesheet, parse_timesheet


def _descriptor() -> dict:
    return {
        "title": "Demo",
        "aspectRatio": "9:16",
        "fps": 24,
        "opening": {"subtitle": "hi"},
        "ending": True,
        "bgm": {"url": "music/bed.mp3", "volume": 0.2},
        "scenes": [
            {
                "id": "a",
                "durationSeconds": 4,
                "subtitle": "Hello world",
                "imagePromptOrRef": "images/a.png",
                "emphasisWords": "Hello、world",
                "transition": "wipe",
                "textDisplayMode": "sync-typewriter",
                "assets": [{"type": "shape", "position": {"x": 10, "y": 20}, "zIndex": 0}],
                "soundEffects": [{"keyword": "pop", "timing": "middle", "url": "se/pop.mp3"}],
            },
            {"subtitle": "no duration here", "imagePromptOrRef": "a cat on a sofa"},
        ],
    }


def test_build_project_normalizes_descriptor() -> None:
    project = build_project(_descriptor())
    assert project.title == "Demo"
    assert project.aspect_ratio is AspectRatio.PORTRAIT
    assert project.fps == 24
    assert project.opening_seconds == 3.0
    assert project.opening.subtitle == "hi"
    assert project.ending_seconds == 4.0
    assert project.bgm.volume == pytest.approx(0.2)

    first, second = project.scenes
    assert first.background_image_ref == "images/a.png"
    assert first.emphasis_words == frozenset({"Hello", "world"})
    assert first.transition is TransitionKind.WIPE
    assert first.text_display_mode is TextDisplayMode.SYNC_TYPEWRITER
    assert isinstance(first.assets[0], ShapeAsset)
    assert first.assets[0].z_index == 0
    assert first.sound_effects[0].timing is SoundTiming.MIDDLE
    assert first.voice_text == "Hello world"

    assert second.scene_id == "scene-2"
    assert second.duration_seconds == 3.0
    assert second.background_image_ref is None
    assert second.image_prompt == "a cat on a sofa"
    assert second.text_display_mode is TextDisplayMode.WORD_BOUNCE


def test_configured_bookend_defaults() -> None:
    project = build_project(_descriptor(), opening_seconds=2.0, ending_seconds=1.5)
    assert project.opening_seconds == 2.0
    assert project.ending_seconds == 1.5


@pytest.mark.parametrize(
    "mutate",
    [
        lambda data: data["scenes"][0].update(transition="spin"),
        lambda data: data["scenes"][0]["assets"][0].pop("position"),
        lambda data: data["scenes"][0]["assets"][0].update(type="video"),
        lambda data: data["scenes"][1].update(id="a"),
        lambda data: data["scenes"][0].update(durationSeconds="long"),
        lambda data: data.update(fps=29.5),
        lambda data: data["scenes"][0].update(sceneType="slideshow"),
        lambda data: data["scenes"][0].update(quizChoices="A or B"),
        lambda data: data["scenes"][0].update(quizHighlightIndex=1.5),
        lambda data: data["scenes"][0].update(problemVariant="loud"),
    ],
)
def test_invalid_descriptors_raise(mutate) -> None:
    data = _descriptor()
    mutate(data)
    with pytest.raises(ScriptLoadError):
        build_project(data)


def test_document_without_scenes_is_rejected() -> None:
    with pytest.raises(ScriptLoadError):
        build_project({"title": "nothing"})
    with pytest.raises(ScriptLoadError):
        build_project({"scenes": []})


def test_load_yaml_and_jsonl(tmp_path: Path) -> None:
    yaml_path = tmp_path / "talk.yaml"
    yaml_path.write_text("scenes:\n  - id: one\n    duration: 2\n    subtitle: first\n", encoding="utf-8")
    project = load_project(yaml_path)
    assert project.title == "talk"
    assert project.scene_ids() == ["one"]

    jsonl_path = tmp_path / "talk.jsonl"
    lines = [
        {"title": "From JSONL", "bgm": "music/bed.mp3"},
        {"id": "a", "subtitle": "x", "duration": 2},
        {"id": "b", "subtitle": "y", "duration": 3},
    ]
    jsonl_path.write_text("\n".join(json.dumps(line) for line in lines), encoding="utf-8")
    project = load_project(jsonl_path)
    assert project.title == "From JSONL"
    assert project.bgm.audio_ref == "music/bed.mp3"
    assert project.scene_ids() == ["a", "b"]


def test_missing_or_empty_files(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_project(tmp_path / "absent.json")
    empty = tmp_path / "empty.json"
    empty.write_text("  \n", encoding="utf-8")
    with pytest.raises(ScriptLoadError):
        load_project(empty)


def test_timesheet_aliases_and_ranges(tmp_path: Path) -> None:
    entries = parse_timesheet(
        {
            "timesheet": [
                {"id": "a", "duration": 2.5, "audioUrl": "voice/a.wav"},
                {"sceneId": "b", "startTime": 1.0, "endTime": 3.5},
                {"id": "c"},
            ]
        }
    )
    assert [(entry.scene_id, entry.measured_duration_seconds) for entry in entries] == [
        ("a", 2.5),
        ("b", 2.5),
        ("c", 0.0),
    ]
    assert entries[0].audio_ref == "voice/a.wav"

    path = tmp_path / "timesheet.json"
    path.write_text(json.dumps([{"id": "a", "measuredDurationSeconds": 1.2}]), encoding="utf-8")
    assert load_timesheet(path)[0].measured_duration_seconds == pytest.approx(1.2)

    with pytest.raises(ScriptLoadError):
        parse_timesheet([{"duration": 1.0}])


def test_scene_types_and_text_only_flag() -> None:
    project = build_project(
        {
            "title": "Types",
            "textOnly": True,
            "scenes": [
                {
                    "id": "q",
                    "duration": 5,
                    "sceneType": "quiz",
                    "quizQuestion": "Which one?",
                    "quizChoices": ["Tea", {"text": "Coffee", "icon": "☕"}],
                    "quizTheme": "compare",
                    "quizHighlightIndex": 1,
                },
                {
                    "id": "p",
                    "duration": 5,
                    "scene_type": "problem",
                    "problem_headline": "Sound familiar?",
                    "problem_items": ["Late trains", "", "Cold coffee"],
                },
                {"id": "t", "duration": 2, "subtitle": "just words"},
            ],
        }
    )
    quiz, problem, plain = project.scenes
    assert project.text_only is True
    assert quiz.scene_type is SceneType.QUIZ
    assert quiz.quiz_choices == (QuizChoice("Tea"), QuizChoice("Coffee", "☕"))
    assert quiz.quiz_theme is QuizTheme.COMPARE
    assert quiz.quiz_highlight_index == 1
    assert problem.problem_items == ("Late trains", "Cold coffee")
    assert problem.problem_variant is ProblemVariant.DRAMATIC
    assert plain.scene_type is None
    assert [scene.effective_type(project.text_only) for scene in project.scenes] == [
        SceneType.QUIZ,
        SceneType.PROBLEM,
        SceneType.TEXT,
    ]
