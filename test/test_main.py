from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest

from compositor.main import main, parse_frame_selection


@pytest.fixture
def workspace(tmp_path: Path):
    config = tmp_path / "config.yaml"
    config.write_text(
        "timeline:\n  opening_seconds: 0\n  ending_seconds: 0\n"
        "output:\n  directory: out\nlogging:\n  level: WARNING\n  file: logs/test.log\n",
        encoding="utf-8",
    )
    project = tmp_path / "project.json"
    project.write_text(
        json.dumps(
            {
                "title": "CLI run",
                "scenes": [
                    {"id": "a", "duration": 1, "subtitle": "first", "audioUrl": "voice/a.wav"},
                    {"id": "b", "duration": 1, "subtitle": "second"},
                ],
            }
        ),
        encoding="utf-8",
    )
    yield tmp_path
    # main() reconfigures the root logger; close its file handler
    for handler in list(logging.getLogger().handlers):
        handler.close()
        logging.getLogger().removeHandler(handler)


def _args(root: Path, *extra: str) -> list[str]:
    return ["--project", str(root / "project.json"), "--config", str(root / "config.yaml"), *extra]


def test_parse_frame_selection() -> None:
    assert parse_frame_selection(None) is None
    assert parse_frame_selection("0, 5,10-12") == [0, 5, 10, 11, 12]
    with pytest.raises(ValueError):
        parse_frame_selection("9-3")


def test_json_export_to_default_location(workspace: Path) -> None:
    assert main(_args(workspace, "--stride", "15")) == 0
    output = workspace / "out" / "CLI_run.json"
    plan = json.loads(output.read_text(encoding="utf-8"))
    assert plan["total_frames"] == 60
    assert [frame["frame"] for frame in plan["frames"]] == [0, 15, 30, 45]


def test_jsonl_export_with_timesheet_and_preview(workspace: Path) -> None:
    timesheet = workspace / "timesheet.json"
    timesheet.write_text(json.dumps([{"id": "b", "duration": 1.7, "audioUrl": "voice/b.wav"}]), encoding="utf-8")
    output = workspace / "plan.jsonl"
    code = main(
        _args(
            workspace,
            "--timesheet", str(timesheet),
            "--format", "jsonl",
            "--output", str(output),
            "--frames", "0,40-41",
            "--preview-frame", "40",
            "--preview-scale", "0.05",
        )
    )
    assert code == 0
    lines = output.read_text(encoding="utf-8").splitlines()
    header = json.loads(lines[0])
    assert header["total_frames"] == 30 + 60
    assert [json.loads(line)["frame"] for line in lines[1:]] == [0, 40, 41]
    assert (workspace / "plan_frame00040.png").exists()


def test_invalid_duration_needs_fallback_flag(workspace: Path, capsys) -> None:
    project = workspace / "project.json"
    data = json.loads(project.read_text(encoding="utf-8"))
    data["scenes"][1]["duration"] = 0
    project.write_text(json.dumps(data), encoding="utf-8")

    assert main(_args(workspace, "--dump-timeline")) == 2
    capsys.readouterr()
    assert main(_args(workspace, "--dump-timeline", "--fallback-invalid")) == 0
    timeline = json.loads(capsys.readouterr().out)
    assert timeline["total_frames"] == 30 + 90


def test_set_override_and_preview_directory(workspace: Path) -> None:
    code = main(
        _args(
            workspace,
            "--set", "video.fps=10",
            "--set", "output.preview_directory=previews",
            "--stride", "5",
            "--preview-frame", "0",
            "--preview-scale", "0.05",
        )
    )
    assert code == 0
    plan = json.loads((workspace / "out" / "CLI_run.json").read_text(encoding="utf-8"))
    assert plan["total_frames"] == 20
    assert (workspace / "out" / "previews" / "CLI_run_frame00000.png").exists()


def test_out_of_range_preview_frame_fails_without_writing(workspace: Path) -> None:
    output = workspace / "plan.json"
    assert main(_args(workspace, "--output", str(output), "--preview-frame", "600")) == 1
    assert not output.exists()
    assert not list(workspace.glob("*.png"))
