from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest

from animation_config import EngineSettings, resolve_engine_settings
from config_loader import load_config, parse_override


def test_load_config_resolves_paths(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "output:\n  directory: renders\nlogging:\n  level: debug\n  file: logs/run.log\nvideo:\n  fps: 25\n",
        encoding="utf-8",
    )
    cfg = load_config(config_path)
    assert cfg.output_dir == (tmp_path / "renders").resolve()
    assert cfg.log_file == (tmp_path / "logs" / "run.log").resolve()
    assert cfg.logging_level == "DEBUG"
    assert cfg.section("video") == {"fps": 25}
    assert "video" in cfg.to_debug_dict()["sections"]


def test_load_config_errors(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.yaml")
    bad = tmp_path / "bad.yaml"
    bad.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(bad)


def test_engine_settings_defaults() -> None:
    settings = resolve_engine_settings(None)
    assert settings == EngineSettings()
    assert settings.reconcile.padding_seconds == pytest.approx(0.3)
    assert settings.transitions.frames_at_30fps["zoom"] == 18
    assert settings.synthesis.batch_size == 3


def test_engine_settings_overrides_and_fallbacks() -> None:
    settings = resolve_engine_settings(
        {
            "video": {"fps": 60, "aspect_ratio": "4:3"},
            "timeline": {"opening_seconds": 0, "fallback_scene_seconds": -1},
            "reconcile": {"padding_seconds": "0.5"},
            "transitions": {"symmetric_fade": "yes", "frames_at_30fps": {"fade": 20, "spiral": 3}},
            "text": {"reveal_fraction": 1.5, "dense_chunk_size": 2},
            "synthesis": {"batch_size": 0, "max_attempts": "many"},
        }
    )
    assert settings.timeline.fps == 60
    assert settings.timeline.aspect_ratio == "16:9"
    assert settings.timeline.opening_seconds == 0.0
    assert settings.timeline.fallback_scene_seconds == 3.0
    assert settings.reconcile.padding_seconds == pytest.approx(0.5)
    assert settings.transitions.symmetric_fade is True
    assert settings.transitions.frames_at_30fps["fade"] == 20
    assert "spiral" not in settings.transitions.frames_at_30fps
    assert settings.text.reveal_fraction == 1.0
    assert settings.text.dense_chunk_size == 2
    assert settings.synthesis.batch_size == 3
    assert settings.synthesis.max_attempts == 3


def test_load_config_applies_dotted_overrides(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "video:\n  fps: 30\noutput:\n  directory: renders\n  preview_directory: previews\n",
        encoding="utf-8",
    )
    cfg = load_config(
        config_path,
        overrides=["video.fps=60", "transitions.symmetric_fade=true", "logging.level=warning"],
    )
    assert cfg.section("video") == {"fps": 60}
    assert cfg.section("transitions") == {"symmetric_fade": True}
    assert cfg.logging_level == "WARNING"
    assert cfg.preview_dir == (tmp_path / "renders" / "previews").resolve()
    assert resolve_engine_settings(cfg.raw).timeline.fps == 60


def test_parse_override_rejects_missing_value() -> None:
    assert parse_override("text.dense_chunk_size=4") == (["text", "dense_chunk_size"], 4)
    assert parse_override("output.directory=") == (["output", "directory"], None)
    with pytest.raises(ValueError):
        parse_override("video.fps")
    with pytest.raises(ValueError):
        parse_override("=3")
