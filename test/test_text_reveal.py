from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest

from animation_config import TextRevealProfile
from compositor.models import TextDisplayMode
from compositor.text_reveal import (
    EMPHASIS_COLOR,
    compute_subtitle_reveal,
    compute_text_reveal,
    is_emphasis,
    reveal_schedule,
    typewriter_schedule,
)

FORTY_WORDS = " ".join(f"w{index}" for index in range(40))


def test_forty_units_in_ninety_frames() -> None:
    schedule = reveal_schedule(FORTY_WORDS, 90, fps=30)
    assert schedule.frames_per_unit == 2
    assert schedule.start_frames[39] == schedule.start_delay + 78
    assert schedule.start_frames[39] <= 81


def test_overfull_schedule_compresses_starts() -> None:
    schedule = typewriter_schedule(200, 90, fps=30)
    assert schedule.frames_per_unit == 1
    assert schedule.start_frames[0] == 0
    assert schedule.start_frames[-1] <= 81
    assert list(schedule.start_frames) == sorted(schedule.start_frames)


def test_typewriter_reveals_progressively() -> None:
    before = compute_text_reveal(FORTY_WORDS, TextDisplayMode.SYNC_TYPEWRITER, 0, 90)
    middle = compute_text_reveal(FORTY_WORDS, TextDisplayMode.SYNC_TYPEWRITER, 40, 90)
    after = compute_text_reveal(FORTY_WORDS, TextDisplayMode.SYNC_TYPEWRITER, 89, 90)
    assert before.visible_units() == []
    assert before.caret is None
    assert 0 < len(middle.visible_units()) < 40
    assert middle.caret is not None
    assert len(after.visible_units()) == 40
    assert all(span.opacity == pytest.approx(1.0) for span in after.spans[:-1])


def test_empty_text_renders_no_spans() -> None:
    for mode in TextDisplayMode:
        state = compute_text_reveal("   ", mode, 10, 90)
        assert state.is_empty
        assert state.caret is None


def test_instant_shows_full_text() -> None:
    state = compute_text_reveal("  hi there ", TextDisplayMode.INSTANT, 0, 90)
    assert [span.text for span in state.spans] == ["hi there"]
    assert state.spans[0].opacity == 1.0


def test_word_bounce_staggers_and_settles() -> None:
    profile = TextRevealProfile()
    early = compute_text_reveal("one two three", TextDisplayMode.WORD_BOUNCE, 8, 300, profile=profile)
    assert all(span.opacity == 0.0 for span in early.spans)

    first_only = compute_text_reveal("one two three", TextDisplayMode.WORD_BOUNCE, 12, 300, profile=profile)
    assert first_only.spans[0].opacity > 0.0
    assert first_only.spans[2].opacity == 0.0

    settled = compute_text_reveal("one two three", TextDisplayMode.WORD_BOUNCE, 250, 300, profile=profile)
    for span in settled.spans:
        assert span.opacity == pytest.approx(1.0)
        assert span.scale == pytest.approx(1.0, abs=1e-3)
        assert span.translate_y == pytest.approx(0.0, abs=0.1)


def test_word_bounce_overshoots_scale() -> None:
    peak = max(
        compute_text_reveal("bounce", TextDisplayMode.WORD_BOUNCE, frame, 300).spans[0].scale
        for frame in range(9, 40)
    )
    assert peak > 1.0


def test_emphasis_words_are_highlighted() -> None:
    state = compute_text_reveal(
        "AI makes work fast", TextDisplayMode.WORD_BOUNCE, 200, 300, emphasis_words=["AI"]
    )
    flagged = {span.text: span for span in state.spans}
    assert flagged["AI"].emphasis
    assert flagged["AI"].color == EMPHASIS_COLOR
    assert flagged["AI"].font_weight == 900
    assert not flagged["work"].emphasis
    assert is_emphasis("AIで", ["AI"])
    assert not is_emphasis("work", ["AI"])


def test_reveal_is_pure_per_frame() -> None:
    args = ("今日はいい天気ですね", TextDisplayMode.SYNC_TYPEWRITER, 37, 120)
    assert compute_text_reveal(*args) == compute_text_reveal(*args)


def test_subtitle_band_pops_characters_in() -> None:
    hidden = compute_subtitle_reveal("abc", 0, fps=30)
    assert [span.opacity for span in hidden.spans] == [0.0, 0.0, 0.0]

    popping = compute_subtitle_reveal("abc", 12, fps=30)
    assert popping.caret is not None
    assert popping.caret.after_index == 2

    done = compute_subtitle_reveal("abc", 100, fps=30)
    assert done.caret is None
    assert all(span.opacity == pytest.approx(1.0) for span in done.spans)
