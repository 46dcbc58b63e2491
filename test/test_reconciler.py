from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest

from compositor.errors import ReconciliationConflict
from compositor.models import Project, Scene, TimesheetEntry
from compositor.reconciler import padded_duration, reconcile, reconcile_project


def _scenes() -> list[Scene]:
    return [Scene("s1", 5.0), Scene("s2", 5.0), Scene("s3", 5.0)]


def test_measured_duration_is_padded_and_restitched() -> None:
    result = reconcile(_scenes(), [TimesheetEntry("s1", 7.3, "audio/s1.wav")])
    assert result.timeline.as_pairs() == [(0, 228), (228, 378), (378, 528)]
    assert result.scenes[0].duration_seconds == pytest.approx(7.6)
    assert result.scenes[0].narration_audio_ref == "audio/s1.wav"
    assert result.applied_ids == ("s1",)
    assert result.changed


def test_reconcile_is_idempotent() -> None:
    timesheet = [TimesheetEntry("s2", 4.1), TimesheetEntry("s3", 2.0)]
    first = reconcile(_scenes(), timesheet)
    second = reconcile(first.scenes, timesheet)
    assert first.timeline == second.timeline
    assert first.scenes == second.scenes


def test_unknown_scene_id_conflicts_before_applying() -> None:
    scenes = _scenes()
    with pytest.raises(ReconciliationConflict):
        reconcile(scenes, [TimesheetEntry("s1", 3.0), TimesheetEntry("ghost", 1.0)])
    assert scenes[0].duration_seconds == 5.0


@pytest.mark.parametrize("measured", [0.0, -1.0, float("nan")])
def test_failed_measurements_keep_placeholder(measured: float) -> None:
    result = reconcile(_scenes(), [TimesheetEntry("s2", measured)])
    assert result.skipped_ids == ("s2",)
    assert result.scenes[1].duration_seconds == 5.0
    assert result.timeline.as_pairs() == [(0, 150), (150, 300), (300, 450)]
    assert not result.changed


def test_blank_audio_ref_keeps_existing_reference() -> None:
    scenes = [Scene("s1", 5.0, narration_audio_ref="old.wav")]
    result = reconcile(scenes, [TimesheetEntry("s1", 2.0, "  ")])
    assert result.scenes[0].narration_audio_ref == "old.wav"


def test_duplicate_scene_ids_rejected() -> None:
    with pytest.raises(ValueError):
        reconcile([Scene("a", 1.0), Scene("a", 2.0)], [])


def test_padded_duration_rounds_to_milliseconds() -> None:
    assert padded_duration(1.23456) == 1.535


def test_reconcile_project_keeps_opening_offset() -> None:
    from compositor.models import OpeningConfig

    project = Project(title="t", scenes=tuple(_scenes()), opening=OpeningConfig(duration_seconds=1.0))
    updated, result = reconcile_project(project, [TimesheetEntry("s3", 0.7)])
    assert result.timeline.as_pairs() == [(30, 180), (180, 330), (330, 360)]
    assert updated.scenes[2].duration_seconds == pytest.approx(1.0)


def test_long_reconciled_project_matches_summed_durations() -> None:
    scenes = [Scene(f"s{i}", 3.0) for i in range(60)]
    result = reconcile(scenes, [TimesheetEntry(scene.scene_id, 3.417) for scene in scenes])
    durations = [scene.duration_seconds for scene in result.scenes]
    assert durations[0] == pytest.approx(3.717)
    assert result.timeline.total_frames == round(sum(durations) * 30)
    assert abs(result.timeline.total_frames - 223.02 * 30) <= 0.5
