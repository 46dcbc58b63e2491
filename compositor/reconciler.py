"""Timesheet reconciliation: replace estimated scene durations with measured ones.

The timeline is always rebuilt from the full scene list, so reconciling the
same timesheet twice yields the same windows.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence, Tuple

from animation_config import EngineSettings
from logging_utils import get_logger
from timeline_builder import build_timeline

from .errors import ReconciliationConflict
from .models import DEFAULT_FPS, Project, Scene, TimelinePlan, TimesheetEntry

logger = get_logger(__name__)

DEFAULT_PADDING_SECONDS = 0.3


@dataclass(frozen=True)
class ReconcileResult:
    scenes: Tuple[Scene, ...]
    timeline: TimelinePlan
    applied_ids: Tuple[str, ...] = ()
    skipped_ids: Tuple[str, ...] = ()

    @property
    def changed(self) -> bool:
        return bool(self.applied_ids)


def padded_duration(measured_seconds: float, padding_seconds: float = DEFAULT_PADDING_SECONDS) -> float:
    """Scene duration for a measured narration length, rounded to milliseconds."""
    return round(measured_seconds + padding_seconds, 3)


def _index_scenes(scenes: Sequence[Scene]) -> Dict[str, int]:
    index: Dict[str, int] = {}
    for position, scene in enumerate(scenes):
        if scene.scene_id in index:
            raise ValueError(f"Duplicate scene id: {scene.scene_id}")
        index[scene.scene_id] = position
    return index


def reconcile(
    scenes: Sequence[Scene],
    timesheet: Sequence[TimesheetEntry],
    *,
    padding_seconds: float = DEFAULT_PADDING_SECONDS,
    fps: int = DEFAULT_FPS,
    opening_seconds: float = 0.0,
    ending_seconds: float = 0.0,
) -> ReconcileResult:
    """Apply measured durations and rebuild the timeline.

    Entries naming an unknown scene raise :class:`ReconciliationConflict`
    before anything is applied. Entries with a non-positive measurement
    (failed synthesis) are skipped and the scene keeps its placeholder
    duration. Scenes without an entry are left untouched.
    """
    if padding_seconds < 0:
        raise ValueError("padding_seconds must not be negative")
    positions = _index_scenes(scenes)

    unknown = [entry.scene_id for entry in timesheet if entry.scene_id not in positions]
    if unknown:
        raise ReconciliationConflict(f"Timesheet references unknown scene ids: {', '.join(unknown)}")

    updated: List[Scene] = list(scenes)
    applied: List[str] = []
    skipped: List[str] = []
    for entry in timesheet:
        measured = entry.measured_duration_seconds
        if measured is None or not math.isfinite(measured) or measured <= 0:
            logger.warning(
                "Skipping timesheet entry for scene %s: measured duration %r", entry.scene_id, measured
            )
            skipped.append(entry.scene_id)
            continue
        position = positions[entry.scene_id]
        scene = updated[position]
        audio_ref = entry.audio_ref if entry.audio_ref and entry.audio_ref.strip() else scene.narration_audio_ref
        updated[position] = replace(
            scene,
            duration_seconds=padded_duration(measured, padding_seconds),
            narration_audio_ref=audio_ref,
        )
        if entry.scene_id not in applied:
            applied.append(entry.scene_id)

    timeline = build_timeline(
        [scene.duration_seconds for scene in updated],
        fps=fps,
        opening_seconds=opening_seconds,
        ending_seconds=ending_seconds,
        scene_ids=[scene.scene_id for scene in updated],
    )
    logger.info(
        "Reconciled %d scene(s), skipped %d; timeline now %d frames",
        len(applied),
        len(skipped),
        timeline.total_frames,
    )
    return ReconcileResult(
        scenes=tuple(updated),
        timeline=timeline,
        applied_ids=tuple(applied),
        skipped_ids=tuple(skipped),
    )


def reconcile_project(
    project: Project,
    timesheet: Sequence[TimesheetEntry],
    settings: Optional[EngineSettings] = None,
) -> Tuple[Project, ReconcileResult]:
    """Reconcile ``project`` and return the updated project with the result."""
    padding = (settings or EngineSettings()).reconcile.padding_seconds
    result = reconcile(
        project.scenes,
        timesheet,
        padding_seconds=padding,
        fps=project.fps,
        opening_seconds=project.opening_seconds,
        ending_seconds=project.ending_seconds,
    )
    return project.with_scenes(result.scenes), result
