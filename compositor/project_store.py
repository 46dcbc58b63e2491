"""Single-writer holder of the current project and its timeline."""
from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from typing import Optional, Sequence, Tuple

from animation_config import EngineSettings
from logging_utils import get_logger
from timeline_builder import build_project_timeline

from .errors import ReconciliationConflict
from .models import Project, TimelinePlan, TimesheetEntry
from .reconciler import ReconcileResult, reconcile_project

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProjectSnapshot:
    project: Project
    timeline: TimelinePlan
    version: int


class ProjectStore:
    """Serializes every mutation of the project behind one lock.

    Each successful mutation bumps ``version``. Callers that computed work
    against an older snapshot pass ``expected_version``; a mismatch raises
    :class:`ReconciliationConflict` and nothing is merged, so the caller can
    re-read and retry.
    """

    def __init__(self, project: Project, settings: Optional[EngineSettings] = None) -> None:
        self._lock = threading.Lock()
        self._settings = settings or EngineSettings()
        self._project = project
        self._timeline = build_project_timeline(project)
        self._version = 0

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

    def snapshot(self) -> ProjectSnapshot:
        with self._lock:
            return ProjectSnapshot(self._project, self._timeline, self._version)

    def _check_version(self, expected_version: Optional[int]) -> None:
        if expected_version is not None and expected_version != self._version:
            raise ReconciliationConflict(
                f"Project changed (version {self._version}, expected {expected_version}); re-read and retry"
            )

    def apply_timesheet(
        self,
        timesheet: Sequence[TimesheetEntry],
        expected_version: Optional[int] = None,
    ) -> Tuple[ReconcileResult, int]:
        """Reconcile ``timesheet`` into the current project; returns the result and new version."""
        with self._lock:
            self._check_version(expected_version)
            project, result = reconcile_project(self._project, timesheet, self._settings)
            self._project = project
            self._timeline = result.timeline
            self._version += 1
            logger.info(
                "Applied timesheet (%d applied, %d skipped); project version %d",
                len(result.applied_ids),
                len(result.skipped_ids),
                self._version,
            )
            return result, self._version

    def update_scene_media(
        self,
        scene_id: str,
        *,
        narration_audio_ref: Optional[str] = None,
        background_image_ref: Optional[str] = None,
        lip_sync_video_ref: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> int:
        """Merge synthesized media references into one scene; returns the new version."""
        changes = {
            key: value
            for key, value in (
                ("narration_audio_ref", narration_audio_ref),
                ("background_image_ref", background_image_ref),
                ("lip_sync_video_ref", lip_sync_video_ref),
            )
            if value
        }
        with self._lock:
            self._check_version(expected_version)
            try:
                position = self._project.scene_index(scene_id)
            except KeyError:
                raise ReconciliationConflict(f"Unknown scene id: {scene_id}") from None
            if not changes:
                return self._version
            scenes = list(self._project.scenes)
            scenes[position] = replace(scenes[position], **changes)
            self._project = self._project.with_scenes(scenes)
            self._version += 1
            logger.debug("Scene %s media updated (%s); version %d", scene_id, ", ".join(sorted(changes)), self._version)
            return self._version
