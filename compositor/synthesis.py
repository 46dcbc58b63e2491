"""Dispatch narration and image synthesis for scenes in bounded batches.

Synthesis itself lives behind the :class:`NarrationSynthesizer` and
:class:`ImageSynthesizer` protocols; this module only schedules calls,
retries transient failures, merges results into a :class:`ProjectStore` and
finally reconciles the measured narration durations.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Protocol, Sequence, TypeVar

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    stop_when_event_set,
    wait_exponential,
)

from animation_config import SynthesisProfile
from logging_utils import get_logger

from .errors import SynthesisError
from .models import Scene, TimesheetEntry
from .project_store import ProjectStore
from .reconciler import ReconcileResult

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class NarrationResult:
    audio_ref: str
    duration_seconds: float


class NarrationSynthesizer(Protocol):
    def synthesize(self, scene: Scene) -> NarrationResult:
        """Produce narration audio for ``scene``; raise SynthesisError on transient failure."""


class ImageSynthesizer(Protocol):
    def generate(self, scene: Scene) -> str:
        """Produce a background image for ``scene`` and return its reference."""


@dataclass(frozen=True)
class SceneFailure:
    scene_id: str
    stage: str
    error: str


@dataclass
class SceneOutcome:
    scene_id: str
    audio_ref: Optional[str] = None
    duration_seconds: Optional[float] = None
    image_ref: Optional[str] = None
    failures: List[SceneFailure] = field(default_factory=list)


@dataclass
class SynthesisReport:
    timesheet: List[TimesheetEntry] = field(default_factory=list)
    completed: List[str] = field(default_factory=list)
    failures: List[SceneFailure] = field(default_factory=list)
    cancelled: bool = False
    reconciliation: Optional[ReconcileResult] = None
    version: Optional[int] = None

    @property
    def failed_ids(self) -> List[str]:
        seen: List[str] = []
        for failure in self.failures:
            if failure.scene_id not in seen:
                seen.append(failure.scene_id)
        return seen


def batched(items: Sequence[T], size: int) -> Iterable[Sequence[T]]:
    if size < 1:
        raise ValueError("batch size must be at least 1")
    for start in range(0, len(items), size):
        yield items[start:start + size]


def narration_text(scene: Scene) -> str:
    return (scene.voice_text or scene.subtitle_text or "").strip()


class SynthesisDispatcher:
    """Run synthesis for many scenes with at most ``batch_size`` calls in flight.

    A failure for one scene never blocks the others: the scene keeps its
    placeholder media and is listed in :attr:`SynthesisReport.failures`.
    Setting ``cancel_event`` stops new batches and further retries; results
    already merged into the store stay intact.
    """

    def __init__(
        self,
        store: ProjectStore,
        *,
        narration: Optional[NarrationSynthesizer] = None,
        images: Optional[ImageSynthesizer] = None,
        profile: Optional[SynthesisProfile] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self.store = store
        self.narration = narration
        self.images = images
        self.profile = profile or SynthesisProfile()
        self.cancel_event = cancel_event or threading.Event()

    def cancel(self) -> None:
        self.cancel_event.set()

    def _retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.profile.max_attempts) | stop_when_event_set(self.cancel_event),
            wait=wait_exponential(
                multiplier=self.profile.retry_wait_seconds,
                max=self.profile.retry_max_wait_seconds,
            ),
            retry=retry_if_exception_type(SynthesisError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            # Waiting on the event lets cancel() cut a backoff short
            sleep=self.cancel_event.wait,
            reraise=True,
        )

    def _call(self, fn: Callable[[Scene], T], scene: Scene) -> T:
        return self._retrying()(fn, scene)

    def _synthesize_scene(self, scene: Scene, only_missing: bool) -> SceneOutcome:
        outcome = SceneOutcome(scene.scene_id)

        wants_narration = self.narration is not None and bool(narration_text(scene))
        if only_missing and scene.has_narration_audio:
            wants_narration = False
        if wants_narration:
            try:
                result = self._call(self.narration.synthesize, scene)
                outcome.audio_ref = result.audio_ref
                outcome.duration_seconds = result.duration_seconds
            except Exception as exc:  # isolate per-scene failures
                logger.warning("Narration synthesis failed for scene %s: %s", scene.scene_id, exc)
                outcome.failures.append(SceneFailure(scene.scene_id, "narration", str(exc)))

        wants_image = self.images is not None
        if only_missing and scene.has_background_image:
            wants_image = False
        if wants_image and not self.cancel_event.is_set():
            try:
                outcome.image_ref = self._call(self.images.generate, scene)
            except Exception as exc:  # isolate per-scene failures
                logger.warning("Image synthesis failed for scene %s: %s", scene.scene_id, exc)
                outcome.failures.append(SceneFailure(scene.scene_id, "image", str(exc)))
        return outcome

    def _merge(self, outcome: SceneOutcome, report: SynthesisReport) -> None:
        self.store.update_scene_media(
            outcome.scene_id,
            narration_audio_ref=outcome.audio_ref,
            background_image_ref=outcome.image_ref,
        )
        if outcome.audio_ref and outcome.duration_seconds is not None:
            report.timesheet.append(
                TimesheetEntry(outcome.scene_id, outcome.duration_seconds, outcome.audio_ref)
            )
        if outcome.failures:
            report.failures.extend(outcome.failures)
        else:
            report.completed.append(outcome.scene_id)

    def run(self, scene_ids: Optional[Sequence[str]] = None, *, only_missing: bool = True) -> SynthesisReport:
        """Synthesize the selected scenes (all by default) and reconcile durations."""
        project = self.store.snapshot().project
        wanted = set(scene_ids) if scene_ids is not None else None
        scenes = [scene for scene in project.scenes if wanted is None or scene.scene_id in wanted]
        report = SynthesisReport()
        batch_size = self.profile.batch_size

        logger.info("Dispatching synthesis for %d scenes in batches of %d", len(scenes), batch_size)
        for number, batch in enumerate(batched(scenes, batch_size), start=1):
            if self.cancel_event.is_set():
                logger.info("Synthesis cancelled before batch %d", number)
                report.cancelled = True
                break
            with ThreadPoolExecutor(max_workers=len(batch)) as pool:
                futures = [pool.submit(self._synthesize_scene, scene, only_missing) for scene in batch]
                outcomes = [future.result() for future in futures]
            for outcome in outcomes:
                self._merge(outcome, report)
            logger.debug("Batch %d merged (%d scenes)", number, len(batch))

        if self.cancel_event.is_set():
            report.cancelled = True

        if report.timesheet:
            result, version = self.store.apply_timesheet(report.timesheet)
            report.reconciliation = result
            report.version = version
        logger.info(
            "Synthesis finished: %d completed, %d failed%s",
            len(report.completed),
            len(report.failed_ids),
            " (cancelled)" if report.cancelled else "",
        )
        return report
