"""Timeline builder: lay scenes end-to-end on the frame axis."""
from __future__ import annotations

import math
from typing import List, Optional, Sequence

from compositor.errors import InvalidDurationError
from compositor.models import (
    DEFAULT_FPS,
    Project,
    TimelinePlan,
    TimelineWindow,
    WindowKind,
)
from logging_utils import get_logger

logger = get_logger(__name__)


def seconds_to_frames(seconds: float, fps: int) -> int:
    """Convert seconds to a whole frame count (nearest frame)."""
    return int(round(float(seconds) * fps))


def _validate_duration(duration: object, scene_id: Optional[str]) -> float:
    try:
        value = float(duration)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise InvalidDurationError(scene_id, duration) from None
    if not math.isfinite(value) or value <= 0:
        raise InvalidDurationError(scene_id, duration)
    return value


def build_timeline(
    durations: Sequence[float],
    *,
    fps: int = DEFAULT_FPS,
    opening_seconds: float = 0.0,
    ending_seconds: float = 0.0,
    scene_ids: Optional[Sequence[str]] = None,
) -> TimelinePlan:
    """Return contiguous, non-overlapping windows for ``durations`` in order.

    Boundaries are rounded from the running total in seconds,
    ``start[i] = opening_frames + round(sum(duration[0..i)) * fps)`` and
    ``end[i] = start[i + 1]``, so the whole plan stays within half a frame of
    the summed durations however many scenes there are. Every window is
    derived from scratch on each call; no partial timeline is ever reused.
    """
    if fps <= 0:
        raise ValueError(f"fps must be positive, got {fps}")
    if scene_ids is not None and len(scene_ids) != len(durations):
        raise ValueError("scene_ids and durations must have the same length")
    if opening_seconds < 0 or ending_seconds < 0:
        raise ValueError("opening/ending durations must not be negative")

    ids: List[str] = list(scene_ids) if scene_ids is not None else [str(i) for i in range(len(durations))]

    windows: List[TimelineWindow] = []
    cursor = 0

    opening_frames = seconds_to_frames(opening_seconds, fps)
    if opening_frames > 0:
        windows.append(TimelineWindow(None, 0, opening_frames, WindowKind.OPENING))
        cursor = opening_frames

    elapsed = 0.0
    for index, (scene_id, duration) in enumerate(zip(ids, durations)):
        elapsed += _validate_duration(duration, scene_id)
        # Very short scenes still occupy one frame so windows stay non-empty
        end = max(cursor + 1, opening_frames + seconds_to_frames(elapsed, fps))
        windows.append(TimelineWindow(scene_id, cursor, end, WindowKind.SCENE, scene_index=index))
        cursor = end

    if seconds_to_frames(ending_seconds, fps) > 0:
        end = max(cursor + 1, opening_frames + seconds_to_frames(elapsed + ending_seconds, fps))
        windows.append(TimelineWindow(None, cursor, end, WindowKind.ENDING))
        cursor = end

    plan = TimelinePlan(windows=tuple(windows), fps=fps)
    logger.debug(
        "Timeline built with %d scenes (total %d frames, %.2f seconds)",
        len(durations),
        plan.total_frames,
        plan.total_seconds,
    )
    return plan


def build_project_timeline(project: Project) -> TimelinePlan:
    """Build the timeline for a project's scenes plus its opening/ending."""
    plan = build_timeline(
        [scene.duration_seconds for scene in project.scenes],
        fps=project.fps,
        opening_seconds=project.opening_seconds,
        ending_seconds=project.ending_seconds,
        scene_ids=project.scene_ids(),
    )
    logger.info(
        "Timeline for '%s': %d scenes, %d frames (%.2f seconds)",
        project.title,
        len(project.scenes),
        plan.total_frames,
        plan.total_seconds,
    )
    return plan


def substitute_invalid_durations(
    durations: Sequence[object],
    fallback: float = 3.0,
    *,
    scene_ids: Optional[Sequence[str]] = None,
) -> List[float]:
    """Replace zero, negative or unparsable durations with ``fallback``."""
    if fallback <= 0:
        raise ValueError("fallback duration must be positive")
    result: List[float] = []
    for index, duration in enumerate(durations):
        scene_id = scene_ids[index] if scene_ids is not None else str(index)
        try:
            result.append(_validate_duration(duration, scene_id))
        except InvalidDurationError:
            logger.warning(
                "Scene %s duration %r invalid; substituting %.2f seconds",
                scene_id,
                duration,
                fallback,
            )
            result.append(float(fallback))
    return result
