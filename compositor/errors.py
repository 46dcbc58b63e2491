"""Error and warning types raised by the compositor."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class CompositorError(Exception):
    """Base class for compositor failures."""


class InvalidDurationError(CompositorError, ValueError):
    """A scene duration is zero, negative or not finite."""

    def __init__(self, scene_id: Optional[str], duration: object) -> None:
        self.scene_id = scene_id
        self.duration = duration
        label = scene_id if scene_id is not None else "<unknown>"
        super().__init__(f"Scene {label} has invalid duration {duration!r}; supply a positive fallback")


class ReconciliationConflict(CompositorError):
    """A reconciliation was computed against stale project state."""


class FrameOutOfRangeError(CompositorError, IndexError):
    """The requested frame lies outside the composition."""

    def __init__(self, frame: int, total_frames: int) -> None:
        self.frame = frame
        self.total_frames = total_frames
        super().__init__(f"Frame {frame} outside composition [0, {total_frames})")


class ScriptLoadError(CompositorError, ValueError):
    """A project or timesheet descriptor could not be parsed."""


class SynthesisError(CompositorError):
    """An external synthesis call failed; safe to retry."""


class MissingMediaWarning(UserWarning):
    """A scene lacks a background image or narration audio reference."""


@dataclass(frozen=True)
class SceneWarning:
    """Non-fatal annotation attached to a scene in render output."""

    scene_id: str
    code: str
    message: str

    def to_dict(self) -> dict:
        return {"scene_id": self.scene_id, "code": self.code, "message": self.message}
