"""Serializable description of one rendered frame.

A ``VisualTree`` is an ordered layer stack (bottom first) plus the audio
directives sounding at that frame. Serialization normalizes floats so that
equal trees always produce byte-identical JSON.
"""
from __future__ import annotations

import json
import math
from dataclasses import dataclass, field, fields, is_dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .errors import SceneWarning

FLOAT_DIGITS = 4


def normalize(value: Any) -> Any:
    """Convert ``value`` into plain JSON types with rounded floats."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool) or value is None or isinstance(value, (int, str)):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"Non-finite value in visual tree: {value!r}")
        rounded = round(value, FLOAT_DIGITS)
        return 0.0 if rounded == 0 else rounded
    if is_dataclass(value) and not isinstance(value, type):
        if hasattr(value, "to_dict"):
            return normalize(value.to_dict())
        return {item.name: normalize(getattr(value, item.name)) for item in fields(value) if not item.name.startswith("_")}
    if isinstance(value, Mapping):
        return {str(key): normalize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [normalize(item) for item in value]
    if isinstance(value, (set, frozenset)):
        return sorted(normalize(item) for item in value)
    raise TypeError(f"Cannot serialize {type(value).__name__} in visual tree")


@dataclass(frozen=True)
class Layer:
    """One entry of the layer stack; ``props`` carries kind-specific data."""

    kind: str
    opacity: float = 1.0
    transform: Mapping[str, Any] = field(default_factory=dict)
    props: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "opacity": self.opacity,
            "transform": dict(self.transform),
            "props": dict(self.props),
        }


@dataclass(frozen=True)
class VisualTree:
    frame: int
    local_frame: int
    window_kind: str
    width: int
    height: int
    scene_id: Optional[str] = None
    scene_index: Optional[int] = None
    container: Mapping[str, Any] = field(default_factory=dict)
    layers: Tuple[Layer, ...] = ()
    audio: Tuple[Any, ...] = ()
    warnings: Tuple[SceneWarning, ...] = ()

    def layer_kinds(self) -> List[str]:
        return [layer.kind for layer in self.layers]

    def layers_of(self, kind: str) -> List[Layer]:
        return [layer for layer in self.layers if layer.kind == kind]

    def first(self, kind: str) -> Optional[Layer]:
        for layer in self.layers:
            if layer.kind == kind:
                return layer
        return None

    def to_dict(self) -> Dict[str, Any]:
        return normalize(
            {
                "frame": self.frame,
                "local_frame": self.local_frame,
                "window_kind": self.window_kind,
                "scene_id": self.scene_id,
                "scene_index": self.scene_index,
                "width": self.width,
                "height": self.height,
                "container": dict(self.container),
                "layers": [layer.to_dict() for layer in self.layers],
                "audio": list(self.audio),
                "warnings": [warning.to_dict() for warning in self.warnings],
            }
        )

    def to_json(self, *, indent: Optional[int] = None) -> str:
        separators = None if indent else (",", ":")
        return json.dumps(self.to_dict(), ensure_ascii=False, sort_keys=True, indent=indent, separators=separators)


def dump_frames(trees: Sequence[VisualTree]) -> str:
    """JSON Lines, one tree per line."""
    return "\n".join(tree.to_json() for tree in trees) + ("\n" if trees else "")
