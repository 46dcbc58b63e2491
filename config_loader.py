"""YAML configuration for the compositor CLI, with dotted command-line overrides."""
from __future__ import annotations

import copy
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional

import yaml

DEFAULT_OUTPUT_DIR = "output"
DEFAULT_LOG_FILE = "logs/compositor.log"


@dataclass
class AppConfig:
    """Parsed config plus the directories the CLI writes into."""

    raw: Dict[str, Any]
    config_path: Path
    project_root: Path
    output_dir: Path
    preview_dir: Path
    log_file: Path

    @property
    def logging_level(self) -> str:
        level = self.section("logging").get("level") or "INFO"
        return str(level).upper()

    def section(self, name: str) -> Dict[str, Any]:
        value = self.raw.get(name)
        return value if isinstance(value, dict) else {}

    def to_debug_dict(self) -> Dict[str, Any]:
        return {
            "config_path": str(self.config_path),
            "output_dir": str(self.output_dir),
            "preview_dir": str(self.preview_dir),
            "log_file": str(self.log_file),
            "sections": sorted(key for key, value in self.raw.items() if isinstance(value, dict)),
        }

    def dumps(self) -> str:
        return json.dumps(self.to_debug_dict(), ensure_ascii=False, indent=2)


def parse_override(text: str) -> tuple[list[str], Any]:
    """Split ``video.fps=60`` into a key path and a YAML-typed value."""
    key, sep, value = text.partition("=")
    path = [part.strip() for part in key.split(".") if part.strip()]
    if not sep or not path:
        raise ValueError(f"Override must look like section.key=value: {text!r}")
    return path, yaml.safe_load(value) if value.strip() else None


def apply_overrides(raw: Mapping[str, Any], overrides: Iterable[str]) -> Dict[str, Any]:
    merged = copy.deepcopy(dict(raw))
    for text in overrides:
        path, value = parse_override(text)
        node = merged
        for part in path[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[path[-1]] = value
    return merged


def _resolve(root: Path, value: Any, default: str) -> Path:
    candidate = Path(str(value or default)).expanduser()
    return (candidate if candidate.is_absolute() else root / candidate).resolve()


def load_config(
    path: Path | str,
    project_root: Optional[Path] = None,
    overrides: Iterable[str] = (),
) -> AppConfig:
    config_path = Path(path).expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config root must be a mapping: {config_path}")
    raw = apply_overrides(raw, overrides)

    root = project_root.resolve() if project_root else config_path.parent
    output_cfg = raw.get("output") if isinstance(raw.get("output"), dict) else {}
    logging_cfg = raw.get("logging") if isinstance(raw.get("logging"), dict) else {}

    output_dir = _resolve(root, output_cfg.get("directory"), DEFAULT_OUTPUT_DIR)
    preview_dir = _resolve(output_dir, output_cfg.get("preview_directory"), ".")

    return AppConfig(
        raw=raw,
        config_path=config_path,
        project_root=root,
        output_dir=output_dir,
        preview_dir=preview_dir,
        log_file=_resolve(root, logging_cfg.get("file"), DEFAULT_LOG_FILE),
    )
