"""CLI entrypoint: load a project, reconcile a timesheet and export the frame plan."""
from __future__ import annotations

import argparse
import json
import re
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from animation_config import EngineSettings, resolve_engine_settings
from config_loader import load_config
from logging_utils import configure_logging, get_logger
from timeline_builder import substitute_invalid_durations

from .errors import CompositorError, InvalidDurationError
from .models import Project
from .raster_preview import file_image_loader, save_preview
from .reconciler import reconcile_project
from .renderer import FrameRenderer, export_render_plan
from .script_loader import load_project, load_timesheet

logger = get_logger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Build the scene timeline and export per-frame visual trees.")
    parser.add_argument("--project", required=True, help="Path to project descriptor (JSON, JSONL or YAML).")
    parser.add_argument("--config", default="config.yaml", help="Path to compositor config YAML.")
    parser.add_argument("--timesheet", help="Measured narration durations to reconcile before export.")
    parser.add_argument("--output", help="Output path. Defaults to <output dir>/<project slug>.json(l)")
    parser.add_argument("--format", choices=("json", "jsonl"), default="json", help="Render plan format.")
    parser.add_argument("--frames", help="Frames to export, e.g. '0,15,30' or '0-89'. Defaults to all.")
    parser.add_argument("--stride", type=int, default=1, help="Export every Nth frame when --frames is absent.")
    parser.add_argument("--workers", type=int, default=1, help="Threads used to render frames.")
    parser.add_argument("--preview-frame", type=int, help="Also rasterize this frame to a PNG next to the output.")
    parser.add_argument("--preview-scale", type=float, default=0.25, help="Scale of the PNG preview.")
    parser.add_argument(
        "--set",
        dest="overrides",
        action="append",
        default=[],
        metavar="SECTION.KEY=VALUE",
        help="Override a config value, e.g. --set video.fps=60. Repeatable.",
    )
    parser.add_argument("--dump-timeline", action="store_true", help="Print the timeline JSON and exit.")
    parser.add_argument(
        "--fallback-invalid",
        action="store_true",
        help="Replace zero or negative scene durations with the configured fallback instead of failing.",
    )
    return parser.parse_args(argv)


def parse_frame_selection(text: Optional[str]) -> Optional[List[int]]:
    """Parse '0,15,30' or '10-20' (inclusive) or a mix of both."""
    if not text:
        return None
    frames: List[int] = []
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        if "-" in part:
            head, tail = part.split("-", 1)
            start, end = int(head), int(tail)
            if end < start:
                raise ValueError(f"Invalid frame range: {part}")
            frames.extend(range(start, end + 1))
        else:
            frames.append(int(part))
    return frames


def safe_slug(text: str) -> str:
    slug = re.sub(r"[^0-9A-Za-z一-龠ぁ-んァ-ヶー]+", "_", text).strip("_")
    return slug or "render_plan"


def with_fallback_durations(project: Project, fallback: float) -> Project:
    durations = substitute_invalid_durations(
        [scene.duration_seconds for scene in project.scenes],
        fallback,
        scene_ids=project.scene_ids(),
    )
    scenes = [replace(scene, duration_seconds=value) for scene, value in zip(project.scenes, durations)]
    return project.with_scenes(scenes)


def write_render_plan(plan: Dict[str, Any], path: Path, fmt: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    if fmt == "jsonl":
        header = {key: value for key, value in plan.items() if key != "frames"}
        lines = [json.dumps(header, ensure_ascii=False, sort_keys=True, separators=(",", ":"))]
        lines.extend(
            json.dumps(frame, ensure_ascii=False, sort_keys=True, separators=(",", ":")) for frame in plan["frames"]
        )
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    else:
        path.write_text(json.dumps(plan, ensure_ascii=False, sort_keys=True, indent=2), encoding="utf-8")
    return path


def _prepare_project(args: argparse.Namespace, settings: EngineSettings) -> Project:
    timeline_cfg = settings.timeline
    project = load_project(
        args.project,
        fallback_seconds=timeline_cfg.fallback_scene_seconds,
        aspect_ratio=timeline_cfg.aspect_ratio,
        fps=timeline_cfg.fps,
        opening_seconds=timeline_cfg.opening_seconds,
        ending_seconds=timeline_cfg.ending_seconds,
    )
    if args.fallback_invalid:
        project = with_fallback_durations(project, timeline_cfg.fallback_scene_seconds)
    if args.timesheet:
        project, result = reconcile_project(project, load_timesheet(args.timesheet), settings)
        logger.info("Timesheet applied to %d scene(s); %d frames", len(result.applied_ids), result.timeline.total_frames)
    return project


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    cfg = load_config(args.config, overrides=args.overrides)
    configure_logging(cfg.logging_level, cfg.log_file)
    logger.info("compositor start | project=%s", args.project)
    settings = resolve_engine_settings(cfg.raw)

    try:
        project = _prepare_project(args, settings)
        if args.dump_timeline:
            renderer = FrameRenderer(project, settings)
            print(json.dumps(renderer.timeline.to_dict(), ensure_ascii=False, indent=2))
            return 0

        plan = export_render_plan(
            project,
            settings,
            frames=parse_frame_selection(args.frames),
            stride=args.stride,
            workers=args.workers,
        )
        # Preview frame is checked before the plan is written
        preview_tree = None
        if args.preview_frame is not None:
            preview_tree = FrameRenderer(project, settings).render(args.preview_frame)
    except InvalidDurationError as exc:
        logger.error("%s (rerun with --fallback-invalid to substitute)", exc)
        return 2
    except (CompositorError, ValueError) as exc:
        logger.error("Render plan failed: %s", exc)
        return 1

    suffix = ".jsonl" if args.format == "jsonl" else ".json"
    if args.output:
        output_path = Path(args.output).expanduser()
    else:
        output_path = cfg.output_dir / f"{safe_slug(project.title)}{suffix}"
    write_render_plan(plan, output_path, args.format)
    logger.info("Render plan written: %s (%d frames)", output_path, len(plan["frames"]))

    if preview_tree is not None:
        preview_name = f"{output_path.stem}_frame{args.preview_frame:05d}.png"
        preview_dir = output_path.parent if args.output else cfg.preview_dir
        preview_path = preview_dir / preview_name
        save_preview(
            preview_tree,
            preview_path,
            scale=args.preview_scale,
            image_loader=file_image_loader(Path(args.project).expanduser().resolve().parent),
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
