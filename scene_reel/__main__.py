"""Command line interface for scene_reel."""
from __future__ import annotations

import argparse
import logging
import os
import random
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Tuple

import yaml
from PIL import Image

from .bin_config import resolve_ffmpeg
from .config import (
    AUDIO_LEAD_IN,
    CANVAS_DEFAULT,
    CANVAS_PRESETS,
    FPS_DEFAULT,
    FPS_OPTIONS,
)
from .errors import ReelError
from .models import Scene
from .project import load_project
from .timeline import format_seconds, resolve, timeline_summary
from .validate import validate_args

_STATUS_MARKS = {"neutral": "…", "success": "✅", "error": "⚠️"}


def _size_type(x: str) -> Tuple[int, int]:
    try:
        w, h = x.lower().split("x")
        return int(w), int(h)
    except ValueError as e:
        raise argparse.ArgumentTypeError("--size format WxH") from e


def _resolve_out_path(output_arg: str | None, default_name: str, base_folder: str) -> str:
    if output_arg:
        if output_arg.endswith(os.sep) or os.path.isdir(output_arg):
            out = os.path.join(output_arg, default_name)
        else:
            out = output_arg
    else:
        out = os.path.join(base_folder, default_name)

    os.makedirs(os.path.dirname(out) or ".", exist_ok=True)

    if not os.path.exists(out):
        return out
    root, ext = os.path.splitext(out)
    ts = datetime.now().strftime("%Y%m%d-%H%M%S")
    cand = f"{root}_{ts}{ext}"
    if not os.path.exists(cand):
        return cand
    i = 2
    while True:
        cand = f"{root}_{i}{ext}"
        if not os.path.exists(cand):
            return cand
        i += 1


def _match_extension(path: str, ext: str) -> str:
    root, current = os.path.splitext(path)
    if current.lower() == f".{ext}":
        return path
    if current:
        logging.warning("output %s: encoder produced .%s, renaming", path, ext)
    return f"{root}.{ext}"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Render a scene manifest into a video")
    parser.add_argument("manifest", help="YAML file listing the scenes")
    parser.add_argument("--preset", action="append", default=[], help="Path to YAML preset overriding defaults")
    parser.add_argument("--canvas", choices=sorted(CANVAS_PRESETS), default=CANVAS_DEFAULT, help="Output canvas preset")
    parser.add_argument("--size", type=_size_type, help="Explicit output size WxH (overrides --canvas)")
    parser.add_argument("--fps", type=int, choices=FPS_OPTIONS, default=FPS_DEFAULT)
    parser.add_argument(
        "--output",
        help="Output file or directory. If existing, a timestamp/counter is appended.",
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Render on a virtual frame clock as fast as possible instead of in real time",
    )
    parser.add_argument("--lead-in", type=float, default=AUDIO_LEAD_IN, help="Audio lead-in (s)")
    parser.add_argument("--summary", action="store_true", help="Print the timeline and exit")
    parser.add_argument("--still", metavar="SCENE_ID", help="Write one frame of a scene as PNG and exit")
    parser.add_argument("--still-at", type=float, default=None, help="Seconds into the --still scene")
    parser.add_argument("--ffmpeg", help="Path to ffmpeg binary")
    parser.add_argument("--validate", action="store_true", help="Validate arguments and exit")
    parser.add_argument("--deterministic", action="store_true", help="Deterministic accent colours")
    parser.add_argument("--seed", type=int, default=0, help="Seed for --deterministic")
    parser.add_argument("-v", "--verbose", action="count", default=0)

    prelim, _ = parser.parse_known_args(argv)
    for path in prelim.preset:
        with open(path, "r", encoding="utf8") as fh:
            data = yaml.safe_load(fh) or {}
        parser.set_defaults(**data)

    args = parser.parse_args(argv)
    args.target_size = args.size or CANVAS_PRESETS[args.canvas][1:]
    return args


def _print_status(tone: str, message: str) -> None:
    stream = sys.stderr if tone == "error" else sys.stdout
    print(f"{_STATUS_MARKS.get(tone, '')} {message}", file=stream)


def _print_summary(scenes: List[Scene]) -> None:
    entries = timeline_summary(scenes)
    by_id = {s.id: s for s in scenes}
    for i, entry in enumerate(entries, 1):
        note = "" if by_id[entry.scene_id].image is not None else "  (no image, skipped)"
        print(
            f"{i:>3}. {entry.scene_id:<12} {format_seconds(entry.duration)} "
            f"{entry.share * 100:5.1f}%  {entry.color}{note}"
        )
    print(f"Total: {format_seconds(sum(e.duration for e in entries))}")


def _write_still(args: argparse.Namespace, scenes: List[Scene]) -> str:
    from .session import render_still

    segments = {seg.scene.id: seg for seg in resolve(scenes)}
    if args.still not in segments:
        raise SystemExit(f"scene {args.still!r} not found or has no image")
    seg = segments[args.still]
    local = min(args.still_at or 0.0, seg.effective_duration)
    w, h = args.target_size
    frame = render_still(scenes, w, h, at=seg.start_offset + local)
    stem = Path(args.manifest).stem
    out = _resolve_out_path(args.output, f"{stem}_{args.still}.png", str(Path(args.manifest).parent))
    Image.fromarray(frame).save(out)
    return out


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    level = logging.WARNING - 10 * min(args.verbose, 2)
    logging.basicConfig(level=level, format="%(levelname)s %(message)s")

    errs = validate_args(args)
    if errs:
        for e in errs:
            print(f"validation error: {e}", file=sys.stderr)
        raise SystemExit(1)
    if args.validate:
        return

    if args.ffmpeg and not resolve_ffmpeg(args.ffmpeg):
        raise SystemExit(f"ffmpeg binary not found: {args.ffmpeg}")

    rng = None
    if args.deterministic:
        rng = random.Random(args.seed)
        logging.info("deterministic build seed=%s", args.seed)

    try:
        scenes = load_project(args.manifest, on_status=_print_status, rng=rng)
    except (OSError, yaml.YAMLError, ValueError) as exc:
        raise SystemExit(f"manifest error: {exc}") from exc

    if args.summary:
        _print_summary(scenes)
        return

    try:
        if args.still is not None:
            out = _write_still(args, scenes)
            print(f"✅ Saved {out}")
            return

        # imported late so --ffmpeg is applied before moviepy reads its config
        from .loop import FrameClock
        from .session import generate

        clock = FrameClock(args.fps) if args.offline else None
        w, h = args.target_size
        artifact = generate(
            scenes,
            w,
            h,
            args.fps,
            clock=clock,
            on_status=_print_status,
            lead_in=args.lead_in,
        )
    except ReelError as exc:
        raise SystemExit(f"render failed: {exc}") from exc

    manifest = Path(args.manifest)
    default_name = f"{manifest.stem}.{artifact.extension}"
    target = args.output
    if target and not (target.endswith(os.sep) or os.path.isdir(target)):
        target = _match_extension(target, artifact.extension)
    out = _resolve_out_path(target, default_name, str(manifest.parent))
    artifact.save(out)
    print(f"✅ Saved {out}")


if __name__ == "__main__":
    main()
