"""Argument validation helpers for the scene_reel CLI."""
from __future__ import annotations

from argparse import Namespace
from typing import List

from .config import FPS_OPTIONS

MAX_DIMENSION = 7680
MAX_LEAD_IN = 2.0


def validate_args(args: Namespace) -> List[str]:
    """Validate parsed CLI arguments.

    Returns a list of human readable error messages. The caller should abort
    if the list is non-empty.
    """
    errors: List[str] = []
    if args.fps not in FPS_OPTIONS:
        errors.append(f"--fps must be one of {list(FPS_OPTIONS)}")
    w, h = args.target_size
    if w <= 0 or h <= 0:
        errors.append(f"--size {w}x{h} must be positive")
    elif w > MAX_DIMENSION or h > MAX_DIMENSION:
        errors.append(f"--size {w}x{h} exceeds {MAX_DIMENSION}px")
    elif w % 2 or h % 2:
        errors.append(f"--size {w}x{h} must have even dimensions")
    if not (0.0 <= args.lead_in <= MAX_LEAD_IN):
        errors.append(f"--lead-in must be within [0, {MAX_LEAD_IN}]")
    if args.still_at is not None:
        if args.still is None:
            errors.append("--still-at requires --still")
        elif args.still_at < 0:
            errors.append("--still-at must be >= 0")
    if args.summary and args.still is not None:
        errors.append("conflict: --summary with --still")
    return errors
