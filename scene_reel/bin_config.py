"""Helpers to resolve the ffmpeg executable.

moviepy reads ``FFMPEG_BINARY`` once, when ``moviepy.config`` is first
imported, and falls back to the binary bundled with ``imageio-ffmpeg``. This
module lets the CLI point at another executable before that happens and
exposes whatever moviepy ended up using.
"""
from __future__ import annotations

import os
import shutil
from typing import Optional


def _validate_binary(path: str | None) -> Optional[str]:
    """Return *path* if it points to an existing executable."""
    if not path:
        return None
    if os.path.isfile(path) or shutil.which(path):
        return path
    return None


def resolve_ffmpeg(cli_path: str | None = None) -> Optional[str]:
    """Resolve path to an ``ffmpeg`` executable.

    Resolution order:
    1. explicit ``cli_path`` argument (e.g. ``--ffmpeg``)
    2. ``FFMPEG_BINARY`` environment variable
    3. ``ffmpeg`` discovered on ``PATH``
    The returned path is validated and stored in ``os.environ`` so moviepy
    picks it up. Returns ``None`` if no candidate is found, in which case
    moviepy keeps its bundled binary.
    """
    candidates = [
        cli_path,
        os.environ.get("FFMPEG_BINARY"),
        shutil.which("ffmpeg"),
    ]
    for cand in candidates:
        path = _validate_binary(cand)
        if path:
            os.environ["FFMPEG_BINARY"] = path
            return path
    return None


def ffmpeg_binary() -> str:
    """Return the ffmpeg executable moviepy writes with."""
    from moviepy.config import FFMPEG_BINARY

    return FFMPEG_BINARY
