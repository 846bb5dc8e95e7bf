"""Loading a scene list from a YAML manifest.

Example::

    scenes:
      - id: intro
        caption: "Where it all began"
        duration: 5
        image: images/harbour.jpg
        audio: voice/intro.wav
        accent: "#38bdf8"
      - image: images/street.png

Paths are relative to the manifest. Only ``image`` matters for rendering;
every other key is optional.
"""
from __future__ import annotations

import logging
import random
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import yaml

from .assets import load_audio, load_image
from .config import DURATION_DEFAULT
from .errors import AudioDecodeFailure
from .models import Scene, create_id, random_accent
from .utils import parse_color

StatusCallback = Callable[[str, str], None]

SCENE_KEYS = {"id", "caption", "duration", "image", "audio", "accent"}


def _resolve_path(base: Path, value: Any) -> Path:
    path = Path(str(value)).expanduser()
    return path if path.is_absolute() else base / path


def scene_from_entry(
    entry: Dict[str, Any],
    base: Path,
    on_status: Optional[StatusCallback] = None,
    rng: Optional[random.Random] = None,
) -> Scene:
    """Build a :class:`Scene` from one manifest entry, decoding its assets.

    A missing image leaves the scene unrenderable; undecodable audio leaves
    it silent. Neither aborts loading.
    """
    unknown = set(entry) - SCENE_KEYS
    if unknown:
        logging.warning("manifest: ignoring unknown scene keys %s", sorted(unknown))
    scene_id = str(entry.get("id") or create_id())

    try:
        duration = float(entry.get("duration", DURATION_DEFAULT))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"scene {scene_id}: duration must be a number") from exc

    accent = entry.get("accent")
    if accent:
        parse_color(str(accent))
    else:
        accent = random_accent(rng)

    image = None
    if entry.get("image"):
        image_path = _resolve_path(base, entry["image"])
        try:
            image = load_image(image_path)
        except OSError as exc:
            logging.warning("scene %s: cannot load image %s: %s", scene_id, image_path, exc)

    audio = None
    if entry.get("audio"):
        try:
            audio = load_audio(_resolve_path(base, entry["audio"]))
        except AudioDecodeFailure as exc:
            logging.warning("scene %s: %s; continuing without audio", scene_id, exc)
            if on_status:
                on_status("error", f"{exc}. Scene {scene_id} will be silent.")

    return Scene(
        id=scene_id,
        caption=str(entry.get("caption") or ""),
        duration=duration,
        image=image,
        audio=audio,
        accent_color=str(accent),
    )


def load_project(
    path: str | Path,
    on_status: Optional[StatusCallback] = None,
    rng: Optional[random.Random] = None,
) -> List[Scene]:
    """Read the manifest at *path* and return its scenes in order."""
    path = Path(path)
    with path.open("r", encoding="utf8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict) or not isinstance(data.get("scenes"), list):
        raise ValueError(f"{path}: manifest needs a 'scenes' list")
    scenes: List[Scene] = []
    for i, entry in enumerate(data["scenes"]):
        if not isinstance(entry, dict):
            raise ValueError(f"{path}: scene #{i + 1} must be a mapping")
        scenes.append(scene_from_entry(entry, path.parent, on_status, rng))
    ids = [s.id for s in scenes]
    if len(set(ids)) != len(ids):
        raise ValueError(f"{path}: scene ids must be unique")
    logging.info("loaded %d scene(s) from %s", len(scenes), path)
    return scenes
