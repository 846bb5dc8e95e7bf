"""Data model shared by the timeline, compositor and capture stages."""
from __future__ import annotations

import random
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import numpy as np

from .config import DURATION_DEFAULT, DURATION_MAX, DURATION_MIN


def create_id() -> str:
    return uuid.uuid4().hex[:10]


def random_accent(rng: random.Random | None = None) -> str:
    """Return a saturated ``hsl(...)`` colour for the progress bar."""
    hue = (rng or random).randrange(360)
    return f"hsl({hue}, 82%, 58%)"


def clamp_duration(seconds: float) -> float:
    return max(DURATION_MIN, min(DURATION_MAX, float(seconds)))


@dataclass(eq=False)
class AudioBuffer:
    """Decoded PCM samples.

    ``samples`` is a float32 array of shape ``(frames, channels)``; a 1-D
    array is treated as mono.
    """

    samples: np.ndarray
    sample_rate: int

    def __post_init__(self) -> None:
        if self.sample_rate <= 0:
            raise ValueError(f"invalid sample rate: {self.sample_rate}")
        arr = np.asarray(self.samples, dtype=np.float32)
        if arr.ndim == 1:
            arr = arr[:, None]
        if arr.ndim != 2:
            raise ValueError(f"audio samples must be 1-D or 2-D, got shape {arr.shape}")
        self.samples = arr

    @property
    def frames(self) -> int:
        return int(self.samples.shape[0])

    @property
    def channels(self) -> int:
        return int(self.samples.shape[1])

    @property
    def duration(self) -> float:
        return self.frames / float(self.sample_rate)

    @classmethod
    def silence(cls, duration: float, sample_rate: int, channels: int = 1) -> "AudioBuffer":
        """Return a silent buffer of *duration* seconds (at least one frame)."""
        frames = max(1, int(duration * sample_rate))
        return cls(np.zeros((frames, channels), dtype=np.float32), sample_rate)


@dataclass(frozen=True, eq=False)
class Scene:
    """One user authored scene.

    ``image`` is an ``H×W×3`` uint8 RGB bitmap; scenes without one are
    skipped at render time. ``duration`` is clamped to
    ``[DURATION_MIN, DURATION_MAX]`` on construction.
    """

    id: str = field(default_factory=create_id)
    caption: str = ""
    duration: float = DURATION_DEFAULT
    image: Optional[np.ndarray] = None
    audio: Optional[AudioBuffer] = None
    accent_color: str = field(default_factory=random_accent)

    def __post_init__(self) -> None:
        object.__setattr__(self, "duration", clamp_duration(self.duration))
        object.__setattr__(self, "caption", self.caption or "")

    @property
    def audio_duration(self) -> float:
        return self.audio.duration if self.audio is not None else 0.0


@dataclass(frozen=True, eq=False)
class ResolvedSegment:
    """A scene placed on the render timeline."""

    index: int
    scene: Scene
    start_offset: float
    effective_duration: float
    image: np.ndarray
    audio: AudioBuffer

    @property
    def end_offset(self) -> float:
        return self.start_offset + self.effective_duration

    def contains(self, elapsed: float) -> bool:
        return self.start_offset <= elapsed < self.end_offset


_MIME_EXTENSIONS = {"video/webm": "webm", "video/mp4": "mp4"}


@dataclass(frozen=True)
class Artifact:
    """Final encoded recording."""

    data: bytes
    mime_type: str

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        container = self.mime_type.split(";", 1)[0].strip()
        return _MIME_EXTENSIONS.get(container, "bin")

    def save(self, path: str | Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.data)
        return path
