"""Timeline resolution: scenes to contiguous, non-overlapping segments."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence

from .config import DURATION_MIN, SAMPLE_RATE
from .errors import InvalidTimeline, NoRenderableScenes
from .models import AudioBuffer, ResolvedSegment, Scene


def effective_duration(scene: Scene, min_duration: float = DURATION_MIN) -> float:
    """Return how long *scene* stays on screen.

    A scene never cuts its own audio short: the requested duration is
    extended to the audio length when the clip is longer.
    """
    return max(scene.duration, scene.audio_duration, min_duration)


def resolve(
    scenes: Sequence[Scene],
    sample_rate: int = SAMPLE_RATE,
    min_duration: float = DURATION_MIN,
) -> List[ResolvedSegment]:
    """Place every scene that has an image on the render timeline.

    Scenes keep their list order. Audioless scenes receive a silent mono
    buffer of their effective duration so every segment carries a playable
    buffer.

    Raises
    ------
    NoRenderableScenes
        If no scene has an image.
    InvalidTimeline
        If the resulting total duration is not positive.
    """
    renderable = [s for s in scenes if s.image is not None]
    skipped = len(scenes) - len(renderable)
    if skipped:
        logging.info("resolve: skipping %d scene(s) without image", skipped)
    if not renderable:
        raise NoRenderableScenes()

    segments: List[ResolvedSegment] = []
    cursor = 0.0
    for index, scene in enumerate(renderable):
        duration = effective_duration(scene, min_duration)
        audio = scene.audio
        if audio is None:
            audio = AudioBuffer.silence(duration, sample_rate)
        segments.append(
            ResolvedSegment(
                index=index,
                scene=scene,
                start_offset=cursor,
                effective_duration=duration,
                image=scene.image,
                audio=audio,
            )
        )
        cursor += duration

    total = total_duration(segments)
    if total <= 0:
        raise InvalidTimeline(total)
    return segments


def total_duration(segments: Sequence[ResolvedSegment]) -> float:
    if not segments:
        return 0.0
    return segments[-1].end_offset


@dataclass(frozen=True)
class TimelineEntry:
    scene_id: str
    duration: float
    share: float
    color: str


def timeline_summary(
    scenes: Sequence[Scene], min_duration: float = DURATION_MIN
) -> List[TimelineEntry]:
    """Return each scene's slice of the overall timeline.

    Unlike :func:`resolve` this includes scenes without an image, so an
    editor can show the timeline while it is still being assembled.
    """
    durations = [effective_duration(s, min_duration) for s in scenes]
    total = sum(durations)
    if total <= 0:
        return []
    return [
        TimelineEntry(scene.id, d, d / total, scene.accent_color)
        for scene, d in zip(scenes, durations)
    ]


def format_seconds(seconds: float) -> str:
    """Format *seconds* as ``MM:SS``."""
    seconds = max(0.0, seconds)
    mins = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{mins:02d}:{secs:02d}"
