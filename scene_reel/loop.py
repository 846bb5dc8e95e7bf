"""Playback clocks and the frame render loop.

The loop is driven one tick at a time: each tick samples the clock, picks the
active segment, paints a frame and hands it to a frame sink, then answers
whether another tick is wanted. :meth:`RenderLoop.run` wraps that contract in
a plain cooperative loop that yields to the clock between frames.
"""
from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from typing import Callable, Optional, Protocol, Sequence, Tuple

import numpy as np

from .compositor import FrameCompositor
from .errors import CaptureAborted
from .models import ResolvedSegment
from .timeline import total_duration

FrameSink = Callable[[np.ndarray, float], None]


class Clock(Protocol):
    def now(self) -> float: ...

    def wait_next(self) -> None: ...


class RealtimeClock:
    """Wall clock ticking once per frame interval.

    Ticks are aligned to a fixed grid from the first call so a slow frame
    does not push every later tick back.
    """

    def __init__(self, fps: float, time_fn: Callable[[], float] = time.monotonic, sleep_fn: Callable[[float], None] = time.sleep):
        if fps <= 0:
            raise ValueError("fps must be positive")
        self.interval = 1.0 / fps
        self._time = time_fn
        self._sleep = sleep_fn
        self._origin: Optional[float] = None
        self._tick = 0

    def now(self) -> float:
        current = self._time()
        if self._origin is None:
            self._origin = current
        return current

    def wait_next(self) -> None:
        current = self.now()
        self._tick += 1
        target = self._origin + self._tick * self.interval
        if target <= current:
            # late: skip the missed ticks instead of bursting
            self._tick = int((current - self._origin) / self.interval) + 1
            target = self._origin + self._tick * self.interval
        self._sleep(target - current)


class FrameClock:
    """Virtual clock advancing exactly one frame per tick.

    Used for offline renders, where frames are produced as fast as the host
    allows and timestamps stay on the frame grid.
    """

    def __init__(self, fps: float, start: float = 0.0):
        if fps <= 0:
            raise ValueError("fps must be positive")
        self.fps = fps
        self.start = start
        self.frame = 0

    def now(self) -> float:
        return self.start + self.frame / self.fps

    def wait_next(self) -> None:
        self.frame += 1


def select_segment(
    segments: Sequence[ResolvedSegment], elapsed: float
) -> Tuple[ResolvedSegment, float]:
    """Return the active segment and the time elapsed inside it.

    Linear scan over the (short) segment list. Before the timeline start
    the first segment is held at ``0``; at or past the end the last segment
    is returned with its local time clamped to its full duration.
    """
    if not segments:
        raise ValueError("select_segment: empty segment list")
    current = segments[-1]
    if elapsed < segments[0].start_offset:
        current = segments[0]
    else:
        for segment in segments:
            if segment.contains(elapsed):
                current = segment
                break
    local = min(current.effective_duration, max(0.0, elapsed - current.start_offset))
    return current, local


class LoopState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


class RenderLoop:
    """Maps clock time to frames for one render pass.

    Parameters
    ----------
    segments:
        Resolved timeline, never modified by the loop.
    surface:
        ``H×W×3`` raster the compositor paints into; the loop is its only
        writer.
    sink:
        Called as ``sink(surface, media_time)`` after every painted frame,
        with ``media_time`` measured from *epoch*.
    epoch:
        Clock reading that corresponds to media time ``0``.
    render_start:
        Media time at which the first segment starts; equals the audio
        lead-in so pictures and sound stay aligned.
    """

    def __init__(
        self,
        segments: Sequence[ResolvedSegment],
        surface: np.ndarray,
        sink: FrameSink,
        epoch: float = 0.0,
        render_start: float = 0.0,
        compositor: Optional[FrameCompositor] = None,
    ):
        if not segments:
            raise ValueError("RenderLoop needs at least one segment")
        self.segments = list(segments)
        self.surface = surface
        self.sink = sink
        self.epoch = epoch
        self.render_start = render_start
        self.compositor = compositor or FrameCompositor()
        self.total = total_duration(self.segments)
        self.state = LoopState.IDLE
        self.frames = 0
        self._last_elapsed = float("-inf")
        self._cancel = threading.Event()

    def cancel(self) -> None:
        """Ask the loop to stop; safe to call from another thread."""
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def _emit(self, segment: ResolvedSegment, local: float, media_time: float) -> None:
        self.compositor.paint(self.surface, segment, local)
        self.frames += 1
        self.sink(self.surface, media_time)

    def tick(self, now: float) -> bool:
        """Paint the frame for clock time *now*; return ``False`` when done."""
        if self.state in (LoopState.DRAINING, LoopState.STOPPED):
            return False
        self.state = LoopState.RUNNING
        media_time = now - self.epoch
        # never step backwards, even if the clock does
        elapsed = max(media_time - self.render_start, self._last_elapsed)
        self._last_elapsed = elapsed
        if elapsed >= self.total:
            self.state = LoopState.DRAINING
            last = self.segments[-1]
            self._emit(last, last.effective_duration, max(media_time, self.render_start + self.total))
            self.state = LoopState.STOPPED
            logging.info("render loop finished after %d frames", self.frames)
            return False
        segment, local = select_segment(self.segments, elapsed)
        self._emit(segment, local, media_time)
        return True

    def run(self, clock: Clock) -> int:
        """Tick until the timeline ends; return the number of frames painted.

        Raises
        ------
        CaptureAborted
            If :meth:`cancel` was called before the timeline ended.
        """
        logging.info(
            "render loop: %d segment(s), %.2fs timeline", len(self.segments), self.total
        )
        while True:
            if self._cancel.is_set():
                self.state = LoopState.STOPPED
                raise CaptureAborted()
            if not self.tick(clock.now()):
                return self.frames
            clock.wait_next()
