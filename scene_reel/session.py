"""Render session: scenes in, one encoded recording out."""
from __future__ import annotations

import logging
import os
import shutil
import tempfile
import threading
from enum import Enum
from typing import Callable, Iterable, List, Optional, Sequence

import numpy as np

from .audio import AudioBus, schedule
from .capture import CaptureSession
from .compositor import paint
from .config import AUDIO_LEAD_IN, FPS_DEFAULT, FPS_OPTIONS, SAMPLE_RATE
from .errors import CaptureAborted, ReelError
from .loop import Clock, RealtimeClock, RenderLoop, select_segment
from .models import Artifact, ResolvedSegment, Scene
from .timeline import resolve, total_duration

StatusCallback = Callable[[str, str], None]
CaptureFactory = Callable[..., CaptureSession]


class SessionState(str, Enum):
    CREATED = "created"
    PRIMING = "priming"
    RENDERING = "rendering"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    FAILED = "failed"


def _check_output(width: int, height: int, fps: int) -> None:
    if width <= 0 or height <= 0:
        raise ValueError(f"invalid output size {width}x{height}")
    if fps not in FPS_OPTIONS:
        raise ValueError(f"fps must be one of {FPS_OPTIONS}, got {fps}")


class RenderSession:
    """One invocation of "generate".

    The scene list is snapshotted on construction. :meth:`run` walks the
    session through priming (timeline resolved, audio scheduled, encoder
    started), rendering (frame loop) and finalizing (encoder stopped), and
    releases every handle on the way out whatever happens.

    ``on_status(tone, message)`` receives progress with tone ``"neutral"``,
    ``"success"`` or ``"error"``.
    """

    def __init__(
        self,
        scenes: Iterable[Scene],
        width: int,
        height: int,
        fps: int = FPS_DEFAULT,
        clock: Optional[Clock] = None,
        on_status: Optional[StatusCallback] = None,
        lead_in: float = AUDIO_LEAD_IN,
        sample_rate: int = SAMPLE_RATE,
        encoders: Optional[Iterable[str]] = None,
        capture_factory: CaptureFactory = CaptureSession.start,
    ):
        _check_output(width, height, fps)
        self.scenes = tuple(scenes)
        self.width = width
        self.height = height
        self.fps = fps
        self.clock = clock
        self.on_status = on_status
        self.lead_in = lead_in
        self.sample_rate = sample_rate
        self.encoders = encoders
        self.capture_factory = capture_factory
        self.state = SessionState.CREATED
        self.segments: List[ResolvedSegment] = []
        self.surface: Optional[np.ndarray] = None
        self.bus: Optional[AudioBus] = None
        self.capture: Optional[CaptureSession] = None
        self.loop: Optional[RenderLoop] = None
        self._tmpdir: Optional[str] = None
        self._abort = threading.Event()

    def _status(self, tone: str, message: str) -> None:
        if tone == "error":
            logging.error("render: %s", message)
        else:
            logging.info("render: %s", message)
        if self.on_status:
            self.on_status(tone, message)

    def abort(self) -> None:
        """Cancel the render from another thread."""
        self._abort.set()
        if self.loop is not None:
            self.loop.cancel()

    def _check_abort(self) -> None:
        if self._abort.is_set():
            raise CaptureAborted()

    def run(self) -> Artifact:
        """Render the timeline and return the artifact.

        Raises
        ------
        ReelError
            Any failure; the session ends ``failed`` and nothing partial is
            returned.
        """
        if self.state is not SessionState.CREATED:
            raise RuntimeError("a render session can only run once")
        self._status("neutral", "Preparing scenes and resources...")
        try:
            artifact = self._render()
        except ReelError as exc:
            self.state = SessionState.FAILED
            self._status("error", str(exc))
            raise
        except KeyboardInterrupt:
            self.state = SessionState.FAILED
            exc = CaptureAborted()
            self._status("error", str(exc))
            raise exc from None
        except Exception:
            self.state = SessionState.FAILED
            self._status("error", "There was a problem generating the video.")
            raise
        finally:
            self._release()
        self.state = SessionState.COMPLETED
        self._status(
            "success",
            f"Video generated successfully ({artifact.size} bytes, {artifact.mime_type}).",
        )
        return artifact

    def _render(self) -> Artifact:
        self.segments = resolve(self.scenes, self.sample_rate)
        logging.info(
            "timeline: %d segment(s), %.2fs", len(self.segments), total_duration(self.segments)
        )

        self.state = SessionState.PRIMING
        self._tmpdir = tempfile.mkdtemp(prefix="scene_reel_")
        self.bus = AudioBus(self.sample_rate)
        schedule(self.bus, self.segments, epoch=0.0, lead_in=self.lead_in)
        audio_path = self.bus.export(os.path.join(self._tmpdir, "mix.wav"))
        self._check_abort()
        self.capture = self.capture_factory(
            (self.width, self.height), self.fps, audio_path=str(audio_path), encoders=self.encoders
        )
        self.surface = np.zeros((self.height, self.width, 3), dtype=np.uint8)

        clock = self.clock or RealtimeClock(self.fps)
        self.loop = RenderLoop(
            self.segments,
            self.surface,
            self.capture.push_frame,
            epoch=clock.now(),
            render_start=self.lead_in,
        )
        if self._abort.is_set():
            self.loop.cancel()
        self.state = SessionState.RENDERING
        self._status("neutral", "Rendering video...")
        self.loop.run(clock)

        self.state = SessionState.FINALIZING
        capture, self.capture = self.capture, None
        return capture.stop()

    def _release(self) -> None:
        # the loop runs on this thread, so it has stopped producing frames here
        if self.capture is not None:
            self.capture.abort()
            self.capture = None
        if self.bus is not None:
            self.bus.close()
            self.bus = None
        self.surface = None
        if self._tmpdir:
            shutil.rmtree(self._tmpdir, ignore_errors=True)
            self._tmpdir = None


def generate(
    scenes: Iterable[Scene],
    width: int,
    height: int,
    fps: int = FPS_DEFAULT,
    **kwargs,
) -> Artifact:
    """Render *scenes* into one encoded audio/video artifact.

    Keyword arguments are passed to :class:`RenderSession`.
    """
    return RenderSession(scenes, width, height, fps, **kwargs).run()


def render_still(
    scenes: Sequence[Scene], width: int, height: int, at: float = 0.0
) -> np.ndarray:
    """Return the frame shown at timeline time *at* (seconds).

    Useful to preview a timeline without starting a capture.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"invalid output size {width}x{height}")
    segments = resolve(scenes)
    segment, local = select_segment(segments, at)
    surface = np.zeros((height, width, 3), dtype=np.uint8)
    paint(surface, segment, local)
    return surface
