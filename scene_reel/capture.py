"""Capture/encode session.

Frames are streamed into an ffmpeg process through moviepy's
``FFMPEG_VideoWriter`` together with the pre-mixed audio track. The
container is written in streaming mode (no seeking back), so the bytes
already on disk never change and can be collected as ordered chunks while
the recording is still running.
"""
from __future__ import annotations

import logging
import math
import os
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Callable, FrozenSet, Iterable, List, Optional, Sequence, Tuple

import numpy as np
from moviepy.video.io.ffmpeg_writer import FFMPEG_VideoWriter

from .bin_config import ffmpeg_binary
from .config import AUDIO_BITRATE, CHUNK_INTERVAL, VIDEO_BITRATE
from .errors import EmptyArtifact, EncoderFailure, EncoderUnavailable
from .models import Artifact

_VPX_PARAMS = ("-live", "1", "-deadline", "realtime", "-pix_fmt", "yuv420p")


@dataclass(frozen=True)
class OutputFormat:
    mime_type: str
    extension: str
    video_codec: str
    audio_codec: str
    ffmpeg_params: Tuple[str, ...] = ()
    # encoder speed preset, x264 only
    preset: Optional[str] = None


# Most preferred first
FORMAT_PREFERENCES: Tuple[OutputFormat, ...] = (
    OutputFormat("video/webm;codecs=vp9,opus", "webm", "libvpx-vp9", "libopus", _VPX_PARAMS),
    OutputFormat("video/webm;codecs=vp8,opus", "webm", "libvpx", "libopus", _VPX_PARAMS),
    OutputFormat(
        "video/mp4",
        "mp4",
        "libx264",
        "aac",
        ("-movflags", "frag_keyframe+empty_moov", "-pix_fmt", "yuv420p"),
        preset="veryfast",
    ),
)


@lru_cache(maxsize=4)
def probe_encoders(binary: str) -> FrozenSet[str]:
    """Return the encoder names compiled into the ffmpeg at *binary*."""
    try:
        out = subprocess.run(
            [binary, "-hide_banner", "-encoders"],
            capture_output=True,
            text=True,
            check=True,
            timeout=30,
        ).stdout
    except (OSError, subprocess.SubprocessError) as exc:
        raise EncoderUnavailable(f"Could not query ffmpeg encoders ({binary}): {exc}") from exc
    names = set()
    in_table = False
    for line in out.splitlines():
        if line.strip().startswith("---"):
            in_table = True
            continue
        parts = line.split()
        if in_table and len(parts) >= 2:
            names.add(parts[1])
    return frozenset(names)


def negotiate_format(
    encoders: Iterable[str], preferences: Sequence[OutputFormat] = FORMAT_PREFERENCES
) -> OutputFormat:
    """Return the first preferred format whose codecs are all available."""
    available = set(encoders)
    for fmt in preferences:
        if fmt.video_codec in available and fmt.audio_codec in available:
            return fmt
    wanted = ", ".join(f"{f.video_codec}+{f.audio_codec}" for f in preferences)
    raise EncoderUnavailable(f"No supported codec combination on this host (tried {wanted}).")


class CaptureState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    STOPPED = "stopped"
    ABORTED = "aborted"


WriterFactory = Callable[..., FFMPEG_VideoWriter]


class CaptureSession:
    """Live recording of frames plus one audio track.

    Frames arrive with a media timestamp and are resampled onto the constant
    frame grid of the output: each output frame shows the last frame painted
    within its interval, and intervals without a new frame repeat the
    previous one.
    """

    def __init__(
        self,
        size: Tuple[int, int],
        fps: int,
        output_format: OutputFormat,
        audio_path: Optional[str] = None,
        chunk_interval: float = CHUNK_INTERVAL,
        writer_factory: WriterFactory = FFMPEG_VideoWriter,
    ):
        self.size = size
        self.fps = fps
        self.output_format = output_format
        self.audio_path = audio_path
        self.chunk_interval = chunk_interval
        self.writer_factory = writer_factory
        self.state = CaptureState.IDLE
        self.path: Optional[str] = None
        self.chunks: List[bytes] = []
        self.frames_written = 0
        self._writer = None
        self._tmpdir: Optional[str] = None
        self._log = None
        self._offset = 0
        self._last_flush = 0.0
        self._pending: Optional[np.ndarray] = None
        self._pending_slot = -1

    @classmethod
    def start(
        cls,
        size: Tuple[int, int],
        fps: int,
        audio_path: Optional[str] = None,
        encoders: Optional[Iterable[str]] = None,
        **kwargs,
    ) -> "CaptureSession":
        """Negotiate an output format and start recording.

        Raises
        ------
        EncoderUnavailable
            If no preferred codec pair is available or ffmpeg cannot start.
        """
        if encoders is None:
            encoders = probe_encoders(ffmpeg_binary())
        session = cls(size, fps, negotiate_format(encoders), audio_path, **kwargs)
        session.open()
        return session

    def __enter__(self) -> "CaptureSession":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        if self.state is not CaptureState.STOPPED:
            self.abort()

    def open(self) -> None:
        if self.state is not CaptureState.IDLE:
            raise RuntimeError(f"capture session cannot start from state {self.state.value}")
        fmt = self.output_format
        self._tmpdir = tempfile.mkdtemp(prefix="scene_reel_capture_")
        self.path = os.path.join(self._tmpdir, f"capture.{fmt.extension}")
        self._log = open(os.path.join(self._tmpdir, "ffmpeg.log"), "w+", encoding="utf8")
        params: List[str] = []
        if self.audio_path:
            params.extend(["-b:a", AUDIO_BITRATE])
        params.extend(fmt.ffmpeg_params)
        options = dict(
            codec=fmt.video_codec,
            audiofile=self.audio_path,
            audio_codec=fmt.audio_codec if self.audio_path else None,
            bitrate=VIDEO_BITRATE,
            logfile=self._log,
            ffmpeg_params=params,
        )
        if fmt.preset:
            options["preset"] = fmt.preset
        try:
            self._writer = self.writer_factory(self.path, self.size, self.fps, **options)
        except OSError as exc:
            self._release()
            raise EncoderUnavailable(f"Could not start ffmpeg: {exc}") from exc
        self.state = CaptureState.RECORDING
        logging.info(
            "capture started: %s %dx%d@%d", fmt.mime_type, self.size[0], self.size[1], self.fps
        )

    def _write(self, frame: np.ndarray) -> None:
        try:
            self._writer.write_frame(frame)
        except IOError as exc:
            raise EncoderFailure(f"Encoding failed: {exc}") from exc
        self.frames_written += 1

    def push_frame(self, frame: np.ndarray, timestamp: float) -> None:
        """Record *frame*, painted at media time *timestamp* (seconds)."""
        if self.state is not CaptureState.RECORDING:
            raise RuntimeError(f"capture session is {self.state.value}")
        slot = max(0, int(math.floor(timestamp * self.fps + 1e-6)))
        if self._pending is None:
            self._pending = np.empty_like(frame)
        else:
            while self.frames_written < slot:
                self._write(self._pending)
        np.copyto(self._pending, frame)
        self._pending_slot = max(slot, self.frames_written)
        self._maybe_flush()

    def _maybe_flush(self) -> None:
        media_time = self.frames_written / float(self.fps)
        if media_time - self._last_flush >= self.chunk_interval:
            self.flush()
            self._last_flush = media_time

    def flush(self) -> int:
        """Collect bytes encoded since the previous flush; return their size."""
        if not self.path:
            return 0
        try:
            with open(self.path, "rb") as fh:
                fh.seek(self._offset)
                data = fh.read()
        except FileNotFoundError:
            return 0
        if data:
            self.chunks.append(data)
            self._offset += len(data)
        return len(data)

    def _ffmpeg_log_tail(self, lines: int = 8) -> str:
        if self._log is None or self._log.closed:
            return ""
        self._log.seek(0)
        return "\n".join(self._log.read().strip().splitlines()[-lines:])

    def stop(self) -> Artifact:
        """Finish the recording and return the concatenated artifact.

        Raises
        ------
        EmptyArtifact
            If the encoder produced no bytes.
        EncoderFailure
            If ffmpeg exited with an error.
        """
        if self.state is not CaptureState.RECORDING:
            raise RuntimeError(f"capture session is {self.state.value}")
        try:
            if self._pending is not None:
                while self.frames_written <= self._pending_slot:
                    self._write(self._pending)
            proc = getattr(self._writer, "proc", None)
            try:
                self._writer.close()
            except OSError as exc:
                raise EncoderFailure(f"Encoding failed: {exc}") from exc
            self._writer = None
            returncode = proc.returncode if proc is not None else 0
            if returncode:
                raise EncoderFailure(
                    f"ffmpeg exited with status {returncode}: {self._ffmpeg_log_tail()}"
                )
            self.flush()
            data = b"".join(self.chunks)
        except BaseException:
            self.abort()
            raise
        self.state = CaptureState.STOPPED
        self._release()
        logging.info(
            "capture stopped: %d frame(s), %d chunk(s), %d bytes",
            self.frames_written,
            len(self.chunks),
            len(data),
        )
        if not data:
            raise EmptyArtifact()
        return Artifact(data, self.output_format.mime_type)

    def abort(self) -> None:
        """Kill the encoder and discard everything recorded so far."""
        if self.state in (CaptureState.STOPPED, CaptureState.ABORTED):
            return
        writer, self._writer = self._writer, None
        if writer is not None:
            proc = getattr(writer, "proc", None)
            if proc is not None and proc.poll() is None:
                proc.kill()
            try:
                writer.close()
            except OSError as exc:
                logging.debug("capture abort: closing writer: %s", exc)
        self.state = CaptureState.ABORTED
        self.chunks = []
        self._release()
        logging.info("capture aborted")

    def _release(self) -> None:
        self._pending = None
        if self._log is not None:
            self._log.close()
            self._log = None
        if self._tmpdir:
            shutil.rmtree(self._tmpdir, ignore_errors=True)
            self._tmpdir = None
