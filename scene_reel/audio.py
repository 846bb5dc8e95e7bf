"""Audio bus and scheduling of segment audio onto it."""
from __future__ import annotations

import logging
from fractions import Fraction
from pathlib import Path
from typing import Sequence

import numpy as np
import soundfile as sf
from scipy.signal import resample_poly

from .config import AUDIO_LEAD_IN, BUS_CHANNELS, SAMPLE_RATE
from .models import AudioBuffer, ResolvedSegment


def conform(buffer: AudioBuffer, sample_rate: int, channels: int) -> np.ndarray:
    """Return *buffer* samples at *sample_rate* with *channels* channels.

    Mono is duplicated to every channel; surplus channels are dropped.
    """
    samples = buffer.samples
    if buffer.sample_rate != sample_rate:
        ratio = Fraction(sample_rate, buffer.sample_rate)
        samples = resample_poly(samples, ratio.numerator, ratio.denominator, axis=0).astype(np.float32)
    if samples.shape[1] == channels:
        return samples
    if samples.shape[1] == 1:
        return np.repeat(samples, channels, axis=1)
    if samples.shape[1] > channels:
        return samples[:, :channels]
    # fewer channels than the bus: pad with copies of the last one
    extra = np.repeat(samples[:, -1:], channels - samples.shape[1], axis=1)
    return np.concatenate([samples, extra], axis=1)


class AudioBus:
    """Shared output bus that scheduled buffers are mixed onto.

    Bus time ``0.0`` is sample ``0``. The bus is a scoped resource: use it as
    a context manager or call :meth:`close` once the render is over.
    """

    def __init__(self, sample_rate: int = SAMPLE_RATE, channels: int = BUS_CHANNELS):
        if sample_rate <= 0 or channels <= 0:
            raise ValueError("sample_rate and channels must be positive")
        self.sample_rate = sample_rate
        self.channels = channels
        self._samples: np.ndarray | None = np.zeros((0, channels), dtype=np.float32)

    def __enter__(self) -> "AudioBus":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._samples is None

    @property
    def samples(self) -> np.ndarray:
        if self._samples is None:
            raise RuntimeError("audio bus is closed")
        return self._samples

    @property
    def duration(self) -> float:
        return self.samples.shape[0] / float(self.sample_rate)

    def place(self, buffer: AudioBuffer, at: float) -> int:
        """Mix *buffer* onto the bus starting at bus time *at* (seconds).

        Returns the first sample index written.
        """
        if at < 0:
            raise ValueError(f"cannot place audio before bus start: {at}")
        samples = conform(buffer, self.sample_rate, self.channels)
        start = int(round(at * self.sample_rate))
        end = start + samples.shape[0]
        self.extend_to(end)
        self._samples[start:end] += samples
        return start

    def extend_to(self, frames: int) -> None:
        """Pad the bus with silence up to *frames* samples."""
        current = self.samples.shape[0]
        if frames > current:
            pad = np.zeros((frames - current, self.channels), dtype=np.float32)
            self._samples = np.concatenate([self._samples, pad], axis=0)

    def export(self, path: str | Path) -> Path:
        """Write the mix to a 16-bit WAV file for the encoder."""
        path = Path(path)
        sf.write(str(path), np.clip(self.samples, -1.0, 1.0), self.sample_rate, subtype="PCM_16")
        return path

    def close(self) -> None:
        self._samples = None


def schedule(
    bus: AudioBus,
    segments: Sequence[ResolvedSegment],
    epoch: float = 0.0,
    lead_in: float = AUDIO_LEAD_IN,
) -> None:
    """Place every segment's audio at ``epoch + start_offset + lead_in``.

    All segments share the same lead-in so their spacing on the bus equals
    their offset deltas exactly. Placed audio is never moved again.
    """
    for segment in segments:
        at = epoch + segment.start_offset + lead_in
        start = bus.place(segment.audio, at)
        logging.debug(
            "audio: segment %d (%s) at %.3fs, sample %d, %.3fs long",
            segment.index,
            segment.scene.id,
            at,
            start,
            segment.audio.duration,
        )
    if segments:
        # the mix must cover the whole visual timeline even when the last
        # buffer is a little short after rounding
        end = epoch + segments[-1].end_offset + lead_in
        bus.extend_to(int(round(end * bus.sample_rate)))
