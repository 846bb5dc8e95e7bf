"""Decoding of uploaded image and audio files."""
from __future__ import annotations

from pathlib import Path

import numpy as np
import soundfile as sf
from PIL import Image

from .errors import AudioDecodeFailure
from .models import AudioBuffer
from .utils import as_rgb


def load_image(path: str | Path) -> np.ndarray:
    """Return the image at *path* as an ``H×W×3`` uint8 RGB array.

    Raises ``OSError`` (``FileNotFoundError`` or Pillow's
    ``UnidentifiedImageError``) when the file cannot be decoded.
    """
    with Image.open(path) as img:
        if img.mode in ("RGBA", "LA", "P"):
            img = img.convert("RGBA")
        else:
            img = img.convert("RGB")
        arr = np.array(img)
    return as_rgb(arr)


def load_audio(path: str | Path) -> AudioBuffer:
    """Decode the audio file at *path* into float32 samples.

    Raises
    ------
    AudioDecodeFailure
        If the file is missing, unsupported or holds no samples.
    """
    try:
        samples, sample_rate = sf.read(str(path), dtype="float32", always_2d=True)
    except (RuntimeError, OSError) as exc:
        raise AudioDecodeFailure(str(path), str(exc)) from exc
    if samples.shape[0] == 0:
        raise AudioDecodeFailure(str(path), "no audio samples")
    return AudioBuffer(samples, int(sample_rate))
