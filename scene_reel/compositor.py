"""Frame compositor.

Paints one video frame for a segment: letterboxed image, caption band with
wrapped text and a per-scene progress bar. Every proportion is relative to
the surface so the same code serves any output resolution.
"""
from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Callable, List, Optional, Tuple

import cv2
import numpy as np
from PIL import Image, ImageDraw, ImageFont

from .models import ResolvedSegment
from .utils import as_rgb, blend_rect, fit_rect, parse_color

BACKGROUND = (2, 4, 9)

CAPTION_BAND = 0.28
CAPTION_COLOR = (248, 250, 252)
CAPTION_MAX_WIDTH = 0.7
CAPTION_FONT_SCALE = 0.026
CAPTION_FONT_MIN = 28
CAPTION_LINE_SCALE = 0.035
CAPTION_LINE_MIN = 34
# (position within band, opacity of black)
CAPTION_GRADIENT = ((0.0, 0.0), (0.4, 0.45), (1.0, 0.75))

BAR_WIDTH = 0.6
BAR_HEIGHT_SCALE = 0.015
BAR_HEIGHT_MIN = 10
BAR_MARGIN_SCALE = 0.04
BAR_MARGIN_MIN = 40
TRACK_COLOR = (255, 255, 255)
TRACK_ALPHA = 0.25

FONT_CANDIDATES = (
    "DejaVuSans-Bold.ttf",
    "Arial Bold.ttf",
    "arialbd.ttf",
    "LiberationSans-Bold.ttf",
)


@lru_cache(maxsize=16)
def load_font(size: int) -> ImageFont.FreeTypeFont:
    """Return a bold sans font at *size* px.

    ``SCENE_REEL_FONT`` may point at a specific TrueType file.
    """
    candidates = [os.environ.get("SCENE_REEL_FONT")] + list(FONT_CANDIDATES)
    for name in candidates:
        if not name:
            continue
        try:
            return ImageFont.truetype(name, size)
        except OSError:
            continue
    logging.warning("no TrueType font found, using Pillow default font")
    return ImageFont.load_default(size=size)


def wrap_caption(text: str, measure: Callable[[str], float], max_width: float) -> List[str]:
    """Greedy word wrap.

    Words are added to the current line until the next one would make it
    wider than *max_width*. A single word wider than the limit gets a line
    of its own.
    """
    lines: List[str] = []
    line = ""
    for word in text.split():
        candidate = f"{line} {word}" if line else word
        if line and measure(candidate) > max_width:
            lines.append(line)
            line = word
        else:
            line = candidate
    if line:
        lines.append(line)
    return lines


def progress(elapsed: float, duration: float) -> float:
    if duration <= 0:
        return 1.0
    return max(0.0, min(1.0, elapsed / duration))


def bar_geometry(width: int, height: int) -> Tuple[int, int, int, int]:
    """Return ``(x, y, w, h)`` of the progress track."""
    bar_w = int(round(width * BAR_WIDTH))
    bar_h = int(round(max(BAR_HEIGHT_MIN, height * BAR_HEIGHT_SCALE)))
    x = (width - bar_w) // 2
    y = int(round(height - bar_h - max(BAR_MARGIN_MIN, height * BAR_MARGIN_SCALE)))
    return x, max(0, y), bar_w, bar_h


def _check_surface(surface: np.ndarray) -> Tuple[int, int]:
    if surface.ndim != 3 or surface.shape[2] != 3 or surface.dtype != np.uint8:
        raise ValueError(f"surface must be an HxWx3 uint8 array, got {surface.shape} {surface.dtype}")
    return surface.shape[1], surface.shape[0]


def _draw_image(surface: np.ndarray, image: np.ndarray) -> None:
    W, H = surface.shape[1], surface.shape[0]
    image = as_rgb(image)
    ih, iw = image.shape[:2]
    x, y, w, h = fit_rect(iw, ih, W, H)
    interp = cv2.INTER_AREA if w < iw else cv2.INTER_CUBIC
    surface[y : y + h, x : x + w] = cv2.resize(image, (w, h), interpolation=interp)


def _draw_caption_band(surface: np.ndarray) -> int:
    """Darken the lower part of the frame; return the band height."""
    H = surface.shape[0]
    band = int(round(H * CAPTION_BAND))
    if band <= 0:
        return 0
    stops, alphas = zip(*CAPTION_GRADIENT)
    pos = (np.arange(band, dtype=np.float32) + 0.5) / band
    alpha = np.interp(pos, stops, alphas).astype(np.float32)[:, None, None]
    region = surface[H - band :].astype(np.float32)
    surface[H - band :] = (region * (1.0 - alpha) + 0.5).astype(np.uint8)
    return band


def _draw_caption_text(surface: np.ndarray, text: str, band: int) -> None:
    H, W = surface.shape[:2]
    font = load_font(int(round(max(CAPTION_FONT_MIN, W * CAPTION_FONT_SCALE))))
    line_height = max(CAPTION_LINE_MIN, W * CAPTION_LINE_SCALE)
    img = Image.fromarray(surface)
    draw = ImageDraw.Draw(img)
    lines = wrap_caption(text, lambda s: draw.textlength(s, font=font), W * CAPTION_MAX_WIDTH)
    y = H - band / 2.0
    for line in lines:
        draw.text((W / 2.0, y), line, font=font, fill=CAPTION_COLOR, anchor="mm")
        y += line_height
    surface[...] = np.asarray(img)


def _paint_static(surface: np.ndarray, segment: ResolvedSegment) -> None:
    W, H = _check_surface(surface)
    surface[...] = BACKGROUND
    _draw_image(surface, segment.image)
    caption = segment.scene.caption.strip()
    if caption:
        band = _draw_caption_band(surface)
        _draw_caption_text(surface, caption, band)
    x, y, w, h = bar_geometry(W, H)
    blend_rect(surface, x, y, w, h, TRACK_COLOR, TRACK_ALPHA)


def _paint_progress(surface: np.ndarray, segment: ResolvedSegment, elapsed: float) -> None:
    W, H = surface.shape[1], surface.shape[0]
    x, y, w, h = bar_geometry(W, H)
    filled = int(round(w * progress(elapsed, segment.effective_duration)))
    if filled > 0:
        blend_rect(surface, x, y, filled, h, parse_color(segment.scene.accent_color), 1.0)


def paint(surface: np.ndarray, segment: ResolvedSegment, elapsed_in_segment: float) -> None:
    """Paint the frame of *segment* at *elapsed_in_segment* onto *surface*."""
    _paint_static(surface, segment)
    _paint_progress(surface, segment, elapsed_in_segment)


class FrameCompositor:
    """Compositor keeping the static part of each segment's frame.

    Everything except the filled part of the progress bar is fixed for the
    whole segment, so it is rendered once and copied on every later tick.
    Segments play in order, so only the current segment's frame is kept.
    """

    def __init__(self) -> None:
        self._static: Optional[Tuple[ResolvedSegment, np.ndarray]] = None

    @property
    def held(self) -> int:
        """Number of static frames currently kept."""
        return 0 if self._static is None else 1

    def static_frame(self, segment: ResolvedSegment, size: Tuple[int, int]) -> np.ndarray:
        W, H = size
        cached = self._static
        if cached is not None and cached[0] is segment and cached[1].shape[:2] == (H, W):
            return cached[1]
        self._static = None
        frame = np.empty((H, W, 3), dtype=np.uint8)
        _paint_static(frame, segment)
        self._static = (segment, frame)
        logging.debug("compositor: cached static frame for segment %d", segment.index)
        return frame

    def paint(self, surface: np.ndarray, segment: ResolvedSegment, elapsed_in_segment: float) -> None:
        W, H = _check_surface(surface)
        np.copyto(surface, self.static_frame(segment, (W, H)))
        _paint_progress(surface, segment, elapsed_in_segment)

    def clear(self) -> None:
        self._static = None
