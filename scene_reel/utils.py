"""Raster helpers shared by asset decoding and the compositor."""
from __future__ import annotations

from functools import lru_cache
from typing import Tuple

import numpy as np
from PIL import ImageColor


def fit_rect(img_w: int, img_h: int, target_w: int, target_h: int) -> Tuple[int, int, int, int]:
    """Return ``(x, y, w, h)`` fitting an image inside the target, centred.

    The image keeps its aspect ratio; the leftover area becomes letterbox
    (top/bottom) or pillarbox (left/right) bars.
    """
    src_ratio = img_w / img_h
    target_ratio = target_w / target_h
    draw_w, draw_h = float(target_w), float(target_h)
    if src_ratio > target_ratio:
        draw_h = target_w / src_ratio
    else:
        draw_w = target_h * src_ratio
    w = min(target_w, max(1, int(round(draw_w))))
    h = min(target_h, max(1, int(round(draw_h))))
    return (target_w - w) // 2, (target_h - h) // 2, w, h


def as_rgb(arr: np.ndarray) -> np.ndarray:
    """Return *arr* as a contiguous ``H×W×3`` uint8 array.

    Grayscale is expanded, an alpha channel is composited over black.
    """
    arr = np.asarray(arr)
    if arr.dtype != np.uint8:
        arr = np.clip(arr, 0, 255).astype(np.uint8)
    if arr.ndim == 2:
        arr = np.stack([arr] * 3, axis=-1)
    elif arr.ndim == 3 and arr.shape[-1] == 4:
        alpha = arr[..., 3:4].astype(np.uint16)
        arr = (arr[..., :3].astype(np.uint16) * alpha // 255).astype(np.uint8)
    elif arr.ndim == 3 and arr.shape[-1] == 1:
        arr = np.repeat(arr, 3, axis=-1)
    if arr.ndim != 3 or arr.shape[-1] != 3:
        raise ValueError(f"unsupported image shape: {arr.shape}")
    return np.ascontiguousarray(arr)


@lru_cache(maxsize=256)
def parse_color(value: str) -> Tuple[int, int, int]:
    """Convert ``"#rrggbb"``, ``"hsl(h, s%, l%)"`` or a colour name to RGB."""
    try:
        rgb = ImageColor.getrgb(value.strip())
    except (AttributeError, ValueError) as exc:
        raise ValueError(f"invalid color: {value!r}") from exc
    return tuple(int(c) for c in rgb[:3])  # type: ignore[return-value]


def blend_rect(
    surface: np.ndarray,
    x: int,
    y: int,
    w: int,
    h: int,
    color: Tuple[int, int, int],
    alpha: float,
) -> None:
    """Blend a solid rectangle onto *surface* in place, clipped to bounds."""
    H, W = surface.shape[:2]
    x0, y0 = max(0, x), max(0, y)
    x1, y1 = min(W, x + w), min(H, y + h)
    if x1 <= x0 or y1 <= y0:
        return
    region = surface[y0:y1, x0:x1].astype(np.float32)
    col = np.asarray(color, dtype=np.float32)
    surface[y0:y1, x0:x1] = np.clip(region * (1 - alpha) + col * alpha + 0.5, 0, 255).astype(np.uint8)
