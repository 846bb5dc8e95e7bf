import numpy as np
import pytest

from scene_reel.compositor import (
    BACKGROUND,
    FrameCompositor,
    bar_geometry,
    paint,
    progress,
    wrap_caption,
)
from scene_reel.models import AudioBuffer, ResolvedSegment, Scene
from scene_reel.utils import fit_rect

W, H = 320, 180


def make_segment(image, caption="", duration=4.0, accent="#00ff00"):
    scene = Scene(caption=caption, duration=duration, image=image, accent_color=accent)
    return ResolvedSegment(
        index=0,
        scene=scene,
        start_offset=0.0,
        effective_duration=duration,
        image=image,
        audio=AudioBuffer.silence(duration, 100),
    )


def solid(w, h, rgb):
    img = np.zeros((h, w, 3), dtype=np.uint8)
    img[:] = rgb
    return img


def surface():
    return np.zeros((H, W, 3), dtype=np.uint8)


def close_to(pixel, rgb, tol=1):
    return np.all(np.abs(pixel.astype(int) - np.array(rgb)) <= tol)


def test_fit_rect_pillarbox_and_letterbox():
    assert fit_rect(100, 100, W, H) == (70, 0, 180, 180)
    assert fit_rect(400, 100, W, H) == (0, 50, 320, 80)
    assert fit_rect(1920, 1080, W, H) == (0, 0, 320, 180)


def test_square_image_pillarboxed():
    surf = surface()
    paint(surf, make_segment(solid(100, 100, (255, 0, 0))), 0.0)
    assert tuple(surf[10, 10]) == BACKGROUND
    assert tuple(surf[10, 300]) == BACKGROUND
    assert close_to(surf[90, 160], (255, 0, 0))


def test_wide_image_letterboxed():
    surf = surface()
    paint(surf, make_segment(solid(400, 100, (0, 0, 255))), 0.0)
    assert tuple(surf[20, 160]) == BACKGROUND
    assert close_to(surf[60, 160], (0, 0, 255))


def test_progress_bar_fill_follows_elapsed():
    surf = surface()
    paint(surf, make_segment(solid(100, 100, (255, 0, 0)), duration=4.0), 2.0)
    x, y, w, h = bar_geometry(W, H)
    assert (x, y, w, h) == (64, 130, 192, 10)
    row = y + h // 2
    # filled half uses the accent colour, the rest is the translucent track
    assert tuple(surf[row, x + 2]) == (0, 255, 0)
    assert tuple(surf[row, x + 95]) == (0, 255, 0)
    assert tuple(surf[row, x + 136]) == (255, 64, 64)


def test_progress_bar_empty_at_start_and_full_at_end():
    seg = make_segment(solid(100, 100, (255, 0, 0)), duration=4.0)
    x, y, w, h = bar_geometry(W, H)
    row = y + h // 2
    start = surface()
    paint(start, seg, 0.0)
    assert tuple(start[row, x + 2]) != (0, 255, 0)
    end = surface()
    paint(end, seg, 10.0)
    assert tuple(end[row, x + w - 1]) == (0, 255, 0)


@pytest.mark.parametrize(
    "elapsed,duration,expected",
    [(0, 4, 0.0), (1, 4, 0.25), (8, 4, 1.0), (-1, 4, 0.0), (1, 0, 1.0)],
)
def test_progress_clamped(elapsed, duration, expected):
    assert progress(elapsed, duration) == expected


def test_caption_band_darkens_bottom():
    surf = surface()
    paint(surf, make_segment(solid(W, H, (255, 255, 255)), caption="Hi"), 0.0)
    assert tuple(surf[100, 5]) == (255, 255, 255)
    assert surf[179, 5].max() < 80
    # gradient gets darker towards the bottom edge
    assert surf[140, 5, 0] > surf[175, 5, 0]


def test_caption_text_drawn():
    seg = make_segment(solid(W, H, (0, 0, 0)), caption="Hello world")
    plain = make_segment(solid(W, H, (0, 0, 0)))
    with_text, without = surface(), surface()
    paint(with_text, seg, 0.0)
    paint(without, plain, 0.0)
    assert with_text[145:170, 60:260].max() > 200
    assert without[145:170, 60:260].max() < 80


def test_blank_caption_skips_band():
    surf = surface()
    paint(surf, make_segment(solid(W, H, (255, 255, 255)), caption="   "), 0.0)
    assert tuple(surf[179, 5]) == (255, 255, 255)


def test_wrap_caption_greedy():
    assert wrap_caption("aa bb cc", len, 5) == ["aa bb", "cc"]
    assert wrap_caption("aa bb cc", len, 100) == ["aa bb cc"]
    assert wrap_caption("supercalifragilistic a", len, 5) == ["supercalifragilistic", "a"]
    assert wrap_caption("", len, 5) == []


def test_rejects_bad_surface():
    with pytest.raises(ValueError):
        paint(np.zeros((H, W), np.uint8), make_segment(solid(4, 4, (0, 0, 0))), 0.0)


def test_frame_compositor_matches_paint():
    seg = make_segment(solid(120, 90, (10, 200, 30)), caption="Static part cached")
    comp = FrameCompositor()
    for elapsed in (0.0, 1.3, 2.6, 4.0):
        expected, got = surface(), surface()
        paint(expected, seg, elapsed)
        comp.paint(got, seg, elapsed)
        assert np.array_equal(expected, got)


def test_frame_compositor_keeps_only_current_static_frame():
    seg_a = make_segment(solid(16, 16, (1, 2, 3)))
    seg_b = make_segment(solid(16, 16, (4, 5, 6)))
    comp = FrameCompositor()
    assert comp.held == 0
    first = comp.static_frame(seg_a, (W, H))
    assert comp.static_frame(seg_a, (W, H)) is first
    comp.static_frame(seg_b, (W, H))
    assert comp.held == 1
    # moving on drops the previous segment's frame
    assert comp.static_frame(seg_a, (W, H)) is not first
    assert comp.held == 1
    comp.clear()
    assert comp.held == 0


def test_frame_compositor_rerenders_on_size_change():
    seg = make_segment(solid(16, 16, (1, 2, 3)))
    comp = FrameCompositor()
    small = comp.static_frame(seg, (W, H))
    big = comp.static_frame(seg, (2 * W, 2 * H))
    assert big.shape == (2 * H, 2 * W, 3)
    assert big is not small
    assert comp.held == 1
