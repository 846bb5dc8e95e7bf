import numpy as np
import pytest

from scene_reel.config import DURATION_MIN
from scene_reel.errors import InvalidTimeline, NoRenderableScenes
from scene_reel.models import AudioBuffer, Scene
from scene_reel.timeline import effective_duration, resolve, total_duration


def make_img(w=8, h=6):
    return np.zeros((h, w, 3), dtype=np.uint8)


def clip(seconds, sr=1000):
    return AudioBuffer(np.zeros(int(seconds * sr), dtype=np.float32), sr)


def test_two_scene_scenario():
    scenes = [
        Scene(duration=5, image=make_img()),
        Scene(duration=3, image=make_img(), audio=clip(6)),
    ]
    segs = resolve(scenes, sample_rate=1000)
    assert [s.effective_duration for s in segs] == [5, 6]
    assert [s.start_offset for s in segs] == [0, 5]
    assert total_duration(segs) == 11


def test_single_image_scene():
    segs = resolve([Scene(duration=6, image=make_img())])
    assert len(segs) == 1
    assert segs[0].start_offset == 0
    assert segs[0].effective_duration == 6
    assert total_duration(segs) == 6


def test_effective_duration_rule():
    silent = Scene(duration=2.5, image=make_img())
    assert effective_duration(silent) == max(2.5, DURATION_MIN)
    short_audio = Scene(duration=4, image=make_img(), audio=clip(1.5))
    assert effective_duration(short_audio) == 4
    long_audio = Scene(duration=4, image=make_img(), audio=clip(9.25))
    assert effective_duration(long_audio) == pytest.approx(9.25)


def test_minimum_scenes_total():
    n = 7
    scenes = [Scene(duration=DURATION_MIN, image=make_img()) for _ in range(n)]
    segs = resolve(scenes, sample_rate=100)
    assert total_duration(segs) == pytest.approx(n * DURATION_MIN)


def test_segments_contiguous():
    scenes = [
        Scene(duration=d, image=make_img(), audio=clip(a) if a else None)
        for d, a in [(1.3, 0), (2, 3.7), (30, 0), (1, 0.2), (4.4, 12)]
    ]
    segs = resolve(scenes, sample_rate=1000)
    assert segs[0].start_offset == 0
    for prev, nxt in zip(segs, segs[1:]):
        assert nxt.start_offset == pytest.approx(prev.start_offset + prev.effective_duration)
    assert total_duration(segs) == pytest.approx(sum(s.effective_duration for s in segs))


def test_scenes_without_image_are_skipped_in_order():
    scenes = [
        Scene(id="a", duration=2, image=make_img()),
        Scene(id="b", duration=3),
        Scene(id="c", duration=4, image=make_img()),
    ]
    segs = resolve(scenes)
    assert [s.scene.id for s in segs] == ["a", "c"]
    assert [s.index for s in segs] == [0, 1]
    assert segs[1].start_offset == 2


def test_silence_synthesised_for_audioless_scene():
    segs = resolve([Scene(duration=2, image=make_img())], sample_rate=8000)
    audio = segs[0].audio
    assert audio.sample_rate == 8000
    assert audio.channels == 1
    assert audio.duration == pytest.approx(2.0)
    assert not audio.samples.any()


def test_real_audio_kept():
    buf = clip(3)
    segs = resolve([Scene(duration=1, image=make_img(), audio=buf)])
    assert segs[0].audio is buf


def test_empty_list_fails():
    with pytest.raises(NoRenderableScenes):
        resolve([])


def test_no_images_fails():
    with pytest.raises(NoRenderableScenes):
        resolve([Scene(duration=3), Scene(duration=4, audio=clip(2))])


def test_zero_total_guard():
    scene = Scene(image=make_img())
    # bypass the constructor clamp
    object.__setattr__(scene, "duration", 0.0)
    with pytest.raises(InvalidTimeline):
        resolve([scene], min_duration=0.0)


def test_resolve_idempotent():
    scenes = [
        Scene(duration=2, image=make_img()),
        Scene(duration=1, image=make_img(), audio=clip(2.5)),
    ]
    first = resolve(scenes, sample_rate=1000)
    second = resolve(scenes, sample_rate=1000)
    assert [(s.start_offset, s.effective_duration) for s in first] == [
        (s.start_offset, s.effective_duration) for s in second
    ]
