import random
from fractions import Fraction

import pytest

from fakes import FakeFrame, FakeSampleBuffer
from mediaflow_transcoder.transcoder.frame_aligner import FrameAligner


def _aligner(frame_size: int = 1152, sample_rate: int = 44100) -> FrameAligner:
    return FrameAligner(FakeSampleBuffer(), frame_size, sample_rate)


def _frame(samples: int, pts: int | None = None) -> FakeFrame:
    return FakeFrame(samples=samples, pts=pts, sample_rate=44100)


def test_two_1024_frames_emit_one_1152_frame():
    aligner = _aligner(1152)

    first = aligner.push(_frame(1024))
    second = aligner.push(_frame(1024))

    assert first == []
    assert [f.samples for f in second] == [1152]
    assert aligner.buffered == 896


def test_drain_emits_short_final_frame():
    aligner = _aligner(1152)
    aligner.push(_frame(300))

    out = aligner.drain()

    assert [f.samples for f in out] == [300]
    assert aligner.buffered == 0


def test_drain_with_empty_buffer_emits_nothing():
    aligner = _aligner(1152)
    aligner.push(_frame(2304))
    assert aligner.drain() == []


def test_single_push_can_emit_several_frames():
    aligner = _aligner(1024)
    out = aligner.push(_frame(4096 + 10))
    assert [f.samples for f in out] == [1024] * 4
    assert aligner.buffered == 10


def test_incoming_pts_is_cleared_before_buffering():
    aligner = _aligner(1024)
    # FakeSampleBuffer refuses frames that still carry a pts
    out = aligner.push(_frame(1024, pts=123456))
    assert out[0].pts == 0


def test_pts_sequence_and_time_base():
    aligner = _aligner(1152, sample_rate=48000)
    frames = aligner.push(_frame(5000)) + aligner.drain()

    assert [f.pts for f in frames] == [0, 1152, 2304, 3456, 4608]
    assert all(f.time_base == Fraction(1, 48000) for f in frames)
    assert aligner.next_pts == 5000


@pytest.mark.parametrize("frame_size", [160, 480, 1024, 1152])
def test_random_sequences_preserve_every_sample(frame_size):
    rng = random.Random(frame_size)
    for _ in range(20):
        aligner = _aligner(frame_size)
        counts = [rng.randint(1, 3 * frame_size) for _ in range(rng.randint(1, 30))]

        emitted = []
        for count in counts:
            emitted += aligner.push(_frame(count))
        emitted += aligner.drain()

        sizes = [f.samples for f in emitted]
        assert sum(sizes) == sum(counts)
        assert all(size == frame_size for size in sizes[:-1])
        assert 0 < sizes[-1] <= frame_size

        assert emitted[0].pts == 0
        for prev, frame in zip(emitted, emitted[1:]):
            assert frame.pts - prev.pts == prev.samples


def test_counters():
    aligner = _aligner(1000)
    aligner.push(_frame(2500))
    aligner.drain()
    assert aligner.samples_in == 2500
    assert aligner.samples_out == 2500


def test_rejects_non_positive_frame_size():
    with pytest.raises(ValueError):
        FrameAligner(FakeSampleBuffer(), 0, 44100)
