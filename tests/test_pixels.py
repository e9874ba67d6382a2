import numpy as np
import pytest

from videoskim.pixels import bgr_to_rgba, bgra_to_bgr


def test_bgra_to_bgr_drops_alpha():
    frame = bgra_to_bgr(bytes([1, 2, 3, 4, 5, 6, 7, 8]), 2, 1)
    assert frame.shape == (1, 2, 3)
    assert frame.tolist() == [[[1, 2, 3], [5, 6, 7]]]


def test_bgra_to_bgr_short_buffer():
    with pytest.raises(ValueError):
        bgra_to_bgr(bytes(7), 2, 1)


def test_bgra_to_bgr_ignores_trailing_bytes():
    frame = bgra_to_bgr(bytes([9, 8, 7, 6, 0, 0]), 1, 1)
    assert frame.tolist() == [[[9, 8, 7]]]


def test_bgr_to_rgba_swaps_and_adds_alpha():
    data = bgr_to_rgba(np.array([[[10, 20, 30]]], dtype=np.uint8))
    assert data == bytes([30, 20, 10, 255])


def test_bgr_to_rgba_rejects_gray():
    with pytest.raises(ValueError):
        bgr_to_rgba(np.zeros((2, 2), dtype=np.uint8))


def test_round_trip_reverses_channels():
    rng = np.random.default_rng(1)
    frame = rng.integers(0, 256, size=(4, 6, 3), dtype=np.uint8)
    packed = bgr_to_rgba(frame)
    assert len(packed) == 4 * 6 * 4
    back = bgra_to_bgr(packed, 6, 4)
    assert np.array_equal(back, frame[..., ::-1])
    assert set(np.frombuffer(packed, dtype=np.uint8)[3::4].tolist()) == {255}