"""Frame features: quantised HSV histograms, shot cuts and motion detection."""

from __future__ import annotations

import math
from collections import deque
from typing import Iterable, Sequence

import numpy as np

SHOT_ERROR = 0.1
MIN_SHOT_GAP = 15
DIFF_TH = 20
DIFF_RATE = 0.005
FOREGROUND_RATE = 0.02
HISTOGRAM_BINS = 256
_DBL_EPSILON = 2.220446049250313e-16
_H_STEP = 180.0 / 16
_SV_STEP = 256.0 / 4


def _hsv_image(frame) -> np.ndarray:
    pixels = np.asarray(frame)
    if pixels.ndim != 3 or pixels.shape[2] < 3:
        raise ValueError("frame must be an H x W x 3 image")
    return pixels


def quantize_hsv(frame) -> np.ndarray:
    """Map each HSV pixel to one of 256 colour codes (32 hues, 4 saturations, 2 values)."""
    pixels = _hsv_image(frame)
    h = np.floor(pixels[..., 0].astype(np.float64) / 5.625).astype(np.int64)
    s = pixels[..., 1].astype(np.int64) // 64
    v = pixels[..., 2].astype(np.int64) // 128
    return ((h + (s << 5) + (v << 7)) & 0xFF).astype(np.uint8)


def quantized_histogram(quantized) -> np.ndarray:
    """256-bin histogram of a quantised frame."""
    codes = np.asarray(quantized).astype(np.int64).reshape(-1)
    if codes.size and (codes.min() < 0 or codes.max() >= HISTOGRAM_BINS):
        raise ValueError("codes must lie in 0..255")
    return np.bincount(codes, minlength=HISTOGRAM_BINS).astype(np.float32)


def _correlation(a, b) -> float:
    x = np.asarray(a, dtype=np.float64).reshape(-1)
    y = np.asarray(b, dtype=np.float64).reshape(-1)
    if x.shape != y.shape:
        raise ValueError("histograms differ in size")
    n = x.size
    s1, s2 = x.sum(), y.sum()
    num = float((x * y).sum() - s1 * s2 / n)
    den = float(((x * x).sum() - s1 * s1 / n) * ((y * y).sum() - s2 * s2 / n))
    return num / math.sqrt(abs(den)) if abs(den) > _DBL_EPSILON else 1.0


def shot_score(features: Sequence) -> float:
    """Cut score of the four latest histograms, newest first; 2 means no cut."""
    if len(features) < 4 or any(f is None or np.asarray(f).size == 0 for f in features[:4]):
        return 2.0
    z12 = np.float64(_correlation(features[1], features[2]))
    z01 = np.float64(_correlation(features[0], features[1]))
    z23 = np.float64(_correlation(features[2], features[3]))
    with np.errstate(divide="ignore", invalid="ignore"):
        return float(z12 / z23 + z12 / z01)


def detect_shots(histograms: Iterable) -> list[tuple[int, int]]:
    """Split a sequence of per-frame histograms into ``(start, end)`` shots."""
    window: deque = deque(maxlen=4)
    shots: list[tuple[int, int]] = []
    start = 0
    total = 0
    for i, hist in enumerate(histograms):
        window.appendleft(np.asarray(hist))
        total = i + 1
        score = shot_score(list(window))
        if score < 2 - 2 * SHOT_ERROR and i - start > MIN_SHOT_GAP:
            shots.append((start, i))
            start = i
    if total - start > MIN_SHOT_GAP:
        shots.append((start, total))
    return shots


def motion_segments(
    gray_frames: Iterable, diff_threshold=DIFF_TH, diff_rate=DIFF_RATE
) -> list[tuple[int, int]]:
    """Ranges of frames whose fraction of changed pixels exceeds ``diff_rate``.

    A segment ends at the first quiet frame, or at the last frame's index.
    """
    segments: list[tuple[int, int]] = []
    start = 0
    idx = -1
    prev: np.ndarray | None = None
    for frame in gray_frames:
        idx += 1
        current = np.asarray(frame)
        if prev is None:
            prev = current.copy()
            continue
        if current.shape != prev.shape:
            raise ValueError("frames differ in size")
        diff = np.abs(current.astype(np.int32) - prev.astype(np.int32))
        rate = np.count_nonzero(diff > diff_threshold) / current.size
        if rate > diff_rate:
            if start == 0:
                start = idx
        elif start != 0:
            segments.append((start, idx))
            start = 0
        prev = current.copy()
    if start != 0:
        segments.append((start, idx))
    return segments


def hsv_histogram_feature(hsv, mask) -> np.ndarray:
    """L1-normalised 256-bin HSV histogram of the foreground, or zeros if it is small."""
    pixels = _hsv_image(hsv)
    selected = np.asarray(mask).astype(bool)
    if selected.shape != pixels.shape[:2]:
        raise ValueError("mask must match the frame size")
    feature = np.zeros(HISTOGRAM_BINS, dtype=np.float32)
    height, width = selected.shape
    if np.count_nonzero(selected) <= height * width * FOREGROUND_RATE:
        return feature
    chosen = pixels[selected].astype(np.float64)
    if chosen[:, 0].max() >= 180:
        raise ValueError("hue values must lie in 0..179")
    h = np.floor(chosen[:, 0] / _H_STEP).astype(np.int64)
    s = np.floor(chosen[:, 1] / _SV_STEP).astype(np.int64)
    v = np.floor(chosen[:, 2] / _SV_STEP).astype(np.int64)
    index = h + (s << 4) + (v << 6)
    feature = np.bincount(index, minlength=HISTOGRAM_BINS).astype(np.float32)
    return (feature / np.float32(feature.sum())).astype(np.float32)