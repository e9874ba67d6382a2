"""Per-camera summarisation: intra-view selection and inter-view deduplication."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Iterable

import numpy as np

from videoskim.mog import OnlineClusterMog
from videoskim.packet import FeaturePacket

N_BLOCK = 8
BUFFER_TIME = 10000
FEATURE_MATCH_TH = 0.7
DEFAULT_FEATURE_BINS = 32
_HUE_RANGE = 181
_UINT32_MASK = 0xFFFFFFFF
_FLT_EPSILON = 1.1920929e-07


class Sender(ABC):
    """Where a sensor delivers the frames it selects and the features it shares."""

    @abstractmethod
    def send_frame(self, frame, time: int, idx: int) -> None:
        """Deliver a selected frame."""

    @abstractmethod
    def send_feature(self, feature, score: float, time: int, idx: int) -> None:
        """Share the inter-view feature of a candidate frame."""

    @abstractmethod
    def finish(self) -> None:
        """Flush anything still pending."""


def bgr_to_hue(frame, mask) -> np.ndarray:
    """Hue in degrees (stored modulo 256) of each masked BGR pixel; 0 elsewhere."""
    pixels = np.asarray(frame)
    if pixels.ndim != 3 or pixels.shape[2] < 3:
        raise ValueError("frame must be an H x W x 3 BGR image")
    selected = np.asarray(mask).astype(bool)
    if selected.shape != pixels.shape[:2]:
        raise ValueError("mask must match the frame size")
    b, g, r = (pixels[..., c].astype(np.int64) for c in range(3))
    high = np.maximum(np.maximum(b, g), r)
    low = np.minimum(np.minimum(b, g), r)
    spread = high - low
    den = np.where(spread == 0, 1, spread)

    def tdiv(num: np.ndarray) -> np.ndarray:
        return np.sign(num) * (np.abs(num) // den)

    hue = np.where(
        r == high,
        tdiv(60 * (g - b)),
        np.where(g == high, 120 + tdiv(60 * (b - r)), 240 + tdiv(60 * (r - g))),
    )
    hue = np.where(hue < 0, hue + 360, hue)
    hue = np.where(selected & (spread != 0), hue, 0)
    return (hue & 0xFF).astype(np.uint8)


def extract_intra_stage_feature(frame, feature, background, bins):
    """Hue histogram of the blocks that differ from the background, and a score.

    Returns ``(histogram, score)``; the score is the L1 distance between
    ``feature`` and ``background``.
    """
    pixels = np.asarray(frame)
    feat = np.asarray(feature, dtype=np.float32).reshape(-1)
    back = np.asarray(background, dtype=np.float32).reshape(-1)
    if feat.shape != back.shape:
        raise ValueError("feature and background differ in size")
    height, width = pixels.shape[:2]
    w_step = width // N_BLOCK
    h_step = height // N_BLOCK

    mask = np.zeros((height, width), dtype=np.uint8)
    if w_step and h_step:
        if len(feat) < 3 * N_BLOCK * N_BLOCK:
            raise ValueError("feature too short for the block grid")
        i = 0
        for y in range(0, h_step * N_BLOCK, h_step):
            for x in range(0, w_step * N_BLOCK, w_step):
                d = back[i:i + 3].astype(np.float64) - feat[i:i + 3].astype(np.float64)
                i += 3
                if float(np.dot(d, d)) > 0.01:
                    mask[y:y + h_step, x:x + w_step] = 255

    hue = bgr_to_hue(pixels, mask)
    values = hue[mask != 0].astype(np.int64)
    values = values[values < _HUE_RANGE]
    index = np.floor(values * (bins / _HUE_RANGE)).astype(np.int64)
    histogram = np.bincount(index, minlength=bins)[:bins].astype(np.float32)
    count = int(np.count_nonzero(mask))
    if count:
        histogram = histogram / np.float32(count)
    score = float(np.sum(np.abs(feat - back), dtype=np.float64))
    return histogram.astype(np.float32), score


def _bhattacharyya(h1, h2) -> float:
    a = np.asarray(h1, dtype=np.float64).reshape(-1)
    b = np.asarray(h2, dtype=np.float64).reshape(-1)
    if a.shape != b.shape:
        raise ValueError("histograms differ in size")
    overlap = float(np.sum(np.sqrt(a * b)))
    product = float(a.sum() * b.sum())
    scale = 1.0 / math.sqrt(product) if abs(product) > _FLT_EPSILON else 1.0
    return math.sqrt(max(1.0 - overlap * scale, 0.0))


@dataclass(eq=False)
class _Buffered:
    feature: np.ndarray
    score: float
    time: int
    frame: Any
    idx: int


class Sensor:
    """Selects foreground frames of one camera and drops those another camera covers."""

    feature_bins = DEFAULT_FEATURE_BINS

    def __init__(
        self,
        sender: Sender,
        extractor: Callable[[Any], Any],
        fps=30,
        k=9,
        alpha=0.004,
        t=0.5,
        init_sigma=0.005,
        intra_only=False,
        time_to_ignore=0,
    ) -> None:
        self._sender = sender
        self._extractor = extractor
        self._clusters = OnlineClusterMog(k, alpha, t, init_sigma)
        self.intra_only = bool(intra_only)
        self.time_to_ignore = int(time_to_ignore)
        self.match_time_threshold = int(1000 * 0.6 / fps)
        self._buffer: list[_Buffered] = []
        self._start_time: int | None = None

    @property
    def pending(self) -> list[int]:
        """Frame indices still held back waiting for other views."""
        return [b.idx for b in self._buffer]

    def next(self, idx: int, frame, time: int, features: Iterable[FeaturePacket]) -> None:
        """Process one frame (or ``None``) together with features from other views."""
        choose = False
        feature = None
        if frame is not None and np.asarray(frame).size:
            feature = np.asarray(self._extractor(frame), dtype=np.float32).reshape(-1)
            c = self._clusters.cluster(feature)
            choose = not self._clusters.is_background(c)

        if self.time_to_ignore > 0:
            if self._start_time is None:
                self._start_time = time
            if ((time - self._start_time) & _UINT32_MASK) < self.time_to_ignore:
                return

        if self.intra_only:
            if choose:
                self._sender.send_frame(frame, time, idx)
            return

        if choose:
            background = self._clusters.background()
            intra, score = extract_intra_stage_feature(
                frame, feature, background, self.feature_bins
            )
            self._buffer.append(_Buffered(intra, score, time, np.array(frame, copy=True), idx))
            self._sender.send_feature(intra, score, time, idx)

        for packet in features:
            match = next(
                (
                    b
                    for b in self._buffer
                    if abs(float(packet.time) - float(b.time)) < self.match_time_threshold
                ),
                None,
            )
            if (
                match is not None
                and packet.score > match.score
                and _bhattacharyya(packet.feature, match.feature) < FEATURE_MATCH_TH
            ):
                self._buffer.remove(match)

        while self._buffer and ((time - self._buffer[0].time) & _UINT32_MASK) > BUFFER_TIME:
            held = self._buffer.pop(0)
            self._sender.send_frame(held.frame, held.time, held.idx)

    def finish(self) -> None:
        """Send every frame still held back."""
        if self.intra_only:
            return
        for held in self._buffer:
            self._sender.send_frame(held.frame, held.time, held.idx)
        self._buffer.clear()