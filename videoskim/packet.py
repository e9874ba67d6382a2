"""Wire format of the inter-view feature packets exchanged between sensors."""

from __future__ import annotations

import struct
from dataclasses import dataclass

import numpy as np

_TRAILER = struct.Struct("<fI")
_UINT32_MAX = 0xFFFFFFFF


def packet_size(dimension: int) -> int:
    """Number of bytes of a packed packet whose feature has ``dimension`` values."""
    if dimension < 0:
        raise ValueError("feature dimension must not be negative")
    return 4 * dimension + _TRAILER.size


@dataclass(eq=False)
class FeaturePacket:
    """A feature histogram, its foreground score and a timestamp in milliseconds."""

    feature: np.ndarray
    score: float
    time: int

    def __post_init__(self) -> None:
        values = np.asarray(self.feature, dtype=np.float32)
        if values.ndim == 2 and values.shape[1] == 1:
            values = values[:, 0]
        if values.ndim != 1:
            raise ValueError("feature must be a one-dimensional vector")
        self.feature = values.copy()
        self.score = float(self.score)
        self.time = int(self.time)
        if not 0 <= self.time <= _UINT32_MAX:
            raise ValueError(f"time {self.time} does not fit in 32 bits")

    @property
    def size(self) -> int:
        return packet_size(len(self.feature))

    def pack(self) -> bytes:
        """Feature floats, then the score as a float, then the time as uint32."""
        return self.feature.astype("<f4").tobytes() + _TRAILER.pack(self.score, self.time)

    @classmethod
    def unpack(cls, data: bytes) -> "FeaturePacket":
        """Decode bytes produced by :meth:`pack`."""
        raw = bytes(data)
        if len(raw) < _TRAILER.size or len(raw) % 4:
            raise ValueError(f"invalid feature packet length {len(raw)}")
        body = len(raw) - _TRAILER.size
        feature = np.frombuffer(raw[:body], dtype="<f4").astype(np.float32)
        score, time = _TRAILER.unpack(raw[body:])
        return cls(feature, score, time)