"""Conversions between camera/encoder pixel buffers and BGR frames."""

from __future__ import annotations

import numpy as np


def bgra_to_bgr(buffer, width: int, height: int) -> np.ndarray:
    """Turn a packed BGRA buffer into an ``height x width x 3`` BGR frame."""
    if width < 0 or height < 0:
        raise ValueError("width and height must not be negative")
    raw = np.frombuffer(bytes(buffer), dtype=np.uint8)
    need = width * height * 4
    if raw.size < need:
        raise ValueError(f"buffer holds {raw.size} bytes, need {need}")
    return raw[:need].reshape(height, width, 4)[..., :3].copy()


def bgr_to_rgba(frame) -> bytes:
    """Pack a BGR frame as RGBA bytes with an opaque alpha channel."""
    pixels = np.asarray(frame)
    if pixels.ndim != 3 or pixels.shape[2] < 3:
        raise ValueError("frame must be an H x W x 3 BGR image")
    height, width = pixels.shape[:2]
    out = np.empty((height, width, 4), dtype=np.uint8)
    out[..., 0] = pixels[..., 2]
    out[..., 1] = pixels[..., 1]
    out[..., 2] = pixels[..., 0]
    out[..., 3] = 255
    return out.tobytes()