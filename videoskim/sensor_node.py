"""Networked sensor side: streams selected shots and exchanges features."""

from __future__ import annotations

import socket
import struct
import threading
from typing import Any

from videoskim.netutil import recv_all, send_all
from videoskim.packet import FeaturePacket
from videoskim.sensor import Sender

_SHOT = struct.Struct("=3I")
_UINT32_MASK = 0xFFFFFFFF


def recv_message(sock: socket.socket) -> bytes:
    """Receive a single control byte from the server.

    Raises :class:`ConnectionError` if the server closed the connection.
    """
    data = sock.recv(1)
    if not data:
        raise ConnectionError("Connection break")
    return data


class FeatureReceiver:
    """Collects, in a background thread, the features other sensors broadcast."""

    def __init__(self, sock: socket.socket, feature_size: int) -> None:
        if feature_size <= 0:
            raise ValueError("feature size must be positive")
        self._sock = sock
        self.feature_size = int(feature_size)
        self._lock = threading.Lock()
        self._buffer: list[bytes] = []
        self._thread: threading.Thread | None = None
        self._error: OSError | None = None

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError("receiver already started")
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def read_features(self) -> list[FeaturePacket]:
        """Remove and decode every feature received so far."""
        with self._lock:
            raw, self._buffer = self._buffer, []
            error = self._error
        if error is not None:
            raise error
        return [FeaturePacket.unpack(data) for data in raw]

    def _run(self) -> None:
        try:
            while len(data := recv_all(self._sock, self.feature_size)) == self.feature_size:
                with self._lock:
                    self._buffer.append(data)
        except OSError as exc:
            with self._lock:
                self._error = exc


class StreamingSender(Sender):
    """Encodes selected frames and reports each contiguous shot to the server.

    Every shot is sent on ``meta_sock`` as three native uint32 values: start
    time, time of its last frame and number of frames.
    """

    def __init__(self, meta_sock: socket.socket, feature_sock: socket.socket, writer: Any) -> None:
        self._meta = meta_sock
        self._feature = feature_sock
        self._writer = writer
        self._skim_start = False
        self._skim_start_idx = 0
        self._skim_start_time = 0
        self._last_received_idx = -1
        self._last_received_time = 0

    def _stream_shot(self, start_idx: int, stop_idx: int, start_time: int, stop_time: int) -> None:
        print(f"Streaming Shot: {start_idx} {stop_idx} {start_time} {stop_time}")
        payload = _SHOT.pack(
            start_time & _UINT32_MASK,
            stop_time & _UINT32_MASK,
            (stop_idx - start_idx) & _UINT32_MASK,
        )
        send_all(self._meta, payload)

    def send_frame(self, frame, time: int, idx: int) -> None:
        if idx <= self._last_received_idx:
            raise ValueError(f"frame {idx} received after frame {self._last_received_idx}")
        self._writer.write(frame)
        if self._skim_start:
            if idx != self._last_received_idx + 1:
                self._stream_shot(
                    self._skim_start_idx,
                    self._last_received_idx + 1,
                    self._skim_start_time,
                    self._last_received_time,
                )
                self._skim_start_idx = idx
                self._skim_start_time = time
        else:
            self._skim_start = True
            self._skim_start_idx = idx
            self._skim_start_time = time
        self._last_received_idx = idx
        self._last_received_time = time

    def send_feature(self, feature, score: float, time: int, idx: int) -> None:
        send_all(self._feature, FeaturePacket(feature, score, time).pack())

    def finish(self) -> None:
        if self._skim_start:
            self._stream_shot(
                self._skim_start_idx,
                self._last_received_idx + 1,
                self._skim_start_time,
                self._last_received_time,
            )
            self._skim_start = False