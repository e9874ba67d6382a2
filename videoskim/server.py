"""Collection server: receives each sensor's shots and video, relays features."""

from __future__ import annotations

import argparse
import os
import queue
import selectors
import socket
import struct
import sys
import threading
from dataclasses import dataclass
from typing import IO, Sequence

from videoskim.netutil import connect_to, recv_all, send_all
from videoskim.packet import packet_size
from videoskim.sensor import DEFAULT_FEATURE_BINS

MAX_N_SENSOR = 10
_META = struct.Struct("=3I")
_CHUNK = 4096


@dataclass
class ConnectInfo:
    """The three connections to one sensor."""

    sock_meta: socket.socket
    sock_feature: socket.socket
    sock_video: socket.socket


def _message(value) -> bytes:
    if isinstance(value, int):
        return bytes([value])
    if isinstance(value, str):
        return value.encode("latin-1")
    return bytes(value)


class FeatureBroadcaster:
    """Sends each feature received from one sensor to every other sensor."""

    def __init__(self, links: Sequence[ConnectInfo], feature_size: int) -> None:
        self._links = links
        self.feature_size = int(feature_size)
        self._queue: queue.Queue = queue.Queue()
        self._thread: threading.Thread | None = None
        self._error: OSError | None = None

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError("broadcaster already started")
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Send what is queued, end the thread and report a send failure."""
        if self._thread is None:
            raise RuntimeError("broadcaster not started")
        self._queue.put(None)
        self._thread.join()
        self._thread = None
        if self._error is not None:
            raise self._error

    def broadcast(self, video_id: int, data: bytes) -> None:
        payload = bytes(data)
        if len(payload) != self.feature_size:
            raise ValueError(f"feature has {len(payload)} bytes, expected {self.feature_size}")
        self._queue.put((video_id, payload))

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is None:
                return
            video_id, payload = item
            for i, link in enumerate(self._links):
                if i == video_id:
                    continue
                try:
                    send_all(link.sock_feature, payload)
                except OSError as exc:
                    self._error = exc
                    return


class SensorLink:
    """Serves one sensor: stores its shot list and video, forwards its features."""

    def __init__(
        self,
        info: ConnectInfo,
        video_id: int,
        broadcaster: FeatureBroadcaster,
        directory: str,
        feature_size: int,
        start_message,
        stop_message,
    ) -> None:
        self.info = info
        self.video_id = int(video_id)
        self._broadcaster = broadcaster
        self.directory = directory
        self.feature_size = int(feature_size)
        self.start_message = _message(start_message)
        self.stop_message = _message(stop_message)
        self._threads: list[threading.Thread] = []

    def start(self) -> None:
        """Open the output files, start receiving and tell the sensor to start."""
        info_file = open(
            os.path.join(self.directory, f"info-{self.video_id}.txt"), "w", encoding="utf-8"
        )
        video_file = open(os.path.join(self.directory, f"video-{self.video_id}.264"), "wb")
        self._threads = [
            threading.Thread(target=self._run_msg, args=(info_file,), daemon=True),
            threading.Thread(target=self._run_video, args=(video_file,), daemon=True),
            threading.Thread(target=self._run_feature, daemon=True),
        ]
        for thread in self._threads:
            thread.start()
        send_all(self.info.sock_meta, self.start_message)

    def stop(self) -> None:
        """Tell the sensor to stop and wait until it has closed its streams."""
        send_all(self.info.sock_meta, self.stop_message)
        for thread in self._threads:
            thread.join()
        self._threads = []

    def _run_msg(self, stream: IO[str]) -> None:
        with stream:
            try:
                while len(data := recv_all(self.info.sock_meta, _META.size)) == _META.size:
                    start, stop, count = _META.unpack(data)
                    print(f"{start} {stop} {count}")
                    stream.write(f"{start} {stop} {count}\n")
                    stream.flush()
            except OSError as exc:
                print(f"Failed to receive msg: {exc}", file=sys.stderr)
            else:
                print(f"Sensor {self.video_id}: msg socket closed by sensor")

    def _run_video(self, stream: IO[bytes]) -> None:
        with stream:
            try:
                while chunk := self.info.sock_video.recv(_CHUNK):
                    stream.write(chunk)
                    stream.flush()
            except OSError as exc:
                print(f"Failed to receive video: {exc}", file=sys.stderr)

    def _run_feature(self) -> None:
        try:
            while len(data := recv_all(self.info.sock_feature, self.feature_size)) == self.feature_size:
                print(f"Feature Received, vid = {self.video_id}")
                self._broadcaster.broadcast(self.video_id, data)
        except OSError as exc:
            print(f"Failed to receive feature: {exc}", file=sys.stderr)


def _listen(port: int) -> socket.socket:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    sock.bind(("", port))
    sock.listen(MAX_N_SENSOR)
    return sock


def _wait_connections(listener: socket.socket, feature_port: int, video_port: int) -> list[ConnectInfo]:
    """Accept sensors until a line is entered on standard input."""
    clients: list[ConnectInfo] = []
    with selectors.DefaultSelector() as selector:
        selector.register(listener, selectors.EVENT_READ, "listener")
        selector.register(sys.stdin, selectors.EVENT_READ, "stdin")
        while True:
            ready = {key.data for key, _ in selector.select()}
            if "listener" in ready:
                conn, (host, port) = listener.accept()
                print(f"Accept connection from: {host}:{port}, fd = {conn.fileno()}")
                feature = connect_to(host, feature_port)
                print(f">>> Connect to feature channel, fd = {feature.fileno()}")
                video = connect_to(host, video_port)
                print(f">>> Connect to video channel, fd = {video.fileno()}")
                clients.append(ConnectInfo(conn, feature, video))
            if "stdin" in ready:
                sys.stdin.readline()
                return clients


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="skim-server")
    parser.add_argument("--port", type=int, required=True)
    parser.add_argument("--feature-port", type=int, required=True)
    parser.add_argument("--video-port", type=int, required=True)
    parser.add_argument("--start-message", required=True)
    parser.add_argument("--stop-message", required=True)
    parser.add_argument("--feature-size", type=int, default=packet_size(DEFAULT_FEATURE_BINS))
    parser.add_argument("--directory", default=".")
    args = parser.parse_args(argv)

    print(f"Listen to port: {args.port}")
    listener = _listen(args.port)
    print("Type 'start' to begin the system.")
    print("Wait for connection...")
    clients = _wait_connections(listener, args.feature_port, args.video_port)

    broadcaster = FeatureBroadcaster(clients, args.feature_size)
    broadcaster.start()
    links = [
        SensorLink(
            info, i, broadcaster, args.directory, args.feature_size,
            args.start_message, args.stop_message,
        )
        for i, info in enumerate(clients)
    ]

    print("Sending start signal...")
    for link in links:
        link.start()

    sys.stdin.readline()
    broadcaster.stop()

    print("Sending stop signal...")
    for link in links:
        link.stop()
    return 0