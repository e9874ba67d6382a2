"""Offline simulation of a multi-camera summarisation network."""

from __future__ import annotations

from typing import IO, Any, Iterable, Sequence

from videoskim.packet import FeaturePacket
from videoskim.records import Segment
from videoskim.sensor import Sender

FPS = 30


class SkimServer:
    """Collects the frames each sensor selects and relays features between sensors."""

    def __init__(self, n_sensor: int, output: IO[str]) -> None:
        self.n_sensor = int(n_sensor)
        self._output = output
        self._features: list[list[bytes]] = [[] for _ in range(self.n_sensor)]
        self._skim_start = [False] * self.n_sensor
        self._skim_start_idx = [0] * self.n_sensor
        self._last_received_idx = [0] * self.n_sensor
        self.skims: list[list[Segment]] = [[] for _ in range(self.n_sensor)]
        self.merged: list[list[Segment]] = []

    def broadcast_feature(self, data: bytes, video_id: int) -> None:
        """Queue a packed feature for every sensor except its sender."""
        payload = bytes(data)
        for i, queue in enumerate(self._features):
            if i != video_id:
                queue.append(payload)

    def take_features(self, video_id: int) -> list[bytes]:
        """Remove and return the features queued for one sensor."""
        queued = self._features[video_id]
        self._features[video_id] = []
        return queued

    def _close_segment(self, video_id: int) -> None:
        start = self._skim_start_idx[video_id]
        end = self._last_received_idx[video_id] + 1
        self._output.write(f"{video_id} {start} {end}\n")
        self.skims[video_id].append(Segment(video_id, start, end))

    def send_frame(self, idx: int, video_id: int) -> None:
        """Record that a sensor selected frame ``idx``."""
        if self._skim_start[video_id]:
            if idx != self._last_received_idx[video_id] + 1:
                self._close_segment(video_id)
                self._skim_start_idx[video_id] = idx
        else:
            self._skim_start[video_id] = True
            self._skim_start_idx[video_id] = idx
        self._last_received_idx[video_id] = idx

    def finish(self) -> None:
        """Close open segments and group close segments into merged shots."""
        for i in range(self.n_sensor):
            if self._skim_start[i]:
                self._close_segment(i)
        self._post_process()

    def _post_process(self) -> None:
        def long_enough(group: list[Segment]) -> bool:
            return bool(group) and group[-1].end - group[0].start >= FPS

        merged: list[list[Segment]] = []
        for view in self.skims:
            group: list[Segment] = []
            for seg in view:
                if not group or seg.start - group[-1].end < FPS:
                    group.append(seg)
                else:
                    if long_enough(group):
                        merged.append(group)
                    group = [seg]
            if long_enough(group):
                merged.append(group)
        merged.sort(key=lambda g: g[0].start)
        self.merged = merged


class SimulateSender(Sender):
    """Delivers one sensor's output straight to an in-process server."""

    def __init__(self, server: SkimServer, video_id: int) -> None:
        self._server = server
        self.video_id = int(video_id)

    def send_frame(self, frame, time: int, idx: int) -> None:
        self._server.send_frame(idx, self.video_id)

    def send_feature(self, feature, score: float, time: int, idx: int) -> None:
        packet = FeaturePacket(feature, score, time)
        self._server.broadcast_feature(packet.pack(), self.video_id)

    def finish(self) -> None:
        pass


class IntraSimulateSender(Sender):
    """Writes the selected frame ranges of a single camera as ``start end`` lines."""

    def __init__(self, output: IO[str]) -> None:
        self._output = output
        self._skim_start = False
        self._skim_start_idx = 0
        self._last_received_idx = -1

    def send_frame(self, frame, time: int, idx: int) -> None:
        if idx <= self._last_received_idx:
            raise ValueError(
                f"frame {idx} received after frame {self._last_received_idx}"
            )
        if self._skim_start:
            if idx != self._last_received_idx + 1:
                self._output.write(f"{self._skim_start_idx} {self._last_received_idx + 1}\n")
                self._skim_start_idx = idx
        else:
            self._skim_start = True
            self._skim_start_idx = idx
        self._last_received_idx = idx

    def send_feature(self, feature, score: float, time: int, idx: int) -> None:
        pass

    def finish(self) -> None:
        if self._skim_start:
            self._output.write(f"{self._skim_start_idx} {self._last_received_idx + 1}\n")


def simulate_inter_view(
    streams: Sequence[Iterable[Any]],
    offsets: Sequence[int],
    server: SkimServer,
    sensors: Sequence[Any],
    fps: int = FPS,
) -> list[list[Segment]]:
    """Feed every view frame by frame on a shared timeline; return the merged shots.

    A view starts at its offset on the timeline and is fed ``None`` once its
    frames run out. The run stops at the first step in which no view produced
    a frame.
    """
    if not len(streams) == len(offsets) == len(sensors):
        raise ValueError("streams, offsets and sensors differ in length")
    iterators = [iter(s) for s in streams]
    step = 1000 // fps
    idx = 0
    time = 0
    while True:
        done = True
        for i, it in enumerate(iterators):
            if idx < offsets[i]:
                continue
            frame = next(it, None)
            if frame is not None:
                done = False
            features = [FeaturePacket.unpack(raw) for raw in server.take_features(i)]
            sensors[i].next(idx, frame, time, features)
        if done:
            break
        idx += 1
        time += step

    for sensor in sensors:
        sensor.finish()
    server.finish()
    return server.merged