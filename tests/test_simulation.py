import io

import numpy as np
import pytest

from videoskim.packet import FeaturePacket
from videoskim.records import Segment
from videoskim.simulation import (
    IntraSimulateSender,
    SimulateSender,
    SkimServer,
    simulate_inter_view,
)


def test_broadcast_skips_sender_and_take_clears():
    server = SkimServer(3, io.StringIO())
    server.broadcast_feature(b"abcd", 1)
    assert server.take_features(0) == [b"abcd"]
    assert server.take_features(1) == []
    assert server.take_features(2) == [b"abcd"]
    assert server.take_features(0) == []


def test_server_writes_segments_on_break_and_finish():
    out = io.StringIO()
    server = SkimServer(1, out)
    for idx in list(range(0, 5)) + [10, 11, 12]:
        server.send_frame(idx, 0)
    server.finish()
    assert out.getvalue() == "0 0 5\n0 10 13\n"
    assert server.skims[0] == [Segment(0, 0, 5), Segment(0, 10, 13)]


def test_merge_keeps_long_groups_sorted_by_start():
    server = SkimServer(3, io.StringIO())
    for idx in range(200, 240):
        server.send_frame(idx, 0)
    for idx in list(range(0, 40)) + list(range(50, 60)):
        server.send_frame(idx, 1)
    for idx in range(100, 110):
        server.send_frame(idx, 2)
    server.finish()
    assert server.merged == [
        [Segment(1, 0, 40), Segment(1, 50, 60)],
        [Segment(0, 200, 240)],
    ]


def test_simulate_sender_round_trips_features():
    server = SkimServer(2, io.StringIO())
    sender = SimulateSender(server, 0)
    sender.send_feature(np.array([0.25, 0.75], dtype=np.float32), 1.5, 99, 4)
    (raw,) = server.take_features(1)
    packet = FeaturePacket.unpack(raw)
    assert packet.time == 99
    assert packet.score == pytest.approx(1.5)
    np.testing.assert_allclose(packet.feature, [0.25, 0.75])
    sender.send_frame(None, 0, 7)
    server.finish()
    assert server.skims[0] == [Segment(0, 7, 8)]


def test_intra_sender_writes_ranges():
    out = io.StringIO()
    sender = IntraSimulateSender(out)
    for idx in (1, 2, 3, 7, 8):
        sender.send_frame(None, 0, idx)
    sender.finish()
    assert out.getvalue() == "1 4\n7 9\n"


def test_intra_sender_rejects_out_of_order():
    sender = IntraSimulateSender(io.StringIO())
    sender.send_frame(None, 0, 5)
    with pytest.raises(ValueError):
        sender.send_frame(None, 0, 5)


class _Recorder:
    def __init__(self, server, vid, broadcast=False):
        self.server = server
        self.vid = vid
        self.broadcast = broadcast
        self.calls = []
        self.finished = False

    def next(self, idx, frame, time, features):
        self.calls.append((idx, frame, time, [p.time for p in features]))
        if self.broadcast and frame is not None:
            self.server.broadcast_feature(FeaturePacket([1.0], 0.5, time).pack(), self.vid)
            self.server.send_frame(idx, self.vid)

    def finish(self):
        self.finished = True


def test_simulate_inter_view_timeline():
    server = SkimServer(2, io.StringIO())
    a = _Recorder(server, 0, broadcast=True)
    b = _Recorder(server, 1)
    merged = simulate_inter_view([["a0", "a1", "a2"], ["b0", "b1"]], [0, 1], server, [a, b], 30)
    assert [c[1] for c in a.calls] == ["a0", "a1", "a2", None]
    assert [c[0] for c in b.calls] == [1, 2, 3]
    assert [c[1] for c in b.calls] == ["b0", "b1", None]
    assert [c[2] for c in a.calls] == [0, 33, 66, 99]
    assert b.calls[0][3] == [0, 33]
    assert a.finished and b.finished
    assert server.skims[0] == [Segment(0, 0, 3)]
    assert merged == []


def test_simulate_inter_view_length_mismatch():
    server = SkimServer(1, io.StringIO())
    with pytest.raises(ValueError):
        simulate_inter_view([[1]], [0, 0], server, [_Recorder(server, 0)], 30)