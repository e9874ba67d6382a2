import socket
import struct

import pytest

from videoskim.netutil import recv_all
from videoskim.server import ConnectInfo, FeatureBroadcaster, SensorLink


def _link_pairs(n):
    server_side, sensor_side = [], []
    for _ in range(n):
        pairs = [socket.socketpair() for _ in range(3)]
        server_side.append(ConnectInfo(*(p[0] for p in pairs)))
        sensor_side.append(ConnectInfo(*(p[1] for p in pairs)))
    return server_side, sensor_side


def _close(infos):
    for info in infos:
        for s in (info.sock_meta, info.sock_feature, info.sock_video):
            s.close()


def test_broadcast_skips_sender():
    servers, sensors = _link_pairs(3)
    try:
        broadcaster = FeatureBroadcaster(servers, 4)
        broadcaster.start()
        broadcaster.broadcast(1, b"abcd")
        broadcaster.stop()
        for info in servers:
            info.sock_feature.shutdown(socket.SHUT_WR)
        assert recv_all(sensors[0].sock_feature, 4) == b"abcd"
        assert recv_all(sensors[2].sock_feature, 4) == b"abcd"
        assert recv_all(sensors[1].sock_feature, 4) == b""
    finally:
        _close(servers)
        _close(sensors)


def test_broadcast_rejects_wrong_size():
    broadcaster = FeatureBroadcaster([], 4)
    with pytest.raises(ValueError):
        broadcaster.broadcast(0, b"abc")


def test_stop_without_start():
    with pytest.raises(RuntimeError):
        FeatureBroadcaster([], 4).stop()


def test_stop_reports_send_failure():
    servers, sensors = _link_pairs(2)
    try:
        servers[1].sock_feature.close()
        broadcaster = FeatureBroadcaster(servers, 2)
        broadcaster.start()
        broadcaster.broadcast(0, b"xy")
        with pytest.raises(OSError):
            broadcaster.stop()
    finally:
        _close(servers)
        _close(sensors)


def test_sensor_link_session(tmp_path):
    servers, sensors = _link_pairs(2)
    try:
        broadcaster = FeatureBroadcaster(servers, 4)
        broadcaster.start()
        link = SensorLink(servers[0], 0, broadcaster, str(tmp_path), 4, b"S", b"E")
        link.start()
        sensor = sensors[0]
        assert recv_all(sensor.sock_meta, 1) == b"S"

        sensor.sock_meta.sendall(struct.pack("=3I", 1, 2, 3))
        sensor.sock_video.sendall(b"abc")
        sensor.sock_feature.sendall(b"wxyz")
        for s in (sensor.sock_meta, sensor.sock_video, sensor.sock_feature):
            s.shutdown(socket.SHUT_WR)

        link.stop()
        assert recv_all(sensor.sock_meta, 1) == b"E"
        broadcaster.stop()

        assert recv_all(sensors[1].sock_feature, 4) == b"wxyz"
        assert (tmp_path / "info-0.txt").read_text() == "1 2 3\n"
        assert (tmp_path / "video-0.264").read_bytes() == b"abc"
    finally:
        _close(servers)
        _close(sensors)


def test_sensor_link_accepts_int_messages(tmp_path):
    servers, sensors = _link_pairs(1)
    try:
        broadcaster = FeatureBroadcaster(servers, 4)
        link = SensorLink(servers[0], 0, broadcaster, str(tmp_path), 4, 7, "x")
        assert link.start_message == bytes([7])
        assert link.stop_message == b"x"
    finally:
        _close(servers)
        _close(sensors)