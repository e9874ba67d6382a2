"""Small helpers around blocking TCP sockets."""

from __future__ import annotations

import socket


def connect_to(address: str, port: int) -> socket.socket:
    """Open a TCP connection to ``address:port``."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.connect((address, port))
    except OSError:
        sock.close()
        raise
    return sock


def listen_connect(port: int, max_connect: int) -> socket.socket:
    """Listen on ``port`` on every interface, with a reusable address."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind(("", port))
        sock.listen(max_connect)
    except OSError:
        sock.close()
        raise
    return sock


def accept_connect(listener: socket.socket) -> socket.socket:
    """Accept one connection, then close the listening socket."""
    try:
        conn, _ = listener.accept()
    finally:
        listener.close()
    return conn


def send_all(sock: socket.socket, data: bytes) -> int:
    """Send every byte of ``data``; return how many were sent."""
    payload = bytes(data)
    sock.sendall(payload)
    return len(payload)


def recv_all(sock: socket.socket, size: int) -> bytes:
    """Receive exactly ``size`` bytes.

    Returns ``b""`` if the peer closes the connection before ``size`` bytes
    have arrived; the partial data is dropped.
    """
    if size < 0:
        raise ValueError("size must not be negative")
    buffer = bytearray()
    while len(buffer) < size:
        part = sock.recv(size - len(buffer))
        if not part:
            return b""
        buffer += part
    return bytes(buffer)