"""Synchronous client for beachpatrol.

Connects to the server endpoint, sends one command and returns the single
response line.
"""

from __future__ import annotations

import socket

from beachpatrol.paths import get_endpoint, uses_unix_socket
from beachpatrol.protocol import encode_request


class ServerUnavailableError(Exception):
    """The server endpoint could not be reached."""


def _receive_all(sock: socket.socket, buffer_size: int = 65536) -> bytes:
    """Read from *sock* until the server closes the connection or a newline arrives."""
    data = b""
    while True:
        chunk = sock.recv(buffer_size)
        if not chunk:
            break
        data += chunk
        if b"\n" in data:
            break
    return data


def _send_unix(endpoint: str, payload: bytes, timeout: float | None) -> bytes:
    s = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        s.settimeout(timeout)
        s.connect(endpoint)
        s.sendall(payload)
        # Half-close so the server sees the end of the message
        s.shutdown(socket.SHUT_WR)
        return _receive_all(s)
    finally:
        s.close()


def _send_pipe(endpoint: str, payload: bytes) -> bytes:
    with open(endpoint, "r+b", buffering=0) as pipe:
        pipe.write(payload)
        data = b""
        while b"\n" not in data:
            chunk = pipe.read(65536)
            if not chunk:
                break
            data += chunk
        return data


def send_command(
    name: str,
    args: list[str] | tuple[str, ...] = (),
    endpoint: str | None = None,
    timeout: float | None = None,
) -> str:
    """Send one command and return the server's response line.

    The returned string keeps its trailing newline.  There is no timeout by
    default: a command runs as long as its script does.

    Raises ``ServerUnavailableError`` when the endpoint cannot be reached.
    """
    endpoint = endpoint or get_endpoint()
    payload = encode_request(name, args)
    try:
        if uses_unix_socket():
            data = _send_unix(endpoint, payload, timeout)
        else:
            data = _send_pipe(endpoint, payload)
    except OSError as exc:
        raise ServerUnavailableError(str(exc)) from exc
    return data.decode("utf-8", errors="replace")
