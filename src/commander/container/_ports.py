"""Host port allocation for the published opencode port."""

from __future__ import annotations

import socket


def find_available_port(host: str = "127.0.0.1") -> int:
    """Let the OS pick a free TCP port on *host* and return it.

    The socket is closed before returning, so there is a small window in
    which another process could take the port before the engine binds it.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((host, 0))
        port = sock.getsockname()[1]
    if not port:
        raise RuntimeError("Failed to find an available port")
    return port
