"""
pytest configuration and fixtures.
"""

import socket
import threading
from typing import Generator
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from chatserver import ChatServer, ServerConfig


def build_request(method: str, path: str, body: bytes = b"", content_length: bool = True) -> bytes:
    """Assemble a raw HTTP/1.1 request."""
    head = (
        f"{method} {path} HTTP/1.1\r\n"
        f"Host: localhost\r\n"
    )
    if body:
        head += "Content-Type: application/json\r\n"
    if content_length:
        head += f"Content-Length: {len(body)}\r\n"
    return head.encode() + b"\r\n" + body


def split_response(data: bytes) -> tuple[int, dict, bytes]:
    """Split raw response bytes into (status, headers, body)."""
    head, _, body = data.partition(b"\r\n\r\n")
    lines = head.decode("latin-1").split("\r\n")
    status = int(lines[0].split()[1])
    headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(":")
        headers[name.strip()] = value.strip()
    return status, headers, body


def exchange(address: tuple, raw: bytes, timeout: float = 5.0) -> bytes:
    """Send ``raw`` on a fresh connection and read until the server closes."""
    with socket.create_connection(address, timeout=timeout) as s:
        s.sendall(raw)
        chunks = []
        while True:
            chunk = s.recv(4096)
            if not chunk:
                break
            chunks.append(chunk)
    return b"".join(chunks)


@pytest.fixture
def sample_chat_request() -> bytes:
    """Sample chat POST as a browser would send it."""
    return build_request("POST", "/api/chat", b'{"user":"Alice","message":"hi"}')


@pytest.fixture
def sample_preflight_request() -> bytes:
    """Sample CORS preflight."""
    return (
        b"OPTIONS /api/chat HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Origin: http://localhost:3000\r\n"
        b"Access-Control-Request-Method: POST\r\n"
        b"Access-Control-Request-Headers: content-type\r\n"
        b"\r\n"
    )


@pytest.fixture
def config() -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        timeout=5.0,
        read_idle_timeout=0.3,
        max_connections=8,
        shutdown_timeout=2.0,
        log_level="WARNING",
    )


class RunningServer:
    """Test server helper that runs in a background thread."""

    def __init__(self, server: ChatServer):
        self.server = server
        self._thread: threading.Thread = None

    @property
    def address(self) -> tuple:
        return self.server.address

    def start(self):
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()
        if not self.server.wait_until_ready(5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)

    def request(self, raw: bytes, timeout: float = 5.0) -> bytes:
        return exchange(self.address, raw, timeout)


@pytest.fixture
def running_server(config: ServerConfig) -> Generator[RunningServer, None, None]:
    """A live server on a free port."""
    srv = RunningServer(ChatServer(config))
    srv.start()

    yield srv

    srv.stop()
