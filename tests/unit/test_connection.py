"""
Unit tests for Connection reading, writing and closing.

Uses socket.socketpair() so no network is involved.
"""

import socket
import threading
import time

import pytest

from chatserver.core.connection import Connection, ConnectionState


@pytest.fixture
def pair():
    server_side, client_side = socket.socketpair()
    yield server_side, client_side
    for s in (server_side, client_side):
        try:
            s.close()
        except OSError:
            pass


def make_conn(sock, **kwargs) -> Connection:
    kwargs.setdefault("timeout", 5.0)
    kwargs.setdefault("read_idle_timeout", 0.3)
    return Connection(socket=sock, address=("127.0.0.1", 40000), **kwargs)


def send_later(sock, parts, delay=0.05):
    """Send ``parts`` one at a time from a background thread."""
    def run():
        for part in parts:
            time.sleep(delay)
            sock.sendall(part)
    t = threading.Thread(target=run, daemon=True)
    t.start()
    return t


class TestReadRequest:

    def test_single_send(self, pair):
        server_side, client_side = pair
        raw = b"OPTIONS /api/chat HTTP/1.1\r\nHost: x\r\n\r\n"
        client_side.sendall(raw)

        assert make_conn(server_side).read_request() == raw

    def test_split_across_sends(self, pair):
        """Headers and body arriving separately are joined."""
        server_side, client_side = pair
        body = b'{"user":"Alice","message":"hi"}'
        head = f"POST /api/chat HTTP/1.1\r\nContent-Length: {len(body)}\r\n\r\n".encode()
        send_later(client_side, [head[:10], head[10:], body[:5], body[5:]])

        assert make_conn(server_side).read_request() == head + body

    def test_larger_than_one_buffer(self, pair):
        """A request bigger than buffer_size is read in full."""
        server_side, client_side = pair
        body = b'{"user":"A","message":"' + b"x" * 5000 + b'"}'
        raw = f"POST /api/chat HTTP/1.1\r\nContent-Length: {len(body)}\r\n\r\n".encode() + body
        send_later(client_side, [raw], delay=0)

        conn = make_conn(server_side, buffer_size=1024)

        assert conn.read_request() == raw
        assert not conn.truncated

    def test_bare_lf_headers(self, pair):
        server_side, client_side = pair
        raw = b"POST /api/chat HTTP/1.1\nContent-Length: 2\n\n{}"
        client_side.sendall(raw)

        assert make_conn(server_side).read_request() == raw

    def test_eof_ends_request(self, pair):
        server_side, client_side = pair
        client_side.sendall(b"POST /api/chat {}")
        client_side.shutdown(socket.SHUT_WR)

        assert make_conn(server_side, read_idle_timeout=5.0).read_request() == b"POST /api/chat {}"

    def test_idle_client_without_separator(self, pair):
        """Bytes then silence: what arrived is the request."""
        server_side, client_side = pair
        client_side.sendall(b"GET /anything")

        start = time.monotonic()
        data = make_conn(server_side, read_idle_timeout=0.2).read_request()

        assert data == b"GET /anything"
        assert time.monotonic() - start < 2.0

    def test_truncates_at_max_request_size(self, pair):
        server_side, client_side = pair
        send_later(client_side, [b"A" * 5000], delay=0)

        conn = make_conn(server_side, max_request_size=2048)
        data = conn.read_request()

        assert data == b"A" * 2048
        assert conn.truncated

    def test_closed_without_data(self, pair):
        server_side, client_side = pair
        client_side.close()

        assert make_conn(server_side).read_request() is None

    def test_silent_client_times_out(self, pair):
        server_side, _ = pair
        conn = make_conn(server_side, timeout=0.2)

        with pytest.raises(TimeoutError):
            conn.read_request()

    def test_deadline_with_partial_data_returns_it(self, pair):
        server_side, client_side = pair
        client_side.sendall(b"POST /api/chat HTTP/1.1\r\nContent-Length: 100\r\n\r\n{")

        conn = make_conn(server_side, timeout=0.3, read_idle_timeout=5.0)

        assert conn.read_request().endswith(b"\r\n\r\n{")

    def test_state_changes(self, pair):
        server_side, client_side = pair
        conn = make_conn(server_side)
        assert conn.state is ConnectionState.NEW

        client_side.sendall(b"OPTIONS /api/chat\r\n\r\n")
        conn.read_request()

        assert conn.state is ConnectionState.READING


class TestParseContentLength:

    @pytest.mark.parametrize("headers,expected", [
        (b"POST / HTTP/1.1\r\nContent-Length: 42", 42),
        (b"POST / HTTP/1.1\r\ncontent-length:7", 7),
        (b"POST / HTTP/1.1\nCONTENT-LENGTH: 3", 3),
        (b"POST / HTTP/1.1\r\nHost: x", 0),
        (b"POST / HTTP/1.1\r\nContent-Length: abc", 0),
        (b"POST / HTTP/1.1\r\nContent-Length: -5", 0),
    ])
    def test_values(self, headers, expected):
        assert Connection._parse_content_length(headers) == expected


class TestSendAndClose:

    def test_send_response(self, pair):
        server_side, client_side = pair
        conn = make_conn(server_side)

        assert conn.send_response(b"HTTP/1.1 200 OK\r\nContent-Length: 0\r\n\r\n")
        assert conn.state is ConnectionState.WRITING
        assert client_side.recv(1024).startswith(b"HTTP/1.1 200 OK")

    def test_send_to_closed_peer_fails_quietly(self, pair):
        server_side, client_side = pair
        client_side.close()
        conn = make_conn(server_side)

        # The first write may still be buffered; keep writing until the
        # kernel reports the broken pipe
        results = [conn.send_response(b"x" * 65536) for _ in range(50)]

        assert results[-1] is False

    def test_close_is_idempotent(self, pair):
        server_side, client_side = pair
        conn = make_conn(server_side)

        conn.close()
        conn.close()

        assert conn.state is ConnectionState.CLOSED
        assert client_side.recv(1024) == b""

    def test_context_manager_closes(self, pair):
        server_side, _ = pair

        with make_conn(server_side) as conn:
            pass

        assert conn.state is ConnectionState.CLOSED
