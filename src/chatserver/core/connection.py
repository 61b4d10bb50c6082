"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket: read one request, write one response,
close. There is no keep-alive; every connection carries exactly one
exchange.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL!
=============================================================================

    Client sends:
        send("POST /api/chat HTTP/1.1\r\n...\r\n\r\n{\"user\": ...}")

    Server might receive:
        recv() → "POST /api/chat HTTP/1.1\r\nHost: ..."   (headers)
        recv() → "{\"user\": \"Alice\", ..."               (body)

A single recv() only returns what has arrived so far. Reading once into a
fixed buffer silently cuts off any request that arrives in more than one
piece, so read_request() keeps reading until the request is complete.

=============================================================================
WHEN IS A REQUEST COMPLETE?
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                 read_request() stops reading when...                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. The blank line after the headers has arrived, and               │
    │      Content-Length bytes of body (if the header was sent)           │
    │                                                                      │
    │   2. The client shut down its side (recv() returned b"")             │
    │                                                                      │
    │   3. max_request_size bytes are buffered                             │
    │      └── the rest is never read: the request is TRUNCATED            │
    │                                                                      │
    │   4. Some bytes arrived, then nothing for read_idle_timeout          │
    │      └── hand-typed clients that never send a blank line still       │
    │          get an answer                                               │
    │                                                                      │
    │   5. The connection deadline passes                                  │
    │      └── with bytes: handle what we have                             │
    │      └── with no bytes at all: TimeoutError, nothing is sent         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    NEW ──► READING ──► PROCESSING ──► WRITING ──► CLOSING ──► CLOSED
               │                          │           ▲
               └──────────────────────────┴───────────┘
                     (timeout, reset, nothing to say)

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid


logger = logging.getLogger(__name__)

_HEADER_SEPARATORS = (b"\r\n\r\n", b"\n\n")

# Upper bound on time spent discarding unread client data at close
_DRAIN_SECONDS = 0.5


class ConnectionState(Enum):
    """Connection lifecycle states, for logging and debugging."""
    NEW = "new"                # Just accepted
    READING = "reading"        # Waiting for request bytes
    PROCESSING = "processing"  # Request read, handler running
    WRITING = "writing"        # Sending the response
    CLOSING = "closing"        # Shutdown sequence in progress
    CLOSED = "closed"          # Socket released


@dataclass
class Connection:
    """
    One client connection.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    Connection Responsibilities                       │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │  1. BUFFERED READING     read_request() loops on recv()              │
    │  2. DEADLINE             one clock for the read and the write        │
    │  3. SINGLE WRITE         send_response() hands the whole framed      │
    │                          response to sendall()                       │
    │  4. GRACEFUL CLOSE       FIN, drain, close                           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    Attributes:
        socket: The client socket. Owned exclusively by this object.
        address: Client's (ip, port) tuple.
        id: Short identifier for log lines.
        state: Current ConnectionState.
        created_at: When the connection was accepted (time.time()).
        truncated: True if the request hit max_request_size.
    """

    # Required parameters
    socket: socket.socket
    address: tuple

    # Generated/default parameters
    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    truncated: bool = False

    # Configuration (passed from ServerConfig)
    buffer_size: int = 1024
    timeout: Optional[float] = 30.0
    read_idle_timeout: float = 1.0
    max_request_size: int = 64 * 1024

    _buffer: bytes = field(default=b"", repr=False)
    _deadline: Optional[float] = field(default=None, repr=False)

    def __post_init__(self):
        """Start the deadline clock."""
        self.socket.setblocking(True)
        if self.timeout is not None:
            self._deadline = time.monotonic() + self.timeout

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def age(self) -> float:
        """Seconds since the connection was accepted."""
        return time.time() - self.created_at

    def _remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None without one."""
        if self._deadline is None:
            return None
        return self._deadline - time.monotonic()

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one request from the socket.

        Returns:
            The request bytes (at most max_request_size), or None if the
            client closed the connection without sending anything.

        Raises:
            TimeoutError: If no bytes at all arrived before the deadline.
        """
        self.state = ConnectionState.READING

        while not self._is_complete():
            if len(self._buffer) >= self.max_request_size:
                self._buffer = self._buffer[:self.max_request_size]
                self.truncated = True
                logger.warning(
                    f"[{self.id}] Request exceeds {self.max_request_size} bytes, truncating"
                )
                break

            wait = self._remaining()
            if self._buffer:
                wait = self.read_idle_timeout if wait is None else min(wait, self.read_idle_timeout)

            if wait is not None and wait <= 0:
                if self._buffer:
                    break
                raise TimeoutError("Request read timeout")

            self.socket.settimeout(wait)
            try:
                chunk = self._recv(min(self.buffer_size, self.max_request_size - len(self._buffer)))
            except socket.timeout:
                if self._buffer:
                    # Nothing more is coming; handle what we have
                    logger.debug(f"[{self.id}] Read idle after {len(self._buffer)} bytes")
                    break
                raise TimeoutError("Request read timeout") from None

            if not chunk:
                break  # Client finished sending (or vanished)

            self._buffer += chunk

        data, self._buffer = self._buffer, b""
        return data or None

    def _recv(self, size: int) -> bytes:
        """
        Receive up to ``size`` bytes.

        A reset from the client is reported like an orderly close.
        """
        try:
            return self.socket.recv(size)
        except (ConnectionResetError, BrokenPipeError):
            return b""

    def _is_complete(self) -> bool:
        """Have the headers and the declared body fully arrived?"""
        for separator in _HEADER_SEPARATORS:
            header_end = self._buffer.find(separator)
            if header_end != -1:
                body_start = header_end + len(separator)
                content_length = self._parse_content_length(self._buffer[:header_end])
                return len(self._buffer) - body_start >= content_length
        return False

    @staticmethod
    def _parse_content_length(headers: bytes) -> int:
        """
        Pull Content-Length out of raw header bytes.

        Returns 0 when absent or unparseable: the body is then whatever
        already arrived with the headers.
        """
        header_str = headers.decode("latin-1").lower()
        for line in header_str.splitlines():
            if line.startswith("content-length:"):
                try:
                    return max(int(line.split(":", 1)[1].strip()), 0)
                except ValueError:
                    return 0
        return 0

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send a complete, already-framed response.

        sendall() keeps calling send() until every byte is out, so a
        partial write never leaves a half-sent response behind.

        Returns:
            True if everything was sent, False if the client went away or
            the deadline passed.
        """
        self.state = ConnectionState.WRITING

        remaining = self._remaining()
        if remaining is not None and remaining <= 0:
            logger.warning(f"[{self.id}] Deadline passed before response could be sent")
            return False

        try:
            self.socket.settimeout(remaining)
            self.socket.sendall(data)
            return True
        except OSError as e:
            # ConnectionResetError, BrokenPipeError and timeouts are all OSErrors
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection gracefully.

        1. shutdown(SHUT_WR)  send FIN: "no more data from me"
        2. drain              read and discard what the client still sends,
                              so the kernel doesn't answer it with a RST
                              that could destroy our response in flight
        3. close()            release the file descriptor

        Safe to call more than once.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Already disconnected

        try:
            drain_until = time.monotonic() + _DRAIN_SECONDS
            while True:
                left = drain_until - time.monotonic()
                if left <= 0:
                    break
                self.socket.settimeout(left)
                if not self.socket.recv(1024):
                    break
        except OSError:
            pass  # Timed out or reset; closing anyway

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.age:.3f}s")

    # =========================================================================
    # CONTEXT MANAGER
    # =========================================================================

    def __enter__(self):
        """
        Allow ``with conn:`` so the socket is always closed:

            with conn:
                data = conn.read_request()
                conn.send_response(response)
        """
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False  # Don't suppress exceptions
