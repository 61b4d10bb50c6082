"""
=============================================================================
LOW-LEVEL TCP SOCKET SERVER
=============================================================================

Owns the listening socket: bind, listen, accept, and hand every accepted
client to a callback as a Connection.

SOCKET LIFECYCLE (Server Side):
────────────────────────────────

    1. socket()    Create the listening socket
    2. bind()      Reserve host:port             ◄── failure here is fatal
    3. listen()    Kernel starts queueing clients (backlog)
    4. accept()    Take one client off the queue  ◄── loops forever
    5. close()     On shutdown

    The listening socket only ever hands out new sockets; it never carries
    chat traffic itself. Each accepted socket is wrapped in a Connection
    and passed to the callback, which gives it a thread of its own:

        listener ──accept()──► Connection ──callback──► "conn-1a2b3c4d"
                 ──accept()──► Connection ──callback──► "conn-5e6f7a8b"
                      ...

=============================================================================
ADMISSION
=============================================================================

If an AdmissionGate is supplied, the loop takes a slot BEFORE calling
accept(). While every slot is busy, new clients stay in the kernel's accept
queue instead of getting a thread. The callback becomes responsible for
releasing the slot when the connection is finished.

=============================================================================
SIGNAL HANDLING FOR GRACEFUL SHUTDOWN
=============================================================================

SIGINT (Ctrl+C) and SIGTERM (docker stop, systemd) stop the accept loop
instead of killing the process mid-response. Python only lets the main
thread install signal handlers, so when the server runs in a background
thread (tests, embedding) the handlers are skipped and shutdown() must be
called directly.

=============================================================================
"""

import socket
import signal
import logging
import threading
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from .admission import AdmissionGate
from .connection import Connection


logger = logging.getLogger(__name__)

# How often the accept loop wakes up to check for shutdown
_POLL_INTERVAL = 1.0

_SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class SocketServer:
    """
    Low-level TCP socket server.

    Usage:
        def handle_connection(conn: Connection):
            ...

        server = SocketServer(config)
        server.start(handle_connection)  # Blocks until shutdown
    """

    def __init__(self, config: ServerConfig):
        """
        Args:
            config: Server configuration (host, port, backlog, buffer sizes,
                    deadlines).

        The socket is not created until start().
        """
        self.config = config

        self._socket: Optional[socket.socket] = None
        self._bound_address: Optional[Tuple[str, int]] = None
        self._running = False

        # Set once the socket is listening; tests wait on it
        self.ready = threading.Event()

        self._original_handlers: dict = {}

    @property
    def address(self) -> Tuple[str, int]:
        """
        The (host, port) actually bound.

        Differs from the configured port when port 0 was requested.
        """
        if self._bound_address is not None:
            return self._bound_address
        return (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        """Create and configure the listening socket."""
        family = socket.AF_INET6 if ":" in self.config.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)

        # Rebind immediately after a restart instead of waiting out TIME_WAIT
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        # Responses are written in one piece; don't let Nagle hold them back
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        # accept() wakes up periodically so shutdown() is noticed
        sock.settimeout(_POLL_INTERVAL)

        return sock

    def bind(self) -> None:
        """
        Create the socket, bind it and start listening.

        Raises:
            OSError: Address in use, permission denied, unknown host...
        """
        self._socket = self._create_socket()

        try:
            self._socket.bind((self.config.host, self.config.port))
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.bind_address}: {e}")
            self._socket.close()
            self._socket = None
            raise

        self._socket.listen(self.config.backlog)
        self._bound_address = self._socket.getsockname()[:2]

    def _setup_signals(self):
        """Install SIGTERM/SIGINT handlers (main thread only)."""
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not in main thread, skipping signal handlers")
            return

        def on_signal(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, stopping accept loop")
            self.shutdown()

        for sig in _SHUTDOWN_SIGNALS:
            self._original_handlers[sig] = signal.signal(sig, on_signal)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def start(
        self,
        connection_handler: Callable[[Connection], None],
        gate: Optional[AdmissionGate] = None,
    ):
        """
        Bind (unless already bound) and run the accept loop.

        BLOCKS until shutdown() is called.

        Args:
            connection_handler: Receives each accepted Connection. Must not
                                block; it should start a thread and return.
            gate: Optional admission gate. When given, the handler owns one
                  slot per connection and must release it.

        Raises:
            OSError: If binding fails.
        """
        if self._socket is None:
            self.bind()

        self._running = True
        self._setup_signals()

        host, port = self.address
        logger.info(f"Server listening on {host}:{port}")
        self.ready.set()

        try:
            self._accept_loop(connection_handler, gate)
        finally:
            self._cleanup()

    def _accept_loop(
        self,
        connection_handler: Callable[[Connection], None],
        gate: Optional[AdmissionGate],
    ):
        """
        Main loop: wait for a slot, accept, hand off.

            while running:
                gate.acquire()          (or re-check running after 1s)
                accept()                (or release the slot after 1s)
                connection_handler(conn)
        """
        while self._running:
            if gate is not None and not gate.acquire(timeout=_POLL_INTERVAL):
                continue  # Gate full; check running and wait again

            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                if gate is not None:
                    gate.release()
                continue
            except OSError as e:
                if gate is not None:
                    gate.release()
                # Usually the socket was closed by shutdown()
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address[:2],
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                read_idle_timeout=self.config.read_idle_timeout,
                max_request_size=self.config.max_request_size,
            )

            try:
                connection_handler(conn)
            except Exception as e:
                # Could not hand off (e.g. thread creation failed)
                logger.exception(f"[{conn.id}] Failed to dispatch connection: {e}")
                if gate is not None:
                    gate.release()
                conn.close()

    def shutdown(self):
        """
        Stop the accept loop.

        Callable from a signal handler or any thread; idempotent.
        """
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False

    def _cleanup(self):
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self.ready.clear()
        logger.info("Socket server stopped")
