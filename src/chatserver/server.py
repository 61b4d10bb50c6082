"""
=============================================================================
CHAT SERVER
=============================================================================

Ties the pieces together: accept connections, give each one a thread, and
answer exactly one request per connection.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         ChatServer                                  │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    SocketServer ──accept──► AdmissionGate ──► one thread per conn   │
    │                                                     │                │
    │                                                     ▼                │
    │    Connection.read_request()                                         │
    │        │                                                             │
    │        ▼                                                             │
    │    classify_request()  ──►  ChatHandler.handle()  ──►  HTTPResponse  │
    │                                                             │        │
    │                                                             ▼        │
    │    Connection.send_response(response.to_bytes())                     │
    │        │                                                             │
    │        ├──► ChatHistory.append()   (successful chat exchanges only)  │
    │        └──► access log                                               │
    │                                                                      │
    │    Connection.close()                                                │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
FAILURE ISOLATION
=============================================================================

Each connection thread catches everything that goes wrong inside it:

    - silent client        TimeoutError from read → close, no response
    - client resets        send fails → close
    - handler raises       500 response, logged with traceback
    - anything else        logged, connection closed

None of these reach the accept loop or any other connection. The only
fatal error is failing to bind at startup.

=============================================================================
"""

import logging
import threading
import time
from typing import Optional

from . import access_log
from .config import ServerConfig, parse_bind_address
from .core import AdmissionGate, Connection, ConnectionState, SocketServer
from .handlers import ChatHandler, ChatOutcome
from .history import ChatHistory
from .http import HTTPStatus, classify_request, internal_error


logger = logging.getLogger(__name__)


class ChatServer:
    """
    Concurrent one-shot chat server.

    =========================================================================
    USAGE
    =========================================================================

        server = ChatServer(ServerConfig(max_connections=64))
        server.run("0.0.0.0:8080")      # Blocks until Ctrl+C / SIGTERM

        # Or from another thread:
        threading.Thread(target=server.run, daemon=True).start()
        server.wait_until_ready(5.0)
        host, port = server.address
        ...
        server.shutdown()

    =========================================================================
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        handler: Optional[ChatHandler] = None,
        history: Optional[ChatHistory] = None,
    ):
        """
        Args:
            config: Server configuration. Defaults are used if omitted.
            handler: Request handler. Defaults to the Rusty echo bot.
            history: Exchange log. A fresh one sized by config if omitted.
        """
        self.config = config or ServerConfig()
        self.config.validate()  # Fail fast on bad config

        self.handler = handler or ChatHandler()
        self.history = history if history is not None else ChatHistory(self.config.history_limit)

        self._socket_server = SocketServer(self.config)
        self._gate = AdmissionGate(self.config.max_connections)

        # Live connection threads, for graceful shutdown
        self._threads: set[threading.Thread] = set()
        self._threads_lock = threading.Lock()

        self._running = False

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @property
    def address(self) -> tuple:
        """(host, port) the server is listening on."""
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def active_connections(self) -> int:
        with self._threads_lock:
            return len(self._threads)

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening. False on timeout."""
        return self._socket_server.ready.wait(timeout)

    def run(self, bind_address: Optional[str] = None, banner: bool = False):
        """
        Bind and serve until shut down.

        Args:
            bind_address: ``host:port`` to listen on. Overrides the config.
            banner: Print a startup line to stdout once listening.

        Raises:
            ValueError: If ``bind_address`` can't be parsed.
            OSError: If the address can't be bound.
        """
        if bind_address:
            self.config.host, self.config.port = parse_bind_address(bind_address)

        self._setup_logging()

        # Bind first so a bad address fails before anything else starts
        self._socket_server.bind()
        self._running = True

        if banner:
            self._print_startup_banner()

        try:
            self._socket_server.start(self._handle_connection, self._gate)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self):
        """Ask the server to stop. Returns immediately; run() does the cleanup."""
        self._socket_server.shutdown()

    def _print_startup_banner(self):
        host, port = self.address
        limit = self._gate.limit if self._gate.bounded else "unbounded"
        print(f"Rusty chatbot listening on: {host}:{port} (max connections: {limit})", flush=True)

    def _setup_logging(self):
        """Configure logging based on config."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("chatserver").setLevel(level)

    def _shutdown(self):
        """
        Graceful shutdown.

        1. Accept loop has already stopped (socket closed)
        2. Wait for in-flight connections, up to shutdown_timeout
        3. Log a summary of the session
        """
        logger.info("Shutting down server...")
        self._running = False

        deadline = time.monotonic() + self.config.shutdown_timeout
        with self._threads_lock:
            threads = list(self._threads)
        for thread in threads:
            thread.join(timeout=max(deadline - time.monotonic(), 0))

        still_running = self.active_connections
        if still_running:
            logger.warning(f"{still_running} connection(s) still open at shutdown")

        logger.info(
            f"Server stopped ({self.history.total} chat exchanges, "
            f"{len(self.history)} retained in history)"
        )

    # =========================================================================
    # PER-CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """
        Start a thread for ``conn`` (called by the accept loop).

        The thread owns the connection and the admission slot taken for it.
        """
        thread = threading.Thread(
            target=self._process_connection,
            args=(conn,),
            name=f"conn-{conn.id}",
            daemon=True,
        )
        with self._threads_lock:
            self._threads.add(thread)
        try:
            thread.start()
        except RuntimeError:
            with self._threads_lock:
                self._threads.discard(thread)
            raise

    def _process_connection(self, conn: Connection):
        """Thread body: serve one request, always close, always release."""
        try:
            with conn:
                self.serve_connection(conn)
        except Exception as e:
            logger.exception(f"[{conn.id}] Connection error: {e}")
        finally:
            with self._threads_lock:
                self._threads.discard(threading.current_thread())
            self._gate.release()

    def serve_connection(self, conn: Connection) -> Optional[HTTPStatus]:
        """
        Read one request from ``conn`` and answer it.

        Does not close the connection.

        Returns:
            The status sent, or None if nothing was sent.
        """
        try:
            raw_request = conn.read_request()
        except TimeoutError:
            logger.debug(f"[{conn.id}] No request before deadline, closing")
            return None

        if raw_request is None:
            logger.debug(f"[{conn.id}] Client closed without sending a request")
            return None

        conn.state = ConnectionState.PROCESSING
        request = classify_request(raw_request, conn.address)

        try:
            outcome = self.handler.handle(request)
        except Exception as e:
            logger.exception(f"[{conn.id}] Handler error: {e}")
            outcome = ChatOutcome(internal_error())

        response = outcome.response
        if not conn.send_response(response.to_bytes(self.config.server_name)):
            return None

        if outcome.is_exchange:
            self.history.append(outcome.incoming, outcome.reply, client=conn.client_ip)

        access_log.log_request(
            access_log.RequestLog(
                connection_id=conn.id,
                method=request.method,
                path=request.path,
                client_ip=conn.client_ip,
                status_code=int(response.status),
                content_length=len(response.body),
                duration_ms=conn.age * 1000,
                truncated=conn.truncated,
            ),
            self.config.log_format,
        )
        return response.status


def run(bind_address: str, config: Optional[ServerConfig] = None, banner: bool = True) -> None:
    """
    Serve the chat protocol on ``bind_address`` until interrupted.

    Raises:
        ValueError: Unparseable address or invalid config.
        OSError: The address could not be bound.
    """
    ChatServer(config).run(bind_address, banner=banner)
