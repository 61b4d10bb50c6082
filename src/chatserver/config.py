"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for the chat server.

The only thing a caller MUST supply is where to listen. Everything else has
a default that suits a development box, and can be overridden from the
environment or the command line.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m chatserver 0.0.0.0:8080                          │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── CHAT_PORT=3000 python -m chatserver                        │
    │                                                                      │
    │   3. Defaults in ServerConfig                                       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
BIND ADDRESSES
=============================================================================

A bind address is written the way you'd type it into a browser:

    127.0.0.1:8080      IPv4 host and port
    0.0.0.0:80          All IPv4 interfaces
    [::1]:8080          IPv6 hosts go in brackets
    localhost:8080      Host names are resolved by bind()

Port 0 asks the OS for any free port (handy in tests).

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional, Tuple


def parse_bind_address(address: str) -> Tuple[str, int]:
    """
    Split a ``host:port`` string into its parts.

    Args:
        address: Address such as ``"0.0.0.0:8080"`` or ``"[::1]:8080"``.

    Returns:
        ``(host, port)`` tuple.

    Raises:
        ValueError: If the address has no port or the port isn't a number
                    in range.
    """
    address = address.strip()

    if address.startswith("["):
        # [IPv6]:port
        host, sep, rest = address[1:].partition("]")
        if not sep or not rest.startswith(":"):
            raise ValueError(f"Invalid bind address: {address!r}")
        port_text = rest[1:]
    else:
        host, sep, port_text = address.rpartition(":")
        if not sep:
            raise ValueError(f"Invalid bind address: {address!r} (expected host:port)")
        if ":" in host:
            raise ValueError(f"Invalid bind address: {address!r} (wrap IPv6 hosts in [])")

    if not host:
        raise ValueError(f"Invalid bind address: {address!r} (missing host)")

    try:
        port = int(port_text)
    except ValueError:
        raise ValueError(f"Invalid port in bind address: {address!r}") from None

    if not 0 <= port < 65536:
        raise ValueError(f"Invalid port: {port}. Must be 0-65535.")

    return host, port


@dataclass
class ServerConfig:
    """
    Configuration for the chat server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK SETTINGS
    - host, port, backlog, buffer_size, max_request_size

    DEADLINES
    - timeout, read_idle_timeout, shutdown_timeout

    CONCURRENCY
    - max_connections

    HISTORY
    - history_limit

    LOGGING
    - log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """
    The IP address to bind to.
    - "127.0.0.1" - Localhost only (development)
    - "0.0.0.0" - All network interfaces (containers)
    """

    port: int = 8080
    """The port number to listen on. 0 lets the OS pick one."""

    backlog: int = 128
    """
    Maximum number of queued connections.
    Connections wait here while the admission gate is full.
    """

    buffer_size: int = 1024
    """Bytes requested from the socket per recv() call."""

    max_request_size: int = 64 * 1024
    """
    Upper bound on buffered request bytes.
    Anything past this is never read; the request is handled truncated.
    """

    # ─────────────────────────────────────────────────────────────────────
    # DEADLINES
    # ─────────────────────────────────────────────────────────────────────

    timeout: Optional[float] = 30.0
    """
    Per-connection deadline in seconds, covering the read and the write.
    None = wait forever (a silent client ties up its thread).
    """

    read_idle_timeout: float = 1.0
    """
    Once some bytes have arrived, how long to wait for more before
    treating what we have as the whole request.
    """

    shutdown_timeout: float = 10.0
    """How long shutdown waits for in-flight connections."""

    # ─────────────────────────────────────────────────────────────────────
    # CONCURRENCY
    # ─────────────────────────────────────────────────────────────────────

    max_connections: Optional[int] = 256
    """
    Ceiling on connections handled at the same time.
    None (or 0) = unbounded, one thread per connection with no limit.
    """

    # ─────────────────────────────────────────────────────────────────────
    # HISTORY
    # ─────────────────────────────────────────────────────────────────────

    history_limit: Optional[int] = 1000
    """Most recent exchanges kept in memory. None = keep everything, 0 = none."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    log_format: str = "text"
    """Access log format: 'text' or 'json'."""

    server_name: str = "RustyChat/1.0"
    """Value of the Server response header."""

    @property
    def bind_address(self) -> str:
        """The configured address as a ``host:port`` string."""
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"

    @classmethod
    def from_bind_address(cls, address: str, **overrides) -> "ServerConfig":
        """
        Create configuration listening on ``address``.

        Example:
            config = ServerConfig.from_bind_address("0.0.0.0:80", timeout=10)
        """
        host, port = parse_bind_address(address)
        return cls(host=host, port=port, **overrides)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        CHAT_HOST              Server host (default: 127.0.0.1)
        CHAT_PORT              Server port (default: 8080)
        CHAT_BUFFER_SIZE       recv() chunk size (default: 1024)
        CHAT_MAX_REQUEST_SIZE  Request cap in bytes (default: 65536)
        CHAT_TIMEOUT           Connection deadline in seconds (default: 30)
        CHAT_MAX_CONNECTIONS   Concurrency ceiling, 0 = unbounded (default: 256)
        CHAT_HISTORY_LIMIT     Exchanges kept in memory (default: 1000)
        CHAT_LOG_LEVEL         Logging level (default: INFO)
        CHAT_LOG_FORMAT        Access log format (default: text)

        =====================================================================
        """
        return cls(
            host=os.getenv("CHAT_HOST", "127.0.0.1"),
            port=int(os.getenv("CHAT_PORT", "8080")),
            buffer_size=int(os.getenv("CHAT_BUFFER_SIZE", "1024")),
            max_request_size=int(os.getenv("CHAT_MAX_REQUEST_SIZE", str(64 * 1024))),
            timeout=float(os.getenv("CHAT_TIMEOUT", "30")),
            max_connections=int(os.getenv("CHAT_MAX_CONNECTIONS", "256")) or None,
            history_limit=int(os.getenv("CHAT_HISTORY_LIMIT", "1000")),
            log_level=os.getenv("CHAT_LOG_LEVEL", "INFO"),
            log_format=os.getenv("CHAT_LOG_FORMAT", "text"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Called once at startup so a bad value stops the process before
        the socket is bound.

        Raises:
            ValueError: On the first invalid setting.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.buffer_size < 1:
            raise ValueError("buffer_size must be >= 1")

        if self.max_request_size < self.buffer_size:
            raise ValueError("max_request_size must be >= buffer_size")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.read_idle_timeout <= 0:
            raise ValueError("read_idle_timeout must be > 0")

        if self.max_connections is not None and self.max_connections < 0:
            raise ValueError("max_connections must be >= 0")

        if self.history_limit is not None and self.history_limit < 0:
            raise ValueError("history_limit must be >= 0")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', got {self.log_format!r}")
