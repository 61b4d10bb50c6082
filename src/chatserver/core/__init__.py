"""
=============================================================================
CORE NETWORKING
=============================================================================

The pieces that deal with sockets and threads, independent of what the
bytes mean:

- SocketServer   listening socket, accept loop, signals
- Connection     one client socket: read a request, write a response, close
- AdmissionGate  ceiling on connections handled at once

=============================================================================
"""

from .admission import AdmissionGate
from .connection import Connection, ConnectionState
from .socket_server import SocketServer

__all__ = [
    "AdmissionGate",    # Concurrency ceiling
    "Connection",       # Wrapper for client socket - handles I/O
    "ConnectionState",  # Enum for connection lifecycle states
    "SocketServer",     # Main TCP server - accepts connections
]
