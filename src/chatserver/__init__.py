"""
=============================================================================
RUSTY CHAT SERVER
=============================================================================

A small concurrent TCP server speaking a tiny subset of HTTP/1.1, built
directly on sockets and threads.

    POST    /api/chat   {"user": "Alice", "message": "hi"}
                        → 200 {"user":"Rusty","message":"You said: hi"}
    OPTIONS /api/chat   → 200, empty body (CORS preflight)
    anything else       → 405

=============================================================================
QUICK START
=============================================================================

    # From the command line
    python -m chatserver 127.0.0.1:8080

    # From code
    from chatserver import run
    run("127.0.0.1:8080")

    # Talk to it
    curl -X POST localhost:8080/api/chat \\
         -H 'Content-Type: application/json' \\
         -d '{"user": "Alice", "message": "hi"}'

=============================================================================
PACKAGE LAYOUT
=============================================================================

    chatserver/
    ├── config.py          ServerConfig, bind address parsing
    ├── server.py          ChatServer orchestrator, run()
    ├── history.py         Append-only exchange log
    ├── access_log.py      Per-connection access log lines
    ├── core/              Sockets, connections, admission gate
    ├── http/              Request classification, response framing
    └── handlers/          Chat payload, reply transform, dispatch

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig, parse_bind_address
from .handlers import ChatHandler, ChatMessage, reply_to
from .history import ChatHistory
from .server import ChatServer, run

__all__ = [
    "ChatHandler",
    "ChatHistory",
    "ChatMessage",
    "ChatServer",
    "ServerConfig",
    "parse_bind_address",
    "reply_to",
    "run",
    "__version__",
]
