"""
=============================================================================
ACCESS LOGGING
=============================================================================

One log line per connection that produced a response.

TEXT FORMAT (human-readable):
    127.0.0.1 - - [2026-01-15T12:30:45+00:00] "POST /api/chat" 200 43 1.27ms

JSON FORMAT (for log aggregators):
    {"connection_id": "a1b2c3d4", "method": "POST", "path": "/api/chat",
     "client_ip": "127.0.0.1", "status_code": 200, "content_length": 43,
     "duration_ms": 1.27, "truncated": false, "timestamp": "..."}

The entries go to the "chatserver.access" logger, so they can be routed
separately from the server's own diagnostics:

    logging.getLogger("chatserver.access").addHandler(file_handler)

=============================================================================
"""

import json
import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timezone


logger = logging.getLogger("chatserver.access")


@dataclass
class RequestLog:
    """
    Structured access log entry.

    Attributes:
        connection_id: Connection.id, to correlate with debug lines.
        method: Request method token ("" if the request was empty).
        path: Request path token.
        client_ip: Peer address.
        status_code: Response status.
        content_length: Response body size in bytes.
        duration_ms: Time from accept to response written.
        truncated: Request was cut off at max_request_size.
        timestamp: ISO-8601 UTC time the entry was made.
    """

    connection_id: str
    method: str
    path: str
    client_ip: str
    status_code: int
    content_length: int
    duration_ms: float
    truncated: bool = False
    timestamp: str = ""

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now(timezone.utc).isoformat(timespec="seconds")

    def to_dict(self) -> dict:
        data = asdict(self)
        data["duration_ms"] = round(self.duration_ms, 2)
        return data

    def to_text(self) -> str:
        """Apache-style line."""
        line = (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )
        if self.truncated:
            line += " truncated"
        return line

    def format(self, log_format: str = "text") -> str:
        if log_format == "json":
            return json.dumps(self.to_dict())
        return self.to_text()


def log_request(entry: RequestLog, log_format: str = "text") -> None:
    """Emit ``entry`` on the access logger at INFO."""
    if logger.isEnabledFor(logging.INFO):
        logger.info(entry.format(log_format))
