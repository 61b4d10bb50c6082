"""
=============================================================================
HTTP RESPONSE FRAMING
=============================================================================

Every answer the chat server sends is framed completely in memory before a
single byte goes to the socket.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP RESPONSE STRUCTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    HTTP/1.1 200 OK\r\n                         ◄── status line       │
    │    Content-Type: application/json\r\n          ◄── when there's a body│
    │    Access-Control-Allow-Origin: *\r\n          ┐                     │
    │    Access-Control-Allow-Methods: POST, OPTIONS\r\n  ├ CORS, always   │
    │    Access-Control-Allow-Headers: Content-Type\r\n   ┘                │
    │    Content-Length: 43\r\n                      ◄── len(body), always │
    │    Date: ...\r\n                                                     │
    │    Server: RustyChat/1.0\r\n                                         │
    │    Connection: close\r\n                                             │
    │    \r\n                                        ◄── separator          │
    │    {"user": "Rusty", "message": "You said: hi"}                      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
CONTENT-LENGTH IS NOT OPTIONAL
=============================================================================

The connection is closed after one response, but the client still needs
Content-Length to know it has the whole body. It is ALWAYS computed from the
bytes being sent, never taken from a caller or hard-coded: a hand-typed
length that disagrees with the body makes clients hang or truncate.

    len("Invalid JSON payload")  == 20
    len("Method not allowed for this route") == 33

=============================================================================
CORS
=============================================================================

The chat UI is served from a different origin than the API, so the browser
sends a preflight OPTIONS before each POST. The three Access-Control headers
go on every response, including errors, otherwise the browser hides the
error body from the page.

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Dict, Union

from .status_codes import HTTPStatus


CORS_HEADERS: Dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

JSON_CONTENT_TYPE = "application/json"
TEXT_CONTENT_TYPE = "text/plain"

INVALID_PAYLOAD_BODY = "Invalid JSON payload"
METHOD_NOT_ALLOWED_BODY = "Method not allowed for this route"
INTERNAL_ERROR_BODY = "Internal server error"


@dataclass
class HTTPResponse:
    """
    An HTTP response waiting to be serialized.

    =========================================================================
    RESPONSE LIFECYCLE
    =========================================================================

        Handler returns          to_bytes()              Connection sends
        HTTPResponse    ─────►   frames it     ─────►    with one sendall()

    =========================================================================

    Attributes:
        status: Status code.
        headers: Ordered headers. Content-Length is managed by to_bytes().
        body: Body bytes, possibly empty.
        version: Protocol version for the status line.
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """E.g. ``"HTTP/1.1 405 Method Not Allowed"``."""
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """Set a header, returning self for chaining."""
        self.headers[name] = value
        return self

    def set_body(self, body: Union[str, bytes]) -> "HTTPResponse":
        """Set the body, encoding strings as UTF-8."""
        if isinstance(body, str):
            self.body = body.encode("utf-8")
        else:
            self.body = body
        return self

    def header_items(self, server_name: str = "RustyChat/1.0") -> list[tuple[str, str]]:
        """
        Headers exactly as they will be written, in order.

        Content-Length is placed after the caller's headers and always
        reflects len(body). Date, Server and Connection follow.
        """
        items = [
            (name, value)
            for name, value in self.headers.items()
            if name.lower() != "content-length"
        ]
        items.append(("Content-Length", str(len(self.body))))

        present = {name.lower() for name, _ in items}
        if "date" not in present:
            items.append(("Date", format_http_date(datetime.now(timezone.utc))))
        if "server" not in present:
            items.append(("Server", server_name))
        if "connection" not in present:
            # One request per connection
            items.append(("Connection", "close"))
        return items

    def to_bytes(self, server_name: str = "RustyChat/1.0") -> bytes:
        """
        Serialize the whole response.

        Returns:
            Status line, headers, blank line and body, ready for sendall().
        """
        lines = [self.status_line]
        lines.extend(f"{name}: {value}" for name, value in self.header_items(server_name))
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"
        return header_bytes + self.body


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP date (RFC 7231 IMF-fixdate).

    Example: ``"Thu, 15 Jan 2026 12:30:45 GMT"``
    """
    return format_datetime(dt.astimezone(timezone.utc), usegmt=True)


# =============================================================================
# CANNED RESPONSES
# =============================================================================
#
# One function per outcome of the chat protocol. Each returns a fresh
# HTTPResponse so callers can never mutate a shared instance.
#
# =============================================================================

def _with_cors(response: HTTPResponse) -> HTTPResponse:
    for name, value in CORS_HEADERS.items():
        response.headers.setdefault(name, value)
    return response


def json_response(body: bytes, status: HTTPStatus = HTTPStatus.OK) -> HTTPResponse:
    """A JSON response carrying already-encoded ``body``."""
    response = HTTPResponse(status=status, headers={"Content-Type": JSON_CONTENT_TYPE})
    return _with_cors(response.set_body(body))


def text_response(status: HTTPStatus, text: str) -> HTTPResponse:
    """A plain-text response."""
    response = HTTPResponse(status=status, headers={"Content-Type": TEXT_CONTENT_TYPE})
    return _with_cors(response.set_body(text))


def preflight() -> HTTPResponse:
    """
    Answer a CORS preflight: 200, CORS headers, empty body.

    No Content-Type, since there is no body to describe.
    """
    return _with_cors(HTTPResponse(status=HTTPStatus.OK))


def invalid_payload() -> HTTPResponse:
    """400 for a body that isn't a chat message."""
    return text_response(HTTPStatus.BAD_REQUEST, INVALID_PAYLOAD_BODY)


def method_not_allowed() -> HTTPResponse:
    """405 for any verb/path other than POST/OPTIONS on the chat path."""
    return text_response(HTTPStatus.METHOD_NOT_ALLOWED, METHOD_NOT_ALLOWED_BODY)


def internal_error() -> HTTPResponse:
    """500 for a handler that raised."""
    return text_response(HTTPStatus.INTERNAL_SERVER_ERROR, INTERNAL_ERROR_BODY)
