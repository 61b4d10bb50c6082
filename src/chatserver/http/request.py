"""
=============================================================================
REQUEST CLASSIFICATION
=============================================================================

The chat server does not need a general HTTP parser. It recognizes exactly
two request lines and treats everything else the same way:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      CLASSIFICATION TABLE                           │
    ├──────────────────────────────┬──────────────────────────────────────┤
    │  Text starts with            │  Kind                                │
    ├──────────────────────────────┼──────────────────────────────────────┤
    │  "POST /api/chat"            │  RequestKind.POST    → chat reply    │
    │  "OPTIONS /api/chat"         │  RequestKind.OPTIONS → preflight     │
    │  anything else               │  RequestKind.OTHER   → 405           │
    └──────────────────────────────┴──────────────────────────────────────┘

Only the prefix of the first line is inspected. The HTTP version token and
every header are ignored; headers matter only because the blank line after
them marks where the body begins.

=============================================================================
FINDING THE BODY
=============================================================================

    POST /api/chat HTTP/1.1\r\n
    Host: localhost\r\n
    Content-Type: application/json\r\n
    \r\n                                  ◄── first blank line
    {"user": "Alice", "message": "hi"}    ◄── body = everything after it

Hand-written clients sometimes use bare LF line endings, so "\n\n" is
accepted when no "\r\n\r\n" is present. If there is no blank line at all,
the whole text is the candidate body (it will almost always fail to decode
and end up as a 400).

=============================================================================
LOSSY DECODING
=============================================================================

The raw bytes are decoded as UTF-8 with errors="replace". Invalid byte
sequences become U+FFFD instead of raising, so classification can never
fail; a mangled body simply fails JSON decoding later.

=============================================================================
"""

from dataclasses import dataclass
from enum import Enum


CHAT_PATH = "/api/chat"

_POST_PREFIX = f"POST {CHAT_PATH}"
_OPTIONS_PREFIX = f"OPTIONS {CHAT_PATH}"

# Tried in order; the first one found wins
_BODY_SEPARATORS = ("\r\n\r\n", "\n\n")


class RequestKind(Enum):
    """The three ways a request can be handled."""
    POST = "POST"
    OPTIONS = "OPTIONS"
    OTHER = "OTHER"


@dataclass(frozen=True)
class IncomingRequest:
    """
    A classified request.

    Lives only for the duration of one connection.

    Attributes:
        kind: Which branch handles the request.
        method: First token of the request line ("" for an empty request).
        path: Second token of the request line ("" when missing).
        raw_body: Text after the header/body separator.
        client_address: (ip, port) of the peer, for logging.
    """

    kind: RequestKind
    method: str = ""
    path: str = ""
    raw_body: str = ""
    client_address: tuple[str, int] = ("", 0)


def extract_body(text: str) -> str:
    """
    Return everything after the first blank line of ``text``.

    Falls back to the whole text when there is no blank line.

        >>> extract_body("POST /x HTTP/1.1\\r\\nA: b\\r\\n\\r\\nhello")
        'hello'
        >>> extract_body("no separator")
        'no separator'
    """
    for separator in _BODY_SEPARATORS:
        index = text.find(separator)
        if index != -1:
            return text[index + len(separator):]
    return text


def classify_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
) -> IncomingRequest:
    """
    Classify raw request bytes.

    Never raises: undecodable bytes are replaced and unknown requests are
    classified as RequestKind.OTHER.

    Args:
        data: Request bytes as read from the socket.
        client_address: Peer address to carry along for logging.

    Returns:
        The classified IncomingRequest.
    """
    text = data.decode("utf-8", errors="replace")

    # Request line tokens, for logging only
    first_line = text.split("\n", 1)[0].rstrip("\r")
    tokens = first_line.split()
    method = tokens[0] if tokens else ""
    path = tokens[1] if len(tokens) > 1 else ""

    if text.startswith(_POST_PREFIX):
        return IncomingRequest(
            kind=RequestKind.POST,
            method=method,
            path=path,
            raw_body=extract_body(text),
            client_address=client_address,
        )

    if text.startswith(_OPTIONS_PREFIX):
        kind = RequestKind.OPTIONS
    else:
        kind = RequestKind.OTHER

    return IncomingRequest(
        kind=kind,
        method=method,
        path=path,
        client_address=client_address,
    )
