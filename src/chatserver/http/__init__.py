"""
=============================================================================
HTTP SUBSET
=============================================================================

Just enough HTTP/1.1 for the chat protocol:

- request.py       Classify raw bytes by request-line prefix
- response.py      Frame responses with exact Content-Length and CORS headers
- status_codes.py  The handful of status codes we emit

This is deliberately NOT a general HTTP implementation. There is no header
parsing beyond locating the body, no keep-alive and no chunked encoding.

=============================================================================
"""

from .request import CHAT_PATH, IncomingRequest, RequestKind, classify_request, extract_body
from .response import (
    CORS_HEADERS,
    HTTPResponse,
    json_response,
    text_response,
    preflight,
    invalid_payload,
    method_not_allowed,
    internal_error,
)
from .status_codes import HTTPStatus

__all__ = [
    # Requests
    "CHAT_PATH",
    "IncomingRequest",
    "RequestKind",
    "classify_request",
    "extract_body",

    # Responses
    "CORS_HEADERS",
    "HTTPResponse",
    "json_response",
    "text_response",
    "preflight",
    "invalid_payload",
    "method_not_allowed",
    "internal_error",

    # Status codes
    "HTTPStatus",
]
