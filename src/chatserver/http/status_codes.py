"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The status codes the chat server can put on the wire.

    ┌────────────────────────────────────────────────────────────────────┐
    │                    STATUS CODES WE EMIT                            │
    ├────────┬───────────────────────────────────────────────────────────┤
    │  200   │ OK - chat reply, or an empty preflight answer             │
    │  400   │ Bad Request - body is not a valid chat payload            │
    │  405   │ Method Not Allowed - any verb/path other than ours        │
    │  500   │ Internal Server Error - the handler itself blew up        │
    └────────┴───────────────────────────────────────────────────────────┘

The chat protocol only defines the first three. 500 exists so that a bug in
a handler still produces a well-framed answer instead of a dropped socket.

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

    Members compare equal to their integer code:

        >>> HTTPStatus.OK == 200
        True
        >>> HTTPStatus.METHOD_NOT_ALLOWED.phrase
        'Method Not Allowed'
    """

    OK = 200                    # Chat reply or preflight
    BAD_REQUEST = 400           # Payload did not decode
    METHOD_NOT_ALLOWED = 405    # Unrecognized verb/path
    INTERNAL_SERVER_ERROR = 500  # Handler crashed

    @property
    def phrase(self) -> str:
        """
        Get the reason phrase for this status code.

            HTTP/1.1 405 Method Not Allowed
                     ─── ──────────────────
                      │          │
                      │          └── Reason phrase
                      └───────────── Status code
        """
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_success(self) -> bool:
        """Check if this is a 2xx status code."""
        return 200 <= self < 300

    @property
    def is_error(self) -> bool:
        """Check if this is an error status code (4xx or 5xx)."""
        return self >= 400


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
}
