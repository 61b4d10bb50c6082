"""
=============================================================================
CHAT HANDLER
=============================================================================

The application logic of the server, split into three parts:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   ChatMessage          The payload: {"user": str, "message": str}    │
    │       │                decode() / encode() for the wire              │
    │       ▼                                                              │
    │   reply_to()           Pure transform: message in, reply out         │
    │       │                                                              │
    │       ▼                                                              │
    │   ChatHandler          IncomingRequest in, HTTPResponse out          │
    │                        (picks the POST / OPTIONS / 405 branch)       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
THE TRANSFORM
=============================================================================

    {"user": "Alice", "message": "hi"}
                │
                ▼  reply_to()
    {"user": "Rusty", "message": "You said: hi"}

The reply's user is always BOT_NAME no matter who wrote in, and the message
is REPLY_PREFIX followed by the input verbatim. No trimming, escaping or
length limit: any pair of strings is valid input.

=============================================================================
"""

import json
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from ..http.request import IncomingRequest, RequestKind
from ..http.response import (
    HTTPResponse,
    json_response,
    preflight,
    invalid_payload,
    method_not_allowed,
)


logger = logging.getLogger(__name__)

BOT_NAME = "Rusty"
REPLY_PREFIX = "You said: "


class PayloadError(ValueError):
    """Raised when a request body is not a valid chat message."""


class _JSONObject(dict):
    """
    A decoded JSON object that remembers which keys appeared more than once.

    Plain json.loads keeps the last value of a repeated key without saying
    so; decode() needs to know.
    """

    duplicates: frozenset = frozenset()

    @classmethod
    def from_pairs(cls, pairs: list) -> "_JSONObject":
        obj = cls(pairs)
        if len(obj) < len(pairs):
            seen = set()
            repeated = set()
            for key, _ in pairs:
                if key in seen:
                    repeated.add(key)
                seen.add(key)
            obj.duplicates = frozenset(repeated)
        return obj


@dataclass(frozen=True)
class ChatMessage:
    """
    One chat message, as sent by the UI and as returned by the bot.

    Frozen: the transform builds a new message, it never edits one.

    Attributes:
        user: Display name of the author.
        message: Message text.
    """

    user: str
    message: str

    @classmethod
    def decode(cls, text: str) -> "ChatMessage":
        """
        Parse a JSON object with string fields ``user`` and ``message``.

        Extra keys are ignored. Each field may appear only once and must be
        encodable as UTF-8 (a lone ``\ud800`` escape is not).

        Raises:
            PayloadError: Not JSON, not an object, or a field is missing,
                          repeated, or isn't a valid string.
        """
        try:
            data = json.loads(text, object_pairs_hook=_JSONObject.from_pairs)
        except (ValueError, RecursionError) as e:
            # RecursionError: absurdly deep nesting
            raise PayloadError(f"Invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise PayloadError(f"Expected a JSON object, got {type(data).__name__}")

        for name in ("user", "message"):
            if name not in data:
                raise PayloadError(f"Missing field: {name!r}")
            if name in data.duplicates:
                raise PayloadError(f"Duplicate field: {name!r}")
            if not isinstance(data[name], str):
                raise PayloadError(f"Field {name!r} must be a string")
            try:
                data[name].encode("utf-8")
            except UnicodeEncodeError as e:
                raise PayloadError(f"Field {name!r} is not valid Unicode: {e}") from e

        return cls(user=data["user"], message=data["message"])

    def to_dict(self) -> dict:
        return {"user": self.user, "message": self.message}

    def encode(self) -> bytes:
        """Compact UTF-8 JSON, ``user`` first."""
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def reply_to(message: ChatMessage) -> ChatMessage:
    """
    Build the bot's reply to ``message``.

    Pure and total: never raises, never touches ``message``.
    """
    return ChatMessage(user=BOT_NAME, message=REPLY_PREFIX + message.message)


@dataclass(frozen=True)
class ChatOutcome:
    """
    What handling one request produced.

    ``incoming`` and ``reply`` are set only for a successful chat exchange,
    so the server can record it once the response has been written.
    """

    response: HTTPResponse
    incoming: Optional[ChatMessage] = None
    reply: Optional[ChatMessage] = None

    @property
    def is_exchange(self) -> bool:
        return self.incoming is not None and self.reply is not None


class ChatHandler:
    """
    Turns a classified request into a response.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        Dispatch                                      │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   RequestKind.POST     decode body ─┬─ ok    → transform → 200 JSON │
    │                                     └─ error → 400 text             │
    │                                                                      │
    │   RequestKind.OPTIONS  200, no body                                  │
    │                                                                      │
    │   RequestKind.OTHER    405 text                                      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    Holds no per-request state, so one instance is shared by every
    connection thread.
    """

    def __init__(self, transform: Callable[[ChatMessage], ChatMessage] = reply_to):
        """
        Args:
            transform: Maps an incoming message to the reply. Must be pure.
        """
        self.transform = transform

    def handle(self, request: IncomingRequest) -> ChatOutcome:
        if request.kind is RequestKind.POST:
            return self._handle_chat(request)

        if request.kind is RequestKind.OPTIONS:
            return ChatOutcome(preflight())

        return ChatOutcome(method_not_allowed())

    def _handle_chat(self, request: IncomingRequest) -> ChatOutcome:
        try:
            incoming = ChatMessage.decode(request.raw_body)
        except PayloadError as e:
            logger.debug(f"Rejected chat payload from {request.client_address[0]}: {e}")
            return ChatOutcome(invalid_payload())

        reply = self.transform(incoming)
        return ChatOutcome(json_response(reply.encode()), incoming=incoming, reply=reply)
