"""
Request handlers.

The chat server has a single handler, which owns the payload format and the
reply transform.
"""

from .chat import (
    BOT_NAME,
    REPLY_PREFIX,
    ChatHandler,
    ChatMessage,
    ChatOutcome,
    PayloadError,
    reply_to,
)

__all__ = [
    "BOT_NAME",
    "REPLY_PREFIX",
    "ChatHandler",
    "ChatMessage",
    "ChatOutcome",
    "PayloadError",
    "reply_to",
]
