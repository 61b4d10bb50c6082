"""
=============================================================================
CHAT HISTORY
=============================================================================

An in-memory, append-only log of completed chat exchanges.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         Who touches it                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Connection threads ──append()──►  ChatHistory  ──snapshot()──►     │
    │   (after the response                 (Lock)         diagnostics     │
    │    has been written)                                                 │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Nothing on the request/response path ever reads the history, so a slow
reader can delay writers only for as long as it takes to copy the list.

With a limit set, the oldest entries fall off the front once it's full.
Entries are never edited or reordered.

Not persisted: a restart starts from an empty history.

=============================================================================
"""

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Optional

from .handlers.chat import ChatMessage


@dataclass(frozen=True)
class HistoryEntry:
    """One completed exchange."""
    request: ChatMessage
    reply: ChatMessage
    client: str = ""
    timestamp: float = field(default_factory=time.time)


class ChatHistory:
    """
    Thread-safe append-only exchange log.

    Usage:
        history = ChatHistory(limit=1000)
        history.append(incoming, reply, client="10.0.0.5")
        for entry in history.snapshot():
            print(entry.request.user, entry.reply.message)
    """

    def __init__(self, limit: Optional[int] = None):
        """
        Args:
            limit: Maximum entries kept. None keeps everything.
        """
        self.limit = limit
        self._entries: deque[HistoryEntry] = deque(maxlen=limit)
        self._lock = threading.Lock()
        self._total = 0

    def append(self, request: ChatMessage, reply: ChatMessage, client: str = "") -> HistoryEntry:
        entry = HistoryEntry(request=request, reply=reply, client=client)
        with self._lock:
            self._entries.append(entry)
            self._total += 1
        return entry

    def snapshot(self) -> list[HistoryEntry]:
        """Copy of the retained entries, oldest first."""
        with self._lock:
            return list(self._entries)

    @property
    def total(self) -> int:
        """Exchanges recorded since startup, including dropped ones."""
        with self._lock:
            return self._total

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
