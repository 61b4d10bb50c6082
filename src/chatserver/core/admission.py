"""
=============================================================================
ADMISSION GATE
=============================================================================

Caps how many connections are being handled at the same time.

Every accepted connection gets its own thread. Without a cap, a burst of
clients (or a slow-loris attack) means a burst of threads, and each thread
costs a stack's worth of memory.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    AdmissionGate(limit=3)                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   accept loop:                                                       │
    │       gate.acquire()  ── slot free?  ──yes──► accept() → thread      │
    │             │                                                        │
    │             └── no → wait (new clients queue in the kernel backlog)  │
    │                                                                      │
    │   connection thread, when done:                                      │
    │       gate.release()  ──► wakes the accept loop                      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The gate is a counting semaphore. It never rejects anyone: a client that
arrives while the gate is full just waits a little longer in the backlog,
so the protocol looks exactly the same from the outside.

A limit of None (or 0) turns the gate off entirely.

=============================================================================
"""

import threading
from typing import Optional


class AdmissionGate:
    """
    Counting semaphore with an optional ceiling.

    Usage:
        gate = AdmissionGate(limit=256)
        if gate.acquire(timeout=1.0):
            start_worker(on_done=gate.release)
    """

    def __init__(self, limit: Optional[int] = None):
        self.limit = limit or None
        self._semaphore = (
            threading.BoundedSemaphore(self.limit) if self.limit else None
        )
        self._lock = threading.Lock()
        self._active = 0

    @property
    def bounded(self) -> bool:
        return self._semaphore is not None

    @property
    def active(self) -> int:
        """Slots currently held."""
        with self._lock:
            return self._active

    def acquire(self, timeout: Optional[float] = None) -> bool:
        """
        Take a slot, waiting up to ``timeout`` seconds for one.

        Returns:
            True if a slot was taken, False on timeout.
        """
        if self._semaphore is not None:
            if not self._semaphore.acquire(timeout=timeout):
                return False
        with self._lock:
            self._active += 1
        return True

    def release(self) -> None:
        """Give back a slot taken by acquire()."""
        with self._lock:
            if self._active == 0:
                raise RuntimeError("release() without a matching acquire()")
            self._active -= 1
        if self._semaphore is not None:
            self._semaphore.release()
