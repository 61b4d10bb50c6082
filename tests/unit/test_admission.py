"""
Unit tests for the admission gate.
"""

import threading
import time

import pytest

from chatserver.core.admission import AdmissionGate


class TestAdmissionGate:

    def test_bounded_ceiling(self):
        gate = AdmissionGate(limit=2)

        assert gate.bounded
        assert gate.acquire(timeout=0.1)
        assert gate.acquire(timeout=0.1)
        assert not gate.acquire(timeout=0.05)
        assert gate.active == 2

        gate.release()

        assert gate.acquire(timeout=0.1)
        assert gate.active == 2

    @pytest.mark.parametrize("limit", [None, 0])
    def test_unbounded(self, limit):
        gate = AdmissionGate(limit=limit)

        assert not gate.bounded
        for _ in range(1000):
            assert gate.acquire(timeout=0)
        assert gate.active == 1000

    def test_release_without_acquire(self):
        with pytest.raises(RuntimeError):
            AdmissionGate(limit=1).release()

    def test_waiter_wakes_on_release(self):
        gate = AdmissionGate(limit=1)
        gate.acquire()
        acquired = threading.Event()

        def waiter():
            if gate.acquire(timeout=5.0):
                acquired.set()

        t = threading.Thread(target=waiter)
        t.start()
        time.sleep(0.05)
        assert not acquired.is_set()

        gate.release()
        t.join(timeout=5.0)

        assert acquired.is_set()
        assert gate.active == 1
