"""
Unit tests for the chat history log.
"""

import threading

from chatserver.handlers.chat import ChatMessage, reply_to
from chatserver.history import ChatHistory


def exchange(i: int):
    incoming = ChatMessage(user=f"user{i}", message=f"msg{i}")
    return incoming, reply_to(incoming)


class TestChatHistory:

    def test_append_and_snapshot(self):
        history = ChatHistory()
        entry = history.append(*exchange(1), client="10.0.0.1")

        assert len(history) == 1
        assert history.snapshot() == [entry]
        assert entry.request.user == "user1"
        assert entry.reply.message == "You said: msg1"
        assert entry.client == "10.0.0.1"
        assert entry.timestamp > 0

    def test_order_is_kept(self):
        history = ChatHistory()
        for i in range(5):
            history.append(*exchange(i))

        assert [e.request.message for e in history.snapshot()] == [f"msg{i}" for i in range(5)]

    def test_limit_drops_oldest(self):
        history = ChatHistory(limit=3)
        for i in range(5):
            history.append(*exchange(i))

        assert len(history) == 3
        assert history.total == 5
        assert [e.request.message for e in history.snapshot()] == ["msg2", "msg3", "msg4"]

    def test_zero_limit_keeps_nothing(self):
        history = ChatHistory(limit=0)
        history.append(*exchange(1))

        assert len(history) == 0
        assert history.total == 1

    def test_snapshot_is_a_copy(self):
        history = ChatHistory()
        history.append(*exchange(1))

        snapshot = history.snapshot()
        snapshot.clear()

        assert len(history) == 1

    def test_concurrent_appends(self):
        history = ChatHistory()

        def writer(base: int):
            for i in range(200):
                history.append(*exchange(base + i))

        threads = [threading.Thread(target=writer, args=(n * 1000,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(history) == 1600
        assert history.total == 1600
        assert len({e.request.message for e in history.snapshot()}) == 1600
