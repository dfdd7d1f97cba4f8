"""Tests for the pending update queue."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from nodestrap.bootstrap.pending import PendingUpdateQueue
from nodestrap.core.errors import InvariantViolation


class TestPendingUpdateQueue:
    """Tests for PendingUpdateQueue."""

    def test_keeps_enqueue_order(self) -> None:
        queue = PendingUpdateQueue()
        for name in ("b", "a", "c"):
            assert queue.enqueue(name) is True

        assert queue.snapshot() == ["b", "a", "c"]
        assert len(queue) == 3

    def test_duplicates_ignored(self) -> None:
        queue = PendingUpdateQueue()
        assert queue.enqueue("a") is True
        assert queue.enqueue("a") is False
        assert queue.snapshot() == ["a"]

    def test_drain_exactly_once(self) -> None:
        queue = PendingUpdateQueue()
        queue.enqueue("a")
        queue.enqueue("b")

        assert queue.drain() == ["a", "b"]
        assert queue.drained is True
        assert queue.drain() == []
        assert len(queue) == 0

    def test_enqueue_after_drain_violates_invariant(self) -> None:
        queue = PendingUpdateQueue()
        queue.drain()

        with pytest.raises(InvariantViolation):
            queue.enqueue("late")

    def test_lock_timeout_violates_invariant(self) -> None:
        queue = PendingUpdateQueue(lock_timeout=0.05)
        # Simulate a holder that never lets go
        queue._lock.acquire()
        try:
            with pytest.raises(InvariantViolation, match="Failed to lock"):
                queue.enqueue("a")
        finally:
            queue._lock.release()

    def test_concurrent_drains_hand_out_each_name_once(self) -> None:
        queue = PendingUpdateQueue()
        names = [f"dep-{i}" for i in range(50)]
        for name in names:
            queue.enqueue(name)

        barrier = threading.Barrier(8)

        def drain():
            barrier.wait()
            return queue.drain()

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: drain(), range(8)))

        drained = [name for result in results for name in result]
        assert sorted(drained) == sorted(names)
        assert sum(1 for result in results if result) == 1

    def test_concurrent_enqueue_deduplicates(self) -> None:
        queue = PendingUpdateQueue()

        with ThreadPoolExecutor(max_workers=8) as pool:
            accepted = list(pool.map(queue.enqueue, ["x", "y"] * 20))

        assert accepted.count(True) == 2
        assert sorted(queue.snapshot()) == ["x", "y"]
