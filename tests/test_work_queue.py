"""Tests for the shared WorkQueue."""

import threading
from collections import Counter

import pytest

from markfiles.models import FileRecord
from markfiles.work_queue import WorkQueue


def _record(path):
    return FileRecord(path=path, fingerprint=f"sha-{path}", created_at=1, modified_at=2)


class TestWorkQueueBasics:
    """Test single-threaded queue behaviour."""

    def test_fifo_then_drained(self):
        """Test paths come out in seeding order, then None forever."""
        queue = WorkQueue(["a", "b", "c"])
        assert [queue.take_next() for _ in range(3)] == ["a", "b", "c"]
        assert queue.take_next() is None
        assert queue.take_next() is None

    def test_seed_deduplicates(self):
        """Test duplicate input paths are queued once."""
        queue = WorkQueue(["a", "b", "a"])
        assert queue.pending_count == 2

    def test_publish_counts(self):
        """Test publish returns the running result count."""
        queue = WorkQueue(["a", "b"])
        assert queue.publish(_record("a")) == 1
        assert queue.publish(_record("b")) == 2
        assert queue.published_count == 2

    def test_publish_rejects_duplicates(self):
        """Test the result table keeps keys unique."""
        queue = WorkQueue(["a"])
        queue.publish(_record("a"))
        with pytest.raises(ValueError):
            queue.publish(_record("a"))

    def test_freeze_returns_copy(self):
        """Test the frozen snapshot is detached from the queue."""
        queue = WorkQueue(["a", "b"])
        queue.publish(_record("a"))
        frozen = queue.freeze()
        queue.publish(_record("b"))
        assert list(frozen) == ["a"]

    def test_failed_paths_sorted(self):
        """Test failures are collected and reported sorted."""
        queue = WorkQueue(["b", "a"])
        queue.mark_failed("b")
        queue.mark_failed("a")
        assert queue.failed_paths() == ["a", "b"]


class TestWorkQueueConcurrency:
    """Test that concurrent workers never lose or duplicate work."""

    @pytest.mark.parametrize("thread_count", [2, 8, 16])
    def test_concurrent_drain(self, thread_count):
        """Test every path is taken exactly once and published exactly once."""
        paths = [f"file-{i:04d}" for i in range(2000)]
        queue = WorkQueue(paths)
        taken = Counter()
        taken_lock = threading.Lock()
        start = threading.Barrier(thread_count)

        def worker():
            start.wait()
            while True:
                path = queue.take_next()
                if path is None:
                    return
                with taken_lock:
                    taken[path] += 1
                queue.publish(_record(path))

        threads = [threading.Thread(target=worker) for _ in range(thread_count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert set(taken) == set(paths)
        assert all(count == 1 for count in taken.values())
        snapshot = queue.freeze()
        assert len(snapshot) == len(paths)
        assert all(snapshot[p].fingerprint == f"sha-{p}" for p in paths)
        assert queue.pending_count == 0
