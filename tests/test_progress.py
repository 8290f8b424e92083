"""Tests for progress tracking and backend load counters."""

import threading

import pytest

from chunking.load_tracker import BackendLoadTracker
from chunking.progress import ProgressTracker, StreamingProgress


class TestStreamingProgress:
    """Test per-file progress records."""

    def test_counts(self):
        progress = StreamingProgress("f", total_chunks=4, total_bytes=400)
        progress.record_success(100)
        progress.record_success(100)
        progress.record_failure()

        snapshot = progress.snapshot()

        assert snapshot.processed_chunks == 3
        assert snapshot.succeeded_chunks == 2
        assert snapshot.failed_chunks == 1
        assert snapshot.bytes_processed == 200
        assert snapshot.percent_complete == 75.0
        assert not snapshot.finished

    def test_no_estimate_before_first_chunk(self):
        snapshot = StreamingProgress("f", 4, 400).snapshot()

        assert snapshot.estimated_remaining_seconds is None

    def test_estimate_is_zero_when_done(self):
        progress = StreamingProgress("f", 1, 10)
        progress.record_success(10)
        progress.finish()

        snapshot = progress.snapshot()

        assert snapshot.finished
        assert snapshot.estimated_remaining_seconds in (None, 0.0)

    def test_concurrent_updates(self):
        progress = StreamingProgress("f", total_chunks=8000, total_bytes=8000)

        def worker():
            for _ in range(1000):
                progress.record_success(1)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert progress.snapshot().processed_chunks == 8000
        assert progress.snapshot().bytes_processed == 8000


class TestProgressTracker:
    """Test the file-id keyed registry."""

    def test_lifecycle(self):
        tracker = ProgressTracker()
        progress = tracker.start("f", 2, 20)

        assert tracker.get("f") is progress
        assert tracker.snapshot("f").total_chunks == 2
        assert tracker.discard("f")
        assert tracker.get("f") is None
        assert tracker.snapshot("f") is None
        assert not tracker.discard("f")

    def test_finished_records_expire(self):
        now = [1000.0]
        tracker = ProgressTracker(retention_seconds=60, clock=lambda: now[0])
        done = tracker.start("done", 1, 10)
        done.record_success(10)
        done.finish()
        running = tracker.start("running", 1, 10)

        now[0] += 59
        assert tracker.get("done") is done

        now[0] += 2
        assert tracker.get("done") is None
        assert tracker.get("running") is running
        assert len(tracker) == 1

    def test_elapsed_uses_tracker_clock(self):
        now = [0.0]
        tracker = ProgressTracker(clock=lambda: now[0])
        progress = tracker.start("f", 2, 20)

        now[0] = 4.0
        progress.record_success(10)

        snapshot = tracker.snapshot("f")
        assert snapshot.elapsed_seconds == 4.0
        assert snapshot.estimated_remaining_seconds == 4.0

    def test_no_retention_keeps_records(self):
        now = [0.0]
        tracker = ProgressTracker(retention_seconds=None, clock=lambda: now[0])
        tracker.start("f", 1, 10).finish()

        now[0] = 1e9
        assert tracker.get("f") is not None


class TestBackendLoadTracker:
    """Test in-flight counters."""

    def test_acquire_release(self):
        tracker = BackendLoadTracker()

        assert tracker.acquire("A") == 1
        assert tracker.acquire("A") == 2
        assert tracker.release("A") == 1
        assert tracker.load("A") == 1
        assert tracker.release("A") == 0
        assert tracker.snapshot() == {}

    def test_never_below_zero(self):
        tracker = BackendLoadTracker()

        assert tracker.release("A") == 0
        assert tracker.load("A") == 0

    def test_track_releases_on_error(self):
        tracker = BackendLoadTracker()

        with pytest.raises(RuntimeError):
            with tracker.track("A"):
                assert tracker.load("A") == 1
                raise RuntimeError("boom")

        assert tracker.load("A") == 0

    def test_overload_threshold(self):
        tracker = BackendLoadTracker(overload_threshold=2)
        for _ in range(2):
            tracker.acquire("A")
        assert not tracker.is_overloaded("A")

        tracker.acquire("A")
        assert tracker.is_overloaded("A")
