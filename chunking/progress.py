"""Live progress tracking for stream processing, pollable by file id."""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from common.constants import DEFAULT_PROGRESS_RETENTION_SECONDS
from common.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProgressSnapshot:
    """
    Point-in-time copy of a file's processing progress.
    """
    file_id: str
    total_chunks: int
    total_bytes: int
    processed_chunks: int
    succeeded_chunks: int
    failed_chunks: int
    bytes_processed: int
    elapsed_seconds: float
    estimated_remaining_seconds: Optional[float]
    finished: bool

    @property
    def percent_complete(self) -> float:
        if self.total_chunks == 0:
            return 0.0
        return 100.0 * self.processed_chunks / self.total_chunks


class StreamingProgress:
    """
    Mutable progress record shared by every worker of one file.
    All mutations go through a lock.
    """

    def __init__(
        self,
        file_id: str,
        total_chunks: int,
        total_bytes: int,
        clock: Callable[[], float] = time.monotonic
    ):
        self.file_id = file_id
        self.total_chunks = total_chunks
        self.total_bytes = total_bytes
        self._processed = 0
        self._succeeded = 0
        self._failed = 0
        self._bytes = 0
        self._clock = clock
        self._started_at = clock()
        self._finished_at: Optional[float] = None
        self._lock = threading.Lock()

    def record_success(self, size: int) -> None:
        with self._lock:
            self._processed += 1
            self._succeeded += 1
            self._bytes += size

    def record_failure(self) -> None:
        with self._lock:
            self._processed += 1
            self._failed += 1

    def finish(self) -> None:
        with self._lock:
            if self._finished_at is None:
                self._finished_at = self._clock()

    def snapshot(self) -> ProgressSnapshot:
        """
        Copy the counters and estimate remaining time as
        average time per processed chunk times remaining chunks.
        """
        with self._lock:
            end = self._finished_at if self._finished_at is not None else self._clock()
            elapsed = end - self._started_at
            processed = self._processed

            estimated_remaining = None
            if processed > 0 and elapsed > 0:
                remaining_chunks = max(self.total_chunks - processed, 0)
                estimated_remaining = (elapsed / processed) * remaining_chunks

            return ProgressSnapshot(
                file_id=self.file_id,
                total_chunks=self.total_chunks,
                total_bytes=self.total_bytes,
                processed_chunks=processed,
                succeeded_chunks=self._succeeded,
                failed_chunks=self._failed,
                bytes_processed=self._bytes,
                elapsed_seconds=elapsed,
                estimated_remaining_seconds=estimated_remaining,
                finished=self._finished_at is not None,
            )

    def finished_at(self) -> Optional[float]:
        with self._lock:
            return self._finished_at


class ProgressTracker:
    """
    Registry of in-flight and recently finished progress records.

    Finished records are evicted once they are older than
    `retention_seconds`; eviction runs whenever a record is started or read.
    """

    def __init__(
        self,
        retention_seconds: Optional[float] = DEFAULT_PROGRESS_RETENTION_SECONDS,
        clock: Callable[[], float] = time.monotonic
    ):
        self.retention_seconds = retention_seconds
        self._clock = clock
        self._records: Dict[str, StreamingProgress] = {}
        self._lock = threading.Lock()

    def _evict_expired(self) -> None:
        if self.retention_seconds is None:
            return
        cutoff = self._clock() - self.retention_seconds
        with self._lock:
            expired = []
            for file_id, progress in self._records.items():
                finished_at = progress.finished_at()
                if finished_at is not None and finished_at <= cutoff:
                    expired.append(file_id)
            for file_id in expired:
                del self._records[file_id]
        if expired:
            logger.debug(f"Evicted {len(expired)} finished progress records")

    def start(self, file_id: str, total_chunks: int, total_bytes: int) -> StreamingProgress:
        self._evict_expired()
        progress = StreamingProgress(file_id, total_chunks, total_bytes, clock=self._clock)
        with self._lock:
            self._records[file_id] = progress
        logger.debug(f"Tracking progress for file {file_id} ({total_chunks} chunks)")
        return progress

    def get(self, file_id: str) -> Optional[StreamingProgress]:
        self._evict_expired()
        with self._lock:
            return self._records.get(file_id)

    def snapshot(self, file_id: str) -> Optional[ProgressSnapshot]:
        progress = self.get(file_id)
        return progress.snapshot() if progress else None

    def discard(self, file_id: str) -> bool:
        with self._lock:
            return self._records.pop(file_id, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
