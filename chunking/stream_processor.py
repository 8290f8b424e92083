"""Streams a source file into chunks and stores them on backends concurrently."""

import asyncio
import contextlib
import os
import time
import uuid
from dataclasses import dataclass
from typing import BinaryIO, Callable, Dict, Iterable, List, Optional, Sequence

from common.constants import (
    DEFAULT_MAX_INFLIGHT_BYTES,
    DEFAULT_STORE_TIMEOUT_SECONDS,
    STREAM_PIECE_SIZE_BYTES,
)
from common.logging_config import get_logger
from common.types import Chunk, ChunkAssignment, ChunkProcessingResult, ChunkStatus
from chunking.chunk_placement import ChunkDistributor
from chunking.chunk_planner import ChunkPlanner
from chunking.exceptions import BackendUnavailableError, OperationCancelledError
from chunking.integrity import IncrementalDigest, compute_digest
from chunking.load_tracker import BackendLoadTracker
from chunking.progress import ProgressTracker, StreamingProgress

logger = get_logger(__name__)


@dataclass
class ProcessingOutcome:
    """
    Aggregate result of one process_stream call.

    `results` holds one entry per chunk whose extraction started, sorted by
    order. `file_digest` is only set when every planned chunk was extracted.
    """
    file_id: str
    chunk_count: int
    results: List[ChunkProcessingResult]
    progress: StreamingProgress
    file_digest: Optional[str]
    cancelled: bool

    @property
    def success(self) -> bool:
        return (
            not self.cancelled
            and len(self.results) == self.chunk_count
            and all(result.success for result in self.results)
        )

    @property
    def failed_results(self) -> List[ChunkProcessingResult]:
        return [result for result in self.results if not result.success]


class _ChunkReader:
    """
    Reads chunk byte ranges from a source stream in fixed-size pieces.

    Seekable sources are positioned at each chunk offset. Non-seekable sources
    must already sit at the requested offset.
    """

    def __init__(self, stream: BinaryIO, piece_size: int):
        self.stream = stream
        self.piece_size = piece_size
        self.seekable = bool(getattr(stream, "seekable", lambda: False)())
        self.position = stream.tell() if self.seekable else 0

    async def read_range(self, offset: int, size: int, cancel_event: asyncio.Event) -> bytes:
        if self.seekable:
            await asyncio.to_thread(self.stream.seek, offset)
            self.position = offset
        elif self.position != offset:
            raise ValueError(
                f"Non-seekable stream is at byte {self.position}, chunk starts at {offset}"
            )

        buffer = bytearray()
        while len(buffer) < size:
            if cancel_event.is_set():
                raise OperationCancelledError(f"Cancelled while reading chunk at offset {offset}")

            piece = await asyncio.to_thread(
                self.stream.read, min(self.piece_size, size - len(buffer))
            )
            if not piece:
                raise EOFError(
                    f"Stream ended after {len(buffer)} of {size} bytes for chunk at offset {offset}"
                )
            buffer.extend(piece)
            self.position += len(piece)

        return bytes(buffer)


class StreamProcessor:
    """
    Plans, distributes, extracts and stores the chunks of one source stream.

    Extraction is sequential and guarded by an asyncio.Lock. Store calls run
    as concurrent tasks bounded by a semaphore of `pool_size` slots; a slot is
    taken before a chunk is read and returned once its store call ends, so at
    most `pool_size` chunk payloads are held in memory.
    """

    def __init__(
        self,
        registry,
        planner: Optional[ChunkPlanner] = None,
        distributor: Optional[ChunkDistributor] = None,
        progress_tracker: Optional[ProgressTracker] = None,
        load_tracker: Optional[BackendLoadTracker] = None,
        parallelism: Optional[int] = None,
        read_buffer_size: int = STREAM_PIECE_SIZE_BYTES,
        store_timeout: Optional[float] = DEFAULT_STORE_TIMEOUT_SECONDS,
        max_inflight_bytes: int = DEFAULT_MAX_INFLIGHT_BYTES
    ):
        if read_buffer_size <= 0:
            raise ValueError("read_buffer_size must be positive")
        if parallelism is not None and parallelism < 1:
            raise ValueError("parallelism must be at least 1")

        self.registry = registry
        self.planner = planner or ChunkPlanner()
        self.distributor = distributor or ChunkDistributor()
        self.progress_tracker = progress_tracker or ProgressTracker()
        self.load_tracker = load_tracker
        self.parallelism = parallelism or os.cpu_count() or 1
        self.read_buffer_size = read_buffer_size
        self.store_timeout = store_timeout
        self.max_inflight_bytes = max_inflight_bytes

    def pool_size(self, chunk_size: int) -> int:
        """Concurrent chunk slots, capped so slots * chunk_size fits the in-flight budget."""
        by_memory = max(1, self.max_inflight_bytes // max(chunk_size, 1))
        return max(1, min(self.parallelism, by_memory))

    async def process_stream(
        self,
        stream: BinaryIO,
        file_size: int,
        backend_ids: Optional[Sequence[str]] = None,
        cancel_event: Optional[asyncio.Event] = None,
        file_id: Optional[str] = None,
        on_dispatch: Optional[Callable[[Chunk], None]] = None
    ) -> ProcessingOutcome:
        """
        Split `stream` into chunks and store each on its assigned backend.

        Args:
            stream: Binary source positioned at the start of the file
            file_size: Exact number of bytes to read from the stream
            backend_ids: Backends to distribute over, defaults to every active one
            cancel_event: Set to stop dispatching further chunks
            file_id: Id used for distribution and chunk keys, generated if omitted
            on_dispatch: Called with each Storing chunk just before its store starts

        Returns:
            ProcessingOutcome with per-chunk results and the whole-file digest

        Raises:
            InputError, LimitExceededError, InternalError, NoBackendsError:
                planning or distribution failed, nothing was read or stored

        Read failures are recorded on the affected chunk. If the call itself
        is cancelled or `on_dispatch` raises, dispatched stores are awaited and
        their payloads removed before the error propagates.
        """
        file_id = file_id or str(uuid.uuid4())
        descriptors = self.planner.plan_chunks(file_size)
        if backend_ids is None:
            backend_ids = [descriptor.backend_id for descriptor in self.registry.list_active()]
        assignments = self.distributor.distribute_chunks(file_id, descriptors, backend_ids)

        cancel_event = cancel_event or asyncio.Event()
        pool_size = self.pool_size(descriptors[0].size)
        semaphore = asyncio.Semaphore(pool_size)
        extraction_lock = asyncio.Lock()
        reader = _ChunkReader(stream, self.read_buffer_size)
        whole_file = IncrementalDigest()
        progress = self.progress_tracker.start(file_id, len(assignments), file_size)

        logger.info(
            f"Processing file {file_id}: {file_size} bytes, {len(assignments)} chunks, "
            f"{pool_size} workers"
        )

        results: Dict[int, ChunkProcessingResult] = {}
        store_tasks: List[asyncio.Task] = []
        all_extracted = True
        cancelled = False

        try:
            for assignment in assignments:
                await semaphore.acquire()
                if cancel_event.is_set():
                    semaphore.release()
                    cancelled = True
                    all_extracted = False
                    break

                descriptor = assignment.descriptor
                result = ChunkProcessingResult(
                    chunk_id=str(uuid.uuid4()),
                    order=descriptor.order,
                    size=descriptor.size,
                    backend_id=assignment.backend_id,
                )
                results[descriptor.order] = result
                started = time.monotonic()

                try:
                    async with extraction_lock:
                        data = await reader.read_range(descriptor.offset, descriptor.size, cancel_event)
                except OperationCancelledError as e:
                    result.cancelled = True
                    result.error = str(e)
                    result.processing_duration = time.monotonic() - started
                    progress.record_failure()
                    semaphore.release()
                    cancelled = True
                    all_extracted = False
                    break
                except Exception as e:
                    logger.error(f"Failed to extract chunk {descriptor.order} of file {file_id}: {e}")
                    result.error = f"Extraction failed: {e}"
                    result.processing_duration = time.monotonic() - started
                    progress.record_failure()
                    semaphore.release()
                    all_extracted = False
                    continue

                whole_file.update(data)
                result.digest = compute_digest(data)
                if on_dispatch is not None:
                    on_dispatch(self._chunk_for(file_id, result, ChunkStatus.STORING))
                store_tasks.append(asyncio.create_task(
                    self._store_chunk(file_id, assignment, result, data, semaphore, progress, started)
                ))
        except (Exception, asyncio.CancelledError):
            if store_tasks:
                await asyncio.gather(*store_tasks, return_exceptions=True)
            progress.finish()
            await self._discard_stored(file_id, results.values())
            raise

        if store_tasks:
            await asyncio.gather(*store_tasks)
        progress.finish()

        file_digest = whole_file.finalize() if all_extracted else None
        outcome = ProcessingOutcome(
            file_id=file_id,
            chunk_count=len(assignments),
            results=[results[order] for order in sorted(results)],
            progress=progress,
            file_digest=file_digest,
            cancelled=cancelled,
        )

        if cancelled:
            logger.warning(
                f"Processing of file {file_id} cancelled after {len(outcome.results)} "
                f"of {outcome.chunk_count} chunks"
            )
        else:
            logger.info(
                f"Processed file {file_id}: {len(outcome.results) - len(outcome.failed_results)} "
                f"stored, {len(outcome.failed_results)} failed"
            )
        return outcome

    def _track_load(self, backend_id: str):
        if self.load_tracker is None:
            return contextlib.nullcontext()
        return self.load_tracker.track(backend_id)

    @staticmethod
    def _chunk_for(file_id: str, result: ChunkProcessingResult, status: ChunkStatus) -> Chunk:
        return Chunk(
            chunk_id=result.chunk_id,
            file_id=file_id,
            order=result.order,
            size=result.size,
            digest=result.digest,
            backend_id=result.backend_id,
            status=status,
        )

    async def _discard_stored(self, file_id: str, results: Iterable[ChunkProcessingResult]) -> None:
        """Best-effort removal of payloads already written by an aborted run."""
        for result in results:
            if not result.success:
                continue
            backend = self.registry.get(result.backend_id)
            if backend is None:
                continue
            try:
                deleted = await backend.delete(self._chunk_for(file_id, result, ChunkStatus.STORED))
            except Exception as e:
                logger.warning(f"Could not discard chunk {result.order} of aborted file {file_id}: {e}")
                continue
            if not deleted:
                logger.warning(f"Backend {result.backend_id} kept chunk {result.order} of aborted file {file_id}")

    async def _store_chunk(
        self,
        file_id: str,
        assignment: ChunkAssignment,
        result: ChunkProcessingResult,
        data: bytes,
        semaphore: asyncio.Semaphore,
        progress: StreamingProgress,
        started: float
    ) -> None:
        chunk = self._chunk_for(file_id, result, ChunkStatus.STORING)

        try:
            backend = self.registry.get(assignment.backend_id)
            if backend is None:
                raise BackendUnavailableError(f"Backend {assignment.backend_id} is not registered")

            with self._track_load(assignment.backend_id):
                stored = await asyncio.wait_for(backend.store(chunk, data), timeout=self.store_timeout)

            if not stored:
                raise BackendUnavailableError(
                    f"Backend {assignment.backend_id} rejected chunk {chunk.order}"
                )

            result.success = True
            progress.record_success(result.size)
            logger.debug(f"Stored chunk {chunk.order} of file {file_id} on {assignment.backend_id}")

        except asyncio.TimeoutError:
            result.error = f"Store timed out after {self.store_timeout}s"
            progress.record_failure()
            logger.error(f"Chunk {chunk.order} of file {file_id}: {result.error}")

        except BackendUnavailableError as e:
            result.error = str(e)
            progress.record_failure()
            logger.error(f"Chunk {chunk.order} of file {file_id}: {e}")

        except Exception as e:
            result.error = f"Backend error: {e}"
            progress.record_failure()
            logger.error(f"Backend {assignment.backend_id} failed storing chunk {chunk.order} of file {file_id}: {e}")

        finally:
            result.processing_duration = time.monotonic() - started
            semaphore.release()
