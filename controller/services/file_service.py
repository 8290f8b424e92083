"""File service for business logic."""

import asyncio
from dataclasses import dataclass, field
from typing import BinaryIO, Dict, List, Optional, Tuple

import httpx

from common.logging_config import get_logger
from common.types import (
    BackendDescriptor,
    Chunk,
    ChunkStatus,
    FileMetadata,
    FileRecord,
    FileStatus,
    HealthStatus,
    ReplicationPlan,
)
from backends.registry import BackendRegistry, UnsupportedBackendKindError
from chunking.chunk_health import HealthClassifier
from chunking.chunk_planner import ChunkPlanner
from chunking.exceptions import MergeError
from chunking.file_validation import validate_upload
from chunking.integrity import validate_file
from chunking.load_tracker import BackendLoadTracker
from chunking.merger import merge_chunks
from chunking.progress import ProgressSnapshot, ProgressTracker
from chunking.stream_processor import ProcessingOutcome, StreamProcessor
from controller import config
from controller.database import get_db_connection
from controller.exceptions import (
    BackendNotFoundError,
    BackendUnavailableError,
    ChecksumMismatchError,
    FileNotFoundError,
    FileNotReadyError,
    InvalidBackendError,
)
from controller.repositories.backend_repository import BackendRepository
from controller.repositories.chunk_repository import ChunkRepository
from controller.repositories.file_repository import FileRepository
from controller.utils import generate_uuid

logger = get_logger(__name__)


@dataclass
class StoreFileResult:
    file: FileRecord
    outcome: ProcessingOutcome
    chunks: List[Chunk] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.file.status == FileStatus.AVAILABLE


@dataclass
class ChunkHealthEntry:
    chunk: Chunk
    health: HealthStatus
    replication_plan: Optional[ReplicationPlan] = None


@dataclass
class FileHealthReport:
    file_id: str
    chunks: List[ChunkHealthEntry]
    summary: Dict[HealthStatus, int]

    @property
    def is_healthy(self) -> bool:
        return all(entry.health == HealthStatus.HEALTHY for entry in self.chunks)


class FileService:
    """
    Store, retrieve, delete and inspect files.

    One BackendLoadTracker is shared by the stream processor, which counts
    in-flight stores, and the health classifier, which ranks replication
    targets by that load.
    """

    def __init__(
        self,
        registry: Optional[BackendRegistry] = None,
        processor: Optional[StreamProcessor] = None,
        health_classifier: Optional[HealthClassifier] = None,
        progress_tracker: Optional[ProgressTracker] = None,
        load_tracker: Optional[BackendLoadTracker] = None
    ):
        self.registry = registry or BackendRegistry(storage_root=config.STORAGE_ROOT)
        self.progress_tracker = progress_tracker or ProgressTracker(
            retention_seconds=config.PROGRESS_RETENTION_SECONDS
        )
        self.load_tracker = load_tracker or BackendLoadTracker(
            overload_threshold=config.BACKEND_OVERLOAD_LIMIT
        )
        self.processor = processor or StreamProcessor(
            self.registry,
            planner=ChunkPlanner(max_chunk_count=config.MAX_CHUNK_COUNT_LIMIT),
            progress_tracker=self.progress_tracker,
            load_tracker=self.load_tracker,
            parallelism=config.PARALLELISM,
            read_buffer_size=config.READ_BUFFER_BYTES,
            store_timeout=config.STORE_TIMEOUT_SECONDS,
            max_inflight_bytes=config.MAX_INFLIGHT_BYTES,
        )
        self.health_classifier = health_classifier or HealthClassifier(
            min_active_backends=config.MIN_REPLICATION_BACKENDS_LIMIT,
            max_targets=config.MAX_REPLICATION_TARGETS_LIMIT,
            throughput_bytes_per_second=config.REPLICATION_THROUGHPUT_BYTES,
            load_tracker=self.load_tracker,
        )
        self.max_file_size = config.MAX_FILE_SIZE
        self.file_repo = FileRepository()
        self.chunk_repo = ChunkRepository()
        self.backend_repo = BackendRepository()

    def load_backends(self) -> int:
        """
        Register every persisted backend descriptor. Called on startup.

        Returns:
            Number of backends registered
        """
        count = 0
        for descriptor in self.backend_repo.list_all():
            try:
                self.registry.register_descriptor(descriptor)
                count += 1
            except UnsupportedBackendKindError as e:
                logger.error(f"Skipping persisted backend {descriptor.backend_id}: {e}")
        logger.info(f"Loaded {count} backends from database")
        return count

    def register_backend(self, name: str, kind: str, connection_info: str) -> BackendDescriptor:
        descriptor = BackendDescriptor(
            backend_id=generate_uuid(),
            name=name,
            kind=kind,
            connection_info=connection_info,
        )
        try:
            self.registry.register_descriptor(descriptor)
        except UnsupportedBackendKindError as e:
            raise InvalidBackendError(str(e)) from e
        return self.backend_repo.save(descriptor)

    def list_backends(self) -> List[BackendDescriptor]:
        return self.registry.list_all()

    async def check_backend_health(self, backend_id: str) -> BackendDescriptor:
        backend = self.registry.get(backend_id)
        if backend is None:
            raise BackendNotFoundError(f"Backend {backend_id} not found")

        healthy = await backend.is_healthy()
        descriptor = self.registry.set_active(backend_id, healthy)
        self.backend_repo.set_active(backend_id, healthy)
        return descriptor

    async def store_file(
        self,
        name: str,
        stream: BinaryIO,
        size: int,
        metadata: Optional[FileMetadata] = None,
        cancel_event: Optional[asyncio.Event] = None
    ) -> StoreFileResult:
        """
        Chunk, distribute and store a file, then persist its chunk records.

        Each chunk row is written as Storing just before its store call
        starts and settles to Stored or Failed afterwards. The file becomes
        Available only when every chunk was stored; otherwise it is kept as
        Failed with the chunks that did make it.

        Raises:
            InputError: the upload breaks a name, type, size or content type rule
            InputError, LimitExceededError, NoBackendsError: nothing was stored
        """
        metadata = metadata or FileMetadata()
        validate_upload(name, size, metadata, max_size=self.max_file_size)

        file = FileRecord(
            file_id=generate_uuid(),
            name=name,
            size=size,
            status=FileStatus.PROCESSING,
            metadata=metadata,
        )
        self.file_repo.create_file(file)

        dispatched = set()

        def record_dispatch(chunk: Chunk) -> None:
            self.chunk_repo.create_chunks([chunk])
            dispatched.add(chunk.chunk_id)

        try:
            outcome = await self.processor.process_stream(
                stream,
                size,
                cancel_event=cancel_event,
                file_id=file.file_id,
                on_dispatch=record_dispatch,
            )
        except (Exception, asyncio.CancelledError) as e:
            logger.error(f"Store of file {file.file_id} ({name}) aborted: {e!r}")
            self.file_repo.delete_file(file.file_id)
            raise

        chunks = [
            Chunk(
                chunk_id=result.chunk_id,
                file_id=file.file_id,
                order=result.order,
                size=result.size,
                digest=result.digest,
                backend_id=result.backend_id,
                status=ChunkStatus.STORED if result.success else ChunkStatus.FAILED,
            )
            for result in outcome.results
        ]

        file.status = FileStatus.AVAILABLE if outcome.success else FileStatus.FAILED
        file.digest = outcome.file_digest or ""

        with get_db_connection() as conn:
            try:
                for chunk in chunks:
                    if chunk.chunk_id in dispatched:
                        self.chunk_repo.update_status(chunk.chunk_id, chunk.status, conn=conn)
                self.chunk_repo.create_chunks(
                    [chunk for chunk in chunks if chunk.chunk_id not in dispatched], conn=conn
                )
                self.file_repo.update_status(file.file_id, file.status, digest=file.digest, conn=conn)
                conn.commit()
            except Exception:
                conn.rollback()
                raise

        if outcome.success:
            logger.info(f"Stored file {file.file_id} ({name}) in {len(chunks)} chunks")
        else:
            logger.warning(
                f"File {file.file_id} ({name}) stored incompletely: "
                f"{len(outcome.failed_results)} failed, {outcome.chunk_count - len(chunks)} not started"
            )

        return StoreFileResult(file=file, outcome=outcome, chunks=chunks)

    def get_file_status(self, file_id: str) -> FileRecord:
        file = self.file_repo.get_by_id(file_id)
        if file is None:
            raise FileNotFoundError(f"File {file_id} not found")
        return file

    def list_files(self) -> List[FileRecord]:
        return self.file_repo.list_files()

    def get_progress(self, file_id: str) -> Optional[ProgressSnapshot]:
        return self.progress_tracker.snapshot(file_id)

    async def _fetch_chunk(self, chunk: Chunk) -> bytes:
        backend = self.registry.get(chunk.backend_id)
        if backend is None:
            raise BackendNotFoundError(
                f"Backend {chunk.backend_id} holding chunk {chunk.order} is not registered"
            )

        try:
            data = await backend.retrieve(chunk)
        except (OSError, httpx.HTTPError) as e:
            raise BackendUnavailableError(
                f"Backend {chunk.backend_id} failed to return chunk {chunk.order}: {e}"
            ) from e

        if data is None:
            raise BackendUnavailableError(
                f"Chunk {chunk.order} of file {chunk.file_id} missing from backend {chunk.backend_id}"
            )
        return data

    async def retrieve_file(self, file_id: str) -> Tuple[FileRecord, bytes]:
        """
        Fetch every chunk, validate it and merge the file.

        Raises:
            FileNotFoundError: unknown file id
            FileNotReadyError: file or one of its chunks is not stored
            BackendNotFoundError, BackendUnavailableError: a chunk could not be fetched
            ChecksumMismatchError: integrity validation failed
        """
        file = self.get_file_status(file_id)
        if file.status != FileStatus.AVAILABLE:
            raise FileNotReadyError(f"File {file_id} is {file.status.value}")

        chunks = self.chunk_repo.get_chunks_by_file(file_id)
        not_stored = [chunk.order for chunk in chunks if chunk.status != ChunkStatus.STORED]
        if not chunks or not_stored:
            raise FileNotReadyError(f"File {file_id} has chunks not stored: {not_stored}")

        logger.info(f"Retrieving file {file_id} ({len(chunks)} chunks, {file.size} bytes)")
        fetches = [asyncio.create_task(self._fetch_chunk(chunk)) for chunk in chunks]
        try:
            payloads = await asyncio.gather(*fetches)
        except Exception:
            for fetch in fetches:
                fetch.cancel()
            await asyncio.gather(*fetches, return_exceptions=True)
            raise

        if not validate_file(file, chunks, payloads):
            raise ChecksumMismatchError(f"Integrity validation failed for file {file_id}")

        try:
            data = merge_chunks(chunks, payloads, expected_digest=file.digest)
        except MergeError as e:
            raise ChecksumMismatchError(f"Failed to reconstruct file {file_id}: {e}") from e

        logger.info(f"Retrieved file {file_id}: {len(data)} bytes")
        return file, data

    async def delete_file(self, file_id: str) -> List[str]:
        """
        Delete chunk payloads from their backends, then the records.

        Backend deletes are best effort; failures are logged and the
        records are removed regardless.

        Returns:
            Ids of the chunk records removed
        """
        self.get_file_status(file_id)
        chunks = self.chunk_repo.get_chunks_by_file(file_id)

        for chunk in chunks:
            backend = self.registry.get(chunk.backend_id)
            if backend is None:
                logger.warning(f"Backend {chunk.backend_id} not registered, leaving chunk {chunk.chunk_id}")
                continue
            if not await backend.delete(chunk):
                logger.warning(f"Backend {chunk.backend_id} failed to delete chunk {chunk.chunk_id}")

        with get_db_connection() as conn:
            try:
                chunk_ids = self.chunk_repo.delete_chunks(file_id, conn=conn)
                self.file_repo.delete_file(file_id, conn=conn)
                conn.commit()
            except Exception:
                conn.rollback()
                raise

        self.progress_tracker.discard(file_id)
        logger.info(f"Deleted file {file_id} and {len(chunk_ids)} chunks")
        return chunk_ids

    def health_report(self, file_id: str) -> FileHealthReport:
        self.get_file_status(file_id)
        chunks = self.chunk_repo.get_chunks_by_file(file_id)
        backends = self.registry.list_all()

        entries = [
            ChunkHealthEntry(
                chunk=chunk,
                health=self.health_classifier.classify(chunk),
                replication_plan=self.health_classifier.plan_replication(chunk, backends),
            )
            for chunk in chunks
        ]
        return FileHealthReport(
            file_id=file_id,
            chunks=entries,
            summary=self.health_classifier.summarize(chunks),
        )
