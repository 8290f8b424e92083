"""Tests for the file service store/retrieve/delete flows."""

import asyncio
import io

import pytest

from common.types import ChunkStatus, FileMetadata, FileStatus, HealthStatus
from backends.registry import BackendRegistry
from chunking.exceptions import InputError, NoBackendsError
from chunking.integrity import compute_digest
from chunking.load_tracker import BackendLoadTracker
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
from controller.services.file_service import FileService
from conftest import MemoryBackend, make_descriptor, sample_bytes


@pytest.fixture
def service(test_db, memory_registry):
    return FileService(registry=memory_registry)


async def store(service, data, name="data.bin", metadata=None):
    return await service.store_file(name, io.BytesIO(data), len(data), metadata=metadata)


class BrokenReadStream(io.BytesIO):
    """BytesIO whose reads raise once they start at or past `fail_offset`."""

    def __init__(self, data: bytes, fail_offset: int):
        super().__init__(data)
        self.fail_offset = fail_offset

    def read(self, size=-1):
        if self.tell() >= self.fail_offset:
            raise RuntimeError("transport reset")
        return super().read(size)


class StatusRecordingBackend(MemoryBackend):
    """Records the persisted status of each chunk row at the moment its store starts."""

    def __init__(self, descriptor):
        super().__init__(descriptor)
        self.statuses_seen = {}

    async def store(self, chunk, data):
        rows = {c.chunk_id: c.status for c in ChunkRepository.get_chunks_by_file(chunk.file_id)}
        self.statuses_seen[chunk.order] = rows.get(chunk.chunk_id)
        return await super().store(chunk, data)


class SlowRetrieveBackend(MemoryBackend):
    """Chunk 0 is missing, every other retrieve blocks until cancelled."""

    def __init__(self, descriptor):
        super().__init__(descriptor)
        self.cancelled_retrieves = 0

    async def retrieve(self, chunk):
        if chunk.order == 0:
            return None
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            self.cancelled_retrieves += 1
            raise
        return await super().retrieve(chunk)


def single_backend_service(backend):
    registry = BackendRegistry()
    registry.register(backend)
    return FileService(registry=registry)


class TestStoreFile:
    """Test the store flow."""

    @pytest.mark.asyncio
    async def test_store_persists_file_and_chunks(self, service):
        data = sample_bytes(500_000)
        metadata = FileMetadata(content_type="text/plain", properties={"team": "ops"})

        result = await store(service, data, metadata=metadata)

        assert result.success
        assert result.file.status == FileStatus.AVAILABLE
        assert result.file.digest == compute_digest(data)

        persisted = FileRepository.get_by_id(result.file.file_id)
        assert persisted.status == FileStatus.AVAILABLE
        assert persisted.digest == compute_digest(data)
        assert persisted.metadata.properties == {"team": "ops"}

        chunks = ChunkRepository.get_chunks_by_file(result.file.file_id)
        assert len(chunks) == 8
        assert all(c.status == ChunkStatus.STORED for c in chunks)
        assert {c.backend_id for c in chunks} == {"A", "B", "C"}

    @pytest.mark.asyncio
    async def test_partial_failure_marks_file_failed(self, test_db):
        flaky = MemoryBackend(make_descriptor("A"), reject_orders={1})
        registry = BackendRegistry()
        registry.register(flaky)
        service = FileService(registry=registry)

        result = await store(service, sample_bytes(3 * 65_536))

        assert not result.success
        assert FileRepository.get_by_id(result.file.file_id).status == FileStatus.FAILED
        statuses = [c.status for c in ChunkRepository.get_chunks_by_file(result.file.file_id)]
        assert statuses == [ChunkStatus.STORED, ChunkStatus.FAILED, ChunkStatus.STORED]

    @pytest.mark.asyncio
    async def test_planning_error_leaves_no_record(self, service):
        with pytest.raises(InputError):
            await store(service, b"")

        assert service.list_files() == []

    @pytest.mark.asyncio
    async def test_no_backends(self, test_db):
        service = FileService(registry=BackendRegistry())

        with pytest.raises(NoBackendsError):
            await store(service, b"abc")

        assert service.list_files() == []

    @pytest.mark.asyncio
    async def test_progress_available_after_store(self, service):
        result = await store(service, sample_bytes(100_000))

        snapshot = service.get_progress(result.file.file_id)

        assert snapshot.finished
        assert snapshot.succeeded_chunks == 2

    @pytest.mark.asyncio
    async def test_read_error_marks_file_failed(self, test_db):
        backend = MemoryBackend(make_descriptor("A"))
        service = single_backend_service(backend)
        data = sample_bytes(3 * 65_536)

        result = await service.store_file("data.bin", BrokenReadStream(data, 65_536), len(data))

        assert not result.success
        assert FileRepository.get_by_id(result.file.file_id).status == FileStatus.FAILED
        statuses = [c.status for c in ChunkRepository.get_chunks_by_file(result.file.file_id)]
        assert statuses == [ChunkStatus.STORED, ChunkStatus.FAILED, ChunkStatus.FAILED]
        assert backend.stored_orders == [0]

    @pytest.mark.asyncio
    async def test_aborted_store_leaves_nothing_behind(self, test_db):
        backend = MemoryBackend(make_descriptor("A"), delay=0.05)
        service = single_backend_service(backend)
        service.processor.parallelism = 1
        data = sample_bytes(3 * 65_536)

        task = asyncio.create_task(service.store_file("data.bin", io.BytesIO(data), len(data)))
        while backend.active_stores == 0:
            await asyncio.sleep(0.001)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert backend.stored_orders == [0]
        assert backend.objects == {}
        assert service.list_files() == []

    @pytest.mark.asyncio
    async def test_chunk_rows_are_storing_during_store(self, test_db):
        backend = StatusRecordingBackend(make_descriptor("A"))
        service = single_backend_service(backend)

        result = await store(service, sample_bytes(2 * 65_536))

        assert backend.statuses_seen == {0: ChunkStatus.STORING, 1: ChunkStatus.STORING}
        statuses = [c.status for c in ChunkRepository.get_chunks_by_file(result.file.file_id)]
        assert statuses == [ChunkStatus.STORED, ChunkStatus.STORED]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["", "a/b.txt", "what?.txt", "CON", "nul.txt", "x" * 256])
    async def test_invalid_name_rejected(self, service, name):
        with pytest.raises(InputError):
            await store(service, b"content", name=name)

        assert service.list_files() == []

    @pytest.mark.asyncio
    async def test_forbidden_extension_rejected(self, service, memory_backends):
        with pytest.raises(InputError):
            await store(service, b"content", name="setup.EXE")

        assert all(not b.objects for b in memory_backends)

    @pytest.mark.asyncio
    async def test_invalid_content_type_rejected(self, service):
        with pytest.raises(InputError):
            await store(service, b"content", metadata=FileMetadata(content_type="text plain"))

        assert service.list_files() == []

    @pytest.mark.asyncio
    async def test_file_over_size_limit_rejected(self, service):
        service.max_file_size = 100

        with pytest.raises(InputError):
            await store(service, sample_bytes(101))

        assert service.list_files() == []


class TestRetrieveFile:
    """Test the retrieve flow."""

    @pytest.mark.asyncio
    async def test_round_trip(self, service):
        data = sample_bytes(1_500_000)
        stored = await store(service, data)

        file, retrieved = await service.retrieve_file(stored.file.file_id)

        assert retrieved == data
        assert file.name == "data.bin"

    @pytest.mark.asyncio
    async def test_corrupted_payload(self, service, memory_backends):
        stored = await store(service, sample_bytes(200_000))
        backend = next(b for b in memory_backends if b.objects)
        key = next(iter(backend.objects))
        corrupted = bytearray(backend.objects[key])
        corrupted[0] ^= 0xFF
        backend.objects[key] = bytes(corrupted)

        with pytest.raises(ChecksumMismatchError):
            await service.retrieve_file(stored.file.file_id)

    @pytest.mark.asyncio
    async def test_missing_payload(self, service, memory_backends):
        stored = await store(service, sample_bytes(200_000))
        for backend in memory_backends:
            backend.objects.clear()

        with pytest.raises(BackendUnavailableError):
            await service.retrieve_file(stored.file.file_id)

    @pytest.mark.asyncio
    async def test_backend_gone(self, service, memory_registry):
        stored = await store(service, sample_bytes(200_000))
        for backend_id in ("A", "B", "C"):
            await memory_registry.remove(backend_id)

        with pytest.raises(BackendNotFoundError):
            await service.retrieve_file(stored.file.file_id)

    @pytest.mark.asyncio
    async def test_failed_fetch_cancels_remaining_fetches(self, test_db):
        backend = SlowRetrieveBackend(make_descriptor("A"))
        service = single_backend_service(backend)
        stored = await store(service, sample_bytes(3 * 65_536))

        with pytest.raises(BackendUnavailableError):
            await asyncio.wait_for(service.retrieve_file(stored.file.file_id), timeout=5)

        assert backend.cancelled_retrieves == 2

    @pytest.mark.asyncio
    async def test_failed_file_not_ready(self, test_db):
        registry = BackendRegistry()
        registry.register(MemoryBackend(make_descriptor("A"), reject_orders={0}))
        service = FileService(registry=registry)
        stored = await store(service, sample_bytes(1000))

        with pytest.raises(FileNotReadyError):
            await service.retrieve_file(stored.file.file_id)

    @pytest.mark.asyncio
    async def test_unknown_file(self, service):
        with pytest.raises(FileNotFoundError):
            await service.retrieve_file("missing")


class TestDeleteFile:
    """Test the delete flow."""

    @pytest.mark.asyncio
    async def test_delete_removes_payloads_and_records(self, service, memory_backends):
        stored = await store(service, sample_bytes(300_000))

        chunk_ids = await service.delete_file(stored.file.file_id)

        assert len(chunk_ids) == 5
        assert all(not b.objects for b in memory_backends)
        assert FileRepository.get_by_id(stored.file.file_id) is None
        assert ChunkRepository.get_chunks_by_file(stored.file.file_id) == []
        assert service.get_progress(stored.file.file_id) is None

    @pytest.mark.asyncio
    async def test_delete_unknown(self, service):
        with pytest.raises(FileNotFoundError):
            await service.delete_file("missing")


class TestHealthReport:
    """Test per-file health reports."""

    @pytest.mark.asyncio
    async def test_healthy_file(self, service):
        stored = await store(service, sample_bytes(200_000))

        report = service.health_report(stored.file.file_id)

        assert report.is_healthy
        assert report.summary[HealthStatus.HEALTHY] == 4
        assert all(entry.replication_plan is None for entry in report.chunks)

    @pytest.mark.asyncio
    async def test_failed_chunk_gets_plan(self, test_db):
        flaky = MemoryBackend(make_descriptor("A"), reject_orders={0})
        registry = BackendRegistry()
        registry.register(flaky)
        registry.register(MemoryBackend(make_descriptor("B", is_active=False)))
        service = FileService(registry=registry)
        stored = await service.store_file(
            "x.bin", io.BytesIO(sample_bytes(1000)), 1000
        )
        registry.set_active("B", True)

        report = service.health_report(stored.file.file_id)

        entry = report.chunks[0]
        assert not report.is_healthy
        assert entry.health == HealthStatus.CORRUPTED
        assert entry.replication_plan.target_backend_ids == ["B"]

    def test_store_and_health_share_load_tracker(self, test_db):
        tracker = BackendLoadTracker()
        service = FileService(registry=BackendRegistry(), load_tracker=tracker)

        assert service.load_tracker is tracker
        assert service.processor.load_tracker is tracker
        assert service.health_classifier.load_tracker is tracker

    @pytest.mark.asyncio
    async def test_loaded_backend_ranked_lower(self, test_db):
        registry = BackendRegistry()
        registry.register(MemoryBackend(make_descriptor("A"), reject_orders={0}))
        registry.register(MemoryBackend(make_descriptor("B", is_active=False)))
        registry.register(MemoryBackend(make_descriptor("C", is_active=False)))
        service = FileService(registry=registry)
        stored = await service.store_file(
            "x.bin", io.BytesIO(sample_bytes(1000)), 1000
        )
        registry.set_active("B", True)
        registry.set_active("C", True)

        idle_plan = service.health_report(stored.file.file_id).chunks[0].replication_plan
        for _ in range(3):
            service.load_tracker.acquire("B")
        busy_plan = service.health_report(stored.file.file_id).chunks[0].replication_plan

        assert idle_plan.target_backend_ids == ["B", "C"]
        assert busy_plan.target_backend_ids == ["C", "B"]


class TestBackends:
    """Test backend registration through the service."""

    def test_register_and_reload(self, test_db, tmp_path):
        service = FileService(registry=BackendRegistry())

        descriptor = service.register_backend("local", "FileSystem", str(tmp_path))

        assert BackendRepository.get_by_id(descriptor.backend_id) == descriptor

        fresh = FileService(registry=BackendRegistry())
        assert fresh.load_backends() == 1
        assert fresh.registry.get(descriptor.backend_id) is not None

    def test_invalid_kind(self, test_db):
        service = FileService(registry=BackendRegistry())

        with pytest.raises(InvalidBackendError):
            service.register_backend("tape", "Tape", "/dev/st0")

        assert BackendRepository.list_all() == []

    @pytest.mark.asyncio
    async def test_check_backend_health(self, test_db, tmp_path):
        service = FileService(registry=BackendRegistry())
        descriptor = service.register_backend("local", "FileSystem", str(tmp_path))

        checked = await service.check_backend_health(descriptor.backend_id)

        assert checked.is_active
        with pytest.raises(BackendNotFoundError):
            await service.check_backend_health("missing")
