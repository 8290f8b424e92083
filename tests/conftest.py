"""Shared pytest fixtures for all tests."""

import asyncio
import tempfile
from pathlib import Path
from typing import Dict, Generator, Iterable, Optional

import pytest

from backends.base import StorageBackend
from backends.registry import BackendRegistry
from common.types import BackendDescriptor, Chunk
from controller.database import init_database


class MemoryBackend(StorageBackend):
    """
    In-memory StorageBackend used to drive the pipeline in tests.

    Orders listed in `reject_orders` make store() return False, orders in
    `raise_orders` make it raise. Tracks the peak number of concurrent stores.
    """

    def __init__(
        self,
        descriptor: BackendDescriptor,
        reject_orders: Iterable[int] = (),
        raise_orders: Iterable[int] = (),
        delay: float = 0.0,
        healthy: bool = True
    ):
        super().__init__(descriptor)
        self.objects: Dict[str, bytes] = {}
        self.reject_orders = set(reject_orders)
        self.raise_orders = set(raise_orders)
        self.delay = delay
        self.healthy = healthy
        self.stored_orders = []
        self.active_stores = 0
        self.max_active_stores = 0

    async def store(self, chunk: Chunk, data: bytes) -> bool:
        self.active_stores += 1
        self.max_active_stores = max(self.max_active_stores, self.active_stores)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if chunk.order in self.raise_orders:
                raise RuntimeError(f"disk error on chunk {chunk.order}")
            if chunk.order in self.reject_orders:
                return False
            self.objects[self.chunk_key(chunk)] = bytes(data)
            self.stored_orders.append(chunk.order)
            return True
        finally:
            self.active_stores -= 1

    async def retrieve(self, chunk: Chunk) -> Optional[bytes]:
        return self.objects.get(self.chunk_key(chunk))

    async def delete(self, chunk: Chunk) -> bool:
        self.objects.pop(self.chunk_key(chunk), None)
        return True

    async def exists(self, chunk: Chunk) -> bool:
        return self.chunk_key(chunk) in self.objects

    async def size(self, chunk: Chunk) -> int:
        return len(self.objects.get(self.chunk_key(chunk), b""))

    async def is_healthy(self) -> bool:
        return self.healthy

    async def available_space(self) -> int:
        return 1 << 30


def make_descriptor(backend_id: str, kind: str = "Memory", is_active: bool = True) -> BackendDescriptor:
    return BackendDescriptor(
        backend_id=backend_id,
        name=f"{backend_id}-name",
        kind=kind,
        connection_info=f"memory://{backend_id}",
        is_active=is_active,
    )


def sample_bytes(size: int) -> bytes:
    """Deterministic non-repeating-per-chunk payload."""
    return bytes((i * 31 + i // 251) % 256 for i in range(size))


@pytest.fixture
def memory_backends():
    return [MemoryBackend(make_descriptor(backend_id)) for backend_id in ("A", "B", "C")]


@pytest.fixture
def memory_registry(memory_backends) -> BackendRegistry:
    registry = BackendRegistry()
    for backend in memory_backends:
        registry.register(backend)
    return registry


@pytest.fixture
def test_db(monkeypatch) -> Generator[Path, None, None]:
    """
    Create a temporary test database for each test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        monkeypatch.setattr("controller.database.DATABASE_PATH", str(db_path))
        monkeypatch.setattr("controller.config.DATABASE_PATH", str(db_path))
        init_database()
        yield db_path
