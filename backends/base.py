"""StorageBackend capability implemented by every backend kind."""

from abc import ABC, abstractmethod
from typing import Optional

from common.constants import CHUNK_FILE_SUFFIX
from common.types import BackendDescriptor, Chunk


def chunk_relative_key(backend_id: str, file_id: str, order: int) -> str:
    """
    Backend-relative chunk key, `{backend_id}/{file_id}/{order:06d}.chunk`.
    """
    return f"{backend_id}/{file_id}/{order:06d}{CHUNK_FILE_SUFFIX}"


class StorageBackend(ABC):
    """
    Async storage operations for chunk payloads on one backend.

    Chunk keys always use this backend's id, so a chunk can be copied to
    another backend without changing the chunk record.

    Only `retrieve` raises on IO or transport failure; the other operations
    log the failure and return False or 0.
    """

    def __init__(self, descriptor: BackendDescriptor):
        self.descriptor = descriptor

    @property
    def backend_id(self) -> str:
        return self.descriptor.backend_id

    def chunk_key(self, chunk: Chunk) -> str:
        return chunk_relative_key(self.backend_id, chunk.file_id, chunk.order)

    @abstractmethod
    async def store(self, chunk: Chunk, data: bytes) -> bool:
        """Persist a chunk payload. Returns False when the backend rejects it."""

    @abstractmethod
    async def retrieve(self, chunk: Chunk) -> Optional[bytes]:
        """Read a chunk payload, None when absent."""

    @abstractmethod
    async def delete(self, chunk: Chunk) -> bool:
        """Remove a chunk payload. Deleting an absent chunk succeeds."""

    @abstractmethod
    async def exists(self, chunk: Chunk) -> bool:
        ...

    @abstractmethod
    async def size(self, chunk: Chunk) -> int:
        """Stored payload size in bytes, 0 when absent."""

    @abstractmethod
    async def is_healthy(self) -> bool:
        ...

    @abstractmethod
    async def available_space(self) -> int:
        ...

    async def close(self) -> None:
        """Release network resources held by the backend."""
        return None
