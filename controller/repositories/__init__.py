"""Repository layer for data access."""

from controller.repositories.backend_repository import BackendRepository
from controller.repositories.file_repository import FileRepository
from controller.repositories.chunk_repository import ChunkRepository

__all__ = [
    "BackendRepository",
    "FileRepository",
    "ChunkRepository",
]
