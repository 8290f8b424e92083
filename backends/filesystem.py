"""Stores chunk payloads as files under a local directory tree."""

import asyncio
import os
import shutil
from pathlib import Path
from typing import Optional

from common.logging_config import get_logger
from common.types import BackendDescriptor, Chunk
from backends.base import StorageBackend

logger = get_logger(__name__)


class FileSystemBackend(StorageBackend):
    """
    Chunk files live at `{root}/{backend_id}/{file_id}/{order:06d}.chunk`.

    Blocking disk IO is pushed to a worker thread so the event loop keeps
    dispatching other chunks.
    """

    def __init__(self, descriptor: BackendDescriptor, root: Optional[str] = None):
        super().__init__(descriptor)
        self.root = Path(root or descriptor.connection_info)

    @classmethod
    def from_descriptor(
        cls,
        descriptor: BackendDescriptor,
        storage_root: Optional[str] = None
    ) -> 'FileSystemBackend':
        """
        Build a backend rooted at `connection_info`. A relative path is
        resolved against `storage_root` when one is given.
        """
        root = Path(descriptor.connection_info)
        if storage_root and not root.is_absolute():
            root = Path(storage_root) / root
        return cls(descriptor, root=str(root))

    def get_chunk_path(self, chunk: Chunk) -> Path:
        return self.root / self.chunk_key(chunk)

    def _write_chunk(self, chunk: Chunk, data: bytes) -> bool:
        filepath = self.get_chunk_path(chunk)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = filepath.with_suffix(filepath.suffix + ".tmp")
        tmp_path.write_bytes(data)
        os.replace(tmp_path, filepath)
        return filepath.stat().st_size == len(data)

    async def store(self, chunk: Chunk, data: bytes) -> bool:
        try:
            written = await asyncio.to_thread(self._write_chunk, chunk, data)
        except OSError as e:
            logger.error(f"Failed to store chunk {chunk.chunk_id} on {self.backend_id}: {e}")
            return False

        if not written:
            logger.error(f"Chunk {chunk.chunk_id} size mismatch after write on {self.backend_id}")
            return False

        logger.debug(f"Stored chunk {chunk.chunk_id} at {self.get_chunk_path(chunk)} ({len(data)} bytes)")
        return True

    async def retrieve(self, chunk: Chunk) -> Optional[bytes]:
        filepath = self.get_chunk_path(chunk)
        try:
            return await asyncio.to_thread(filepath.read_bytes)
        except FileNotFoundError:
            logger.warning(f"Chunk file not found: {filepath}")
            return None

    def _delete_chunk(self, chunk: Chunk) -> bool:
        filepath = self.get_chunk_path(chunk)
        if filepath.exists():
            filepath.unlink()
            parent = filepath.parent
            if parent.exists() and not any(parent.iterdir()):
                parent.rmdir()
        return True

    async def delete(self, chunk: Chunk) -> bool:
        try:
            return await asyncio.to_thread(self._delete_chunk, chunk)
        except OSError as e:
            logger.error(f"Failed to delete chunk {chunk.chunk_id} from {self.backend_id}: {e}")
            return False

    async def exists(self, chunk: Chunk) -> bool:
        return await asyncio.to_thread(self.get_chunk_path(chunk).exists)

    async def size(self, chunk: Chunk) -> int:
        filepath = self.get_chunk_path(chunk)
        try:
            stat = await asyncio.to_thread(filepath.stat)
        except FileNotFoundError:
            return 0
        except OSError as e:
            logger.error(f"Failed to stat chunk {chunk.chunk_id} on {self.backend_id}: {e}")
            return 0
        return stat.st_size

    def _probe(self) -> bool:
        probe_dir = self.root / self.backend_id
        probe_dir.mkdir(parents=True, exist_ok=True)
        probe_file = probe_dir / ".health_probe"
        probe_file.write_bytes(b"ok")
        probe_file.unlink()
        return True

    async def is_healthy(self) -> bool:
        try:
            return await asyncio.to_thread(self._probe)
        except OSError as e:
            logger.warning(f"Backend {self.backend_id} failed health probe: {e}")
            return False

    async def available_space(self) -> int:
        target = self.root if self.root.exists() else self.root.parent
        try:
            usage = await asyncio.to_thread(shutil.disk_usage, target)
        except OSError as e:
            logger.error(f"Failed to get available space for {self.backend_id}: {e}")
            return 0
        return usage.free
