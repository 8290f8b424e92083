"""Stores chunk payloads in an S3-compatible bucket using path-style HTTP requests."""

from typing import Dict, Optional

import httpx

from common.constants import OBJECT_STORE_KEY_PREFIX
from common.logging_config import get_logger
from common.types import BackendDescriptor, Chunk
from backends.base import StorageBackend

logger = get_logger(__name__)

UNBOUNDED_SPACE = -1


class ObjectStoreBackend(StorageBackend):
    """
    Object keys are `chunks/{backend_id}/{file_id}/{order:06d}.chunk` under the
    bucket URL held in the descriptor's connection_info
    (for example `http://minio:9000/chunkvault`).

    Requests are unsigned; the bucket must accept them as configured.
    """

    def __init__(
        self,
        descriptor: BackendDescriptor,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
        quota_bytes: Optional[int] = None
    ):
        super().__init__(descriptor)
        self.bucket_url = descriptor.connection_info.rstrip("/")
        self.quota_bytes = quota_bytes
        self._client = httpx.AsyncClient(
            base_url=self.bucket_url,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_descriptor(cls, descriptor: BackendDescriptor) -> 'ObjectStoreBackend':
        return cls(descriptor)

    def object_key(self, chunk: Chunk) -> str:
        return f"{OBJECT_STORE_KEY_PREFIX}/{self.chunk_key(chunk)}"

    def _metadata_headers(self, chunk: Chunk) -> Dict[str, str]:
        return {
            "Content-Type": "application/octet-stream",
            "x-amz-meta-chunk-id": chunk.chunk_id,
            "x-amz-meta-file-id": chunk.file_id,
            "x-amz-meta-chunk-order": str(chunk.order),
            "x-amz-meta-checksum": chunk.digest,
        }

    async def store(self, chunk: Chunk, data: bytes) -> bool:
        key = self.object_key(chunk)
        try:
            response = await self._client.put(
                f"/{key}",
                content=data,
                headers=self._metadata_headers(chunk),
            )
        except httpx.HTTPError as e:
            logger.error(f"Failed to upload chunk {chunk.chunk_id} to {self.backend_id}: {e}")
            return False

        if not response.is_success:
            logger.error(
                f"Object store {self.backend_id} rejected chunk {chunk.chunk_id}: "
                f"HTTP {response.status_code}"
            )
            return False

        logger.debug(f"Uploaded chunk {chunk.chunk_id} to {self.bucket_url}/{key}")
        return True

    async def retrieve(self, chunk: Chunk) -> Optional[bytes]:
        response = await self._client.get(f"/{self.object_key(chunk)}")
        if response.status_code == 404:
            logger.warning(f"Chunk {chunk.chunk_id} not found in {self.backend_id}")
            return None
        response.raise_for_status()
        return response.content

    async def delete(self, chunk: Chunk) -> bool:
        try:
            response = await self._client.delete(f"/{self.object_key(chunk)}")
        except httpx.HTTPError as e:
            logger.error(f"Failed to delete chunk {chunk.chunk_id} from {self.backend_id}: {e}")
            return False
        return response.is_success or response.status_code == 404

    async def _head(self, chunk: Chunk) -> httpx.Response:
        return await self._client.head(f"/{self.object_key(chunk)}")

    async def exists(self, chunk: Chunk) -> bool:
        try:
            response = await self._head(chunk)
        except httpx.HTTPError as e:
            logger.error(f"Failed to check chunk {chunk.chunk_id} on {self.backend_id}: {e}")
            return False
        return response.status_code == 200

    async def size(self, chunk: Chunk) -> int:
        try:
            response = await self._head(chunk)
        except httpx.HTTPError as e:
            logger.error(f"Failed to stat chunk {chunk.chunk_id} on {self.backend_id}: {e}")
            return 0
        if response.status_code != 200:
            return 0
        return int(response.headers.get("content-length", 0))

    async def is_healthy(self) -> bool:
        try:
            response = await self._client.head("/")
        except httpx.HTTPError as e:
            logger.warning(f"Object store {self.backend_id} unreachable: {e}")
            return False
        return response.status_code < 500

    async def available_space(self) -> int:
        """Configured quota, or UNBOUNDED_SPACE when the bucket has none."""
        return self.quota_bytes if self.quota_bytes is not None else UNBOUNDED_SPACE

    async def close(self) -> None:
        await self._client.aclose()
