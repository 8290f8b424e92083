"""Pydantic schemas for file operation endpoints."""

from typing import Dict, List, Optional
from pydantic import BaseModel

from common.types import FileRecord


class ChunkResultResponse(BaseModel):
    """Per-chunk outcome of a store operation."""
    chunk_id: str
    order: int
    size: int
    digest: str
    backend_id: str
    success: bool
    error: Optional[str] = None
    cancelled: bool = False
    processing_duration: float


class FileMetadataResponse(BaseModel):
    """Response model for file metadata."""
    file_id: str
    name: str
    size: int
    digest: str
    status: str
    content_type: str
    description: Optional[str] = None
    properties: Dict[str, str] = {}
    created_at: str

    @classmethod
    def from_record(cls, file: FileRecord) -> 'FileMetadataResponse':
        return cls(
            file_id=file.file_id,
            name=file.name,
            size=file.size,
            digest=file.digest,
            status=file.status.value,
            content_type=file.metadata.content_type,
            description=file.metadata.description,
            properties=file.metadata.properties,
            created_at=file.created_at.isoformat(),
        )


class StoreFileResponse(BaseModel):
    """Response model for file upload."""
    file: FileMetadataResponse
    chunk_count: int
    success: bool
    chunks: List[ChunkResultResponse]


class ListFilesResponse(BaseModel):
    """Response model for file listing."""
    files: List[FileMetadataResponse]


class DeleteFileResponse(BaseModel):
    """Response model for file deletion."""
    file_id: str
    deleted_chunk_count: int


class ProgressResponse(BaseModel):
    """Response model for processing progress."""
    file_id: str
    total_chunks: int
    processed_chunks: int
    succeeded_chunks: int
    failed_chunks: int
    total_bytes: int
    bytes_processed: int
    percent_complete: float
    elapsed_seconds: float
    estimated_remaining_seconds: Optional[float] = None
    finished: bool


class ReplicationPlanResponse(BaseModel):
    """Proposed replication of one chunk."""
    source_backend_id: str
    target_backend_ids: List[str]
    priority: str
    estimated_duration_seconds: float


class ChunkHealthResponse(BaseModel):
    """Health of one chunk."""
    chunk_id: str
    order: int
    backend_id: str
    status: str
    health: str
    replication_plan: Optional[ReplicationPlanResponse] = None


class FileHealthResponse(BaseModel):
    """Response model for a file health report."""
    file_id: str
    healthy: bool
    summary: Dict[str, int]
    chunks: List[ChunkHealthResponse]
