"""Pydantic schemas for API requests and responses."""

from controller.schemas.backends import (
    RegisterBackendRequest,
    BackendResponse,
    ListBackendsResponse
)
from controller.schemas.files import (
    ChunkResultResponse,
    FileMetadataResponse,
    StoreFileResponse,
    ListFilesResponse,
    DeleteFileResponse,
    ProgressResponse,
    ReplicationPlanResponse,
    ChunkHealthResponse,
    FileHealthResponse
)
from controller.schemas.common import ErrorResponse

__all__ = [
    "RegisterBackendRequest",
    "BackendResponse",
    "ListBackendsResponse",
    "ChunkResultResponse",
    "FileMetadataResponse",
    "StoreFileResponse",
    "ListFilesResponse",
    "DeleteFileResponse",
    "ProgressResponse",
    "ReplicationPlanResponse",
    "ChunkHealthResponse",
    "FileHealthResponse",
    "ErrorResponse"
]
