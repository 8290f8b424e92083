"""Pydantic schemas for storage backend endpoints."""

from typing import List
from pydantic import BaseModel, Field

from common.types import BackendDescriptor


class RegisterBackendRequest(BaseModel):
    """Request model for registering a storage backend."""
    name: str = Field(..., min_length=1)
    kind: str = Field(..., min_length=1)
    connection_info: str = Field(..., min_length=1)


class BackendResponse(BaseModel):
    """Response model for a storage backend."""
    backend_id: str
    name: str
    kind: str
    connection_info: str
    is_active: bool

    @classmethod
    def from_descriptor(cls, descriptor: BackendDescriptor) -> 'BackendResponse':
        return cls(
            backend_id=descriptor.backend_id,
            name=descriptor.name,
            kind=descriptor.kind,
            connection_info=descriptor.connection_info,
            is_active=descriptor.is_active,
        )


class ListBackendsResponse(BaseModel):
    """Response model for backend listing."""
    backends: List[BackendResponse]
