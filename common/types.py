"""Shared data type definitions (ChunkDescriptor, Chunk, FileRecord, BackendDescriptor, etc.)."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional


class ChunkStatus(str, Enum):
    PENDING = "Pending"
    STORING = "Storing"
    STORED = "Stored"
    FAILED = "Failed"
    DELETED = "Deleted"


class FileStatus(str, Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    AVAILABLE = "Available"
    FAILED = "Failed"


class HealthStatus(str, Enum):
    HEALTHY = "Healthy"
    DEGRADED = "Degraded"
    CORRUPTED = "Corrupted"
    MISSING = "Missing"
    UNKNOWN = "Unknown"


class ReplicationPriority(int, Enum):
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4


@dataclass(frozen=True)
class ChunkDescriptor:
    """
    A planned byte range of a source file. Transient, never persisted.
    """
    order: int
    size: int
    offset: int
    digest: str = ""


@dataclass(frozen=True)
class ChunkAssignment:
    """
    A planned chunk paired with the backend it will be stored on.
    """
    descriptor: ChunkDescriptor
    backend_id: str

    @property
    def order(self) -> int:
        return self.descriptor.order


@dataclass
class Chunk:
    """
    Persisted chunk record owned by a file.
    """
    chunk_id: str
    file_id: str
    order: int
    size: int
    digest: str
    backend_id: str
    status: ChunkStatus = ChunkStatus.PENDING


@dataclass
class FileMetadata:
    content_type: str = "application/octet-stream"
    description: Optional[str] = None
    properties: Dict[str, str] = field(default_factory=dict)


@dataclass
class FileRecord:
    """
    Persisted file record. `digest` is the whole-file SHA-256.
    """
    file_id: str
    name: str
    size: int
    digest: str = ""
    status: FileStatus = FileStatus.PENDING
    metadata: FileMetadata = field(default_factory=FileMetadata)
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass(frozen=True)
class BackendDescriptor:
    backend_id: str
    name: str
    kind: str
    connection_info: str
    is_active: bool = True


@dataclass
class ChunkProcessingResult:
    chunk_id: str
    order: int
    size: int
    digest: str = ""
    backend_id: str = ""
    success: bool = False
    error: Optional[str] = None
    processing_duration: float = 0.0
    cancelled: bool = False


@dataclass(frozen=True)
class ReplicationPlan:
    chunk_id: str
    source_backend_id: str
    target_backend_ids: List[str]
    priority: ReplicationPriority
    estimated_duration: timedelta
