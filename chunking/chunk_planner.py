"""Size-adaptive chunk planning: chunk size, count and byte offsets for a file."""

from dataclasses import dataclass
from typing import List

from common.constants import (
    CHUNK_SIZE_TABLE,
    LARGE_FILE_CHUNK_SIZE_BYTES,
    MAX_CHUNK_COUNT,
)
from common.logging_config import get_logger
from common.types import ChunkDescriptor
from chunking.exceptions import InputError, InternalError, LimitExceededError

logger = get_logger(__name__)


@dataclass(frozen=True)
class ChunkPlanSummary:
    file_size: int
    chunk_size: int
    chunk_count: int
    last_chunk_size: int


def select_chunk_size(file_size: int) -> int:
    """
    Pick the chunk size class for a file from CHUNK_SIZE_TABLE.

    Args:
        file_size: Total file size in bytes

    Returns:
        Chunk size in bytes
    """
    for upper_bound, chunk_size in CHUNK_SIZE_TABLE:
        if file_size <= upper_bound:
            return chunk_size
    return LARGE_FILE_CHUNK_SIZE_BYTES


class ChunkPlanner:
    """
    Derives the ordered chunk layout of a file from its size alone.
    """

    def __init__(self, max_chunk_count: int = MAX_CHUNK_COUNT):
        if max_chunk_count < 1:
            raise ValueError("max_chunk_count must be at least 1")
        self.max_chunk_count = max_chunk_count

    def estimate(self, file_size: int) -> ChunkPlanSummary:
        """
        Compute chunk size, count and tail size without building descriptors.

        Raises:
            InputError: file_size is not positive
            LimitExceededError: chunk count exceeds the configured maximum
        """
        if file_size is None or file_size <= 0:
            raise InputError(f"File size must be positive, got {file_size}")

        chunk_size = select_chunk_size(file_size)
        chunk_count = -(-file_size // chunk_size)

        if chunk_count > self.max_chunk_count:
            raise LimitExceededError(chunk_count, self.max_chunk_count)

        last_chunk_size = file_size - (chunk_count - 1) * chunk_size
        return ChunkPlanSummary(
            file_size=file_size,
            chunk_size=chunk_size,
            chunk_count=chunk_count,
            last_chunk_size=last_chunk_size,
        )

    def plan_chunks(self, file_size: int) -> List[ChunkDescriptor]:
        """
        Build the ordered descriptors covering [0, file_size) without gaps or overlaps.

        Args:
            file_size: Total file size in bytes

        Returns:
            Descriptors with orders 0..N-1 and empty digests

        Raises:
            InputError: file_size is not positive
            LimitExceededError: chunk count exceeds the configured maximum
            InternalError: the tail chunk would be empty
        """
        summary = self.estimate(file_size)

        descriptors = []
        offset = 0
        for order in range(summary.chunk_count):
            size = min(summary.chunk_size, file_size - offset)
            if size <= 0:
                raise InternalError(
                    f"Chunk {order} of file size {file_size} has non-positive size {size}"
                )
            descriptors.append(ChunkDescriptor(order=order, size=size, offset=offset))
            offset += size

        logger.debug(
            f"Planned {summary.chunk_count} chunks of {summary.chunk_size} bytes "
            f"for {file_size} bytes (last chunk {summary.last_chunk_size} bytes)"
        )
        return descriptors


def plan_chunks(file_size: int, max_chunk_count: int = MAX_CHUNK_COUNT) -> List[ChunkDescriptor]:
    """Plan chunks with a one-off planner."""
    return ChunkPlanner(max_chunk_count=max_chunk_count).plan_chunks(file_size)
