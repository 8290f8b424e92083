"""Exception hierarchy for the chunking pipeline."""

from typing import Optional


class ChunkingError(Exception):
    """
    Base exception class for all chunking pipeline errors.
    """
    pass


class InputError(ChunkingError):
    """
    Raised when an operation is called with invalid input
    (non-positive file size, empty or duplicated backend list).
    """
    pass


class NoBackendsError(InputError):
    """
    Raised when chunk distribution is requested without any active backend.
    """
    pass


class LimitExceededError(ChunkingError):
    """
    Raised when a file would need more chunks than the configured maximum.
    """

    def __init__(self, chunk_count: int, max_chunk_count: int):
        self.chunk_count = chunk_count
        self.max_chunk_count = max_chunk_count
        super().__init__(
            f"File too large: {chunk_count} chunks needed, maximum is {max_chunk_count}"
        )


class InternalError(ChunkingError):
    """
    Raised when planning produces an impossible layout.
    """
    pass


class MergeError(ChunkingError):
    """
    Raised when chunk payloads cannot be reassembled into a trusted file.
    """
    pass


class SequenceError(MergeError):
    """
    Raised when chunk orders have gaps, duplicates, or do not match the payload count.
    """
    pass


class SizeMismatchError(MergeError):
    """
    Raised when a payload or merged file length differs from its declared size.
    """

    def __init__(self, message: str, expected: int, actual: int, order: Optional[int] = None):
        self.expected = expected
        self.actual = actual
        self.order = order
        super().__init__(message)


class DigestMismatchError(MergeError):
    """
    Raised when a computed SHA-256 digest differs from the stored one.
    """

    def __init__(self, message: str, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(message)


class BackendUnavailableError(ChunkingError):
    """
    Raised when a chunk's backend cannot be resolved or refuses the operation.
    Scoped to a single chunk.
    """
    pass


class OperationCancelledError(ChunkingError):
    """
    Raised internally when a cancellation signal interrupts chunk extraction.
    """
    pass
