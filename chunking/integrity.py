"""SHA-256 digest calculation and chunk/file integrity validation."""

import hashlib
from typing import BinaryIO, List, Optional, Sequence

from common.constants import STREAM_PIECE_SIZE_BYTES
from common.logging_config import get_logger
from common.types import Chunk, FileRecord

logger = get_logger(__name__)


def compute_digest(data: bytes) -> str:
    """
    Compute SHA-256 digest for given data.

    Args:
        data: Bytes to hash

    Returns:
        Lowercase hexadecimal SHA-256 digest
    """
    if data is None:
        raise TypeError("data must not be None")
    return hashlib.sha256(data).hexdigest()


def compute_stream_digest(stream: BinaryIO, piece_size: int = STREAM_PIECE_SIZE_BYTES) -> str:
    """
    Compute SHA-256 digest of a binary stream, reading it piece by piece.

    Args:
        stream: Readable binary stream, consumed from its current position
        piece_size: Number of bytes read per call

    Returns:
        Lowercase hexadecimal SHA-256 digest
    """
    if stream is None:
        raise TypeError("stream must not be None")

    calculator = IncrementalDigest()
    while True:
        piece = stream.read(piece_size)
        if not piece:
            break
        calculator.update(piece)
    return calculator.finalize()


def digests_match(expected: Optional[str], actual: Optional[str]) -> bool:
    """Case-insensitive digest comparison. Empty digests never match."""
    if not expected or not actual:
        return False
    return expected.lower() == actual.lower()


def verify_digest(data: bytes, expected: str) -> bool:
    """
    Verify that data matches an expected digest.

    Args:
        data: Bytes to verify
        expected: Expected SHA-256 digest (hex, any case)

    Returns:
        True if digest matches, False otherwise
    """
    return digests_match(expected, compute_digest(data))


class IncrementalDigest:
    """
    Calculate SHA-256 digest incrementally for streaming data.

    Usage:
        calculator = IncrementalDigest()
        calculator.update(piece1)
        calculator.update(piece2)
        digest = calculator.finalize()
    """

    def __init__(self):
        self._hasher = hashlib.sha256()
        self._finalized = False
        self.bytes_processed = 0

    def update(self, data: bytes) -> None:
        if self._finalized:
            raise ValueError("Cannot update after finalization")
        self._hasher.update(data)
        self.bytes_processed += len(data)

    def finalize(self) -> str:
        self._finalized = True
        return self._hasher.hexdigest()

    def reset(self) -> None:
        self._hasher = hashlib.sha256()
        self._finalized = False
        self.bytes_processed = 0


def validate_chunk_sequence(chunks: Sequence[Chunk]) -> bool:
    """
    Check that chunk orders form exactly 0..N-1 once sorted.

    Args:
        chunks: Chunks in any order

    Returns:
        True when there are no gaps or duplicates
    """
    if chunks is None:
        raise TypeError("chunks must not be None")

    ordered = sorted(chunk.order for chunk in chunks)
    return all(order == index for index, order in enumerate(ordered))


def validate_chunk(chunk: Chunk, payload: bytes) -> bool:
    """
    Check one payload against its chunk's declared size and digest.
    """
    if chunk is None:
        raise TypeError("chunk must not be None")
    if payload is None:
        raise TypeError("payload must not be None")

    if len(payload) != chunk.size:
        return False
    return verify_digest(payload, chunk.digest)


def validate_file(file: FileRecord, chunks: Sequence[Chunk], payloads: Sequence[bytes]) -> bool:
    """
    Validate a complete set of chunk payloads against a file record.

    Payloads are paired with chunks by position. Mismatches return False;
    missing arguments raise TypeError.

    Args:
        file: File record carrying the expected total size
        chunks: Chunk records
        payloads: Retrieved chunk payloads, same cardinality as chunks

    Returns:
        True if counts, sequence, sizes and every digest are consistent
    """
    if file is None:
        raise TypeError("file must not be None")
    if chunks is None:
        raise TypeError("chunks must not be None")
    if payloads is None:
        raise TypeError("payloads must not be None")

    chunk_list: List[Chunk] = list(chunks)
    payload_list: List[bytes] = list(payloads)

    if len(chunk_list) != len(payload_list):
        logger.warning(
            f"Integrity check failed for file {file.file_id}: "
            f"{len(chunk_list)} chunks but {len(payload_list)} payloads"
        )
        return False

    if not validate_chunk_sequence(chunk_list):
        logger.warning(f"Integrity check failed for file {file.file_id}: chunk order has gaps")
        return False

    total_size = sum(chunk.size for chunk in chunk_list)
    if total_size != file.size:
        logger.warning(
            f"Integrity check failed for file {file.file_id}: "
            f"chunk sizes sum to {total_size}, expected {file.size}"
        )
        return False

    for chunk, payload in zip(chunk_list, payload_list):
        if payload is None:
            raise TypeError(f"payload for chunk {chunk.order} must not be None")
        if not validate_chunk(chunk, payload):
            logger.warning(
                f"Integrity check failed for file {file.file_id}: chunk {chunk.order} "
                f"does not match its declared size or digest"
            )
            return False

    return True
