"""Reassembles chunk payloads into the original file."""

from typing import BinaryIO, List, Optional, Sequence, Tuple

from common.logging_config import get_logger
from common.types import Chunk, FileRecord
from chunking.exceptions import DigestMismatchError, SequenceError, SizeMismatchError
from chunking.integrity import IncrementalDigest, compute_digest, digests_match

logger = get_logger(__name__)


def _ordered_pairs(chunks: Sequence[Chunk], payloads: Sequence[bytes]) -> List[Tuple[Chunk, bytes]]:
    """
    Pair payloads with chunks by position, check the sequence and sizes,
    and return the pairs sorted by chunk order.
    """
    if chunks is None:
        raise TypeError("chunks must not be None")
    if payloads is None:
        raise TypeError("payloads must not be None")

    chunk_list = list(chunks)
    payload_list = list(payloads)

    if len(chunk_list) != len(payload_list):
        raise SequenceError(
            f"Got {len(payload_list)} payloads for {len(chunk_list)} chunks"
        )

    pairs = sorted(zip(chunk_list, payload_list), key=lambda pair: pair[0].order)
    for index, (chunk, payload) in enumerate(pairs):
        if chunk.order != index:
            raise SequenceError(
                f"Chunk sequence broken at position {index}: found order {chunk.order}"
            )
        if payload is None:
            raise TypeError(f"payload for chunk {chunk.order} must not be None")
        if len(payload) != chunk.size:
            raise SizeMismatchError(
                f"Chunk {chunk.order} payload is {len(payload)} bytes, expected {chunk.size}",
                expected=chunk.size,
                actual=len(payload),
                order=chunk.order,
            )
    return pairs


def merge_chunks(
    chunks: Sequence[Chunk],
    payloads: Sequence[bytes],
    expected_digest: Optional[str] = None
) -> bytes:
    """
    Concatenate chunk payloads strictly by chunk order.

    Args:
        chunks: Chunk records, any order
        payloads: Payloads paired with `chunks` by position
        expected_digest: Whole-file SHA-256 to check the result against

    Returns:
        The reconstructed file bytes

    Raises:
        SequenceError: count mismatch, gap or duplicate order
        SizeMismatchError: a payload differs from its declared size
        DigestMismatchError: the merged bytes do not hash to expected_digest
    """
    pairs = _ordered_pairs(chunks, payloads)
    merged = b"".join(payload for _, payload in pairs)

    if expected_digest:
        actual = compute_digest(merged)
        if not digests_match(expected_digest, actual):
            raise DigestMismatchError(
                f"Merged file digest {actual} does not match expected {expected_digest}",
                expected=expected_digest,
                actual=actual,
            )

    logger.debug(f"Merged {len(pairs)} chunks into {len(merged)} bytes")
    return merged


def merge_to_stream(
    chunks: Sequence[Chunk],
    payloads: Sequence[bytes],
    output: BinaryIO,
    expected_digest: Optional[str] = None
) -> int:
    """
    Write chunk payloads to `output` in order. The sequence, sizes and
    digest are all checked before the first byte is written.

    Returns:
        Number of bytes written
    """
    pairs = _ordered_pairs(chunks, payloads)

    if expected_digest:
        calculator = IncrementalDigest()
        for _, payload in pairs:
            calculator.update(payload)
        actual = calculator.finalize()
        if not digests_match(expected_digest, actual):
            raise DigestMismatchError(
                f"Merged file digest {actual} does not match expected {expected_digest}",
                expected=expected_digest,
                actual=actual,
            )

    written = 0
    for _, payload in pairs:
        output.write(payload)
        written += len(payload)
    return written


def validate_merged(data: bytes, file: FileRecord) -> bool:
    """True when merged bytes match the file record's size and digest."""
    if data is None or file is None:
        raise TypeError("data and file must not be None")
    if len(data) != file.size:
        logger.warning(f"Merged size {len(data)} does not match file {file.file_id} size {file.size}")
        return False
    return digests_match(file.digest, compute_digest(data))
