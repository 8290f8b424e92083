"""Deterministic chunk-to-backend distribution."""

import hashlib
import random
from collections import Counter
from typing import Dict, List, Sequence

from common.logging_config import get_logger
from common.types import ChunkAssignment, ChunkDescriptor
from chunking.exceptions import InputError, NoBackendsError

logger = get_logger(__name__)


def file_seed(file_id: str) -> int:
    """
    Derive the distribution seed for a file.

    The seed is the first 8 bytes of SHA-256 over the UTF-8 encoded file id,
    read as a big-endian unsigned integer.
    """
    digest = hashlib.sha256(str(file_id).encode('utf-8')).digest()
    return int.from_bytes(digest[:8], 'big')


def backend_permutation(file_id: str, backend_ids: Sequence[str]) -> List[str]:
    """
    Shuffle the backend ids with a generator seeded from the file id.

    Same file id and same backend list always give the same permutation.
    """
    permutation = list(backend_ids)
    random.Random(file_seed(file_id)).shuffle(permutation)
    return permutation


class ChunkDistributor:
    """
    Assigns each planned chunk of a file to one backend.

    Chunk i goes to permutation[i mod N], where the permutation of backend ids
    is seeded by the file id. For chunk counts >= N every backend receives
    floor(count/N) or ceil(count/N) chunks. Stateless, safe to share.
    """

    def distribute_chunks(
        self,
        file_id: str,
        descriptors: Sequence[ChunkDescriptor],
        backend_ids: Sequence[str]
    ) -> List[ChunkAssignment]:
        """
        Args:
            file_id: Id of the file being stored
            descriptors: Planned chunks, ordered or not
            backend_ids: Ids of active backends

        Returns:
            One assignment per descriptor, sorted by chunk order

        Raises:
            NoBackendsError: backend_ids is empty
            InputError: file_id is empty or backend ids are duplicated
        """
        if not file_id:
            raise InputError("file_id is required for chunk distribution")
        if not backend_ids:
            raise NoBackendsError("No active storage backends available")
        if len(set(backend_ids)) != len(backend_ids):
            raise InputError(f"Duplicate backend ids in {list(backend_ids)}")

        permutation = backend_permutation(file_id, backend_ids)
        count = len(permutation)

        assignments = [
            ChunkAssignment(descriptor=descriptor, backend_id=permutation[descriptor.order % count])
            for descriptor in sorted(descriptors, key=lambda d: d.order)
        ]

        logger.info(
            f"Distributed {len(assignments)} chunks of file {file_id} "
            f"across {count} backends"
        )
        return assignments


def assignment_counts(assignments: Sequence[ChunkAssignment]) -> Dict[str, int]:
    """Number of chunks assigned to each backend."""
    return dict(Counter(assignment.backend_id for assignment in assignments))
