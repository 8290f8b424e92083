"""Chunk health classification and replication planning."""

from collections import Counter
from datetime import timedelta
from typing import Dict, List, Optional, Sequence

from common.constants import (
    BACKEND_KIND_PREFERENCE,
    MAX_REPLICATION_TARGETS,
    MIN_REPLICATION_BACKENDS,
    REPLICATION_THROUGHPUT_BYTES_PER_SECOND,
)
from common.logging_config import get_logger
from common.types import (
    BackendDescriptor,
    Chunk,
    ChunkStatus,
    HealthStatus,
    ReplicationPlan,
    ReplicationPriority,
)
from chunking.load_tracker import BackendLoadTracker

logger = get_logger(__name__)

UNRANKED_KIND_PREFERENCE = 5

_REPLICATION_STATES = frozenset({
    HealthStatus.CORRUPTED,
    HealthStatus.MISSING,
    HealthStatus.DEGRADED,
})

_PRIORITY_BY_HEALTH = {
    HealthStatus.CORRUPTED: ReplicationPriority.CRITICAL,
    HealthStatus.MISSING: ReplicationPriority.HIGH,
    HealthStatus.DEGRADED: ReplicationPriority.MEDIUM,
}


class HealthClassifier:
    """
    Classifies persisted chunks and proposes replication plans.

    Works on chunk metadata only. It never reads payloads and never copies
    anything; executing a plan is left to the caller.
    """

    def __init__(
        self,
        min_active_backends: int = MIN_REPLICATION_BACKENDS,
        max_targets: int = MAX_REPLICATION_TARGETS,
        throughput_bytes_per_second: int = REPLICATION_THROUGHPUT_BYTES_PER_SECOND,
        load_tracker: Optional[BackendLoadTracker] = None
    ):
        self.min_active_backends = min_active_backends
        self.max_targets = max_targets
        self.throughput_bytes_per_second = throughput_bytes_per_second
        self.load_tracker = load_tracker

    def classify(self, chunk: Chunk) -> HealthStatus:
        """
        Map a chunk's status and attributes to a health state.

        Stored with a positive size and a digest is Healthy, Stored with
        an empty digest or non-positive size is Degraded, Failed is Corrupted,
        Deleted is Missing, and anything still in flight is Unknown.
        """
        if chunk is None:
            raise TypeError("chunk must not be None")

        if chunk.status == ChunkStatus.STORED:
            if chunk.size > 0 and chunk.digest:
                return HealthStatus.HEALTHY
            return HealthStatus.DEGRADED
        if chunk.status == ChunkStatus.FAILED:
            return HealthStatus.CORRUPTED
        if chunk.status == ChunkStatus.DELETED:
            return HealthStatus.MISSING
        return HealthStatus.UNKNOWN

    def needs_replication(self, chunk: Chunk) -> bool:
        return self.classify(chunk) in _REPLICATION_STATES

    def priority(self, health: HealthStatus) -> ReplicationPriority:
        return _PRIORITY_BY_HEALTH.get(health, ReplicationPriority.LOW)

    def _target_rank(self, backend: BackendDescriptor):
        load = self.load_tracker.load(backend.backend_id) if self.load_tracker else 0
        return (
            BACKEND_KIND_PREFERENCE.get(backend.kind, UNRANKED_KIND_PREFERENCE),
            load,
            backend.name,
        )

    def replication_targets(
        self,
        chunk: Chunk,
        backends: Sequence[BackendDescriptor]
    ) -> List[BackendDescriptor]:
        """
        Candidate backends for a copy of `chunk`.

        Active backends other than the chunk's own, ordered by kind preference,
        then current load when a load tracker is attached, then name. Overloaded
        backends are skipped. At most `max_targets` are returned.
        """
        if chunk is None:
            return []

        candidates = [
            backend for backend in backends
            if backend.is_active and backend.backend_id != chunk.backend_id
        ]
        if self.load_tracker is not None:
            candidates = [
                backend for backend in candidates
                if not self.load_tracker.is_overloaded(backend.backend_id)
            ]

        candidates.sort(key=self._target_rank)
        return candidates[:self.max_targets]

    def estimate_duration(self, chunk: Chunk, target_count: int) -> timedelta:
        per_target = chunk.size / self.throughput_bytes_per_second if chunk.size > 0 else 0.0
        return timedelta(seconds=max(1.0, per_target * target_count))

    def plan_replication(
        self,
        chunk: Chunk,
        backends: Sequence[BackendDescriptor]
    ) -> Optional[ReplicationPlan]:
        """
        Propose a replication plan for one chunk.

        Returns:
            ReplicationPlan, or None when the chunk is fine, fewer than
            `min_active_backends` backends are active, or no target qualifies
        """
        health = self.classify(chunk)
        if health not in _REPLICATION_STATES:
            return None

        active = [backend for backend in backends if backend.is_active]
        if len(active) < self.min_active_backends:
            logger.warning(
                f"Cannot plan replication for chunk {chunk.chunk_id}: "
                f"{len(active)} active backends, need {self.min_active_backends}"
            )
            return None

        targets = self.replication_targets(chunk, active)
        if not targets:
            logger.warning(f"No replication targets available for chunk {chunk.chunk_id}")
            return None

        plan = ReplicationPlan(
            chunk_id=chunk.chunk_id,
            source_backend_id=chunk.backend_id,
            target_backend_ids=[target.backend_id for target in targets],
            priority=self.priority(health),
            estimated_duration=self.estimate_duration(chunk, len(targets)),
        )
        logger.info(
            f"Planned {plan.priority.name} replication of chunk {chunk.chunk_id} "
            f"({health.value}) to {len(targets)} backends"
        )
        return plan

    def unhealthy_chunks(self, chunks: Sequence[Chunk]) -> List[Chunk]:
        return [chunk for chunk in chunks if self.classify(chunk) != HealthStatus.HEALTHY]

    def chunks_needing_replication(self, chunks: Sequence[Chunk]) -> List[Chunk]:
        return [chunk for chunk in chunks if self.needs_replication(chunk)]

    def summarize(self, chunks: Sequence[Chunk]) -> Dict[HealthStatus, int]:
        """Count chunks per health state. Every state is present in the result."""
        counts = Counter(self.classify(chunk) for chunk in chunks)
        return {status: counts.get(status, 0) for status in HealthStatus}

    def is_redundant(self, chunk: Chunk, all_chunks: Sequence[Chunk]) -> bool:
        """
        True when enough other Stored copies of the same file/order exist
        to satisfy the minimum replica count together with this one.
        """
        if chunk is None:
            return False

        copies = [
            other for other in all_chunks
            if other.file_id == chunk.file_id
            and other.order == chunk.order
            and other.chunk_id != chunk.chunk_id
            and other.status == ChunkStatus.STORED
        ]
        return len(copies) >= self.min_active_backends - 1
