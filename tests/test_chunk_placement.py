"""Tests for deterministic chunk distribution."""

import pytest

from common.types import ChunkDescriptor
from chunking.chunk_placement import (
    ChunkDistributor,
    assignment_counts,
    backend_permutation,
    file_seed,
)
from chunking.exceptions import InputError, NoBackendsError


def _descriptors(count, size=100):
    return [ChunkDescriptor(order=i, size=size, offset=i * size) for i in range(count)]


@pytest.fixture
def distributor():
    return ChunkDistributor()


class TestSeed:
    """Test the file id seed and permutation."""

    def test_seed_is_stable(self):
        assert file_seed("X") == file_seed("X")
        assert file_seed("X") != file_seed("Y")

    def test_seed_fits_in_64_bits(self):
        assert 0 <= file_seed("some-file") < 2 ** 64

    def test_permutation_is_a_shuffle_of_input(self):
        permutation = backend_permutation("X", ["A", "B", "C", "D"])

        assert sorted(permutation) == ["A", "B", "C", "D"]

    def test_permutation_does_not_mutate_input(self):
        backend_ids = ["A", "B", "C"]
        backend_permutation("X", backend_ids)

        assert backend_ids == ["A", "B", "C"]


class TestDistributeChunks:
    """Test chunk-to-backend assignment."""

    def test_round_robin_over_permutation(self, distributor):
        permutation = backend_permutation("X", ["A", "B", "C"])

        assignments = distributor.distribute_chunks("X", _descriptors(7), ["A", "B", "C"])

        assert [a.order for a in assignments] == list(range(7))
        assert [a.backend_id for a in assignments] == [permutation[i % 3] for i in range(7)]

    def test_deterministic_across_calls(self, distributor):
        first = distributor.distribute_chunks("X", _descriptors(7), ["A", "B", "C"])
        second = ChunkDistributor().distribute_chunks("X", _descriptors(7), ["A", "B", "C"])

        assert [a.backend_id for a in first] == [a.backend_id for a in second]

    @pytest.mark.parametrize("chunk_count,backend_count", [(3, 3), (10, 3), (17, 4), (100, 7)])
    def test_balanced_when_chunks_cover_backends(self, distributor, chunk_count, backend_count):
        backend_ids = [f"backend-{i}" for i in range(backend_count)]

        assignments = distributor.distribute_chunks("file-1", _descriptors(chunk_count), backend_ids)
        counts = assignment_counts(assignments)

        assert set(counts) == set(backend_ids)
        assert max(counts.values()) - min(counts.values()) <= 1
        assert sum(counts.values()) == chunk_count

    def test_unordered_descriptors_are_sorted(self, distributor):
        descriptors = list(reversed(_descriptors(5)))

        assignments = distributor.distribute_chunks("X", descriptors, ["A", "B"])

        assert [a.order for a in assignments] == [0, 1, 2, 3, 4]
        assert assignments[2].descriptor.offset == 200

    def test_single_backend_gets_everything(self, distributor):
        assignments = distributor.distribute_chunks("X", _descriptors(4), ["only"])

        assert {a.backend_id for a in assignments} == {"only"}

    def test_no_backends(self, distributor):
        with pytest.raises(NoBackendsError):
            distributor.distribute_chunks("X", _descriptors(2), [])

    def test_no_backends_is_an_input_error(self, distributor):
        with pytest.raises(InputError):
            distributor.distribute_chunks("X", _descriptors(2), [])

    def test_duplicate_backend_ids_rejected(self, distributor):
        with pytest.raises(InputError):
            distributor.distribute_chunks("X", _descriptors(2), ["A", "A"])

    def test_empty_file_id_rejected(self, distributor):
        with pytest.raises(InputError):
            distributor.distribute_chunks("", _descriptors(2), ["A"])
