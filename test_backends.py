#!/usr/bin/env python3
"""
Test the search backends: partitioning, the numba accelerator and CPU fallback.
"""

from types import SimpleNamespace

import numpy as np
import pytest

from amcheck import ConfigurationSearch
from amcheck.core.backends import (
    AcceleratorUnavailableError,
    BackendRun,
    CPUBackend,
    NumbaBackend,
    SearchBackend,
    count_candidates,
    partition,
    progress_interval,
    select_backend,
)
from amcheck.core.fast_ops import approximate_altermagnet_batch, check_numba_availability, pack_classifier
from amcheck.core.structure import IDENTITY

from conftest import C2Z, make_structure

SQUARE_RING_ACCEPTED = [3, 5, 6, 9, 10, 12]


def test_partition_gives_remainder_to_first_chunks():
    assert partition(10, 3) == [(0, 4), (4, 7), (7, 10)]
    assert partition(2, 4) == [(0, 1), (1, 2)]
    assert partition(0, 4) == []
    assert partition(5, 1) == [(0, 5)]


def test_progress_interval():
    assert progress_interval(5) == 1
    assert progress_interval(1000) == 10
    assert progress_interval(10 ** 9) == 100000


def test_select_backend():
    assert isinstance(select_backend("cpu", n_workers=2), CPUBackend)
    assert isinstance(select_backend("numba"), NumbaBackend)
    assert isinstance(select_backend("auto"), SearchBackend)
    with pytest.raises(ValueError):
        select_backend("gpu")
    with pytest.raises(ValueError):
        CPUBackend(n_workers=0)


def test_numba_is_available():
    available, message = check_numba_availability()
    assert available, message


@pytest.mark.parametrize("fixture", ["square_ring", "centrosymmetric_pairs", "translation_fe2f4", "rotation_pair"])
def test_numba_backend_matches_cpu(fixture, request):
    """With verification the accelerator returns exactly the CPU results."""
    structure = request.getfixturevalue(fixture)
    cpu = ConfigurationSearch(structure, backend="cpu", verbose=False).search_all(write_report=False)
    fast = ConfigurationSearch(structure, backend="numba", batch_size=5,
                               verbose=False).search_all(write_report=False)

    assert fast['backend'] == 'numba'
    assert fast['accepted'] == cpu['accepted']
    assert fast['n_invalid'] == cpu['n_invalid']
    assert fast['tested'] == cpu['tested']
    assert not fast['approximate']


@pytest.mark.parametrize("fixture", ["square_ring", "centrosymmetric_pairs", "translation_fe2f4"])
def test_unverified_accelerator_is_superset(fixture, request):
    """Raw kernel positives include every exact positive."""
    structure = request.getfixturevalue(fixture)
    exact = ConfigurationSearch(structure, verbose=False).search_all(write_report=False)
    raw = ConfigurationSearch(structure, backend="numba", verify_accelerated=False,
                              verbose=False).search_all(write_report=False)

    assert raw['approximate']
    assert set(exact['accepted']) <= set(raw['accepted'])


def test_kernel_verdicts(centrosymmetric_pairs):
    search = ConfigurationSearch(centrosymmetric_pairs, verbose=False)
    arrays = pack_classifier(search.classifier)
    verdicts = approximate_altermagnet_batch(
        np.arange(16, dtype=np.int64),
        np.array(search.magnetic_indices, dtype=np.int64),
        centrosymmetric_pairs.n_atoms,
        *arrays
    )
    assert np.count_nonzero(verdicts == -1) == 12
    assert np.count_nonzero(verdicts == 1) == 0


def test_kernel_bit_limit():
    backend = NumbaBackend()
    with pytest.raises(AcceleratorUnavailableError):
        backend.initialize(SimpleNamespace(n_magnetic=63))


class BrokenAccelerator(SearchBackend):
    name = "broken"

    def __init__(self, fail_on_initialize):
        self.fail_on_initialize = fail_on_initialize

    def initialize(self, search):
        if self.fail_on_initialize:
            raise AcceleratorUnavailableError("no device")

    def run(self, search, candidate_ids, reporter):
        raise AcceleratorUnavailableError("kernel crashed")


@pytest.mark.parametrize("fail_on_initialize", [True, False])
def test_accelerator_failure_falls_back_to_cpu(square_ring, fail_on_initialize):
    """Initialization and runtime failures both rerun the search on the CPU."""
    search = ConfigurationSearch(square_ring, backend=BrokenAccelerator(fail_on_initialize), verbose=False)
    with pytest.warns(UserWarning, match="falling back to the CPU backend"):
        summary = search.search_all(write_report=False)

    assert summary['backend'] == 'cpu'
    assert summary['accepted'] == SQUARE_RING_ACCEPTED
    assert summary['tested'] == 16


def test_sampling_falls_back_to_cpu(square_ring):
    search = ConfigurationSearch(square_ring, backend=BrokenAccelerator(False), verbose=False)
    with pytest.warns(UserWarning):
        summary = search.sample(max_samples=16, batch_size=4, seed=0, write_report=False)

    assert summary['backend'] == 'cpu'
    assert summary['accepted'] == SQUARE_RING_ACCEPTED


def test_count_candidates_beyond_ssize_t():
    assert count_candidates(range(1 << 64)) == 1 << 64
    assert count_candidates(range(3, 10, 2)) == 4
    assert count_candidates(range(5, 5)) == 0
    assert count_candidates([7, 1, 4]) == 3


class RecordingBackend(SearchBackend):
    name = "recording"

    def run(self, search, candidate_ids, reporter):
        self.count = count_candidates(candidate_ids)
        self.bounds = (candidate_ids[0], candidate_ids[-1])
        return BackendRun([], 0, 0)


def test_exhaustive_search_over_64_magnetic_atoms():
    """A 2**64 id space reaches the backend as a range without overflowing."""
    positions = [[(i + 0.5) / 64, 0.0, 0.0] for i in range(64)]
    structure = make_structure(['Fe'] * 64, positions, [0] * 64, [IDENTITY, C2Z])

    backend = RecordingBackend()
    search = ConfigurationSearch(structure, backend=backend, verbose=False)
    summary = search.search_all(confirm=lambda n_magnetic, total: True, write_report=False)

    assert backend.count == 1 << 64
    assert backend.bounds == (0, (1 << 64) - 1)
    assert summary['total_configurations'] == 1 << 64
    assert not summary['cancelled']
    assert not summary['exhaustive']
