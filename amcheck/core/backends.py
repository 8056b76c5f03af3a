"""
Execution backends for the configuration search.

A backend takes a sequence of candidate ids and returns the accepted ones.
``CPUBackend`` runs the exact classifier on a thread pool with one static
contiguous chunk per worker; ``NumbaBackend`` screens whole batches with a
compiled kernel and re-checks positives with the exact classifier.
"""

import os
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from .fast_ops import (
    VERDICT_ACCEPTED,
    VERDICT_INVALID,
    approximate_altermagnet_batch,
    check_numba_availability,
    pack_classifier,
)
from .progress import ProgressReporter
from ..utils.constants import SEARCH_DEFAULTS


# Candidate ids are decoded from int64 inside the kernel
MAX_KERNEL_BITS = 62


class AcceleratorUnavailableError(RuntimeError):
    """The accelerator could not be initialised or a kernel launch failed."""


class BackendRun(NamedTuple):
    """Raw outcome of one backend run (accepted ids are unsorted)."""

    accepted: List[int]
    n_invalid: int
    n_tested: int


def partition(n_items: int, n_parts: int) -> List[Tuple[int, int]]:
    """
    Split ``range(n_items)`` into contiguous near-equal chunks.

    The first ``n_items % n_parts`` chunks get one extra item. Empty chunks
    are dropped.
    """
    n_parts = max(1, n_parts)
    base, remainder = divmod(n_items, n_parts)

    chunks = []
    start = 0
    for part in range(n_parts):
        size = base + (1 if part < remainder else 0)
        if size > 0:
            chunks.append((start, start + size))
        start += size
    return chunks


def count_candidates(candidate_ids: Sequence[int]) -> int:
    """Number of ids, also for ranges wider than ``sys.maxsize``."""
    if isinstance(candidate_ids, range):
        return max(0, -(-(candidate_ids.stop - candidate_ids.start) // candidate_ids.step))
    return len(candidate_ids)


def progress_interval(n_items: int) -> int:
    """Number of candidates a worker tests between progress updates."""
    return min(SEARCH_DEFAULTS['progress_interval'], max(1, n_items // 100))


class SearchBackend(ABC):
    """Strategy interface: candidate ids in, accepted ids out."""

    name = "base"

    @property
    def approximate(self) -> bool:
        """True if accepted ids may include configurations the exact test rejects."""
        return False

    def initialize(self, search):
        """Prepare the backend for a given search; raise on failure."""

    @abstractmethod
    def run(
        self,
        search,
        candidate_ids: Sequence[int],
        reporter: ProgressReporter
    ) -> BackendRun:
        """
        Evaluate candidates.

        Args:
            search: ConfigurationSearch providing ``evaluate_candidate``
            candidate_ids: Ids to test (``range`` or list)
            reporter: Progress channel

        Returns:
            BackendRun with accepted ids and invalid count
        """


class CPUBackend(SearchBackend):
    """Thread pool running the exact classifier."""

    name = "cpu"

    def __init__(self, n_workers: Optional[int] = None):
        """
        Initialize the CPU backend.

        Args:
            n_workers: Number of worker threads (None = os.cpu_count())
        """
        self.n_workers = n_workers if n_workers is not None else (os.cpu_count() or 1)
        if self.n_workers < 1:
            raise ValueError(f"n_workers must be positive, got {self.n_workers}")

    def run(self, search, candidate_ids, reporter):
        n_items = count_candidates(candidate_ids)
        chunks = partition(n_items, min(self.n_workers, max(1, n_items)))
        interval = progress_interval(n_items)

        accepted: List[int] = []
        results_lock = threading.Lock()

        if len(chunks) <= 1:
            n_invalid = _run_chunk(search, candidate_ids, reporter, interval, accepted, results_lock)
            return BackendRun(accepted, n_invalid, n_items)

        with ThreadPoolExecutor(max_workers=len(chunks), thread_name_prefix="amcheck") as executor:
            futures = [
                executor.submit(_run_chunk, search, candidate_ids[start:end], reporter,
                                interval, accepted, results_lock)
                for start, end in chunks
            ]
            # result() re-raises worker exceptions
            n_invalid = sum(future.result() for future in futures)

        return BackendRun(accepted, n_invalid, n_items)


def _run_chunk(search, candidate_ids, reporter, interval, accepted, results_lock) -> int:
    local_accepted = []
    n_invalid = 0
    pending = 0

    for candidate_id in candidate_ids:
        verdict = search.evaluate_candidate(candidate_id)
        if not verdict.is_valid:
            n_invalid += 1
        elif verdict.is_altermagnetic:
            local_accepted.append(candidate_id)
            reporter.found(candidate_id)

        pending += 1
        if pending >= interval:
            reporter.advance(pending)
            pending = 0

    reporter.advance(pending)

    # Merge once per chunk
    with results_lock:
        accepted.extend(local_accepted)

    return n_invalid


class NumbaBackend(SearchBackend):
    """
    Batched screening with the numba kernel from ``fast_ops``.

    The kernel criterion accepts a superset of what the exact classifier
    accepts. With ``verify=True`` every kernel positive is re-checked on the
    host, so results match the CPU backend; with ``verify=False`` the raw
    kernel output is returned and the run is flagged approximate.
    """

    name = "numba"

    def __init__(
        self,
        batch_size: int = SEARCH_DEFAULTS['accelerator_batch_size'],
        verify: bool = True
    ):
        """
        Initialize the accelerator backend.

        Args:
            batch_size: Candidates per kernel launch
            verify: Re-check kernel positives with the exact classifier
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.batch_size = batch_size
        self.verify = verify
        self._arrays = None

    @property
    def approximate(self) -> bool:
        return not self.verify

    def initialize(self, search):
        if search.n_magnetic > MAX_KERNEL_BITS:
            raise AcceleratorUnavailableError(
                f"{search.n_magnetic} magnetic atoms exceed the {MAX_KERNEL_BITS}-bit kernel limit"
            )

        available, message = check_numba_availability()
        if not available:
            raise AcceleratorUnavailableError(message)

        orbit_ptr, orbit_members, relation_ptr, n_ops, maps_onto, it_pair = pack_classifier(search.classifier)
        self._arrays = (
            np.array(search.magnetic_indices, dtype=np.int64),
            search.structure.n_atoms,
            orbit_ptr,
            orbit_members,
            relation_ptr,
            n_ops,
            maps_onto,
            it_pair
        )

        # Compile once on a trivial batch
        self._screen(np.zeros(1, dtype=np.int64))

    def _screen(self, batch: np.ndarray) -> np.ndarray:
        if self._arrays is None:
            raise AcceleratorUnavailableError("NumbaBackend used before initialize()")
        try:
            return approximate_altermagnet_batch(batch, *self._arrays)
        except Exception as e:
            raise AcceleratorUnavailableError(f"Kernel launch failed: {e}") from e

    def run(self, search, candidate_ids, reporter):
        n_items = count_candidates(candidate_ids)
        accepted: List[int] = []
        n_invalid = 0

        for start in range(0, n_items, self.batch_size):
            batch = np.asarray(candidate_ids[start:start + self.batch_size], dtype=np.int64)
            verdicts = self._screen(batch)

            n_invalid += int(np.count_nonzero(verdicts == VERDICT_INVALID))

            for candidate_id in batch[verdicts == VERDICT_ACCEPTED]:
                candidate_id = int(candidate_id)
                if self.verify and not search.evaluate_candidate(candidate_id).is_altermagnetic:
                    continue
                accepted.append(candidate_id)
                reporter.found(candidate_id)

            reporter.advance(len(batch))

        return BackendRun(accepted, n_invalid, n_items)


def select_backend(
    name: str = "cpu",
    n_workers: Optional[int] = None,
    batch_size: int = SEARCH_DEFAULTS['accelerator_batch_size'],
    verify: bool = True
) -> SearchBackend:
    """
    Create a backend by name.

    Args:
        name: "cpu", "numba" or "auto" (numba when it works, else cpu)
        n_workers: Threads for the CPU backend
        batch_size: Batch size for the numba backend
        verify: Exact re-check of numba positives

    Returns:
        SearchBackend instance
    """
    name = name.lower()

    if name == "auto":
        available, _ = check_numba_availability()
        name = "numba" if available else "cpu"

    if name == "cpu":
        return CPUBackend(n_workers)
    if name == "numba":
        return NumbaBackend(batch_size=batch_size, verify=verify)

    raise ValueError(f"Unknown backend: {name} (expected 'cpu', 'numba' or 'auto')")
