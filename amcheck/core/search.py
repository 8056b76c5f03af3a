"""
Search over collinear spin configurations of the magnetic sublattice.

Candidate ``k`` in ``[0, 2**M)`` assigns magnetic atom ``i`` spin DOWN when
bit ``i`` of ``k`` is set and UP otherwise; every other atom is NONE.
"""

import os
import time
import warnings
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple, Union

import numpy as np

from .backends import (
    AcceleratorUnavailableError,
    BackendRun,
    CPUBackend,
    SearchBackend,
    count_candidates,
    select_backend,
)
from .classifier import AltermagnetClassifier, Verdict
from .progress import ProgressReporter
from .structure import CrystalStructure, SpinState
from ..utils.constants import DEFAULT_TOLERANCE, SEARCH_DEFAULTS
from ..utils.elements import is_magnetic_element
from ..utils.io import default_report_filename, format_result_line, write_search_report
from ..utils.random import draw_unique_candidates, make_generator


class SearchResult(NamedTuple):
    """An accepted candidate and its full spin assignment."""

    candidate_id: int
    spins: Tuple[SpinState, ...]

    @property
    def pattern(self) -> str:
        return ' '.join(s.letter for s in self.spins)


class ConfigurationSearch:
    """
    Exhaustive or sampled search for altermagnetic spin configurations.

    The structure is shared read-only by all workers. Per-candidate
    invalidity (unbalanced orbits) is a value, not an exception, so
    workers simply count and skip such candidates.
    """

    def __init__(
        self,
        structure: CrystalStructure,
        tolerance: float = DEFAULT_TOLERANCE,
        magnetic_predicate: Callable[[str], bool] = is_magnetic_element,
        backend: Union[str, SearchBackend] = "cpu",
        n_workers: Optional[int] = None,
        large_size_threshold: int = SEARCH_DEFAULTS['large_size_threshold'],
        sampling_offer_threshold: int = SEARCH_DEFAULTS['sampling_offer_threshold'],
        verify_accelerated: bool = True,
        batch_size: int = SEARCH_DEFAULTS['accelerator_batch_size'],
        verbose: bool = True
    ):
        """
        Initialize the search.

        Args:
            structure: Structure with orbits and symmetry operations
            tolerance: Classification tolerance
            magnetic_predicate: Element label -> may carry a moment
            backend: "cpu", "numba", "auto" or a SearchBackend instance
            n_workers: CPU worker threads (None = os.cpu_count())
            large_size_threshold: Magnetic atom count above which an
                exhaustive run needs confirmation
            sampling_offer_threshold: Magnetic atom count above which a
                declined exhaustive run offers sampling instead
            verify_accelerated: Re-check accelerator positives exactly
            batch_size: Accelerator batch size
            verbose: Print progress and summaries
        """
        self.structure = structure
        self.tolerance = tolerance
        self.n_workers = n_workers if n_workers is not None else (os.cpu_count() or 1)
        self.large_size_threshold = large_size_threshold
        self.sampling_offer_threshold = sampling_offer_threshold
        self.verbose = verbose

        self.classifier = AltermagnetClassifier(structure, tolerance)
        self.magnetic_indices = np.array(structure.magnetic_indices(magnetic_predicate), dtype=int)
        self.n_magnetic = len(self.magnetic_indices)
        self.total_configurations = 1 << self.n_magnetic

        if isinstance(backend, SearchBackend):
            self.backend = backend
        else:
            self.backend = select_backend(backend, n_workers=self.n_workers,
                                          batch_size=batch_size, verify=verify_accelerated)

        # Orbits that receive a spin from the magnetic sublattice
        magnetic = np.zeros(structure.n_atoms, dtype=bool)
        magnetic[self.magnetic_indices] = True
        self._has_evaluable_orbit = any(
            len(atom_ids) > 1 and magnetic[atom_ids].any()
            for _, atom_ids in self.classifier.orbits
        )

    def decode(self, candidate_id: int) -> np.ndarray:
        """
        Full per-atom spin vector of a candidate.

        Args:
            candidate_id: Integer in [0, 2**n_magnetic)

        Returns:
            (n_atoms,) int8 array of +1/-1/0
        """
        candidate_id = int(candidate_id)
        if not 0 <= candidate_id < self.total_configurations:
            raise ValueError(f"Candidate id {candidate_id} outside [0, {self.total_configurations})")

        spins = np.zeros(self.structure.n_atoms, dtype=np.int8)
        for bit, atom in enumerate(self.magnetic_indices):
            spins[atom] = SpinState.DOWN if (candidate_id >> bit) & 1 else SpinState.UP
        return spins

    def spin_states(self, candidate_id: int) -> Tuple[SpinState, ...]:
        return tuple(SpinState(int(s)) for s in self.decode(candidate_id))

    def evaluate_candidate(self, candidate_id: int) -> Verdict:
        """Classify one candidate; unbalanced assignments come back invalid."""
        return self.classifier.classify(self.decode(candidate_id))

    def search_all(
        self,
        confirm: Optional[Callable[[int, int], bool]] = None,
        offer_sampling: Optional[Callable[[], bool]] = None,
        report_path: Optional[str] = None,
        input_filename: Optional[str] = None,
        write_report: bool = True,
        preview_size: int = SEARCH_DEFAULTS['preview_size'],
        sampling_options: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Test every candidate in [0, 2**M).

        Args:
            confirm: Called as confirm(n_magnetic, total) when M exceeds the
                large-size threshold; the run proceeds only if it returns True
            offer_sampling: Called when confirmation is declined and M exceeds
                the sampling-offer threshold; True switches to ``sample``
            report_path: Report filename (default: derived from input_filename)
            input_filename: Structure filename used to name the report
            write_report: Write the text report when something was found
            preview_size: Number of results kept in 'preview'
            sampling_options: Keyword arguments for ``sample`` when switching

        Returns:
            Summary dictionary (see ``_summary``)

        Raises:
            IllPosedStructureError: If no multi-atom orbit holds a magnetic atom
        """
        start_time = time.time()

        shortcut = self._shortcut('exhaustive', start_time)
        if shortcut is not None:
            return shortcut

        if self.n_magnetic > self.large_size_threshold:
            if self.verbose:
                self._print_size_warning()

            approved = bool(confirm(self.n_magnetic, self.total_configurations)) if confirm else False
            if not approved:
                if (offer_sampling is not None
                        and self.n_magnetic > self.sampling_offer_threshold
                        and offer_sampling()):
                    return self.sample(report_path=report_path, input_filename=input_filename,
                                       write_report=write_report, **(sampling_options or {}))

                if self.verbose:
                    print("\n⛔ Search cancelled.")
                    print("   Consider using a smaller supercell or representative structure.")
                return self._summary(
                    'exhaustive', start_time, tested=0, n_invalid=0, accepted=[],
                    backend=self.backend.name, approximate=False, cancelled=True,
                    conclusion="Exhaustive search cancelled: no configurations were tested."
                )

        if self.verbose:
            print(f"🔍 Exhaustive search: {self.n_magnetic} magnetic atoms, "
                  f"{self.total_configurations:,} configurations")

        run, backend = self._run_with_fallback(range(self.total_configurations), "Configurations")

        summary = self._summary(
            'exhaustive', start_time, tested=run.n_tested, n_invalid=run.n_invalid,
            accepted=run.accepted, backend=backend.name, approximate=backend.approximate,
            preview_size=preview_size
        )
        self._finish(summary, report_path, input_filename, write_report, sampled=False)
        return summary

    def sample(
        self,
        max_samples: int = SEARCH_DEFAULTS['sampling_max_samples'],
        batch_size: int = SEARCH_DEFAULTS['sampling_batch_size'],
        target_found: int = SEARCH_DEFAULTS['sampling_target_found'],
        max_time: Optional[float] = None,
        seed: Optional[int] = None,
        report_path: Optional[str] = None,
        input_filename: Optional[str] = None,
        write_report: bool = True,
        preview_size: int = SEARCH_DEFAULTS['sampling_preview_size']
    ) -> Dict[str, Any]:
        """
        Test a random subset of distinct candidates.

        Stop conditions are checked between batches: ``target_found``
        accepted configurations, ``max_time`` seconds, or ``max_samples``
        tested candidates.

        Args:
            max_samples: Sample budget
            batch_size: Candidates per batch
            target_found: Stop once this many configurations are accepted
            max_time: Wall-clock limit in seconds (None = unlimited)
            seed: Random seed for reproducible samples
            report_path: Report filename
            input_filename: Structure filename used to name the report
            write_report: Write the text report when something was found
            preview_size: Number of results kept in 'preview'

        Returns:
            Summary dictionary; 'exhaustive' is True only if the sample
            covered the whole configuration space
        """
        start_time = time.time()

        shortcut = self._shortcut('sampling', start_time)
        if shortcut is not None:
            return shortcut

        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")

        budget = min(max_samples, self.total_configurations)

        if self.verbose:
            print(f"🎲 Sampling search: {self.n_magnetic} magnetic atoms, "
                  f"up to {budget:,} of {self.total_configurations:,} configurations")
            print(f"   Stops after {target_found} found configurations or "
                  f"{max_time if max_time is not None else 'unlimited'} s")

        rng = make_generator(seed)
        seen = set()
        accepted: List[int] = []
        n_invalid = 0
        tested = 0
        stop_reason = "sample budget exhausted"

        backend = self._initialized_backend()

        with self._reporter(budget, "Samples") as reporter:
            while tested < budget:
                if len(accepted) >= target_found:
                    stop_reason = "target number of configurations found"
                    break
                if max_time is not None and time.time() - start_time >= max_time:
                    stop_reason = "time limit reached"
                    break

                batch = draw_unique_candidates(rng, self.n_magnetic,
                                               min(batch_size, budget - tested), seen)
                if not batch:
                    break

                try:
                    run = backend.run(self, batch, reporter)
                except AcceleratorUnavailableError as e:
                    backend = self._fallback(e)
                    run = backend.run(self, batch, reporter)

                accepted.extend(run.accepted)
                n_invalid += run.n_invalid
                tested += run.n_tested

        summary = self._summary(
            'sampling', start_time, tested=tested, n_invalid=n_invalid, accepted=accepted,
            backend=backend.name, approximate=backend.approximate, preview_size=preview_size
        )
        summary['stop_reason'] = stop_reason
        summary['completion_rate'] = 100.0 * tested / budget if budget else 0.0
        self._finish(summary, report_path, input_filename, write_report, sampled=True)
        return summary

    def _shortcut(self, method: str, start_time: float) -> Optional[Dict[str, Any]]:
        if self.n_magnetic == 0:
            conclusion = "No magnetic atoms in the structure: there are no spin configurations to search."
        elif self.classifier.all_multiplicity_one:
            conclusion = ("All orbits have multiplicity one: this material can only be "
                          "a Luttinger ferrimagnet, never an altermagnet.")
        else:
            if not self._has_evaluable_orbit:
                self.classifier.ensure_well_posed()
            return None

        summary = self._summary(
            method, start_time, tested=0, n_invalid=0, accepted=[],
            backend=self.backend.name, approximate=False, conclusion=conclusion
        )
        summary['exhaustive'] = True
        if self.verbose:
            print(f"ℹ️  {conclusion}")
        return summary

    def _reporter(self, total: int, desc: str) -> ProgressReporter:
        return ProgressReporter(total, desc=desc, verbose=self.verbose,
                                formatter=self._format_found)

    def _format_found(self, candidate_id: int, n_found: int) -> str:
        line = format_result_line(candidate_id, self.structure.symbols, self.decode(candidate_id))
        return f"FOUND {line} [Found: {n_found}]"

    def _initialized_backend(self) -> SearchBackend:
        try:
            self.backend.initialize(self)
            return self.backend
        except AcceleratorUnavailableError as e:
            return self._fallback(e)

    def _fallback(self, error: Exception) -> SearchBackend:
        message = f"{self.backend.name} backend unavailable ({error}); falling back to the CPU backend"
        warnings.warn(message)
        if self.verbose:
            print(f"⚠️  {message}")
        return CPUBackend(self.n_workers)

    def _run_with_fallback(
        self,
        candidate_ids: Sequence[int],
        desc: str
    ) -> Tuple[BackendRun, SearchBackend]:
        backend = self._initialized_backend()
        try:
            with self._reporter(count_candidates(candidate_ids), desc) as reporter:
                return backend.run(self, candidate_ids, reporter), backend
        except AcceleratorUnavailableError as e:
            backend = self._fallback(e)
            with self._reporter(count_candidates(candidate_ids), desc) as reporter:
                return backend.run(self, candidate_ids, reporter), backend

    def _summary(
        self,
        method: str,
        start_time: float,
        tested: int,
        n_invalid: int,
        accepted: List[int],
        backend: str,
        approximate: bool,
        cancelled: bool = False,
        conclusion: Optional[str] = None,
        preview_size: int = SEARCH_DEFAULTS['preview_size']
    ) -> Dict[str, Any]:
        """
        Assemble the result dictionary.

        Keys: method, backend, n_magnetic, total_configurations, tested,
        n_invalid, results (SearchResult list sorted by id), accepted (ids),
        n_accepted, tolerance, elapsed_time, success_rate (percent of tested),
        exhaustive, approximate, cancelled, conclusion, preview, report_path,
        report_error.
        """
        accepted = sorted(accepted)
        results = [SearchResult(cid, self.spin_states(cid)) for cid in accepted]
        exhaustive = tested == self.total_configurations and not cancelled

        if conclusion is None:
            conclusion = _conclusion(method, len(results), tested, exhaustive, approximate)

        return {
            'method': method,
            'backend': backend,
            'n_magnetic': self.n_magnetic,
            'total_configurations': self.total_configurations,
            'tested': tested,
            'n_invalid': n_invalid,
            'results': results,
            'accepted': accepted,
            'n_accepted': len(results),
            'tolerance': self.tolerance,
            'elapsed_time': time.time() - start_time,
            'success_rate': 100.0 * len(results) / tested if tested else 0.0,
            'exhaustive': exhaustive,
            'approximate': approximate,
            'cancelled': cancelled,
            'conclusion': conclusion,
            'preview': results[:preview_size],
            'report_path': None,
            'report_error': None,
        }

    def _finish(
        self,
        summary: Dict[str, Any],
        report_path: Optional[str],
        input_filename: Optional[str],
        write_report: bool,
        sampled: bool
    ):
        if write_report and summary['results']:
            filename = report_path or default_report_filename(input_filename, sampled=sampled)
            try:
                write_search_report(filename, self.structure, summary)
                summary['report_path'] = filename
            except OSError as e:
                summary['report_error'] = f"Could not write report to {filename}: {e}"
                warnings.warn(summary['report_error'])

        if self.verbose:
            self._print_summary(summary)

    def _print_size_warning(self):
        print(f"⚠️  Structure has {self.n_magnetic} magnetic atoms.")
        print(f"   This will generate {self.total_configurations:,} configurations.")
        if self.n_magnetic <= self.sampling_offer_threshold:
            print("   This may take a long time but is feasible with multithreading.")
        else:
            print("   This is computationally very expensive and may take days!")
            print("   Consider a representative supercell with fewer magnetic atoms,")
            print("   or the sampling approach instead of an exhaustive search.")

    def _print_summary(self, summary: Dict[str, Any]):
        print(f"\n✅ {summary['method'].capitalize()} search completed in {summary['elapsed_time']:.2f}s "
              f"({summary['backend']} backend)")
        print(f"   Configurations tested: {summary['tested']:,} of {summary['total_configurations']:,}")
        print(f"   Invalid (unbalanced) configurations: {summary['n_invalid']:,}")
        print(f"   Altermagnetic configurations found: {summary['n_accepted']:,}")
        if summary['method'] == 'sampling':
            print(f"   Sampling success rate: {summary['success_rate']:.4f}%")
            if 'completion_rate' in summary:
                print(f"   Sample completion: {summary['completion_rate']:.1f}% of the sample budget")
            if summary.get('stop_reason'):
                print(f"   Stopped: {summary['stop_reason']}")

        preview = summary['preview']
        if preview:
            print(f"\n📋 First {len(preview)} of {summary['n_accepted']} configurations:")
            for result in preview:
                print("   " + format_result_line(result.candidate_id, self.structure.symbols, result.spins))
            if summary['n_accepted'] > len(preview):
                print(f"   ... and {summary['n_accepted'] - len(preview)} more")

        print(f"\n{summary['conclusion']}")
        if summary['report_path']:
            print(f"💾 Results saved to: {summary['report_path']}")
        if summary['report_error']:
            print(f"❌ {summary['report_error']}")


def _conclusion(method: str, n_found: int, tested: int, exhaustive: bool, approximate: bool) -> str:
    if n_found:
        text = f"Found {n_found} altermagnetic configuration(s) among {tested:,} tested."
        if approximate:
            text += " Accelerated screening without exact verification: results are approximate."
        return text

    if exhaustive:
        return "No altermagnetic configurations found."

    return ("No altermagnetic configurations found in sample. This does not rule out "
            "altermagnetism: try a larger sample or a different approach.")
