"""
Thread-safe progress tracking for the configuration search.

Workers never touch the console. They bump shared counters and push
"found" events onto a queue; one reporter thread owns the tqdm bar and is
the only writer to stdout while a search runs.
"""

import queue
import threading
from typing import Callable, Optional

from tqdm import tqdm


class AtomicCounter:
    """Integer counter safe to update from several threads."""

    def __init__(self, value: int = 0):
        self._value = value
        self._lock = threading.Lock()

    def add(self, amount: int = 1) -> int:
        with self._lock:
            self._value += amount
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


_STOP = object()


class ProgressReporter:
    """
    Single reporting channel for a running search.

    Use as a context manager around the backend run. ``advance`` and
    ``found`` may be called from any thread; rendering of found candidates
    happens on the reporter thread through ``formatter``.
    """

    def __init__(
        self,
        total: int,
        desc: str = "Configurations",
        verbose: bool = True,
        formatter: Optional[Callable[[int, int], str]] = None,
        refresh_interval: float = 0.2,
        max_queue_size: int = 10000
    ):
        """
        Initialize the reporter.

        Args:
            total: Number of candidates the run will test
            desc: Progress bar label
            verbose: Show the bar and print found candidates
            formatter: Callable (candidate_id, n_found) -> line to print
            refresh_interval: Seconds between bar refreshes
            max_queue_size: Bound of the event queue
        """
        self.total = total
        self.desc = desc
        self.verbose = verbose
        self.formatter = formatter
        self.refresh_interval = refresh_interval

        self.tested = AtomicCounter()
        self.accepted = AtomicCounter()

        self._events = queue.Queue(maxsize=max_queue_size)
        self._thread = None
        self._pbar = None

    def advance(self, n: int = 1):
        """Record ``n`` more tested candidates."""
        if n:
            self.tested.add(n)

    def found(self, candidate_id: int):
        """Record an accepted candidate; it is printed by the reporter thread."""
        n_found = self.accepted.add(1)
        if self.verbose and self.formatter is not None:
            self._events.put((candidate_id, n_found))

    def start(self):
        if not self.verbose or self._thread is not None:
            return self

        self._pbar = tqdm(total=self.total, desc=self.desc, unit="cfg",
                          dynamic_ncols=True, leave=True)
        self._thread = threading.Thread(target=self._run, name="amcheck-progress", daemon=True)
        self._thread.start()
        return self

    def stop(self):
        if self._thread is None:
            return

        self._events.put(_STOP)
        self._thread.join()
        self._thread = None

        self._refresh()
        self._pbar.close()
        self._pbar = None

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc_value, traceback):
        self.stop()
        return False

    def _refresh(self):
        self._pbar.n = min(self.tested.value, self.total)
        self._pbar.set_postfix({'found': self.accepted.value}, refresh=False)
        self._pbar.refresh()

    def _run(self):
        while True:
            try:
                event = self._events.get(timeout=self.refresh_interval)
            except queue.Empty:
                self._refresh()
                continue

            if event is _STOP:
                return

            candidate_id, n_found = event
            tqdm.write(self.formatter(candidate_id, n_found))
            self._refresh()
