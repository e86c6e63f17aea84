"""
Progress reporting for NIPower runs.

Replicates are slow (each one is a full MCMC fit), so progress is
reported per replicate via a simple ``(current, total)`` callback that
works from scripts and notebooks alike.
"""

import sys
from typing import Callable, Optional


class SimulationCancelled(Exception):
    """Raised when a run is cancelled by the user."""

    pass


class ProgressReporter:
    """Wraps a ``(current, total)`` callback with counting and throttling.

    Args:
        total: Total number of replicates.
        callback: Function called as ``callback(current, total)``.
        update_every: Fire the callback at most once per this many advances.
            Defaults to ``max(1, total // 1000)``, i.e. every replicate
            unless there are thousands of them.
    """

    def __init__(
        self,
        total: int,
        callback: Callable[[int, int], None],
        update_every: Optional[int] = None,
    ):
        self.total = total
        self._callback = callback
        self._current = 0
        self.update_every = update_every if update_every is not None else max(1, total // 1000)

    @property
    def current(self) -> int:
        return self._current

    def start(self):
        """Fire the initial 0/total update."""
        self._current = 0
        self._callback(0, self.total)

    def advance(self, n: int = 1):
        """Advance the counter by *n* replicates, firing the callback when due."""
        self._current += n
        if self._current >= self.total or self._current % self.update_every == 0:
            self._callback(self._current, self.total)

    def finish(self):
        """Fire a closing update at the actual count.

        Unlike a completed run, a run stopped by its budget finishes below
        *total*; the final update reports the true number.
        """
        self._callback(self._current, self.total)


class PrintReporter:
    """Console progress reporter: ``\\rProgress:  40.0% (20/50 replicates)``."""

    def __init__(self, stream=None):
        self._stream = stream

    def __call__(self, current: int, total: int):
        if total <= 0:
            return
        stream = self._stream or sys.stderr
        pct = 100.0 * current / total
        stream.write(f"\rProgress: {pct:5.1f}% ({current}/{total} replicates)")
        stream.flush()
        if current >= total:
            stream.write("\n")
            stream.flush()


class TqdmReporter:
    """Optional tqdm-based progress reporter (lazy import).

    Usage::

        from nipower.progress import TqdmReporter
        model.find_power(progress_callback=TqdmReporter())
    """

    def __init__(self, **tqdm_kwargs):
        self._tqdm_kwargs = tqdm_kwargs
        self._bar = None

    def __call__(self, current: int, total: int):
        from tqdm import tqdm

        if self._bar is None:
            self._bar = tqdm(total=total, unit="rep", **self._tqdm_kwargs)

        delta = current - self._bar.n
        if delta > 0:
            self._bar.update(delta)

        if current >= total:
            self._bar.close()
            self._bar = None
