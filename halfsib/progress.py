"""
Progress reporting for HalfSib replicate studies.

The replicate runner records the outcome of every replicate. Interested
code receives ``callback(done, total, failed)`` updates, where *failed*
counts the replicates whose generation or fit has failed so far.
"""

import sys
from typing import Callable, Optional


class ReplicatesCancelled(Exception):
    """Raised when a replicate study is cancelled by the user."""

    pass


class ProgressReporter:
    """Tracks finished and failed replicates and notifies a callback.

    Updates are throttled to one per *update_every* replicates, except that
    a failed replicate and the final replicate are always reported.

    Args:
        total: Number of replicates in the study.
        callback: Called as ``callback(done, total, failed)``.
        update_every: Replicates between routine updates. Defaults to
            every 5% of the study.
    """

    def __init__(
        self,
        total: int,
        callback: Callable[[int, int, int], None],
        update_every: Optional[int] = None,
    ):
        self.total = total
        self.update_every = update_every if update_every is not None else max(1, total // 20)
        self.done = 0
        self.failed = 0
        self._callback = callback
        self._reported = -1

    @property
    def failure_rate(self) -> float:
        """Share of finished replicates that failed."""
        return self.failed / self.done if self.done else 0.0

    def _notify(self):
        self._reported = self.done
        self._callback(self.done, self.total, self.failed)

    def start(self):
        self.done = 0
        self.failed = 0
        self._notify()

    def record(self, succeeded: bool):
        """Record one finished replicate."""
        self.done += 1
        if not succeeded:
            self.failed += 1
        if not succeeded or self.done >= self.total or self.done % self.update_every == 0:
            self._notify()

    def finish(self):
        """Report the final state unless it was the last update sent."""
        if self._reported != self.done:
            self._notify()


class PrintReporter:
    """Console reporter: ``\\rReplicates:  45/100 ( 45.0%), 2 failed``."""

    def __call__(self, done: int, total: int, failed: int):
        if total <= 0:
            return
        width = len(str(total))
        line = f"\rReplicates: {done:>{width}}/{total} ({100.0 * done / total:5.1f}%)"
        if failed:
            line += f", {failed} failed"
        sys.stderr.write(line)
        if done >= total:
            sys.stderr.write("\n")
        sys.stderr.flush()


class TqdmReporter:
    """tqdm progress bar with the failure count as postfix (lazy import).

    Usage::

        from halfsib.progress import TqdmReporter
        model.run_replicates(200, progress_callback=TqdmReporter())
    """

    def __init__(self, **tqdm_kwargs):
        self._tqdm_kwargs = tqdm_kwargs
        self._bar = None

    def __call__(self, done: int, total: int, failed: int):
        from tqdm import tqdm

        if self._bar is None:
            self._bar = tqdm(total=total, unit="rep", **self._tqdm_kwargs)

        if failed:
            self._bar.set_postfix(failed=failed, refresh=False)
        if done > self._bar.n:
            self._bar.update(done - self._bar.n)

        if done >= total:
            self._bar.close()
            self._bar = None
