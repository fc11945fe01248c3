# convnet/helpers/timers.py
import time
from contextlib import contextmanager

from .Backend import backend


class Timers:
    """
    Named wall-clock timers, one entry per scope name (e.g. "conv:forward").
    Layers open a scope at method entry; the scope closes on exit, even on error.
    """

    def __init__(self, enabled=True):
        self.enabled = enabled
        self._counts = {}
        self._totals = {}

    @contextmanager
    def scope(self, name):
        if not self.enabled:
            yield
            return
        t0 = time.time()
        try:
            yield
        finally:
            backend.synchronize()
            elapsed = time.time() - t0
            self._counts[name] = self._counts.get(name, 0) + 1
            self._totals[name] = self._totals.get(name, 0.0) + elapsed

    def summary(self):
        return {
            name: {"count": self._counts[name], "total_s": self._totals[name]}
            for name in self._counts
        }

    def reset(self):
        self._counts.clear()
        self._totals.clear()

    def dump(self):
        if not self._counts:
            print("No timers recorded")
            return
        print(f"{'timer':<28}{'count':>8}{'total(ms)':>12}{'mean(ms)':>12}")
        for name in sorted(self._totals, key=self._totals.get, reverse=True):
            total_ms = self._totals[name] * 1000.0
            count = self._counts[name]
            print(f"{name:<28}{count:>8}{total_ms:>12.3f}{total_ms / count:>12.3f}")


# Global timers instance shared by every layer
timers = Timers(enabled=True)
