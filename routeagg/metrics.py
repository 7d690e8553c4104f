"""
routeagg/metrics.py

Lightweight thread-safe counters for a run.
No external dependencies — uses Python's threading.Lock.

Usage:
    from routeagg.metrics import METRICS
    METRICS.records_read.inc()
    print(METRICS.as_dict())
"""

import threading


class Counter:
    """A thread-safe integer counter."""

    __slots__ = ("_value", "_lock")

    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    def inc(self, amount: int = 1) -> None:
        with self._lock:
            self._value += amount

    def reset(self) -> None:
        with self._lock:
            self._value = 0

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    def __repr__(self) -> str:  # pragma: no cover
        return f"Counter({self._value})"


class Metrics:
    """Singleton holding all run counters."""

    def __init__(self) -> None:
        # --- Ingest ---
        self.records_read: Counter = Counter()
        """Route updates folded into the aggregate."""

        self.records_rejected: Counter = Counter()
        """Parser elements that could not be turned into a RouteUpdate."""

        # --- Sinks ---
        self.rows_written: Counter = Counter()
        """Aggregate rows persisted or serialised."""

        self.rows_failed: Counter = Counter()
        """Aggregate rows that failed to persist."""

    def as_dict(self) -> dict:
        """Return all counters as a plain dict (safe for JSON serialisation)."""
        return {
            "records_read": self.records_read.value,
            "records_rejected": self.records_rejected.value,
            "rows_written": self.rows_written.value,
            "rows_failed": self.rows_failed.value,
        }

    def reset_all(self) -> None:
        """Reset every counter to zero (useful in tests)."""
        for attr in vars(self).values():
            if isinstance(attr, Counter):
                attr.reset()


# Module-level singleton, import from here everywhere
METRICS = Metrics()
