"""
Lightweight in-memory metrics for observability.

Counts logins, cache hits, re-authentications and extraction outcomes,
and records latency of provider API calls.
"""

import threading
import time
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator

from market_intel.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class TimingStats:
    """Statistics for timing measurements."""

    count: int = 0
    total_ms: float = 0.0
    min_ms: float = float("inf")
    max_ms: float = 0.0

    @property
    def avg_ms(self) -> float:
        """Average latency in milliseconds."""
        return self.total_ms / self.count if self.count > 0 else 0.0

    def record(self, duration_ms: float) -> None:
        """Record a timing measurement."""
        self.count += 1
        self.total_ms += duration_ms
        self.min_ms = min(self.min_ms, duration_ms)
        self.max_ms = max(self.max_ms, duration_ms)

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "total_ms": round(self.total_ms, 2),
            "avg_ms": round(self.avg_ms, 2),
            "min_ms": round(self.min_ms, 2) if self.count > 0 else 0.0,
            "max_ms": round(self.max_ms, 2),
        }


@dataclass
class Metrics:
    """
    In-memory metrics collector.

    Thread-safe counters and timing metrics. Uses a singleton so that
    session managers, clients and extractors share one set of counters.

    Example:
        >>> metrics = Metrics.get()
        >>> metrics.increment("logins")
        >>> with metrics.timer("stats_fetch_ms"):
        ...     stats = await client.fetch_stats(location)
    """

    _counters: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    _timings: dict[str, TimingStats] = field(
        default_factory=lambda: defaultdict(TimingStats)
    )
    _lock: threading.Lock = field(default_factory=threading.Lock)

    _instance: "Metrics | None" = field(default=None, repr=False, init=False)

    @classmethod
    def get(cls) -> "Metrics":
        """Get the global metrics instance, creating it on first use."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset all metrics (useful for testing)."""
        if cls._instance is not None:
            with cls._instance._lock:
                cls._instance._counters.clear()
                cls._instance._timings.clear()

    def increment(self, name: str, value: int = 1) -> int:
        """Increment a counter and return its new value."""
        with self._lock:
            self._counters[name] += value
            return self._counters[name]

    def get_counter(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def observe(self, name: str, duration_ms: float) -> None:
        """Record a timing observation."""
        with self._lock:
            self._timings[name].record(duration_ms)

    def get_timing(self, name: str) -> TimingStats | None:
        """Get a copy of the timing statistics for a metric."""
        with self._lock:
            if name in self._timings:
                stats = self._timings[name]
                return TimingStats(
                    count=stats.count,
                    total_ms=stats.total_ms,
                    min_ms=stats.min_ms,
                    max_ms=stats.max_ms,
                )
            return None

    @contextmanager
    def timer(self, name: str) -> Iterator[None]:
        """Context manager to time a block of code."""
        start = time.perf_counter()
        try:
            yield
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            self.observe(name, duration_ms)

    def snapshot(self) -> dict:
        """Get a snapshot of all counters and timings."""
        with self._lock:
            return {
                "counters": dict(self._counters),
                "timings": {
                    name: stats.to_dict()
                    for name, stats in self._timings.items()
                },
            }

    def summary(self) -> str:
        """Human-readable summary of the current metrics."""
        snap = self.snapshot()
        lines = ["=== Metrics Summary ==="]

        if snap["counters"]:
            lines.append("\nCounters:")
            for name, value in sorted(snap["counters"].items()):
                lines.append(f"  {name}: {value:,}")

        if snap["timings"]:
            lines.append("\nTimings:")
            for name, stats in sorted(snap["timings"].items()):
                lines.append(
                    f"  {name}: {stats['count']} calls, "
                    f"avg={stats['avg_ms']:.1f}ms, "
                    f"min={stats['min_ms']:.1f}ms, "
                    f"max={stats['max_ms']:.1f}ms"
                )

        return "\n".join(lines)


def increment_logins(count: int = 1) -> None:
    Metrics.get().increment("logins", count)


def increment_session_cache_hits(count: int = 1) -> None:
    Metrics.get().increment("session_cache_hits", count)


def increment_reauthentications(count: int = 1) -> None:
    Metrics.get().increment("reauthentications", count)


def increment_properties_extracted(count: int = 1) -> None:
    Metrics.get().increment("properties_extracted", count)


def increment_comparables_failed(count: int = 1) -> None:
    Metrics.get().increment("comparables_failed", count)


@contextmanager
def time_stats_request() -> Iterator[None]:
    """Time a market stats request (increments counter and records latency)."""
    Metrics.get().increment("stats_requests")
    with Metrics.get().timer("stats_fetch_ms"):
        yield
