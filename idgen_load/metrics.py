"""
Concurrency-safe metrics store shared by every virtual user.

All virtual users report into one :class:`MetricsStore`.  Under Locust
they are greenlets in one process, and in tests they may be real
threads, so every mutation happens under a single lock.  Readers never
touch the live counters: :meth:`MetricsStore.snapshot` copies them into
an immutable :class:`MetricsSnapshot` that the summary layer works from.

Key Concepts Demonstrated:
- Lock-guarded aggregation instead of unguarded shared state
- Immutable snapshots so summaries are repeatable
- Counting only completed iterations, which keeps
  ``successes + failures == iterations`` true at every instant
"""

from __future__ import annotations

import threading
import time
from collections import Counter
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

from idgen_load.outcomes import Failure, RequestOutcome, Success


@dataclass(frozen=True)
class MetricsSnapshot:
    """Point-in-time copy of everything the store has recorded."""

    iterations: int = 0
    successes: int = 0
    failures: int = 0
    failures_by_reason: Mapping[str, int] = field(default_factory=dict)
    checks_passed: int = 0
    checks_failed: int = 0
    checks_by_name: Mapping[str, tuple[int, int]] = field(default_factory=dict)
    duplicates: int = 0
    latencies_ms: tuple[float, ...] = ()
    elapsed_s: float = 0.0


class MetricsStore:
    """
    Shared counters and latency samples for one run.

    Args:
        clock: Monotonic clock used to measure run duration.  Tests pass
            a fake to get deterministic request rates.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._reset_locked()

    def _reset_locked(self) -> None:
        self._started_at: float | None = None
        self._stopped_at: float | None = None
        self._iterations = 0
        self._successes = 0
        self._failures: Counter[str] = Counter()
        self._checks: dict[str, list[int]] = {}
        self._duplicates = 0
        self._latencies: list[float] = []

    def start(self) -> None:
        """Clear previous results and start the run clock."""
        with self._lock:
            self._reset_locked()
            self._started_at = self._clock()

    def stop(self) -> None:
        """Freeze the run clock; later snapshots report the same duration."""
        with self._lock:
            if self._started_at is not None and self._stopped_at is None:
                self._stopped_at = self._clock()

    def record(
        self, outcome: RequestOutcome, checks: Mapping[str, bool] | None = None
    ) -> None:
        """
        Record one finished iteration.

        Args:
            outcome: The iteration's single outcome.
            checks: Named check results evaluated for this iteration.
        """
        if not isinstance(outcome, (Success, Failure)):
            raise TypeError(f"Unsupported outcome type: {type(outcome).__name__}")

        with self._lock:
            self._iterations += 1
            if isinstance(outcome, Success):
                self._successes += 1
            else:
                self._failures[outcome.reason.value] += 1

            if outcome.latency_ms is not None:
                self._latencies.append(outcome.latency_ms)

            for name, passed in (checks or {}).items():
                tally = self._checks.setdefault(name, [0, 0])
                tally[0 if passed else 1] += 1

    def record_duplicate(self) -> None:
        """Count a per-VU duplicate ID.  Has no effect on success/failure counts."""
        with self._lock:
            self._duplicates += 1

    def snapshot(self) -> MetricsSnapshot:
        """Return an immutable copy of the current state."""
        with self._lock:
            if self._started_at is None:
                elapsed = 0.0
            else:
                end = self._stopped_at if self._stopped_at is not None else self._clock()
                elapsed = max(end - self._started_at, 0.0)

            passed = sum(tally[0] for tally in self._checks.values())
            failed = sum(tally[1] for tally in self._checks.values())
            return MetricsSnapshot(
                iterations=self._iterations,
                successes=self._successes,
                failures=sum(self._failures.values()),
                failures_by_reason=dict(self._failures),
                checks_passed=passed,
                checks_failed=failed,
                checks_by_name={name: (t[0], t[1]) for name, t in self._checks.items()},
                duplicates=self._duplicates,
                latencies_ms=tuple(self._latencies),
                elapsed_s=elapsed,
            )
