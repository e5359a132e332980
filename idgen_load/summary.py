"""
Run summary: derived rates, latency statistics and the final report.

:func:`summarize` turns a :class:`~idgen_load.metrics.MetricsSnapshot`
into a :class:`RunSummary`, a frozen record with named fields.  Because
it reads only the snapshot, calling it twice on the same snapshot gives
identical results.  Every rate has a defined value when its denominator
is zero (``0.0``), so a run that never completed an iteration still
produces a report instead of a ``ZeroDivisionError``.

Key Concepts Demonstrated:
- Typed summary record instead of string-keyed metric lookups
- Linear-interpolation percentiles over raw latency samples
- JSON export so CI can re-gate a finished run
  (see :mod:`idgen_load.cli`)
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from idgen_load.metrics import MetricsSnapshot
from idgen_load.thresholds import RunVerdict

PASS_MARK = "PASS ✓"
FAIL_MARK = "FAIL ✗"

DUPLICATE_CAVEAT = (
    "Note: Duplicate ID detection is per virtual user only; cross-VU duplicates "
    "require offline analysis of the logged IDs (idgen-load audit-ids)."
)


@dataclass(frozen=True)
class LatencyStats:
    """Response-time distribution in milliseconds."""

    count: int = 0
    avg: float = 0.0
    min: float = 0.0
    med: float = 0.0
    max: float = 0.0
    p90: float = 0.0
    p95: float = 0.0
    p99: float = 0.0


@dataclass(frozen=True)
class RunSummary:
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    failures_by_reason: Mapping[str, int] = field(default_factory=dict)
    checks_passed: int = 0
    checks_failed: int = 0
    duplicate_ids: int = 0
    success_rate: float = 0.0
    error_rate: float = 0.0
    requests_per_second: float = 0.0
    duration_s: float = 0.0
    latency: LatencyStats = field(default_factory=LatencyStats)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RunSummary:
        """
        Rebuild a summary from :meth:`to_dict` output.

        Raises:
            ValueError: If the mapping has unknown keys or a bad
                ``latency`` block.
        """
        values = dict(data)
        latency = values.pop("latency", None) or {}
        try:
            return cls(
                latency=LatencyStats(**latency),
                failures_by_reason=dict(values.pop("failures_by_reason", None) or {}),
                **values,
            )
        except TypeError as exc:
            raise ValueError(f"Invalid summary data: {exc}") from exc


def _ratio(numerator: float, denominator: float) -> float:
    if denominator <= 0:
        return 0.0
    return numerator / denominator


def percentile(sorted_values: Sequence[float], pct: float) -> float:
    """
    Percentile of pre-sorted values using linear interpolation.

    Returns ``0.0`` for an empty sequence.
    """
    if not sorted_values:
        return 0.0
    rank = (len(sorted_values) - 1) * (pct / 100.0)
    lower = math.floor(rank)
    upper = math.ceil(rank)
    if lower == upper:
        return float(sorted_values[int(rank)])
    return sorted_values[lower] * (upper - rank) + sorted_values[upper] * (rank - lower)


def latency_stats(samples: Sequence[float]) -> LatencyStats:
    if not samples:
        return LatencyStats()
    ordered = sorted(samples)
    return LatencyStats(
        count=len(ordered),
        avg=sum(ordered) / len(ordered),
        min=ordered[0],
        med=percentile(ordered, 50),
        max=ordered[-1],
        p90=percentile(ordered, 90),
        p95=percentile(ordered, 95),
        p99=percentile(ordered, 99),
    )


def summarize(snapshot: MetricsSnapshot) -> RunSummary:
    """
    Derive the run summary from a metrics snapshot.

    ``success_rate`` is the share of passed checks and ``error_rate``
    the share of failed iterations.  Both are fractions in ``[0, 1]``.
    """
    checks_total = snapshot.checks_passed + snapshot.checks_failed
    return RunSummary(
        total_requests=snapshot.iterations,
        successful_requests=snapshot.successes,
        failed_requests=snapshot.failures,
        failures_by_reason=dict(snapshot.failures_by_reason),
        checks_passed=snapshot.checks_passed,
        checks_failed=snapshot.checks_failed,
        duplicate_ids=snapshot.duplicates,
        success_rate=_ratio(snapshot.checks_passed, checks_total),
        error_rate=_ratio(snapshot.failures, snapshot.iterations),
        requests_per_second=_ratio(snapshot.iterations, snapshot.elapsed_s),
        duration_s=snapshot.elapsed_s,
        latency=latency_stats(snapshot.latencies_ms),
    )


def _format_threshold_table(verdict: RunVerdict) -> list[str]:
    lines = [
        "-" * 72,
        f"{'Metric':<22}{'Threshold':<16}{'Actual':>14}{'Status':>12}",
        "-" * 72,
    ]
    for result in verdict.results:
        threshold = result.threshold
        status = "PASS" if result.passed else "FAIL"
        lines.append(
            f"{threshold.metric:<22}{threshold.expression:<16}{result.actual:>14.4f}{status:>12}"
        )
    lines.append("-" * 72)
    return lines


def render_report(summary: RunSummary, verdict: RunVerdict) -> str:
    """Build the multi-line text report printed at the end of a run."""
    lines = [
        "",
        "=== Load Test Summary ===",
        f"Total Requests: {summary.total_requests}",
        f"Success Rate: {summary.success_rate * 100:.2f}%",
        f"Error Rate: {summary.error_rate * 100:.2f}%",
        f"Average Response Time: {summary.latency.avg:.2f}ms",
        f"P95 Response Time: {summary.latency.p95:.2f}ms",
        f"Max Response Time: {summary.latency.max:.2f}ms",
        f"Duplicate IDs (within VU): {summary.duplicate_ids}",
    ]
    if summary.failures_by_reason:
        lines.append("Failures by reason:")
        for reason, count in sorted(summary.failures_by_reason.items()):
            lines.append(f"  {reason}: {count}")
    lines.append(DUPLICATE_CAVEAT)
    if verdict.results:
        lines.extend(_format_threshold_table(verdict))
    lines.append(f"=== Result: {PASS_MARK if verdict.passed else FAIL_MARK} ===")
    return "\n".join(lines) + "\n"


def export_summary(summary: RunSummary, path: Path) -> None:
    """Write ``summary`` as JSON, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        json.dump(summary.to_dict(), handle, indent=2, sort_keys=True)


def load_summary(path: Path) -> RunSummary:
    """
    Read a summary written by :func:`export_summary`.

    Raises:
        ValueError: If the file is not a JSON object describing a summary.
    """
    with path.open("r", encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise ValueError("Summary file must contain a JSON object")
    return RunSummary.from_dict(data)
