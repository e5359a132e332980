"""
Threshold expressions and their evaluation against a run summary.

Thresholds are configured as a mapping from metric name to one or more
expressions, for example::

    http_req_duration: ["p(99)<20"]
    http_req_failed: ["rate<0.001"]
    checks: ["rate>0.999"]

Each expression is ``<aggregation><operator><number>``.  Metric and
aggregation names are resolved through a fixed table onto the named
fields of :class:`~idgen_load.summary.RunSummary`, so an unknown name is
a configuration error caught at load time rather than a silent ``None``
at the end of a long run.
"""

from __future__ import annotations

import operator
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from idgen_load.summary import RunSummary


# Three-state exit codes so CI can tell "thresholds breached" from "script crashed".
EXIT_PASS = 0
EXIT_THRESHOLD_BREACH = 1
EXIT_SCRIPT_ERROR = 2


class ThresholdError(ValueError):
    """Raised for malformed expressions or unknown metric/aggregation names."""


_EXPRESSION = re.compile(
    r"^\s*(?P<aggregation>[a-z]+(?:\(\d+(?:\.\d+)?\))?)\s*"
    r"(?P<operator><=|>=|==|!=|<|>)\s*"
    r"(?P<value>-?\d+(?:\.\d+)?)\s*$"
)

_OPERATORS: dict[str, Callable[[float, float], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "==": operator.eq,
    "!=": operator.ne,
}

_RESOLVERS: dict[str, dict[str, Callable[[RunSummary], float]]] = {
    "http_req_duration": {
        "avg": lambda s: s.latency.avg,
        "min": lambda s: s.latency.min,
        "med": lambda s: s.latency.med,
        "max": lambda s: s.latency.max,
        "p(50)": lambda s: s.latency.med,
        "p(90)": lambda s: s.latency.p90,
        "p(95)": lambda s: s.latency.p95,
        "p(99)": lambda s: s.latency.p99,
    },
    "http_req_failed": {"rate": lambda s: s.error_rate},
    "checks": {"rate": lambda s: s.success_rate},
    "http_reqs": {
        "count": lambda s: float(s.total_requests),
        "rate": lambda s: s.requests_per_second,
    },
    "successful_requests": {"count": lambda s: float(s.successful_requests)},
    "failed_requests": {"count": lambda s: float(s.failed_requests)},
    "duplicate_ids": {"count": lambda s: float(s.duplicate_ids)},
}

DEFAULT_THRESHOLDS: dict[str, list[str]] = {
    "http_req_duration": ["p(99)<20"],
    "http_req_failed": ["rate<0.001"],
    "checks": ["rate>0.999"],
}


@dataclass(frozen=True)
class Threshold:
    metric: str
    expression: str
    aggregation: str
    operator: str
    value: float

    def actual(self, summary: RunSummary) -> float:
        return _RESOLVERS[self.metric][self.aggregation](summary)

    def holds(self, actual: float) -> bool:
        return _OPERATORS[self.operator](actual, self.value)


@dataclass(frozen=True)
class ThresholdResult:
    threshold: Threshold
    actual: float
    passed: bool


@dataclass(frozen=True)
class RunVerdict:
    """Overall PASS/FAIL plus one result per configured threshold."""

    passed: bool
    results: tuple[ThresholdResult, ...] = ()

    @property
    def breaches(self) -> tuple[ThresholdResult, ...]:
        return tuple(result for result in self.results if not result.passed)

    @property
    def exit_code(self) -> int:
        return EXIT_PASS if self.passed else EXIT_THRESHOLD_BREACH


def parse_threshold(metric: str, expression: str) -> Threshold:
    """
    Parse one expression for ``metric``.

    Raises:
        ThresholdError: If the metric is unknown, the expression does not
            match ``<aggregation><op><number>``, or the aggregation is
            not available for that metric.
    """
    if metric not in _RESOLVERS:
        known = ", ".join(sorted(_RESOLVERS))
        raise ThresholdError(f"Unknown threshold metric {metric!r} (known: {known})")

    match = _EXPRESSION.match(str(expression))
    if match is None:
        raise ThresholdError(f"Malformed threshold expression for {metric}: {expression!r}")

    aggregation = match.group("aggregation")
    if aggregation not in _RESOLVERS[metric]:
        allowed = ", ".join(_RESOLVERS[metric])
        raise ThresholdError(
            f"Aggregation {aggregation!r} is not supported for {metric} (use one of: {allowed})"
        )

    return Threshold(
        metric=metric,
        expression=str(expression).strip(),
        aggregation=aggregation,
        operator=match.group("operator"),
        value=float(match.group("value")),
    )


def load_thresholds(mapping: Mapping[str, str | Iterable[str]] | None) -> tuple[Threshold, ...]:
    """
    Parse a ``{metric: expression | [expressions]}`` mapping.

    ``None`` or an empty mapping yields no thresholds.
    """
    if not mapping:
        return ()
    if not isinstance(mapping, Mapping):
        raise ThresholdError("Thresholds must be a mapping of metric name to expressions")

    thresholds: list[Threshold] = []
    for metric, expressions in mapping.items():
        if isinstance(expressions, str):
            expressions = [expressions]
        elif expressions is None:
            expressions = ()
        elif isinstance(expressions, Mapping) or not isinstance(expressions, Iterable):
            raise ThresholdError(
                f"Thresholds for {metric} must be an expression or a list of expressions, "
                f"got {expressions!r}"
            )
        for expression in expressions:
            if not isinstance(expression, str):
                raise ThresholdError(
                    f"Threshold expression for {metric} must be a string, got {expression!r}"
                )
            thresholds.append(parse_threshold(str(metric), expression))
    return tuple(thresholds)


def evaluate_thresholds(summary: RunSummary, thresholds: Iterable[Threshold]) -> RunVerdict:
    """PASS iff every threshold holds; an empty set of thresholds passes."""
    results = []
    for threshold in thresholds:
        actual = threshold.actual(summary)
        results.append(ThresholdResult(threshold, actual, threshold.holds(actual)))
    return RunVerdict(passed=all(r.passed for r in results), results=tuple(results))
