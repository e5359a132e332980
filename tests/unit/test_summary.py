"""
Unit tests for summary aggregation, the text report and JSON export.
"""

import json

import pytest

from idgen_load.driver import run_iteration
from idgen_load.metrics import MetricsSnapshot
from idgen_load.summary import (
    DUPLICATE_CAVEAT,
    LatencyStats,
    RunSummary,
    export_summary,
    latency_stats,
    load_summary,
    percentile,
    render_report,
    summarize,
)
from idgen_load.thresholds import DEFAULT_THRESHOLDS, evaluate_thresholds, load_thresholds
from tests.mocks.fakes import FakeResponse, id_response


pytestmark = pytest.mark.unit

PATH = "/api/generator/ids"


def _run(client, vu, store, clock, count):
    for _ in range(count):
        run_iteration(client, vu, store, path=PATH, clock=clock)


class TestLatencyStats:
    def test_percentiles_interpolate_linearly(self):
        ordered = [1.0, 2.0, 3.0, 4.0, 5.0]

        assert percentile(ordered, 50) == 3.0
        assert percentile(ordered, 95) == pytest.approx(4.8)
        assert percentile(ordered, 0) == 1.0
        assert percentile(ordered, 100) == 5.0

    def test_single_sample(self):
        stats = latency_stats([7.0])

        assert stats == LatencyStats(count=1, avg=7.0, min=7.0, med=7.0, max=7.0, p90=7.0, p95=7.0, p99=7.0)

    def test_unsorted_input(self):
        stats = latency_stats([30.0, 10.0, 20.0])

        assert stats.min == 10.0
        assert stats.med == 20.0
        assert stats.max == 30.0
        assert stats.avg == pytest.approx(20.0)

    def test_no_samples(self):
        assert latency_stats([]) == LatencyStats()
        assert percentile([], 99) == 0.0


class TestSummarize:
    def test_zero_iterations_has_defined_rates(self):
        """An empty run must summarise without dividing by zero."""
        summary = summarize(MetricsSnapshot())

        assert summary.total_requests == 0
        assert summary.success_rate == 0.0
        assert summary.error_rate == 0.0
        assert summary.requests_per_second == 0.0
        assert summary.latency == LatencyStats()

    def test_zero_iterations_report_renders_and_fails_check_rate(self):
        summary = summarize(MetricsSnapshot())
        verdict = evaluate_thresholds(summary, load_thresholds(DEFAULT_THRESHOLDS))

        report = render_report(summary, verdict)

        assert "Total Requests: 0" in report
        assert "Success Rate: 0.00%" in report
        assert "=== Result: FAIL ✗ ===" in report

    def test_summary_is_idempotent(self, client, vu, store, request_clock):
        client.queue(id_response(1), FakeResponse(status_code=500, body={}), id_response(2))
        _run(client, vu, store, request_clock, 3)
        snapshot = store.snapshot()

        first, second = summarize(snapshot), summarize(snapshot)

        assert first == second
        verdict = evaluate_thresholds(first, load_thresholds(DEFAULT_THRESHOLDS))
        assert render_report(first, verdict) == render_report(second, verdict)

    def test_requests_per_second_uses_run_duration(self, run_clock, store, client, vu, request_clock):
        client.queue(*(id_response(n) for n in range(20)))
        _run(client, vu, store, request_clock, 20)
        run_clock.now += 10.0
        store.stop()

        summary = summarize(store.snapshot())

        assert summary.duration_s == pytest.approx(10.0)
        assert summary.requests_per_second == pytest.approx(2.0)


class TestScenarioVerdicts:
    def test_all_valid_unique_ids_pass(self, client, vu, store, request_clock, unique_ids):
        # Arrange
        client.queue(*(id_response(value) for value in unique_ids))
        _run(client, vu, store, request_clock, 10)

        # Act
        summary = summarize(store.snapshot())
        verdict = evaluate_thresholds(summary, load_thresholds(DEFAULT_THRESHOLDS))

        # Assert - 5 ms per request is within p(99)<20
        assert summary.success_rate == 1.0
        assert summary.error_rate == 0.0
        assert summary.latency.p99 == pytest.approx(5.0)
        assert verdict.passed is True
        report = render_report(summary, verdict)
        assert "Success Rate: 100.00%" in report
        assert "Error Rate: 0.00%" in report
        assert "=== Result: PASS ✓ ===" in report

    def test_half_server_errors_fail(self, client, vu, store, request_clock, unique_ids):
        # Arrange
        for index, value in enumerate(unique_ids):
            client.queue(FakeResponse(status_code=500, body={}) if index < 5 else id_response(value))
        _run(client, vu, store, request_clock, 10)

        # Act
        summary = summarize(store.snapshot())
        verdict = evaluate_thresholds(summary, load_thresholds(DEFAULT_THRESHOLDS))

        # Assert
        assert summary.failed_requests == 5
        assert summary.error_rate == pytest.approx(0.5)
        assert summary.successful_requests + summary.failed_requests == summary.total_requests
        assert verdict.passed is False
        assert "http_req_failed" in [r.threshold.metric for r in verdict.breaches]
        assert "Error Rate: 50.00%" in render_report(summary, verdict)

    def test_duplicate_leaves_rates_untouched(self, client, vu, store, request_clock):
        client.queue(id_response("same"), id_response("same"))
        _run(client, vu, store, request_clock, 2)

        summary = summarize(store.snapshot())

        assert summary.duplicate_ids == 1
        assert summary.success_rate == 1.0
        assert summary.error_rate == 0.0


class TestReport:
    def test_report_fields_and_caveat(self):
        summary = RunSummary(
            total_requests=4,
            successful_requests=3,
            failed_requests=1,
            failures_by_reason={"unexpected_status": 1},
            success_rate=0.9,
            error_rate=0.25,
            latency=LatencyStats(count=3, avg=2.5, max=9.0, p95=8.25),
        )
        verdict = evaluate_thresholds(summary, ())

        report = render_report(summary, verdict)

        assert "=== Load Test Summary ===" in report
        assert "Total Requests: 4" in report
        assert "Success Rate: 90.00%" in report
        assert "Error Rate: 25.00%" in report
        assert "Average Response Time: 2.50ms" in report
        assert "P95 Response Time: 8.25ms" in report
        assert "Max Response Time: 9.00ms" in report
        assert "  unexpected_status: 1" in report
        assert DUPLICATE_CAVEAT in report
        assert "=== Result: PASS ✓ ===" in report

    def test_threshold_table_lists_each_threshold(self):
        summary = RunSummary(latency=LatencyStats(p99=25.0))
        verdict = evaluate_thresholds(summary, load_thresholds({"http_req_duration": "p(99)<20"}))

        report = render_report(summary, verdict)

        row = next(line for line in report.splitlines() if line.startswith("http_req_duration"))
        assert "p(99)<20" in row
        assert row.rstrip().endswith("FAIL")


class TestExport:
    def test_export_and_reload(self, tmp_path):
        summary = RunSummary(
            total_requests=10,
            successful_requests=9,
            failed_requests=1,
            failures_by_reason={"missing_id": 1},
            success_rate=0.95,
            error_rate=0.1,
            latency=LatencyStats(count=9, avg=3.0, p99=6.0),
        )
        path = tmp_path / "out" / "summary.json"

        export_summary(summary, path)

        assert json.loads(path.read_text(encoding="utf-8"))["latency"]["p99"] == 6.0
        assert load_summary(path) == summary

    def test_load_rejects_non_object(self, tmp_path):
        path = tmp_path / "summary.json"
        path.write_text("[1, 2]", encoding="utf-8")

        with pytest.raises(ValueError, match="JSON object"):
            load_summary(path)

    def test_from_dict_rejects_unknown_fields(self):
        with pytest.raises(ValueError, match="Invalid summary data"):
            RunSummary.from_dict({"total_requests": 1, "bogus": 2})
