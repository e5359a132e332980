"""
Run lifecycle glue between Locust events and the metrics/summary layer.

The locustfile registers these functions as event listeners.  They live
here, away from the ``@events`` decorators, so tests can call them with
a stand-in environment object instead of a running Locust.

- ``test_start`` → reset the store and start its clock
- ``test_stop`` → freeze the run duration
- ``quitting`` → summarise, evaluate thresholds, print the report,
  optionally export JSON, and set the process exit code
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, TextIO

from idgen_load.config import RunProfile
from idgen_load.metrics import MetricsStore
from idgen_load.summary import export_summary, render_report, summarize
from idgen_load.thresholds import RunVerdict, evaluate_thresholds

logger = logging.getLogger(__name__)

STORE_ATTRIBUTE = "idgen_metrics"


def metrics_store_for(environment: Any) -> MetricsStore:
    """Return the store attached to ``environment``, attaching one on first use."""
    store = getattr(environment, STORE_ATTRIBUTE, None)
    if store is None:
        store = MetricsStore()
        setattr(environment, STORE_ATTRIBUTE, store)
    return store


def on_test_start(environment: Any, **_kwargs: Any) -> None:
    metrics_store_for(environment).start()
    logger.info("Load test started; collecting ID generator metrics")


def on_test_stop(environment: Any, **_kwargs: Any) -> None:
    metrics_store_for(environment).stop()


def finalize_run(
    environment: Any,
    profile: RunProfile,
    *,
    summary_export: str | None = None,
    stream: TextIO | None = None,
) -> RunVerdict:
    """
    Produce the end-of-run report and map the verdict to an exit code.

    Args:
        environment: Locust environment (or any object with attributes).
        profile: Run profile supplying the thresholds.
        summary_export: Optional path for a JSON copy of the summary.
        stream: Where to write the report; defaults to ``sys.stdout``.

    Returns:
        The evaluated verdict.  ``environment.process_exit_code`` is set
        to ``0`` on PASS and ``1`` on FAIL.
    """
    store = metrics_store_for(environment)
    store.stop()

    summary = summarize(store.snapshot())
    verdict = evaluate_thresholds(summary, profile.thresholds)

    out = stream if stream is not None else sys.stdout
    out.write(render_report(summary, verdict))
    out.flush()

    if summary_export:
        export_summary(summary, Path(summary_export))
        logger.info("Summary written to %s", summary_export)

    environment.process_exit_code = verdict.exit_code
    return verdict
