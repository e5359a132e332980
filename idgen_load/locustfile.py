"""
Locust entrypoint for the ID generator load test.

This is the file that the ``locust`` CLI loads (``idgen-load run``
points it here).  It exposes one user class and one load shape, and
wires the run lifecycle hooks that collect metrics and print the final
report.

Usage examples::

    # Default profile against a local generator:
    idgen-load run --host http://localhost

    # Plain Locust, custom profile.  Pass --stop-timeout yourself: Locust
    # defaults to 0, a hard cutoff, and only ``idgen-load run`` applies
    # the configured STOP_TIMEOUT drain.
    IDGEN_PROFILE=profiles/default.yml \\
        locust -f idgen_load/locustfile.py --headless --host http://localhost \\
        --stop-timeout 10

Key Concepts Demonstrated:
- ``LoadTestShape`` subclass built from configuration at import time
- Locust ``events`` hooks for start/stop/quit bookkeeping
- Exit code driven by thresholds instead of Locust's any-failure rule
"""

from __future__ import annotations

import logging

from locust import events

from idgen_load.config import get_config, load_run_profile
from idgen_load.hooks import finalize_run, on_test_start, on_test_stop
from idgen_load.profile import StagedLoadShape
from idgen_load.scenarios.id_generator import IdGeneratorUser

__all__ = ["IdGeneratorUser", "IdGeneratorLoadShape"]

logger = logging.getLogger(__name__)

SETTINGS = get_config()
PROFILE = load_run_profile(SETTINGS)


class IdGeneratorLoadShape(StagedLoadShape):
    """Ramp defined by the active run profile."""

    stages = PROFILE.stages
    start_target = PROFILE.start_users


events.test_start.add_listener(on_test_start)
events.test_stop.add_listener(on_test_stop)


@events.quitting.add_listener
def _report_summary(environment, **_kwargs):
    """Print the summary and turn the threshold verdict into the exit code."""
    verdict = finalize_run(environment, PROFILE, summary_export=SETTINGS.SUMMARY_EXPORT)
    if not verdict.passed:
        for result in verdict.breaches:
            logger.error(
                "Threshold breached: %s %s (actual %.4f)",
                result.threshold.metric,
                result.threshold.expression,
                result.actual,
            )
