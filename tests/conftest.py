"""
Shared pytest fixtures for the load test suite.

Key Concepts Demonstrated:
- Environment pinned to the testing configuration before imports
- Deterministic clocks so latency and rate assertions are exact
- Factory fixtures for fake clients and virtual users
"""

import os

# Locust applies gevent monkey patching on import; it has to happen before
# requests (and ssl) are imported.
import locust  # noqa: F401

import pytest
from faker import Faker

# Set testing environment before importing the package
os.environ["IDGEN_ENV"] = "testing"

from idgen_load.driver import VirtualUserContext
from idgen_load.metrics import MetricsStore
from tests.mocks.fakes import FakeClient


fake = Faker()


class StepClock:
    """Clock that advances by ``step`` seconds every time it is read."""

    def __init__(self, start: float = 0.0, step: float = 0.005):
        self.now = start
        self.step = step

    def __call__(self) -> float:
        current = self.now
        self.now += self.step
        return current


# -----------------------------------------------------------------------------
# Metrics Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def run_clock():
    """Manually advanced run clock for the metrics store."""
    return StepClock(start=100.0, step=0.0)


@pytest.fixture
def store(run_clock):
    """A started metrics store on a fake clock."""
    metrics = MetricsStore(clock=run_clock)
    metrics.start()
    return metrics


@pytest.fixture
def request_clock():
    """Per-request timer: every read moves 5 ms forward, so each request takes 5 ms."""
    return StepClock(start=0.0, step=0.005)


# -----------------------------------------------------------------------------
# Driver Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def vu_factory():
    """
    Factory fixture for virtual user contexts.

    Example:
        def test_something(vu_factory):
            first, second = vu_factory(1), vu_factory(2)
    """

    def _create(vu_id: int = 1) -> VirtualUserContext:
        return VirtualUserContext(vu_id=vu_id)

    return _create


@pytest.fixture
def vu(vu_factory):
    return vu_factory(1)


@pytest.fixture
def client():
    """Empty fake client; tests queue the responses they need."""
    return FakeClient()


@pytest.fixture
def unique_ids():
    """Ten distinct generated IDs."""
    return [fake.unique.uuid4() for _ in range(10)]
