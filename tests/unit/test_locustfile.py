"""
Unit tests for the Locust wiring: shape built from the profile, and the
user class driving one iteration through the environment's store.
"""

import pytest
from locust.env import Environment

from idgen_load import locustfile
from idgen_load.hooks import metrics_store_for
from idgen_load.profile import Stage
from idgen_load.scenarios.id_generator import IdGeneratorUser
from tests.mocks.fakes import FakeClient, FakeResponse, id_response


pytestmark = pytest.mark.unit


def test_shape_uses_testing_profile():
    assert locustfile.IdGeneratorLoadShape.stages == (Stage(1, 2), Stage(1, 0))
    assert locustfile.IdGeneratorLoadShape.abstract is False


def test_shape_ticks_then_stops(monkeypatch):
    shape = locustfile.IdGeneratorLoadShape()

    monkeypatch.setattr(shape, "get_run_time", lambda: 0.5)
    assert shape.tick() == (1, 2.0)

    monkeypatch.setattr(shape, "get_run_time", lambda: 2.0)
    assert shape.tick() is None


def test_locustfile_exports_one_user_and_one_shape():
    assert locustfile.__all__ == ["IdGeneratorUser", "IdGeneratorLoadShape"]


class TestIdGeneratorUser:
    """Drive the real user class with a fake HTTP client."""

    @pytest.fixture
    def environment(self):
        return Environment(user_classes=[IdGeneratorUser])

    @pytest.fixture
    def user(self, environment):
        instance = IdGeneratorUser(environment)
        instance.client = FakeClient()
        instance.on_start()
        return instance

    def test_no_think_time(self, user):
        assert user.wait_time() == 0

    def test_each_user_gets_its_own_context(self, environment, user):
        other = IdGeneratorUser(environment)
        other.on_start()

        assert other.vu.vu_id != user.vu.vu_id
        assert other.vu.seen_ids is not user.vu.seen_ids

    def test_generate_id_records_into_environment_store(self, environment, user):
        # Arrange
        user.client.queue(id_response("a"), FakeResponse(status_code=500, body={}))

        # Act
        user.generate_id()
        user.generate_id()

        # Assert
        snapshot = metrics_store_for(environment).snapshot()
        assert snapshot.iterations == 2
        assert snapshot.successes == 1
        assert snapshot.failures == 1
        path, kwargs = user.client.calls[0]
        assert path == "/api/generator/ids"
        assert kwargs["timeout"] == IdGeneratorUser.settings.REQUEST_TIMEOUT
