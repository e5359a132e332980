"""
ID generator Locust scenario.

Defines :class:`IdGeneratorUser`, one virtual user that calls
``POST /api/generator/ids`` back to back.  There is no think-time: the
only pause between iterations is the wait for the previous response, so
request rate is governed entirely by how many users the load shape has
running.

Every user owns a :class:`~idgen_load.driver.VirtualUserContext` holding
its number, iteration counter and the set of IDs it has received.  Users
never look at each other's sets.

Key Concepts Demonstrated:
- ``constant(0)`` wait time for closed-loop, back-to-back load
- VU-local state created in ``on_start``
- Shared metrics store reached through the Locust environment
"""

from __future__ import annotations

import itertools

from locust import HttpUser, constant, task

from idgen_load.config import Config, get_config
from idgen_load.driver import VirtualUserContext, run_iteration
from idgen_load.hooks import metrics_store_for

# Locust does not number its users, so hand out 1-based numbers here.
_vu_numbers = itertools.count(1)


class IdGeneratorUser(HttpUser):
    """
    Request IDs as fast as the generator answers.

    Attributes:
        settings: Configuration class supplying path, timeout and logging
            switches.
        vu: This user's private context, created in ``on_start``.
    """

    settings: type[Config] = get_config()
    host = settings.TARGET_HOST
    wait_time = constant(0)

    vu: VirtualUserContext

    def on_start(self) -> None:
        """Give this user its number and an empty set of seen IDs."""
        self.vu = VirtualUserContext(vu_id=next(_vu_numbers))

    @task
    def generate_id(self) -> None:
        """Run one request/validate/record iteration."""
        run_iteration(
            self.client,
            self.vu,
            metrics_store_for(self.environment),
            path=self.settings.ENDPOINT_PATH,
            timeout=self.settings.REQUEST_TIMEOUT,
            log_ids=self.settings.LOG_IDS,
        )
