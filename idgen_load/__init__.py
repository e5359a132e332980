"""
ID generator load test package (Locust-based).

Drives ramped load against ``POST /api/generator/ids``, checks every
response, watches for repeated IDs within each virtual user, and judges
the run against configurable thresholds.

Modules:

- :mod:`.profile` — staged ramp and the Locust load shape
- :mod:`.driver` — one request/validate/record iteration
- :mod:`.metrics` — lock-guarded store shared by all virtual users
- :mod:`.summary` / :mod:`.thresholds` — report and verdict
- :mod:`.locustfile` — what the ``locust`` CLI loads
- :mod:`.cli` — ``idgen-load run | check | audit-ids``
"""

__version__ = "0.1.0"
