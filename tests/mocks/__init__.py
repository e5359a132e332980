"""
Test doubles for the load test suite.

- :mod:`.fakes` — stand-ins for Locust's ``HttpSession`` and its
  ``catch_response`` context manager
- :mod:`.id_service` — a tiny Flask app that behaves like the ID
  generator, with switchable failure modes
"""
