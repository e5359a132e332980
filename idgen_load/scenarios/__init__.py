"""
Locust scenario user classes.

- :mod:`.id_generator` — one virtual user hammering the ID endpoint
  with no think-time, checking every response and the IDs it receives.
"""
