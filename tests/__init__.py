"""
Test suite for the ID generator load test.

This package contains:
- unit/: scheduler, driver, metrics, thresholds, summary, config and CLI
- integration/: the driver against a live stub of the ID service
- mocks/: fake Locust responses/clients and the Flask stub service
"""
