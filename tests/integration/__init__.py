"""
Integration tests for the load driver.

These run the driver against a live stub ID service over real HTTP,
through Locust's own ``HttpSession``.
"""
