"""Pytest configuration for the DzzenOS API tests.

Environment defaults are set before any test imports the app, so the
module-level ``app`` and the cached settings are built for the test context.
"""

import os


def pytest_configure(config):
    """Configure test environment before any tests run.

    - ENVIRONMENT=test
    - PROVIDER_MODE=mock so nothing ever reaches a real completion endpoint
    - no startup seeding surprises from a developer's .env DEFAULT_AGENT_ID
    """
    config.addinivalue_line("markers", "slow: Slow-running tests (excluded from fast)")
    config.addinivalue_line("markers", "integration: Integration tests requiring external services")

    os.environ.setdefault("ENVIRONMENT", "test")
    os.environ.setdefault("PROVIDER_MODE", "mock")
    os.environ.setdefault("DEFAULT_AGENT_ID", "")
    os.environ.setdefault("LOG_LEVEL", "WARNING")
