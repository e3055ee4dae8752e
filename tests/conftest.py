"""
Pytest Configuration for Fleet Fraud Engine Tests

IMPORTANT: This must be the FIRST file imported by pytest.
The os.environ must be set BEFORE config.py is imported, since the config
dataclasses read their defaults at import time.
"""

import os

# CRITICAL: Set these BEFORE any other imports
os.environ["FRAUD_DATABASE_URL"] = "sqlite://"
os.environ["FRAUD_FLEET_TZ"] = "UTC"
os.environ["FRAUD_ALERT_DEDUPE"] = "false"

import pytest

# Import all fixtures
from tests.fixtures.api_fixtures import *  # noqa
from tests.fixtures.fleet_fixtures import *  # noqa


def pytest_configure(config):
    """Called after command line options have been parsed and all plugins loaded."""
    os.environ["FRAUD_FLEET_TZ"] = "UTC"


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment():
    """Setup test environment before any tests run."""
    os.environ["FRAUD_DATABASE_URL"] = "sqlite://"
    yield
    # Cleanup after all tests
    os.environ.pop("FRAUD_DATABASE_URL", None)
