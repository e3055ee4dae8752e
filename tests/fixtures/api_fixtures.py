"""
API fixtures for testing

The app's lifespan is not run: the orchestrator is placed on app.state
directly, backed by an in-memory store whose master data is dated relative to
the real clock (the endpoints use utc_now()).
"""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from fraud_engine.config_helper import setup_architecture
from fraud_engine.repositories import InMemoryRecordStore
from fraud_engine.timezone_utils import utc_now
from tests.fixtures.fleet_fixtures import fleet_records


@pytest.fixture
def api_store():
    return InMemoryRecordStore(fleet_records(utc_now()))


@pytest.fixture
def api_orchestrator(api_store):
    _, _, _, orchestrator = setup_architecture(api_store)
    # No real HTTP from webhook tests
    orchestrator.notifier.session = MagicMock()
    orchestrator.notifier.session.post.return_value = MagicMock(status_code=200, text="ok")
    return orchestrator


@pytest.fixture
def test_client(api_orchestrator):
    """Test client for API testing"""
    # Import main app
    from main import app

    app.state.orchestrator = api_orchestrator
    yield TestClient(app)
    app.state.orchestrator = None
