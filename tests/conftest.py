"""
Pytest configuration and fixtures.
Shared mock backend and session factories.
"""

import pytest
from fastapi.testclient import TestClient

from data.mess_backend import MockMessBackend
from messleave.api_client import MessApiClient
from messleave.apply_leave import ApplyLeaveSession
from messleave.circuit_breaker import CircuitBreaker

BASE_URL = "http://mess.test/api"


@pytest.fixture
def backend():
    """Return a fresh mock mess backend."""
    return MockMessBackend()


@pytest.fixture
def make_client(backend):
    """Build API clients wired to the mock backend."""

    def factory(token="test-token", transport=None, breaker=None):
        return MessApiClient(
            base_url=BASE_URL,
            token=token,
            transport=transport or backend.transport(),
            circuit_breaker=breaker or CircuitBreaker(failure_threshold=100, name="TestBreaker"),
        )

    return factory


@pytest.fixture
def api_client(make_client):
    return make_client()


@pytest.fixture
def session(api_client):
    """Apply-leave session backed by the mock backend."""
    return ApplyLeaveSession(api_client)


@pytest.fixture
def approved_leave():
    return {
        "_id": "leave-2",
        "status": "approved",
        "mealPlanIds": [{"_id": "plan-full", "name": "Full Board Monthly"}],
        "startDate": "2025-10-30T00:00:00.000Z",
        "endDate": "2025-10-31T00:00:00.000Z",
        "startDateMealTypes": ["lunch", "dinner"],
        "endDateMealTypes": [],
        "reason": "Trip home",
    }


@pytest.fixture
def test_client(backend, make_client):
    """FastAPI test client whose sessions talk to the mock backend."""
    from messleave import main
    from messleave.sessions import SessionRegistry

    main.registry = SessionRegistry(client_factory=lambda token: make_client(token=token))
    with TestClient(main.app) as client:
        yield client
    main.registry = None
