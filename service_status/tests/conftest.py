"""
Shared fixtures for Status service tests.
"""

import pytest
from fastapi.testclient import TestClient

from service_status.app.main import StatusService


VALID_TOKEN = "Bearer valid-token-123"


class FakeClock:
    """Manually advanced clock for rate-limit window tests."""

    def __init__(self, start: float = 1000.0):
        self.current = start

    def now(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def fake_clock():
    """Create a FakeClock instance."""
    return FakeClock()


@pytest.fixture
def status_service():
    """Status service with a limit high enough not to interfere."""
    return StatusService(rate_limit_max_requests=1000)


@pytest.fixture
def client(status_service):
    """Create test client."""
    return TestClient(status_service.app)


@pytest.fixture
def auth_headers():
    """Headers carrying the accepted credential."""
    return {"Authorization": VALID_TOKEN}
