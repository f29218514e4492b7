"""
Unit tests for the structured logging processors.
"""

import pytest

from shared.logging import (
    add_correlation_context,
    clear_context,
    service_context,
    set_request_id,
    set_user_context,
)


@pytest.fixture(autouse=True)
def clean_context():
    clear_context()
    yield
    clear_context()


class TestCorrelationContext:
    """Test cases for request-scoped correlation fields."""

    def test_bound_fields_are_added(self):
        """Test request, user and client ids reach the event."""
        set_request_id("req-1")
        set_user_context(user_id="1", client_id="10.0.0.5")

        event = add_correlation_context(None, "info", {"event": "x"})

        assert event == {"event": "x", "request_id": "req-1", "user_id": "1", "client_id": "10.0.0.5"}

    def test_unset_fields_are_omitted(self):
        """Test nothing is added outside a request."""
        assert add_correlation_context(None, "info", {"event": "x"}) == {"event": "x"}

    def test_clear_context(self):
        """Test clearing drops every field."""
        set_request_id("req-1")
        set_user_context(client_id="10.0.0.5")

        clear_context()

        assert add_correlation_context(None, "info", {"event": "x"}) == {"event": "x"}

    def test_explicit_fields_win(self):
        """Test a field passed to the log call is not overwritten."""
        set_user_context(client_id="10.0.0.5")

        event = add_correlation_context(None, "info", {"event": "x", "client_id": "other"})

        assert event["client_id"] == "other"

    def test_request_id_generated(self):
        """Test a missing request id is generated."""
        request_id = set_request_id(None)

        assert request_id
        assert add_correlation_context(None, "info", {})["request_id"] == request_id


class TestServiceContext:
    """Test cases for the service/component processor."""

    def test_component_from_logger_name(self):
        processor = service_context("status")

        event = processor(None, "info", {"logger": "status.admission"})

        assert event["service"] == "status"
        assert event["component"] == "admission"

    def test_service_logger_has_no_component(self):
        processor = service_context("status")

        event = processor(None, "info", {"logger": "status"})

        assert event["service"] == "status"
        assert "component" not in event

    def test_foreign_logger(self):
        """Test loggers outside the service keep only the service name."""
        processor = service_context("status")

        event = processor(None, "info", {"logger": "uvicorn.error"})

        assert event["service"] == "status"
        assert "component" not in event
