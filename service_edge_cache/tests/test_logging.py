"""
Unit tests for structured logging context.
"""

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.logging import (
    add_request_context,
    add_service_context,
    clear_context,
    configure_logging,
    set_request_id,
)


class TestLoggingContext:
    """Test cases for log event processors."""

    @pytest.fixture(autouse=True)
    def reset_context(self):
        """Leave no request bound between tests."""
        yield
        clear_context()

    def test_service_context_added(self):
        """Events carry the service name and cache generation."""
        configure_logging("edge", "info", cache_generation="edge-v3")

        event = add_service_context(None, "info", {"event": "Installed"})

        assert event["service"] == "edge"
        assert event["cache_generation"] == "edge-v3"

    def test_request_context_added_while_bound(self):
        """Events logged during a request carry its id and path."""
        request_id = set_request_id("abc-123", "/media/look.jpg")

        event = add_request_context(None, "info", {"event": "Cache hit"})

        assert request_id == "abc-123"
        assert event["request_id"] == "abc-123"
        assert event["request_path"] == "/media/look.jpg"

    def test_generated_request_id(self):
        """A request id is generated when the client sends none."""
        request_id = set_request_id()

        assert request_id
        assert add_request_context(None, "info", {})["request_id"] == request_id

    def test_cleared_context(self):
        """Nothing is attached once the request is finished."""
        set_request_id("abc-123", "/")
        clear_context()

        assert add_request_context(None, "info", {}) == {}
