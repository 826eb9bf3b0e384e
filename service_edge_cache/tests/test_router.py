"""
Unit tests for PolicyRouter.
"""

import pytest
from unittest.mock import MagicMock

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_edge_cache.app.caching.router import PolicyRouter, RequestClass
from service_edge_cache.app.domain.models import Destination
from service_edge_cache.test_helpers import APP_ORIGIN, make_request


class TestPolicyRouter:
    """Test cases for PolicyRouter."""

    @pytest.fixture
    def strategies(self):
        """Named stand-ins for the three strategies."""
        return {
            "navigation": MagicMock(name="network_first"),
            "media": MagicMock(name="stale_while_revalidate"),
            "default": MagicMock(name="cache_first"),
        }

    @pytest.fixture
    def router(self, strategies):
        """Create a router for the test application origin."""
        return PolicyRouter(APP_ORIGIN, media_path_prefixes=["/media/"], **strategies)

    @pytest.mark.parametrize("request_kwargs,expected", [
        ({"path": "/", "destination": Destination.DOCUMENT}, RequestClass.NAVIGATION),
        ({"path": "/settings", "mode": "navigate"}, RequestClass.NAVIGATION),
        ({"path": "/img/logo.png", "destination": Destination.IMAGE}, RequestClass.IMAGE),
        ({"path": "/media/clip.mp4"}, RequestClass.IMAGE),
        ({"path": "/assets/app.js"}, RequestClass.OTHER),
        ({"path": "/api/items", "method": "POST"}, RequestClass.INELIGIBLE),
        ({"path": "/", "method": "HEAD", "destination": Destination.DOCUMENT}, RequestClass.INELIGIBLE),
        ({"path": "https://cdn.example.net/lib.js"}, RequestClass.INELIGIBLE),
        ({"path": "http://app.example.com/app.js"}, RequestClass.INELIGIBLE),
    ])
    def test_classify(self, router, request_kwargs, expected):
        """Every request falls into exactly one class."""
        assert router.classify(make_request(**request_kwargs)) is expected

    def test_navigation_wins_over_media_prefix(self, router):
        """Navigation takes precedence over the media path rule."""
        request = make_request("/media/gallery", Destination.DOCUMENT)
        assert router.classify(request) is RequestClass.NAVIGATION

    def test_route_dispatches_to_strategy(self, router, strategies):
        """Each eligible class maps to its strategy."""
        assert router.route(make_request("/", Destination.DOCUMENT)) is strategies["navigation"]
        assert router.route(make_request("/a.png", Destination.IMAGE)) is strategies["media"]
        assert router.route(make_request("/a.css")) is strategies["default"]

    def test_ineligible_requests_are_not_routed(self, router):
        """Non-GET and cross-origin requests get no strategy."""
        assert router.route(make_request("/form", method="POST")) is None
        assert router.route(make_request("https://other.example.org/")) is None

    def test_media_prefixes_are_configurable(self, strategies):
        """Media classification follows the configured prefixes."""
        router = PolicyRouter(APP_ORIGIN, media_path_prefixes=["/uploads/", "/thumbs/"], **strategies)
        assert router.classify(make_request("/uploads/a.bin")) is RequestClass.IMAGE
        assert router.classify(make_request("/thumbs/a.webp")) is RequestClass.IMAGE
        assert router.classify(make_request("/media/a.jpg")) is RequestClass.OTHER

    def test_default_port_is_same_origin(self, strategies):
        """An explicit default port is the same origin."""
        router = PolicyRouter("https://app.example.com:443", **strategies)
        assert router.is_eligible(make_request("/a.js"))
