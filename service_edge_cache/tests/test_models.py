"""
Unit tests for edge cache request/response models.
"""

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_edge_cache.app.domain.models import Destination, RequestDescriptor, ResponseSnapshot, origin_of


class TestRequestDescriptor:
    """Test cases for RequestDescriptor."""

    def test_method_is_normalized(self):
        """Methods are upper-cased so keys are stable."""
        request = RequestDescriptor("get", "https://app.example.com/a.js")
        assert request.method == "GET"

    def test_relative_url_rejected(self):
        """Descriptors require absolute URLs."""
        with pytest.raises(ValueError):
            RequestDescriptor("GET", "/index.html")

    def test_cache_key_ignores_fragment(self):
        """Fragments do not create distinct cache entries."""
        plain = RequestDescriptor.get("https://app.example.com/docs?page=2")
        with_fragment = RequestDescriptor.get("https://app.example.com/docs?page=2#intro")
        assert plain.cache_key == with_fragment.cache_key
        assert plain.cache_key == "GET https://app.example.com/docs?page=2"

    def test_cache_key_includes_method(self):
        """Keys are method plus URL."""
        get = RequestDescriptor("GET", "https://app.example.com/a")
        post = RequestDescriptor("POST", "https://app.example.com/a")
        assert get.cache_key != post.cache_key

    def test_origin_drops_default_port(self):
        """Default ports are normalized away when comparing origins."""
        assert origin_of("https://app.example.com:443/x") == "https://app.example.com"
        assert origin_of("http://localhost:8000/x") == "http://localhost:8000"

    def test_navigation_by_destination_or_mode(self):
        """Document destination or navigate mode marks a navigation."""
        assert RequestDescriptor.get("https://app.example.com/", Destination.DOCUMENT).is_navigation
        assert RequestDescriptor.get("https://app.example.com/", mode="navigate").is_navigation
        assert not RequestDescriptor.get("https://app.example.com/logo.png", Destination.IMAGE).is_navigation

    @pytest.mark.parametrize("header,expected", [
        ("document", Destination.DOCUMENT),
        ("iframe", Destination.DOCUMENT),
        ("image", Destination.IMAGE),
        ("script", Destination.OTHER),
        (None, Destination.OTHER),
    ])
    def test_destination_from_header(self, header, expected):
        """Sec-Fetch-Dest values map onto destination hints."""
        assert Destination.from_header(header) is expected


class TestResponseSnapshot:
    """Test cases for ResponseSnapshot."""

    def test_dict_round_trip_preserves_binary_body(self):
        """Stored JSON form keeps arbitrary bytes intact."""
        snapshot = ResponseSnapshot(
            status=200,
            headers=(("content-type", "image/png"),),
            body=b"\x89PNG\x00\xff",
            captured_at=1700000000.5,
            reason="OK",
        )
        assert ResponseSnapshot.from_dict(snapshot.to_dict()) == snapshot

    def test_gateway_timeout_placeholder(self):
        """Placeholder has a 504 status and no body."""
        placeholder = ResponseSnapshot.gateway_timeout()
        assert placeholder.status == 504
        assert placeholder.body == b""

    def test_offline_response(self):
        """Offline response is clearly labeled."""
        offline = ResponseSnapshot.offline()
        assert offline.status == 503
        assert offline.reason == "Offline"
        assert offline.body == b"Offline"

    def test_hop_by_hop_headers_dropped(self):
        """Wire-encoding headers are not captured."""
        headers = ResponseSnapshot.normalize_headers([
            ("Content-Type", "text/css"),
            ("Content-Encoding", "gzip"),
            ("Content-Length", "42"),
        ])
        assert headers == (("content-type", "text/css"),)

    def test_header_lookup_is_case_insensitive(self):
        """Header lookup matches regardless of case."""
        snapshot = ResponseSnapshot(status=200, headers=(("content-type", "text/css"),))
        assert snapshot.header("Content-Type") == "text/css"
        assert snapshot.header("etag") is None
