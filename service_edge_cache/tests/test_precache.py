"""
Unit tests for manifest loading and shell precaching.
"""

import json
import pytest
from unittest.mock import AsyncMock, patch

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_edge_cache.app.caching.precache import ManifestLoader, Precacher, resolve_manifest
from service_edge_cache.app.caching.store import InMemoryCacheStore
from service_edge_cache.app.domain.models import ResponseSnapshot
from service_edge_cache.test_helpers import APP_ORIGIN, FakeOrigin, make_snapshot
from shared.errors import ManifestFetchFailure


class TestResolveManifest:
    """Test cases for manifest resolution."""

    def test_relative_entries_resolve_against_root(self):
        """Both ./ and / forms resolve to the application root."""
        assert resolve_manifest(APP_ORIGIN, ["./", "./index.html", "/app.webmanifest"]) == [
            f"{APP_ORIGIN}/",
            f"{APP_ORIGIN}/index.html",
            f"{APP_ORIGIN}/app.webmanifest",
        ]


class TestManifestLoader:
    """Test cases for ManifestLoader."""

    def test_default_when_no_file_configured(self):
        """Without a file the default manifest is used."""
        loader = ManifestLoader(["./", "./index.html"])
        assert loader.load() == ["./", "./index.html"]

    def test_default_when_file_missing(self, tmp_path):
        """A missing file falls back to the default manifest."""
        loader = ManifestLoader(["./"], tmp_path / "missing.json")
        assert loader.load() == ["./"]

    def test_loads_entries_object(self, tmp_path):
        """Object form with an entries list is accepted."""
        path = tmp_path / "precache.json"
        path.write_text(json.dumps({"entries": ["/", "/index.html"]}), encoding="utf-8")
        assert ManifestLoader([], path).load() == ["/", "/index.html"]

    def test_loads_bare_list(self, tmp_path):
        """A bare JSON list is accepted."""
        path = tmp_path / "precache.json"
        path.write_text(json.dumps(["/offline.html"]), encoding="utf-8")
        assert ManifestLoader([], path).load() == ["/offline.html"]

    def test_malformed_file_raises(self, tmp_path):
        """Unparseable manifests abort install."""
        path = tmp_path / "precache.json"
        path.write_text("{broken", encoding="utf-8")
        with pytest.raises(ManifestFetchFailure):
            ManifestLoader([], path).load()

    def test_non_string_entries_raise(self, tmp_path):
        """Entries must be resource identifiers."""
        path = tmp_path / "precache.json"
        path.write_text(json.dumps({"entries": ["/", 3]}), encoding="utf-8")
        with pytest.raises(ManifestFetchFailure):
            ManifestLoader([], path).load()


class TestPrecacher:
    """Test cases for Precacher."""

    @pytest.fixture
    def store(self):
        """Create an in-memory store."""
        return InMemoryCacheStore()

    @pytest.fixture
    def origin(self):
        """Fake origin serving the shell resources."""
        origin = FakeOrigin()
        origin.serve("/", make_snapshot(b"<html>root</html>", content_type="text/html"))
        origin.serve("/index.html", make_snapshot(b"<html>index</html>", content_type="text/html"))
        origin.serve("/app.webmanifest", make_snapshot(b"{}", content_type="application/manifest+json"))
        return origin

    @pytest.fixture
    def precacher(self, store, origin):
        """Create a precacher writing to the shell namespace."""
        return Precacher(store, "app-v1", origin, APP_ORIGIN)

    @pytest.mark.asyncio
    async def test_install_populates_shell(self, precacher, store):
        """Every manifest entry lands in the shell namespace."""
        stored = await precacher.install(["/", "/index.html", "/app.webmanifest"])

        assert stored == [f"{APP_ORIGIN}/", f"{APP_ORIGIN}/index.html", f"{APP_ORIGIN}/app.webmanifest"]
        assert await store.keys("app-v1") == sorted(f"GET {url}" for url in stored)

    @pytest.mark.asyncio
    async def test_network_failure_aborts_without_writes(self, precacher, store, origin):
        """A failed fetch raises and leaves the shell unwritten."""
        origin.offline = True

        with pytest.raises(ManifestFetchFailure) as exc_info:
            await precacher.install(["/", "/index.html"])

        assert set(exc_info.value.details["failed"]) == {f"{APP_ORIGIN}/", f"{APP_ORIGIN}/index.html"}
        assert await store.keys("app-v1") == []

    @pytest.mark.asyncio
    async def test_bad_status_aborts(self, precacher, store):
        """A non-2xx manifest entry fails install."""
        with pytest.raises(ManifestFetchFailure) as exc_info:
            await precacher.install(["/index.html", "/missing.css"])

        assert list(exc_info.value.details["failed"]) == [f"{APP_ORIGIN}/missing.css"]
        assert await store.keys("app-v1") == []

    @pytest.mark.asyncio
    async def test_duplicate_entries_rejected(self, precacher, origin):
        """Entries resolving to the same URL are a manifest error."""
        with pytest.raises(ManifestFetchFailure):
            await precacher.install(["./", "/"])
        assert origin.fetch_count == 0

    @pytest.mark.asyncio
    async def test_store_failure_aborts(self, precacher, store):
        """A shell write failure fails install."""
        with patch.object(store, 'put', new=AsyncMock(return_value=False)):
            with pytest.raises(ManifestFetchFailure):
                await precacher.install(["/index.html"])

    @pytest.mark.asyncio
    async def test_restore_requires_every_entry(self, precacher, store, origin):
        """A stored shell is reusable only when it holds the whole manifest."""
        assert await precacher.restore(["/", "/index.html"]) is None

        await precacher.install(["/", "/index.html"])

        assert await precacher.restore(["/", "/index.html"]) == [f"{APP_ORIGIN}/", f"{APP_ORIGIN}/index.html"]
        assert await precacher.restore(["/", "/index.html", "/app.webmanifest"]) is None
        assert origin.fetch_count == 2

    @pytest.mark.asyncio
    async def test_precached_entry_content(self, precacher, store, origin):
        """Stored entries are the fetched responses."""
        await precacher.install(["/index.html"])
        shell_request = origin.calls[0]

        stored = await store.get("app-v1", shell_request)
        assert isinstance(stored, ResponseSnapshot)
        assert stored.body == b"<html>index</html>"
