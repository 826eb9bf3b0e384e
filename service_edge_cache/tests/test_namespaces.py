"""
Unit tests for namespace generations and cleanup.
"""

import pytest
from unittest.mock import AsyncMock, patch

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_edge_cache.app.caching.namespaces import CacheNamespaces, NamespaceManager
from service_edge_cache.app.caching.store import InMemoryCacheStore
from service_edge_cache.test_helpers import make_request, make_snapshot
from shared.metrics import MetricsCollector


class TestCacheNamespaces:
    """Test cases for CacheNamespaces."""

    def test_version_tagged_names(self):
        """Names carry the prefix, role, and version."""
        namespaces = CacheNamespaces.for_version("outfit-pwa", 1)
        assert namespaces.shell == "outfit-pwa-app-v1"
        assert namespaces.runtime == "outfit-pwa-runtime-v1"
        assert namespaces.known == frozenset({"outfit-pwa-app-v1", "outfit-pwa-runtime-v1"})


class TestNamespaceManager:
    """Test cases for NamespaceManager."""

    @pytest.fixture
    def store(self):
        """Create an in-memory store."""
        return InMemoryCacheStore()

    @pytest.mark.asyncio
    async def test_cleanup_removes_unknown_namespaces(self, store):
        """Only known generations survive cleanup."""
        for name in ("A-v1", "B-v1", "C-v0"):
            await store.put(name, make_request("/x"), make_snapshot())

        manager = NamespaceManager(store, frozenset({"A-v1", "B-v1"}))
        deleted = await manager.cleanup()

        assert deleted == ["C-v0"]
        assert await store.list_namespaces() == {"A-v1", "B-v1"}

    @pytest.mark.asyncio
    async def test_cleanup_preserves_known_entries(self, store):
        """Entries in known namespaces are untouched."""
        request = make_request("/index.html")
        await store.put("A-v1", request, make_snapshot(b"shell"))

        await NamespaceManager(store, frozenset({"A-v1"})).cleanup()

        assert (await store.get("A-v1", request)).body == b"shell"

    @pytest.mark.asyncio
    async def test_cleanup_with_nothing_to_do(self, store):
        """An empty store cleans up to nothing."""
        assert await NamespaceManager(store, frozenset({"A-v1"})).cleanup() == []

    @pytest.mark.asyncio
    async def test_delete_failure_does_not_abort(self, store):
        """A failed deletion is skipped and the rest proceed."""
        for name in ("A-v1", "old-1", "old-2"):
            await store.open(name)

        original_delete = store.delete

        async def flaky_delete(name):
            if name == "old-1":
                return False
            return await original_delete(name)

        metrics = MetricsCollector("edge")
        manager = NamespaceManager(store, frozenset({"A-v1"}), metrics=metrics)
        with patch.object(store, 'delete', new=AsyncMock(side_effect=flaky_delete)):
            deleted = await manager.cleanup()

        assert deleted == ["old-2"]
        assert await store.list_namespaces() == {"A-v1", "old-1"}
        assert metrics.sample_value("edge_namespaces_deleted_total") == 1.0
