"""
Caching strategies applied to intercepted requests.

Every strategy takes an eligible request and produces a response, reading
and writing cache namespaces and/or fetching from the network through the
origin client it was constructed with.
"""

from __future__ import annotations

import asyncio
import inspect
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Optional, Sequence, Set

import httpx

from shared.errors import NetworkFailure
from shared.logging import get_logger
from ..domain.models import Destination, RequestDescriptor, ResponseSnapshot
from .store import CacheNamespace

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector
    from ..adapters.origin_client import OriginClient


class Strategy(ABC):
    """Base class for caching strategies."""

    name = "strategy"

    def __init__(self, fetcher: "OriginClient", *, metrics: Optional["MetricsCollector"] = None):
        self.fetcher = fetcher
        self.metrics = metrics
        self.logger = get_logger(f"edge.strategy.{self.name}")

    @abstractmethod
    async def execute(self, request: RequestDescriptor, preload: Any = None) -> ResponseSnapshot:
        """Produce the response for an eligible request."""

    def _record_lookup(self, hit: bool) -> None:
        if self.metrics:
            self.metrics.increment_counter(
                "edge_cache_lookups_total",
                strategy=self.name,
                result="hit" if hit else "miss",
            )

    def _record_fallback(self, kind: str) -> None:
        if self.metrics:
            self.metrics.increment_counter("edge_fallbacks_total", kind=kind)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class CacheFirst(Strategy):
    """
    Serve from cache; on a miss fetch, store a copy, and return it.

    Lookups consult the runtime namespace and then any read-only fallback
    namespaces (the precached shell), so precached assets are never fetched
    twice. Writes only go to the runtime namespace. A network failure on a
    miss propagates to the caller.
    """

    name = "cache_first"

    def __init__(
        self,
        fetcher: "OriginClient",
        runtime: CacheNamespace,
        *,
        fallbacks: Sequence[CacheNamespace] = (),
        metrics: Optional["MetricsCollector"] = None,
    ):
        super().__init__(fetcher, metrics=metrics)
        self.runtime = runtime
        self.fallbacks = tuple(fallbacks)

    async def execute(self, request: RequestDescriptor, preload: Any = None) -> ResponseSnapshot:
        for namespace in (self.runtime, *self.fallbacks):
            cached = await namespace.get(request)
            if cached is not None:
                self._record_lookup(hit=True)
                self.logger.debug("Cache hit", key=request.cache_key, namespace=namespace.name)
                return cached

        self._record_lookup(hit=False)
        response = await self.fetcher.fetch(request)

        if not await self.runtime.put(request, response):
            self.logger.debug("Response served without caching", key=request.cache_key, status=response.status)
        return response


class StaleWhileRevalidate(Strategy):
    """
    Serve the cached copy at once while a background fetch refreshes it.

    The refresh is a detached task: it always runs to completion and writes
    a successful response into the runtime namespace, whether or not the
    caller is still waiting. ``drain()`` awaits outstanding refreshes.
    """

    name = "stale_while_revalidate"

    def __init__(
        self,
        fetcher: "OriginClient",
        runtime: CacheNamespace,
        *,
        metrics: Optional["MetricsCollector"] = None,
    ):
        super().__init__(fetcher, metrics=metrics)
        self.runtime = runtime
        self._refreshes: Set[asyncio.Task] = set()

    @property
    def pending_refreshes(self) -> int:
        return len(self._refreshes)

    async def execute(self, request: RequestDescriptor, preload: Any = None) -> ResponseSnapshot:
        refresh = asyncio.create_task(self._revalidate(request))
        self._refreshes.add(refresh)
        refresh.add_done_callback(self._on_refresh_done)

        cached = await self.runtime.get(request)
        if cached is not None:
            self._record_lookup(hit=True)
            return cached

        self._record_lookup(hit=False)
        # Shielded so that an abandoned caller does not cancel the cache write.
        fresh = await asyncio.shield(refresh)
        if fresh is None:
            self._record_fallback("gateway_timeout")
            return ResponseSnapshot.gateway_timeout()
        return fresh

    async def drain(self) -> None:
        """Wait for every background refresh started so far."""
        while self._refreshes:
            await asyncio.gather(*list(self._refreshes), return_exceptions=True)

    async def _revalidate(self, request: RequestDescriptor) -> Optional[ResponseSnapshot]:
        try:
            fresh = await self.fetcher.fetch(request)
        except NetworkFailure:
            self.logger.debug("Background refresh failed", key=request.cache_key)
            return None

        await self.runtime.put(request, fresh)
        return fresh

    def _on_refresh_done(self, task: asyncio.Task) -> None:
        self._refreshes.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.logger.error("Background refresh crashed", error=str(exc), error_type=type(exc).__name__)


class NetworkFirstWithOfflineFallback(Strategy):
    """
    Fetch navigations from the network; fall back to the cached shell.

    Navigation responses are never read from or written to the cache. When
    the network is unreachable the precached offline document is served, and
    when that is missing too a synthetic 503 "Offline" response.
    """

    name = "network_first"

    def __init__(
        self,
        fetcher: "OriginClient",
        shell: CacheNamespace,
        offline_document_url: str,
        *,
        metrics: Optional["MetricsCollector"] = None,
    ):
        super().__init__(fetcher, metrics=metrics)
        self.shell = shell
        self.offline_document = RequestDescriptor.get(offline_document_url, Destination.DOCUMENT)

    async def execute(self, request: RequestDescriptor, preload: Any = None) -> ResponseSnapshot:
        try:
            preloaded = await self._consume_preload(preload, request)
            if preloaded is not None:
                return preloaded
            return await self.fetcher.fetch(request)
        except NetworkFailure as exc:
            self.logger.info("Navigation offline, serving fallback", url=request.url, error=exc.message)

        document = await self.shell.get(self.offline_document)
        if document is not None:
            self._record_fallback("shell_document")
            return document

        self._record_fallback("offline")
        return ResponseSnapshot.offline()

    @staticmethod
    async def _consume_preload(preload: Any, request: RequestDescriptor) -> Optional[ResponseSnapshot]:
        if preload is None:
            return None
        if not inspect.isawaitable(preload):
            return preload
        try:
            return await preload
        except httpx.HTTPError as exc:
            raise NetworkFailure(request.url, str(exc) or type(exc).__name__, details={"source": "preload"}) from exc
