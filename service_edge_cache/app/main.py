"""
Edge cache service for the Offline Edge Cache.
"""

from typing import Any, Dict, Optional

import httpx
from fastapi import Request, Response

from shared.base_service import BaseService
from shared.config import EdgeConfig, get_config
from shared.errors import ManifestFetchFailure, ValidationError

from .adapters.origin_client import OriginClient
from .caching.namespaces import CacheNamespaces, NamespaceManager
from .caching.precache import ManifestLoader, Precacher
from .caching.router import PolicyRouter
from .caching.store import CacheNamespace, CacheStore, create_cache_store
from .caching.strategies import CacheFirst, NetworkFirstWithOfflineFallback, StaleWhileRevalidate
from .domain.dispatcher import RequestDispatcher
from .domain.lifecycle import WorkerLifecycle
from .domain.models import Destination, RequestDescriptor, ResponseSnapshot


CONTROL_PREFIX = "/_edge"
INTERCEPTED_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


class EdgeCacheService(BaseService):
    """Edge cache service implementation."""

    def __init__(
        self,
        config: Optional[EdgeConfig] = None,
        *,
        store: Optional[CacheStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(config or get_config())
        self.namespaces = CacheNamespaces.for_version(self.config.cache_prefix, self.config.cache_version)
        self.store = store or create_cache_store(
            self.config.cache_backend,
            redis_url=self.config.redis_url,
            key_prefix=self.config.cache_prefix,
            metrics=self.metrics,
        )
        self.origin_client = OriginClient(
            self.config.origin_url,
            self.config.app_origin,
            timeout=self.config.fetch_timeout_seconds,
            transport=transport,
            metrics=self.metrics,
        )

        shell = CacheNamespace(self.store, self.namespaces.shell)
        runtime = CacheNamespace(self.store, self.namespaces.runtime)
        offline_document_url = str(httpx.URL(f"{self.origin_client.app_origin}/").join(self.config.offline_document))

        self.cache_first = CacheFirst(self.origin_client, runtime, fallbacks=[shell], metrics=self.metrics)
        self.stale_while_revalidate = StaleWhileRevalidate(self.origin_client, runtime, metrics=self.metrics)
        self.network_first = NetworkFirstWithOfflineFallback(
            self.origin_client,
            shell,
            offline_document_url,
            metrics=self.metrics,
        )
        self.router = PolicyRouter(
            self.config.app_origin,
            navigation=self.network_first,
            media=self.stale_while_revalidate,
            default=self.cache_first,
            media_path_prefixes=self.config.media_path_prefixes,
        )

        self.manifest_loader = ManifestLoader(self.config.precache_manifest, self.config.manifest_file)
        self.lifecycle = WorkerLifecycle(
            Precacher(self.store, self.namespaces.shell, self.origin_client, self.config.app_origin),
            NamespaceManager(self.store, self.namespaces.known, metrics=self.metrics),
            self.manifest_loader.load,
            skip_waiting_on_install=self.config.skip_waiting_on_install,
        )
        self.dispatcher = RequestDispatcher(self.router, self.lifecycle)

        @self.app.on_event("startup")
        async def _startup():
            try:
                await self.lifecycle.install()
            except ManifestFetchFailure:
                self.logger.error("Install failed; all traffic will pass through to the origin")

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.stale_while_revalidate.drain()
            await self.origin_client.close()
            await self.store.close()

        self._setup_control_routes()
        self._setup_intercept_route()

        # Expose service instance via app state for introspection/testing
        self.app.state.edge_service = self

    async def _check_dependencies(self) -> Dict[str, str]:
        return {
            "lifecycle": self.lifecycle.state.value,
            "cache_backend": self.config.cache_backend,
        }

    def _setup_control_routes(self):
        """Set up lifecycle control and status routes."""

        @self.app.get(f"{CONTROL_PREFIX}/status")
        async def edge_status():
            """Report lifecycle state and namespace inventory."""
            stored = await self.store.list_namespaces()
            return {
                **self.lifecycle.status(),
                "namespaces": {
                    "shell": self.namespaces.shell,
                    "runtime": self.namespaces.runtime,
                    "stored": sorted(stored),
                },
                "media_path_prefixes": list(self.router.media_path_prefixes),
            }

        @self.app.post(f"{CONTROL_PREFIX}/control", status_code=202)
        async def edge_control(request: Request):
            """Accept a control message from the client application."""
            try:
                message = await request.json()
            except ValueError:
                raise ValidationError("Control message must be a JSON object")

            await self.lifecycle.handle_message(message)
            return {"accepted": True, "state": self.lifecycle.state.value}

    def _setup_intercept_route(self):
        """Route every remaining request through the dispatcher."""

        @self.app.api_route("/{path:path}", methods=INTERCEPTED_METHODS, include_in_schema=False)
        async def intercept(request: Request, path: str):
            descriptor = self._describe(request)
            snapshot = await self.dispatcher.handle(descriptor)

            if snapshot is None:
                raw_path = request.url.path
                if request.url.query:
                    raw_path = f"{raw_path}?{request.url.query}"
                snapshot = await self.origin_client.forward(
                    request.method,
                    raw_path,
                    headers=request.headers.items(),
                    content=await request.body(),
                )

            return self._to_response(snapshot)

    @staticmethod
    def _describe(request: Request) -> RequestDescriptor:
        """Build the request descriptor the host hands to the dispatcher."""
        return RequestDescriptor(
            method=request.method,
            url=str(request.url),
            destination=Destination.from_header(request.headers.get("sec-fetch-dest")),
            mode=request.headers.get("sec-fetch-mode"),
        )

    @staticmethod
    def _to_response(snapshot: ResponseSnapshot) -> Response:
        response = Response(content=snapshot.body, status_code=snapshot.status)
        for key, value in snapshot.headers:
            response.headers.append(key, value)
        return response


def create_app(**kwargs: Any):
    """Create FastAPI application."""
    service = EdgeCacheService(**kwargs)
    return service.app


if __name__ == "__main__":
    service = EdgeCacheService()
    service.run()
