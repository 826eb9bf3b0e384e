"""
Origin client for the edge cache.
"""

import time
from typing import TYPE_CHECKING, Iterable, Optional, Tuple

import httpx

from shared.logging import get_logger
from shared.errors import NetworkFailure
from ..domain.models import RequestDescriptor, ResponseSnapshot, origin_of

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


# Request headers that must not be replayed against the upstream.
_DROPPED_REQUEST_HEADERS = frozenset({"host", "content-length", "connection", "transfer-encoding"})


class OriginClient:
    """
    Performs network fetches on behalf of the caching strategies.

    Requests addressed to the application origin are sent to the upstream
    origin server; any other absolute URL is fetched as-is. Transport-level
    errors surface as NetworkFailure. HTTP error statuses are ordinary
    responses, as they are for a browser fetch. Redirects are returned to the
    caller, never followed, so the client sees the origin's status and
    Location header.
    """

    def __init__(
        self,
        origin_url: str,
        app_origin: str,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.origin_url = origin_url.rstrip('/')
        self.app_origin = origin_of(app_origin)
        self.timeout = timeout
        self.metrics = metrics
        self.logger = get_logger("edge.origin_client")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=False,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def upstream_url(self, url: str) -> str:
        """Translate an application URL into the upstream URL that serves it."""
        if origin_of(url) != self.app_origin:
            return url
        parsed = httpx.URL(url)
        return f"{self.origin_url}{parsed.raw_path.decode('ascii')}"

    async def fetch(self, request: RequestDescriptor) -> ResponseSnapshot:
        """Fetch a request from the network and capture the response."""
        url = self.upstream_url(request.url.split('#', 1)[0])
        start = time.perf_counter()
        try:
            response = await self._get_client().request(request.method, url)
        except httpx.HTTPError as exc:
            self._record_fetch("failure", start)
            self.logger.warning("Origin fetch failed", url=url, error=str(exc) or type(exc).__name__)
            raise NetworkFailure(request.url, str(exc) or type(exc).__name__, details={"upstream_url": url}) from exc

        self._record_fetch("success", start)
        self.logger.debug("Origin fetch completed", url=url, status_code=response.status_code)
        return ResponseSnapshot.from_httpx(response)

    async def forward(
        self,
        method: str,
        path: str,
        headers: Iterable[Tuple[str, str]] = (),
        content: bytes = b"",
    ) -> ResponseSnapshot:
        """Relay a request the cache does not handle to the upstream, unmodified."""
        target = f"{self.origin_url}{path}"
        forwarded = [
            (key, value) for key, value in headers
            if key.lower() not in _DROPPED_REQUEST_HEADERS
        ]
        start = time.perf_counter()
        try:
            response = await self._get_client().request(
                method,
                target,
                headers=forwarded,
                content=content or None,
            )
        except httpx.HTTPError as exc:
            self._record_fetch("failure", start)
            self.logger.warning("Passthrough request failed", method=method, url=target, error=str(exc) or type(exc).__name__)
            raise NetworkFailure(target, str(exc) or type(exc).__name__, details={"upstream_url": target}) from exc

        self._record_fetch("success", start)
        return ResponseSnapshot.from_httpx(response)

    def _record_fetch(self, outcome: str, start: float) -> None:
        if not self.metrics:
            return
        self.metrics.increment_counter("edge_network_fetches_total", outcome=outcome)
        self.metrics.observe_histogram("edge_fetch_duration_seconds", time.perf_counter() - start)
