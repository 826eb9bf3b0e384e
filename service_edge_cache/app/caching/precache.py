"""
Shell precaching performed when a new version installs.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import TYPE_CHECKING, Any, List, Optional, Sequence, Union

import httpx

from shared.errors import ManifestFetchFailure, NetworkFailure
from shared.logging import get_logger
from ..domain.models import RequestDescriptor, ResponseSnapshot, origin_of
from .store import CacheStore

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..adapters.origin_client import OriginClient


def resolve_manifest(app_origin: str, entries: Sequence[str]) -> List[str]:
    """Resolve manifest identifiers against the application root."""
    base = httpx.URL(f"{origin_of(app_origin)}/")
    return [str(base.join(entry)) for entry in entries]


class ManifestLoader:
    """
    Loads the precache manifest.

    The manifest file holds either a JSON list of resource identifiers or an
    object with an ``entries`` list. When no file is configured, or the file
    does not exist, the default manifest is used.
    """

    def __init__(self, default_entries: Sequence[str], manifest_path: Optional[Union[str, Path]] = None):
        self._default = list(default_entries)
        self._path = Path(manifest_path) if manifest_path else None
        self.logger = get_logger("edge.precache.manifest")

    def load(self) -> List[str]:
        if self._path is None:
            return list(self._default)
        if not self._path.exists():
            self.logger.info("Manifest file not found, using default manifest", path=str(self._path))
            return list(self._default)

        try:
            with self._path.open("r", encoding="utf-8") as handle:
                payload: Any = json.load(handle)
        except (ValueError, OSError) as exc:
            raise ManifestFetchFailure(
                f"Unreadable manifest file {self._path}",
                details={"error": str(exc)},
            ) from exc

        entries = payload.get("entries") if isinstance(payload, dict) else payload
        if not isinstance(entries, list) or not all(isinstance(entry, str) for entry in entries):
            raise ManifestFetchFailure(
                f"Manifest file {self._path} must list resource identifiers",
                details={"path": str(self._path)},
            )
        return entries


class Precacher:
    """Populates the shell namespace from the manifest, all or nothing."""

    def __init__(self, store: CacheStore, shell_namespace: str, fetcher: "OriginClient", app_origin: str):
        self.store = store
        self.shell_namespace = shell_namespace
        self.fetcher = fetcher
        self.app_origin = app_origin
        self.logger = get_logger("edge.precache")

    async def install(self, entries: Sequence[str]) -> List[str]:
        """
        Fetch every manifest entry and store it in the shell namespace.

        Nothing is written unless every entry was fetched with a successful
        status. Raises ManifestFetchFailure otherwise. Returns the stored URLs.
        """
        urls = resolve_manifest(self.app_origin, entries)
        duplicates = sorted({url for url in urls if urls.count(url) > 1})
        if duplicates:
            raise ManifestFetchFailure("Duplicate manifest entries", details={"duplicates": duplicates})

        requests = [RequestDescriptor.get(url) for url in urls]
        results = await asyncio.gather(
            *(self._fetch(request) for request in requests),
            return_exceptions=True,
        )

        failed = {}
        for request, result in zip(requests, results):
            if isinstance(result, (NetworkFailure, ManifestFetchFailure)):
                failed[request.url] = result.message
            elif isinstance(result, BaseException):
                raise result
        if failed:
            self.logger.error("Precache failed", failed=failed)
            raise ManifestFetchFailure(
                f"Failed to precache {len(failed)} of {len(requests)} resources",
                details={"failed": failed},
            )

        shell = await self.store.open(self.shell_namespace)
        for request, response in zip(requests, results):
            if not await shell.put(request, response):
                raise ManifestFetchFailure(
                    "Failed to store precached resource",
                    details={"url": request.url, "namespace": self.shell_namespace},
                )

        self.logger.info("Precache completed", namespace=self.shell_namespace, entries=len(urls))
        return urls

    async def restore(self, entries: Sequence[str]) -> Optional[List[str]]:
        """
        Return the resolved URLs when the shell namespace already holds every
        manifest entry (a previous run of this version installed it), else None.
        """
        urls = resolve_manifest(self.app_origin, entries)
        if not urls:
            return None

        stored = set(await self.store.keys(self.shell_namespace))
        if any(RequestDescriptor.get(url).cache_key not in stored for url in urls):
            return None

        self.logger.info("Shell already precached", namespace=self.shell_namespace, entries=len(urls))
        return urls

    async def _fetch(self, request: RequestDescriptor) -> ResponseSnapshot:
        response = await self.fetcher.fetch(request)
        if not response.ok:
            raise ManifestFetchFailure(
                f"Bad status {response.status}",
                details={"url": request.url, "status_code": response.status},
            )
        return response
