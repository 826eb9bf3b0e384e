"""
Namespaced response store for the edge cache.

A store holds named namespaces (cache generations); each namespace maps a
request's cache key to the last ResponseSnapshot written for it. Reads and
writes never raise: a failed read reports a miss and a failed write reports
``False``, so callers keep serving the in-memory response.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Dict, List, Optional, Set

import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.errors import StorageFailure
from shared.logging import get_logger
from ..domain.models import RequestDescriptor, ResponseSnapshot

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


class CacheNamespace:
    """Handle bound to a single namespace of a store."""

    def __init__(self, store: "CacheStore", name: str):
        self.store = store
        self.name = name

    async def get(self, request: RequestDescriptor) -> Optional[ResponseSnapshot]:
        return await self.store.get(self.name, request)

    async def put(self, request: RequestDescriptor, snapshot: ResponseSnapshot) -> bool:
        return await self.store.put(self.name, request, snapshot)

    async def keys(self) -> List[str]:
        return await self.store.keys(self.name)

    def __repr__(self) -> str:
        return f"CacheNamespace({self.name!r})"


class CacheStore(ABC):
    """Base class for cache store backends."""

    def __init__(self, *, metrics: Optional["MetricsCollector"] = None):
        self.logger = get_logger("edge.cache.store")
        self.metrics = metrics

    async def open(self, name: str) -> CacheNamespace:
        """Open (creating if needed) a namespace and return its handle."""
        try:
            await self._create(name)
        except StorageFailure as exc:
            # The namespace is created again on first successful write.
            self._record_failure("open", exc, namespace=name)
        return CacheNamespace(self, name)

    async def get(self, name: str, request: RequestDescriptor) -> Optional[ResponseSnapshot]:
        """Return the stored snapshot for a request, or None on miss or failure."""
        try:
            return await self._read(name, request.cache_key)
        except StorageFailure as exc:
            self._record_failure("get", exc, namespace=name, key=request.cache_key)
            return None

    async def put(self, name: str, request: RequestDescriptor, snapshot: ResponseSnapshot) -> bool:
        """Store a snapshot under the request's key, replacing any prior entry."""
        if request.method != "GET":
            self.logger.debug("Refusing to cache non-GET request", namespace=name, key=request.cache_key)
            return False
        if snapshot.status == 206:
            self.logger.debug("Refusing to cache partial response", namespace=name, key=request.cache_key)
            return False

        try:
            await self._write(name, request.cache_key, snapshot)
        except StorageFailure as exc:
            self._record_failure("put", exc, namespace=name, key=request.cache_key)
            return False

        self.logger.debug("Cached response", namespace=name, key=request.cache_key, status=snapshot.status)
        return True

    async def list_namespaces(self) -> Set[str]:
        """Return the names of every namespace present in the store."""
        try:
            return await self._names()
        except StorageFailure as exc:
            self._record_failure("list", exc)
            return set()

    async def delete(self, name: str) -> bool:
        """Delete a namespace and all of its entries."""
        try:
            deleted = await self._drop(name)
        except StorageFailure as exc:
            self._record_failure("delete", exc, namespace=name)
            return False

        if deleted:
            self.logger.info("Deleted cache namespace", namespace=name)
        return deleted

    async def keys(self, name: str) -> List[str]:
        """Return the cache keys held in a namespace."""
        try:
            return sorted(await self._keys(name))
        except StorageFailure as exc:
            self._record_failure("keys", exc, namespace=name)
            return []

    async def close(self) -> None:
        """Release backend resources."""
        return None

    def _record_failure(self, operation: str, exc: StorageFailure, **context) -> None:
        self.logger.warning("Cache storage operation failed", operation=operation, error=str(exc), **context)
        if self.metrics:
            self.metrics.increment_counter("edge_storage_failures_total", operation=operation)

    @abstractmethod
    async def _create(self, name: str) -> None: ...

    @abstractmethod
    async def _read(self, name: str, key: str) -> Optional[ResponseSnapshot]: ...

    @abstractmethod
    async def _write(self, name: str, key: str, snapshot: ResponseSnapshot) -> None: ...

    @abstractmethod
    async def _names(self) -> Set[str]: ...

    @abstractmethod
    async def _drop(self, name: str) -> bool: ...

    @abstractmethod
    async def _keys(self, name: str) -> List[str]: ...


class InMemoryCacheStore(CacheStore):
    """Process-local store; contents do not survive a restart."""

    def __init__(self, *, metrics: Optional["MetricsCollector"] = None):
        super().__init__(metrics=metrics)
        self._namespaces: Dict[str, Dict[str, ResponseSnapshot]] = {}

    async def _create(self, name: str) -> None:
        self._namespaces.setdefault(name, {})

    async def _read(self, name: str, key: str) -> Optional[ResponseSnapshot]:
        return self._namespaces.get(name, {}).get(key)

    async def _write(self, name: str, key: str, snapshot: ResponseSnapshot) -> None:
        self._namespaces.setdefault(name, {})[key] = snapshot

    async def _names(self) -> Set[str]:
        return set(self._namespaces)

    async def _drop(self, name: str) -> bool:
        return self._namespaces.pop(name, None) is not None

    async def _keys(self, name: str) -> List[str]:
        return list(self._namespaces.get(name, {}))


class RedisCacheStore(CacheStore):
    """
    Persistent store backed by Redis.

    Each namespace is a hash (``<prefix>:ns:<name>``) of cache key to JSON
    snapshot; the set ``<prefix>:namespaces`` registers namespace names so
    that empty namespaces are still listed.
    """

    def __init__(
        self,
        redis_url: str,
        *,
        key_prefix: str = "edge-cache",
        metrics: Optional["MetricsCollector"] = None,
    ):
        super().__init__(metrics=metrics)
        self.redis_url = redis_url
        self.key_prefix = key_prefix
        self._redis: Optional[redis.Redis] = None

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url, decode_responses=True)
        return self._redis

    @property
    def registry_key(self) -> str:
        return f"{self.key_prefix}:namespaces"

    def _namespace_key(self, name: str) -> str:
        return f"{self.key_prefix}:ns:{name}"

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    async def _create(self, name: str) -> None:
        try:
            client = await self._get_redis()
            await client.sadd(self.registry_key, name)
        except RedisError as exc:
            raise StorageFailure("open", str(exc)) from exc

    async def _read(self, name: str, key: str) -> Optional[ResponseSnapshot]:
        try:
            client = await self._get_redis()
            raw = await client.hget(self._namespace_key(name), key)
        except RedisError as exc:
            raise StorageFailure("get", str(exc)) from exc

        if raw is None:
            return None
        try:
            return ResponseSnapshot.from_dict(json.loads(raw))
        except (TypeError, ValueError, KeyError) as exc:
            raise StorageFailure("get", f"corrupt entry: {exc}") from exc

    async def _write(self, name: str, key: str, snapshot: ResponseSnapshot) -> None:
        payload = json.dumps(snapshot.to_dict())
        try:
            client = await self._get_redis()
            async with client.pipeline(transaction=True) as pipeline:
                pipeline.sadd(self.registry_key, name)
                pipeline.hset(self._namespace_key(name), key, payload)
                await pipeline.execute()
        except RedisError as exc:
            raise StorageFailure("put", str(exc)) from exc

    async def _names(self) -> Set[str]:
        try:
            client = await self._get_redis()
            members = await client.smembers(self.registry_key)
        except RedisError as exc:
            raise StorageFailure("list", str(exc)) from exc
        return {member.decode("utf-8") if isinstance(member, bytes) else member for member in members}

    async def _drop(self, name: str) -> bool:
        try:
            client = await self._get_redis()
            async with client.pipeline(transaction=True) as pipeline:
                pipeline.srem(self.registry_key, name)
                pipeline.delete(self._namespace_key(name))
                removed, dropped = await pipeline.execute()
        except RedisError as exc:
            raise StorageFailure("delete", str(exc)) from exc
        return bool(removed or dropped)

    async def _keys(self, name: str) -> List[str]:
        try:
            client = await self._get_redis()
            keys = await client.hkeys(self._namespace_key(name))
        except RedisError as exc:
            raise StorageFailure("keys", str(exc)) from exc
        return [key.decode("utf-8") if isinstance(key, bytes) else key for key in keys]


def create_cache_store(
    backend: str,
    *,
    redis_url: Optional[str] = None,
    key_prefix: str = "edge-cache",
    metrics: Optional["MetricsCollector"] = None,
) -> CacheStore:
    """Build the configured store backend."""
    backend = backend.lower()
    if backend == "memory":
        return InMemoryCacheStore(metrics=metrics)
    if backend == "redis":
        if not redis_url:
            raise ValueError("redis backend requires a redis_url")
        return RedisCacheStore(redis_url, key_prefix=key_prefix, metrics=metrics)
    raise ValueError(f"Unknown cache backend: {backend!r}")
