"""
Namespace generations and activation-time cleanup.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, FrozenSet, List, Optional

from shared.logging import get_logger
from .store import CacheStore

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


@dataclass(frozen=True)
class CacheNamespaces:
    """The two namespace roles recognized by the running version."""

    shell: str
    runtime: str

    @classmethod
    def for_version(cls, prefix: str, version: int) -> "CacheNamespaces":
        return cls(
            shell=f"{prefix}-app-v{version}",
            runtime=f"{prefix}-runtime-v{version}",
        )

    @property
    def known(self) -> FrozenSet[str]:
        return frozenset((self.shell, self.runtime))


class NamespaceManager:
    """Reclaims namespaces left behind by previous versions."""

    def __init__(
        self,
        store: CacheStore,
        known: FrozenSet[str],
        *,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.store = store
        self.known = frozenset(known)
        self.metrics = metrics
        self.logger = get_logger("edge.namespaces")

    async def cleanup(self) -> List[str]:
        """
        Delete every stored namespace that is not a known generation.

        Deletion failures are logged and skipped so that activation always
        completes. Returns the namespaces that were actually deleted.
        """
        stored = await self.store.list_namespaces()
        orphaned = sorted(stored - self.known)
        deleted: List[str] = []

        for name in orphaned:
            if await self.store.delete(name):
                deleted.append(name)
                if self.metrics:
                    self.metrics.increment_counter("edge_namespaces_deleted_total")
            else:
                self.logger.warning("Failed to delete orphaned namespace", namespace=name)

        self.logger.info(
            "Namespace cleanup completed",
            known=sorted(self.known),
            deleted=deleted,
            failed=len(orphaned) - len(deleted),
        )
        return deleted
