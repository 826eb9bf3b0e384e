"""
Install and activation lifecycle of the edge cache.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from shared.errors import ManifestFetchFailure, ValidationError
from shared.logging import get_logger
from ..caching.namespaces import NamespaceManager
from ..caching.precache import Precacher


class LifecycleState(str, Enum):
    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVATED = "activated"
    REDUNDANT = "redundant"


# Control messages that ask a waiting version to take over immediately.
_ACTIVATE_NOW_MESSAGES = (
    ("command", "activate-now"),
    ("type", "SKIP_WAITING"),
)


class WorkerLifecycle:
    """
    Drives a version of the cache from install to activation.

    ``install`` precaches the shell, or reuses the shell this version stored
    on an earlier run, in which case it activates straight away. Otherwise
    an installed version waits until ``skip_waiting`` is requested, which
    happens on every install by default. ``activate`` reclaims orphaned
    namespaces and claims all clients; only a controlling lifecycle lets
    requests reach the caching strategies.
    """

    def __init__(
        self,
        precacher: Precacher,
        namespace_manager: NamespaceManager,
        manifest: Callable[[], Sequence[str]],
        *,
        skip_waiting_on_install: bool = True,
    ):
        self.precacher = precacher
        self.namespace_manager = namespace_manager
        self.manifest = manifest
        self.skip_waiting_on_install = skip_waiting_on_install
        self.state = LifecycleState.PARSED
        self.controlling = False
        self.skip_waiting_requested = False
        self.precached: List[str] = []
        self.reclaimed: List[str] = []
        self.install_error: Optional[ManifestFetchFailure] = None
        self.logger = get_logger("edge.lifecycle")

    async def install(self) -> None:
        """Run the install phase; a precache failure makes this version redundant."""
        if self.state is not LifecycleState.PARSED:
            raise ValidationError("Install already ran", details={"state": self.state.value})

        self.state = LifecycleState.INSTALLING
        if self.skip_waiting_on_install:
            self.skip_waiting_requested = True

        try:
            entries = self.manifest()
            restored = await self.precacher.restore(entries)
            if restored is not None:
                # This version installed on an earlier run; its shell persisted.
                self.precached = restored
                self.skip_waiting_requested = True
            else:
                self.precached = await self.precacher.install(entries)
        except ManifestFetchFailure as exc:
            self.state = LifecycleState.REDUNDANT
            self.install_error = exc
            self.logger.error("Install failed", error=exc.message, details=exc.details)
            raise

        self.state = LifecycleState.INSTALLED
        self.logger.info("Installed", precached=len(self.precached))

        if self.skip_waiting_requested:
            await self.activate()

    async def activate(self) -> None:
        """Reclaim orphaned namespaces and take control of all clients."""
        if self.state is not LifecycleState.INSTALLED:
            raise ValidationError("Only an installed version can activate", details={"state": self.state.value})

        self.state = LifecycleState.ACTIVATING
        self.reclaimed = await self.namespace_manager.cleanup()
        self.state = LifecycleState.ACTIVATED
        self.controlling = True
        self.logger.info("Activated and controlling clients", reclaimed=self.reclaimed)

    async def skip_waiting(self) -> None:
        """Stop waiting; activate now if install has already finished."""
        self.skip_waiting_requested = True
        if self.state is LifecycleState.INSTALLED:
            await self.activate()

    async def handle_message(self, message: Any) -> None:
        """Handle a control message sent by the client application."""
        if isinstance(message, dict):
            for field_name, expected in _ACTIVATE_NOW_MESSAGES:
                if message.get(field_name) == expected:
                    self.logger.info("Activate-now requested", state=self.state.value)
                    await self.skip_waiting()
                    return
        raise ValidationError("Unsupported control message", details={"message": message})

    def status(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "controlling": self.controlling,
            "skip_waiting_requested": self.skip_waiting_requested,
            "precached": list(self.precached),
            "reclaimed": list(self.reclaimed),
            "install_error": self.install_error.to_response().model_dump() if self.install_error else None,
        }
