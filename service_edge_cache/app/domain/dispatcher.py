"""
Entry point for intercepted requests.
"""

from typing import Any, Optional

from shared.logging import get_logger
from ..caching.router import PolicyRouter
from .lifecycle import WorkerLifecycle
from .models import RequestDescriptor, ResponseSnapshot


class RequestDispatcher:
    """
    Answers intercepted requests through the caching strategies.

    ``handle`` returns None when the request is not handled: before the
    lifecycle controls clients, or when the router finds the request
    ineligible. The host then applies its default network behavior.
    """

    def __init__(self, router: PolicyRouter, lifecycle: WorkerLifecycle):
        self.router = router
        self.lifecycle = lifecycle
        self.logger = get_logger("edge.dispatcher")

    async def handle(self, request: RequestDescriptor, preload: Any = None) -> Optional[ResponseSnapshot]:
        if not self.lifecycle.controlling:
            return None

        strategy = self.router.route(request)
        if strategy is None:
            return None

        response = await strategy.execute(request, preload=preload)
        self.logger.debug(
            "Request served",
            url=request.url,
            strategy=strategy.name,
            status=response.status,
        )
        return response
