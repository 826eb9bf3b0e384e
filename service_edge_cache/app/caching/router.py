"""
Request classification and strategy selection.
"""

from enum import Enum
from typing import Iterable, Optional, Tuple

from shared.logging import get_logger
from ..domain.models import Destination, RequestDescriptor, origin_of
from .strategies import Strategy


class RequestClass(str, Enum):
    NAVIGATION = "navigation"
    IMAGE = "image"
    OTHER = "other"
    INELIGIBLE = "ineligible"


class PolicyRouter:
    """
    Classifies intercepted requests and picks the strategy that serves them.

    Only same-origin GET requests are eligible. Among those, precedence is
    navigation, then image/media, then everything else.
    """

    def __init__(
        self,
        app_origin: str,
        *,
        navigation: Strategy,
        media: Strategy,
        default: Strategy,
        media_path_prefixes: Iterable[str] = ("/media/",),
    ):
        self.app_origin = origin_of(app_origin)
        self.media_path_prefixes: Tuple[str, ...] = tuple(media_path_prefixes)
        self.logger = get_logger("edge.router")
        self._strategies = {
            RequestClass.NAVIGATION: navigation,
            RequestClass.IMAGE: media,
            RequestClass.OTHER: default,
        }

    def is_eligible(self, request: RequestDescriptor) -> bool:
        return request.method == "GET" and request.origin == self.app_origin

    def classify(self, request: RequestDescriptor) -> RequestClass:
        if not self.is_eligible(request):
            return RequestClass.INELIGIBLE
        if request.is_navigation:
            return RequestClass.NAVIGATION
        if request.destination is Destination.IMAGE or request.path.startswith(self.media_path_prefixes):
            return RequestClass.IMAGE
        return RequestClass.OTHER

    def route(self, request: RequestDescriptor) -> Optional[Strategy]:
        """Return the strategy for a request, or None when it is not handled."""
        request_class = self.classify(request)
        strategy = self._strategies.get(request_class)
        self.logger.debug(
            "Routed request",
            url=request.url,
            method=request.method,
            request_class=request_class.value,
            strategy=strategy.name if strategy else None,
        )
        return strategy
