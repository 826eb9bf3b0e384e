"""
Adapters package for the Edge Cache Service.

Contains the HTTP client wrapper for the origin server. Adapters map
transport errors onto shared errors and stay free of caching decisions.
"""

from .origin_client import OriginClient

__all__ = [
    "OriginClient",
]
