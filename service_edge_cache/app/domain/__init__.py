"""
Domain types for the Edge Cache Service.
"""

from .models import Destination, RequestDescriptor, ResponseSnapshot

__all__ = ["Destination", "RequestDescriptor", "ResponseSnapshot"]
