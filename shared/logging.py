"""
Structured logging for the Offline Edge Cache.

Every event is rendered as one JSON line carrying the service name, the
cache generation the process serves, and, while a request is in flight, the
request id and the intercepted path.
"""

import sys
import structlog
import logging
import uuid
from typing import Any, Dict, Optional
from contextvars import ContextVar

# Per-request correlation
request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
request_path_var: ContextVar[Optional[str]] = ContextVar('request_path', default=None)

_service_context: Dict[str, Any] = {}


def configure_logging(service_name: str, log_level: str = "info", cache_generation: Optional[str] = None) -> None:
    """Configure structlog JSON output for a service process."""
    _service_context.clear()
    _service_context["service"] = service_name
    if cache_generation:
        _service_context["cache_generation"] = cache_generation

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            add_service_context,
            add_request_context,
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )


def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Attach the configured service name and cache generation."""
    for key, value in _service_context.items():
        event_dict.setdefault(key, value)
    return event_dict


def add_request_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Attach the id and path of the request being handled, if any."""
    request_id = request_id_var.get()
    if request_id:
        event_dict["request_id"] = request_id

    path = request_path_var.get()
    if path:
        event_dict.setdefault("request_path", path)

    return event_dict


def set_request_id(request_id: Optional[str] = None, path: Optional[str] = None) -> str:
    """Bind a request id (generated when absent) and path to the current context."""
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    request_path_var.set(path)
    return request_id


def clear_context():
    """Forget the current request."""
    request_id_var.set(None)
    request_path_var.set(None)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
