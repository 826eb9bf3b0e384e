"""
Request and response value types shared by the caching core.
"""

from __future__ import annotations

import base64
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

import httpx


# Headers that describe the wire encoding of an upstream response rather than
# its content; httpx has already decoded the body by the time it is captured.
_HOP_BY_HOP_HEADERS = frozenset({
    "connection",
    "content-encoding",
    "content-length",
    "keep-alive",
    "transfer-encoding",
})


class Destination(str, Enum):
    """Destination hint carried by an intercepted request."""

    DOCUMENT = "document"
    IMAGE = "image"
    OTHER = "other"

    @classmethod
    def from_header(cls, value: Optional[str]) -> "Destination":
        """Map a ``Sec-Fetch-Dest`` header value onto a destination hint."""
        if not value:
            return cls.OTHER
        value = value.strip().lower()
        if value in ("document", "iframe", "frame"):
            return cls.DOCUMENT
        if value == "image":
            return cls.IMAGE
        return cls.OTHER


@dataclass(frozen=True)
class RequestDescriptor:
    """Describes an intercepted request; method and URL form its cache key."""

    method: str
    url: str
    destination: Destination = Destination.OTHER
    mode: Optional[str] = None

    def __post_init__(self) -> None:
        parsed = httpx.URL(self.url)
        if not parsed.is_absolute_url:
            raise ValueError(f"Request URL must be absolute: {self.url!r}")
        object.__setattr__(self, "method", self.method.upper())

    @property
    def parsed_url(self) -> httpx.URL:
        return httpx.URL(self.url)

    @property
    def path(self) -> str:
        return self.parsed_url.path

    @property
    def origin(self) -> str:
        return origin_of(self.url)

    @property
    def is_navigation(self) -> bool:
        return self.destination is Destination.DOCUMENT or self.mode == "navigate"

    @property
    def cache_key(self) -> str:
        """Key under which responses for this request are stored."""
        return f"{self.method} {httpx.URL(self.url.split('#', 1)[0])}"

    @classmethod
    def get(cls, url: str, destination: Destination = Destination.OTHER, **kwargs: Any) -> "RequestDescriptor":
        return cls("GET", url, destination=destination, **kwargs)


def origin_of(url: str) -> str:
    """Return ``scheme://host[:port]`` for an absolute URL, default ports dropped."""
    parsed = httpx.URL(url)
    origin = f"{parsed.scheme}://{parsed.host}"
    if parsed.port is not None:
        origin = f"{origin}:{parsed.port}"
    return origin


@dataclass(frozen=True)
class ResponseSnapshot:
    """
    Immutable capture of a response.

    Snapshots are what strategies return to the host and what the cache
    store persists. A later write under the same key replaces the whole
    snapshot.
    """

    status: int
    headers: Tuple[Tuple[str, str], ...] = ()
    body: bytes = b""
    captured_at: float = field(default_factory=time.time)
    reason: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def header(self, name: str) -> Optional[str]:
        name = name.lower()
        for key, value in self.headers:
            if key == name:
                return value
        return None

    @staticmethod
    def normalize_headers(headers: Iterable[Tuple[str, str]]) -> Tuple[Tuple[str, str], ...]:
        return tuple(
            (key.lower(), value)
            for key, value in headers
            if key.lower() not in _HOP_BY_HOP_HEADERS
        )

    @classmethod
    def from_httpx(cls, response: httpx.Response) -> "ResponseSnapshot":
        """Capture an httpx response whose body has been read."""
        return cls(
            status=response.status_code,
            headers=cls.normalize_headers(response.headers.multi_items()),
            body=response.content,
            reason=response.reason_phrase,
        )

    @classmethod
    def gateway_timeout(cls) -> "ResponseSnapshot":
        """Empty placeholder served when neither cache nor network can answer."""
        return cls(status=504, reason="Gateway Timeout")

    @classmethod
    def offline(cls) -> "ResponseSnapshot":
        """Response served for navigations while offline with no cached shell."""
        return cls(
            status=503,
            headers=(("content-type", "text/plain; charset=utf-8"),),
            body=b"Offline",
            reason="Offline",
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the snapshot to a JSON-friendly dictionary."""
        return {
            "status": self.status,
            "headers": [list(pair) for pair in self.headers],
            "body": base64.b64encode(self.body).decode("ascii"),
            "captured_at": self.captured_at,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ResponseSnapshot":
        """Rehydrate a snapshot from stored JSON state."""
        return cls(
            status=int(payload["status"]),
            headers=tuple((str(key), str(value)) for key, value in payload.get("headers", [])),
            body=base64.b64decode(payload.get("body", "")),
            captured_at=float(payload.get("captured_at", 0.0)),
            reason=payload.get("reason", ""),
        )
