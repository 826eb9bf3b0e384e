"""
Shared configuration management for the Offline Edge Cache.
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_PRECACHE_MANIFEST = ["./", "./index.html", "./manifest.webmanifest"]


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="EDGE_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Storage
    cache_backend: str = Field(default="memory")
    redis_url: str = Field(default="redis://localhost:6379/0")


class EdgeConfig(BaseConfig):
    """Edge cache service configuration."""

    service_name: str = "edge"
    host: str = "0.0.0.0"
    port: int = 8000

    # Origin the client application is served from, and the upstream it proxies
    app_origin: str = Field(default="http://localhost:8000")
    origin_url: str = Field(default="http://localhost:8080")
    fetch_timeout_seconds: float = Field(default=10.0)

    # Namespace generations; bump cache_version when shipping changes
    cache_prefix: str = Field(default="edge")
    cache_version: int = Field(default=1)

    # Precache
    precache_manifest: List[str] = Field(default_factory=lambda: list(DEFAULT_PRECACHE_MANIFEST))
    manifest_file: Optional[str] = Field(default=None)
    offline_document: str = Field(default="./index.html")

    # Routing
    media_path_prefixes: List[str] = Field(default_factory=lambda: ["/media/"])

    # Lifecycle
    skip_waiting_on_install: bool = Field(default=True)


def get_config(**overrides) -> EdgeConfig:
    """Get configuration for the edge cache service."""
    return EdgeConfig(**overrides)
