"""
Shared configuration management for the edge cache policy service.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="EDGE_CACHE_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Durable configuration store; empty means in-process memory store
    redis_url: str = Field(default="")

    # Origin
    origin_url: str = Field(default="http://localhost:8080")
    origin_timeout_seconds: float = Field(default=30.0, gt=0)

    # Admin API
    admin_api_secret: str = Field(default="development-secret")

    # Policy engine
    debug_mode: bool = Field(default=False)
    build_version: Optional[str] = Field(default=None)
    tag_memo_capacity: int = Field(default=1024, ge=0)
    environment_cache_ttl_seconds: float = Field(default=10.0, gt=0)
    categories_cache_ttl_seconds: float = Field(default=30.0, gt=0)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
