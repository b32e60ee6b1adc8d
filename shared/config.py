"""
Shared configuration management for the Places cache proxy.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_MEMORY_CACHE_TTL = 2592000  # 30 days


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")


class ProxyConfig(BaseConfig):
    """Settings for the caching proxy service."""

    service_name: str = Field(default="places")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)

    # Networked cache backend; unset means in-process caching only
    redis_url: Optional[str] = Field(default=None)
    redis_connect_timeout: float = Field(default=5.0)
    redis_ttl_seconds: Optional[int] = Field(default=None)

    # In-process cache backend
    memory_cache_ttl_seconds: int = Field(default=DEFAULT_MEMORY_CACHE_TTL)
    memory_cache_max_entries: int = Field(default=100000)

    # Upstream Places API
    upstream_base_url: str = Field(default="https://maps.googleapis.com")
    upstream_timeout_seconds: float = Field(default=10.0)
    api_prefix: str = Field(default="/maps/api")


def get_config(**overrides) -> ProxyConfig:
    """Get configuration for the proxy, applying explicit overrides over the environment."""
    return ProxyConfig(**overrides)
