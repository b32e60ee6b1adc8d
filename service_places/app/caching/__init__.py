"""
Place record caching package.

Provides the cache backends behind the place details route and the startup
selection between Redis and the in-process fallback.
"""

from .backends import (
    CacheBackend,
    MemoryCacheBackend,
    RedisCacheBackend,
    select_cache_backend,
)

__all__ = [
    "CacheBackend",
    "MemoryCacheBackend",
    "RedisCacheBackend",
    "select_cache_backend",
]
