"""File-backed key/value cache with TTL expiration.

This module stores values as files under a cache root, partitioned into
namespaces that each have their own lifetime. Expired entries are removed
lazily when read.

Key components:
- CacheManager: Main cache interface
- CacheConfig: Configuration management
- LifetimeRegistry: Per-namespace lifetimes
- make_key: Entry identifiers from keys and parameters
"""

from stashbox.cache.config import CacheConfig
from stashbox.cache.keys import make_key
from stashbox.cache.lifetime import LifetimeRegistry, parse_lifetime
from stashbox.cache.manager import (
    CacheError,
    CacheIOError,
    CacheManager,
    LifetimeNotSetError,
    PathNotWritableError,
    RootNotSetError,
)

__all__ = [
    "CacheManager",
    "CacheConfig",
    "LifetimeRegistry",
    "make_key",
    "parse_lifetime",
    "CacheError",
    "CacheIOError",
    "LifetimeNotSetError",
    "PathNotWritableError",
    "RootNotSetError",
]
