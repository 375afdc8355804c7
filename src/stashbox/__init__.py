"""stashbox: File-backed key/value cache with per-namespace TTL expiration."""

__version__ = "0.1.0"

from stashbox.cache import CacheConfig, CacheManager

__all__ = ["CacheManager", "CacheConfig", "__version__"]
