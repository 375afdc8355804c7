"""Storage backend for file I/O operations.

This module provides abstraction for the local file system operations
the cache is built on.
"""

from stashbox.storage.backend import StorageBackend

__all__ = [
    "StorageBackend",
]
