"""Cache manager for a file-backed key/value cache with TTL expiration."""

import logging
import os
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from stashbox.cache.config import CacheConfig
from stashbox.cache.keys import make_key
from stashbox.cache.lifetime import LifetimeRegistry, LifetimeSpec
from stashbox.cache.serializers import get_serializer
from stashbox.cache.validation import (
    encode_entry,
    get_ttl_remaining,
    is_expired,
    split_entry,
)
from stashbox.storage import StorageBackend

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "global"

_MISSING = object()


def validate_namespace(namespace: str) -> None:
    """Validate that a namespace names a single directory under the cache root.

    Args:
        namespace: Namespace to validate

    Raises:
        ValueError: If namespace is empty, '.', '..', or contains a path separator

    Examples:
        >>> validate_namespace('sessions')  # OK
        >>> validate_namespace('/tmp/elsewhere')  # Raises ValueError
        Traceback (most recent call last):
            ...
        ValueError: Namespace '/tmp/elsewhere' cannot contain path separators
    """
    if not isinstance(namespace, str):
        raise TypeError(
            f"Namespace must be a string, got {type(namespace).__name__}"
        )

    if not namespace:
        raise ValueError("Namespace cannot be empty")

    if namespace in (".", ".."):
        raise ValueError(f"Namespace '{namespace}' is not a directory name")

    if "/" in namespace or "\\" in namespace or os.sep in namespace:
        raise ValueError(f"Namespace '{namespace}' cannot contain path separators")


class CacheError(Exception):
    """Base exception for cache-related errors."""

    pass


class PathNotWritableError(CacheError):
    """Raised when the cache root is not a writable directory."""

    pass


class RootNotSetError(CacheError):
    """Raised when writing before a cache root has been set."""

    pass


class LifetimeNotSetError(CacheError):
    """Raised when writing to a namespace without a configured lifetime."""

    pass


class CacheIOError(CacheError):
    """Raised when the filesystem fails while writing an entry."""

    pass


class CacheManager:
    """Manages a directory of cache entries partitioned into namespaces.

    Each entry is one file at <root>/<namespace>/<entry id> holding the
    absolute expiration followed by the serialized value. Expiry is lazy:
    get() deletes an expired entry the first time it reads it. Nothing
    sweeps the cache in the background, and nothing locks it, so concurrent
    writers to the same entry race (last write wins).

    Examples:
        >>> cache = CacheManager()
        >>> cache.set_root('/tmp/my-cache')
        '/tmp/my-cache'
        >>> cache.set_lifetime('10m')
        600
        >>> cache.put('answer', 42)
        >>> cache.get('answer')
        42
    """

    make_key = staticmethod(make_key)

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        storage: Optional[StorageBackend] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """Initialize cache manager.

        Args:
            config: Cache configuration (defaults if None). A configured
                cache_dir is applied with set_root() and must be writable.
            storage: Storage backend used for all file I/O
            clock: Returns the current unix time (defaults to time.time)

        Raises:
            PathNotWritableError: If config.cache_dir is not writable
            ValueError: If config.serializer is unknown
        """
        self.config = config or CacheConfig()
        self.storage = storage or StorageBackend()
        self.clock = clock or time.time
        self.serializer = get_serializer(self.config.serializer)

        self.lifetimes = LifetimeRegistry()
        for namespace, spec in self.config.lifetimes.items():
            self.lifetimes.set(namespace, spec)

        self._root: Optional[str] = None
        self._stats = {"hits": 0, "misses": 0, "writes": 0, "expired": 0}

        if self.config.cache_dir is not None:
            self.set_root(self.config.cache_dir)

    # =========================================================================
    # Configuration
    # =========================================================================

    def set_root(
        self, path: Optional[Union[str, Path]] = None, force: bool = False
    ) -> Optional[str]:
        """Set or get the cache root.

        Called without arguments this is a pure getter. A non-None path must
        be a writable directory. force=True with path=None unsets the root.

        Args:
            path: New root directory
            force: Assign even when path is None

        Returns:
            The root after the call, or None if unset

        Raises:
            PathNotWritableError: If path is not a writable directory; the
                current root is left unchanged
        """
        if path is not None:
            if not self.storage.is_writable(path):
                raise PathNotWritableError(f"Path is not writable: {path}")
            self._root = str(path).rstrip("/") or "/"
            logger.debug(f"Cache root set to {self._root}")
        elif force:
            self._root = None
            logger.debug("Cache root unset")
        return self._root

    def get_root(self) -> Optional[str]:
        """Get the current cache root, None if unset."""
        return self._root

    @property
    def root(self) -> Optional[str]:
        """Current cache root, None if unset."""
        return self._root

    def set_lifetime(self, spec: LifetimeSpec, namespace: str = DEFAULT_NAMESPACE) -> int:
        """Set the lifetime of a namespace.

        Args:
            spec: Seconds as int, or a string such as '30', '4m', '2h'
            namespace: Storage namespace

        Returns:
            Lifetime in seconds
        """
        return self.lifetimes.set(namespace, spec)

    def get_lifetime(self, namespace: str = DEFAULT_NAMESPACE) -> int:
        """Get the lifetime of a namespace in seconds, 0 if not set."""
        return self.lifetimes.get(namespace)

    # =========================================================================
    # Paths
    # =========================================================================

    def _now(self) -> int:
        return int(self.clock())

    def _namespace_path(self, namespace: str) -> str:
        validate_namespace(namespace)
        return self.storage.join_paths(self._root, namespace)

    def _entry_path(
        self, key: str, namespace: str, params: Optional[Sequence[str]] = None
    ) -> str:
        return self.storage.join_paths(
            self._namespace_path(namespace), make_key(key, params)
        )

    def _read_entry(
        self, key: str, namespace: str, params: Optional[Sequence[str]]
    ) -> Optional[bytes]:
        if not self.has(key, namespace, params=params):
            return None
        return self.storage.read_bytes(self._entry_path(key, namespace, params))

    # =========================================================================
    # Operations
    # =========================================================================

    def has(
        self,
        key: str,
        namespace: str = DEFAULT_NAMESPACE,
        params: Optional[Sequence[str]] = None,
    ) -> bool:
        """Check if an entry file exists.

        Expiration is not checked.

        Args:
            key: Cache key
            namespace: Storage namespace
            params: Optional key parameters

        Returns:
            True if the entry exists on disk
        """
        if self._root is None:
            return False
        return self.storage.is_file(self._entry_path(key, namespace, params))

    def expiration(
        self,
        key: str,
        namespace: str = DEFAULT_NAMESPACE,
        params: Optional[Sequence[str]] = None,
    ) -> Optional[int]:
        """Get the stored expiration of an entry.

        The timestamp is returned even when it lies in the past; unlike
        get(), this never deletes the entry.

        Args:
            key: Cache key
            namespace: Storage namespace
            params: Optional key parameters

        Returns:
            Expiration as unix seconds, or None if there is no entry
        """
        content = self._read_entry(key, namespace, params)
        if content is None:
            return None
        expiration, _ = split_entry(content)
        return expiration

    def get(
        self,
        key: str,
        default: Any = None,
        namespace: str = DEFAULT_NAMESPACE,
        params: Optional[Sequence[str]] = None,
    ) -> Any:
        """Get a cached value.

        An entry whose expiration is before the current time is deleted
        from disk and reported as a miss. Entries that cannot be decoded
        are deleted the same way.

        Args:
            key: Cache key
            default: Returned on a miss
            namespace: Storage namespace
            params: Optional key parameters

        Returns:
            The cached value, or default
        """
        content = self._read_entry(key, namespace, params)
        if content is None:
            self._stats["misses"] += 1
            logger.debug(f"Cache miss for {namespace}/{key}")
            return default

        expiration, payload = split_entry(content)
        if is_expired(expiration, self._now()):
            logger.debug(f"Cache entry {namespace}/{key} expired at {expiration}")
            self._stats["expired"] += 1
            self._stats["misses"] += 1
            self.forget(key, namespace, params=params)
            return default

        try:
            value = self.serializer.loads(payload)
        except Exception as e:
            logger.warning(f"Discarding unreadable cache entry {namespace}/{key}: {e}")
            self._stats["misses"] += 1
            self.forget(key, namespace, params=params)
            return default

        self._stats["hits"] += 1
        logger.debug(f"Cache hit for {namespace}/{key}")
        return value

    def put(
        self,
        key: str,
        value: Any,
        namespace: str = DEFAULT_NAMESPACE,
        params: Optional[Sequence[str]] = None,
    ) -> None:
        """Store a value, replacing any existing entry.

        The entry expires lifetime seconds from now, where lifetime is the
        namespace's configured lifetime. The namespace directory is created
        on first write.

        Args:
            key: Cache key
            value: Value accepted by the configured serializer
            namespace: Storage namespace
            params: Optional key parameters

        Raises:
            RootNotSetError: If no cache root is set
            LifetimeNotSetError: If the namespace has no lifetime
            CacheIOError: If the entry cannot be written
            ValueError: If namespace is not a plain directory name
        """
        if self._root is None:
            raise RootNotSetError("Cache root not set. Call set_root() first.")

        lifetime = self.lifetimes.get(namespace)
        if lifetime == 0:
            raise LifetimeNotSetError(
                f"Lifetime not set for namespace '{namespace}'. "
                f"Call set_lifetime() first."
            )

        content = encode_entry(self._now() + lifetime, self.serializer.dumps(value))
        entry_path = self._entry_path(key, namespace, params)

        try:
            self.storage.mkdir(self._namespace_path(namespace))
            self.storage.write_bytes(entry_path, content)
        except OSError as e:
            logger.error(f"Cannot write cache entry {entry_path}: {e}")
            raise CacheIOError(f"Cannot write cache entry: {e}") from e

        self._stats["writes"] += 1
        logger.debug(f"Cached {namespace}/{key} for {lifetime}s")

    def forget(
        self,
        key: str,
        namespace: str = DEFAULT_NAMESPACE,
        params: Optional[Sequence[str]] = None,
    ) -> None:
        """Remove an entry. Does nothing if it does not exist."""
        if self.has(key, namespace, params=params):
            self.storage.delete_file(self._entry_path(key, namespace, params))
            logger.debug(f"Forgot {namespace}/{key}")

    def flush(self, namespace: str = DEFAULT_NAMESPACE) -> None:
        """Remove every entry of a namespace.

        Only files directly inside the namespace directory are removed;
        hidden files, subdirectories and the directory itself stay.

        Args:
            namespace: Storage namespace

        Raises:
            ValueError: If namespace is not a plain directory name
        """
        if self._root is None:
            return

        namespace_path = self._namespace_path(namespace)
        removed = 0
        for name in self.storage.list_dir(namespace_path):
            if name.startswith("."):
                continue
            path = self.storage.join_paths(namespace_path, name)
            if self.storage.is_file(path) and self.storage.delete_file(path):
                removed += 1

        logger.debug(f"Flushed {removed} entries from namespace '{namespace}'")

    def remember(
        self,
        key: str,
        fetch_fn: Callable[[], Any],
        namespace: str = DEFAULT_NAMESPACE,
        params: Optional[Sequence[str]] = None,
    ) -> Any:
        """Get a cached value, computing and storing it on a miss.

        Args:
            key: Cache key
            fetch_fn: Called with no arguments to produce the value
            namespace: Storage namespace
            params: Optional key parameters

        Returns:
            The cached or freshly computed value

        Raises:
            RootNotSetError: If a miss occurs and no cache root is set
            LifetimeNotSetError: If a miss occurs and the namespace has no lifetime
        """
        value = self.get(key, _MISSING, namespace, params=params)
        if value is not _MISSING:
            return value

        value = fetch_fn()
        self.put(key, value, namespace, params=params)
        return value

    # =========================================================================
    # Inspection
    # =========================================================================

    def get_status(
        self,
        key: str,
        namespace: str = DEFAULT_NAMESPACE,
        params: Optional[Sequence[str]] = None,
    ) -> Optional[Dict[str, Any]]:
        """Get cache status for an entry without deleting it.

        Args:
            key: Cache key
            namespace: Storage namespace
            params: Optional key parameters

        Returns:
            Status dict with entry information, or None if there is no entry
        """
        content = self._read_entry(key, namespace, params)
        if content is None:
            return None

        expiration, _ = split_entry(content)
        now = self._now()
        return {
            "key": key,
            "namespace": namespace,
            "entry_id": make_key(key, params),
            "cache_path": self._entry_path(key, namespace, params),
            "expiration": expiration,
            "expired": is_expired(expiration, now),
            "ttl_remaining": get_ttl_remaining(expiration, now),
            "size_bytes": len(content),
        }

    def namespaces(self) -> List[str]:
        """List namespaces that have a directory under the root."""
        if self._root is None:
            return []
        return [
            name
            for name in self.storage.list_dir(self._root)
            if not name.startswith(".")
            and self.storage.is_dir(self.storage.join_paths(self._root, name))
        ]

    def count_entries(self, namespace: str = DEFAULT_NAMESPACE) -> int:
        """Count entry files in a namespace, expired ones included."""
        if self._root is None:
            return 0
        namespace_path = self._namespace_path(namespace)
        return sum(
            1
            for name in self.storage.list_dir(namespace_path)
            if not name.startswith(".")
            and self.storage.is_file(self.storage.join_paths(namespace_path, name))
        )

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics for this manager.

        Returns:
            Statistics dict
        """
        stats: Dict[str, Any] = dict(self._stats)
        stats["cache_dir"] = self._root
        stats["serializer"] = self.serializer.name
        stats["lifetimes"] = self.lifetimes.as_dict()

        total_requests = stats["hits"] + stats["misses"]
        stats["cache_hit_rate"] = (
            stats["hits"] / total_requests if total_requests > 0 else 0.0
        )

        return stats
