"""Cache entry identifiers."""

import hashlib
from typing import Optional, Sequence

import orjson


def _digest(value) -> str:
    return hashlib.md5(orjson.dumps(value)).hexdigest()


def make_key(key: str, params: Optional[Sequence[str]] = None) -> str:
    """Derive a filesystem-safe entry identifier from a logical key.

    The key is serialized to JSON and hashed with md5. When params are given,
    a second digest of the params list is appended after a dash, so the same
    key can be cached separately per parameter set. Param order matters.

    Args:
        key: Logical cache key
        params: Optional extra parameters distinguishing variants of the key

    Returns:
        32 hex characters, or 65 when params are non-empty

    Raises:
        TypeError: If key is not a string

    Examples:
        >>> len(make_key('users'))
        32
        >>> make_key('users', ['page', '2']) != make_key('users', ['2', 'page'])
        True
    """
    if not isinstance(key, str):
        raise TypeError(f"Cache key must be a string, got {type(key).__name__}")

    entry_id = _digest(key)
    if params:
        entry_id += "-" + _digest(list(params))
    return entry_id
