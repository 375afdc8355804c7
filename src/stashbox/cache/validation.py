"""Cache entry envelope and TTL validation utilities.

An entry file holds the absolute expiration as ASCII unix seconds, the
two-byte delimiter, and the serialized value:

    1767225600||{"name":"value"}

Only the first delimiter is significant; the payload may contain more.
"""

import re
from typing import Optional, Tuple

DELIMITER = b"||"

_LEADING_INT = re.compile(rb"^\s*[+-]?\d+")


def encode_entry(expiration: int, payload: bytes) -> bytes:
    """Build entry file content.

    Args:
        expiration: Absolute expiration as unix seconds
        payload: Serialized value

    Returns:
        Bytes to write to the entry file
    """
    return str(int(expiration)).encode("ascii") + DELIMITER + payload


def split_entry(content: bytes) -> Tuple[Optional[int], bytes]:
    """Split entry file content into expiration and payload.

    Args:
        content: Raw entry file content

    Returns:
        (expiration, payload). Expiration is None when the content has no
        delimiter, in which case payload is the whole content. A header
        without digits parses as 0.
    """
    marker = content.find(DELIMITER)
    if marker == -1:
        return None, content

    header = content[:marker]
    match = _LEADING_INT.match(header)
    expiration = int(match.group()) if match else 0
    return expiration, content[marker + len(DELIMITER) :]


def is_expired(expiration: Optional[int], now: float) -> bool:
    """Check if an expiration timestamp lies strictly before now.

    A missing expiration counts as expired.
    """
    if expiration is None:
        return True
    return expiration < now


def get_ttl_remaining(expiration: Optional[int], now: float) -> int:
    """Get remaining seconds until expiration.

    Args:
        expiration: Absolute expiration as unix seconds
        now: Current unix time

    Returns:
        Seconds remaining, 0 if expired or unknown
    """
    if expiration is None:
        return 0
    return max(0, int(expiration - now))
