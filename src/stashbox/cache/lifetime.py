"""Per-namespace cache lifetimes."""

import re
from datetime import timedelta
from typing import Dict, List, Union

LifetimeSpec = Union[int, float, str, timedelta]

_LEADING_INT = re.compile(r"^[+-]?\d+")


def _leading_int(text: str) -> int:
    """Parse the integer prefix of text, 0 if there is none."""
    match = _LEADING_INT.match(text)
    return int(match.group()) if match else 0


def parse_lifetime(spec: LifetimeSpec) -> int:
    """Convert a lifetime spec to seconds.

    Integers are seconds. Strings may end in 'h' (hours) or 'm' (minutes);
    anything else is read as seconds. Only the leading integer of a string
    counts, so '1.5h' is one hour. Hours are first turned into minutes and
    the minute figure then into seconds.

    Args:
        spec: Lifetime as int, str ('30', '4m', '2h') or timedelta

    Returns:
        Lifetime in seconds

    Raises:
        TypeError: If spec is a bool or an unsupported type

    Examples:
        >>> parse_lifetime(4)
        4
        >>> parse_lifetime('4m')
        240
        >>> parse_lifetime('4h')
        14400
    """
    if isinstance(spec, bool):
        raise TypeError("Lifetime cannot be a bool")
    if isinstance(spec, timedelta):
        return int(spec.total_seconds())
    if isinstance(spec, (int, float)):
        return int(spec)
    if not isinstance(spec, str):
        raise TypeError(f"Unsupported lifetime type: {type(spec).__name__}")

    text = spec.strip().lower()

    if text.endswith("h"):
        text = f"{_leading_int(text) * 60}m"

    if text.endswith("m"):
        text = f"{_leading_int(text) * 60}s"

    return _leading_int(text)


class LifetimeRegistry:
    """Table of lifetimes in seconds, keyed by storage namespace.

    Namespaces that were never configured report 0, which the cache
    treats as "not set".

    Examples:
        >>> lifetimes = LifetimeRegistry()
        >>> lifetimes.set('global', '4m')
        240
        >>> lifetimes.get('sessions')
        0
    """

    def __init__(self):
        self._seconds: Dict[str, int] = {}

    def set(self, namespace: str, spec: LifetimeSpec) -> int:
        """Store the lifetime for a namespace, replacing any previous value.

        Args:
            namespace: Storage namespace
            spec: Lifetime spec, see parse_lifetime()

        Returns:
            Stored lifetime in seconds
        """
        seconds = parse_lifetime(spec)
        self._seconds[namespace] = seconds
        return seconds

    def get(self, namespace: str) -> int:
        """Get the lifetime for a namespace, 0 if not configured."""
        return self._seconds.get(namespace, 0)

    def __contains__(self, namespace: str) -> bool:
        return namespace in self._seconds

    def namespaces(self) -> List[str]:
        return sorted(self._seconds)

    def as_dict(self) -> Dict[str, int]:
        return dict(self._seconds)

    def clear(self) -> None:
        self._seconds.clear()
