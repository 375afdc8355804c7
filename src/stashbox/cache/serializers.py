"""Value serializers for cache payloads.

A serializer turns a cached value into bytes and back. The registry maps
names to serializer instances so the format can be chosen by configuration:

- json: orjson, for dicts, lists, strings, numbers and numpy arrays
- pickle: any picklable Python object
"""

import pickle
from abc import ABC, abstractmethod
from typing import Any, Dict, List

import orjson


class Serializer(ABC):
    """Base class for payload serializers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Registry name, e.g. 'json'."""
        pass

    @abstractmethod
    def dumps(self, value: Any) -> bytes:
        pass

    @abstractmethod
    def loads(self, data: bytes) -> Any:
        pass


class JsonSerializer(Serializer):
    """orjson-backed serializer.

    Tuples come back as lists and numpy arrays as nested lists.
    """

    @property
    def name(self) -> str:
        return "json"

    def dumps(self, value: Any) -> bytes:
        return orjson.dumps(
            value, option=orjson.OPT_SERIALIZE_NUMPY | orjson.OPT_NON_STR_KEYS
        )

    def loads(self, data: bytes) -> Any:
        return orjson.loads(data)


class PickleSerializer(Serializer):
    """pickle-backed serializer for arbitrary Python objects.

    Only read caches written by trusted code.
    """

    @property
    def name(self) -> str:
        return "pickle"

    def dumps(self, value: Any) -> bytes:
        return pickle.dumps(value, protocol=pickle.HIGHEST_PROTOCOL)

    def loads(self, data: bytes) -> Any:
        return pickle.loads(data)


class SerializerRegistry:
    """Registry of payload serializers by name.

    Examples:
        >>> registry = SerializerRegistry()
        >>> registry.register(JsonSerializer())
        >>> registry.get('json').dumps({'a': 1})
        b'{"a":1}'
    """

    def __init__(self):
        """Initialize an empty registry."""
        self._serializers: Dict[str, Serializer] = {}

    def register(self, serializer: Serializer) -> None:
        """Register a serializer.

        Raises:
            ValueError: If the name is already registered
        """
        name = serializer.name
        if name in self._serializers:
            raise ValueError(
                f"Serializer already registered for name: {name}. "
                f"Cannot register {serializer.__class__.__name__}."
            )
        self._serializers[name] = serializer

    def get(self, name: str) -> Serializer:
        """Get serializer by name.

        Raises:
            ValueError: If no serializer is registered under name
        """
        if name not in self._serializers:
            available = ", ".join(sorted(self._serializers))
            raise ValueError(
                f"Unknown serializer: {name}. Available serializers: {available}"
            )
        return self._serializers[name]

    def names(self) -> List[str]:
        return sorted(self._serializers)


_registry = SerializerRegistry()
_registry.register(JsonSerializer())
_registry.register(PickleSerializer())


def get_serializer(name: str) -> Serializer:
    """Get a serializer from the default registry."""
    return _registry.get(name)


def register_serializer(serializer: Serializer) -> None:
    """Add a serializer to the default registry."""
    _registry.register(serializer)


def list_serializers() -> List[str]:
    return _registry.names()
