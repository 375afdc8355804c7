"""Cache configuration management."""

import json
import os
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Union

DEFAULT_CONFIG_PATH = Path.home() / ".stashbox" / "config.json"


@dataclass
class CacheConfig:
    """Configuration for a file cache.

    Attributes:
        cache_dir: Root directory holding one subdirectory per namespace.
            None leaves the root unset until CacheManager.set_root() is called.
        lifetimes: Namespace -> lifetime spec (seconds, '30m', '2h')
        serializer: Name of the payload serializer ('json' or 'pickle')
    """

    cache_dir: Optional[Path] = None
    lifetimes: Dict[str, Union[int, str]] = field(default_factory=dict)
    serializer: str = "json"

    def __post_init__(self):
        """Ensure cache_dir is an expanded Path object."""
        if self.cache_dir is not None:
            self.cache_dir = Path(self.cache_dir).expanduser()

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "CacheConfig":
        """Load configuration from file.

        Args:
            config_path: Path to config file. If None, uses default location.

        Returns:
            CacheConfig instance (defaults if the file does not exist)
        """
        if config_path is None:
            config_path = DEFAULT_CONFIG_PATH
        config_path = Path(config_path)

        if not config_path.exists():
            return cls()

        with open(config_path, "r") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                warnings.warn(f"Ignoring invalid cache config {config_path}: {e}")
                return cls()

        if not isinstance(data, dict):
            warnings.warn(
                f"Ignoring invalid cache config {config_path}: "
                f"expected a JSON object, got {type(data).__name__}"
            )
            return cls()

        return cls(
            cache_dir=data.get("cache_dir"),
            lifetimes=dict(data.get("lifetimes") or {}),
            serializer=data.get("serializer", "json"),
        )

    def save(self, config_path: Optional[Path] = None) -> None:
        """Save configuration to file.

        Args:
            config_path: Path to config file. If None, uses default location.
        """
        if config_path is None:
            config_path = DEFAULT_CONFIG_PATH
        config_path = Path(config_path)

        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "cache_dir": str(self.cache_dir) if self.cache_dir is not None else None,
            "lifetimes": self.lifetimes,
            "serializer": self.serializer,
        }

        with open(config_path, "w") as f:
            json.dump(data, f, indent=2)

    @classmethod
    def from_env(cls) -> "CacheConfig":
        """Create configuration from environment variables.

        Environment variables:
            STASHBOX_CACHE_DIR: Cache root directory
            STASHBOX_CACHE_LIFETIME: Lifetime of the 'global' namespace
            STASHBOX_CACHE_SERIALIZER: Payload serializer name

        Returns:
            CacheConfig instance
        """
        config = cls()

        if os.getenv("STASHBOX_CACHE_DIR"):
            config.cache_dir = Path(os.getenv("STASHBOX_CACHE_DIR")).expanduser()

        if os.getenv("STASHBOX_CACHE_LIFETIME"):
            config.lifetimes["global"] = os.getenv("STASHBOX_CACHE_LIFETIME")

        if os.getenv("STASHBOX_CACHE_SERIALIZER"):
            config.serializer = os.getenv("STASHBOX_CACHE_SERIALIZER")

        return config
