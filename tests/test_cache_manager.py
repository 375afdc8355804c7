"""Unit tests for cache manager."""

import os
import tempfile
import time
from pathlib import Path
from unittest.mock import patch

import pytest

from stashbox.cache.config import CacheConfig
from stashbox.cache.keys import make_key
from stashbox.cache.manager import (
    CacheIOError,
    CacheManager,
    LifetimeNotSetError,
    PathNotWritableError,
    RootNotSetError,
    validate_namespace,
)
from stashbox.cache.validation import split_entry


@pytest.fixture
def temp_cache_dir():
    """Create temporary cache directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def cache_manager(temp_cache_dir):
    """Create test cache manager with root and global lifetime set."""
    manager = CacheManager()
    manager.set_root(temp_cache_dir)
    manager.set_lifetime(4)
    return manager


def entry_path(root: Path, key: str, namespace: str = "global") -> Path:
    return root / namespace / make_key(key)


def rewrite_expiration(path: Path, expiration: int) -> None:
    """Replace the stored expiration of an entry file."""
    _, payload = split_entry(path.read_bytes())
    path.write_bytes(str(expiration).encode("ascii") + b"||" + payload)


class TestCacheManagerInitialization:
    """Test cache manager initialization."""

    def test_defaults(self):
        """Test that a default manager has no root and no lifetimes."""
        manager = CacheManager()

        assert manager.root is None
        assert manager.get_root() is None
        assert manager.get_lifetime() == 0

    def test_config_applies_root_and_lifetimes(self, temp_cache_dir):
        """Test that config cache_dir and lifetimes are applied."""
        config = CacheConfig(
            cache_dir=temp_cache_dir, lifetimes={"global": "4m", "test": 10}
        )
        manager = CacheManager(config)

        assert manager.root == str(temp_cache_dir)
        assert manager.get_lifetime() == 240
        assert manager.get_lifetime("test") == 10

    def test_config_with_unwritable_dir_fails(self, temp_cache_dir):
        config = CacheConfig(cache_dir=temp_cache_dir / "missing")

        with pytest.raises(PathNotWritableError):
            CacheManager(config)

    def test_unknown_serializer_fails(self):
        with pytest.raises(ValueError, match="Unknown serializer"):
            CacheManager(CacheConfig(serializer="yaml"))

    def test_make_key_exposed(self):
        assert CacheManager.make_key("test") == make_key("test")


class TestRoot:
    """Test cache root handling."""

    def test_getter_without_arguments(self):
        """Test that set_root() with no arguments never errors."""
        manager = CacheManager()

        assert manager.set_root() is None

    def test_set_root(self, temp_cache_dir):
        manager = CacheManager()

        assert manager.set_root(str(temp_cache_dir)) == str(temp_cache_dir)
        assert manager.get_root() == str(temp_cache_dir)
        assert manager.set_root() == str(temp_cache_dir)

    def test_trailing_slash_stripped(self, temp_cache_dir):
        manager = CacheManager()
        manager.set_root(str(temp_cache_dir) + "/")

        assert manager.root == str(temp_cache_dir)

    def test_not_writable_keeps_previous_root(self, temp_cache_dir):
        """Test that a bad root raises and leaves the previous root in place."""
        manager = CacheManager()
        manager.set_root(temp_cache_dir)

        with pytest.raises(PathNotWritableError, match="Path is not writable"):
            manager.set_root(temp_cache_dir / "test")

        assert manager.root == str(temp_cache_dir)

    def test_file_is_not_writable_root(self, temp_cache_dir):
        """Test that a regular file cannot be a root."""
        file_path = temp_cache_dir / "file.txt"
        file_path.write_text("content")
        manager = CacheManager()

        with pytest.raises(PathNotWritableError):
            manager.set_root(file_path)

    def test_force_unsets_root(self, temp_cache_dir):
        manager = CacheManager()
        manager.set_root(temp_cache_dir)

        assert manager.set_root(None, force=True) is None
        assert manager.root is None


class TestLifetime:
    """Test lifetime delegation."""

    def test_set_and_get(self):
        manager = CacheManager()

        assert manager.set_lifetime("4h") == 14400
        assert manager.get_lifetime() == 14400

    def test_namespaces_independent(self):
        manager = CacheManager()
        manager.set_lifetime(4)
        manager.set_lifetime("4m", "test")

        assert manager.get_lifetime() == 4
        assert manager.get_lifetime("test") == 240
        assert manager.lifetimes.get("other") == 0

    def test_managers_do_not_share_lifetimes(self):
        first = CacheManager()
        second = CacheManager()
        first.set_lifetime(10)

        assert second.get_lifetime() == 0


class TestPut:
    """Test writing entries."""

    def test_put_creates_entry_file(self, cache_manager, temp_cache_dir):
        path = entry_path(temp_cache_dir, "test")
        assert not path.exists()

        cache_manager.put("test", "test")

        assert path.exists()

    def test_put_content_layout(self, cache_manager, temp_cache_dir):
        """Test the stored content is '<expiration>||<payload>'."""
        cache_manager.put("test", "test")

        content = entry_path(temp_cache_dir, "test").read_bytes()
        header, payload = content.split(b"||", 1)

        assert time.time() - 100 < int(header) < time.time() + 100
        assert payload == b'"test"'

    def test_expiration_is_now_plus_lifetime(self, temp_cache_dir):
        manager = CacheManager(clock=lambda: 1000.7)
        manager.set_root(temp_cache_dir)
        manager.set_lifetime(60, "test")

        manager.put("key", "value", "test")

        assert manager.expiration("key", "test") == 1060

    def test_put_without_root(self):
        manager = CacheManager()
        manager.set_lifetime(4)

        with pytest.raises(RootNotSetError, match="root not set"):
            manager.put("test", "test")

    def test_put_without_lifetime(self, temp_cache_dir):
        manager = CacheManager()
        manager.set_root(temp_cache_dir)

        with pytest.raises(LifetimeNotSetError, match="Lifetime not set"):
            manager.put("test", "test")

        assert not (temp_cache_dir / "global").exists()

    def test_put_lifetime_of_other_namespace_not_used(self, cache_manager):
        """Test that the global lifetime does not cover other namespaces."""
        with pytest.raises(LifetimeNotSetError):
            cache_manager.put("test", "test", "sessions")

    def test_put_overwrites(self, cache_manager):
        cache_manager.put("test", "first")
        cache_manager.put("test", "second")

        assert cache_manager.get("test") == "second"

    def test_put_creates_namespace_lazily(self, cache_manager, temp_cache_dir):
        cache_manager.set_lifetime(10, "sessions")
        assert not (temp_cache_dir / "sessions").exists()

        cache_manager.put("test", "test", "sessions")

        assert (temp_cache_dir / "sessions").is_dir()

    def test_put_wraps_os_errors(self, cache_manager):
        with patch.object(
            cache_manager.storage, "write_bytes", side_effect=OSError("disk full")
        ):
            with pytest.raises(CacheIOError, match="disk full"):
                cache_manager.put("test", "test")


class TestGet:
    """Test reading entries."""

    def test_get_missing_returns_default(self, cache_manager):
        assert cache_manager.get("test") is None
        assert cache_manager.get("test", "fallback") == "fallback"

    def test_get_without_root_returns_default(self):
        manager = CacheManager()

        assert manager.get("test", "fallback") == "fallback"

    @pytest.mark.parametrize(
        "value",
        ["test", 42, 3.5, None, [1, 2, 3], {"a": {"b": [1, "two", None]}}],
    )
    def test_round_trip(self, cache_manager, value):
        cache_manager.put("test", value)

        assert cache_manager.get("test", "default") == value

    def test_payload_containing_delimiter(self, cache_manager):
        cache_manager.put("test", "a||b||c")

        assert cache_manager.get("test") == "a||b||c"

    def test_expired_entry_is_deleted(self, cache_manager, temp_cache_dir):
        """Test that reading an expired entry returns default and removes the file."""
        cache_manager.put("test", "test")
        path = entry_path(temp_cache_dir, "test")
        rewrite_expiration(path, int(time.time()) - 100)

        assert cache_manager.get("test") is None
        assert not path.exists()
        assert cache_manager.has("test") is False

    def test_expired_in_namespace_is_deleted(self, cache_manager, temp_cache_dir):
        cache_manager.set_lifetime(10, "test")
        cache_manager.put("key", "value", "test")
        path = entry_path(temp_cache_dir, "key", "test")
        rewrite_expiration(path, int(time.time()) - 100)

        assert cache_manager.get("key", "default", "test") == "default"
        assert not path.exists()

    def test_entry_valid_until_expiration_second(self, temp_cache_dir):
        now = [1000.0]
        manager = CacheManager(clock=lambda: now[0])
        manager.set_root(temp_cache_dir)
        manager.set_lifetime(10)
        manager.put("test", "value")

        now[0] = 1010.0
        assert manager.get("test") == "value"

        now[0] = 1011.0
        assert manager.get("test") is None
        assert manager.has("test") is False

    def test_entry_without_delimiter_is_discarded(self, cache_manager, temp_cache_dir):
        cache_manager.put("test", "test")
        path = entry_path(temp_cache_dir, "test")
        path.write_bytes(b"no delimiter here")

        assert cache_manager.get("test", "default") == "default"
        assert not path.exists()

    def test_corrupt_payload_is_discarded(self, cache_manager, temp_cache_dir):
        cache_manager.put("test", "test")
        path = entry_path(temp_cache_dir, "test")
        path.write_bytes(str(int(time.time()) + 100).encode() + b"||{not json")

        assert cache_manager.get("test", "default") == "default"
        assert not path.exists()

    def test_namespaces_are_separate(self, cache_manager):
        cache_manager.set_lifetime(10, "other")
        cache_manager.put("test", "global value")
        cache_manager.put("test", "other value", "other")

        assert cache_manager.get("test") == "global value"
        assert cache_manager.get("test", namespace="other") == "other value"

    def test_params_select_separate_entries(self, cache_manager):
        cache_manager.put("users", "page one", params=["page", "1"])
        cache_manager.put("users", "page two", params=["page", "2"])

        assert cache_manager.get("users", params=["page", "1"]) == "page one"
        assert cache_manager.get("users", params=["page", "2"]) == "page two"
        assert cache_manager.get("users") is None

    def test_pickle_serializer(self, temp_cache_dir):
        config = CacheConfig(
            cache_dir=temp_cache_dir, lifetimes={"global": 60}, serializer="pickle"
        )
        manager = CacheManager(config)
        value = {"tuple": (1, 2), "set": {3}}

        manager.put("test", value)

        assert manager.get("test") == value


class TestHasAndForget:
    """Test existence checks and removal."""

    def test_has_lifecycle(self, cache_manager):
        assert cache_manager.has("test") is False

        cache_manager.put("test", "test")
        assert cache_manager.has("test") is True

        cache_manager.forget("test")
        assert cache_manager.has("test") is False

    def test_has_without_root(self):
        assert CacheManager().has("test") is False

    def test_has_ignores_expiration(self, cache_manager, temp_cache_dir):
        cache_manager.put("test", "test")
        rewrite_expiration(entry_path(temp_cache_dir, "test"), 0)

        assert cache_manager.has("test") is True

    def test_has_is_namespace_specific(self, cache_manager):
        cache_manager.put("test", "test")

        assert cache_manager.has("test", "other") is False

    def test_forget_missing_is_noop(self, cache_manager):
        cache_manager.forget("test")
        CacheManager().forget("test")

    def test_forget_only_affects_namespace(self, cache_manager):
        cache_manager.set_lifetime(10, "other")
        cache_manager.put("test", "a")
        cache_manager.put("test", "b", "other")

        cache_manager.forget("test", "other")

        assert cache_manager.has("test") is True
        assert cache_manager.has("test", "other") is False


class TestExpiration:
    """Test expiration inspection."""

    def test_missing_entry(self, cache_manager):
        assert cache_manager.expiration("test") is None

    def test_present_entry(self, cache_manager):
        cache_manager.put("test", "test")
        expiration = cache_manager.expiration("test")

        assert time.time() - 100 < expiration < time.time() + 100

    def test_expired_entry_reported_not_deleted(self, cache_manager, temp_cache_dir):
        """Test that past expirations are returned without deleting the entry."""
        cache_manager.put("test", "test")
        path = entry_path(temp_cache_dir, "test")
        past = int(time.time()) - 100
        rewrite_expiration(path, past)

        assert cache_manager.expiration("test") == past
        assert path.exists()

    def test_entry_deleted_externally(self, cache_manager, temp_cache_dir):
        cache_manager.put("test", "test")
        entry_path(temp_cache_dir, "test").unlink()

        assert cache_manager.expiration("test") is None

    def test_entry_without_delimiter(self, cache_manager, temp_cache_dir):
        cache_manager.put("test", "test")
        entry_path(temp_cache_dir, "test").write_bytes(b"garbage")

        assert cache_manager.expiration("test") is None


class TestFlush:
    """Test namespace flushing."""

    def test_flush_removes_entries(self, cache_manager, temp_cache_dir):
        cache_manager.put("test1", "test")
        cache_manager.put("test2", "test")
        assert cache_manager.has("test1") and cache_manager.has("test2")

        cache_manager.flush()

        assert cache_manager.has("test1") is False
        assert cache_manager.has("test2") is False
        assert (temp_cache_dir / "global").is_dir()

    def test_flush_leaves_other_namespaces(self, cache_manager):
        cache_manager.set_lifetime(10, "other")
        cache_manager.put("test", "a")
        cache_manager.put("test", "b", "other")

        cache_manager.flush("other")

        assert cache_manager.get("test") == "a"
        assert cache_manager.has("test", "other") is False

    def test_flush_skips_hidden_files_and_subdirectories(
        self, cache_manager, temp_cache_dir
    ):
        cache_manager.put("test", "a")
        namespace_dir = temp_cache_dir / "global"
        (namespace_dir / ".keep").write_text("")
        (namespace_dir / "nested").mkdir()
        (namespace_dir / "nested" / "file").write_text("x")

        cache_manager.flush()

        assert (namespace_dir / ".keep").exists()
        assert (namespace_dir / "nested" / "file").exists()
        assert cache_manager.has("test") is False

    def test_flush_missing_namespace_is_noop(self, cache_manager):
        cache_manager.flush("missing")
        CacheManager().flush()

    def test_flush_rejects_namespace_outside_root(self, temp_cache_dir):
        """Test that an absolute namespace cannot flush files outside the root."""
        root = temp_cache_dir / "root"
        root.mkdir()
        outside = temp_cache_dir / "outside"
        outside.mkdir()
        important = outside / "important.txt"
        important.write_text("keep me")
        manager = CacheManager()
        manager.set_root(root)
        manager.set_lifetime(60, str(outside))

        with pytest.raises(ValueError, match="path separators"):
            manager.put("k", "v", str(outside))
        with pytest.raises(ValueError, match="path separators"):
            manager.flush(str(outside))

        assert important.exists()
        assert [p.name for p in outside.iterdir()] == ["important.txt"]

    @pytest.mark.parametrize("namespace", ["", ".", "..", "a/b", "..\\up"])
    def test_invalid_namespaces_rejected(self, cache_manager, namespace):
        """Test that namespaces must be a single directory name."""
        with pytest.raises(ValueError):
            cache_manager.flush(namespace)
        with pytest.raises(ValueError):
            cache_manager.has("test", namespace)

    def test_non_string_namespace_rejected(self):
        with pytest.raises(TypeError, match="Namespace must be a string"):
            validate_namespace(None)


class TestRemember:
    """Test compute-on-miss."""

    def test_fetch_called_once(self, cache_manager):
        calls = []

        def fetch():
            calls.append(1)
            return {"value": 42}

        assert cache_manager.remember("test", fetch) == {"value": 42}
        assert cache_manager.remember("test", fetch) == {"value": 42}
        assert len(calls) == 1

    def test_cached_none_is_a_hit(self, cache_manager):
        cache_manager.put("test", None)

        assert cache_manager.remember("test", lambda: "fresh") is None

    def test_remember_requires_lifetime(self, cache_manager):
        with pytest.raises(LifetimeNotSetError):
            cache_manager.remember("test", lambda: 1, "other")


class TestInspection:
    """Test status, namespaces and statistics."""

    def test_status_missing(self, cache_manager):
        assert cache_manager.get_status("test") is None

    def test_status(self, temp_cache_dir):
        manager = CacheManager(clock=lambda: 1000)
        manager.set_root(temp_cache_dir)
        manager.set_lifetime(60)
        manager.put("test", "value")

        status = manager.get_status("test")

        assert status["expiration"] == 1060
        assert status["expired"] is False
        assert status["ttl_remaining"] == 60
        assert status["entry_id"] == make_key("test")
        assert status["cache_path"] == os.path.join(
            str(temp_cache_dir), "global", make_key("test")
        )
        assert status["size_bytes"] == len(b'1060||"value"')

    def test_status_does_not_delete_expired(self, cache_manager, temp_cache_dir):
        cache_manager.put("test", "test")
        rewrite_expiration(entry_path(temp_cache_dir, "test"), 0)

        status = cache_manager.get_status("test")

        assert status["expired"] is True
        assert status["ttl_remaining"] == 0
        assert cache_manager.has("test") is True

    def test_namespaces(self, cache_manager, temp_cache_dir):
        cache_manager.set_lifetime(10, "sessions")
        cache_manager.put("a", 1)
        cache_manager.put("b", 2, "sessions")
        (temp_cache_dir / ".hidden").mkdir()
        (temp_cache_dir / "stray.txt").write_text("x")

        assert cache_manager.namespaces() == ["global", "sessions"]
        assert CacheManager().namespaces() == []

    def test_count_entries(self, cache_manager):
        cache_manager.put("a", 1)
        cache_manager.put("b", 2)

        assert cache_manager.count_entries() == 2
        assert cache_manager.count_entries("missing") == 0

    def test_stats(self, cache_manager):
        cache_manager.put("test", "value")
        cache_manager.get("test")
        cache_manager.get("missing")

        stats = cache_manager.get_stats()

        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["writes"] == 1
        assert stats["cache_hit_rate"] == 0.5
        assert stats["lifetimes"] == {"global": 4}
        assert stats["serializer"] == "json"

    def test_stats_counts_expired(self, cache_manager, temp_cache_dir):
        cache_manager.put("test", "value")
        rewrite_expiration(entry_path(temp_cache_dir, "test"), 0)
        cache_manager.get("test")

        stats = cache_manager.get_stats()

        assert stats["expired"] == 1
        assert stats["misses"] == 1
        assert stats["cache_hit_rate"] == 0.0
