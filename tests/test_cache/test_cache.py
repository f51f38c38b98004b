"""Tests for the DocumentCache module."""

from __future__ import annotations

import time

import pytest

from apiharmony.cache import CachedDocument, DocumentCache
from apiharmony.models import CacheConfig

URL = "https://api.example.com/openapi.yaml"


@pytest.fixture()
def cache(tmp_path):
    """Create a DocumentCache with default config pointing at tmp_path."""
    c = DocumentCache(tmp_path, CacheConfig(enabled=True, ttl_seconds=300))
    yield c
    c.close()


@pytest.fixture()
def disabled_cache(tmp_path):
    """Create a disabled DocumentCache."""
    c = DocumentCache(tmp_path, CacheConfig(enabled=False, ttl_seconds=300))
    yield c
    c.close()


# ------------------------------------------------------------------ #
# Core get/set behaviour
# ------------------------------------------------------------------ #


class TestGetSet:
    def test_set_and_get(self, cache: DocumentCache) -> None:
        """Cache stores and retrieves a document with its content type."""
        cache.set(URL, "openapi: 3.0.3\n", "application/yaml")
        assert cache.get(URL) == CachedDocument("openapi: 3.0.3\n", "application/yaml")

    def test_missing_content_type(self, cache: DocumentCache) -> None:
        cache.set(URL, "{}")
        assert cache.get(URL).content_type is None

    def test_cache_miss_returns_none(self, cache: DocumentCache) -> None:
        assert cache.get("https://api.example.com/missing.yaml") is None

    def test_fragment_ignored_in_key(self, cache: DocumentCache) -> None:
        """``doc#/A`` and ``doc#/B`` share one entry."""
        cache.set(URL + "#/components/schemas/A", "body")
        assert cache.get(URL + "#/components/schemas/B").text == "body"
        assert cache.get(URL).text == "body"

    def test_query_is_part_of_key(self, cache: DocumentCache) -> None:
        cache.set(URL + "?v=1", "one")
        assert cache.get(URL + "?v=2") is None


# ------------------------------------------------------------------ #
# TTL expiry
# ------------------------------------------------------------------ #


class TestTTL:
    def test_ttl_expiry(self, tmp_path) -> None:
        """Entries expire after ttl_seconds."""
        c = DocumentCache(tmp_path, CacheConfig(enabled=True, ttl_seconds=1))
        try:
            c.set(URL, "body")
            assert c.get(URL) is not None
            time.sleep(1.5)
            assert c.get(URL) is None
        finally:
            c.close()


# ------------------------------------------------------------------ #
# Disabled cache
# ------------------------------------------------------------------ #


class TestDisabled:
    def test_disabled_get_returns_none(self, disabled_cache: DocumentCache) -> None:
        assert disabled_cache.get(URL) is None

    def test_disabled_set_is_noop(self, disabled_cache: DocumentCache) -> None:
        disabled_cache.set(URL, "body")
        assert disabled_cache.get(URL) is None
        assert disabled_cache.enabled is False

    def test_disabled_stats(self, disabled_cache: DocumentCache) -> None:
        assert disabled_cache.stats() == {"enabled": False}

    def test_disabled_creates_no_directory(self, tmp_path) -> None:
        c = DocumentCache(tmp_path / "c", CacheConfig(enabled=False))
        c.close()
        assert not (tmp_path / "c" / "documents").exists()


# ------------------------------------------------------------------ #
# Invalidate, clear, stats
# ------------------------------------------------------------------ #


class TestInvalidateAndClear:
    def test_invalidate_removes_specific_entry(self, cache: DocumentCache) -> None:
        cache.set("https://api.example.com/a.yaml", "a")
        cache.set("https://api.example.com/b.yaml", "b")

        cache.invalidate("https://api.example.com/a.yaml")

        assert cache.get("https://api.example.com/a.yaml") is None
        assert cache.get("https://api.example.com/b.yaml") is not None

    def test_clear_removes_all_entries(self, cache: DocumentCache) -> None:
        cache.set("https://api.example.com/a.yaml", "a")
        cache.set("https://api.example.com/b.yaml", "b")
        cache.clear()
        assert cache.stats()["size"] == 0

    def test_invalidate_nonexistent_key_no_error(self, cache: DocumentCache) -> None:
        cache.invalidate("https://api.example.com/nope.yaml")


class TestStats:
    def test_enabled_stats(self, cache: DocumentCache, tmp_path) -> None:
        cache.set(URL, "body")
        stats = cache.stats()
        assert stats["enabled"] is True
        assert stats["size"] == 1
        assert stats["ttl_seconds"] == 300
        assert stats["directory"] == str(tmp_path / "documents")
