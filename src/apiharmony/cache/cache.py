"""Disk cache for fetched specification text.

Only successful fetches are stored; an entry holds the response body and its
declared content type. Keys are SHA-256 hashes of the URL with its fragment
removed, so ``openapi.yaml`` and ``openapi.yaml#/info`` share one entry.

See Also:
    :class:`~apiharmony.models.CacheConfig` -- ``enabled`` and ``ttl_seconds``.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Any, NamedTuple, Optional
from urllib.parse import urldefrag

import diskcache

from apiharmony.models import CacheConfig


class CachedDocument(NamedTuple):
    """A cached fetch result."""

    text: str
    content_type: Optional[str]


class DocumentCache:
    """Disk-backed cache of fetched documents.

    Args:
        cache_dir: Root directory for the cache. A ``documents/``
            subdirectory is created inside it.
        config: Cache configuration (``enabled`` flag and ``ttl_seconds``).

    Example::

        cache = DocumentCache(get_cache_dir(), CacheConfig(ttl_seconds=600))
        cache.set("https://example.com/openapi.yaml", text, "application/yaml")
        hit = cache.get("https://example.com/openapi.yaml")
    """

    def __init__(self, cache_dir: str | Path, config: CacheConfig) -> None:
        self._config = config
        self._cache_dir = Path(cache_dir)
        self._cache: Optional[diskcache.Cache] = None
        if config.enabled:
            self._cache = diskcache.Cache(str(self._cache_dir / "documents"))

    @property
    def enabled(self) -> bool:
        return self._cache is not None

    def get(self, url: str) -> Optional[CachedDocument]:
        """Return the cached document for *url*, or ``None`` on a miss."""
        if self._cache is None:
            return None
        entry = self._cache.get(self._make_key(url))
        if entry is None:
            return None
        return CachedDocument(entry["text"], entry.get("content_type"))

    def set(self, url: str, text: str, content_type: Optional[str] = None) -> None:
        """Store a fetched document. Ignored when caching is disabled."""
        if self._cache is None:
            return
        self._cache.set(
            self._make_key(url),
            {"text": text, "content_type": content_type},
            expire=self._config.ttl_seconds,
        )

    def invalidate(self, url: str) -> None:
        if self._cache is not None:
            self._cache.delete(self._make_key(url))

    def clear(self) -> None:
        if self._cache is not None:
            self._cache.clear()

    def stats(self) -> dict[str, Any]:
        """Return ``enabled`` and, when enabled, ``size``, ``directory`` and ``ttl_seconds``."""
        if self._cache is None:
            return {"enabled": False}
        return {
            "enabled": True,
            "size": len(self._cache),
            "directory": str(self._cache_dir / "documents"),
            "ttl_seconds": self._config.ttl_seconds,
        }

    def close(self) -> None:
        if self._cache is not None:
            self._cache.close()

    @staticmethod
    def _make_key(url: str) -> str:
        return hashlib.sha256(urldefrag(url)[0].encode()).hexdigest()
